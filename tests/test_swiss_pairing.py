import pytest

from swissarbiter.exceptions import PairingInfeasibleError
from swissarbiter.models import PairingHistory, PairingOptions
from swissarbiter.pairing import PairingCandidate, SwissPairingEngine, assign_colours
from swissarbiter.pairing.colours import Seat, can_meet, colour_preference
from swissarbiter.type_hints import BLACK, WHITE


def _candidates(*ratings, **points):
    return [
        PairingCandidate(player_id=f"p{i}", rating=rating, points=points.get(f"p{i}", 0.0))
        for i, rating in enumerate(ratings, start=1)
    ]


def _pairs(result):
    return {frozenset(p.player_ids) for p in result.pairings if not p.is_bye}


def test_first_round_pairs_top_half_against_bottom_half():
    result = SwissPairingEngine().generate(
        _candidates(1800, 1700, 1600, 1500), PairingHistory(), 1
    )

    assert _pairs(result) == {frozenset({"p1", "p3"}), frozenset({"p2", "p4"})}
    assert [p.board_number for p in result.pairings] == [1, 2]
    assert result.pairings[0].white_player_id == "p1"
    assert not result.warnings


def test_adjacent_split_pairs_neighbours():
    engine = SwissPairingEngine(PairingOptions(group_split="adjacent"))
    result = engine.generate(_candidates(1800, 1700, 1600, 1500), PairingHistory(), 1)

    assert _pairs(result) == {frozenset({"p1", "p2"}), frozenset({"p3", "p4"})}


def test_second_round_regroups_by_score_without_rematches():
    history = PairingHistory()
    history.add_pairing("p1", "p3", 1)
    history.add_pairing("p2", "p4", 1)
    candidates = _candidates(1800, 1700, 1600, 1500, p1=1.0, p2=1.0)
    candidates[0].colours = [WHITE]
    candidates[1].colours = [WHITE]
    candidates[2].colours = [BLACK]
    candidates[3].colours = [BLACK]

    result = SwissPairingEngine().generate(candidates, history, 2)

    assert _pairs(result) == {frozenset({"p1", "p2"}), frozenset({"p3", "p4"})}
    assert not any(p.forced_rematch for p in result.pairings)
    # the winners' game goes on top
    assert set(result.pairings[0].player_ids) == {"p1", "p2"}


def test_odd_field_gives_bye_to_lowest_rated_on_lowest_score():
    result = SwissPairingEngine().generate(
        _candidates(1800, 1700, 1600, 1500, 1400), PairingHistory(), 1
    )

    assert result.bye_player_id == "p5"
    assert result.pairings[-1].is_bye
    assert [p.board_number for p in result.pairings] == [1, 2, 3]


def test_bye_skips_players_who_already_had_one():
    history = PairingHistory(byes={"p5": [1]})
    candidates = _candidates(1800, 1700, 1600, 1500, 1400)
    candidates[4].had_bye = True

    result = SwissPairingEngine().generate(candidates, history, 2)

    assert result.bye_player_id == "p4"
    assert not result.pairings[-1].forced_repeat_bye


def test_repeat_bye_is_flagged_when_everyone_had_one():
    history = PairingHistory(byes={"p1": [1], "p2": [2], "p3": [3]})
    candidates = _candidates(1800, 1700, 1600)
    for candidate in candidates:
        candidate.had_bye = True

    result = SwissPairingEngine().generate(candidates, history, 4)

    assert result.bye_player_id == "p3"
    assert result.pairings[-1].forced_repeat_bye
    assert [r.constraint for r in result.relaxations] == ["repeat_bye"]
    assert result.warnings


def test_odd_field_without_byes_is_infeasible():
    engine = SwissPairingEngine(PairingOptions(allow_byes=False))

    with pytest.raises(PairingInfeasibleError) as excinfo:
        engine.generate(_candidates(1800, 1700, 1600), PairingHistory(), 1)
    assert excinfo.value.constraint == "bye"


def test_fewer_than_two_players_means_no_games():
    result = SwissPairingEngine().generate(_candidates(1800), PairingHistory(), 1)

    assert result.is_empty
    assert result.warnings


def test_unavoidable_rematch_is_flagged():
    history = PairingHistory()
    history.add_pairing("p1", "p2", 1)

    result = SwissPairingEngine().generate(_candidates(1800, 1700), history, 2)

    assert len(result.pairings) == 1
    assert result.pairings[0].forced_rematch
    assert [r.constraint for r in result.relaxations] == ["rematch"]


def test_rematch_avoided_by_swapping_within_group():
    history = PairingHistory()
    history.add_pairing("p1", "p3", 1)

    result = SwissPairingEngine().generate(_candidates(1800, 1700, 1600, 1500), history, 2)

    assert frozenset({"p1", "p3"}) not in _pairs(result)
    assert not result.relaxations


@pytest.mark.parametrize("count", [2, 5, 8, 9, 16, 21])
def test_boards_are_dense(count):
    ratings = [2000 - 25 * i for i in range(count)]
    result = SwissPairingEngine().generate(_candidates(*ratings), PairingHistory(), 1)

    assert [p.board_number for p in result.pairings] == list(range(1, (count + 1) // 2 + 1))
    seen = [pid for p in result.pairings for pid in p.player_ids]
    assert len(seen) == len(set(seen)) == count


def test_two_whites_in_a_row_force_black():
    assert colour_preference([WHITE, WHITE]) == BLACK
    assert not can_meet([WHITE, WHITE], [BLACK, WHITE, WHITE])

    white, black = assign_colours(
        Seat("a", 1, [WHITE, WHITE]), Seat("b", 2, [BLACK, WHITE]), 3
    )
    assert (white, black) == ("b", "a")


def test_colours_follow_preferences_then_round_parity():
    # different preferences are both granted
    assert assign_colours(Seat("a", 1, [WHITE]), Seat("b", 2, [BLACK]), 2) == ("b", "a")
    # no history: higher seed has white in odd rounds, black in even rounds
    assert assign_colours(Seat("a", 1, []), Seat("b", 2, []), 1) == ("a", "b")
    assert assign_colours(Seat("a", 1, []), Seat("b", 2, []), 2) == ("b", "a")


def test_balancing_favours_the_player_further_out_of_balance():
    higher = Seat("a", 1, [BLACK, WHITE])
    lower = Seat("b", 2, [WHITE, BLACK, WHITE])

    # both want black; b has had one white more
    assert assign_colours(higher, lower, 4, balance_colors=True) == ("a", "b")
    assert assign_colours(higher, lower, 4, balance_colors=False) == ("b", "a")


def test_bye_moves_up_when_the_lowest_player_cannot_be_paired():
    history = PairingHistory()
    history.add_pairing("p1", "p2", 1)

    result = SwissPairingEngine().generate(_candidates(1800, 1700, 1600), history, 2)

    assert result.bye_player_id == "p2"
    assert _pairs(result) == {frozenset({"p1", "p3"})}
    assert [r.constraint for r in result.relaxations] == ["bye_swap"]
    assert result.relaxations[0].player_ids == ("p2", "p3")
    assert result.warnings
