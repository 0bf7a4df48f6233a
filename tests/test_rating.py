import pytest

from swissarbiter.exceptions import RatingValidationError
from swissarbiter.models import (
    Adjourned,
    Bye,
    Decisive,
    Draw,
    Forfeit,
    Game,
    Player,
    Timeout,
)
from swissarbiter.rating import calculate_rating_change, calculate_rating_changes, expected_score, k_factor
from swissarbiter.rating.elo import round_half_away_from_zero
from swissarbiter.type_hints import BLACK, WHITE


def _game(board, white, black, outcome, approved=True):
    return Game(
        id=f"g{board}",
        tournament_id="t",
        round_id="r1",
        round_number=1,
        board_number=board,
        white_player_id=white,
        black_player_id=black,
        outcome=outcome,
        approved=approved,
    )


def test_equal_ratings():
    assert expected_score(1600, 1600) == 0.5
    assert calculate_rating_change(1600, 1600, 1) == 16
    assert calculate_rating_change(1600, 1600, 0.5) == 0
    assert calculate_rating_change(1600, 1600, 0) == -16


@pytest.mark.parametrize(
    "rating, expected",
    [(100, 32), (2099, 32), (2100, 24), (2399, 24), (2400, 16), (4000, 16)],
)
def test_k_factor_tiers(rating, expected):
    assert k_factor(rating) == expected


def test_k_factor_uses_the_players_own_rating():
    assert calculate_rating_change(2100, 2100, 1) == 12
    assert calculate_rating_change(2400, 2400, 1) == 8


def test_favourite_gains_little_and_loses_a_lot():
    assert calculate_rating_change(2000, 1600, 1) == 3
    assert calculate_rating_change(2000, 1600, 0) == -29
    assert calculate_rating_change(1600, 2000, 1) == 29


@pytest.mark.parametrize("value, expected", [(2.5, 3), (-2.5, -3), (2.4, 2), (-2.4, -2), (0.0, 0)])
def test_halves_round_away_from_zero(value, expected):
    assert round_half_away_from_zero(value) == expected


@pytest.mark.parametrize("rating", [1600.0, 99, 4001, True, "1600", None])
def test_invalid_ratings_are_rejected(rating):
    with pytest.raises(RatingValidationError) as exc_info:
        calculate_rating_change(rating, 1600, 1)
    assert exc_info.value.field == "rating"

    with pytest.raises(RatingValidationError):
        calculate_rating_change(1600, rating, 1)


@pytest.mark.parametrize("score", [0.75, 2, -1, True, "1"])
def test_invalid_scores_are_rejected(score):
    with pytest.raises(RatingValidationError) as exc_info:
        calculate_rating_change(1600, 1600, score)
    assert exc_info.value.field == "score"


def test_tournament_changes_only_count_rated_games():
    players = [
        Player(id="a", tournament_id="t", name="A", rating=1600),
        Player(id="b", tournament_id="t", name="B", rating=1600),
        Player(id="c", tournament_id="t", name="C", rating=1600),
        Player(id="d", tournament_id="t", name="D", rating=1600),
        Player(id="e", tournament_id="t", name="E", rating=1600),
    ]
    games = [
        _game(1, "a", "b", Decisive(WHITE)),
        _game(2, "c", "d", Forfeit(loser=BLACK), approved=False),
        _game(3, "e", None, Bye()),
        _game(4, "c", "a", Adjourned()),
        _game(5, "d", "b", Timeout(BLACK)),
    ]

    changes = calculate_rating_changes(players, games)

    assert {pid: c.change for pid, c in changes.items()} == {
        "a": 16,
        "b": 0,
        "c": 0,
        "d": -16,
        "e": 0,
    }
    assert changes["b"].games == 2
    assert changes["b"].game_changes == [-16, 16]
    assert changes["e"].new_rating == 1600


def test_changes_are_based_on_entry_ratings():
    players = [
        Player(id="a", tournament_id="t", name="A", rating=2000),
        Player(id="b", tournament_id="t", name="B", rating=1600),
    ]
    games = [_game(1, "a", "b", Decisive(WHITE)), _game(2, "b", "a", Draw())]

    changes = calculate_rating_changes(players, games)

    # second game still uses 2000 v 1600, not the updated ratings
    assert changes["a"].game_changes == [3, -13]
    assert changes["a"].to_dict() == {
        "player_id": "a",
        "rating": 2000,
        "change": -10,
        "new_rating": 1990,
        "games": 2,
    }


def test_service_rates_finished_rounds_only(service, make_tournament, start_round, play_round):
    tournament, players = make_tournament()
    round_, games = start_round(tournament.id, 1)
    service.batch_update_results(
        tournament.id,
        [{"game_id": g.id, "result": "1-0"} for g in games],
        changed_by="arbiter",
    )

    assert all(c.change == 0 for c in service.calculate_rating_changes(tournament.id).values())

    service.complete_round(round_.id, changed_by="arbiter")
    changes = service.calculate_rating_changes(tournament.id)

    by_rating = {p.rating: changes[p.id].change for p in players}
    assert by_rating == {1800: 8, 1700: 8, 1600: -8, 1500: -8}
