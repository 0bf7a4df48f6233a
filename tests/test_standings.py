import pytest

from swissarbiter.constants import (
    TB_ARO,
    TB_AROC_CUT_1,
    TB_AROC_CUT_2,
    TB_BLACK_GAMES,
    TB_BLACK_WINS,
    TB_BOARD_POINTS,
    TB_BUCHHOLZ_CUT_1,
    TB_BUCHHOLZ_CUT_2,
    TB_BUCHHOLZ_FULL,
    TB_BUCHHOLZ_MEDIAN,
    TB_CUMULATIVE,
    TB_DIRECT_ENCOUNTER,
    TB_GAME_POINTS,
    TB_GAMES_WON,
    TB_KOYA,
    TB_MATCH_POINTS,
    TB_PROGRESSIVE,
    TB_SONNEBORN_BERGER,
    TB_TPR,
    TB_WINS,
    TIEBREAK_NAMES,
)
from swissarbiter.models import (
    Bye,
    ByeBuchholzPolicy,
    Decisive,
    Draw,
    Forfeit,
    Game,
    MissedRoundPolicy,
    Player,
    TournamentConfig,
)
from swissarbiter.tournament import TIEBREAKS, StandingsCalculator, TiebreakContext
from swissarbiter.tournament.tiebreak_calculator import calculate_tiebreak
from swissarbiter.type_hints import BLACK, WHITE


def _player(player_id, rating):
    return Player(id=player_id, tournament_id="t", name=player_id.upper(), rating=rating)


def _game(round_number, board, white, black, outcome):
    return Game(
        id=f"g{round_number}-{board}",
        tournament_id="t",
        round_id=f"r{round_number}",
        round_number=round_number,
        board_number=board,
        white_player_id=white,
        black_player_id=black,
        outcome=outcome,
        approved=True,
    )


def _config(tiebreaks, **kwargs):
    kwargs.setdefault("missed_round_policy", MissedRoundPolicy.ZERO)
    return TournamentConfig(tiebreaks=list(tiebreaks), **kwargs)


@pytest.fixture
def round_robin():
    """Four players, three rounds, everyone meets everyone."""
    players = [_player("a", 2000), _player("b", 1900), _player("c", 1800), _player("d", 1700)]
    games = [
        _game(1, 1, "a", "b", Decisive(WHITE)),
        _game(1, 2, "c", "d", Draw()),
        _game(2, 1, "c", "a", Decisive(BLACK)),
        _game(2, 2, "d", "b", Decisive(BLACK)),
        _game(3, 1, "a", "d", Draw()),
        _game(3, 2, "b", "c", Decisive(WHITE)),
    ]
    return players, games


def _values(players, games, key, **config):
    context = TiebreakContext(players, games, _config([], **config))
    return {pid: calculate_tiebreak(key, record, context) for pid, record in context.records.items()}


def test_every_tiebreak_key_is_registered():
    assert set(TIEBREAK_NAMES) == set(TIEBREAKS) | {TB_DIRECT_ENCOUNTER}


def test_points_and_record(round_robin):
    players, games = round_robin

    standings = StandingsCalculator(_config([])).calculate(players, games)

    assert [(s.player_id, s.points, s.rank) for s in standings] == [
        ("a", 2.5, 1),
        ("b", 2.0, 2),
        ("d", 1.0, 3),
        ("c", 0.5, 4),
    ]
    a = standings[0]
    assert (a.games_played, a.wins, a.draws, a.losses) == (3, 2, 1, 0)


@pytest.mark.parametrize(
    "key, expected",
    [
        (TB_BUCHHOLZ_FULL, 3.5),
        (TB_BUCHHOLZ_CUT_1, 3.0),
        (TB_BUCHHOLZ_CUT_2, 1.0),
        (TB_BUCHHOLZ_MEDIAN, 1.0),
        (TB_SONNEBORN_BERGER, 3.0),
        (TB_PROGRESSIVE, 5.5),
        (TB_CUMULATIVE, 5.5),
        (TB_ARO, 1800.0),
        (TB_AROC_CUT_1, 1850.0),
        (TB_AROC_CUT_2, 1800.0),
        (TB_TPR, 2080.0),
        (TB_WINS, 2.0),
        (TB_GAMES_WON, 2.0),
        (TB_BLACK_GAMES, 1.0),
        (TB_BLACK_WINS, 1.0),
        (TB_KOYA, 1.0),
        (TB_MATCH_POINTS, 5.0),
        (TB_GAME_POINTS, 2.5),
        (TB_BOARD_POINTS, 5.0),
    ],
)
def test_tiebreak_values(round_robin, key, expected):
    players, games = round_robin

    assert _values(players, games, key)["a"] == pytest.approx(expected)


def test_buchholz_of_the_other_players(round_robin):
    players, games = round_robin

    assert _values(players, games, TB_BUCHHOLZ_FULL) == {"a": 3.5, "b": 4.0, "c": 5.5, "d": 5.0}


def test_cut_variants_keep_everything_with_two_opponents():
    players = [_player("a", 2000), _player("b", 1900), _player("c", 1800)]
    games = [_game(1, 1, "a", "b", Decisive(WHITE)), _game(2, 1, "c", "a", Draw())]

    full = _values(players, games, TB_BUCHHOLZ_FULL)["a"]
    assert _values(players, games, TB_BUCHHOLZ_CUT_1)["a"] == full
    assert _values(players, games, TB_BUCHHOLZ_CUT_2)["a"] == full
    assert _values(players, games, TB_AROC_CUT_1)["a"] == _values(players, games, TB_ARO)["a"]


def test_average_rating_rounds_half_up():
    players = [_player("a", 2000), _player("b", 1801), _player("c", 1800)]
    games = [_game(1, 1, "a", "b", Draw()), _game(2, 1, "c", "a", Draw())]

    assert _values(players, games, TB_ARO)["a"] == 1801.0


def test_performance_rating_is_clamped_at_perfect_and_zero_scores():
    players = [_player("a", 2000), _player("b", 1900)]
    games = [_game(1, 1, "a", "b", Decisive(WHITE))]

    values = _values(players, games, TB_TPR)

    assert values == {"a": 2300.0, "b": 1600.0}


def test_forfeits_count_as_wins_but_not_as_games_won():
    players = [_player("a", 2000), _player("b", 1900)]
    games = [_game(1, 1, "a", "b", Forfeit(loser=BLACK))]

    assert _values(players, games, TB_WINS)["a"] == 1.0
    assert _values(players, games, TB_GAMES_WON)["a"] == 0.0
    assert _values(players, games, TB_ARO)["a"] == 0.0
    assert _values(players, games, TB_CUMULATIVE)["a"] == 0.0
    assert _values(players, games, TB_PROGRESSIVE)["a"] == 1.0


def test_direct_encounter_breaks_buchholz_tie():
    players = [
        _player("zed", 1500),
        _player("amy", 1600),
        _player("cat", 1700),
        _player("dan", 1800),
        _player("eve", 1900),
        _player("fay", 2000),
    ]
    games = [
        _game(1, 1, "zed", "amy", Decisive(WHITE)),
        _game(1, 2, "cat", "dan", Decisive(WHITE)),
        _game(1, 3, "eve", "fay", Decisive(WHITE)),
        _game(2, 1, "zed", "dan", Decisive(BLACK)),
        _game(2, 2, "amy", "eve", Decisive(WHITE)),
        _game(2, 3, "cat", "fay", Decisive(WHITE)),
    ]
    calculator = StandingsCalculator(_config([TB_BUCHHOLZ_FULL, TB_DIRECT_ENCOUNTER]))

    standings = calculator.calculate(players, games)

    by_id = {s.player_id: s for s in standings}
    assert by_id["zed"].points == by_id["amy"].points == 1.0
    assert by_id["zed"].tiebreaks[TB_BUCHHOLZ_FULL] == by_id["amy"].tiebreaks[TB_BUCHHOLZ_FULL]
    assert [s.player_id for s in standings] == ["cat", "dan", "zed", "amy", "eve", "fay"]
    assert [s.rank for s in standings] == [1, 2, 3, 4, 5, 6]
    assert by_id["zed"].tiebreaks[TB_DIRECT_ENCOUNTER] == 1.0
    assert by_id["amy"].tiebreaks[TB_DIRECT_ENCOUNTER] == 0.0


def test_direct_encounter_needs_every_pair_to_have_met():
    players = [_player("a", 1500), _player("b", 1600), _player("c", 1700), _player("d", 1800)]
    games = [
        _game(1, 1, "a", "b", Decisive(WHITE)),
        _game(1, 2, "c", "d", Decisive(WHITE)),
    ]
    calculator = StandingsCalculator(_config([TB_DIRECT_ENCOUNTER]))

    standings = calculator.calculate(players, games)

    # a and c are level and never met: they share the rank
    assert [(s.player_id, s.rank) for s in standings] == [("a", 1), ("c", 1), ("b", 3), ("d", 3)]


@pytest.mark.parametrize(
    "policy, expected",
    [
        (ByeBuchholzPolicy.OWN_SCORE, 1.0),
        (ByeBuchholzPolicy.ZERO, 0.0),
        (ByeBuchholzPolicy.ROUND_AVERAGE, 0.5),
    ],
)
def test_bye_buchholz_policy(policy, expected):
    players = [_player("a", 2000), _player("b", 1900), _player("c", 1800)]
    games = [_game(1, 1, "a", "b", Decisive(WHITE)), _game(1, 2, "c", None, Bye())]

    values = _values(players, games, TB_BUCHHOLZ_FULL, bye_buchholz_policy=policy)

    assert values["c"] == expected
    assert values["a"] == 0.0


def test_equal_players_share_a_rank():
    players = [_player("a", 2000), _player("b", 1900), _player("c", 1800)]
    games = [_game(1, 1, "a", "b", Decisive(WHITE)), _game(1, 2, "c", None, Bye())]
    calculator = StandingsCalculator(
        _config([TB_BUCHHOLZ_FULL], bye_buchholz_policy=ByeBuchholzPolicy.ZERO)
    )

    standings = calculator.calculate(players, games)

    assert [(s.player_id, s.rank) for s in standings] == [("a", 1), ("c", 1), ("b", 3)]


def test_half_point_bye():
    players = [_player("a", 2000), _player("b", 1900), _player("c", 1800)]
    games = [_game(1, 1, "a", "b", Decisive(WHITE)), _game(1, 2, "c", None, Bye())]

    standings = StandingsCalculator(_config([], bye_points=0.5)).calculate(players, games)

    assert {s.player_id: s.points for s in standings}["c"] == 0.5


@pytest.mark.parametrize(
    "policy, expected",
    [(MissedRoundPolicy.ZERO, 0.0), (MissedRoundPolicy.HALF, 1.0), (MissedRoundPolicy.FULL, 2.0)],
)
def test_missed_rounds_follow_policy(policy, expected):
    players = [_player("a", 2000), _player("b", 1900), _player("late", 1800)]
    games = [_game(1, 1, "a", "b", Draw()), _game(2, 1, "b", "a", Draw())]

    standings = StandingsCalculator(_config([], missed_round_policy=policy)).calculate(
        players, games
    )

    assert {s.player_id: s.points for s in standings}["late"] == expected


def test_missed_round_policy_is_required():
    with pytest.raises(TypeError):
        TournamentConfig()


def test_standings_are_deterministic(round_robin):
    players, games = round_robin
    calculator = StandingsCalculator(_config([TB_BUCHHOLZ_FULL, TB_SONNEBORN_BERGER, TB_TPR]))

    first = [s.to_dict() for s in calculator.calculate(players, games)]
    second = [s.to_dict() for s in calculator.calculate(players, games)]
    shuffled = [
        s.to_dict() for s in calculator.calculate(list(reversed(players)), list(reversed(games)))
    ]

    assert first == second == shuffled


def test_tiebreak_values_follow_configured_order(round_robin):
    players, games = round_robin
    order = [TB_SONNEBORN_BERGER, TB_BUCHHOLZ_FULL, TB_WINS]

    standings = StandingsCalculator(_config(order)).calculate(players, games)

    assert list(standings[0].tiebreaks) == order
    assert len(standings[0].tiebreak_values) == 3


def test_through_round_limits_the_snapshot(round_robin):
    players, games = round_robin

    standings = StandingsCalculator(_config([])).calculate(players, games, through_round=1)

    assert {s.player_id: s.points for s in standings} == {"a": 1.0, "b": 0.0, "c": 0.5, "d": 0.5}


def test_cross_table_cells(round_robin):
    players, games = round_robin

    rows = StandingsCalculator(_config([])).cross_table(players, games)

    assert rows[0]["player_id"] == "a"
    assert rows[0]["rounds"] == {1: "2w1", 2: "4b1", 3: "3w="}


def test_service_standings_after_a_round(service, make_tournament, play_round):
    tournament, players = make_tournament()
    play_round(tournament.id, 1)

    standings = service.get_tournament_standings(tournament.id)

    assert [s.points for s in standings] == [1.0, 1.0, 0.0, 0.0]
    assert len(standings[0].tiebreak_values) == len(tournament.tiebreaks)
    rows = service.get_cross_table(tournament.id)
    assert [row["player_id"] for row in rows] == [s.player_id for s in standings]
