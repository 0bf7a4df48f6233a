import json

import pytest

from swissarbiter.models import ByeBuchholzPolicy, MissedRoundPolicy
from swissarbiter.testing import (
    InvariantChecker,
    RandomTournamentGenerator,
    RatingDistribution,
    ResultPattern,
    RTGConfig,
)
from swissarbiter.testing.__main__ import main


@pytest.mark.parametrize("storage", ["memory", "sqlite"])
@pytest.mark.parametrize("num_players, num_rounds", [(12, 5), (9, 4), (5, 4)])
def test_random_tournaments_keep_their_invariants(storage, num_players, num_rounds):
    config = RTGConfig(
        num_players=num_players,
        num_rounds=num_rounds,
        seed=num_players * 100 + num_rounds,
        storage=storage,
    )

    data = RandomTournamentGenerator(config).generate_complete_tournament()

    assert [str(v) for v in data["violations"]] == []
    assert len(data["rounds"]) == num_rounds
    assert data["tournament"].current_round == num_rounds
    assert len(data["standings"]) == num_players
    assert set(data["rating_changes"]) == {p.id for p in data["players"]}


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_forfeits_and_withdrawals(seed):
    config = RTGConfig(
        num_players=14,
        num_rounds=6,
        seed=seed,
        forfeit_percentage=15.0,
        withdrawal_percentage=5.0,
        missed_round_policy=MissedRoundPolicy.HALF,
        bye_buchholz_policy=ByeBuchholzPolicy.ROUND_AVERAGE,
        rating_distribution=RatingDistribution.CLUB,
        result_pattern=ResultPattern.RANDOM,
    )

    data = RandomTournamentGenerator(config).generate_complete_tournament()

    assert [str(v) for v in data["violations"]] == []
    assert data["tournament"].current_round == len(data["rounds"])


def test_same_seed_same_tournament():
    config = RTGConfig(num_players=10, num_rounds=4, seed=42)

    first = RandomTournamentGenerator(config).generate_complete_tournament()
    second = RandomTournamentGenerator(config).generate_complete_tournament()

    def table(data):
        return sorted((s.name, s.points, s.tiebreak_values) for s in data["standings"])

    assert table(first) == table(second)


def test_export_is_json():
    data = RandomTournamentGenerator(
        RTGConfig(num_players=6, num_rounds=3, seed=7)
    ).generate_complete_tournament()

    exported = json.loads(RandomTournamentGenerator.export_json_format(data))

    assert len(exported["players"]) == 6
    assert sorted(exported["rounds"]) == ["1", "2", "3"]


def test_checker_flags_rematches_and_gaps():
    data = RandomTournamentGenerator(
        RTGConfig(num_players=4, num_rounds=1, seed=3)
    ).generate_complete_tournament()
    games = data["rounds"][0]["games"]
    checker = InvariantChecker()

    assert checker.check_round(1, games, set(), set()) == []
    repeated = checker.check_round(2, games, set(), set())
    assert {v.check for v in repeated} == {"no_rematch"}

    games[1].board_number = 3
    gaps = InvariantChecker().check_round(1, games, set(), set())
    assert [v.check for v in gaps] == ["dense_boards"]


def test_cli_generate(tmp_path, capsys):
    output = tmp_path / "tournament.json"

    code = main(["generate", "--players", "8", "--rounds", "3", "--seed", "5", "--output", str(output)])

    assert code == 0
    assert json.loads(output.read_text(encoding="utf-8"))["tournament"]["total_rounds"] == 3
    assert "Players: 8" in capsys.readouterr().out


def test_cli_batch(capsys):
    code = main(["batch", "--tournaments", "3", "--players", "7", "--rounds", "3", "--seed", "11"])

    assert code == 0
    assert "3/3 tournaments clean" in capsys.readouterr().out
