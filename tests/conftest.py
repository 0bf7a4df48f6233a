from datetime import datetime, timedelta, timezone

import pytest

from swissarbiter.models import MissedRoundPolicy, TournamentConfig
from swissarbiter.service import TournamentService
from swissarbiter.storage import MemoryStore, SqliteStore

ARBITER = "arbiter"


class TickingClock:
    """Deterministic clock: every call is one minute after the previous one."""

    def __init__(self, start=datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        self.now += timedelta(minutes=1)
        return self.now


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    if request.param == "sqlite":
        store = SqliteStore()
        yield store
        store.close()
    else:
        yield MemoryStore()


@pytest.fixture
def service(store, clock):
    return TournamentService(store, clock)


@pytest.fixture
def make_tournament(service):
    def _make(ratings=(1800, 1700, 1600, 1500), total_rounds=3, **config):
        config.setdefault("missed_round_policy", MissedRoundPolicy.ZERO)
        tournament = service.create_tournament(
            "Club Championship", total_rounds, TournamentConfig(**config)
        )
        players = [
            service.add_player(tournament.id, f"Player {i}", rating)
            for i, rating in enumerate(ratings, start=1)
        ]
        return tournament, players

    return _make


@pytest.fixture
def start_round(service):
    """Create, pair, confirm and start a round; return it with its games."""

    def _start(tournament_id, round_number):
        round_ = service.create_round(tournament_id, round_number)
        service.update_round_status(round_.id, "pairing")
        proposal = service.generate_pairings(tournament_id, round_number)
        games = service.create_pairings_as_games(
            tournament_id, round_number, proposal.pairings, changed_by=ARBITER
        )
        service.update_round_status(round_.id, "published")
        round_ = service.update_round_status(round_.id, "in_progress")
        return round_, games

    return _start


@pytest.fixture
def play_round(service, start_round):
    """Play a whole round. ``results`` maps board number to result, default 1-0."""

    def _play(tournament_id, round_number, results=None):
        results = results or {}
        round_, games = start_round(tournament_id, round_number)
        updates = [
            {"game_id": g.id, "result": results.get(g.board_number, "1-0")}
            for g in games
            if not g.is_bye
        ]
        if updates:
            batch = service.batch_update_results(tournament_id, updates, changed_by=ARBITER)
            assert batch.applied, [v.errors for _, v in batch.results]
        round_ = service.complete_round(round_.id, changed_by=ARBITER)
        return round_, service.get_round_details(round_.id).games

    return _play
