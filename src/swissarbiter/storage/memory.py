"""In-memory tournament store."""

# Swiss Arbiter
# Copyright (C) 2025  Swiss Arbiter developers
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

import copy
import threading
from collections import defaultdict
from typing import Dict, List, Optional

from swissarbiter.exceptions import (
    ConcurrencyConflictError,
    NotFoundError,
    ValidationError,
)
from swissarbiter.models import (
    AuditRecord,
    Game,
    Player,
    PlayerStatus,
    Round,
    RoundStatus,
    Tournament,
)
from swissarbiter.storage.base import TournamentStore
from swissarbiter.utils import setup_logger

logger = setup_logger(__name__)


class MemoryStore(TournamentStore):
    """Dictionary-backed store, used by tests and the simulator.

    A single internal lock guards the dictionaries; per-tournament writer
    locks serialise mutating operations at the controller level.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._writers: Dict[str, threading.RLock] = defaultdict(threading.RLock)
        self._versions: Dict[str, int] = defaultdict(int)
        self._tournaments: Dict[str, Tournament] = {}
        self._players: Dict[str, Player] = {}
        self._rounds: Dict[str, Round] = {}
        self._games: Dict[str, Game] = {}
        self._audit: Dict[str, List[AuditRecord]] = defaultdict(list)
        self._audit_counts: Dict[str, int] = defaultdict(int)

    def writer(self, tournament_id: str):
        with self._lock:
            return self._writers[tournament_id]

    def results_version(self, tournament_id: str) -> int:
        with self._lock:
            return self._versions[tournament_id]

    def bump_results_version(self, tournament_id: str) -> int:
        with self._lock:
            self._versions[tournament_id] += 1
            return self._versions[tournament_id]

    # ========== Tournaments ==========

    def add_tournament(self, tournament: Tournament) -> None:
        with self._lock:
            if tournament.id in self._tournaments:
                raise ValidationError(f"Tournament {tournament.id!r} already exists", field="id")
            self._tournaments[tournament.id] = copy.deepcopy(tournament)

    def get_tournament(self, tournament_id: str) -> Tournament:
        with self._lock:
            if tournament_id not in self._tournaments:
                raise NotFoundError("Tournament", tournament_id)
            return copy.deepcopy(self._tournaments[tournament_id])

    def advance_current_round(self, tournament_id: str, round_number: int) -> bool:
        with self._lock:
            if tournament_id not in self._tournaments:
                raise NotFoundError("Tournament", tournament_id)
            tournament = self._tournaments[tournament_id]
            if tournament.current_round >= round_number:
                return False
            tournament.current_round = round_number
            return True

    # ========== Players ==========

    def add_player(self, player: Player) -> None:
        with self._lock:
            if player.tournament_id not in self._tournaments:
                raise NotFoundError("Tournament", player.tournament_id)
            if player.id in self._players:
                raise ValidationError(f"Player {player.id!r} already exists", field="id")
            self._players[player.id] = copy.deepcopy(player)

    def get_player(self, player_id: str) -> Player:
        with self._lock:
            if player_id not in self._players:
                raise NotFoundError("Player", player_id)
            return copy.deepcopy(self._players[player_id])

    def list_players(self, tournament_id: str) -> List[Player]:
        with self._lock:
            return [
                copy.deepcopy(p)
                for p in self._players.values()
                if p.tournament_id == tournament_id
            ]

    def update_player_status(self, player_id: str, status: PlayerStatus) -> Player:
        with self._lock:
            if player_id not in self._players:
                raise NotFoundError("Player", player_id)
            self._players[player_id].status = PlayerStatus(status)
            return copy.deepcopy(self._players[player_id])

    # ========== Rounds ==========

    def add_round(self, round_: Round) -> None:
        with self._lock:
            if round_.tournament_id not in self._tournaments:
                raise NotFoundError("Tournament", round_.tournament_id)
            if self._find_round(round_.tournament_id, round_.round_number):
                raise ValidationError(
                    f"Round {round_.round_number} already exists in tournament "
                    f"{round_.tournament_id!r}",
                    field="round_number",
                )
            self._rounds[round_.id] = copy.deepcopy(round_)

    def get_round(self, round_id: str) -> Round:
        with self._lock:
            if round_id not in self._rounds:
                raise NotFoundError("Round", round_id)
            return copy.deepcopy(self._rounds[round_id])

    def _find_round(self, tournament_id: str, round_number: int) -> Optional[Round]:
        for round_ in self._rounds.values():
            if round_.tournament_id == tournament_id and round_.round_number == round_number:
                return round_
        return None

    def find_round(self, tournament_id: str, round_number: int) -> Optional[Round]:
        with self._lock:
            found = self._find_round(tournament_id, round_number)
            return copy.deepcopy(found) if found else None

    def list_rounds(self, tournament_id: str) -> List[Round]:
        with self._lock:
            rounds = [r for r in self._rounds.values() if r.tournament_id == tournament_id]
            return [copy.deepcopy(r) for r in sorted(rounds, key=lambda r: r.round_number)]

    def compare_and_set_round(self, round_: Round, expected_status: RoundStatus) -> Round:
        with self._lock:
            if round_.id not in self._rounds:
                raise NotFoundError("Round", round_.id)
            stored = self._rounds[round_.id]
            if stored.status is not expected_status:
                logger.warning(
                    f"Round {stored.round_number}: expected status "
                    f"'{expected_status.value}', found '{stored.status.value}'"
                )
                raise ConcurrencyConflictError(
                    f"Round {stored.round_number} is '{stored.status.value}', "
                    f"not '{expected_status.value}'",
                    expected=expected_status,
                    actual=stored.status,
                )
            self._rounds[round_.id] = copy.deepcopy(round_)
            return copy.deepcopy(round_)

    # ========== Games ==========

    def add_games(self, games: List[Game]) -> None:
        with self._lock:
            for game in games:
                if game.id in self._games:
                    raise ValidationError(f"Game {game.id!r} already exists", field="id")
            for game in games:
                self._games[game.id] = copy.deepcopy(game)

    def get_game(self, game_id: str) -> Game:
        with self._lock:
            if game_id not in self._games:
                raise NotFoundError("Game", game_id)
            return copy.deepcopy(self._games[game_id])

    def list_games(self, tournament_id: str, round_number: Optional[int] = None) -> List[Game]:
        with self._lock:
            games = [
                g
                for g in self._games.values()
                if g.tournament_id == tournament_id
                and (round_number is None or g.round_number == round_number)
            ]
            games.sort(key=lambda g: (g.round_number, g.board_number))
            return [copy.deepcopy(g) for g in games]

    def save_game(self, game: Game) -> None:
        with self._lock:
            if game.id not in self._games:
                raise NotFoundError("Game", game.id)
            self._games[game.id] = copy.deepcopy(game)

    # ========== Audit trail ==========

    def append_audit(self, tournament_id: str, record: AuditRecord) -> None:
        with self._lock:
            self._audit[record.game_id].append(record)
            self._audit_counts[tournament_id] += 1

    def list_audit(self, game_id: str) -> List[AuditRecord]:
        with self._lock:
            return list(self._audit.get(game_id, []))

    def audit_length(self, tournament_id: str) -> int:
        with self._lock:
            return self._audit_counts[tournament_id]
