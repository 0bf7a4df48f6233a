"""Persistence contract for tournament state.

The engine never talks to a database directly: every controller receives a
:class:`TournamentStore` and goes through it. Implementations must make
:meth:`TournamentStore.compare_and_set_round` atomic and must serialise
writers per tournament.
"""

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

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import ContextManager, Iterator, List, Optional

from swissarbiter.models import (
    AuditRecord,
    Game,
    Player,
    PlayerStatus,
    Round,
    RoundStatus,
    Tournament,
)


class TournamentStore(ABC):
    """Abstract storage for tournaments, players, rounds, games and audit records.

    Getters raise :class:`~swissarbiter.exceptions.NotFoundError` for
    missing keys. Returned objects are copies: mutating them has no effect
    until they are written back.
    """

    # ========== Concurrency ==========

    @abstractmethod
    def writer(self, tournament_id: str) -> ContextManager[None]:
        """Re-entrant lock held by anyone mutating the tournament."""

    @contextmanager
    def transaction(self, tournament_id: str) -> Iterator[None]:
        """Writer lock plus all-or-nothing semantics where the backend has them."""
        with self.writer(tournament_id):
            yield

    @abstractmethod
    def results_version(self, tournament_id: str) -> int:
        """Counter bumped after every applied result batch."""

    @abstractmethod
    def bump_results_version(self, tournament_id: str) -> int:
        """Increment and return the results version."""

    # ========== Tournaments ==========

    @abstractmethod
    def add_tournament(self, tournament: Tournament) -> None: ...

    @abstractmethod
    def get_tournament(self, tournament_id: str) -> Tournament: ...

    @abstractmethod
    def advance_current_round(self, tournament_id: str, round_number: int) -> bool:
        """Raise current_round to ``round_number`` if that is an increase.

        Returns:
            True if the stored value changed
        """

    # ========== Players ==========

    @abstractmethod
    def add_player(self, player: Player) -> None: ...

    @abstractmethod
    def get_player(self, player_id: str) -> Player: ...

    @abstractmethod
    def list_players(self, tournament_id: str) -> List[Player]: ...

    @abstractmethod
    def update_player_status(self, player_id: str, status: PlayerStatus) -> Player: ...

    # ========== Rounds ==========

    @abstractmethod
    def add_round(self, round_: Round) -> None:
        """Insert a round.

        Raises:
            ValidationError: If the round number is already taken in the tournament
        """

    @abstractmethod
    def get_round(self, round_id: str) -> Round: ...

    @abstractmethod
    def find_round(self, tournament_id: str, round_number: int) -> Optional[Round]: ...

    @abstractmethod
    def list_rounds(self, tournament_id: str) -> List[Round]:
        """Rounds ordered by round number."""

    @abstractmethod
    def compare_and_set_round(self, round_: Round, expected_status: RoundStatus) -> Round:
        """Replace the stored round only if its status is still ``expected_status``.

        Raises:
            ConcurrencyConflictError: If the stored status differs
        """

    # ========== Games ==========

    @abstractmethod
    def add_games(self, games: List[Game]) -> None: ...

    @abstractmethod
    def get_game(self, game_id: str) -> Game: ...

    @abstractmethod
    def list_games(
        self, tournament_id: str, round_number: Optional[int] = None
    ) -> List[Game]:
        """Games ordered by round number, then board number."""

    @abstractmethod
    def save_game(self, game: Game) -> None: ...

    # ========== Audit trail ==========

    @abstractmethod
    def append_audit(self, tournament_id: str, record: AuditRecord) -> None: ...

    @abstractmethod
    def list_audit(self, game_id: str) -> List[AuditRecord]:
        """Audit records for one game, oldest first."""

    @abstractmethod
    def audit_length(self, tournament_id: str) -> int: ...
