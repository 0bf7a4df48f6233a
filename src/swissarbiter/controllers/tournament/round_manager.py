"""Round lifecycle management.

Rounds move strictly forward through planned, pairing, published,
in_progress, finishing, completed and verified. Every status change is a
compare-and-set against the stored round.
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

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from swissarbiter.controllers.tournament.result_recorder import build_audit_record
from swissarbiter.exceptions import (
    ConcurrencyConflictError,
    NotFoundError,
    StateTransitionError,
    ValidationError,
)
from swissarbiter.models import (
    Bye,
    Game,
    Pairing,
    PairingHistory,
    Round,
    RoundStatus,
)
from swissarbiter.storage import TournamentStore
from swissarbiter.type_hints import Clock
from swissarbiter.utils import generate_id, setup_logger, utc_now
from swissarbiter.utils.validation import require_positive_integer

logger = setup_logger(__name__)

# Statuses in which a round may receive its games
ACCEPTS_PAIRINGS = (RoundStatus.PLANNED, RoundStatus.PAIRING)
# Statuses that need at least one game
NEEDS_GAMES = (RoundStatus.PUBLISHED, RoundStatus.IN_PROGRESS)


@dataclass
class RoundDetails:
    """A round together with its games, ordered by board."""

    round: Round
    games: List[Game] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round": self.round.to_dict(),
            "games": [g.to_dict() for g in self.games],
        }


class RoundManager:
    """Manages round creation, status transitions and pairing confirmation.

    This class is responsible for:
    - Allocating round numbers without gaps
    - Enforcing the one-step-forward status machine
    - Turning confirmed pairings into games
    - Keeping the pairing history index of finished rounds
    """

    def __init__(self, store: TournamentStore, clock: Clock = utc_now):
        self.store = store
        self.clock = clock
        self._histories: Dict[str, PairingHistory] = {}
        self._history_lock = threading.Lock()

    # ========== Queries ==========

    def get_rounds(self, tournament_id: str) -> List[Round]:
        self.store.get_tournament(tournament_id)
        return self.store.list_rounds(tournament_id)

    def get_current_round(self, tournament_id: str) -> Optional[Round]:
        """The highest-numbered round, or None before the first one."""
        rounds = self.get_rounds(tournament_id)
        return rounds[-1] if rounds else None

    def get_round_details(self, round_id: str) -> RoundDetails:
        round_ = self.store.get_round(round_id)
        games = self.store.list_games(round_.tournament_id, round_.round_number)
        return RoundDetails(round=round_, games=games)

    # ========== Creation ==========

    def create_round(self, tournament_id: str, round_number: int) -> Round:
        """Create round ``round_number`` in status planned.

        Raises:
            ValidationError: If the number is taken, leaves a gap or exceeds
                the tournament's total rounds
            StateTransitionError: If the previous round is not yet completed
        """
        require_positive_integer(round_number, "round_number")
        with self.store.writer(tournament_id):
            tournament = self.store.get_tournament(tournament_id)
            if round_number > tournament.total_rounds:
                raise ValidationError(
                    f"Cannot create round {round_number}: tournament only has "
                    f"{tournament.total_rounds} rounds",
                    field="round_number",
                )
            rounds = self.store.list_rounds(tournament_id)
            if any(r.round_number == round_number for r in rounds):
                raise ValidationError(
                    f"Round {round_number} already exists for tournament {tournament_id}",
                    field="round_number",
                )
            expected = rounds[-1].round_number + 1 if rounds else 1
            if round_number != expected:
                raise ValidationError(
                    f"Round numbers must not leave gaps: next round is {expected}, "
                    f"not {round_number}",
                    field="round_number",
                )
            if rounds and not rounds[-1].status.is_finished:
                raise StateTransitionError(
                    f"Round {rounds[-1].round_number} is '{rounds[-1].status.value}'; "
                    "it must be completed before the next round is created",
                    current=rounds[-1].status,
                    requested=RoundStatus.PLANNED,
                )

            round_ = Round(
                id=generate_id("round"),
                tournament_id=tournament_id,
                round_number=round_number,
                status=RoundStatus.PLANNED,
                created_at=self.clock(),
            )
            self.store.add_round(round_)

        logger.info(f"Tournament {tournament_id}: created round {round_number}")
        return round_

    def create_next_round(self, tournament_id: str) -> Round:
        """Create the round after the highest existing one."""
        with self.store.writer(tournament_id):
            rounds = self.store.list_rounds(tournament_id)
            next_number = rounds[-1].round_number + 1 if rounds else 1
            return self.create_round(tournament_id, next_number)

    # ========== Transitions ==========

    def update_round_status(
        self,
        round_id: str,
        status: Union[str, RoundStatus],
        expected_status: Union[str, RoundStatus, None] = None,
        changed_by: Optional[str] = None,
    ) -> Round:
        """Move a round one step forward.

        Re-applying the current status is a no-op.

        Args:
            round_id: Round to update
            status: Target status (legacy aliases accepted)
            expected_status: Status the caller last saw; checked before anything else
            changed_by: Arbiter identity, recorded as ``verified_by`` on verification

        Raises:
            ConcurrencyConflictError: If the stored status is not ``expected_status``
            StateTransitionError: If the target is not the immediate successor or
                a guard fails
        """
        target = RoundStatus.parse(status)
        expected = RoundStatus.parse(expected_status) if expected_status is not None else None
        tournament_id = self.store.get_round(round_id).tournament_id

        with self.store.writer(tournament_id):
            current = self.store.get_round(round_id)
            if expected is not None and current.status is not expected:
                raise ConcurrencyConflictError(
                    f"Round {current.round_number} is '{current.status.value}', "
                    f"not '{expected.value}'",
                    expected=expected,
                    actual=current.status,
                )
            if current.status is target:
                logger.debug(f"Round {current.round_number} already '{target.value}'")
                return current
            if not current.status.can_transition_to(target):
                raise StateTransitionError(
                    f"Invalid round transition: '{current.status.value}' -> '{target.value}'",
                    current=current.status,
                    requested=target,
                )
            self._check_guards(current, target)

            now = self.clock()
            updated = Round(
                id=current.id,
                tournament_id=current.tournament_id,
                round_number=current.round_number,
                status=target,
                created_at=current.created_at,
                completed_at=current.completed_at,
                verified_at=current.verified_at,
                verified_by=current.verified_by,
            )
            if target.is_finished and updated.completed_at is None:
                updated.completed_at = now
            if target is RoundStatus.VERIFIED and updated.verified_at is None:
                updated.verified_at = now
                updated.verified_by = changed_by
            updated = self.store.compare_and_set_round(updated, current.status)

            if target is RoundStatus.COMPLETED:
                # The SQLite trigger may already have advanced it
                self.store.advance_current_round(tournament_id, updated.round_number)
                current_round = self.store.get_tournament(tournament_id).current_round
                logger.info(f"Tournament {tournament_id}: current round is now {current_round}")

        logger.info(
            f"Round {updated.round_number}: '{current.status.value}' -> '{target.value}'"
        )
        return updated

    def _check_guards(self, current: Round, target: RoundStatus) -> None:
        games = self.store.list_games(current.tournament_id, current.round_number)
        if target in NEEDS_GAMES and not games:
            raise StateTransitionError(
                f"Round {current.round_number} has no games; confirm pairings first",
                current=current.status,
                requested=target,
            )
        if target is RoundStatus.COMPLETED:
            undecided = [g.board_number for g in games if not g.is_decided]
            if undecided:
                raise StateTransitionError(
                    f"Round {current.round_number} has {len(undecided)} undecided "
                    f"game(s) on board(s) {undecided}",
                    current=current.status,
                    requested=target,
                )
            for game in games:
                if game.outcome.needs_follow_up:
                    logger.warning(
                        f"Round {current.round_number} board {game.board_number}: "
                        f"'{game.outcome.result_type.value}' needs arbiter follow-up"
                    )
        if target is RoundStatus.VERIFIED:
            pending = [g.board_number for g in games if g.requires_approval and not g.approved]
            if pending:
                raise StateTransitionError(
                    f"Round {current.round_number} has unapproved irregular results on "
                    f"board(s) {pending}",
                    current=current.status,
                    requested=target,
                )

    def complete_round(self, round_id: str, changed_by: Optional[str] = None) -> Round:
        """Walk a running round forward to completed, one checked step at a time."""
        round_ = self.store.get_round(round_id)
        if round_.status.is_finished:
            return round_
        if round_.status not in (RoundStatus.IN_PROGRESS, RoundStatus.FINISHING):
            raise StateTransitionError(
                f"Round {round_.round_number} is '{round_.status.value}'; only a round "
                "in progress can be completed",
                current=round_.status,
                requested=RoundStatus.COMPLETED,
            )
        with self.store.writer(round_.tournament_id):
            while round_.status is not RoundStatus.COMPLETED:
                round_ = self.update_round_status(
                    round_id,
                    round_.status.successor,
                    expected_status=round_.status,
                    changed_by=changed_by,
                )
        return round_

    # ========== Pairing confirmation ==========

    def create_pairings_as_games(
        self,
        tournament_id: str,
        round_number: int,
        pairings: Sequence[Union[Pairing, Dict[str, Any]]],
        expected_status: Union[str, RoundStatus, None] = None,
        changed_by: str = "system",
    ) -> List[Game]:
        """Turn confirmed pairings into games.

        If the round already has games they are returned unchanged. A bye is
        created already decided, with its audit record.

        Raises:
            NotFoundError: If the round does not exist
            ConcurrencyConflictError: If the round is not in ``expected_status``
            StateTransitionError: If the round is past the pairing stage
            ValidationError: If the pairings break a tournament invariant
        """
        expected = RoundStatus.parse(expected_status) if expected_status is not None else None
        pairings = [p if isinstance(p, Pairing) else Pairing.from_dict(p) for p in pairings]

        with self.store.transaction(tournament_id):
            tournament = self.store.get_tournament(tournament_id)
            round_ = self.store.find_round(tournament_id, round_number)
            if round_ is None:
                raise NotFoundError("Round", f"{tournament_id}#{round_number}")
            if expected is not None and round_.status is not expected:
                raise ConcurrencyConflictError(
                    f"Round {round_number} is '{round_.status.value}', not '{expected.value}'",
                    expected=expected,
                    actual=round_.status,
                )

            existing = self.store.list_games(tournament_id, round_number)
            if existing:
                logger.info(f"Round {round_number} already has {len(existing)} game(s)")
                return existing

            if round_.status not in ACCEPTS_PAIRINGS:
                raise StateTransitionError(
                    f"Round {round_number} is '{round_.status.value}'; pairings can only "
                    "be confirmed while it is planned or pairing",
                    current=round_.status,
                    requested=RoundStatus.PUBLISHED,
                )

            history = self.pairing_history(tournament_id)
            self._validate_pairings(
                tournament_id, pairings, history, tournament.config.allow_rematches
            )

            now = self.clock()
            games = []
            audits = []
            for pairing in sorted(pairings, key=lambda p: p.board_number):
                game = Game(
                    id=generate_id("game"),
                    tournament_id=tournament_id,
                    round_id=round_.id,
                    round_number=round_number,
                    board_number=pairing.board_number,
                    white_player_id=pairing.white_player_id,
                    black_player_id=pairing.black_player_id,
                )
                if pairing.is_bye:
                    game.outcome = Bye()
                    game.approved = True
                    game.approved_by = changed_by
                    game.last_updated = now
                games.append(game)
            self.store.add_games(games)
            for game in games:
                if game.is_bye:
                    record = build_audit_record(
                        self.store,
                        tournament_id,
                        game.id,
                        None,
                        game.outcome,
                        changed_by,
                        now,
                        reason="Pairing-allocated bye",
                        approved=True,
                    )
                    self.store.append_audit(tournament_id, record)
                    audits.append(record)
            if audits:
                self.store.bump_results_version(tournament_id)

        logger.info(
            f"Round {round_number}: confirmed {len(games)} board(s) for tournament {tournament_id}"
        )
        return games

    def _validate_pairings(
        self,
        tournament_id: str,
        pairings: List[Pairing],
        history: PairingHistory,
        allow_rematches: bool,
    ) -> None:
        errors: List[str] = []
        if not pairings:
            raise ValidationError("No pairings to confirm", field="pairings")

        players = {p.id: p for p in self.store.list_players(tournament_id)}
        seen = set()
        for pairing in pairings:
            for player_id in pairing.player_ids:
                player = players.get(player_id)
                if player is None:
                    errors.append(f"Player {player_id!r} is not in tournament {tournament_id}")
                elif not player.status.is_pairable:
                    errors.append(f"Player {player.name} is '{player.status.value}'")
                if player_id in seen:
                    errors.append(f"Player {player_id!r} is assigned to more than one board")
                seen.add(player_id)

            if pairing.is_bye:
                if history.has_had_bye(pairing.white_player_id) and not pairing.forced_repeat_bye:
                    errors.append(f"Player {pairing.white_player_id!r} already had a bye")
            elif history.have_played(pairing.white_player_id, pairing.black_player_id):
                if not (allow_rematches or pairing.forced_rematch):
                    errors.append(
                        f"{pairing.white_player_id!r} and {pairing.black_player_id!r} "
                        "have already played each other"
                    )

        boards = sorted(p.board_number for p in pairings)
        if boards != list(range(1, len(pairings) + 1)):
            errors.append(f"Board numbers must be 1..{len(pairings)} without gaps: {boards}")
        if sum(1 for p in pairings if p.is_bye) > 1:
            errors.append("At most one bye per round")

        if errors:
            raise ValidationError(errors[0], field="pairings", errors=errors)

    # ========== Pairing history ==========

    def pairing_history(self, tournament_id: str) -> PairingHistory:
        """Index of finished rounds, extended incrementally."""
        with self._history_lock:
            history = self._histories.setdefault(tournament_id, PairingHistory())
            for round_ in self.store.list_rounds(tournament_id):
                if round_.status.is_finished and round_.round_number not in history.rounds:
                    games = self.store.list_games(tournament_id, round_.round_number)
                    history.record_round(round_.round_number, games)
            return history

    def invalidate_history(self, tournament_id: str) -> None:
        """Drop the cached index, e.g. after a finished round's results changed."""
        with self._history_lock:
            self._histories.pop(tournament_id, None)
