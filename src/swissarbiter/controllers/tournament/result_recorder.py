"""Result recording and validation for tournaments.

This module handles recording game results with proper validation, the
append-only audit trail and the separate approval step for irregular results.
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

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from swissarbiter.exceptions import NotFoundError, ValidationError
from swissarbiter.models import (
    AuditRecord,
    Game,
    Outcome,
    RoundStatus,
    outcome_from_fields,
)
from swissarbiter.storage import TournamentStore
from swissarbiter.type_hints import Clock
from swissarbiter.utils import generate_id, setup_logger, utc_now
from swissarbiter.utils.validation import ValidationResult

logger = setup_logger(__name__)

# Rounds whose games accept results
OPEN_FOR_RESULTS = (
    RoundStatus.PUBLISHED,
    RoundStatus.IN_PROGRESS,
    RoundStatus.FINISHING,
    RoundStatus.COMPLETED,
)


@dataclass
class ResultUpdate:
    """One requested change to a game's result."""

    game_id: str
    result: Any
    result_type: Any = None
    result_reason: Optional[str] = None
    arbiter_notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResultUpdate":
        return cls(
            game_id=data["game_id"],
            result=data.get("result"),
            result_type=data.get("result_type"),
            result_reason=data.get("result_reason"),
            arbiter_notes=data.get("arbiter_notes"),
        )


@dataclass
class BatchValidationResult:
    """Per-item validation of a batch, plus what was applied.

    Attributes:
        overall_valid: True when every item validated
        results: ``(index, validation)`` pairs in input order
        applied: Whether the batch was written
        audit_records: Records appended by the batch, empty when not applied
        results_version: Store results version after the call
    """

    overall_valid: bool
    results: List[Tuple[int, ValidationResult]] = field(default_factory=list)
    applied: bool = False
    audit_records: List[AuditRecord] = field(default_factory=list)
    results_version: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_valid": self.overall_valid,
            "results": [
                {"index": index, **validation.to_dict()} for index, validation in self.results
            ],
            "applied": self.applied,
            "audit_records": [r.to_dict() for r in self.audit_records],
            "results_version": self.results_version,
        }


def build_audit_record(
    store: TournamentStore,
    tournament_id: str,
    game_id: str,
    old: Optional[Outcome],
    new: Optional[Outcome],
    changed_by: str,
    changed_at: datetime,
    reason: Optional[str] = None,
    approved: bool = False,
) -> AuditRecord:
    """Build the next audit record of a tournament. Call under the writer lock."""
    return AuditRecord(
        id=generate_id("audit"),
        game_id=game_id,
        sequence=store.audit_length(tournament_id) + 1,
        old_result=old.result.value if old else None,
        new_result=new.result.value if new else None,
        old_result_type=old.result_type.value if old else None,
        new_result_type=new.result_type.value if new else None,
        changed_by=changed_by,
        changed_at=changed_at,
        reason=reason,
        approved=approved,
    )


class ResultRecorder:
    """Handles validating, recording and approving game results.

    This class is responsible for:
    - Checking a proposed result against the game and its round
    - Applying batches all-or-nothing under the tournament writer lock
    - Appending exactly one audit record per changed game
    - Recording the explicit approval of irregular results
    """

    def __init__(self, store: TournamentStore, clock: Clock = utc_now):
        self.store = store
        self.clock = clock

    # ========== Validation ==========

    def validate_game_result(
        self,
        game_id: str,
        result: Any,
        result_type: Any = None,
        result_reason: Optional[str] = None,
        arbiter_notes: Optional[str] = None,
        changed_by: Optional[str] = None,
        tournament_id: Optional[str] = None,
    ) -> ValidationResult:
        """Validate a proposed result without touching stored state.

        Args:
            game_id: Game to validate against
            result: Result value or score-sheet notation
            result_type: How the result came about, inferred when omitted
            result_reason: Free-text reason for the change
            arbiter_notes: Notes stored alongside the result
            changed_by: Arbiter making the change; required for irregular results
            tournament_id: When given, the game must belong to this tournament

        Returns:
            ValidationResult whose ``sanitized_value`` is the parsed outcome
        """
        validation = ValidationResult()
        try:
            game = self.store.get_game(game_id)
        except NotFoundError as e:
            validation.add_error(str(e))
            return validation

        if tournament_id is not None and game.tournament_id != tournament_id:
            validation.add_error(
                f"Game {game_id!r} does not belong to tournament {tournament_id!r}"
            )
            return validation

        if result is None or (isinstance(result, str) and not result.strip()):
            validation.add_error("Result cannot be empty")
            return validation

        try:
            outcome = outcome_from_fields(result, result_type, is_bye=game.is_bye)
        except ValidationError as e:
            for error in e.errors:
                validation.add_error(error)
            return validation
        validation.sanitized_value = outcome

        validation.merge(self._validate_round_state(game))
        validation.merge(self._validate_approval(outcome, result, changed_by))

        if game.outcome == outcome:
            validation.add_warning(
                f"Board {game.board_number}: result unchanged ({outcome.result.value})"
            )
        if outcome.needs_follow_up:
            validation.add_warning(
                f"Board {game.board_number}: '{outcome.result_type.value}' counts as "
                "decided but needs arbiter follow-up"
            )
        return validation

    def _validate_round_state(self, game: Game) -> ValidationResult:
        validation = ValidationResult()
        round_ = self.store.get_round(game.round_id)
        if round_.status is RoundStatus.VERIFIED:
            validation.add_error(
                f"Round {round_.round_number} is verified; its results are locked"
            )
        elif round_.status not in OPEN_FOR_RESULTS:
            validation.add_error(
                f"Round {round_.round_number} is '{round_.status.value}'; "
                "results can be entered once it is published"
            )
        elif round_.status is RoundStatus.COMPLETED:
            validation.add_warning(
                f"Round {round_.round_number} is already completed; "
                "the correction will be audited"
            )
        return validation

    @staticmethod
    def _validate_approval(
        outcome: Outcome, result: Any, changed_by: Optional[str]
    ) -> ValidationResult:
        validation = ValidationResult()
        if not outcome.requires_approval:
            return validation
        if not changed_by:
            validation.add_error(
                f"Result '{result}' requires arbiter approval but no authority specified"
            )
        else:
            validation.add_warning(
                f"Result '{result}' requires arbiter approval and will be marked as pending"
            )
        return validation

    def validate_batch(
        self,
        tournament_id: str,
        updates: Sequence[ResultUpdate],
        changed_by: Optional[str] = None,
    ) -> BatchValidationResult:
        """Validate every update of a batch. Pure read."""
        results: List[Tuple[int, ValidationResult]] = []
        seen: Dict[str, int] = {}
        for index, update in enumerate(updates):
            validation = self.validate_game_result(
                update.game_id,
                update.result,
                update.result_type,
                update.result_reason,
                update.arbiter_notes,
                changed_by=changed_by,
                tournament_id=tournament_id,
            )
            if update.game_id in seen:
                validation.add_error(
                    f"Game {update.game_id!r} already updated at index {seen[update.game_id]}"
                )
            else:
                seen[update.game_id] = index
            results.append((index, validation))
        return BatchValidationResult(
            overall_valid=all(v.is_valid for _, v in results),
            results=results,
            results_version=self.store.results_version(tournament_id),
        )

    # ========== Recording ==========

    def batch_update_results(
        self,
        tournament_id: str,
        updates: Sequence[ResultUpdate],
        validate_only: bool = False,
        changed_by: Optional[str] = None,
    ) -> BatchValidationResult:
        """Validate a batch and, unless ``validate_only``, apply it.

        The batch is re-validated inside the tournament transaction and
        applied only if every item is still valid; otherwise nothing is
        written.

        Args:
            tournament_id: Tournament the games belong to
            updates: Requested changes
            validate_only: Report validation and never write
            changed_by: Arbiter identity recorded in the audit trail

        Returns:
            BatchValidationResult with per-index validation

        Raises:
            ValidationError: If ``changed_by`` is missing on an applying call
        """
        self.store.get_tournament(tournament_id)
        if validate_only:
            return self.validate_batch(tournament_id, updates, changed_by)

        if not changed_by or not str(changed_by).strip():
            raise ValidationError("changed_by is required to record results", field="changed_by")

        with self.store.transaction(tournament_id):
            batch = self.validate_batch(tournament_id, updates, changed_by)
            if not batch.overall_valid:
                logger.warning(
                    f"Tournament {tournament_id}: batch of {len(updates)} result(s) "
                    "rejected, nothing applied"
                )
                return batch

            now = self.clock()
            for (index, validation), update in zip(batch.results, updates):
                record = self._apply(
                    tournament_id, update, validation.sanitized_value, changed_by, now
                )
                if record is not None:
                    batch.audit_records.append(record)

            batch.applied = True
            batch.results_version = self.store.bump_results_version(tournament_id)

        logger.info(
            f"Tournament {tournament_id}: applied {len(batch.audit_records)} result "
            f"change(s) from a batch of {len(updates)}"
        )
        return batch

    def _apply(
        self,
        tournament_id: str,
        update: ResultUpdate,
        outcome: Outcome,
        changed_by: str,
        now: datetime,
    ) -> Optional[AuditRecord]:
        game = self.store.get_game(update.game_id)
        old = game.outcome
        if update.arbiter_notes is not None:
            game.arbiter_notes = update.arbiter_notes
        if old == outcome:
            # Notes may still change; no audit record for an unchanged result
            self.store.save_game(game)
            return None

        approved = not outcome.requires_approval
        game.outcome = outcome
        game.result_reason = update.result_reason
        game.approved = approved
        game.approved_by = changed_by if approved else None
        game.last_updated = now
        self.store.save_game(game)

        record = build_audit_record(
            self.store,
            tournament_id,
            game.id,
            old,
            outcome,
            changed_by,
            now,
            reason=update.result_reason,
            approved=approved,
        )
        self.store.append_audit(tournament_id, record)
        logger.debug(
            f"Game {game.id} board {game.board_number}: "
            f"{record.old_result} -> {record.new_result} by {changed_by}"
        )
        if not approved:
            logger.warning(
                f"Game {game.id} board {game.board_number}: "
                f"'{outcome.result_type.value}' pending arbiter approval"
            )
        return record

    def approve_result(
        self, game_id: str, approved_by: str, reason: Optional[str] = None
    ) -> AuditRecord:
        """Approve an irregular result; the approval is its own audit record.

        Raises:
            ValidationError: If there is nothing to approve or the round is verified
        """
        if not approved_by or not str(approved_by).strip():
            raise ValidationError("approved_by is required", field="approved_by")

        tournament_id = self.store.get_game(game_id).tournament_id
        with self.store.transaction(tournament_id):
            game = self.store.get_game(game_id)
            if game.outcome is None:
                raise ValidationError(f"Game {game_id!r} has no result to approve", field="result")
            if not game.outcome.requires_approval:
                raise ValidationError(
                    f"Result type '{game.outcome.result_type.value}' does not need approval",
                    field="result_type",
                )
            if game.approved:
                raise ValidationError(f"Game {game_id!r} is already approved", field="approved")
            round_ = self.store.get_round(game.round_id)
            if round_.status is RoundStatus.VERIFIED:
                raise ValidationError(
                    f"Round {round_.round_number} is verified; its results are locked",
                    field="round",
                )

            now = self.clock()
            game.approved = True
            game.approved_by = approved_by
            game.last_updated = now
            self.store.save_game(game)
            record = build_audit_record(
                self.store,
                tournament_id,
                game.id,
                game.outcome,
                game.outcome,
                approved_by,
                now,
                reason=reason,
                approved=True,
            )
            self.store.append_audit(tournament_id, record)
            self.store.bump_results_version(tournament_id)

        logger.info(
            f"Game {game_id}: '{game.outcome.result_type.value}' approved by {approved_by}"
        )
        return record

    def get_game_audit_trail(self, game_id: str) -> List[AuditRecord]:
        """Audit records of a game, oldest first."""
        self.store.get_game(game_id)
        return self.store.list_audit(game_id)
