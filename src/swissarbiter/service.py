"""Tournament service: the operations offered to front ends.

The service wires the store, the round manager, the result recorder and the
pure engines (pairing, standings, rating) together. Collaborators such as
the store and the clock are passed in explicitly; arbiter identity is a
parameter of every operation that records it.
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
from typing import Any, Dict, List, Optional, Sequence, Union

from swissarbiter.constants import PAIRING_MANUAL, PAIRING_METHODS
from swissarbiter.controllers.tournament import (
    BatchValidationResult,
    ResultRecorder,
    ResultUpdate,
    RoundDetails,
    RoundManager,
)
from swissarbiter.exceptions import StateTransitionError, ValidationError
from swissarbiter.models import (
    AuditRecord,
    Game,
    Pairing,
    PairingOptions,
    PairingResult,
    Player,
    PlayerStatus,
    Round,
    RoundStatus,
    StandingEntry,
    Tournament,
    TournamentConfig,
)
from swissarbiter.pairing import PairingCandidate, SwissPairingEngine
from swissarbiter.rating import RatingChange, calculate_rating_change, calculate_rating_changes
from swissarbiter.storage import MemoryStore, TournamentStore
from swissarbiter.tournament import StandingsCalculator
from swissarbiter.type_hints import Clock
from swissarbiter.utils import generate_id, setup_logger, utc_now
from swissarbiter.utils.validation import (
    ValidationResult,
    require_positive_integer,
    validate_non_empty,
    validate_rating,
)

logger = setup_logger(__name__)


@dataclass
class Snapshot:
    """Players and games of a tournament as of one results version."""

    tournament: Tournament
    players: List[Player] = field(default_factory=list)
    games: List[Game] = field(default_factory=list)
    rounds: List[Round] = field(default_factory=list)
    results_version: int = 0


class TournamentService:
    """Entry point for running a Swiss tournament.

    Args:
        store: Persistence backend, an in-memory store when omitted
        clock: Returns the current time; injected for reproducible timestamps
    """

    def __init__(self, store: Optional[TournamentStore] = None, clock: Clock = utc_now):
        self.store = store if store is not None else MemoryStore()
        self.clock = clock
        self.rounds = RoundManager(self.store, clock)
        self.results = ResultRecorder(self.store, clock)

    # ========== Tournaments and players ==========

    def create_tournament(
        self,
        name: str,
        total_rounds: int,
        config: Union[TournamentConfig, Dict[str, Any]],
        pairing_system: str = "swiss",
    ) -> Tournament:
        """Create a tournament.

        Raises:
            ValidationError: If the name, the round count or the configuration
                is invalid; ``missed_round_policy`` has no default
        """
        checked = validate_non_empty(name, "Tournament name")
        if not checked:
            raise ValidationError(checked.error_message, field="name")
        if not isinstance(config, TournamentConfig):
            config = TournamentConfig.from_dict(config)
        tournament = Tournament(
            id=generate_id("tournament"),
            name=checked.sanitized_value,
            total_rounds=total_rounds,
            config=config,
            pairing_system=pairing_system,
            created_at=self.clock(),
        )
        self.store.add_tournament(tournament)
        logger.info(
            f"Created tournament {tournament.id} '{tournament.name}' "
            f"({total_rounds} rounds, {pairing_system})"
        )
        return tournament

    def get_tournament(self, tournament_id: str) -> Tournament:
        return self.store.get_tournament(tournament_id)

    def add_player(
        self,
        tournament_id: str,
        name: str,
        rating: int,
        status: Union[str, PlayerStatus] = PlayerStatus.ACTIVE,
    ) -> Player:
        """Register a player.

        Raises:
            ValidationError: If the name is empty, the rating is not an integer
                in 100-4000 or the status is unknown
        """
        errors = ValidationResult()
        checked_name = validate_non_empty(name, "Player name")
        errors.merge(checked_name)
        errors.merge(validate_rating(rating))
        if not errors.is_valid:
            raise ValidationError(errors.error_message, field="player", errors=errors.errors)

        self.store.get_tournament(tournament_id)
        player = Player(
            id=generate_id("player"),
            tournament_id=tournament_id,
            name=checked_name.sanitized_value,
            rating=rating,
            status=self._parse_player_status(status),
        )
        self.store.add_player(player)
        logger.debug(f"Added player {player} to tournament {tournament_id}")
        return player

    def get_players(self, tournament_id: str) -> List[Player]:
        self.store.get_tournament(tournament_id)
        return self.store.list_players(tournament_id)

    def set_player_status(self, player_id: str, status: Union[str, PlayerStatus]) -> Player:
        """Change a player's participation status; nothing else ever does."""
        new_status = self._parse_player_status(status)
        player = self.store.update_player_status(player_id, new_status)
        logger.info(f"Player {player.name} is now '{new_status.value}'")
        return player

    @staticmethod
    def _parse_player_status(status: Union[str, PlayerStatus]) -> PlayerStatus:
        try:
            return PlayerStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown player status: {status!r}", field="status") from None

    # ========== Rounds ==========

    def create_round(self, tournament_id: str, round_number: int) -> Round:
        return self.rounds.create_round(tournament_id, round_number)

    def create_next_round(self, tournament_id: str) -> Round:
        return self.rounds.create_next_round(tournament_id)

    def get_rounds(self, tournament_id: str) -> List[Round]:
        return self.rounds.get_rounds(tournament_id)

    def get_current_round(self, tournament_id: str) -> Optional[Round]:
        return self.rounds.get_current_round(tournament_id)

    def get_round_details(self, round_id: str) -> RoundDetails:
        return self.rounds.get_round_details(round_id)

    def update_round_status(
        self,
        round_id: str,
        status: Union[str, RoundStatus],
        expected_status: Union[str, RoundStatus, None] = None,
        changed_by: Optional[str] = None,
    ) -> Round:
        return self.rounds.update_round_status(
            round_id, status, expected_status=expected_status, changed_by=changed_by
        )

    def complete_round(self, round_id: str, changed_by: Optional[str] = None) -> Round:
        return self.rounds.complete_round(round_id, changed_by=changed_by)

    # ========== Pairing ==========

    def generate_pairings(
        self,
        tournament_id: str,
        round_number: int,
        method: Optional[str] = None,
        options: Union[PairingOptions, Dict[str, Any], None] = None,
    ) -> PairingResult:
        """Propose pairings for a round without storing anything.

        Points come from the standings of the rounds before ``round_number``
        and rematch, bye and colour information from the pairing history of
        finished rounds. Only active and late-entry players are paired.

        Args:
            tournament_id: Tournament to pair
            round_number: Round being paired
            method: ``"swiss"`` or ``"manual"``; the tournament's system when omitted
            options: Overrides for the tournament's pairing options

        Returns:
            PairingResult; relaxations are listed in its warnings. The manual
            method returns no pairings, the arbiter enters them.

        Raises:
            ValidationError: If the method or round number is invalid
            StateTransitionError: If the previous round is not finished
            PairingInfeasibleError: If no legal pairing exists
        """
        require_positive_integer(round_number, "round_number")
        snapshot = self.snapshot(tournament_id)
        tournament = snapshot.tournament
        method = method or tournament.pairing_system
        if method not in PAIRING_METHODS:
            raise ValidationError(
                f"Unknown pairing method {method!r}, expected one of {PAIRING_METHODS}",
                field="method",
            )
        if round_number > tournament.total_rounds:
            raise ValidationError(
                f"Round {round_number} exceeds the tournament's {tournament.total_rounds} rounds",
                field="round_number",
            )
        previous = next(
            (r for r in snapshot.rounds if r.round_number == round_number - 1), None
        )
        if round_number > 1 and (previous is None or not previous.status.is_finished):
            raise StateTransitionError(
                f"Round {round_number - 1} must be completed before round {round_number} "
                "can be paired",
                current=previous.status if previous else None,
                requested=RoundStatus.PAIRING,
            )

        if method == PAIRING_MANUAL:
            result = PairingResult(round_number=round_number)
            result.warnings.append("Manual pairing: enter the boards and confirm them")
            return result

        if options is None:
            options = tournament.config.pairing
        elif not isinstance(options, PairingOptions):
            options = PairingOptions.from_dict({**tournament.config.pairing.to_dict(), **options})

        candidates = self._pairing_candidates(snapshot, round_number)
        history = self.rounds.pairing_history(tournament_id)
        engine = SwissPairingEngine(options)
        return engine.generate(candidates, history, round_number)

    def _pairing_candidates(self, snapshot: Snapshot, round_number: int) -> List[PairingCandidate]:
        history = self.rounds.pairing_history(snapshot.tournament.id)
        standings = StandingsCalculator(snapshot.tournament.config).calculate(
            snapshot.players, snapshot.games, through_round=round_number - 1
        )
        points = {s.player_id: s.points for s in standings}
        return [
            PairingCandidate(
                player_id=player.id,
                rating=player.rating,
                points=points.get(player.id, 0.0),
                colours=history.colour_history(player.id),
                had_bye=history.has_had_bye(player.id),
            )
            for player in snapshot.players
            if player.status.is_pairable
        ]

    def create_pairings_as_games(
        self,
        tournament_id: str,
        round_number: int,
        pairings: Sequence[Union[Pairing, Dict[str, Any]]],
        expected_status: Union[str, RoundStatus, None] = None,
        changed_by: str = "system",
    ) -> List[Game]:
        return self.rounds.create_pairings_as_games(
            tournament_id,
            round_number,
            pairings,
            expected_status=expected_status,
            changed_by=changed_by,
        )

    # ========== Results ==========

    def validate_game_result(
        self,
        game_id: str,
        result: Any,
        result_type: Any = None,
        result_reason: Optional[str] = None,
        arbiter_notes: Optional[str] = None,
        changed_by: Optional[str] = None,
    ) -> ValidationResult:
        return self.results.validate_game_result(
            game_id, result, result_type, result_reason, arbiter_notes, changed_by=changed_by
        )

    def batch_update_results(
        self,
        tournament_id: str,
        updates: Sequence[Union[ResultUpdate, Dict[str, Any]]],
        validate_only: bool = False,
        changed_by: Optional[str] = None,
    ) -> BatchValidationResult:
        updates = [u if isinstance(u, ResultUpdate) else ResultUpdate.from_dict(u) for u in updates]
        batch = self.results.batch_update_results(
            tournament_id, updates, validate_only=validate_only, changed_by=changed_by
        )
        if batch.applied:
            # corrections to finished rounds change the history
            self.rounds.invalidate_history(tournament_id)
        return batch

    def update_game_result(
        self,
        game_id: str,
        result: Any,
        result_type: Any = None,
        result_reason: Optional[str] = None,
        arbiter_notes: Optional[str] = None,
        changed_by: Optional[str] = None,
    ) -> BatchValidationResult:
        """Record one result: a batch of one."""
        game = self.store.get_game(game_id)
        update = ResultUpdate(game_id, result, result_type, result_reason, arbiter_notes)
        return self.batch_update_results(game.tournament_id, [update], changed_by=changed_by)

    def approve_result(
        self, game_id: str, approved_by: str, reason: Optional[str] = None
    ) -> AuditRecord:
        return self.results.approve_result(game_id, approved_by, reason)

    def get_game_audit_trail(self, game_id: str) -> List[AuditRecord]:
        return self.results.get_game_audit_trail(game_id)

    # ========== Standings and ratings ==========

    def snapshot(self, tournament_id: str) -> Snapshot:
        """Read a consistent view; a result batch is never half visible."""
        with self.store.writer(tournament_id):
            return Snapshot(
                tournament=self.store.get_tournament(tournament_id),
                players=self.store.list_players(tournament_id),
                games=self.store.list_games(tournament_id),
                rounds=self.store.list_rounds(tournament_id),
                results_version=self.store.results_version(tournament_id),
            )

    def get_tournament_standings(
        self, tournament_id: str, through_round: Optional[int] = None
    ) -> List[StandingEntry]:
        snapshot = self.snapshot(tournament_id)
        calculator = StandingsCalculator(snapshot.tournament.config)
        return calculator.calculate(snapshot.players, snapshot.games, through_round)

    def get_cross_table(self, tournament_id: str) -> List[Dict[str, Any]]:
        snapshot = self.snapshot(tournament_id)
        calculator = StandingsCalculator(snapshot.tournament.config)
        return calculator.cross_table(snapshot.players, snapshot.games)

    @staticmethod
    def calculate_rating_change(player_rating: int, opponent_rating: int, score: float) -> int:
        return calculate_rating_change(player_rating, opponent_rating, score)

    def calculate_rating_changes(self, tournament_id: str) -> Dict[str, RatingChange]:
        """Rating changes over the games of completed and verified rounds."""
        snapshot = self.snapshot(tournament_id)
        finished = {r.round_number for r in snapshot.rounds if r.status.is_finished}
        games = [g for g in snapshot.games if g.round_number in finished]
        return calculate_rating_changes(snapshot.players, games)
