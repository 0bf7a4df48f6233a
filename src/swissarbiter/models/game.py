"""Game data model and the game outcome sum type.

A stored game carries a pair of strings (``result`` and ``result_type``).
Inside the engine those are always folded into one :class:`Outcome`
variant, so an inconsistent pair (a forfeit that ended in a draw, a bye
with a black player) can not exist past the boundary.
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
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from dateutil.parser import isoparse

from swissarbiter.constants import DRAW_SCORE, LOSS_SCORE, WIN_SCORE
from swissarbiter.exceptions import ValidationError
from swissarbiter.type_hints import BLACK, WHITE, Colour, opposite


class ResultValue(str, Enum):
    """Legal values of a game's ``result`` column."""

    WHITE_WINS = "white_wins"
    BLACK_WINS = "black_wins"
    DRAW = "draw"
    DOUBLE_FORFEIT = "double_forfeit"
    ADJOURNED = "adjourned"
    CANCELLED = "cancelled"


class ResultType(str, Enum):
    """How a result came about."""

    NORMAL = "normal"
    FORFEIT = "forfeit"
    TIMEOUT = "timeout"
    BYE = "bye"
    DEFAULT = "default"
    ADJOURNED = "adjourned"
    DOUBLE_FORFEIT = "double_forfeit"
    CANCELLED = "cancelled"

    @property
    def requires_approval(self) -> bool:
        return self in APPROVAL_REQUIRED


APPROVAL_REQUIRED = frozenset(
    {
        ResultType.FORFEIT,
        ResultType.DEFAULT,
        ResultType.DOUBLE_FORFEIT,
        ResultType.CANCELLED,
    }
)

# result_type -> results it may be combined with
ALLOWED_RESULTS = {
    ResultType.NORMAL: {ResultValue.WHITE_WINS, ResultValue.BLACK_WINS, ResultValue.DRAW},
    ResultType.TIMEOUT: {ResultValue.WHITE_WINS, ResultValue.BLACK_WINS},
    ResultType.FORFEIT: {ResultValue.WHITE_WINS, ResultValue.BLACK_WINS},
    ResultType.DEFAULT: {ResultValue.WHITE_WINS, ResultValue.BLACK_WINS},
    ResultType.BYE: {ResultValue.WHITE_WINS},
    ResultType.ADJOURNED: {ResultValue.ADJOURNED},
    ResultType.DOUBLE_FORFEIT: {ResultValue.DOUBLE_FORFEIT},
    ResultType.CANCELLED: {ResultValue.CANCELLED},
}

# Score-sheet notation accepted at the boundary
NOTATION_ALIASES: Dict[str, Tuple[ResultValue, Optional[ResultType]]] = {
    "1-0": (ResultValue.WHITE_WINS, None),
    "0-1": (ResultValue.BLACK_WINS, None),
    "1/2-1/2": (ResultValue.DRAW, None),
    "0.5-0.5": (ResultValue.DRAW, None),
    "1-0f": (ResultValue.WHITE_WINS, ResultType.FORFEIT),
    "0-1f": (ResultValue.BLACK_WINS, ResultType.FORFEIT),
    "1-0d": (ResultValue.WHITE_WINS, ResultType.DEFAULT),
    "0-1d": (ResultValue.BLACK_WINS, ResultType.DEFAULT),
    "1-0t": (ResultValue.WHITE_WINS, ResultType.TIMEOUT),
    "0-1t": (ResultValue.BLACK_WINS, ResultType.TIMEOUT),
    "0-0": (ResultValue.DOUBLE_FORFEIT, ResultType.DOUBLE_FORFEIT),
    "adj": (ResultValue.ADJOURNED, ResultType.ADJOURNED),
    "canc": (ResultValue.CANCELLED, ResultType.CANCELLED),
}

# Older score-sheet result types that name the losing side
LEGACY_RESULT_TYPES: Dict[str, Tuple[ResultType, Optional[Colour]]] = {
    "standard": (ResultType.NORMAL, None),
    "white_forfeit": (ResultType.FORFEIT, WHITE),
    "black_forfeit": (ResultType.FORFEIT, BLACK),
    "white_default": (ResultType.DEFAULT, WHITE),
    "black_default": (ResultType.DEFAULT, BLACK),
}


# ========== Outcome variants ==========


class Outcome(ABC):
    """Base of the outcome variants. Instances are immutable values."""

    result_type: ResultType
    # Counted towards opponent-based tiebreaks and colour history
    played_over_board = False
    # Feeds the rating engine once confirmed
    rated = False
    # Counts as decided but the arbiter has to come back to it
    needs_follow_up = False
    winner: Optional[Colour] = None

    @property
    @abstractmethod
    def result(self) -> ResultValue:
        """Value stored in the game's ``result`` column."""

    @property
    def requires_approval(self) -> bool:
        return self.result_type.requires_approval

    def points_for(self, colour: Colour, bye_points: float = WIN_SCORE) -> float:
        """Points the player of ``colour`` earns from this game."""
        if self.winner is None:
            return LOSS_SCORE
        return WIN_SCORE if self.winner == colour else LOSS_SCORE


@dataclass(frozen=True)
class Decisive(Outcome):
    winner: Colour
    result_type = ResultType.NORMAL
    played_over_board = True
    rated = True

    @property
    def result(self) -> ResultValue:
        return ResultValue.WHITE_WINS if self.winner == WHITE else ResultValue.BLACK_WINS


@dataclass(frozen=True)
class Timeout(Outcome):
    winner: Colour
    result_type = ResultType.TIMEOUT
    played_over_board = True
    rated = True

    @property
    def result(self) -> ResultValue:
        return ResultValue.WHITE_WINS if self.winner == WHITE else ResultValue.BLACK_WINS


@dataclass(frozen=True)
class Draw(Outcome):
    result_type = ResultType.NORMAL
    played_over_board = True
    rated = True

    @property
    def result(self) -> ResultValue:
        return ResultValue.DRAW

    def points_for(self, colour: Colour, bye_points: float = WIN_SCORE) -> float:
        return DRAW_SCORE


@dataclass(frozen=True)
class Forfeit(Outcome):
    loser: Colour
    result_type = ResultType.FORFEIT

    @property
    def winner(self) -> Optional[Colour]:
        return opposite(self.loser)

    @property
    def result(self) -> ResultValue:
        return ResultValue.WHITE_WINS if self.loser == BLACK else ResultValue.BLACK_WINS


@dataclass(frozen=True)
class Default(Outcome):
    loser: Colour
    result_type = ResultType.DEFAULT

    @property
    def winner(self) -> Optional[Colour]:
        return opposite(self.loser)

    @property
    def result(self) -> ResultValue:
        return ResultValue.WHITE_WINS if self.loser == BLACK else ResultValue.BLACK_WINS


@dataclass(frozen=True)
class DoubleForfeit(Outcome):
    result_type = ResultType.DOUBLE_FORFEIT

    @property
    def result(self) -> ResultValue:
        return ResultValue.DOUBLE_FORFEIT


@dataclass(frozen=True)
class Bye(Outcome):
    result_type = ResultType.BYE

    @property
    def result(self) -> ResultValue:
        return ResultValue.WHITE_WINS

    @property
    def winner(self) -> Optional[Colour]:
        return WHITE

    def points_for(self, colour: Colour, bye_points: float = WIN_SCORE) -> float:
        return bye_points if colour == WHITE else LOSS_SCORE


@dataclass(frozen=True)
class Adjourned(Outcome):
    result_type = ResultType.ADJOURNED
    needs_follow_up = True

    @property
    def result(self) -> ResultValue:
        return ResultValue.ADJOURNED


@dataclass(frozen=True)
class Cancelled(Outcome):
    result_type = ResultType.CANCELLED
    needs_follow_up = True

    @property
    def result(self) -> ResultValue:
        return ResultValue.CANCELLED


# ========== Boundary parsing ==========


def _parse_result_value(result: Any) -> Tuple[ResultValue, Optional[ResultType]]:
    if isinstance(result, ResultValue):
        return result, None
    key = str(result).strip().lower()
    if key in NOTATION_ALIASES:
        return NOTATION_ALIASES[key]
    try:
        return ResultValue(key), None
    except ValueError:
        raise ValidationError(
            f"Invalid result: {result!r}. Valid values: "
            f"{[v.value for v in ResultValue]} or score-sheet notation",
            field="result",
        ) from None


def _parse_result_type(result_type: Any) -> Tuple[Optional[ResultType], Optional[Colour]]:
    """Return the result type and, for legacy coloured types, the losing colour."""
    if result_type is None or isinstance(result_type, ResultType):
        return result_type, None
    key = str(result_type).strip().lower()
    if key in LEGACY_RESULT_TYPES:
        return LEGACY_RESULT_TYPES[key]
    try:
        return ResultType(key), None
    except ValueError:
        raise ValidationError(
            f"Invalid result type: {result_type!r}. Valid values: "
            f"{[t.value for t in ResultType]}",
            field="result_type",
        ) from None


def _infer_result_type(value: ResultValue, is_bye: bool) -> ResultType:
    if is_bye:
        return ResultType.BYE
    return {
        ResultValue.DOUBLE_FORFEIT: ResultType.DOUBLE_FORFEIT,
        ResultValue.ADJOURNED: ResultType.ADJOURNED,
        ResultValue.CANCELLED: ResultType.CANCELLED,
    }.get(value, ResultType.NORMAL)


def outcome_from_fields(
    result: Union[str, ResultValue],
    result_type: Union[str, ResultType, None] = None,
    is_bye: bool = False,
) -> Outcome:
    """Fold a ``(result, result_type)`` pair into an :class:`Outcome`.

    Args:
        result: Result value or score-sheet notation (``"1-0"``, ``"0-1F"`` ...)
        result_type: How the result came about; inferred when omitted
        is_bye: Whether the game has no black player

    Returns:
        The matching outcome variant

    Raises:
        ValidationError: If either field is unknown or the pair is inconsistent
    """
    value, implied_type = _parse_result_value(result)
    explicit_type, loser = _parse_result_type(result_type)

    if explicit_type and implied_type and explicit_type is not implied_type:
        raise ValidationError(
            f"Result {result!r} implies type '{implied_type.value}', "
            f"not '{explicit_type.value}'",
            field="result_type",
        )
    rtype = explicit_type or implied_type or _infer_result_type(value, is_bye)

    errors: List[str] = []
    if value not in ALLOWED_RESULTS[rtype]:
        errors.append(
            f"Result type '{rtype.value}' is not compatible with result "
            f"'{value.value}'. Expected one of "
            f"{sorted(v.value for v in ALLOWED_RESULTS[rtype])}"
        )
    if rtype is ResultType.BYE and not is_bye:
        errors.append("Result type 'bye' requires a game without a black player")
    if is_bye and rtype is not ResultType.BYE:
        errors.append(
            f"A game without a black player can only be a bye, not '{rtype.value}'"
        )
    winner = {ResultValue.WHITE_WINS: WHITE, ResultValue.BLACK_WINS: BLACK}.get(value)
    if loser is not None and winner == loser:
        errors.append(
            f"Result type '{result_type}' is not compatible with result '{value.value}'"
        )
    if errors:
        raise ValidationError(errors[0], field="result_type", errors=errors)

    if rtype is ResultType.NORMAL:
        return Draw() if value is ResultValue.DRAW else Decisive(winner)
    if rtype is ResultType.TIMEOUT:
        return Timeout(winner)
    if rtype is ResultType.FORFEIT:
        return Forfeit(loser=opposite(winner))
    if rtype is ResultType.DEFAULT:
        return Default(loser=opposite(winner))
    return {
        ResultType.BYE: Bye,
        ResultType.ADJOURNED: Adjourned,
        ResultType.DOUBLE_FORFEIT: DoubleForfeit,
        ResultType.CANCELLED: Cancelled,
    }[rtype]()


# ========== Game ==========


@dataclass
class Game:
    """A board in a round: either a game between two players or a bye.

    Attributes
    ----------
    id : str
        Game identifier.
    tournament_id, round_id : str
        Owning tournament and round.
    round_number : int
        Round number, denormalised for history queries.
    board_number : int
        Board number, dense from 1 within the round.
    white_player_id : str
        White player (the bye receiver for a bye).
    black_player_id : str or None
        Black player; None marks a bye.
    outcome : Outcome or None
        None until the game is decided.
    approved : bool
        Whether the result stands without further arbiter approval.
    """

    id: str
    tournament_id: str
    round_id: str
    round_number: int
    board_number: int
    white_player_id: str
    black_player_id: Optional[str] = None
    outcome: Optional[Outcome] = None
    result_reason: Optional[str] = None
    arbiter_notes: Optional[str] = None
    approved: bool = False
    approved_by: Optional[str] = None
    last_updated: Optional[datetime] = None

    @property
    def is_bye(self) -> bool:
        return self.black_player_id is None

    @property
    def is_decided(self) -> bool:
        return self.outcome is not None

    @property
    def result(self) -> Optional[ResultValue]:
        return self.outcome.result if self.outcome else None

    @property
    def result_type(self) -> Optional[ResultType]:
        return self.outcome.result_type if self.outcome else None

    @property
    def requires_approval(self) -> bool:
        return bool(self.outcome and self.outcome.requires_approval)

    @property
    def player_ids(self) -> List[str]:
        return [pid for pid in (self.white_player_id, self.black_player_id) if pid]

    def colour_of(self, player_id: str) -> Optional[Colour]:
        if player_id == self.white_player_id:
            return WHITE
        if player_id == self.black_player_id:
            return BLACK
        return None

    def opponent_of(self, player_id: str) -> Optional[str]:
        if player_id == self.white_player_id:
            return self.black_player_id
        if player_id == self.black_player_id:
            return self.white_player_id
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize game to dictionary."""
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "round_id": self.round_id,
            "round_number": self.round_number,
            "board_number": self.board_number,
            "white_player_id": self.white_player_id,
            "black_player_id": self.black_player_id,
            "result": self.result.value if self.result else None,
            "result_type": self.result_type.value if self.result_type else None,
            "result_reason": self.result_reason,
            "arbiter_notes": self.arbiter_notes,
            "requires_approval": self.requires_approval,
            "approved": self.approved,
            "approved_by": self.approved_by,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Game":
        """Deserialize game from dictionary."""
        black = data.get("black_player_id")
        outcome = None
        if data.get("result") is not None:
            outcome = outcome_from_fields(
                data["result"], data.get("result_type"), is_bye=black is None
            )
        last_updated = data.get("last_updated")
        return cls(
            id=data["id"],
            tournament_id=data["tournament_id"],
            round_id=data["round_id"],
            round_number=int(data["round_number"]),
            board_number=int(data["board_number"]),
            white_player_id=data["white_player_id"],
            black_player_id=black,
            outcome=outcome,
            result_reason=data.get("result_reason"),
            arbiter_notes=data.get("arbiter_notes"),
            approved=bool(data.get("approved", False)),
            approved_by=data.get("approved_by"),
            last_updated=isoparse(last_updated) if last_updated else None,
        )
