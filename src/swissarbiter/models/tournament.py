"""Tournament and tournament configuration data models."""

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
from enum import Enum
from typing import Any, Dict, List, Optional

from dateutil.parser import isoparse

from swissarbiter.constants import (
    DEFAULT_TIEBREAK_ORDER,
    DRAW_SCORE,
    FULL_POINT_BYE_SCORE,
    LOSS_SCORE,
    PAIRING_METHODS,
    PAIRING_SWISS,
    TIEBREAK_NAMES,
    WIN_SCORE,
)
from swissarbiter.exceptions import ValidationError
from swissarbiter.models.pairing import PairingOptions
from swissarbiter.utils.validation import require_positive_integer


class MissedRoundPolicy(str, Enum):
    """Points for a round in which a player was not paired at all."""

    ZERO = "zero"
    HALF = "half"
    FULL = "full"

    @property
    def points(self) -> float:
        return {
            MissedRoundPolicy.ZERO: LOSS_SCORE,
            MissedRoundPolicy.HALF: DRAW_SCORE,
            MissedRoundPolicy.FULL: WIN_SCORE,
        }[self]


class ByeBuchholzPolicy(str, Enum):
    """Virtual opponent score a bye contributes to Buchholz-family tiebreaks.

    ``own_score`` uses the bye receiver's own final points, ``zero`` adds
    nothing and ``round_average`` uses the mean final points of the players
    who were paired in that round.
    """

    OWN_SCORE = "own_score"
    ZERO = "zero"
    ROUND_AVERAGE = "round_average"


@dataclass
class TournamentConfig:
    """Tournament configuration settings.

    Attributes
    ----------
    missed_round_policy : MissedRoundPolicy
        Points for unpaired rounds. Required: there is no safe default.
    tiebreaks : list of str
        Tiebreak keys in priority order.
    bye_points : float
        Points for a pairing-allocated bye.
    bye_buchholz_policy : ByeBuchholzPolicy
        How a bye counts in Buchholz-family tiebreaks.
    pairing : PairingOptions
        Default options for the Swiss engine.
    allow_rematches : bool
        Whether confirmed pairings may repeat an earlier pair.
    """

    missed_round_policy: MissedRoundPolicy
    tiebreaks: List[str] = field(default_factory=lambda: list(DEFAULT_TIEBREAK_ORDER))
    bye_points: float = FULL_POINT_BYE_SCORE
    bye_buchholz_policy: ByeBuchholzPolicy = ByeBuchholzPolicy.OWN_SCORE
    pairing: PairingOptions = field(default_factory=PairingOptions)
    allow_rematches: bool = False

    def __post_init__(self):
        try:
            self.missed_round_policy = MissedRoundPolicy(self.missed_round_policy)
        except ValueError:
            raise ValidationError(
                f"Unknown missed round policy: {self.missed_round_policy!r}",
                field="missed_round_policy",
            ) from None
        try:
            self.bye_buchholz_policy = ByeBuchholzPolicy(self.bye_buchholz_policy)
        except ValueError:
            raise ValidationError(
                f"Unknown bye Buchholz policy: {self.bye_buchholz_policy!r}",
                field="bye_buchholz_policy",
            ) from None
        unknown = [tb for tb in self.tiebreaks if tb not in TIEBREAK_NAMES]
        if unknown:
            raise ValidationError(
                f"Unknown tiebreak(s): {', '.join(unknown)}",
                field="tiebreaks",
            )
        if len(set(self.tiebreaks)) != len(self.tiebreaks):
            raise ValidationError("Tiebreaks must not repeat", field="tiebreaks")
        if self.bye_points not in (0, 0.5, 1):
            raise ValidationError(
                f"Bye points must be 0, 0.5 or 1: {self.bye_points}", field="bye_points"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize configuration to dictionary."""
        return {
            "missed_round_policy": self.missed_round_policy.value,
            "tiebreaks": list(self.tiebreaks),
            "bye_points": self.bye_points,
            "bye_buchholz_policy": self.bye_buchholz_policy.value,
            "pairing": self.pairing.to_dict(),
            "allow_rematches": self.allow_rematches,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TournamentConfig":
        """Deserialize configuration from dictionary."""
        if "missed_round_policy" not in data:
            raise ValidationError(
                "missed_round_policy is required", field="missed_round_policy"
            )
        return cls(
            missed_round_policy=data["missed_round_policy"],
            tiebreaks=list(data.get("tiebreaks", DEFAULT_TIEBREAK_ORDER)),
            bye_points=float(data.get("bye_points", FULL_POINT_BYE_SCORE)),
            bye_buchholz_policy=data.get(
                "bye_buchholz_policy", ByeBuchholzPolicy.OWN_SCORE.value
            ),
            pairing=PairingOptions.from_dict(data.get("pairing")),
            allow_rematches=bool(data.get("allow_rematches", False)),
        )


@dataclass
class Tournament:
    """A tournament: owns rounds and players through the store.

    ``current_round`` only ever moves forward, when a round completes.
    """

    id: str
    name: str
    total_rounds: int
    config: TournamentConfig
    pairing_system: str = PAIRING_SWISS
    current_round: int = 0
    created_at: Optional[datetime] = None

    def __post_init__(self):
        require_positive_integer(self.total_rounds, "total_rounds")
        if self.pairing_system not in PAIRING_METHODS:
            raise ValidationError(
                f"Unknown pairing system {self.pairing_system!r}, "
                f"expected one of {PAIRING_METHODS}",
                field="pairing_system",
            )

    @property
    def tiebreaks(self) -> List[str]:
        return self.config.tiebreaks

    def to_dict(self) -> Dict[str, Any]:
        """Serialize tournament to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "total_rounds": self.total_rounds,
            "current_round": self.current_round,
            "pairing_system": self.pairing_system,
            "config": self.config.to_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tournament":
        """Deserialize tournament from dictionary."""
        created_at = data.get("created_at")
        return cls(
            id=data["id"],
            name=data.get("name", "Untitled Tournament"),
            total_rounds=int(data["total_rounds"]),
            config=TournamentConfig.from_dict(data["config"]),
            pairing_system=data.get("pairing_system", PAIRING_SWISS),
            current_round=int(data.get("current_round", 0)),
            created_at=isoparse(created_at) if created_at else None,
        )
