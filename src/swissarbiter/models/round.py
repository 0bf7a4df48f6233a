"""Data model for tournament round."""

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

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from dateutil.parser import isoparse

from swissarbiter.exceptions import ValidationError

# Stored values that are read as another status
LEGACY_STATUS_ALIASES = {"upcoming": "planned"}


class RoundStatus(str, Enum):
    """Lifecycle of a round, in transition order."""

    PLANNED = "planned"
    PAIRING = "pairing"
    PUBLISHED = "published"
    IN_PROGRESS = "in_progress"
    FINISHING = "finishing"
    COMPLETED = "completed"
    VERIFIED = "verified"

    @classmethod
    def parse(cls, value: Union[str, "RoundStatus"]) -> "RoundStatus":
        """Normalise a stored or user-supplied status, resolving legacy aliases.

        Raises:
            ValidationError: If the value is not a known status
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        key = LEGACY_STATUS_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(
                f"Unknown round status: {value!r}", field="status"
            ) from None

    @property
    def position(self) -> int:
        return _ORDER.index(self)

    @property
    def successor(self) -> Optional["RoundStatus"]:
        """The only status this one may move to, or None when terminal."""
        idx = self.position
        return _ORDER[idx + 1] if idx + 1 < len(_ORDER) else None

    @property
    def is_finished(self) -> bool:
        """Completed or verified."""
        return self in (RoundStatus.COMPLETED, RoundStatus.VERIFIED)

    def can_transition_to(self, target: "RoundStatus") -> bool:
        return target is self.successor


_ORDER = list(RoundStatus)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return isoparse(value)


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Round:
    """Container for the lifecycle data of a single tournament round.

    Attributes
    ----------
    id : str
        Round identifier.
    tournament_id : str
        Owning tournament.
    round_number : int
        Round number (1-indexed), unique per tournament.
    status : RoundStatus
        Current lifecycle status.
    created_at : datetime
        Creation time.
    completed_at : datetime or None
        Set once, on the first transition into completed or verified.
    verified_at : datetime or None
        Set once, on the transition into verified.
    verified_by : str or None
        Arbiter who verified the round.
    """

    id: str
    tournament_id: str
    round_number: int
    status: RoundStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize round data to dictionary."""
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "round_number": self.round_number,
            "status": self.status.value,
            "created_at": _format_timestamp(self.created_at),
            "completed_at": _format_timestamp(self.completed_at),
            "verified_at": _format_timestamp(self.verified_at),
            "verified_by": self.verified_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Round":
        """Deserialize round data from dictionary."""
        return cls(
            id=data["id"],
            tournament_id=data["tournament_id"],
            round_number=int(data["round_number"]),
            status=RoundStatus.parse(data.get("status", "planned")),
            created_at=_parse_timestamp(data["created_at"]),
            completed_at=_parse_timestamp(data.get("completed_at")),
            verified_at=_parse_timestamp(data.get("verified_at")),
            verified_by=data.get("verified_by"),
        )
