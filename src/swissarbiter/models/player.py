"""Player data model."""

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
from enum import Enum
from typing import Any, Dict


class PlayerStatus(str, Enum):
    """Participation status of a player.

    Only explicit status-change operations move a player between these
    values; pairing never does.
    """

    ACTIVE = "active"
    WITHDRAWN = "withdrawn"
    BYE_REQUESTED = "bye_requested"
    LATE_ENTRY = "late_entry"

    @property
    def is_pairable(self) -> bool:
        """Whether the player enters the next pairing."""
        return self in (PlayerStatus.ACTIVE, PlayerStatus.LATE_ENTRY)


@dataclass
class Player:
    """A player registered in one tournament.

    Attributes
    ----------
    id : str
        Unique player identifier.
    tournament_id : str
        Owning tournament.
    name : str
        Player's full name.
    rating : int
        Rating used for seeding, 100-4000.
    status : PlayerStatus
        Participation status.
    """

    id: str
    tournament_id: str
    name: str
    rating: int
    status: PlayerStatus = PlayerStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize player to dictionary."""
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "name": self.name,
            "rating": self.rating,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Player":
        """Deserialize player from dictionary."""
        return cls(
            id=data["id"],
            tournament_id=data["tournament_id"],
            name=data["name"],
            rating=data["rating"],
            status=PlayerStatus(data.get("status", PlayerStatus.ACTIVE.value)),
        )

    def __str__(self) -> str:
        return f"{self.name} ({self.rating})"
