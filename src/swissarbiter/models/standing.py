"""Standings row, derived from games on every request."""

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
from typing import Any, Dict, List

from swissarbiter.type_hints import TiebreakValues


@dataclass
class StandingEntry:
    """One player's line in the standings.

    ``tiebreaks`` holds one value per configured tiebreak, in configured
    order. Players that are equal on points and every tiebreak share a rank.
    """

    player_id: str
    name: str
    rating: int
    points: float = 0.0
    games_played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    tiebreaks: TiebreakValues = field(default_factory=dict)
    rank: int = 0

    @property
    def tiebreak_values(self) -> List[float]:
        return list(self.tiebreaks.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "name": self.name,
            "rating": self.rating,
            "points": self.points,
            "games_played": self.games_played,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "tiebreaks": dict(self.tiebreaks),
            "rank": self.rank,
        }
