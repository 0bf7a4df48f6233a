"""Pairing data models: options, proposed boards and the engine result."""

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
from typing import Any, Dict, List, Optional, Tuple

from swissarbiter.constants import GROUP_SPLIT_ADJACENT, GROUP_SPLIT_DUTCH
from swissarbiter.exceptions import ValidationError

GROUP_SPLITS = (GROUP_SPLIT_DUTCH, GROUP_SPLIT_ADJACENT)


@dataclass
class PairingOptions:
    """Switches for one pairing run.

    Attributes
    ----------
    avoid_rematches : bool
        Reject pairs already present in the pairing history unless no
        other arrangement exists.
    balance_colors : bool
        Prefer evening out lifetime white/black counts over plain alternation.
    allow_byes : bool
        Permit a bye when the number of pairable players is odd, including
        a repeat bye when every candidate already had one.
    group_split : str
        ``"dutch"`` pairs the top half of a score group against the bottom
        half; ``"adjacent"`` pairs neighbouring seeds.
    """

    avoid_rematches: bool = True
    balance_colors: bool = True
    allow_byes: bool = True
    group_split: str = GROUP_SPLIT_DUTCH

    def __post_init__(self):
        if self.group_split not in GROUP_SPLITS:
            raise ValidationError(
                f"Unknown group split {self.group_split!r}, expected one of {GROUP_SPLITS}",
                field="group_split",
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "avoid_rematches": self.avoid_rematches,
            "balance_colors": self.balance_colors,
            "allow_byes": self.allow_byes,
            "group_split": self.group_split,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PairingOptions":
        data = data or {}
        # camelCase keys are what UI callers send
        return cls(
            avoid_rematches=data.get("avoid_rematches", data.get("avoidRematches", True)),
            balance_colors=data.get("balance_colors", data.get("balanceColors", True)),
            allow_byes=data.get("allow_byes", data.get("allowByes", True)),
            group_split=data.get("group_split", GROUP_SPLIT_DUTCH),
        )


@dataclass
class Pairing:
    """A proposed board. ``black_player_id`` is None for a bye.

    The ``forced_*`` flags mark relaxations the arbiter accepts by confirming.
    """

    board_number: int
    white_player_id: str
    black_player_id: Optional[str] = None
    forced_rematch: bool = False
    forced_repeat_bye: bool = False

    @property
    def is_bye(self) -> bool:
        return self.black_player_id is None

    @property
    def player_ids(self) -> Tuple[str, ...]:
        if self.black_player_id is None:
            return (self.white_player_id,)
        return (self.white_player_id, self.black_player_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "board_number": self.board_number,
            "white_player_id": self.white_player_id,
            "black_player_id": self.black_player_id,
            "forced_rematch": self.forced_rematch,
            "forced_repeat_bye": self.forced_repeat_bye,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pairing":
        return cls(
            board_number=int(data["board_number"]),
            white_player_id=data["white_player_id"],
            black_player_id=data.get("black_player_id"),
            forced_rematch=bool(data.get("forced_rematch", False)),
            forced_repeat_bye=bool(data.get("forced_repeat_bye", False)),
        )


@dataclass(frozen=True)
class Relaxation:
    """A constraint the engine had to give up, surfaced to the arbiter."""

    constraint: str
    message: str
    player_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "constraint": self.constraint,
            "message": self.message,
            "player_ids": list(self.player_ids),
        }


@dataclass
class PairingResult:
    """Result of a pairing computation for a single round."""

    round_number: int
    pairings: List[Pairing] = field(default_factory=list)
    relaxations: List[Relaxation] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def bye_player_id(self) -> Optional[str]:
        for pairing in self.pairings:
            if pairing.is_bye:
                return pairing.white_player_id
        return None

    @property
    def is_empty(self) -> bool:
        return not self.pairings

    def relax(self, constraint: str, message: str, *player_ids: str) -> None:
        self.relaxations.append(Relaxation(constraint, message, tuple(player_ids)))
        self.warnings.append(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round_number": self.round_number,
            "pairings": [p.to_dict() for p in self.pairings],
            "relaxations": [r.to_dict() for r in self.relaxations],
            "warnings": list(self.warnings),
        }
