"""Tournament-scoped index of who has played whom, with colours and byes."""

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
from typing import Any, Dict, Iterable, List, Set

from swissarbiter.models.game import Game
from swissarbiter.type_hints import BLACK, WHITE, Colour, PlayerPair


@dataclass
class PairingHistory:
    """
    Tracks historical pairings to prevent repeat matches.

    The index is keyed by the unordered player pair and grows one confirmed
    round at a time, so rematch checks are a dictionary lookup.

    Attributes
    ----------
    previous_matches : dict of frozenset of str to list of int
        Round numbers in which each unordered pair met.
    byes : dict of str to list of int
        Round numbers in which each player received a pairing-allocated bye.
    colours : dict of str to list of str
        Colours each player had in games actually played, in round order.
    rounds : set of int
        Rounds already folded into the index.
    """

    previous_matches: Dict[PlayerPair, List[int]] = field(default_factory=dict)
    byes: Dict[str, List[int]] = field(default_factory=dict)
    colours: Dict[str, List[Colour]] = field(default_factory=dict)
    rounds: Set[int] = field(default_factory=set)

    def record_round(self, round_number: int, games: Iterable[Game]) -> None:
        """Fold one confirmed round into the index. Re-recording a round is a no-op."""
        if round_number in self.rounds:
            return
        self.rounds.add(round_number)
        for game in sorted(games, key=lambda g: g.board_number):
            if game.is_bye:
                self.byes.setdefault(game.white_player_id, []).append(round_number)
                continue
            self.add_pairing(game.white_player_id, game.black_player_id, round_number)
            if game.outcome is None or game.outcome.played_over_board:
                self.colours.setdefault(game.white_player_id, []).append(WHITE)
                self.colours.setdefault(game.black_player_id, []).append(BLACK)

    def add_pairing(self, player1_id: str, player2_id: str, round_number: int) -> None:
        """Record that two players have been paired."""
        self.previous_matches.setdefault(frozenset({player1_id, player2_id}), []).append(
            round_number
        )

    def have_played(self, player1_id: str, player2_id: str) -> bool:
        """Check if two players have previously played each other."""
        return frozenset({player1_id, player2_id}) in self.previous_matches

    def rounds_played(self, player1_id: str, player2_id: str) -> List[int]:
        return list(self.previous_matches.get(frozenset({player1_id, player2_id}), []))

    def has_had_bye(self, player_id: str) -> bool:
        return bool(self.byes.get(player_id))

    def colour_history(self, player_id: str) -> List[Colour]:
        return list(self.colours.get(player_id, []))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize pairing history to dictionary."""
        return {
            "previous_matches": [
                {"players": sorted(pair), "rounds": rounds}
                for pair, rounds in self.previous_matches.items()
            ],
            "byes": dict(self.byes),
            "colours": dict(self.colours),
            "rounds": sorted(self.rounds),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PairingHistory":
        """Deserialize pairing history from dictionary."""
        return cls(
            previous_matches={
                frozenset(map(str, entry["players"])): list(entry["rounds"])
                for entry in data.get("previous_matches", [])
            },
            byes={k: list(v) for k, v in data.get("byes", {}).items()},
            colours={k: list(v) for k, v in data.get("colours", {}).items()},
            rounds=set(data.get("rounds", [])),
        )
