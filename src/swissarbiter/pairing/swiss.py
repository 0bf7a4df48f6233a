"""Swiss pairing engine (Dutch-style simplification).

Players are split into score groups. Each group is paired as a bracket,
with the players floated down from the group above paired first. When a
bracket cannot be completed its players float on; when the last bracket
cannot be completed it is merged with the bracket above and the round is
retried. Constraints are relaxed in steps (colour cap first, then
rematches) and every relaxation is reported on the result.
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
from itertools import groupby
from typing import Dict, List, Optional, Sequence, Tuple

from swissarbiter.constants import GROUP_SPLIT_DUTCH, PAIRING_SEARCH_BUDGET
from swissarbiter.exceptions import PairingInfeasibleError
from swissarbiter.models.pairing import Pairing, PairingOptions, PairingResult
from swissarbiter.models.pairing_history import PairingHistory
from swissarbiter.pairing.colours import (
    Seat,
    assign_colours,
    can_meet,
)
from swissarbiter.type_hints import BLACK, WHITE, ColourHistory
from swissarbiter.utils import setup_logger

logger = setup_logger(__name__)

# Strictness levels, tried in order
STRICT = 0  # no rematches, colour cap respected
NO_REMATCH = 1  # colour cap may be broken
ANYTHING = 2  # rematches allowed

RELAX_COLOUR = "colour"
RELAX_REMATCH = "rematch"
RELAX_REPEAT_BYE = "repeat_bye"
RELAX_BYE_SWAP = "bye_swap"


@dataclass
class PairingCandidate:
    """A pairable player with the state pairing needs.

    Attributes
    ----------
    player_id : str
        Player identifier.
    rating : int
        Rating, used for seeding inside a score group.
    points : float
        Current points.
    colours : list of str
        Colours of games actually played, oldest first.
    had_bye : bool
        Whether the player already received a pairing-allocated bye.
    """

    player_id: str
    rating: int
    points: float = 0.0
    colours: ColourHistory = field(default_factory=list)
    had_bye: bool = False
    seed: int = 0

    @property
    def white_games(self) -> int:
        return self.colours.count(WHITE)

    @property
    def black_games(self) -> int:
        return self.colours.count(BLACK)


class _BudgetExceeded(Exception):
    pass


def seed_order(candidates: Sequence[PairingCandidate]) -> List[PairingCandidate]:
    """Sort by points, then rating, descending; player id keeps it deterministic."""
    return sorted(candidates, key=lambda c: (-c.points, -c.rating, c.player_id))


class SwissPairingEngine:
    """Produces one round of Swiss pairings.

    The engine is pure: it reads candidates and history and returns a
    :class:`PairingResult` without touching any store.
    """

    def __init__(
        self,
        options: Optional[PairingOptions] = None,
        search_budget: int = PAIRING_SEARCH_BUDGET,
    ):
        self.options = options or PairingOptions()
        self.search_budget = search_budget

    # ========== Entry point ==========

    def generate(
        self,
        candidates: Sequence[PairingCandidate],
        history: PairingHistory,
        round_number: int,
    ) -> PairingResult:
        """Generate pairings for ``round_number``.

        Args:
            candidates: Pairable players with their points and colours
            history: Pairs already played, byes and colours
            round_number: Round being paired (1-indexed)

        Returns:
            PairingResult with dense boards, the bye last

        Raises:
            PairingInfeasibleError: If the player count is odd and byes are not
                allowed, or if no legal pairing exists
        """
        result = PairingResult(round_number=round_number)
        players = seed_order(candidates)
        for seed, player in enumerate(players, start=1):
            player.seed = seed

        if len(players) < 2:
            result.warnings.append(
                f"Round {round_number}: {len(players)} pairable player(s), no games"
            )
            logger.warning(result.warnings[-1])
            return result

        bye_player = None
        pairs = None
        if len(players) % 2 == 1:
            bye_player, pairs = self._choose_bye(players, history, result)
            players = [p for p in players if p is not bye_player]

        if pairs is None:
            pairs, level = self._pair_with_relaxation(players, history)
            self._record_relaxations(pairs, level, history, result)

        result.pairings = self._build_boards(pairs, bye_player, history, round_number)
        if bye_player is not None and bye_player.had_bye:
            result.pairings[-1].forced_repeat_bye = True
        self._check_postconditions(result, history)

        logger.info(
            f"Round {round_number}: paired {len(players)} players on "
            f"{len(result.pairings)} board(s)"
            + (f", bye to {bye_player.player_id}" if bye_player else "")
        )
        return result

    # ========== Bye ==========

    def _choose_bye(
        self,
        players: List[PairingCandidate],
        history: PairingHistory,
        result: PairingResult,
    ) -> Tuple[PairingCandidate, Optional[List[Tuple[PairingCandidate, PairingCandidate]]]]:
        """Pick the bye receiver; also return strict pairings of the rest if found."""
        if not self.options.allow_byes:
            raise PairingInfeasibleError(
                f"Round {result.round_number}: odd number of players "
                f"({len(players)}) and byes are not allowed",
                constraint="bye",
            )

        lowest_first = sorted(players, key=lambda p: (p.points, p.rating, -p.seed))
        eligible = [p for p in lowest_first if not p.had_bye]
        if not eligible:
            chosen = lowest_first[0]
            result.relax(
                RELAX_REPEAT_BYE,
                f"Every player already had a bye; {chosen.player_id} receives a second one",
                chosen.player_id,
            )
            return chosen, None

        # Prefer a bye receiver that leaves the rest pairable without relaxations
        for candidate in eligible:
            rest = [p for p in players if p is not candidate]
            pairs = self._pair_at_level(rest, history, STRICT)
            if pairs is not None:
                if candidate is not eligible[0]:
                    result.relax(
                        RELAX_BYE_SWAP,
                        f"Bye to {candidate.player_id} instead of {eligible[0].player_id}, "
                        "who could not otherwise be paired without a relaxation",
                        candidate.player_id,
                        eligible[0].player_id,
                    )
                return candidate, pairs
        return eligible[0], None

    # ========== Brackets ==========

    def _pair_with_relaxation(
        self, players: List[PairingCandidate], history: PairingHistory
    ) -> Tuple[List[Tuple[PairingCandidate, PairingCandidate]], int]:
        for level in (STRICT, NO_REMATCH, ANYTHING):
            pairs = self._pair_at_level(players, history, level)
            if pairs is not None:
                return pairs, level
        raise PairingInfeasibleError(
            f"No legal pairing for {len(players)} players",
            constraint=RELAX_REMATCH,
            relaxed=[RELAX_COLOUR, RELAX_REMATCH],
        )

    def _pair_at_level(
        self, players: List[PairingCandidate], history: PairingHistory, level: int
    ) -> Optional[List[Tuple[PairingCandidate, PairingCandidate]]]:
        groups = [list(g) for _, g in groupby(players, key=lambda p: p.points)]
        while groups:
            pairs = self._pair_groups(groups, history, level)
            if pairs is not None:
                return pairs
            if len(groups) == 1:
                return None
            # Last bracket failed: merge it upwards and retry
            groups = groups[:-2] + [groups[-2] + groups[-1]]
        return []

    def _pair_groups(
        self,
        groups: List[List[PairingCandidate]],
        history: PairingHistory,
        level: int,
    ) -> Optional[List[Tuple[PairingCandidate, PairingCandidate]]]:
        pairs: List[Tuple[PairingCandidate, PairingCandidate]] = []
        floaters: List[PairingCandidate] = []
        for index, group in enumerate(groups):
            is_last = index == len(groups) - 1
            paired = self._pair_bracket(floaters, group, history, level, can_float=not is_last)
            if paired is None:
                if is_last:
                    return None
                floaters = floaters + group
                continue
            bracket_pairs, floaters = paired
            pairs.extend(bracket_pairs)
        return pairs

    def _pair_bracket(
        self,
        floaters: List[PairingCandidate],
        group: List[PairingCandidate],
        history: PairingHistory,
        level: int,
        can_float: bool,
    ) -> Optional[Tuple[List[Tuple[PairingCandidate, PairingCandidate]], List[PairingCandidate]]]:
        """Pair one bracket; return its pairs and the player floating down."""
        bracket = floaters + group
        floater_ids = {p.player_id for p in floaters}
        steps = [0]
        try:
            if len(bracket) % 2 == 0:
                pairs = self._match(bracket, floater_ids, history, level, steps)
                return (pairs, []) if pairs is not None else None
            if not can_float:
                return None
            # The lowest resident floats, unless that leaves the rest unpairable
            for down in list(reversed(group)) + list(reversed(floaters)):
                rest = [p for p in bracket if p is not down]
                pairs = self._match(rest, floater_ids, history, level, steps)
                if pairs is not None:
                    return pairs, [down]
        except _BudgetExceeded:
            logger.debug(f"Search budget exhausted on a bracket of {len(bracket)} at level {level}")
        return None

    def _match(
        self,
        players: List[PairingCandidate],
        floater_ids: set,
        history: PairingHistory,
        level: int,
        steps: List[int],
    ) -> Optional[List[Tuple[PairingCandidate, PairingCandidate]]]:
        """Backtracking perfect matching; the first unpaired player picks first."""
        if not players:
            return []
        steps[0] += 1
        if steps[0] > self.search_budget:
            raise _BudgetExceeded()

        first, rest = players[0], players[1:]
        for opponent in self._candidate_order(first, players, floater_ids):
            if not self._compatible(first, opponent, history, level):
                continue
            remaining = [p for p in rest if p is not opponent]
            sub = self._match(remaining, floater_ids, history, level, steps)
            if sub is not None:
                return [(first, opponent)] + sub
        return None

    def _candidate_order(
        self,
        first: PairingCandidate,
        players: List[PairingCandidate],
        floater_ids: set,
    ) -> List[PairingCandidate]:
        rest = players[1:]
        if first.player_id in floater_ids:
            # A floater meets the top of the group it dropped into
            residents = [p for p in rest if p.player_id not in floater_ids]
            others = [p for p in rest if p.player_id in floater_ids]
            return residents + others
        if self.options.group_split == GROUP_SPLIT_DUTCH:
            half = len(players) // 2
            return players[half:] + list(reversed(players[1:half]))
        return rest

    def _compatible(
        self,
        a: PairingCandidate,
        b: PairingCandidate,
        history: PairingHistory,
        level: int,
    ) -> bool:
        if level < ANYTHING and self.options.avoid_rematches:
            if history.have_played(a.player_id, b.player_id):
                return False
        if level < NO_REMATCH:
            if not can_meet(a.colours, b.colours, self.options.balance_colors):
                return False
        return True

    # ========== Output ==========

    def _build_boards(
        self,
        pairs: List[Tuple[PairingCandidate, PairingCandidate]],
        bye_player: Optional[PairingCandidate],
        history: PairingHistory,
        round_number: int,
    ) -> List[Pairing]:
        ordered = sorted(
            pairs,
            key=lambda pair: (
                -max(pair[0].points, pair[1].points),
                -(pair[0].points + pair[1].points),
                min(pair[0].seed, pair[1].seed),
            ),
        )
        boards: List[Pairing] = []
        for board, (a, b) in enumerate(ordered, start=1):
            white_id, black_id = assign_colours(
                Seat(a.player_id, a.seed, a.colours),
                Seat(b.player_id, b.seed, b.colours),
                round_number,
                self.options.balance_colors,
            )
            boards.append(
                Pairing(
                    board_number=board,
                    white_player_id=white_id,
                    black_player_id=black_id,
                    forced_rematch=history.have_played(white_id, black_id),
                )
            )
        if bye_player is not None:
            boards.append(Pairing(board_number=len(boards) + 1, white_player_id=bye_player.player_id))
        return boards

    def _record_relaxations(
        self,
        pairs: List[Tuple[PairingCandidate, PairingCandidate]],
        level: int,
        history: PairingHistory,
        result: PairingResult,
    ) -> None:
        if level >= NO_REMATCH:
            for a, b in pairs:
                if not can_meet(a.colours, b.colours, self.options.balance_colors):
                    result.relax(
                        RELAX_COLOUR,
                        f"{a.player_id} and {b.player_id} both need the same colour",
                        a.player_id,
                        b.player_id,
                    )
        if level >= ANYTHING and self.options.avoid_rematches:
            for a, b in pairs:
                if history.have_played(a.player_id, b.player_id):
                    result.relax(
                        RELAX_REMATCH,
                        f"Rematch forced: {a.player_id} and {b.player_id} already met in "
                        f"round(s) {history.rounds_played(a.player_id, b.player_id)}",
                        a.player_id,
                        b.player_id,
                    )
        for message in result.warnings:
            logger.warning(message)

    def _check_postconditions(self, result: PairingResult, history: PairingHistory) -> None:
        seen: Dict[str, int] = {}
        pairs_seen = set()
        for pairing in result.pairings:
            for player_id in pairing.player_ids:
                if player_id in seen:
                    raise PairingInfeasibleError(
                        f"Player {player_id} appears on boards {seen[player_id]} "
                        f"and {pairing.board_number}",
                        constraint="duplicate_player",
                    )
                seen[player_id] = pairing.board_number
            if pairing.is_bye:
                if history.has_had_bye(pairing.white_player_id) and not pairing.forced_repeat_bye:
                    raise PairingInfeasibleError(
                        f"Player {pairing.white_player_id} would receive a second bye",
                        constraint="double_bye",
                    )
                continue
            pair = frozenset(pairing.player_ids)
            if pair in pairs_seen:
                raise PairingInfeasibleError(
                    f"Pair {sorted(pair)} appears twice in round {result.round_number}",
                    constraint="duplicate_pairing",
                )
            pairs_seen.add(pair)
            if pairing.forced_rematch and self.options.avoid_rematches and not any(
                r.constraint == RELAX_REMATCH and set(r.player_ids) == pair
                for r in result.relaxations
            ):
                raise PairingInfeasibleError(
                    f"Unflagged rematch of {sorted(pair)}", constraint="rematch"
                )
        boards = [p.board_number for p in result.pairings]
        if boards != list(range(1, len(boards) + 1)):
            raise PairingInfeasibleError(
                f"Board numbers are not dense: {boards}", constraint="board_numbers"
            )
        byes = sum(1 for p in result.pairings if p.is_bye)
        if byes > 1:
            raise PairingInfeasibleError(
                f"{byes} byes in round {result.round_number}", constraint="bye"
            )
