"""Standings: points, tiebreak cascade and shared ranks."""

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

from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

from swissarbiter.constants import DRAW_SCORE, LOSS_SCORE, WIN_SCORE
from swissarbiter.models import Game, Player, StandingEntry, TournamentConfig
from swissarbiter.tournament.tiebreak_calculator import (
    BYE,
    GROUP_TIEBREAKS,
    MISSED,
    PENDING,
    PLAYED,
    PlayerRecord,
    TiebreakContext,
    calculate_tiebreak,
    direct_encounter_split,
)
from swissarbiter.type_hints import WHITE
from swissarbiter.utils import setup_logger

logger = setup_logger(__name__)


class StandingsCalculator:
    """Rank players from a snapshot of players and games.

    Players are ordered by points, then by each configured tiebreak in turn
    (descending), then by player id. A tiebreak only separates players that
    are still level after everything before it; players that nothing
    separates share a rank, and the next rank skips accordingly (1, 1, 3).

    The calculator holds no state between calls, so the same snapshot always
    yields the same table.
    """

    def __init__(self, config: TournamentConfig):
        self.config = config
        self.tiebreaks: List[str] = list(config.tiebreaks)

    def calculate(
        self,
        players: Sequence[Player],
        games: Sequence[Game],
        through_round: Optional[int] = None,
    ) -> List[StandingEntry]:
        """Build the standings table.

        Args:
            players: Every player of the tournament, withdrawn ones included
            games: Games of the snapshot
            through_round: Only count rounds up to and including this one

        Returns:
            Standing entries in rank order
        """
        if through_round is not None:
            games = [g for g in games if g.round_number <= through_round]
        context = TiebreakContext(players, games, self.config)

        values: Dict[str, Dict[str, float]] = {}
        for pid, record in context.records.items():
            values[pid] = {
                key: calculate_tiebreak(key, record, context) for key in self.tiebreaks
            }

        groups = self._rank_groups(context, values)
        entries = []
        rank = 1
        for group in groups:
            for pid in sorted(group):
                entries.append(self._entry(context.records[pid], values[pid], rank))
            rank += len(group)

        logger.debug(
            f"Standings calculated for {len(entries)} players over "
            f"{len(context.round_numbers)} rounds"
        )
        return entries

    def _rank_groups(
        self, context: TiebreakContext, values: Dict[str, Dict[str, float]]
    ) -> List[List[str]]:
        """Partition players into rank groups, best first."""
        groups = self._split(list(context.records), lambda pid: context.points(pid))

        for key in self.tiebreaks:
            refined: List[List[str]] = []
            for group in groups:
                if len(group) == 1:
                    refined.append(group)
                elif key in GROUP_TIEBREAKS:
                    head_to_head: Dict[str, float] = {}
                    refined.extend(direct_encounter_split(group, context, head_to_head))
                    for pid, score in head_to_head.items():
                        values[pid][key] = score
                else:
                    refined.extend(self._split(group, lambda pid: values[pid][key]))
            groups = refined
        return groups

    @staticmethod
    def _split(player_ids: List[str], value) -> List[List[str]]:
        buckets: Dict[float, List[str]] = defaultdict(list)
        for pid in player_ids:
            buckets[value(pid)].append(pid)
        return [buckets[v] for v in sorted(buckets, reverse=True)]

    def _entry(
        self, record: PlayerRecord, values: Dict[str, float], rank: int
    ) -> StandingEntry:
        results = [e.points for e in record.paired]
        return StandingEntry(
            player_id=record.player_id,
            name=record.player.name,
            rating=record.player.rating,
            points=record.points,
            games_played=len(record.played),
            wins=sum(1 for p in results if p == WIN_SCORE),
            draws=sum(1 for p in results if p == DRAW_SCORE),
            losses=sum(1 for p in results if p == LOSS_SCORE),
            tiebreaks={key: values[key] for key in self.tiebreaks},
            rank=rank,
        )

    # ========== Cross table ==========

    def cross_table(
        self, players: Sequence[Player], games: Sequence[Game]
    ) -> List[Dict[str, Any]]:
        """Standings with one cell per round.

        Cells read ``<opponent rank><w|b><result>``, where the result is
        ``1``, ``=`` or ``0`` over the board, ``+`` or ``-`` when the game was
        not played, and ``*`` while pending. Byes show ``BYE`` and unpaired
        rounds ``--``.
        """
        standings = self.calculate(players, games)
        ranks = {s.player_id: s.rank for s in standings}
        context = TiebreakContext(players, games, self.config)

        rows = []
        for standing in standings:
            record = context.records[standing.player_id]
            cells = {e.round_number: self._cell(e, ranks) for e in record.entries}
            rows.append(
                {
                    "rank": standing.rank,
                    "player_id": standing.player_id,
                    "name": standing.name,
                    "rating": standing.rating,
                    "points": standing.points,
                    "rounds": cells,
                }
            )
        return rows

    @staticmethod
    def _cell(entry, ranks: Dict[str, int]) -> str:
        if entry.kind == BYE:
            return "BYE"
        if entry.kind == MISSED:
            return "--"
        colour = "w" if entry.colour == WHITE else "b"
        prefix = f"{ranks.get(entry.opponent_id, '?')}{colour}"
        if entry.kind == PENDING:
            return prefix + "*"
        if entry.kind == PLAYED:
            mark = {WIN_SCORE: "1", DRAW_SCORE: "="}.get(entry.points, "0")
        else:
            mark = {WIN_SCORE: "+", DRAW_SCORE: "="}.get(entry.points, "-")
        return prefix + mark
