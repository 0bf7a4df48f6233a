"""Tiebreak calculation.

Every tiebreak is a function ``(record, context) -> float`` registered
under its key with :func:`register_tiebreak`, so new criteria plug in
without touching the standings code. Direct encounter depends on who is
tied, and is evaluated by the standings calculator through
:func:`direct_encounter_split`.
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

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from swissarbiter.constants import (
    DRAW_SCORE,
    MAX_PERFORMANCE_DIFFERENCE,
    TB_ARO,
    TB_AROC_CUT_1,
    TB_AROC_CUT_2,
    TB_BLACK_GAMES,
    TB_BLACK_WINS,
    TB_BOARD_POINTS,
    TB_BUCHHOLZ_CUT_1,
    TB_BUCHHOLZ_CUT_2,
    TB_BUCHHOLZ_FULL,
    TB_BUCHHOLZ_MEDIAN,
    TB_CUMULATIVE,
    TB_DIRECT_ENCOUNTER,
    TB_GAME_POINTS,
    TB_GAMES_WON,
    TB_KOYA,
    TB_MATCH_POINTS,
    TB_PROGRESSIVE,
    TB_SONNEBORN_BERGER,
    TB_TPR,
    TB_WINS,
    WIN_SCORE,
)
from swissarbiter.models import ByeBuchholzPolicy, Game, Player, TournamentConfig
from swissarbiter.type_hints import BLACK, Colour
from swissarbiter.utils import setup_logger

logger = setup_logger(__name__)

# Kinds of round entry
PLAYED = "played"  # over the board
UNPLAYED = "unplayed"  # paired, but no game was played (forfeit, cancelled ...)
BYE = "bye"  # pairing-allocated bye
MISSED = "missed"  # not paired at all
PENDING = "pending"  # paired, result not in yet


@dataclass
class RoundEntry:
    """What one round meant for one player."""

    round_number: int
    kind: str
    points: float = 0.0
    opponent_id: Optional[str] = None
    colour: Optional[Colour] = None
    board_number: Optional[int] = None
    boards_in_round: int = 0

    @property
    def is_played(self) -> bool:
        return self.kind == PLAYED


@dataclass
class PlayerRecord:
    """A player's tournament, round by round."""

    player: Player
    entries: List[RoundEntry] = field(default_factory=list)

    @property
    def player_id(self) -> str:
        return self.player.id

    @property
    def points(self) -> float:
        return sum(e.points for e in self.entries)

    @property
    def played(self) -> List[RoundEntry]:
        return [e for e in self.entries if e.is_played]

    @property
    def paired(self) -> List[RoundEntry]:
        """Entries with a real opponent, played or not."""
        return [e for e in self.entries if e.opponent_id is not None and e.kind != PENDING]

    @property
    def decided(self) -> List[RoundEntry]:
        return [e for e in self.entries if e.kind != PENDING]


class TiebreakContext:
    """Everything a tiebreak may look at: all records, ratings and policies.

    Args:
        players: Every player of the tournament
        games: Games to take into account
        config: Tournament configuration (bye points, missed-round and bye
            Buchholz policies)
    """

    def __init__(
        self,
        players: Sequence[Player],
        games: Sequence[Game],
        config: TournamentConfig,
    ):
        self.config = config
        self.players: Dict[str, Player] = {p.id: p for p in players}
        self.round_numbers: List[int] = sorted({g.round_number for g in games})
        self.records: Dict[str, PlayerRecord] = {
            p.id: PlayerRecord(player=p) for p in players
        }
        self.games = list(games)
        self._build_entries(games)
        self._round_averages: Dict[int, float] = {}

    def _build_entries(self, games: Sequence[Game]) -> None:
        by_round: Dict[int, List[Game]] = defaultdict(list)
        for game in games:
            by_round[game.round_number].append(game)

        missed_points = self.config.missed_round_policy.points
        for round_number in self.round_numbers:
            round_games = by_round[round_number]
            boards = len(round_games)
            seen = set()
            for game in round_games:
                for player_id in game.player_ids:
                    if player_id not in self.records:
                        continue
                    seen.add(player_id)
                    self.records[player_id].entries.append(
                        self._entry(game, player_id, boards)
                    )
            for player_id, record in self.records.items():
                if player_id not in seen:
                    record.entries.append(
                        RoundEntry(round_number=round_number, kind=MISSED, points=missed_points)
                    )

    def _entry(self, game: Game, player_id: str, boards: int) -> RoundEntry:
        colour = game.colour_of(player_id)
        entry = RoundEntry(
            round_number=game.round_number,
            kind=PENDING,
            opponent_id=game.opponent_of(player_id),
            colour=colour,
            board_number=game.board_number,
            boards_in_round=boards,
        )
        if game.outcome is None:
            return entry
        entry.points = game.outcome.points_for(colour, self.config.bye_points)
        if game.is_bye:
            entry.kind = BYE
        elif game.outcome.played_over_board:
            entry.kind = PLAYED
        else:
            entry.kind = UNPLAYED
        return entry

    # ========== Shared helpers ==========

    def points(self, player_id: str) -> float:
        record = self.records.get(player_id)
        return record.points if record else 0.0

    def rating(self, player_id: str) -> int:
        return self.players[player_id].rating

    def round_average(self, round_number: int) -> float:
        """Mean final points of the players who had an opponent in the round."""
        if round_number not in self._round_averages:
            ids = {
                pid
                for g in self.games
                if g.round_number == round_number and not g.is_bye
                for pid in g.player_ids
            }
            scores = [self.points(pid) for pid in ids]
            self._round_averages[round_number] = sum(scores) / len(scores) if scores else 0.0
        return self._round_averages[round_number]

    def opponent_scores(self, record: PlayerRecord) -> List[float]:
        """Scores counted by the Buchholz family, one per paired or bye round."""
        policy = self.config.bye_buchholz_policy
        scores = [self.points(e.opponent_id) for e in record.paired]
        for entry in record.entries:
            if entry.kind != BYE:
                continue
            if policy is ByeBuchholzPolicy.OWN_SCORE:
                scores.append(record.points)
            elif policy is ByeBuchholzPolicy.ROUND_AVERAGE:
                scores.append(self.round_average(entry.round_number))
            else:
                scores.append(0.0)
        return scores

    def opponent_ratings(self, record: PlayerRecord) -> List[int]:
        return [self.rating(e.opponent_id) for e in record.played]


# ========== Registry ==========

TiebreakFunction = Callable[[PlayerRecord, TiebreakContext], float]
TIEBREAKS: Dict[str, TiebreakFunction] = {}
# Tiebreaks whose value depends on the tied group, not on the player alone
GROUP_TIEBREAKS = frozenset({TB_DIRECT_ENCOUNTER})


def register_tiebreak(key: str) -> Callable[[TiebreakFunction], TiebreakFunction]:
    """Register ``fn`` as the tiebreak computed under ``key``."""

    def decorator(fn: TiebreakFunction) -> TiebreakFunction:
        TIEBREAKS[key] = fn
        return fn

    return decorator


def calculate_tiebreak(key: str, record: PlayerRecord, context: TiebreakContext) -> float:
    if key in GROUP_TIEBREAKS:
        return 0.0
    try:
        fn = TIEBREAKS[key]
    except KeyError:
        raise KeyError(f"No tiebreak registered under {key!r}") from None
    return float(fn(record, context))


def round_half_up(value: float) -> int:
    """Round to the nearest whole number, 0.5 rounds up."""
    return int(math.floor(value + 0.5))


def _cut(values: List[float], lowest: int, highest: int) -> List[float]:
    """Drop ``lowest`` smallest and ``highest`` largest values; keep all for <= 2."""
    if len(values) <= 2:
        return list(values)
    ordered = sorted(values)
    return ordered[lowest : len(ordered) - highest]


def _mean_rating(ratings: List[float]) -> float:
    if not ratings:
        return 0.0
    return float(round_half_up(sum(ratings) / len(ratings)))


# ========== Buchholz family ==========


@register_tiebreak(TB_BUCHHOLZ_FULL)
def buchholz_full(record: PlayerRecord, context: TiebreakContext) -> float:
    """Sum of all opponents' final points."""
    return sum(context.opponent_scores(record))


@register_tiebreak(TB_BUCHHOLZ_CUT_1)
def buchholz_cut_1(record: PlayerRecord, context: TiebreakContext) -> float:
    """Buchholz without the lowest opponent score."""
    return sum(_cut(context.opponent_scores(record), 1, 0))


@register_tiebreak(TB_BUCHHOLZ_CUT_2)
def buchholz_cut_2(record: PlayerRecord, context: TiebreakContext) -> float:
    """Buchholz without the highest and the lowest opponent score."""
    return sum(_cut(context.opponent_scores(record), 1, 1))


@register_tiebreak(TB_BUCHHOLZ_MEDIAN)
def buchholz_median(record: PlayerRecord, context: TiebreakContext) -> float:
    return sum(_cut(context.opponent_scores(record), 1, 1))


@register_tiebreak(TB_SONNEBORN_BERGER)
def sonneborn_berger(record: PlayerRecord, context: TiebreakContext) -> float:
    """Sum of opponent points weighted by the result against them (1, 0.5, 0)."""
    return sum(context.points(e.opponent_id) * e.points for e in record.played)


# ========== Score progression ==========


@register_tiebreak(TB_PROGRESSIVE)
def progressive_score(record: PlayerRecord, context: TiebreakContext) -> float:
    """Sum of the running score after each round."""
    running = total = 0.0
    for entry in sorted(record.entries, key=lambda e: e.round_number):
        running += entry.points
        total += running
    return total


@register_tiebreak(TB_CUMULATIVE)
def cumulative_score(record: PlayerRecord, context: TiebreakContext) -> float:
    """Like the progressive score, but points from unplayed rounds do not accumulate."""
    running = total = 0.0
    for entry in sorted(record.entries, key=lambda e: e.round_number):
        if entry.kind == PLAYED:
            running += entry.points
        total += running
    return total


# ========== Rating based ==========


@register_tiebreak(TB_ARO)
def average_rating_of_opponents(record: PlayerRecord, context: TiebreakContext) -> float:
    """Mean rating of opponents met over the board, 0.5 rounds up."""
    return _mean_rating(context.opponent_ratings(record))


@register_tiebreak(TB_AROC_CUT_1)
def aroc_cut_1(record: PlayerRecord, context: TiebreakContext) -> float:
    return _mean_rating(_cut(context.opponent_ratings(record), 1, 0))


@register_tiebreak(TB_AROC_CUT_2)
def aroc_cut_2(record: PlayerRecord, context: TiebreakContext) -> float:
    return _mean_rating(_cut(context.opponent_ratings(record), 1, 1))


@register_tiebreak(TB_TPR)
def tournament_performance_rating(record: PlayerRecord, context: TiebreakContext) -> float:
    """
    Average opponent rating plus ``400 * log10(p / (1 - p))``.

    ``p`` is the score fraction over games played over the board; the
    difference is clamped to +-400, which is also its value at p=1 and p=0.
    """
    played = record.played
    if not played:
        return 0.0
    aro = average_rating_of_opponents(record, context)
    p = sum(e.points for e in played) / len(played)
    if p >= 1.0:
        dp = MAX_PERFORMANCE_DIFFERENCE
    elif p <= 0.0:
        dp = -MAX_PERFORMANCE_DIFFERENCE
    else:
        dp = 400.0 * math.log10(p / (1.0 - p))
        dp = max(-MAX_PERFORMANCE_DIFFERENCE, min(MAX_PERFORMANCE_DIFFERENCE, dp))
    return float(round_half_up(aro + dp))


# ========== Counting ==========


@register_tiebreak(TB_WINS)
def number_of_wins(record: PlayerRecord, context: TiebreakContext) -> float:
    """Rounds worth a win, with or without playing (byes and forfeits included)."""
    return float(sum(1 for e in record.decided if e.points == WIN_SCORE))


@register_tiebreak(TB_GAMES_WON)
def games_won(record: PlayerRecord, context: TiebreakContext) -> float:
    """Games won over the board."""
    return float(sum(1 for e in record.played if e.points == WIN_SCORE))


@register_tiebreak(TB_BLACK_GAMES)
def games_with_black(record: PlayerRecord, context: TiebreakContext) -> float:
    return float(sum(1 for e in record.played if e.colour == BLACK))


@register_tiebreak(TB_BLACK_WINS)
def wins_with_black(record: PlayerRecord, context: TiebreakContext) -> float:
    return float(
        sum(1 for e in record.played if e.colour == BLACK and e.points == WIN_SCORE)
    )


@register_tiebreak(TB_KOYA)
def koya_system(record: PlayerRecord, context: TiebreakContext) -> float:
    """Points scored against opponents who finished on at least 50%."""
    threshold = 0.5 * len(context.round_numbers)
    return sum(e.points for e in record.played if context.points(e.opponent_id) >= threshold)


# ========== Match and board scoring ==========


@register_tiebreak(TB_MATCH_POINTS)
def match_points(record: PlayerRecord, context: TiebreakContext) -> float:
    """Each round scored as a match: 2 for a win, 1 for a draw, 0 for a loss."""
    total = 0.0
    for entry in record.decided:
        if entry.points == WIN_SCORE:
            total += 2.0
        elif entry.points == DRAW_SCORE:
            total += 1.0
    return total


@register_tiebreak(TB_GAME_POINTS)
def game_points(record: PlayerRecord, context: TiebreakContext) -> float:
    """Total game points."""
    return record.points


@register_tiebreak(TB_BOARD_POINTS)
def board_points(record: PlayerRecord, context: TiebreakContext) -> float:
    """Points weighted by board: board 1 of ``n`` counts ``n`` times, the last once."""
    return sum(
        e.points * (e.boards_in_round - e.board_number + 1)
        for e in record.paired
        if e.board_number is not None
    )


# ========== Direct encounter ==========


def head_to_head(
    player_ids: Iterable[str], context: TiebreakContext
) -> Optional[Dict[str, float]]:
    """Points each player scored against the others in ``player_ids``.

    Returns None unless every pair of the group met in a decided game.
    """
    group = set(player_ids)
    scores = {pid: 0.0 for pid in group}
    met = set()
    for pid in group:
        for entry in context.records[pid].paired:
            if entry.opponent_id in group:
                scores[pid] += entry.points
                met.add(frozenset({pid, entry.opponent_id}))
    expected = len(group) * (len(group) - 1) // 2
    if len(met) < expected:
        return None
    return scores


def direct_encounter_split(
    group: List[str], context: TiebreakContext, values: Dict[str, float]
) -> List[List[str]]:
    """Split a tied group by direct encounter, best first.

    Subgroups that remain tied are resolved again among themselves. The
    value recorded for each player is its score against the first group it
    was compared in. A group that did not play every pairing stays tied.
    """
    scores = head_to_head(group, context)
    if scores is None:
        return [group]
    for pid in group:
        values.setdefault(pid, scores[pid])

    ordered = sorted(set(scores.values()), reverse=True)
    result: List[List[str]] = []
    for value in ordered:
        subgroup = [pid for pid in group if scores[pid] == value]
        if 1 < len(subgroup) < len(group):
            result.extend(direct_encounter_split(subgroup, context, values))
        else:
            result.append(subgroup)
    return result
