"""Elo rating changes.

The expected score of a player rated ``r`` against ``o`` is
``1 / (1 + 10 ** ((o - r) / 400))``; a game moves the rating by
``K * (score - expected)``, rounded to the nearest integer with halves
rounded away from zero.
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
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from swissarbiter.constants import ELO_SCALE, K_FACTOR_TIERS, K_FACTOR_TOP
from swissarbiter.exceptions import RatingValidationError
from swissarbiter.models import Game, Player
from swissarbiter.type_hints import BLACK, WHITE
from swissarbiter.utils import setup_logger
from swissarbiter.utils.validation import validate_rating_strict, validate_score

logger = setup_logger(__name__)


def expected_score(player_rating: int, opponent_rating: int) -> float:
    """Expected score of ``player_rating`` against ``opponent_rating``."""
    return 1.0 / (1.0 + 10 ** ((opponent_rating - player_rating) / ELO_SCALE))


def k_factor(rating: int) -> int:
    """K-factor for a player's pre-game rating.

    Examples:
        >>> k_factor(2099)
        32
        >>> k_factor(2100)
        24
        >>> k_factor(2400)
        16
    """
    for upper_bound, k in K_FACTOR_TIERS:
        if rating < upper_bound:
            return k
    return K_FACTOR_TOP


def round_half_away_from_zero(value: float) -> int:
    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def calculate_rating_change(player_rating: int, opponent_rating: int, score: float) -> int:
    """Rating change for one game.

    Args:
        player_rating: Pre-game rating of the player, integer in 100-4000
        opponent_rating: Pre-game rating of the opponent, same bounds
        score: The player's score, 1, 0.5 or 0

    Returns:
        Signed integer change for the player

    Raises:
        RatingValidationError: If a rating or the score is invalid
    """
    validate_rating_strict(player_rating)
    validate_rating_strict(opponent_rating)
    checked = validate_score(score)
    if not checked.is_valid:
        raise RatingValidationError(checked.error_message, field="score")

    k = k_factor(player_rating)
    change = k * (checked.sanitized_value - expected_score(player_rating, opponent_rating))
    return round_half_away_from_zero(change)


@dataclass
class RatingChange:
    """A player's rating movement over a set of games."""

    player_id: str
    rating: int
    change: int = 0
    games: int = 0
    game_changes: List[int] = field(default_factory=list)

    @property
    def new_rating(self) -> int:
        return self.rating + self.change

    def to_dict(self) -> Dict[str, int]:
        return {
            "player_id": self.player_id,
            "rating": self.rating,
            "change": self.change,
            "new_rating": self.new_rating,
            "games": self.games,
        }


def rateable_games(games: Iterable[Game]) -> List[Game]:
    """Games whose result may move ratings.

    Only rated outcomes count (games decided over the board), and an
    outcome that needs arbiter approval counts only once approved.
    """
    return [
        g
        for g in games
        if g.outcome is not None
        and g.outcome.rated
        and g.black_player_id is not None
        and (g.approved or not g.outcome.requires_approval)
    ]


def calculate_rating_changes(
    players: Sequence[Player], games: Iterable[Game]
) -> Dict[str, RatingChange]:
    """Per-player rating change over confirmed games.

    Every game is rated from both players' tournament-entry ratings, and the
    per-game changes are summed.

    Args:
        players: Players of the tournament
        games: Confirmed games; unrated or unapproved ones are skipped

    Returns:
        RatingChange per player id, zero for players without rated games
    """
    changes = {p.id: RatingChange(player_id=p.id, rating=p.rating) for p in players}
    for game in rateable_games(games):
        white = changes.get(game.white_player_id)
        black = changes.get(game.black_player_id)
        if white is None or black is None:
            logger.warning(f"Game {game.id} references an unknown player, not rated")
            continue
        for me, opponent, colour in ((white, black, WHITE), (black, white, BLACK)):
            delta = calculate_rating_change(
                me.rating, opponent.rating, game.outcome.points_for(colour)
            )
            me.change += delta
            me.games += 1
            me.game_changes.append(delta)
    logger.debug(f"Rating changes calculated for {len(changes)} players")
    return changes
