"""Colour preferences and colour allocation for a pair of players.

Everything here works on a player's colour history (colours of games
actually played, oldest first).
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

from typing import NamedTuple, Optional, Tuple

from swissarbiter.constants import MAX_SAME_COLOUR_STREAK
from swissarbiter.type_hints import BLACK, WHITE, Colour, ColourHistory, opposite


class Seat(NamedTuple):
    """A player as seen by colour allocation. Lower ``seed`` is stronger."""

    player_id: str
    seed: int
    history: ColourHistory


def colour_imbalance(history: ColourHistory) -> int:
    """Get the colour imbalance (positive = more whites, negative = more blacks)."""
    return history.count(WHITE) - history.count(BLACK)


def same_colour_streak(history: ColourHistory) -> int:
    if not history:
        return 0
    streak = 1
    for colour in reversed(history[:-1]):
        if colour != history[-1]:
            break
        streak += 1
    return streak


def absolute_preference(history: ColourHistory, balance_colors: bool = True) -> Optional[Colour]:
    """
    The colour a player must receive, if any.

    Absolute when the player had the same colour in the last two games, or,
    when balancing, the lifetime difference is more than one game.
    """
    if not history:
        return None
    if same_colour_streak(history) >= MAX_SAME_COLOUR_STREAK:
        return opposite(history[-1])
    if balance_colors:
        imbalance = colour_imbalance(history)
        if abs(imbalance) > 1:
            return BLACK if imbalance > 0 else WHITE
    return None


def colour_preference(history: ColourHistory, balance_colors: bool = True) -> Optional[Colour]:
    """
    Determine a player's colour preference.

    Returns the absolute preference if there is one; otherwise, when
    balancing, the colour that evens out the lifetime count; otherwise the
    colour that alternates from the last game. None before the first game.
    """
    if not history:
        return None
    absolute = absolute_preference(history, balance_colors)
    if absolute:
        return absolute
    if balance_colors:
        imbalance = colour_imbalance(history)
        if imbalance:
            return BLACK if imbalance > 0 else WHITE
    return opposite(history[-1])


def can_meet(first: ColourHistory, second: ColourHistory, balance_colors: bool = True) -> bool:
    """False when both players must have the same colour."""
    pref1 = absolute_preference(first, balance_colors)
    pref2 = absolute_preference(second, balance_colors)
    return not (pref1 and pref1 == pref2)


def assign_colours(
    first: Seat, second: Seat, round_number: int, balance_colors: bool = True
) -> Tuple[str, str]:
    """
    Assign colours to a pair, in descending priority:

    1. Absolute preferences (colour cap, and imbalance when balancing)
    2. Both preferences, when they differ
    3. When balancing, the preference of the player further out of balance
    4. The preference of the higher seed
    5. Round parity: the higher seed has white in odd rounds

    Returns (white_id, black_id)
    """
    higher, lower = sorted((first, second), key=lambda seat: seat.seed)

    def grant(seat: Seat, colour: Colour) -> Tuple[str, str]:
        other = lower if seat is higher else higher
        if colour == WHITE:
            return seat.player_id, other.player_id
        return other.player_id, seat.player_id

    abs_h = absolute_preference(higher.history, balance_colors)
    abs_l = absolute_preference(lower.history, balance_colors)
    if abs_h and abs_l:
        if abs_h != abs_l:
            return grant(higher, abs_h)
        # Conflict: the player further out of balance wins
        if abs(colour_imbalance(lower.history)) > abs(colour_imbalance(higher.history)):
            return grant(lower, abs_l)
        return grant(higher, abs_h)
    if abs_h:
        return grant(higher, abs_h)
    if abs_l:
        return grant(lower, abs_l)

    pref_h = colour_preference(higher.history, balance_colors)
    pref_l = colour_preference(lower.history, balance_colors)
    if pref_h and pref_l and pref_h != pref_l:
        return grant(higher, pref_h)

    if balance_colors and pref_h and pref_l:
        if abs(colour_imbalance(lower.history)) > abs(colour_imbalance(higher.history)):
            return grant(lower, pref_l)

    if pref_h:
        return grant(higher, pref_h)
    if pref_l:
        return grant(lower, pref_l)

    return grant(higher, WHITE if round_number % 2 == 1 else BLACK)
