"""Type hints used in Swiss Arbiter."""

from datetime import datetime
from typing import Callable, Dict, List, Literal, Optional, Tuple

# Chess color string constants (for runtime use)
WHITE = "White"
BLACK = "Black"

# Chess color type aliases (for type hints)
W = Literal["White"]
B = Literal["Black"]
# Basically, white or black
Colour = Literal["White", "Black"]

# Identifiers are plain strings throughout the engine
TournamentId = str
RoundId = str
PlayerId = str
GameId = str

# Unordered pair of player ids, as stored in the pairing history
PlayerPair = frozenset
# (white_id, black_id or None for a bye)
PairingIDs = Tuple[str, Optional[str]]
# Colours actually played, oldest first (byes excluded)
ColourHistory = List[Colour]

# Injected clock
Clock = Callable[[], datetime]

# Tiebreak key -> value, in configured order
TiebreakValues = Dict[str, float]


def opposite(colour: Optional[str]) -> Optional[str]:
    """Return the other colour, or None if no colour is given."""
    if colour == WHITE:
        return BLACK
    if colour == BLACK:
        return WHITE
    return None

#  LocalWords:  PlayerPair PairingIDs
