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

# --- Constants ---

# Game outcome scores
WIN_SCORE = 1.0
DRAW_SCORE = 0.5
LOSS_SCORE = 0.0

# Bye scores (configurable per tournament)
FULL_POINT_BYE_SCORE = 1.0
HALF_POINT_BYE_SCORE = 0.5
ZERO_POINT_BYE_SCORE = 0.0
BYE_SCORE = FULL_POINT_BYE_SCORE

# Rating bounds accepted by the rating engine
MIN_RATING = 100
MAX_RATING = 4000

# K-factor tiers: (exclusive upper bound of pre-game rating, K)
K_FACTOR_TIERS = (
    (2100, 32),
    (2400, 24),
)
K_FACTOR_TOP = 16

# Elo scale and performance-rating clamp
ELO_SCALE = 400.0
MAX_PERFORMANCE_DIFFERENCE = 400.0

# Pairing methods
PAIRING_SWISS = "swiss"
PAIRING_MANUAL = "manual"
PAIRING_METHODS = (PAIRING_SWISS, PAIRING_MANUAL)

# Score-group split styles for the Swiss engine
GROUP_SPLIT_DUTCH = "dutch"  # top half vs bottom half
GROUP_SPLIT_ADJACENT = "adjacent"  # 1-2, 3-4, ...

# Maximum consecutive games with the same colour
MAX_SAME_COLOUR_STREAK = 2

# Backtracking budget per bracket attempt in the pairing search
PAIRING_SEARCH_BUDGET = 20000

# Tiebreaker keys
TB_BUCHHOLZ_FULL = "buchholz_full"
TB_BUCHHOLZ_CUT_1 = "buchholz_cut_1"
TB_BUCHHOLZ_CUT_2 = "buchholz_cut_2"
TB_BUCHHOLZ_MEDIAN = "buchholz_median"
TB_SONNEBORN_BERGER = "sonneborn_berger"
TB_PROGRESSIVE = "progressive_score"
TB_CUMULATIVE = "cumulative_score"
TB_DIRECT_ENCOUNTER = "direct_encounter"
TB_ARO = "average_rating_of_opponents"
TB_AROC_CUT_1 = "aroc_cut_1"
TB_AROC_CUT_2 = "aroc_cut_2"
TB_TPR = "tournament_performance_rating"
TB_WINS = "number_of_wins"
TB_GAMES_WON = "games_won"
TB_BLACK_GAMES = "number_of_games_with_black"
TB_BLACK_WINS = "number_of_wins_with_black"
TB_KOYA = "koya_system"
TB_MATCH_POINTS = "match_points"
TB_GAME_POINTS = "game_points"
TB_BOARD_POINTS = "board_points"

# Default display names for tiebreaks
TIEBREAK_NAMES = {
    TB_BUCHHOLZ_FULL: "Buchholz",
    TB_BUCHHOLZ_CUT_1: "Buchholz Cut-1",
    TB_BUCHHOLZ_CUT_2: "Buchholz Cut-2",
    TB_BUCHHOLZ_MEDIAN: "Median Buchholz",
    TB_SONNEBORN_BERGER: "Sonneborn-Berger",
    TB_PROGRESSIVE: "Progressive Score",
    TB_CUMULATIVE: "Cumulative Score",
    TB_DIRECT_ENCOUNTER: "Direct Encounter",
    TB_ARO: "Average Rating of Opponents",
    TB_AROC_CUT_1: "AROC Cut-1",
    TB_AROC_CUT_2: "AROC Cut-2",
    TB_TPR: "Tournament Performance Rating",
    TB_WINS: "Number of Wins",
    TB_GAMES_WON: "Games Won",
    TB_BLACK_GAMES: "Games with Black",
    TB_BLACK_WINS: "Wins with Black",
    TB_KOYA: "Koya System",
    TB_MATCH_POINTS: "Match Points",
    TB_GAME_POINTS: "Game Points",
    TB_BOARD_POINTS: "Board Points",
}

# Default order used for sorting if not configured otherwise
DEFAULT_TIEBREAK_ORDER = [
    TB_BUCHHOLZ_FULL,
    TB_BUCHHOLZ_CUT_1,
    TB_WINS,
    TB_DIRECT_ENCOUNTER,
]
