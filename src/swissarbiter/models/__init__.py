"""Data models for Swiss Arbiter."""

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

from swissarbiter.models.audit import AuditRecord
from swissarbiter.models.game import (
    Adjourned,
    Bye,
    Cancelled,
    Decisive,
    Default,
    DoubleForfeit,
    Draw,
    Forfeit,
    Game,
    Outcome,
    ResultType,
    ResultValue,
    Timeout,
    outcome_from_fields,
)
from swissarbiter.models.pairing import Pairing, PairingOptions, PairingResult, Relaxation
from swissarbiter.models.pairing_history import PairingHistory
from swissarbiter.models.player import Player, PlayerStatus
from swissarbiter.models.round import Round, RoundStatus
from swissarbiter.models.standing import StandingEntry
from swissarbiter.models.tournament import (
    ByeBuchholzPolicy,
    MissedRoundPolicy,
    Tournament,
    TournamentConfig,
)

__all__ = [
    "Adjourned",
    "AuditRecord",
    "Bye",
    "ByeBuchholzPolicy",
    "Cancelled",
    "Decisive",
    "Default",
    "DoubleForfeit",
    "Draw",
    "Forfeit",
    "Game",
    "MissedRoundPolicy",
    "Outcome",
    "Pairing",
    "PairingHistory",
    "PairingOptions",
    "PairingResult",
    "Player",
    "PlayerStatus",
    "Relaxation",
    "ResultType",
    "ResultValue",
    "Round",
    "RoundStatus",
    "StandingEntry",
    "Timeout",
    "Tournament",
    "TournamentConfig",
    "outcome_from_fields",
]
