"""Append-only audit records of game result changes."""

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

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from dateutil.parser import isoparse


@dataclass(frozen=True)
class AuditRecord:
    """One change to a game's result.

    Records are frozen: the audit trail only ever grows. An approval of an
    irregular result is its own record, with ``old_result == new_result``
    and ``approved`` set.

    Attributes
    ----------
    id : str
        Record identifier.
    game_id : str
        Game the change applies to.
    sequence : int
        Position in the tournament-wide audit log, strictly increasing.
    old_result, new_result : str or None
        Result values before and after the change.
    old_result_type, new_result_type : str or None
        Result types before and after the change.
    changed_by : str
        Arbiter identity supplied by the caller.
    changed_at : datetime
        Time of the change, from the injected clock.
    reason : str or None
        Free-text justification.
    approved : bool
        Whether the new result stands without a further approval step.
    """

    id: str
    game_id: str
    sequence: int
    old_result: Optional[str]
    new_result: Optional[str]
    changed_by: str
    changed_at: datetime
    old_result_type: Optional[str] = None
    new_result_type: Optional[str] = None
    reason: Optional[str] = None
    approved: bool = False

    @property
    def is_approval(self) -> bool:
        return self.old_result == self.new_result and self.approved

    def to_dict(self) -> Dict[str, Any]:
        """Serialize audit record to dictionary."""
        return {
            "id": self.id,
            "game_id": self.game_id,
            "sequence": self.sequence,
            "old_result": self.old_result,
            "new_result": self.new_result,
            "old_result_type": self.old_result_type,
            "new_result_type": self.new_result_type,
            "changed_by": self.changed_by,
            "changed_at": self.changed_at.isoformat(),
            "reason": self.reason,
            "approved": self.approved,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditRecord":
        """Deserialize audit record from dictionary."""
        changed_at = data["changed_at"]
        if not isinstance(changed_at, datetime):
            changed_at = isoparse(changed_at)
        return cls(
            id=data["id"],
            game_id=data["game_id"],
            sequence=int(data.get("sequence", 0)),
            old_result=data.get("old_result"),
            new_result=data.get("new_result"),
            old_result_type=data.get("old_result_type"),
            new_result_type=data.get("new_result_type"),
            changed_by=data["changed_by"],
            changed_at=changed_at,
            reason=data.get("reason"),
            approved=bool(data.get("approved", False)),
        )
