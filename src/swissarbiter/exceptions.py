"""Exceptions for use in Swiss Arbiter"""

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

from typing import Any, List, Optional


# ========== Base Application Exception ==========


class SwissArbiterException(Exception):
    """Base exception for all Swiss Arbiter errors.

    All custom exceptions in the engine inherit from this class, so a caller
    can catch every engine-specific error with a single except clause.
    """

    pass


# ========== Validation Exceptions ==========


class ValidationError(SwissArbiterException):
    """Raised when input is malformed or out of range.

    Attributes
    ----------
    field : str or None
        Name of the offending field, if the error is field-level.
    errors : list of str
        Every problem found, in the order it was detected.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.errors = list(errors) if errors else [message]


class RatingValidationError(ValidationError):
    """Raised when a rating value is not an integer in the accepted range."""

    pass


# ========== Round Exceptions ==========


class StateTransitionError(SwissArbiterException):
    """Raised when a round status change is not allowed."""

    def __init__(self, message: str, current: Any = None, requested: Any = None):
        super().__init__(message)
        self.current = current
        self.requested = requested


class ConcurrencyConflictError(SwissArbiterException):
    """Raised when the stored state no longer matches what the caller expected.

    The caller must reload and retry; the stored value is never overwritten.
    """

    def __init__(self, message: str, expected: Any = None, actual: Any = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


# ========== Pairing Exceptions ==========


class PairingInfeasibleError(SwissArbiterException):
    """Raised when no legal set of pairings can be produced.

    Attributes
    ----------
    constraint : str or None
        The constraint that could not be satisfied (e.g. ``"bye"``).
    relaxed : list of str
        Constraints that had already been relaxed before giving up.
    """

    def __init__(
        self,
        message: str,
        constraint: Optional[str] = None,
        relaxed: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message)
        self.constraint = constraint
        self.relaxed = list(relaxed) if relaxed else []


# ========== Lookup Exceptions ==========


class NotFoundError(SwissArbiterException):
    """Raised when a tournament, round, player or game does not exist."""

    def __init__(self, entity: str, key: Any) -> None:
        super().__init__(f"{entity} {key!r} not found")
        self.entity = entity
        self.key = key
