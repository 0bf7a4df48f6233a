"""Validation utilities for Swiss Arbiter.

This module provides reusable validation functions with consistent error handling.
Each ``validate_*`` function returns a :class:`ValidationResult`; the ``*_strict``
variants raise instead.
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
from typing import Any, Dict, List, Optional

from swissarbiter.constants import MAX_RATING, MIN_RATING
from swissarbiter.exceptions import RatingValidationError, ValidationError


@dataclass
class ValidationResult:
    """Result of a validation operation.

    Attributes:
        errors: Problems that make the input unacceptable
        warnings: Non-blocking remarks (relaxations, arbiter follow-ups)
        sanitized_value: Cleaned/normalized value if valid
    """

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    sanitized_value: Any = None

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def error_message(self) -> Optional[str]:
        """First error, for callers that only show one line."""
        return self.errors[0] if self.errors else None

    def add_error(self, error: str) -> None:
        self.errors.append(error)

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)

    def merge(self, other: "ValidationResult") -> None:
        """Fold another result's errors and warnings into this one."""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def __bool__(self) -> bool:
        """Allow using result in boolean context: if result: ..."""
        return self.is_valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }

    @classmethod
    def invalid(cls, error: str) -> "ValidationResult":
        return cls(errors=[error])

    @classmethod
    def valid(cls, sanitized_value: Any = None) -> "ValidationResult":
        return cls(sanitized_value=sanitized_value)


# ========== Rating Validation ==========


def validate_rating(
    rating: Any, min_rating: int = MIN_RATING, max_rating: int = MAX_RATING
) -> ValidationResult:
    """Validate a chess rating.

    Ratings must be genuine integers; floats such as ``1600.0``, numeric
    strings and booleans are rejected rather than coerced.

    Args:
        rating: Rating value to validate
        min_rating: Minimum allowed rating
        max_rating: Maximum allowed rating

    Returns:
        ValidationResult with validation status
    """
    if isinstance(rating, bool) or not isinstance(rating, int):
        return ValidationResult.invalid(f"Rating must be an integer: {rating!r}")

    if rating < min_rating or rating > max_rating:
        return ValidationResult.invalid(
            f"Rating must be between {min_rating} and {max_rating}: {rating}"
        )

    return ValidationResult.valid(rating)


def validate_rating_strict(
    rating: Any, min_rating: int = MIN_RATING, max_rating: int = MAX_RATING
) -> int:
    """Validate rating and return it or raise exception.

    Raises:
        RatingValidationError: If rating is invalid
    """
    result = validate_rating(rating, min_rating, max_rating)
    if not result.is_valid:
        raise RatingValidationError(result.error_message, field="rating")
    return rating


# ========== Generic Validation ==========


def validate_non_empty(value: Optional[str], field_name: str = "Field") -> ValidationResult:
    """Validate that a field is not empty.

    Args:
        value: Value to validate
        field_name: Name of the field for error messages

    Returns:
        ValidationResult with validation status
    """
    if not value or not str(value).strip():
        return ValidationResult.invalid(f"{field_name} cannot be empty")
    return ValidationResult.valid(str(value).strip())


def validate_positive_integer(value: Any, field_name: str = "Value") -> ValidationResult:
    """Validate that a value is a positive integer.

    Args:
        value: Value to validate
        field_name: Name of the field for error messages

    Returns:
        ValidationResult with validation status
    """
    if value is None:
        return ValidationResult.invalid(f"{field_name} is required")

    if isinstance(value, bool) or not isinstance(value, int):
        return ValidationResult.invalid(f"{field_name} must be an integer")

    if value <= 0:
        return ValidationResult.invalid(f"{field_name} must be positive")

    return ValidationResult.valid(value)


def require_positive_integer(value: Any, field_name: str) -> int:
    """Strict form of :func:`validate_positive_integer`."""
    result = validate_positive_integer(value, field_name)
    if not result.is_valid:
        raise ValidationError(result.error_message, field=field_name)
    return value


def validate_score(score: Any) -> ValidationResult:
    """Validate a game score (must be 0, 0.5, or 1).

    Args:
        score: Score to validate

    Returns:
        ValidationResult with validation status
    """
    valid_scores = (0.0, 0.5, 1.0)

    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return ValidationResult.invalid(f"Score must be a number: {score!r}")

    if float(score) not in valid_scores:
        return ValidationResult.invalid(f"Score must be 0, 0.5, or 1: {score}")

    return ValidationResult.valid(float(score))
