"""Shared helpers: logging setup, id generation and the default clock."""

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

import logging
import uuid
from datetime import datetime, timezone

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# The library never configures output itself; applications (or the CLI) do.
logging.getLogger("swissarbiter").addHandler(logging.NullHandler())


def setup_logger(name: str) -> logging.Logger:
    """Return the module logger for ``name``.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        A logger that propagates to the ``swissarbiter`` package logger.
    """
    return logging.getLogger(name)


def configure_logging(level: int = logging.INFO) -> None:
    """Attach a stream handler to the package logger (used by the CLI)."""
    root = logging.getLogger("swissarbiter")
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)


def generate_id(prefix: str) -> str:
    """Generate a short unique identifier such as ``round-1f2e3d4c5b6a``."""
    return f"{prefix.lower()}-{uuid.uuid4().hex[:12]}"


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(timezone.utc)
