"""Shared service-layer helper functions."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime


def today() -> date:
    """Today's date (UTC)."""
    return datetime.now(UTC).date()


def new_session_id() -> str:
    """Opaque id for a wizard session.

    Examples:
        >>> len(new_session_id())
        32
    """
    return uuid.uuid4().hex
