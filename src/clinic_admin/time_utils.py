from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""

    return datetime.now(timezone.utc)


def today() -> date:
    return utcnow().date()
