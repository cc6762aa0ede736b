# rentflow/timeutil.py
from __future__ import annotations

from datetime import date, datetime, time, timezone


def utcnow() -> datetime:
    """Naive UTC now; every DateTime column in this schema is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(v: datetime) -> datetime:
    if v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


def coerce_datetime(v: object) -> datetime | None:
    """
    Accept datetime, date (midnight) or ISO-8601 strings.
    Returns None for anything unparseable.
    """
    if v is None:
        return None
    if isinstance(v, datetime):
        return as_naive_utc(v)
    if isinstance(v, date):
        return datetime.combine(v, time.min)
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            return as_naive_utc(datetime.fromisoformat(s))
        except ValueError:
            return None
    return None
