# rentflow/domain/deadline_policy.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..errors import InvalidInputError
from ..timeutil import coerce_datetime

VERIFICATION_WINDOW = timedelta(hours=24)
REMINDER_THRESHOLDS_HOURS = (24, 12, 1)
DEFAULT_REMINDER_WINDOW_MINUTES = 10

PHASE_PRE_MOVE_IN = "PRE_MOVE_IN"
PHASE_WINDOW_OPEN = "WINDOW_OPEN"
PHASE_WINDOW_CLOSED = "WINDOW_CLOSED"


def compute_verification_deadline(move_in_date: object) -> datetime:
    """Deadline is exactly 24h after the move-in (lease start) timestamp."""
    base = coerce_datetime(move_in_date)
    if base is None:
        raise InvalidInputError(f"move-in date is missing or unparseable: {move_in_date!r}")
    return base + VERIFICATION_WINDOW


def is_within_reminder_window(
    deadline: datetime,
    now: datetime,
    target_hours: int,
    window_minutes: int = DEFAULT_REMINDER_WINDOW_MINUTES,
) -> bool:
    """
    True iff the time left sits in (target - window, target], and is positive.

    With a 5 minute scan and a 10 minute band every threshold is seen by at
    most two ticks; the notification lookup makes the second one a no-op.
    """
    remaining = (deadline - now).total_seconds()
    target = target_hours * 3600
    return 0 < remaining <= target and remaining > target - window_minutes * 60


def reminder_title(target_hours: int) -> str:
    return f"Move-in verification reminder ({target_hours}h)"


@dataclass(frozen=True)
class MoveInWindow:
    phase: str
    window_open: Optional[datetime]
    window_close: Optional[datetime]

    @property
    def is_open(self) -> bool:
        return self.phase == PHASE_WINDOW_OPEN

    def as_dict(self) -> dict:
        return {
            "phase": self.phase,
            "window_open": self.window_open.isoformat() if self.window_open else None,
            "window_close": self.window_close.isoformat() if self.window_close else None,
        }


def move_in_window(lease_start: Optional[datetime], now: datetime) -> MoveInWindow:
    """
    Reporting window is [lease_start, lease_start + 24h).
    No lease start yet is treated as pre-move-in.
    """
    if lease_start is None:
        return MoveInWindow(PHASE_PRE_MOVE_IN, None, None)

    close = compute_verification_deadline(lease_start)
    if now < lease_start:
        phase = PHASE_PRE_MOVE_IN
    elif now < close:
        phase = PHASE_WINDOW_OPEN
    else:
        phase = PHASE_WINDOW_CLOSED
    return MoveInWindow(phase, lease_start, close)
