"""
Cooldown guard: a fixed time gate between two effort logs on the same goal.

The window is measured from the previous log's timestamp, not from the
calendar day, so a log at 23:00 reopens at 11:00 the next day.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from ikioi.core.errors import CooldownError, ValidationError, format_hms

COOLDOWN_WINDOW = timedelta(hours=12)

TimestampLike = Union[datetime, date, str]


@dataclass(frozen=True)
class CooldownStatus:
    allowed: bool
    remaining: Optional[timedelta] = None
    next_allowed_at: Optional[datetime] = None

    @property
    def remaining_formatted(self) -> Optional[str]:
        if self.remaining is None:
            return None
        return format_hms(self.remaining)

    def to_dict(self) -> dict:
        if self.allowed:
            return {"allowed": True}
        return {
            "allowed": False,
            "remaining": self.remaining_formatted,
            "nextAllowedAt": self.next_allowed_at.isoformat(),
        }


def to_utc(moment: TimestampLike) -> datetime:
    """
    Normalize a timestamp to an aware UTC datetime.

    Date-only values (date objects or "YYYY-MM-DD" strings) are taken as
    noon UTC. Naive datetimes are assumed to already be UTC.
    """
    if isinstance(moment, str):
        raw = moment.strip()
        if len(raw) == 10:
            try:
                moment = date.fromisoformat(raw)
            except ValueError:
                raise ValidationError(f"Invalid date: {moment!r}")
        else:
            try:
                moment = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            except ValueError:
                raise ValidationError(f"Invalid timestamp: {moment!r}")

    if isinstance(moment, datetime):
        if moment.tzinfo is None:
            return moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(timezone.utc)

    if isinstance(moment, date):
        return datetime.combine(moment, time(12, 0), tzinfo=timezone.utc)

    raise ValidationError(f"Unsupported timestamp type: {type(moment).__name__}")


def check_cooldown(
    last_log: Optional[TimestampLike],
    now: datetime,
    window: timedelta = COOLDOWN_WINDOW,
) -> CooldownStatus:
    """
    Decide whether a new log is allowed.

    Allowed when there is no previous log or at least `window` has elapsed
    (the boundary itself is allowed). Otherwise blocked, with the remaining
    wait and the moment logging reopens.
    """
    if last_log is None:
        return CooldownStatus(allowed=True)

    last = to_utc(last_log)
    current = to_utc(now)
    if current - last >= window:
        return CooldownStatus(allowed=True)

    next_allowed_at = last + window
    return CooldownStatus(
        allowed=False,
        remaining=next_allowed_at - current,
        next_allowed_at=next_allowed_at,
    )


def enforce_cooldown(
    last_log: Optional[TimestampLike],
    now: datetime,
    window: timedelta = COOLDOWN_WINDOW,
) -> None:
    """Raise CooldownError when check_cooldown blocks."""
    status = check_cooldown(last_log, now, window)
    if not status.allowed:
        raise CooldownError(status.remaining, status.next_allowed_at)
