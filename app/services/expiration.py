"""Expiration policies for cache entries.

A policy turns "now" into the instant an entry stops being fresh. Policies
never read the clock themselves; the caller always passes ``now``.
"""

from datetime import datetime, timedelta
from typing import Optional

from app.config import Settings

CINEMAS_KEY = "cinemas_list"
MOVIES_KEY_PREFIX = "movies_cinema_"

MONDAY = 0
WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def movies_key(cinema_id: int) -> str:
    """Cache key for one cinema's movie listing."""
    return f"{MOVIES_KEY_PREFIX}{cinema_id}"


def next_weekday_boundary(now: datetime, weekday: int) -> datetime:
    """
    Midnight at the start of the next occurrence of ``weekday`` after ``now``.

    The result is always strictly after ``now``: when ``now`` is already
    that weekday (even exactly at midnight) the boundary is a week later.

    Args:
        now: Reference instant
        weekday: 0 = Monday ... 6 = Sunday

    Returns:
        The boundary instant, with the same tzinfo as ``now``
    """
    if not 0 <= weekday <= 6:
        raise ValueError(f"weekday must be in 0..6, got {weekday}")

    days_ahead = (weekday - now.weekday()) % 7
    if days_ahead == 0:
        days_ahead = 7

    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight + timedelta(days=days_ahead)


class FixedWindow:
    """Entry stays fresh for a fixed duration after it is stored."""

    def __init__(self, duration: timedelta):
        if duration <= timedelta(0):
            raise ValueError(f"duration must be positive, got {duration}")
        self.duration = duration

    def expires_at(self, now: datetime) -> datetime:
        return now + self.duration

    def describe(self) -> str:
        return f"fixed window of {_format_duration(self.duration)}"

    def __repr__(self) -> str:
        return f"FixedWindow({self.duration!r})"


class NextWeekdayBoundary:
    """Entry stays fresh until the next start of a given weekday."""

    def __init__(self, weekday: int = MONDAY):
        if not 0 <= weekday <= 6:
            raise ValueError(f"weekday must be in 0..6, got {weekday}")
        self.weekday = weekday

    def expires_at(self, now: datetime) -> datetime:
        return next_weekday_boundary(now, self.weekday)

    def describe(self) -> str:
        return f"until next {WEEKDAY_NAMES[self.weekday]} 00:00"

    def __repr__(self) -> str:
        return f"NextWeekdayBoundary({self.weekday})"


class OutcomePolicy:
    """
    Picks between a success policy and a failure policy after the fetch.

    The producer flips ``failed`` when the upstream call degraded. With no
    failure policy the success policy always applies, so a failed fetch
    consumes the whole window.
    """

    def __init__(self, success, failure: Optional[FixedWindow] = None):
        self.success = success
        self.failure = failure
        self.failed = False

    def expires_at(self, now: datetime) -> datetime:
        if self.failed and self.failure is not None:
            return self.failure.expires_at(now)
        return self.success.expires_at(now)

    def describe(self) -> str:
        return self.success.describe()


def policy_for_key(key: str, settings: Settings):
    """Select the expiration policy from the key class alone."""
    if key == CINEMAS_KEY:
        return FixedWindow(timedelta(days=settings.cinemas_cache_ttl_days))
    if key.startswith(MOVIES_KEY_PREFIX):
        return NextWeekdayBoundary(settings.movies_cache_weekday)
    raise ValueError(f"No expiration policy for cache key: {key}")


def failure_policy(settings: Settings) -> Optional[FixedWindow]:
    """Shorter window for degraded fetches, if configured."""
    if settings.failed_fetch_ttl_seconds is None:
        return None
    return FixedWindow(timedelta(seconds=settings.failed_fetch_ttl_seconds))


def _format_duration(duration: timedelta) -> str:
    if duration.days and not duration.seconds:
        return f"{duration.days} day{'s' if duration.days != 1 else ''}"
    return f"{int(duration.total_seconds())} seconds"
