# ==== TIMEZONE AND CUTOFF EVALUATION ==== #

"""
Project-local "today" and cutoff checks.

Every mutating order operation and every background job asks the same
questions: is this order dated today for the project, and has the project's
cutoff passed? Answers depend only on the inputs and the injected clock, so
request handlers and jobs can share one evaluator and tests can pin time.

Order dates are calendar dates stored as naive UTC-midnight timestamps; the
calendar day of that timestamp is the order's day in every project timezone.
"""

import datetime as dt
from typing import Optional, Protocol, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.business.errors import ConfigurationError


DateLike = Union[dt.date, dt.datetime]


# ==== CLOCKS ==== #


class Clock(Protocol):
    def now(self) -> dt.datetime:
        """Current instant as an aware UTC datetime."""
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> dt.datetime:
        return dt.datetime.now(dt.timezone.utc)


class FixedClock:
    """
    Clock pinned to a single instant.

    Naive instants are taken as UTC.
    """

    def __init__(self, instant: dt.datetime):
        self.set(instant)

    def set(self, instant: dt.datetime) -> None:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=dt.timezone.utc)
        self._instant = instant.astimezone(dt.timezone.utc)

    def advance(self, delta: dt.timedelta) -> None:
        self._instant = self._instant + delta

    def now(self) -> dt.datetime:
        return self._instant


# ==== TIMEZONE RESOLUTION ==== #


class TimezoneResolver:
    """
    Resolve IANA timezone names.

    Args:
        fallback (Optional[str]): Zone used for blank names. Invalid names
            always raise, with or without a fallback.
    """

    def __init__(self, fallback: Optional[str] = None):
        self.fallback = fallback

    def resolve(self, name: Optional[str]) -> ZoneInfo:
        if not name or not name.strip():
            if self.fallback:
                return self._load(self.fallback)
            raise ConfigurationError(
                "Project timezone is not configured",
                {"timezone": name},
            )
        return self._load(name.strip())

    @staticmethod
    def _load(name: str) -> ZoneInfo:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(
                f"Unknown timezone '{name}'",
                {"timezone": name},
            ) from e


# ==== CUTOFF EVALUATOR ==== #


class CutoffEvaluator:
    """Answers today / past / cutoff questions for a project timezone."""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        tz_resolver: Optional[TimezoneResolver] = None
    ):
        self.clock = clock or SystemClock()
        self.tz_resolver = tz_resolver or TimezoneResolver()

    def local_now(self, timezone: Optional[str]) -> dt.datetime:
        """Current time in the project's timezone."""
        return self.clock.now().astimezone(self.tz_resolver.resolve(timezone))

    def local_today(self, timezone: Optional[str]) -> dt.date:
        return self.local_now(timezone).date()

    def is_today(self, order_date: DateLike, timezone: Optional[str]) -> bool:
        return _calendar_date(order_date) == self.local_today(timezone)

    def is_past_date(self, order_date: DateLike, timezone: Optional[str]) -> bool:
        return _calendar_date(order_date) < self.local_today(timezone)

    def is_future_date(self, order_date: DateLike, timezone: Optional[str]) -> bool:
        return _calendar_date(order_date) > self.local_today(timezone)

    def is_cutoff_passed(self, cutoff_time: dt.time, timezone: Optional[str]) -> bool:
        """
        Check whether the project-local time is strictly after the cutoff.

        Args:
            cutoff_time (dt.time): Project cutoff wall-clock time
            timezone (Optional[str]): Project IANA timezone

        Returns:
            bool: True once local now is past today's cutoff instant

        Raises:
            ConfigurationError: If the timezone cannot be resolved
        """
        local_now = self.local_now(timezone)
        cutoff_today = dt.datetime.combine(
            local_now.date(), cutoff_time, tzinfo=local_now.tzinfo
        )
        return local_now > cutoff_today

    def is_locked_for_today(
        self,
        order_date: DateLike,
        cutoff_time: dt.time,
        timezone: Optional[str]
    ) -> bool:
        """Today-dated order after cutoff: no more changes allowed."""
        return (
            self.is_today(order_date, timezone)
            and self.is_cutoff_passed(cutoff_time, timezone)
        )

    @staticmethod
    def utc_day_bounds(local_date: dt.date) -> Tuple[dt.datetime, dt.datetime]:
        """Stored order_date range ``[start, end)`` for one calendar day."""
        start = dt.datetime(local_date.year, local_date.month, local_date.day)
        return start, start + dt.timedelta(days=1)


def _calendar_date(value: DateLike) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    return value
