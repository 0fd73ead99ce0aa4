"""Named period resolution into concrete half-open intervals."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from engagement_engine.config import DEFAULT_CONFIG, EngineConfig
from engagement_engine.errors import InvalidPeriod
from engagement_engine.schema import PeriodSpec

TODAY = "Today"
YESTERDAY = "Yesterday"
WEEK = "Week"
MONTH = "Month"
ALL = "All"
PERIOD_TOKENS = (TODAY, YESTERDAY, WEEK, MONTH, ALL)

# Names used by the dashboard filter.
_ALIASES = {
    "Hoje": TODAY,
    "Ontem": YESTERDAY,
    "Semana": WEEK,
    "Mês": MONTH,
    "Sempre": ALL,
}

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def canonical_token(token: object) -> str:
    """Return the canonical period name, raising ``InvalidPeriod`` for unknown tokens."""

    if isinstance(token, str):
        if token in PERIOD_TOKENS:
            return token
        if token in _ALIASES:
            return _ALIASES[token]
    raise InvalidPeriod(token, PERIOD_TOKENS)


def localize(moment: datetime, tz: ZoneInfo) -> datetime:
    """Express ``moment`` in ``tz``; naive datetimes are taken as already local."""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def _midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def resolve(token: str, now: datetime, config: Optional[EngineConfig] = None) -> PeriodSpec:
    """Map a period token and an explicit ``now`` to a ``PeriodSpec``.

    Weeks always start on Monday. ``All`` starts at the epoch and uses a
    fixed day count as its averaging divisor.
    """

    config = config or DEFAULT_CONFIG
    name = canonical_token(token)
    tz = ZoneInfo(config.timezone)
    today = localize(now, tz).date()

    if name == TODAY:
        first, day_count = today, 1
    elif name == YESTERDAY:
        first, day_count = today - timedelta(days=1), 1
    elif name == WEEK:
        first, day_count = today - timedelta(days=today.weekday()), 7
    elif name == MONTH:
        first = today.replace(day=1)
        day_count = calendar.monthrange(today.year, today.month)[1]
    else:
        return PeriodSpec(
            token=name,
            start=EPOCH,
            end=_midnight(today + timedelta(days=1), tz),
            day_count=config.all_time_day_count,
        )

    return PeriodSpec(
        token=name,
        start=_midnight(first, tz),
        end=_midnight(first + timedelta(days=day_count), tz),
        day_count=day_count,
    )


def in_period(moment: datetime, period: PeriodSpec, config: Optional[EngineConfig] = None) -> bool:
    """True when ``moment`` lies in ``[start, end)``."""

    config = config or DEFAULT_CONFIG
    moment = localize(moment, ZoneInfo(config.timezone))
    return period.start <= moment < period.end


def series_days(period: PeriodSpec, config: Optional[EngineConfig] = None) -> list[date]:
    """Calendar days that get a bucket: the last ``day_count`` days before ``end``.

    For bounded periods this is every day of the interval; for ``All`` it is
    the trailing window the day count describes.
    """

    config = config or DEFAULT_CONFIG
    last = localize(period.end, ZoneInfo(config.timezone)).date()
    return [last - timedelta(days=offset) for offset in range(period.day_count, 0, -1)]
