"""Calendar-day bucketing of raw events."""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from engagement_engine.config import DEFAULT_CONFIG, EngineConfig
from engagement_engine.periods import in_period, localize, series_days
from engagement_engine.schema import DayBucket, PeriodSpec, RawEvent


def local_day(moment: datetime, tz: ZoneInfo) -> date:
    return localize(moment, tz).date()


def events_in_period(
    events: Iterable[RawEvent], period: PeriodSpec, config: Optional[EngineConfig] = None
) -> list[RawEvent]:
    config = config or DEFAULT_CONFIG
    return [event for event in events if in_period(event.timestamp, period, config)]


def bucket(
    events: Iterable[RawEvent], period: PeriodSpec, config: Optional[EngineConfig] = None
) -> list[DayBucket]:
    """Count completed micro-units per local calendar day of the period.

    Every task, routine-step and journal event is one micro-unit. Days with
    no events still get a zero bucket, so the result always has
    ``period.day_count`` entries in chronological order.
    """

    config = config or DEFAULT_CONFIG
    tz = ZoneInfo(config.timezone)

    per_day = Counter(local_day(event.timestamp, tz) for event in events_in_period(events, period, config))
    return [DayBucket(date=day, completed_count=per_day[day]) for day in series_days(period, config)]
