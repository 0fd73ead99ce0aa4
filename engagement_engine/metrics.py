"""Consistency, average and routine completion metrics."""

from __future__ import annotations

import math
from datetime import date
from typing import Iterable, Optional

from engagement_engine.config import DEFAULT_CONFIG, EngineConfig
from engagement_engine.normalize import routine_category, routine_done, routine_slots
from engagement_engine.schema import DayBucket, RoutineRecord, SeriesPoint

REPORTED_CATEGORIES = ("morning", "afternoon", "night")


def percent(part: float, whole: float) -> int:
    """Half-up rounded percentage clamped to [0, 100]; 0 when ``whole`` is 0."""

    if whole <= 0:
        return 0
    value = math.floor(100.0 * part / whole + 0.5)
    return max(0, min(100, value))


def summarize(
    buckets: list[DayBucket],
    total_possible_units: int,
    day_count: Optional[int] = None,
    completed_units: Optional[int] = None,
    config: Optional[EngineConfig] = None,
) -> dict:
    """Compute consistency percent, daily average and the per-day display series.

    ``completed_units`` defaults to the sum of the buckets and ``day_count``
    to the number of buckets; the unbounded period passes both explicitly
    because its totals cover more days than its series shows.
    """

    config = config or DEFAULT_CONFIG
    if completed_units is None:
        completed_units = sum(b.completed_count for b in buckets)
    if day_count is None:
        day_count = len(buckets)

    weekly_series = [
        SeriesPoint(
            day_label=config.weekday_labels[b.date.weekday()],
            date=b.date,
            value=min(config.series_cap, b.completed_count * config.series_unit_weight),
        )
        for b in buckets
    ]

    return {
        "consistency_percent": percent(completed_units, total_possible_units),
        "daily_average": completed_units / day_count if day_count > 0 else 0.0,
        "weekly_series": weekly_series,
        "completed_units": completed_units,
    }


def routine_category_percent(routines: Iterable[RoutineRecord]) -> dict[str, int]:
    """Percentage of completed step slots per reported routine category."""

    done = {category: 0 for category in REPORTED_CATEGORIES}
    total = {category: 0 for category in REPORTED_CATEGORIES}
    for routine in routines:
        category = routine_category(routine)
        if category not in total:
            continue
        done[category] += routine_done(routine)
        total[category] += routine_slots(routine)

    return {category: percent(done[category], total[category]) for category in REPORTED_CATEGORIES}


def streaks(buckets: list[DayBucket], today: Optional[date] = None) -> tuple[int, int]:
    """Return ``(current, longest)`` runs of consecutive active days.

    Buckets after ``today`` have not happened yet and are ignored. The
    current run ends at the latest remaining bucket.
    """

    elapsed = [b for b in buckets if today is None or b.date <= today]

    longest = run = 0
    for b in elapsed:
        run = run + 1 if b.completed_count > 0 else 0
        longest = max(longest, run)

    current = 0
    for b in reversed(elapsed):
        if b.completed_count > 0:
            current += 1
        else:
            break

    return current, longest
