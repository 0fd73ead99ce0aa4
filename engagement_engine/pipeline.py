"""End-to-end metrics computation for one user and period."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from engagement_engine.buckets import bucket, events_in_period
from engagement_engine.config import DEFAULT_CONFIG, EngineConfig
from engagement_engine.errors import DataFetchFailed
from engagement_engine.insights import classify
from engagement_engine.metrics import routine_category_percent, streaks, summarize
from engagement_engine.mood import analyze_mood
from engagement_engine.normalize import item_totals, normalize
from engagement_engine.periods import localize, resolve
from engagement_engine.schema import (
    KIND_JOURNAL_ENTRY,
    JournalEntryRecord,
    MetricsResult,
    PeriodSpec,
    RoutineRecord,
    TaskRecord,
)
from engagement_engine.sources import DataSource

logger = logging.getLogger(__name__)


def build_metrics(
    user_id: str,
    tasks: list[TaskRecord],
    routines: list[RoutineRecord],
    entries: list[JournalEntryRecord],
    period: PeriodSpec,
    now: datetime,
    config: Optional[EngineConfig] = None,
) -> MetricsResult:
    """Compute the full metrics result from already fetched records."""

    config = config or DEFAULT_CONFIG

    events = normalize(tasks, routines, entries, now, config)
    in_period = events_in_period(events, period, config)
    buckets = bucket(in_period, period, config)

    total_items, possible_units = item_totals(tasks, routines, period, config)
    summary = summarize(
        buckets,
        possible_units,
        day_count=period.day_count,
        completed_units=len(in_period),
        config=config,
    )

    mood_stats = analyze_mood((e for e in in_period if e.kind == KIND_JOURNAL_ENTRY), config)
    positive = mood_stats.positive_count if mood_stats else 0
    negative = mood_stats.negative_count if mood_stats else 0
    insight = classify(mood_stats, summary["completed_units"], negative, positive)

    today = localize(now, ZoneInfo(config.timezone)).date()
    current_streak, longest_streak = streaks(buckets, today)

    logger.debug(
        "Built metrics for user %s period %s: %d events in period, %d possible units",
        user_id,
        period.token,
        len(in_period),
        possible_units,
    )

    return MetricsResult(
        user_id=user_id,
        period=period,
        consistency_percent=summary["consistency_percent"],
        daily_average=summary["daily_average"],
        weekly_series=summary["weekly_series"],
        routine_category_percent=routine_category_percent(routines),
        completed_units=summary["completed_units"],
        possible_units=possible_units,
        completed_items=sum(e.weight for e in in_period),
        total_items=total_items,
        current_streak=current_streak,
        longest_streak=longest_streak,
        mood_stats=mood_stats,
        top_reasons=mood_stats.top_reasons if mood_stats else [],
        top_tags=mood_stats.top_tags if mood_stats else [],
        insight=insight,
    )


def fetch_records(
    source: DataSource, user_id: str, period: PeriodSpec
) -> tuple[list[TaskRecord], list[RoutineRecord], list[JournalEntryRecord]]:
    """Read the three collections; a failed read propagates unchanged."""

    try:
        tasks = list(source.fetch_tasks(user_id, period))
        routines = list(source.fetch_routines(user_id))
        entries = list(source.fetch_journal_entries(user_id, period))
    except DataFetchFailed as exc:
        logger.warning("Fetch failed for user %s period %s: %s", user_id, period.token, exc)
        raise
    return tasks, routines, entries


def compute_metrics(
    source: DataSource,
    user_id: str,
    period_token: str,
    now: datetime,
    config: Optional[EngineConfig] = None,
) -> MetricsResult:
    """Resolve the period, fetch the user's records and compute metrics."""

    config = config or DEFAULT_CONFIG
    period = resolve(period_token, now, config)
    tasks, routines, entries = fetch_records(source, user_id, period)
    return build_metrics(user_id, tasks, routines, entries, period, now, config)
