"""Mood statistics over journal entries."""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

import numpy as np

from engagement_engine.config import DEFAULT_CONFIG, EngineConfig
from engagement_engine.periods import localize
from engagement_engine.schema import (
    KIND_JOURNAL_ENTRY,
    MOOD_SCORES,
    NEGATIVE_MOODS,
    POSITIVE_MOODS,
    MoodStats,
    RankedLabel,
    RawEvent,
)

logger = logging.getLogger(__name__)

LOW = "Low"
MODERATE = "Moderate"
HIGH = "High"

NEUTRAL_SCORE = 3


def volatility_tier(std_dev: float, config: Optional[EngineConfig] = None) -> str:
    """Classify a standard deviation; each tier's upper bound is inclusive."""

    config = config or DEFAULT_CONFIG
    if std_dev <= config.low_volatility_max:
        return LOW
    if std_dev <= config.moderate_volatility_max:
        return MODERATE
    return HIGH


def rank_labels(labels: Iterable[str], limit: int) -> list[RankedLabel]:
    """Return up to ``limit`` labels, most frequent first.

    Labels are sorted ascending by count with a stable sort over
    first-occurrence order and the last ``limit`` are taken, so among equal
    counts the label first seen later ranks higher.
    """

    if limit <= 0:
        return []
    counts = Counter(labels)
    ascending = sorted(counts.items(), key=lambda item: item[1])
    return [RankedLabel(label=label, count=count) for label, count in reversed(ascending[-limit:])]


def _predominant(moods: list[str]) -> str:
    # Running max scan: the first mood to reach the highest count keeps it.
    counts: Counter = Counter()
    best, best_count = moods[0], 0
    for mood in moods:
        counts[mood] += 1
        if counts[mood] > best_count:
            best, best_count = mood, counts[mood]
    return best


def _day_balance(entries: list[RawEvent], tz: ZoneInfo) -> tuple[int, int]:
    by_day: dict = defaultdict(list)
    for entry in entries:
        by_day[localize(entry.timestamp, tz).date()].append(entry.mood_score)

    good_days = bad_days = 0
    for scores in by_day.values():
        average = sum(scores) / len(scores)
        if average > NEUTRAL_SCORE:
            good_days += 1
        elif average < NEUTRAL_SCORE:
            bad_days += 1
    return good_days, bad_days


def analyze_mood(journal_events: Iterable[RawEvent], config: Optional[EngineConfig] = None) -> Optional[MoodStats]:
    """Compute mood statistics, or ``None`` when there are no journal entries."""

    config = config or DEFAULT_CONFIG
    tz = ZoneInfo(config.timezone)

    entries = sorted(
        (event for event in journal_events if event.kind == KIND_JOURNAL_ENTRY),
        key=lambda e: localize(e.timestamp, tz),
    )
    if not entries:
        logger.debug("No journal entries, mood statistics unavailable")
        return None

    moods = [entry.mood for entry in entries]
    scores = np.asarray([entry.mood_score for entry in entries], dtype=float)
    mean = float(np.mean(scores))
    variance = float(np.var(scores))
    std_dev = float(np.sqrt(variance))

    mood_counts = Counter(moods)
    good_days, bad_days = _day_balance(entries, tz)

    timeline = [
        {
            "date": localize(entry.timestamp, tz).date().isoformat(),
            "mood": entry.mood,
            "score": entry.mood_score,
            "reasons": list(entry.reasons[:2]),
            "tags": list(entry.tags[:2]),
        }
        for entry in entries
    ]

    return MoodStats(
        predominant_mood=_predominant(moods),
        mean=mean,
        variance=variance,
        std_dev=std_dev,
        volatility_tier=volatility_tier(std_dev, config),
        count=len(entries),
        positive_count=sum(mood_counts[m] for m in POSITIVE_MOODS),
        negative_count=sum(mood_counts[m] for m in NEGATIVE_MOODS),
        distribution={mood: mood_counts.get(mood, 0) for mood in MOOD_SCORES},
        good_days=good_days,
        bad_days=bad_days,
        top_reasons=rank_labels((r for entry in entries for r in entry.reasons), config.top_labels_limit),
        top_tags=rank_labels((t for entry in entries for t in entry.tags), config.top_labels_limit),
        timeline=timeline,
    )
