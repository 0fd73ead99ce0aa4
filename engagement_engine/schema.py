"""Core data schema for engagement records and metrics."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Optional

KIND_TASK = "task"
KIND_ROUTINE_STEP = "routineStep"
KIND_JOURNAL_ENTRY = "journalEntry"
EVENT_KINDS = frozenset({KIND_TASK, KIND_ROUTINE_STEP, KIND_JOURNAL_ENTRY})

ROUTINE_CATEGORIES = ("morning", "afternoon", "night", "other")

# Ordered best to worst.
MOOD_SCORES = {"great": 5, "good": 4, "neutral": 3, "bad": 2, "terrible": 1}
POSITIVE_MOODS = frozenset({"great", "good"})
NEGATIVE_MOODS = frozenset({"bad", "terrible"})

TASK_COMPLETED = "completed"


def mood_category(mood: str) -> str:
    if mood in POSITIVE_MOODS:
        return "positive"
    if mood in NEGATIVE_MOODS:
        return "negative"
    return "neutral"


@dataclass
class TaskRecord:
    """Task row as returned by the data collaborator."""

    id: str
    status: str
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class RoutineStepRecord:
    id: str
    completed: bool
    completed_at: Optional[datetime] = None


@dataclass
class RoutineRecord:
    """Routine snapshot; routines are not period-filtered at fetch time."""

    id: str
    category: str
    steps: list[RoutineStepRecord] = field(default_factory=list)
    completed: bool = False
    updated_at: Optional[datetime] = None


@dataclass
class JournalEntryRecord:
    id: str
    date: datetime
    mood: str
    reasons: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RawEvent:
    """Normalized engagement event consumed by every stage of the pipeline.

    Exactly one ``kind``; fields that do not apply to the kind stay ``None``.
    Use the ``task``, ``routine_step`` and ``journal_entry`` constructors.
    """

    kind: str
    timestamp: datetime
    weight: int
    mood: Optional[str] = None
    mood_score: Optional[int] = None
    reasons: Optional[tuple[str, ...]] = None
    tags: Optional[tuple[str, ...]] = None
    routine_category: Optional[str] = None

    def __post_init__(self):
        if self.kind not in EVENT_KINDS:
            raise ValueError(f"invalid event kind '{self.kind}'")

        journal_fields = (self.mood, self.mood_score, self.reasons, self.tags)
        if self.kind == KIND_JOURNAL_ENTRY:
            if any(value is None for value in journal_fields):
                raise ValueError("journal entry events require mood, reasons and tags")
            if self.routine_category is not None:
                raise ValueError("journal entry events cannot carry a routine category")
        else:
            if any(value is not None for value in journal_fields):
                raise ValueError(f"{self.kind} events cannot carry mood data")
            if self.kind == KIND_TASK and self.routine_category is not None:
                raise ValueError("task events cannot carry a routine category")
            if self.kind == KIND_ROUTINE_STEP and self.routine_category not in ROUTINE_CATEGORIES:
                raise ValueError(f"invalid routine category '{self.routine_category}'")

    @classmethod
    def task(cls, timestamp: datetime) -> "RawEvent":
        return cls(kind=KIND_TASK, timestamp=timestamp, weight=1)

    @classmethod
    def routine_step(cls, timestamp: datetime, category: str) -> "RawEvent":
        return cls(kind=KIND_ROUTINE_STEP, timestamp=timestamp, weight=1, routine_category=category)

    @classmethod
    def journal_entry(cls, timestamp: datetime, mood: str, reasons=(), tags=()) -> "RawEvent":
        if mood not in MOOD_SCORES:
            raise ValueError(f"invalid mood '{mood}'")
        return cls(
            kind=KIND_JOURNAL_ENTRY,
            timestamp=timestamp,
            weight=0,
            mood=mood,
            mood_score=MOOD_SCORES[mood],
            reasons=tuple(reasons),
            # Unique labels, first-seen order kept for ranking ties.
            tags=tuple(dict.fromkeys(tags)),
        )


@dataclass(frozen=True)
class PeriodSpec:
    """Half-open interval ``[start, end)`` plus its day-bucket count."""

    token: str
    start: datetime
    end: datetime
    day_count: int

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError("period end must be after start")
        if self.day_count < 1:
            raise ValueError("period day_count must be at least 1")


@dataclass(frozen=True)
class DayBucket:
    date: date
    completed_count: int


@dataclass(frozen=True)
class SeriesPoint:
    day_label: str
    date: date
    value: int


@dataclass(frozen=True)
class RankedLabel:
    label: str
    count: int


@dataclass(frozen=True)
class MoodStats:
    predominant_mood: str
    mean: float
    variance: float
    std_dev: float
    volatility_tier: str
    count: int
    positive_count: int
    negative_count: int
    distribution: dict[str, int]
    good_days: int
    bad_days: int
    top_reasons: list[RankedLabel]
    top_tags: list[RankedLabel]
    timeline: list[dict]


@dataclass(frozen=True)
class Insight:
    title: str
    body: str
    suggestion: str
    rule: str


@dataclass(frozen=True)
class MetricsResult:
    """Everything the dashboard and journal views read for one user and period."""

    user_id: str
    period: PeriodSpec
    consistency_percent: int
    daily_average: float
    weekly_series: list[SeriesPoint]
    routine_category_percent: dict[str, int]
    completed_units: int
    possible_units: int
    completed_items: int
    total_items: int
    current_streak: int
    longest_streak: int
    mood_stats: Optional[MoodStats]
    top_reasons: list[RankedLabel]
    top_tags: list[RankedLabel]
    insight: Optional[Insight]

    def to_dict(self) -> dict:
        """Return a JSON-serializable representation."""

        payload = asdict(self)
        payload["period"]["start"] = self.period.start.isoformat()
        payload["period"]["end"] = self.period.end.isoformat()
        for point in payload["weekly_series"]:
            point["date"] = point["date"].isoformat()
        return payload
