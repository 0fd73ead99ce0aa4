"""Rule-based narrative insights from mood statistics."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from engagement_engine.mood import HIGH
from engagement_engine.schema import MOOD_SCORES, Insight, MoodStats, mood_category

logger = logging.getLogger(__name__)

_KEEP_LOGGING = "Keep journaling: consistency brings emotional clarity."

NARRATIVES = {
    "mixed": Insight(
        title="Mixed Month",
        body="Your mood varied a lot over the month. Watch which tags show up most often on challenging days.",
        suggestion=_KEEP_LOGGING,
        rule="mixed",
    ),
    "positive": Insight(
        title="Positive Month",
        body="Your month had more positive days than negative ones. Keep reinforcing the habits that worked!",
        suggestion="You are making progress! Try to keep the habits that did you good this month.",
        rule="positive",
    ),
    "challenging": Insight(
        title="Challenging Month",
        body=(
            "You had an emotionally intense month. Be kind to yourself on this journey. "
            "Taking care of small things already helps a lot."
        ),
        suggestion="Your month had its challenges. Pick just one small goal to focus on next week.",
        rule="challenging",
    ),
    "balanced": Insight(
        title="Balanced Month",
        body="Your month was balanced. Small adjustments can increase your positive moments.",
        suggestion=_KEEP_LOGGING,
        rule="balanced",
    ),
}

FEEDBACK_MESSAGES = {
    "positive": "Great! Write down what went well today so you can repeat it.",
    "neutral": "You did enough. Even ordinary days help build consistency.",
    "negative": "It is okay to have hard days. Take a deep breath, you are doing your best.",
    "anxiety": "Want to try a quick breathing exercise? Breathe in for 4s, hold for 4s, breathe out for 4s.",
    "tired": "A light break can help you recharge. Respect your rest.",
}

# Checked in order; the first matching reason picks the message.
_REASON_OVERRIDES = (
    ("anxiety", frozenset({"Anxiety", "Ansiedade"})),
    ("tired", frozenset({"Tiredness", "Cansaço"})),
)


def classify(
    mood_stats: Optional[MoodStats],
    completed_count: int,
    negative_count: int,
    positive_count: int,
) -> Optional[Insight]:
    """Pick the narrative for a period; first matching rule wins.

    1. high volatility -> mixed
    2. more positive than negative entries -> positive
    3. more negative than positive entries -> challenging
    4. otherwise -> balanced

    Returns ``None`` when there are no mood statistics to judge.
    """

    if mood_stats is None:
        return None

    if mood_stats.volatility_tier == HIGH:
        rule = "mixed"
    elif positive_count > negative_count:
        rule = "positive"
    elif negative_count > positive_count:
        rule = "challenging"
    else:
        rule = "balanced"

    logger.debug(
        "Insight rule %s (positive=%d negative=%d completed=%d)",
        rule,
        positive_count,
        negative_count,
        completed_count,
    )
    return NARRATIVES[rule]


def entry_feedback(mood: str, reasons: Iterable[str] = ()) -> str:
    """Immediate feedback shown after logging a journal entry."""

    if mood not in MOOD_SCORES:
        raise ValueError(f"invalid mood '{mood}'")

    chosen = set(reasons)
    for key, names in _REASON_OVERRIDES:
        if chosen & names:
            return FEEDBACK_MESSAGES[key]
    return FEEDBACK_MESSAGES[mood_category(mood)]
