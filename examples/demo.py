"""Demo script for engagement-engine."""

import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from engagement_engine.adapters.json_adapter import JsonDataSource
from engagement_engine.log_utils import setup_logging
from engagement_engine.trigger import MetricsSession

NOW = datetime.fromisoformat("2025-03-14T20:00:00-03:00")


def main() -> None:
    setup_logging("INFO")
    source = JsonDataSource(Path(__file__).with_name("sample_data.json"))
    session = MetricsSession(source, user_id="ana", period_token="Week")

    week = session.read(NOW)
    print("Week consistency:", week.consistency_percent, "%")
    print("Daily average:", round(week.daily_average, 2))
    print("Series:", [(p.day_label, p.value) for p in week.weekly_series])

    session.select(period_token="Month")
    month = session.read(NOW)
    print("Month mood:", month.mood_stats.predominant_mood if month.mood_stats else None)
    print("Insight:", month.insight.title if month.insight else "not enough data")
    print("Top reasons:", [(r.label, r.count) for r in month.top_reasons])
    session.close()


if __name__ == "__main__":
    main()
