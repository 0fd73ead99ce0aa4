"""Streamlit demo UI for engagement-engine."""

from __future__ import annotations

import json
import tempfile
from datetime import datetime, time
from pathlib import Path
from typing import Any

from engagement_engine.adapters.json_adapter import JsonDataSource
from engagement_engine.errors import EngineError
from engagement_engine.insights import entry_feedback
from engagement_engine.periods import PERIOD_TOKENS
from engagement_engine.pipeline import compute_metrics
from engagement_engine.schema import MOOD_SCORES

DEMO_DATA = "examples/sample_data.json"


def _users_in(file_path: str) -> list[str]:
    with open(file_path, encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict) or not isinstance(payload.get("users") or {}, dict):
        raise ValueError("JSON payload must be an object with a 'users' mapping")
    return sorted((payload.get("users") or {}).keys())


def _save_uploaded(uploaded_file) -> str:
    with tempfile.NamedTemporaryFile(delete=False, suffix=".json") as handle:
        handle.write(uploaded_file.getbuffer())
        return handle.name


def _volatility_level(tier: str) -> str:
    return {"Low": "LOW", "Moderate": "MED", "High": "HIGH"}.get(tier, tier)


def run_engine(source, user_id: str, period: str, now: datetime) -> dict[str, Any]:
    """Compute metrics and return a UI-friendly result payload."""

    result = compute_metrics(source, user_id, period, now)
    mood = result.mood_stats
    return {
        "summary": {
            "consistency_percent": result.consistency_percent,
            "daily_average": round(result.daily_average, 2),
            "completed_units": result.completed_units,
            "possible_units": result.possible_units,
            "current_streak": result.current_streak,
        },
        "series": [{"day": p.day_label, "date": p.date.isoformat(), "value": p.value} for p in result.weekly_series],
        "routines": result.routine_category_percent,
        "mood": None
        if mood is None
        else {
            "predominant": mood.predominant_mood,
            "mean": round(mood.mean, 2),
            "std_dev": round(mood.std_dev, 3),
            "volatility": _volatility_level(mood.volatility_tier),
            "distribution": mood.distribution,
        },
        "top_reasons": [{"reason": r.label, "count": r.count} for r in result.top_reasons],
        "top_tags": [{"tag": t.label, "count": t.count} for t in result.top_tags],
        "insight": None if result.insight is None else {
            "title": result.insight.title,
            "body": result.insight.body,
            "suggestion": result.insight.suggestion,
        },
    }


def main() -> None:
    import streamlit as st

    st.set_page_config(page_title="Engagement Engine Demo", layout="wide")
    st.title("Engagement Engine Streamlit Demo")

    with st.sidebar:
        st.header("Controls")
        uploaded = st.file_uploader("Upload records file", type=["json"])
        use_demo = st.checkbox("Load demo dataset", value=True)
        data_path = DEMO_DATA if use_demo else (_save_uploaded(uploaded) if uploaded is not None else None)
        try:
            users = _users_in(data_path) if data_path else []
        except (OSError, ValueError) as exc:
            st.error(f"Input error: {exc}")
            users = []
        user_id = st.selectbox("User", options=users) if users else None
        period = st.selectbox("Period", options=list(PERIOD_TOKENS), index=2)
        day = st.date_input("Today", value=datetime(2025, 3, 14).date())
        hour = st.slider("Now hour", min_value=0, max_value=23, value=20)
        run = st.button("Run engine", type="primary")

        st.header("Journal feedback")
        mood_choice = st.selectbox("Mood", options=list(MOOD_SCORES))
        reasons = st.text_input("Reasons (comma separated)", value="")
        st.caption(entry_feedback(mood_choice, [r.strip() for r in reasons.split(",") if r.strip()]))

    if not run:
        st.info("Configure inputs in the sidebar and click **Run engine**.")
        return

    if data_path is None:
        st.error("Please upload a JSON file or enable 'Load demo dataset'.")
        return
    if user_id is None:
        st.error("No users were found in the selected input.")
        return

    try:
        now = datetime.combine(day, time(hour=hour))
        result = run_engine(JsonDataSource(data_path), user_id, period, now)

        st.success(f"Loaded records for {user_id} from {Path(data_path).name}.")

        st.subheader("A) Consistency")
        summary = result["summary"]
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Consistency", f"{summary['consistency_percent']}%")
        c2.metric("Daily average", summary["daily_average"])
        c3.metric("Micro-steps", f"{summary['completed_units']}/{summary['possible_units']}")
        c4.metric("Current streak", summary["current_streak"])
        st.bar_chart({p["date"]: p["value"] for p in result["series"]})

        st.subheader("B) Routines")
        st.table([result["routines"]])

        st.subheader("C) Mood")
        if result["mood"] is None:
            st.write("Not enough journal entries for this period.")
        else:
            m1, m2, m3 = st.columns(3)
            m1.metric("Predominant", result["mood"]["predominant"])
            m2.metric("Mean", result["mood"]["mean"])
            m3.metric("Volatility", result["mood"]["volatility"])
            st.table([result["mood"]["distribution"]])
            st.write("**Top reasons**")
            st.table(result["top_reasons"])
            st.write("**Top tags**")
            st.table(result["top_tags"])

        if result["insight"] is not None:
            st.subheader(f"D) {result['insight']['title']}")
            st.write(result["insight"]["body"])
            st.write(f"_{result['insight']['suggestion']}_")

    except EngineError as exc:
        st.error(f"Engine error: {exc.user_message()}")
    except ValueError as exc:
        st.error(f"Input error: {exc}")


if __name__ == "__main__":
    main()
