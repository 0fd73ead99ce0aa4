"""Compute engagement metrics for one user from a JSON data file."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from engagement_engine.adapters.json_adapter import JsonDataSource
from engagement_engine.config import load_config
from engagement_engine.errors import EngineError
from engagement_engine.log_utils import get_logger, setup_logging
from engagement_engine.periods import PERIOD_TOKENS
from engagement_engine.pipeline import compute_metrics


def main() -> int:
    parser = argparse.ArgumentParser(description="Compute engagement metrics for a user and period")
    parser.add_argument("--data", required=True, help="Path to the JSON records file")
    parser.add_argument("--user", required=True, help="User id inside the data file")
    parser.add_argument("--period", default="Week", help=f"One of {', '.join(PERIOD_TOKENS)}")
    parser.add_argument("--now", help="ISO timestamp used as the current time (default: system clock)")
    parser.add_argument("--config", help="Optional YAML config overrides")
    parser.add_argument("--log-dir", help="Directory for the rotating log file")
    parser.add_argument("--verbose", action="store_true", help="Log debug details to the log file")
    args = parser.parse_args()

    setup_logging("DEBUG" if args.verbose else "INFO", log_dir=args.log_dir)
    logger = get_logger("cli")

    try:
        config = load_config(args.config)
        now = datetime.fromisoformat(args.now) if args.now else datetime.now().astimezone()
        source = JsonDataSource(args.data, config=config)
        result = compute_metrics(source, args.user, args.period, now, config)
    except EngineError as exc:
        logger.error(exc.user_message())
        return 1
    except ValueError as exc:
        logger.error("Invalid argument: %s", exc)
        return 2

    report = result.to_dict()
    print(json.dumps(report, indent=2, ensure_ascii=False))

    outputs_dir = Path("outputs")
    outputs_dir.mkdir(parents=True, exist_ok=True)
    out_path = outputs_dir / f"metrics_{args.user}_{result.period.token.lower()}.json"
    out_path.write_text(json.dumps(report, indent=2, ensure_ascii=False), encoding="utf-8")
    print(f"Saved metrics report to {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
