#!/usr/bin/env python3
import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

REPO_BACKEND = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_BACKEND))

from eventra.config import Settings, configure_logging  # noqa: E402
from eventra.services.container import Services  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Repair awarded bid requests without a booking and bookings left behind by failed awards."
    )
    parser.add_argument("--db-path", default="", help="Override EVENTRA_DB_PATH for the sqlite backend.")
    parser.add_argument("--json-out", default="", help="Optional path to write the JSON report.")
    args = parser.parse_args()

    settings = Settings.from_env()
    if args.db_path:
        settings = dataclasses.replace(settings, db_path=args.db_path)
    configure_logging(settings.log_level)

    report = Services.build(settings).bids.reconcile_awarded_requests()
    for key, value in report.items():
        print(f"{key:>24}: {value}")

    if args.json_out:
        path = Path(args.json_out)
        path.write_text(json.dumps(report, indent=2) + "\n", encoding="utf-8")
        print(f"Wrote report: {path}")
    logging.getLogger(__name__).info("reconcile finished: %s", report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
