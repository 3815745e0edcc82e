#!/usr/bin/env python3
"""Entry point: process a JSON file of discovered jobs."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from job_copilot.config import PROFILE_PATH
from job_copilot.errors import ConfigurationError
from job_copilot.log import get_logger
from job_copilot.models import SearchMode

log = get_logger(__name__)


def _check_setup() -> bool:
    """Return True if first-run setup is needed."""
    if not PROFILE_PATH.exists():
        print()
        print("  No profile found. Copy the example and fill it in first:")
        print("    cp config/profile.example.yaml config/profile.yaml")
        print()
        return True
    return False


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("jobs", type=Path, help="JSON list of discovered jobs")
    parser.add_argument("--mode", choices=[m.value for m in SearchMode], default=None)
    parser.add_argument("--no-sheet", action="store_true", help="skip the Google Sheet import")
    parser.add_argument("--no-report", action="store_true")
    args = parser.parse_args()

    if _check_setup():
        sys.exit(1)

    from job_copilot.run import run

    try:
        result = run(
            args.jobs,
            mode=SearchMode(args.mode) if args.mode else None,
            sync_sheet=not args.no_sheet,
            write_report=not args.no_report,
        )
    except ConfigurationError as exc:
        log.error("%s", exc)
        sys.exit(2)
    log.info("Run complete.")
    log.info("  Jobs: %d", result["jobs_found"])
    log.info("  Applied by agent: %d", result["applied"])
    log.info("  Failed: %d", result["failed"])
    log.info("  For review: %d", len(result["review"]))
    log.info("  %s", result["narrative"])
    if result["report_path"]:
        log.info("  Report: %s", result["report_path"])
