"""
One copilot pass over a batch of discovered jobs.

Runs: load profile/store → sheet import → batch (skip / apply / review) → report.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from job_copilot.bootstrap import build_runtime
from job_copilot.errors import MirrorError
from job_copilot.log import get_logger
from job_copilot.models import Job, SearchMode
from job_copilot.report import build_batch_report, write_batch_report

log = get_logger(__name__)


def load_jobs(path: Path) -> list[Job]:
    """Read discovered (already scored) jobs from a JSON list."""
    with open(path, "r", encoding="utf-8") as f:
        rows = json.load(f)
    if not isinstance(rows, list):
        raise ValueError(f"{path.name} must hold a JSON list of jobs")
    jobs: list[Job] = []
    for row in rows:
        try:
            jobs.append(Job.from_dict(row))
        except (KeyError, TypeError, ValueError) as exc:
            log.warning("Skipping malformed job entry: %s", exc)
    return jobs


def run(
    jobs_path: Path,
    *,
    mode: SearchMode | None = None,
    profile_path: Path | None = None,
    store_path: Path | None = None,
    sync_sheet: bool = True,
    write_report: bool = True,
) -> dict[str, Any]:
    runtime = build_runtime(profile_path, store_path)
    try:
        if sync_sheet and runtime.reconciliation is not None:
            try:
                runtime.reconciliation.import_from_mirror(runtime.store)
            except MirrorError as exc:
                log.error("Sheet import failed: %s", exc)

        jobs = load_jobs(jobs_path)
        if mode is None:
            mode = SearchMode.AUTONOMOUS if runtime.profile.autonomous_mode else SearchMode.REVIEW
        log.info("Processing %d discovered job(s) in %s mode", len(jobs), mode.value)

        batch = runtime.engine.process_discovered_batch(jobs, runtime.profile, mode)

        report_path = None
        report_content = build_batch_report(batch, runtime.store.all())
        if write_report:
            report_path = write_batch_report(report_content)
    finally:
        runtime.close()

    log.info(
        "Run complete — jobs=%d, applied=%d, failed=%d, review=%d",
        len(batch.entries), batch.submitted_count, batch.failed_count, len(batch.review_jobs),
    )
    return {
        "jobs_found": len(batch.entries),
        "applied": batch.submitted_count,
        "failed": batch.failed_count,
        "review": [j.id for j in batch.review_jobs],
        "narrative": batch.narrative,
        "report_path": str(report_path) if report_path else None,
    }
