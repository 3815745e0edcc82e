"""Agent narrative lines and the Markdown batch report."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from job_copilot.config import REPORTS_DIR
from job_copilot.log import get_logger
from job_copilot.models import (
    DISPOSITION_FAILED,
    DISPOSITION_REVIEW,
    DISPOSITION_SKIPPED,
    DISPOSITION_SUBMITTED,
    FAILURE_GENERATION,
    FAILURE_INFRASTRUCTURE,
    FAILURE_TIMEOUT,
    Application,
    BatchOutcome,
    Job,
    SubmissionOutcome,
    UserProfile,
)

log = get_logger(__name__)

_FAIL_REASONS: dict[str, str] = {
    "playwright not installed": "Browser automation missing — `pip install playwright && playwright install chromium`",
    "executable doesn't exist": "Browser not installed — run `playwright install chromium`",
    "timed out": "Timed out — verify on the site before retrying",
    "could not reach the automation service": "Automation service unreachable",
    "no source url": "Posting has no link to open",
    "no agent email": "Agent credentials missing — set AGENT_EMAIL / AGENT_PASSWORD",
    "not supported for easy apply": "Easy Apply unavailable and Complex Apply did not finish",
    "submit button not found": "Form submit button not found",
}


def short_reason(log_lines: list[str]) -> str:
    text = " ".join(log_lines).lower()
    for key, msg in _FAIL_REASONS.items():
        if key in text:
            return msg
    last = next((line for line in reversed(log_lines) if "[INFO]" not in line), "")
    return last[:80] + ("…" if len(last) > 80 else "")


def submission_narrative(profile: UserProfile, job: Job, outcome: SubmissionOutcome) -> str:
    who = profile.name or "there"
    if outcome.skipped:
        return f"The {job.title} role at {job.company} was already processed, so I left it as it is."
    if outcome.success:
        return (
            f"Hi {who}! I've just submitted your application for the {job.title} role at {job.company}. "
            "You can view the details in 'My Applications'."
        )
    if outcome.failure_kind == FAILURE_GENERATION:
        cause = "I couldn't generate the application documents"
    elif outcome.failure_kind in (FAILURE_INFRASTRUCTURE, FAILURE_TIMEOUT):
        cause = "the automation itself failed (not the employer)"
    else:
        cause = "the application was not accepted by the site"
    return (
        f"Hi {who}. I attempted to apply for the {job.title} role at {job.company} but {cause}. "
        "I have tracked the job in 'My Applications' so you can review the agent log and apply manually if you wish."
    )


def batch_narrative(profile: UserProfile, batch: BatchOutcome) -> str:
    submitted = len(batch.by_disposition(DISPOSITION_SUBMITTED))
    failed = len(batch.by_disposition(DISPOSITION_FAILED))
    review = len(batch.by_disposition(DISPOSITION_REVIEW))
    skipped = len(batch.by_disposition(DISPOSITION_SKIPPED))

    if submitted == failed == review == 0:
        return (
            f"Hi {profile.name or 'there'}. I couldn't find any new jobs matching your profile right now. "
            "You might want to try broadening your criteria or check back later."
        )

    if batch.mode.value == "review":
        parts = [f"Hi {profile.name or 'there'}! I've found {review} potential job(s) for you. Review them and decide on the next action."]
    else:
        parts = []
        if submitted:
            parts.append(f"I've successfully and autonomously applied to {submitted} high-match job(s) for you.")
        if failed:
            parts.append(
                f"I attempted to apply to {failed} other high-match job(s) but encountered an issue. "
                "I've added them to your review list."
            )
        if review:
            parts.append(f"I also found {review} other promising role(s) for you to check out.")
    if skipped:
        parts.append(f"{skipped} job(s) were already in your pipeline and were skipped.")
    return " ".join(parts)


def selection_narrative(outcomes: list[SubmissionOutcome]) -> str:
    ok = sum(1 for o in outcomes if o.success and not o.skipped)
    skipped = sum(1 for o in outcomes if o.skipped)
    failed = sum(1 for o in outcomes if not o.success)
    line = (
        f"Batch application complete! I successfully applied to {ok} job(s). "
        f"There were issues with {failed} job(s), which remain in the list for your review."
    )
    if skipped:
        line += f" {skipped} job(s) had already been processed."
    return line


def build_batch_report(batch: BatchOutcome, applications: list[Application]) -> str:
    date = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M")
    lines: list[str] = [f"# Job Copilot Report — {date} ({batch.mode.value} mode)", ""]
    lines.append(
        f"**{len(batch.entries)}** jobs | **{batch.submitted_count}** applied by agent | "
        f"**{batch.failed_count}** failed | **{len(batch.by_disposition(DISPOSITION_REVIEW))}** for review"
    )
    lines.append("")
    if batch.narrative:
        lines.append(f"> {batch.narrative}")
        lines.append("")

    if batch.entries:
        lines.append("| Role | Company | Fit | Result | Note |")
        lines.append("|------|---------|----:|--------|------|")
        for outcome in batch.entries.values():
            job = outcome.job
            fit = "—" if job.fit_score is None else f"{job.fit_score}%"
            note = ""
            if outcome.disposition == DISPOSITION_FAILED and outcome.submission:
                note = short_reason(outcome.submission.log)
            title = job.title[:40] + ("…" if len(job.title) > 40 else "")
            lines.append(f"| {title} | {job.company[:22]} | {fit} | {outcome.disposition} | {note} |")
        lines.append("")

    if applications:
        lines.append("## Pipeline")
        lines.append("")
        for app in applications[:10]:
            link = f" [Posting]({app.job.source_url})" if app.job.source_url else ""
            when = f" — {app.applied_date}" if app.applied_date else ""
            lines.append(f"- **{app.job.title}** @ {app.job.company} — _{app.status.value}_{when}{link}")
        lines.append("")

    log.info("Built batch report: %d jobs, %d applied", len(batch.entries), batch.submitted_count)
    return "\n".join(lines)


def write_batch_report(content: str, reports_dir: Path = REPORTS_DIR) -> Path:
    reports_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H%M%S")
    path = reports_dir / f"batch_{stamp}.md"
    path.write_text(content, encoding="utf-8")
    log.info("Report written → %s", path)
    return path
