"""Application status transitions."""
from __future__ import annotations

from datetime import datetime, timezone

from job_copilot.errors import InvalidTransitionError
from job_copilot.models import Application, ApplicationStatus

S = ApplicationStatus

# Manual (user-driven) transitions. APPLIED_BY_AGENT is only ever entered
# through mark_applied_by_agent.
ALLOWED_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    S.TRACKED: frozenset({S.APPLIED, S.INTERVIEWING, S.REJECTED}),
    S.APPLIED: frozenset({S.INTERVIEWING, S.REJECTED}),
    S.APPLIED_BY_AGENT: frozenset({S.INTERVIEWING, S.REJECTED}),
    S.INTERVIEWING: frozenset({S.OFFER, S.REJECTED}),
    S.OFFER: frozenset({S.REJECTED}),
    S.REJECTED: frozenset({S.TRACKED, S.APPLIED, S.INTERVIEWING, S.OFFER}),
}

SUBMISSION_MARKER = "Attempting"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def stamp(line: str, now: str | None = None) -> str:
    return f"{now or utc_now()} {line}"


def transition(app: Application, new_status: ApplicationStatus, reason: str | None = None) -> Application:
    """Return a copy of ``app`` moved to ``new_status`` by the user."""
    if new_status == app.status:
        return app.copy()
    if new_status == S.APPLIED_BY_AGENT:
        raise InvalidTransitionError("'Applied by Agent' is set only by a successful submission")
    if new_status not in ALLOWED_TRANSITIONS[app.status]:
        raise InvalidTransitionError(f"Cannot move application {app.id} from {app.status.value} to {new_status.value}")

    updated = app.copy()
    updated.status = new_status
    if new_status == S.REJECTED:
        if not reason or not reason.strip():
            raise InvalidTransitionError("A rejection needs a non-empty reason")
        updated.rejection_reason = reason.strip()
    else:
        updated.rejection_reason = None
    return updated


def mark_applied_by_agent(app: Application, now: str | None = None) -> Application:
    if app.status != S.TRACKED:
        raise InvalidTransitionError(f"Only tracked applications can be applied by the agent (was {app.status.value})")
    if not any(SUBMISSION_MARKER in line for line in app.agent_log):
        raise InvalidTransitionError("No submission attempt recorded in the agent log")
    updated = app.copy()
    updated.status = S.APPLIED_BY_AGENT
    if updated.applied_date is None:
        updated.applied_date = now or utc_now()
    return updated
