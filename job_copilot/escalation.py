"""Two-tier submission: Easy Apply first, Complex Apply only when Easy Apply is unsupported."""
from __future__ import annotations

from typing import Callable, Sequence

from job_copilot.errors import InfrastructureTimeout
from job_copilot.log import get_job_logger
from job_copilot.models import (
    FAILURE_EMPLOYER,
    FAILURE_INFRASTRUCTURE,
    FAILURE_TIMEOUT,
    FAILURE_UNSUPPORTED,
    Job,
    SubmissionOutcome,
    UserProfile,
)
from job_copilot.submitter import ApplicationSubmitter

UNSUPPORTED_SENTINEL = "not supported for Easy Apply"

EASY_APPLY = "Easy Apply"
COMPLEX_APPLY = "Complex Apply"

# Attempts whose outcome is unknown never escalate.
_NO_ESCALATION = (FAILURE_TIMEOUT, FAILURE_INFRASTRUCTURE)

# Runs one collaborator call: (label, fn, *args) -> result. The engine
# passes a runner that enforces its timeout.
CallRunner = Callable[..., SubmissionOutcome]


def _direct(label: str, fn: Callable[..., SubmissionOutcome], *args: object) -> SubmissionOutcome:
    return fn(*args)


def is_unsupported_signal(log: Sequence[str]) -> bool:
    """True when an attempt's log says the strategy cannot work for this posting at all."""
    needle = UNSUPPORTED_SENTINEL.lower()
    return any(needle in line.lower() for line in log)


class EscalationPolicy:
    def __init__(self, submitter: ApplicationSubmitter, runner: CallRunner | None = None) -> None:
        self.submitter = submitter
        self.runner = runner or _direct

    def submit(self, job: Job, profile: UserProfile) -> SubmissionOutcome:
        log = get_job_logger(__name__, job.id)
        lines: list[str] = [f'[INFO] Attempting "{EASY_APPLY}" strategy...']

        easy = self._attempt(EASY_APPLY, self.submitter.easy_apply, job, profile)
        lines.extend(easy.log)
        if easy.success:
            log.info("%s succeeded", EASY_APPLY)
            return self._final(job, easy, lines)

        if easy.failure_kind not in _NO_ESCALATION and is_unsupported_signal(easy.log):
            log.info("%s unsupported, escalating to %s", EASY_APPLY, COMPLEX_APPLY)
            lines.append(
                f'[INFO] "{EASY_APPLY}" not available. Escalating to "{COMPLEX_APPLY}" using credentials from vault...'
            )
            lines.append(f'[INFO] Attempting "{COMPLEX_APPLY}" strategy...')
            complex_ = self._attempt(COMPLEX_APPLY, self.submitter.complex_apply, job, profile)
            lines.extend(complex_.log)
            if complex_.success:
                log.info("%s succeeded", COMPLEX_APPLY)
            return self._final(job, complex_, lines)

        # Any other failure is final: no second strategy, no retry.
        log.warning("%s failed without an unsupported signal; not escalating", EASY_APPLY)
        if easy.failure_kind is None:
            easy.failure_kind = FAILURE_EMPLOYER
        return self._final(job, easy, lines)

    def _attempt(self, label: str, fn: Callable[..., SubmissionOutcome], job: Job, profile: UserProfile) -> SubmissionOutcome:
        try:
            result = self.runner(label, fn, job, profile)
        except InfrastructureTimeout as exc:
            return SubmissionOutcome(
                success=False,
                job_id=job.id,
                failure_kind=FAILURE_TIMEOUT,
                log=[
                    f'[ERROR][INFRA] "{label}" {exc}.',
                    "[WARN] The site may have received a partial application. Verify manually before retrying.",
                ],
            )
        except Exception as exc:
            return SubmissionOutcome(
                success=False,
                job_id=job.id,
                failure_kind=FAILURE_INFRASTRUCTURE,
                log=[f'[ERROR][INFRA] "{label}" automation failure: {str(exc)[:200]}'],
            )
        return SubmissionOutcome(
            success=bool(result.success),
            log=list(result.log),
            job_id=job.id,
            failure_kind=result.failure_kind,
        )

    @staticmethod
    def _final(job: Job, attempt: SubmissionOutcome, lines: list[str]) -> SubmissionOutcome:
        failure_kind = None if attempt.success else (attempt.failure_kind or FAILURE_EMPLOYER)
        if failure_kind == FAILURE_EMPLOYER and is_unsupported_signal(attempt.log):
            failure_kind = FAILURE_UNSUPPORTED
        return SubmissionOutcome(success=attempt.success, log=lines, job_id=job.id, failure_kind=failure_kind)
