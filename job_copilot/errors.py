"""Exception types raised across the copilot."""
from __future__ import annotations


class CopilotError(Exception):
    """Base class for every error this package raises on purpose."""


class ConfigurationError(CopilotError):
    """Profile or settings are missing something a batch cannot run without."""


class InvalidTransitionError(CopilotError):
    """A status change the application lifecycle does not allow."""


class GenerationFailure(CopilotError):
    """The document generator failed or returned nothing usable."""


class SubmissionError(CopilotError):
    """The submitter could not complete a call (not an employer-side rejection)."""


class SubmitterUnavailable(SubmissionError):
    """The automation backend or browser could not be reached at all."""


class InfrastructureTimeout(SubmissionError):
    """A collaborator call exceeded its time budget."""

    def __init__(self, what: str, timeout_sec: float) -> None:
        super().__init__(f"{what} timed out after {timeout_sec:g}s")
        self.what = what
        self.timeout_sec = timeout_sec


class DocumentStoreError(CopilotError):
    """External document persistence failed."""


class MirrorError(CopilotError):
    """The spreadsheet mirror rejected or failed a request."""
