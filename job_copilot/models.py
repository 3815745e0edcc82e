"""Data models for jobs, applications and outcomes."""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class ApplicationStatus(str, Enum):
    TRACKED = "Tracked"
    APPLIED = "Applied"
    APPLIED_BY_AGENT = "Applied by Agent"
    INTERVIEWING = "Interviewing"
    OFFER = "Offer"
    REJECTED = "Rejected"

    @classmethod
    def parse(cls, value: str | None) -> "ApplicationStatus | None":
        """Case-insensitive lookup by value or member name; None if unknown."""
        if not value:
            return None
        text = str(value).strip().lower()
        for status in cls:
            if text in (status.value.lower(), status.name.lower()):
                return status
        return None


class DocumentKind(str, Enum):
    CV = "CV"
    COVER_LETTER = "Cover Letter"
    INTERVIEW_PREP = "Interview Prep"

    @property
    def text_field(self) -> str:
        return _KIND_FIELDS[self][0]

    @property
    def url_field(self) -> str:
        return _KIND_FIELDS[self][1]

    @property
    def file_suffix(self) -> str:
        return _KIND_FIELDS[self][2]


_KIND_FIELDS: dict[DocumentKind, tuple[str, str, str]] = {
    DocumentKind.CV: ("tailored_cv", "cv_url", "CV"),
    DocumentKind.COVER_LETTER: ("cover_letter", "cover_letter_url", "CoverLetter"),
    DocumentKind.INTERVIEW_PREP: ("interview_prep_kit", "interview_prep_url", "InterviewPrep"),
}


class SearchMode(str, Enum):
    REVIEW = "review"
    AUTONOMOUS = "autonomous"


@dataclass(frozen=True)
class Job:
    id: str
    company: str
    title: str
    location: str = ""
    description: str = ""
    salary: str = ""
    source_url: str | None = None
    fit_score: int | None = None
    reasoning: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Job.id cannot be empty")
        if self.fit_score is not None and not 0 <= self.fit_score <= 100:
            raise ValueError(f"Job.fit_score must be within 0-100, got {self.fit_score}")

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Job":
        score = data.get("fit_score")
        return cls(
            id=str(data["id"]),
            company=data.get("company") or "",
            title=data.get("title") or "",
            location=data.get("location") or "",
            description=data.get("description") or "",
            salary=data.get("salary") or "",
            source_url=data.get("source_url") or None,
            fit_score=int(score) if score not in (None, "") else None,
            reasoning=data.get("reasoning") or None,
        )


@dataclass
class Application:
    """A tracked job plus everything the copilot has done for it."""

    job: Job
    status: ApplicationStatus = ApplicationStatus.TRACKED
    tailored_cv: str | None = None
    cover_letter: str | None = None
    interview_prep_kit: str | None = None
    agent_log: list[str] = field(default_factory=list)
    applied_date: str | None = None
    rejection_reason: str | None = None
    cv_url: str | None = None
    cover_letter_url: str | None = None
    interview_prep_url: str | None = None

    @property
    def id(self) -> str:
        return self.job.id

    def document(self, kind: DocumentKind) -> str | None:
        return getattr(self, kind.text_field)

    def copy(self) -> "Application":
        clone = Application(**{f.name: getattr(self, f.name) for f in fields(self)})
        clone.agent_log = list(self.agent_log)
        return clone

    def to_dict(self) -> dict[str, Any]:
        data = self.job.to_dict()
        for f in fields(self):
            if f.name == "job":
                continue
            value = getattr(self, f.name)
            data[f.name] = value.value if isinstance(value, ApplicationStatus) else value
        data["agent_log"] = list(self.agent_log)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Application":
        return cls(
            job=Job.from_dict(data),
            status=ApplicationStatus.parse(data.get("status")) or ApplicationStatus.TRACKED,
            tailored_cv=data.get("tailored_cv") or None,
            cover_letter=data.get("cover_letter") or None,
            interview_prep_kit=data.get("interview_prep_kit") or None,
            agent_log=list(data.get("agent_log") or []),
            applied_date=data.get("applied_date") or None,
            rejection_reason=data.get("rejection_reason") or None,
            cv_url=data.get("cv_url") or None,
            cover_letter_url=data.get("cover_letter_url") or None,
            interview_prep_url=data.get("interview_prep_url") or None,
        )


@dataclass
class UserProfile:
    name: str = ""
    email: str = ""
    summary: str = ""
    base_cv: str = ""
    key_skills: list[str] = field(default_factory=list)
    job_roles: list[str] = field(default_factory=list)
    locations: list[str] = field(default_factory=list)
    years_of_experience: str = ""
    autonomous_mode: bool = False
    minimum_fit_score: int | None = None
    gdrive_linked: bool = False
    sheet_id: str | None = None
    agent_email: str = ""
    agent_password: str = ""

    def missing_essentials(self) -> list[str]:
        missing: list[str] = []
        if not self.name.strip():
            missing.append("name")
        if not self.base_cv.strip():
            missing.append("base CV")
        return missing

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserProfile":
        """Build from the YAML layout (``profile:`` block plus top-level settings)."""
        block = data.get("profile") or {}

        def _list(value: Any) -> list[str]:
            if isinstance(value, str):
                return [v.strip() for v in value.split(",") if v.strip()]
            return [str(v) for v in value or []]

        min_score = data.get("minimum_fit_score")
        return cls(
            name=block.get("name", "") or "",
            email=block.get("email", "") or "",
            summary=block.get("summary", "") or "",
            base_cv=block.get("base_cv", "") or "",
            key_skills=_list(block.get("skills")),
            job_roles=_list(data.get("preferred_roles") or data.get("job_roles")),
            locations=_list(data.get("locations")),
            years_of_experience=str(block.get("years_experience", "") or ""),
            autonomous_mode=bool(data.get("autonomous_mode", False)),
            minimum_fit_score=int(min_score) if min_score not in (None, "") else None,
            gdrive_linked=bool(data.get("gdrive_linked", False)),
            sheet_id=data.get("sheet_id") or None,
            agent_email=data.get("agent_email", "") or "",
            agent_password=data.get("agent_password", "") or "",
        )


@dataclass
class Experiment:
    id: str
    hypothesis: str
    method: str
    status: str = "proposed"
    results: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"


FAILURE_EMPLOYER = "employer"
FAILURE_UNSUPPORTED = "unsupported"
FAILURE_INFRASTRUCTURE = "infrastructure"
FAILURE_TIMEOUT = "timeout"
FAILURE_GENERATION = "generation"


@dataclass
class SubmissionOutcome:
    success: bool
    log: list[str] = field(default_factory=list)
    job_id: str = ""
    failure_kind: str | None = None
    skipped: bool = False
    status: ApplicationStatus | None = None
    narrative: str = ""


DISPOSITION_SKIPPED = "skipped"
DISPOSITION_SUBMITTED = "submitted"
DISPOSITION_FAILED = "failed"
DISPOSITION_REVIEW = "review"


@dataclass
class JobOutcome:
    job: Job
    disposition: str
    submission: SubmissionOutcome | None = None
    narrative: str = ""


@dataclass
class BatchOutcome:
    mode: SearchMode
    entries: dict[str, JobOutcome] = field(default_factory=dict)
    narrative: str = ""

    def by_disposition(self, disposition: str) -> list[JobOutcome]:
        return [o for o in self.entries.values() if o.disposition == disposition]

    @property
    def review_jobs(self) -> list[Job]:
        """Jobs left for the user: plain review jobs first, then failed attempts."""
        review = [o.job for o in self.by_disposition(DISPOSITION_REVIEW)]
        failed = [o.job for o in self.by_disposition(DISPOSITION_FAILED)]
        return review + failed

    @property
    def submitted_count(self) -> int:
        return len(self.by_disposition(DISPOSITION_SUBMITTED))

    @property
    def failed_count(self) -> int:
        return len(self.by_disposition(DISPOSITION_FAILED))
