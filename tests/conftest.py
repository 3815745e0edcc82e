import os
import threading
import time

os.environ.setdefault("COPILOT_LOG_TO_FILE", "false")

import pytest

from job_copilot.config import EngineSettings
from job_copilot.docstore import DocumentStore
from job_copilot.engine import OrchestrationEngine
from job_copilot.errors import DocumentStoreError
from job_copilot.generator import DocumentGenerator
from job_copilot.models import Job, SubmissionOutcome, UserProfile
from job_copilot.sheets import SpreadsheetMirror
from job_copilot.store import ApplicationStore
from job_copilot.submitter import ApplicationSubmitter


class FakeGenerator(DocumentGenerator):
    def __init__(
        self,
        delay: float = 0.0,
        fail_for: set[str] | None = None,
        text: str | None = None,
        fail_kinds: set[str] | None = None,
    ):
        self.delay = delay
        self.fail_for = fail_for or set()
        self.fail_kinds = fail_kinds
        self.text = text
        self.calls: list[tuple[str, str]] = []
        self.experiments_seen: list[list[str]] = []
        self._lock = threading.Lock()

    def generate(self, kind, profile, job, active_experiments=()):
        with self._lock:
            self.calls.append((job.id, kind.value))
            self.experiments_seen.append([e.id for e in active_experiments])
        if self.delay:
            time.sleep(self.delay)
        if job.id in self.fail_for and (self.fail_kinds is None or kind.value in self.fail_kinds):
            raise RuntimeError("model overloaded")
        if self.text is not None:
            return self.text
        return f"{kind.value} for {job.title} at {job.company}"

    def count(self, job_id: str, kind: str | None = None) -> int:
        with self._lock:
            return sum(1 for j, k in self.calls if j == job_id and (kind is None or k == kind))


class FakeSubmitter(ApplicationSubmitter):
    """Scripted submitter: per job id, what easy and complex apply return."""

    def __init__(
        self,
        easy=None,
        complex_=None,
        raise_for: set[str] | None = None,
        delay: float = 0.0,
        hang_for: set[str] | None = None,
    ):
        self.easy = easy or {}
        self.complex = complex_ or {}
        self.raise_for = raise_for or set()
        self.delay = delay
        self.hang_for = hang_for or set()
        # Hung easy_apply calls block until this is set.
        self.release = threading.Event()
        self.easy_calls: list[str] = []
        self.complex_calls: list[str] = []
        self._lock = threading.Lock()

    def easy_apply(self, job, profile):
        with self._lock:
            self.easy_calls.append(job.id)
        if job.id in self.hang_for:
            self.release.wait(timeout=10)
        if self.delay:
            time.sleep(self.delay)
        if job.id in self.raise_for:
            raise RuntimeError("browser crashed")
        return self.easy.get(job.id, SubmissionOutcome(success=True, log=["[SUCCESS] Submitted via Easy Apply."]))

    def complex_apply(self, job, profile):
        with self._lock:
            self.complex_calls.append(job.id)
        return self.complex.get(job.id, SubmissionOutcome(success=True, log=["[SUCCESS] Submitted via career site."]))


class FakeDocumentStore(DocumentStore):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.saved: dict[str, str] = {}

    def save(self, name, content):
        if self.fail:
            raise DocumentStoreError("drive quota exceeded")
        self.saved[name] = content
        return f"https://docs.example/{name}"


class FakeMirror(SpreadsheetMirror):
    def __init__(self, rows=None, fail: bool = False):
        self.rows = list(rows or [])
        self.fail = fail
        self.synced: list[list] = []

    def import_all(self):
        return [a.copy() for a in self.rows]

    def sync_all(self, applications):
        if self.fail:
            raise RuntimeError("sheet unavailable")
        self.synced.append(list(applications))


def make_job(job_id: str, fit: int | None = None, company: str = "Acme", title: str | None = None, url: str | None = None) -> Job:
    return Job(
        id=job_id,
        company=company,
        title=title or f"Engineer {job_id}",
        location="Remote",
        description="Build things.",
        source_url=url or f"https://www.linkedin.com/jobs/view/{job_id}",
        fit_score=fit,
    )


@pytest.fixture()
def profile():
    return UserProfile(
        name="Jane Doe",
        email="jane@example.com",
        summary="Backend engineer.",
        base_cv="Jane Doe\nBackend Engineer",
        key_skills=["Python", "SQL"],
        autonomous_mode=True,
    )


@pytest.fixture()
def store():
    return ApplicationStore()


@pytest.fixture()
def generator():
    return FakeGenerator()


@pytest.fixture()
def submitter():
    return FakeSubmitter()


@pytest.fixture()
def make_engine(store, generator, submitter):
    engines = []

    def _make(**kwargs):
        kwargs.setdefault("settings", EngineSettings(max_workers=4, generation_timeout_sec=5, submission_timeout_sec=5))
        engine = OrchestrationEngine(
            kwargs.pop("store", store),
            kwargs.pop("generator", generator),
            kwargs.pop("submitter", submitter),
            **kwargs,
        )
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.close()
