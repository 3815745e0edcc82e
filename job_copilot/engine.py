"""
Application orchestration engine.

Runs: dedup → partition (skip / autonomous / review) → documents → submission
with escalation → persistence → agent narrative.
"""
from __future__ import annotations

import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import replace
from typing import Any, Callable, Iterable, Sequence

from job_copilot.autonomy import AutonomyGate
from job_copilot.config import EngineSettings
from job_copilot.docstore import DocumentStore
from job_copilot.errors import ConfigurationError, GenerationFailure, InfrastructureTimeout
from job_copilot.escalation import EscalationPolicy
from job_copilot.fingerprint import already_tracked
from job_copilot.generator import DocumentGenerator
from job_copilot.lifecycle import mark_applied_by_agent, stamp, transition
from job_copilot.log import get_job_logger, get_logger
from job_copilot.models import (
    DISPOSITION_FAILED,
    DISPOSITION_REVIEW,
    DISPOSITION_SKIPPED,
    DISPOSITION_SUBMITTED,
    FAILURE_GENERATION,
    FAILURE_INFRASTRUCTURE,
    Application,
    ApplicationStatus,
    BatchOutcome,
    DocumentKind,
    Experiment,
    Job,
    JobOutcome,
    SearchMode,
    SubmissionOutcome,
    UserProfile,
)
from job_copilot.report import batch_narrative, selection_narrative, submission_narrative
from job_copilot.singleflight import SingleFlight
from job_copilot.store import ApplicationStore
from job_copilot.submitter import ApplicationSubmitter

log = get_logger(__name__)

# Agent messages kept on the engine; older ones are dropped.
MESSAGE_HISTORY = 200

_GENERATING: dict[DocumentKind, str] = {
    DocumentKind.CV: "[INFO] Generating ATS-optimized CV...",
    DocumentKind.COVER_LETTER: "[INFO] Generating compelling cover letter...",
    DocumentKind.INTERVIEW_PREP: "[INFO] Generating interview prep kit...",
}


def _dedupe(jobs: Iterable[Job]) -> list[Job]:
    seen: set[str] = set()
    out: list[Job] = []
    for job in jobs:
        if job.id not in seen:
            seen.add(job.id)
            out.append(job)
    return out


def require_profile(profile: UserProfile) -> None:
    missing = profile.missing_essentials()
    if missing:
        raise ConfigurationError(f"Please complete your profile first (missing: {', '.join(missing)})")


class OrchestrationEngine:
    def __init__(
        self,
        store: ApplicationStore,
        generator: DocumentGenerator,
        submitter: ApplicationSubmitter,
        *,
        document_store: DocumentStore | None = None,
        settings: EngineSettings | None = None,
        gate: AutonomyGate | None = None,
        experiments: Sequence[Experiment] = (),
        on_message: Callable[[str], None] | None = None,
    ) -> None:
        self.store = store
        self.generator = generator
        self.document_store = document_store
        self.settings = settings or EngineSettings()
        self.gate = gate or AutonomyGate(self.settings.autonomous_threshold)
        self.experiments = list(experiments)
        self.on_message = on_message
        self.messages: deque[str] = deque(maxlen=MESSAGE_HISTORY)

        self.escalation = EscalationPolicy(submitter, runner=self._run_submission)
        self._stray: set[threading.Thread] = set()
        self._stray_lock = threading.Lock()
        self._applies = SingleFlight()
        self._generations = SingleFlight()

    def close(self) -> None:
        with self._stray_lock:
            alive = [t for t in self._stray if t.is_alive()]
            self._stray.clear()
        if alive:
            log.warning("Closing with %d timed-out collaborator call(s) still running", len(alive))

    def __enter__(self) -> "OrchestrationEngine":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Collaborator calls
    # ------------------------------------------------------------------

    def _call(self, label: str, timeout_sec: float, fn: Callable[..., Any], *args: Any) -> Any:
        """Run fn on its own thread and wait at most timeout_sec for it.

        The clock starts when the call starts. A call that overruns is left
        running in the background; nothing else ever waits behind it.
        """
        future: Future = Future()

        def _target() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(fn(*args))
            except Exception as exc:
                future.set_exception(exc)

        worker = threading.Thread(target=_target, name=f"copilot-io-{label}", daemon=True)
        worker.start()
        try:
            return future.result(timeout=timeout_sec)
        except FuturesTimeout:
            with self._stray_lock:
                self._stray = {t for t in self._stray if t.is_alive()}
                self._stray.add(worker)
            raise InfrastructureTimeout(label, timeout_sec) from None

    def _run_submission(self, label: str, fn: Callable[..., SubmissionOutcome], *args: Any) -> SubmissionOutcome:
        return self._call(label, self.settings.submission_timeout_sec, fn, *args)

    def _emit(self, message: str) -> None:
        if not message:
            return
        self.messages.append(message)
        if self.on_message is not None:
            try:
                self.on_message(message)
            except Exception:
                log.exception("Agent message callback failed")

    @property
    def active_experiments(self) -> list[Experiment]:
        return [e for e in self.experiments if e.is_active]

    # ------------------------------------------------------------------
    # Tracking and manual status changes
    # ------------------------------------------------------------------

    def track_job(self, job: Job) -> bool:
        """Track one job; False when it was already tracked."""
        _, created = self.store.track(job)
        return created

    def track_jobs(self, jobs: Iterable[Job]) -> list[Application]:
        created = self.store.track_many(_dedupe(jobs))
        if created:
            self._emit(f"Successfully tracked {len(created)} job(s). You can find them in 'My Applications'.")
        return created

    def set_status(self, app_id: str, status: ApplicationStatus) -> Application | None:
        return self.store.update(app_id, lambda app: transition(app, status))

    def reject(self, app_id: str, reason: str) -> Application | None:
        return self.store.update(app_id, lambda app: transition(app, ApplicationStatus.REJECTED, reason))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def generate_document(self, job: Job, kind: DocumentKind, profile: UserProfile, *, regenerate: bool = False) -> str:
        """Cached text for (job, kind), generating it once if missing.

        Concurrent calls for the same pair share a single generator call; a
        regeneration never joins a plain generation already in flight.
        Raises GenerationFailure when the generator fails or returns nothing.
        """
        require_profile(profile)
        if not regenerate:
            cached = self._cached(job.id, kind)
            if cached:
                return cached
        text, _ = self._generations.do((job.id, kind, regenerate), lambda: self._generate_and_persist(job, kind, profile, regenerate))
        return text

    def generate_for_selection(self, jobs: Sequence[Job], kind: DocumentKind, profile: UserProfile) -> dict[str, str | None]:
        require_profile(profile)
        unique = _dedupe(jobs)
        results: dict[str, str | None] = {}
        with ThreadPoolExecutor(max_workers=self.settings.max_workers, thread_name_prefix="copilot-gen") as pool:
            futures = {pool.submit(self.generate_document, job, kind, profile): job for job in unique}
            for future in as_completed(futures):
                job = futures[future]
                try:
                    results[job.id] = future.result()
                except Exception as exc:
                    get_job_logger(__name__, job.id).warning("%s generation failed: %s", kind.value, exc)
                    results[job.id] = None
        done = sum(1 for v in results.values() if v)
        self._emit(f"Successfully generated {kind.value}s for {done} of {len(unique)} job(s).")
        return {job.id: results[job.id] for job in unique}

    def _cached(self, job_id: str, kind: DocumentKind) -> str | None:
        app = self.store.get(job_id)
        return app.document(kind) if app else None

    def _generate_and_persist(self, job: Job, kind: DocumentKind, profile: UserProfile, regenerate: bool) -> str:
        jlog = get_job_logger(__name__, job.id)
        if not regenerate:
            cached = self._cached(job.id, kind)
            if cached:
                return cached

        try:
            text = self._call(
                f"{kind.value} generation",
                self.settings.generation_timeout_sec,
                self.generator.generate,
                kind,
                profile,
                job,
                self.active_experiments,
            )
        except GenerationFailure as exc:
            self._note_failure(job.id, f"[ERROR] {kind.value} generation failed: {exc}")
            raise
        except Exception as exc:
            self._note_failure(job.id, f"[ERROR] {kind.value} generation failed: {exc}")
            raise GenerationFailure(f"{kind.value} generation failed: {exc}") from exc
        if not isinstance(text, str) or not text.strip():
            self._note_failure(job.id, f"[ERROR] {kind.value} generation returned no text")
            raise GenerationFailure(f"{kind.value} generation returned no text")

        url, note = self._save_document(job, kind, text)

        def _write(app: Application) -> Application | None:
            if app.document(kind) and not regenerate:
                return None
            setattr(app, kind.text_field, text)
            if url:
                setattr(app, kind.url_field, url)
            app.agent_log.append(stamp(f"[INFO] {kind.value} {'regenerated' if regenerate else 'generated'}."))
            if note:
                app.agent_log.append(stamp(note))
            return app

        stored = self.store.update_or_create(job, _write, note="[INFO] Job tracked after document generation.")
        jlog.info("%s ready (%d chars)", kind.value, len(stored.document(kind) or ""))
        return stored.document(kind) or text

    def _save_document(self, job: Job, kind: DocumentKind, text: str) -> tuple[str | None, str | None]:
        if self.document_store is None:
            return None, None
        name = f"{job.company}_{job.title}_{kind.file_suffix}"
        try:
            url = self._call("Document save", self.settings.generation_timeout_sec, self.document_store.save, name, text)
        except Exception as exc:
            get_job_logger(__name__, job.id).warning("Saving %s failed: %s", name, exc)
            return None, f"[WARN] Could not save {kind.value} externally ({exc}); no link available."
        return url, f"[SUCCESS] {kind.value} saved: {url}"

    def _note_failure(self, job_id: str, line: str) -> None:
        def _append(app: Application) -> Application:
            app.agent_log.append(stamp(line))
            return app

        self.store.update(job_id, _append)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def apply_to_one(self, job: Job, profile: UserProfile, *, autonomous: bool = False) -> SubmissionOutcome:
        """Generate missing documents, submit with escalation, persist the result.

        Safe to call repeatedly: a job that is past Tracked returns at once,
        and concurrent calls for the same id join the same run.
        """
        require_profile(profile)
        outcome, _ = self._applies.do(job.id, lambda: self._apply_pipeline(job, profile, autonomous))
        return replace(outcome, log=list(outcome.log))

    def apply_to_selection(self, jobs: Sequence[Job], profile: UserProfile) -> list[SubmissionOutcome]:
        require_profile(profile)
        outcomes = self._apply_many(_dedupe(jobs), profile, autonomous=False)
        self._emit(selection_narrative(outcomes))
        return outcomes

    def _apply_many(self, jobs: list[Job], profile: UserProfile, *, autonomous: bool) -> list[SubmissionOutcome]:
        results: dict[str, SubmissionOutcome] = {}
        with ThreadPoolExecutor(max_workers=self.settings.max_workers, thread_name_prefix="copilot-apply") as pool:
            futures = {pool.submit(self.apply_to_one, job, profile, autonomous=autonomous): job for job in jobs}
            for future in as_completed(futures):
                job = futures[future]
                try:
                    results[job.id] = future.result()
                except Exception as exc:
                    get_job_logger(__name__, job.id).exception("Apply pipeline crashed")
                    results[job.id] = SubmissionOutcome(
                        success=False,
                        job_id=job.id,
                        failure_kind=FAILURE_INFRASTRUCTURE,
                        log=[f"[ERROR][INFRA] Unexpected failure: {str(exc)[:200]}"],
                    )
        return [results[job.id] for job in jobs]

    def _apply_pipeline(self, job: Job, profile: UserProfile, autonomous: bool) -> SubmissionOutcome:
        """Documents, then submission, then the final record.

        If one document fails, the ones this run generated are discarded so
        the record never holds half a set.
        """
        jlog = get_job_logger(__name__, job.id)
        existing = self.store.get(job.id)
        if existing is not None and existing.status != ApplicationStatus.TRACKED:
            jlog.info("Already processed (%s); skipping", existing.status.value)
            outcome = SubmissionOutcome(
                success=True,
                job_id=job.id,
                skipped=True,
                status=existing.status,
                log=["[INFO] Job already processed."],
            )
            outcome.narrative = submission_narrative(profile, job, outcome)
            return outcome

        lines: list[str] = []
        if autonomous:
            lines.append(f"[INFO] Job found with high fit score of {job.fit_score}%. Initiating autonomous application.")
        else:
            lines.append("[INFO] Application requested. Preparing documents.")

        generated: dict[DocumentKind, str] = {}
        try:
            for kind in (DocumentKind.CV, DocumentKind.COVER_LETTER):
                if existing is not None and existing.document(kind):
                    lines.append(f"[INFO] Using existing {kind.value}.")
                    continue
                lines.append(_GENERATING[kind])
                generated[kind] = self.generate_document(job, kind, profile)
        except GenerationFailure as exc:
            jlog.warning("Not submitting: %s", exc)
            lines.append(f"[ERROR] Document generation failed: {exc}. Application not submitted.")
            lines.extend(self._discard_documents(job.id, generated))
            return self._finish(job, profile, SubmissionOutcome(success=False, job_id=job.id, failure_kind=FAILURE_GENERATION), lines)

        try:
            result = self.escalation.submit(job, profile)
        except Exception as exc:
            jlog.exception("Submission crashed")
            result = SubmissionOutcome(
                success=False,
                job_id=job.id,
                failure_kind=FAILURE_INFRASTRUCTURE,
                log=[f"[ERROR][INFRA] Submission crashed: {str(exc)[:200]}"],
            )
        lines.extend(result.log)
        return self._finish(job, profile, result, lines)

    def _discard_documents(self, job_id: str, generated: dict[DocumentKind, str]) -> list[str]:
        """Drop documents this run stored, unless someone replaced them since."""
        dropped: list[str] = []

        def _clear(app: Application) -> Application | None:
            for kind, text in generated.items():
                if app.document(kind) != text:
                    continue
                setattr(app, kind.text_field, None)
                setattr(app, kind.url_field, None)
                dropped.append(f"[INFO] Discarded the new {kind.value}; documents are kept only as a complete set.")
            return app if dropped else None

        if generated:
            self.store.update(job_id, _clear)
        return dropped

    def _finish(self, job: Job, profile: UserProfile, result: SubmissionOutcome, lines: list[str]) -> SubmissionOutcome:
        final_lines = list(lines)

        def _record(app: Application) -> Application:
            app.agent_log.extend(stamp(line) for line in final_lines)
            if result.success and app.status == ApplicationStatus.TRACKED:
                app = mark_applied_by_agent(app)
            elif result.success:
                # Status changed by the user mid-submission; keep theirs.
                app.agent_log.append(stamp(f"[WARN] Status changed to {app.status.value} during submission; keeping it."))
            closing = f"[INFO] Application process finished. Final status: {app.status.value}."
            app.agent_log.append(stamp(closing))
            final_lines.append(closing)
            return app

        stored = self.store.update_or_create(job, _record)
        outcome = SubmissionOutcome(
            success=result.success,
            log=final_lines,
            job_id=job.id,
            failure_kind=result.failure_kind,
            status=stored.status,
        )
        outcome.narrative = submission_narrative(profile, job, outcome)
        get_job_logger(__name__, job.id).info("Finished: %s", stored.status.value)
        self._emit(outcome.narrative)
        return outcome

    # ------------------------------------------------------------------
    # Discovery batches
    # ------------------------------------------------------------------

    def process_discovered_batch(self, jobs: Sequence[Job], profile: UserProfile, mode: SearchMode | str) -> BatchOutcome:
        mode = SearchMode(mode)
        unique = _dedupe(jobs)
        tracked = {job.id for job in unique if already_tracked(self.store, job)}
        fresh = [job for job in unique if job.id not in tracked]

        eligible: list[Job] = []
        if mode is SearchMode.AUTONOMOUS:
            eligible = [job for job in fresh if self.gate.should_act_autonomously(job, profile)]
            if eligible:
                require_profile(profile)
        eligible_ids = {job.id for job in eligible}

        submissions: dict[str, SubmissionOutcome] = {}
        if eligible:
            log.info("Autonomous batch: %d eligible of %d new job(s)", len(eligible), len(fresh))
            for outcome in self._apply_many(eligible, profile, autonomous=True):
                submissions[outcome.job_id] = outcome

        batch = BatchOutcome(mode=mode)
        for job in unique:
            if job.id in tracked:
                batch.entries[job.id] = JobOutcome(job=job, disposition=DISPOSITION_SKIPPED, narrative="Already tracked.")
            elif job.id in eligible_ids:
                sub = submissions[job.id]
                disposition = DISPOSITION_SUBMITTED if sub.success and not sub.skipped else DISPOSITION_FAILED
                if sub.skipped:
                    disposition = DISPOSITION_SKIPPED
                batch.entries[job.id] = JobOutcome(job=job, disposition=disposition, submission=sub, narrative=sub.narrative)
            else:
                batch.entries[job.id] = JobOutcome(job=job, disposition=DISPOSITION_REVIEW, narrative="Ready for your review.")

        batch.narrative = batch_narrative(profile, batch)
        self._emit(batch.narrative)
        return batch
