"""Build the engine and its collaborators from the profile and environment."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from job_copilot.config import DATA_DIR, EngineSettings, ensure_dirs, get_env, load_profile, try_load_vault
from job_copilot.docstore import DocumentStore, GoogleDriveDocumentStore, LocalDocumentStore
from job_copilot.engine import OrchestrationEngine
from job_copilot.generator import get_generator
from job_copilot.log import get_logger
from job_copilot.models import UserProfile
from job_copilot.persistence import JsonFileBackend
from job_copilot.reconcile import ReconciliationService, SheetSyncScheduler
from job_copilot.sheets import GoogleSheetsMirror
from job_copilot.store import ApplicationStore
from job_copilot.submitter import (
    ApplicationSubmitter,
    AutomationServiceSubmitter,
    BrowserSubmitter,
    resume_path_from_env,
)

log = get_logger(__name__)


@dataclass
class Runtime:
    profile: UserProfile
    store: ApplicationStore
    engine: OrchestrationEngine
    reconciliation: ReconciliationService | None = None
    scheduler: SheetSyncScheduler | None = None

    def close(self) -> None:
        if self.scheduler is not None:
            self.scheduler.flush()
            self.scheduler.close()
        self.engine.close()


def build_submitter() -> ApplicationSubmitter:
    service_url = get_env("AUTOMATION_SERVICE_URL")
    if service_url:
        log.info("Submitting through automation service at %s", service_url)
        return AutomationServiceSubmitter(service_url, token=get_env("AUTOMATION_SERVICE_TOKEN"))
    headless = get_env("RUN_HEADLESS", "true").lower() in ("1", "true", "yes")
    return BrowserSubmitter(headless=headless, resume_path=resume_path_from_env())


def build_document_store(profile: UserProfile) -> DocumentStore:
    token = get_env("GOOGLE_ACCESS_TOKEN")
    if profile.gdrive_linked and token:
        return GoogleDriveDocumentStore(token, folder_id=get_env("GOOGLE_DRIVE_FOLDER_ID") or None)
    return LocalDocumentStore(DATA_DIR / "documents")


def build_runtime(profile_path: Path | None = None, store_path: Path | None = None) -> Runtime:
    try_load_vault()
    ensure_dirs()
    profile = load_profile(profile_path)
    settings = EngineSettings.from_env()

    store = ApplicationStore(JsonFileBackend(store_path or DATA_DIR / "applications.json"))
    store.load()

    engine = OrchestrationEngine(
        store,
        get_generator(get_env),
        build_submitter(),
        document_store=build_document_store(profile),
        settings=settings,
        on_message=lambda msg: log.info("Agent: %s", msg),
    )

    runtime = Runtime(profile=profile, store=store, engine=engine)
    token = get_env("GOOGLE_ACCESS_TOKEN")
    if profile.sheet_id and token:
        mirror = GoogleSheetsMirror(profile.sheet_id, token)
        runtime.reconciliation = ReconciliationService(mirror)
        runtime.scheduler = SheetSyncScheduler(store, mirror, delay_sec=settings.sheet_sync_debounce_sec).attach()
        log.info("Mirroring applications to %s", mirror.url)
    return runtime
