"""Merge the spreadsheet mirror into the local store, and push local state back to it."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable

from job_copilot.fingerprint import cross_source_key, is_degenerate_key
from job_copilot.log import get_logger
from job_copilot.models import Application
from job_copilot.sheets import SpreadsheetMirror
from job_copilot.store import ApplicationStore

log = get_logger(__name__)


@dataclass
class ReconciliationReport:
    imported: list[Application] = field(default_factory=list)
    message: str = ""

    @property
    def imported_count(self) -> int:
        return len(self.imported)


class ReconciliationService:
    def __init__(self, mirror: SpreadsheetMirror) -> None:
        self.mirror = mirror

    @staticmethod
    def merge(local: list[Application], imported: list[Application]) -> list[Application]:
        """Pure merge: imports unknown to ``local`` go first, local records always win.

        An import is dropped when its id is already present or its
        company/title key matches a local record. Degenerate keys (blank
        company or title) never match by key, only by id.
        """
        taken_ids = {a.id for a in local}
        taken_keys = set()
        for app in local:
            key = cross_source_key(app.job.company, app.job.title)
            if not is_degenerate_key(key):
                taken_keys.add(key)

        fresh: list[Application] = []
        for app in imported:
            key = cross_source_key(app.job.company, app.job.title)
            degenerate = is_degenerate_key(key)
            if app.id in taken_ids or (not degenerate and key in taken_keys):
                continue
            fresh.append(app.copy())
            taken_ids.add(app.id)
            if not degenerate:
                taken_keys.add(key)
        return fresh + [a.copy() for a in local]

    def import_from_mirror(self, store: ApplicationStore) -> ReconciliationReport:
        imported = self.mirror.import_all()
        added: list[Application] = []

        def _apply(local: list[Application]) -> list[Application]:
            merged = self.merge(local, imported)
            added.extend(merged[: len(merged) - len(local)])
            return merged

        if imported:
            store.mutate_all(_apply)
        if added:
            message = f"Synced with Google Sheet. Imported {len(added)} new application(s)."
        else:
            message = "Sync complete. No new applications found in your Google Sheet."
        log.info(message)
        return ReconciliationReport(imported=added, message=message)


class SheetSyncScheduler:
    """Debounced push of the whole store to the mirror after every change.

    Failures are logged and never touch local state.
    """

    def __init__(
        self,
        store: ApplicationStore,
        mirror: SpreadsheetMirror,
        delay_sec: float = 1.0,
        timer_factory: Callable[[float, Callable[[], None]], threading.Timer] = threading.Timer,
    ) -> None:
        self.store = store
        self.mirror = mirror
        self.delay_sec = delay_sec
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    def attach(self) -> "SheetSyncScheduler":
        self.store.subscribe(self.schedule)
        return self

    def schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = self._timer_factory(self.delay_sec, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> bool:
        with self._lock:
            self._timer = None
        snapshot = self.store.all()
        try:
            self.mirror.sync_all(snapshot)
        except Exception as exc:
            log.warning("Sheet sync of %d application(s) failed: %s", len(snapshot), exc)
            return False
        return True

    def close(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
