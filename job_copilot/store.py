"""In-memory authoritative collection of tracked applications.

Every write goes through one of the atomic entry points below (track,
upsert, update, update_or_create, replace_all, mutate_all). Each takes the
store lock, applies the change to the current state, persists the whole
collection and then notifies listeners (e.g. the debounced sheet sync).
Callers never write back a snapshot they computed outside the lock.
"""
from __future__ import annotations

from threading import RLock
from typing import Callable, Iterable

from job_copilot.lifecycle import stamp
from job_copilot.log import get_logger
from job_copilot.models import Application, ApplicationStatus, Job
from job_copilot.persistence import MemoryBackend, PersistenceBackend

log = get_logger(__name__)

Listener = Callable[[], None]


class ApplicationStore:
    def __init__(self, backend: PersistenceBackend | None = None) -> None:
        self._backend = backend or MemoryBackend()
        self._lock = RLock()
        self._apps: dict[str, Application] = {}
        self._order: list[str] = []  # most recent first
        self._listeners: list[Listener] = []

    # -- reads -------------------------------------------------------------

    def contains(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._apps

    def get(self, job_id: str) -> Application | None:
        with self._lock:
            app = self._apps.get(job_id)
            return app.copy() if app else None

    def all(self) -> list[Application]:
        with self._lock:
            return [self._apps[i].copy() for i in self._order]

    def ids(self) -> set[str]:
        with self._lock:
            return set(self._apps)

    def __len__(self) -> int:
        with self._lock:
            return len(self._apps)

    # -- writes ------------------------------------------------------------

    def load(self) -> int:
        """Replace the in-memory collection with whatever the backend holds."""
        apps = self._backend.load_all()
        with self._lock:
            self._set_all(apps)
            count = len(self._apps)
        log.info("Application store loaded %d application(s)", count)
        return count

    def track(self, job: Job, note: str | None = None) -> tuple[Application, bool]:
        """Create a Tracked application for ``job``; no-op if the id is known."""
        with self._lock:
            existing = self._apps.get(job.id)
            if existing is not None:
                return existing.copy(), False
            app = Application(job=job, status=ApplicationStatus.TRACKED)
            if note:
                app.agent_log.append(stamp(note))
            self._insert_front(app)
            self._persist()
        self._notify()
        return app.copy(), True

    def track_many(self, jobs: Iterable[Job]) -> list[Application]:
        """Track every unknown job in one write; new ones keep their input order at the front."""
        created: list[Application] = []
        with self._lock:
            for job in jobs:
                if job.id in self._apps or any(a.id == job.id for a in created):
                    continue
                created.append(Application(job=job, status=ApplicationStatus.TRACKED))
            if not created:
                return []
            for app in reversed(created):
                self._insert_front(app)
            self._persist()
        self._notify()
        return [a.copy() for a in created]

    def upsert(self, app: Application) -> Application:
        with self._lock:
            if app.id in self._apps:
                self._apps[app.id] = app.copy()
            else:
                self._insert_front(app.copy())
            self._persist()
        self._notify()
        return app.copy()

    def update(self, job_id: str, fn: Callable[[Application], Application | None]) -> Application | None:
        """Atomic read-modify-write of one application.

        ``fn`` gets a private copy of the current record and returns the new
        record, or None to leave it unchanged. Unknown ids are a no-op.
        """
        with self._lock:
            current = self._apps.get(job_id)
            if current is None:
                return None
            updated = fn(current.copy())
            if updated is None:
                return current.copy()
            if updated.id != job_id:
                raise ValueError(f"update for {job_id} returned application {updated.id}")
            self._apps[job_id] = updated.copy()
            self._persist()
        self._notify()
        return updated.copy()

    def update_or_create(
        self,
        job: Job,
        fn: Callable[[Application], Application | None],
        note: str | None = None,
    ) -> Application:
        """Like :meth:`update`, but a missing id starts from a fresh Tracked record."""
        with self._lock:
            current = self._apps.get(job.id)
            created = current is None
            if created:
                current = Application(job=job, status=ApplicationStatus.TRACKED)
                if note:
                    current.agent_log.append(stamp(note))
            updated = fn(current.copy())
            if updated is None:
                if not created:
                    return current.copy()
                updated = current
            if created:
                self._insert_front(updated.copy())
            else:
                self._apps[job.id] = updated.copy()
            self._persist()
        self._notify()
        return updated.copy()

    def replace_all(self, applications: Iterable[Application]) -> None:
        with self._lock:
            self._set_all(applications)
            self._persist()
        self._notify()

    def mutate_all(self, fn: Callable[[list[Application]], list[Application]]) -> list[Application]:
        """Atomic whole-collection read-modify-write (used by reconciliation)."""
        with self._lock:
            result = fn(self.all())
            self._set_all(result)
            self._persist()
            snapshot = self.all()
        self._notify()
        return snapshot

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    # -- internals ---------------------------------------------------------

    def _insert_front(self, app: Application) -> None:
        self._apps[app.id] = app
        self._order.insert(0, app.id)

    def _set_all(self, applications: Iterable[Application]) -> None:
        apps: dict[str, Application] = {}
        order: list[str] = []
        for app in applications:
            if app.id in apps:
                log.warning("Dropping duplicate application id %s", app.id)
                continue
            apps[app.id] = app.copy()
            order.append(app.id)
        self._apps, self._order = apps, order

    def _persist(self) -> None:
        snapshot = [self._apps[i] for i in self._order]
        try:
            self._backend.save_all(snapshot)
        except Exception as exc:
            log.error("Persisting %d application(s) failed: %s", len(snapshot), exc)

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception:
                log.exception("Store listener failed")
