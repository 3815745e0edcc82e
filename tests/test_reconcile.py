from conftest import FakeMirror, make_job
from job_copilot.models import Application, ApplicationStatus
from job_copilot.reconcile import ReconciliationService, SheetSyncScheduler
from job_copilot.store import ApplicationStore


def _app(job_id, company="Acme", title="Engineer", status=ApplicationStatus.TRACKED):
    return Application(job=make_job(job_id, company=company, title=title), status=status)


def test_merge_prepends_only_unknown_records():
    local = [_app("l1", title="Backend"), _app("l2", title="Data")]
    imported = [_app("s1", title="Frontend"), _app("l1", title="Backend"), _app("s2", company="acme ", title=" DATA")]

    merged = ReconciliationService.merge(local, imported)

    assert [a.id for a in merged] == ["s1", "l1", "l2"]


def test_merge_local_wins_on_id_collision():
    local = [_app("x", status=ApplicationStatus.INTERVIEWING)]
    imported = [_app("x", status=ApplicationStatus.REJECTED)]

    merged = ReconciliationService.merge(local, imported)

    assert len(merged) == 1
    assert merged[0].status == ApplicationStatus.INTERVIEWING


def test_merge_is_idempotent():
    local = [_app("l1", title="Backend")]
    imported = [_app("s1", title="Frontend")]

    once = ReconciliationService.merge(local, imported)
    twice = ReconciliationService.merge(once, imported)

    assert [a.id for a in twice] == [a.id for a in once]


def test_degenerate_keys_only_match_by_id():
    local = [_app("l1", company="", title="Engineer")]
    imported = [_app("s1", company="", title="Engineer"), _app("s2", company="", title="Engineer")]

    merged = ReconciliationService.merge(local, imported)

    assert [a.id for a in merged] == ["s1", "s2", "l1"]


def test_merge_dedupes_within_the_import():
    imported = [_app("s1", title="Designer"), _app("s2", title="designer")]
    assert [a.id for a in ReconciliationService.merge([], imported)] == ["s1"]


def test_import_from_mirror_updates_store_and_reports():
    store = ApplicationStore()
    store.track(make_job("l1", title="Backend"))
    service = ReconciliationService(FakeMirror([_app("s1", title="Frontend"), _app("l1", title="Backend")]))

    report = service.import_from_mirror(store)

    assert report.imported_count == 1
    assert report.message == "Synced with Google Sheet. Imported 1 new application(s)."
    assert [a.id for a in store.all()] == ["s1", "l1"]

    again = service.import_from_mirror(store)
    assert again.imported_count == 0
    assert again.message == "Sync complete. No new applications found in your Google Sheet."


class FakeTimer:
    created = []

    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.cancelled = False
        self.started = False
        self.daemon = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True


def test_sync_is_debounced_to_the_last_change():
    FakeTimer.created = []
    store = ApplicationStore()
    mirror = FakeMirror()
    scheduler = SheetSyncScheduler(store, mirror, delay_sec=1.0, timer_factory=FakeTimer).attach()

    store.track(make_job("a"))
    store.track(make_job("b"))
    store.track(make_job("c"))

    assert len(FakeTimer.created) == 3
    assert [t.cancelled for t in FakeTimer.created] == [True, True, False]
    assert FakeTimer.created[-1].delay == 1.0

    FakeTimer.created[-1].fn()
    assert len(mirror.synced) == 1
    assert [a.id for a in mirror.synced[0]] == ["c", "b", "a"]


def test_sync_failure_leaves_store_untouched():
    store = ApplicationStore()
    store.track(make_job("a"))
    scheduler = SheetSyncScheduler(store, FakeMirror(fail=True), timer_factory=FakeTimer)

    assert scheduler.flush() is False
    assert store.contains("a")
