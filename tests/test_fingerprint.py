from conftest import make_job
from job_copilot.fingerprint import already_tracked, cross_source_key, is_degenerate_key, stable_job_id
from job_copilot.store import ApplicationStore


def test_already_tracked_is_by_id():
    store = ApplicationStore()
    store.track(make_job("li-1", company="Acme", title="Engineer"))

    assert already_tracked(store, make_job("li-1", company="Other", title="Else"))
    assert not already_tracked(store, make_job("in-9", company="Acme", title="Engineer"))


def test_cross_source_key_normalizes_case_and_whitespace():
    assert cross_source_key("  ACME ", "Senior Engineer ") == cross_source_key("acme", "senior engineer")
    assert cross_source_key("Acme", "Engineer") != cross_source_key("Acme Engineer", "")


def test_degenerate_keys():
    assert is_degenerate_key(cross_source_key("", "Engineer"))
    assert is_degenerate_key(cross_source_key("Acme", "   "))
    assert not is_degenerate_key(cross_source_key("Acme", "Engineer"))


def test_stable_job_id_is_deterministic():
    assert stable_job_id("sheet", "Acme", "Engineer") == stable_job_id("sheet", " acme", "ENGINEER")
    assert stable_job_id("sheet", "Acme", "Engineer").startswith("sheet-")
    assert stable_job_id("sheet", "Acme", "Engineer") != stable_job_id("sheet", "Acme", "Designer")
