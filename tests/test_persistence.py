import json

import pytest

from conftest import make_job
from job_copilot.models import Application, ApplicationStatus
from job_copilot.persistence import JsonFileBackend


def test_json_backend_roundtrip(tmp_path):
    backend = JsonFileBackend(tmp_path / "data" / "applications.json")
    app = Application(
        job=make_job("j1", fit=91),
        status=ApplicationStatus.REJECTED,
        rejection_reason="Role filled",
        agent_log=["2026-01-01T00:00:00+00:00 [INFO] hi"],
    )

    backend.save_all([app])
    loaded = backend.load_all()

    assert loaded == [app]
    raw = json.loads((tmp_path / "data" / "applications.json").read_text(encoding="utf-8"))
    assert raw[0]["status"] == "Rejected"
    assert not (tmp_path / "data" / "applications.json.tmp").exists()


def test_missing_file_is_empty(tmp_path):
    assert JsonFileBackend(tmp_path / "none.json").load_all() == []


def test_non_list_file_is_rejected(tmp_path):
    path = tmp_path / "applications.json"
    path.write_text('{"oops": true}', encoding="utf-8")
    with pytest.raises(ValueError):
        JsonFileBackend(path).load_all()
