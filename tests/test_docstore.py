import pytest
import requests

from job_copilot import docstore
from job_copilot.docstore import GoogleDriveDocumentStore, LocalDocumentStore, safe_file_name
from job_copilot.errors import DocumentStoreError


def test_safe_file_name():
    assert safe_file_name("Acme/Inc_Engineer: II_CV") == "Acme_Inc_Engineer_ II_CV"
    assert safe_file_name("???") == "___"
    assert safe_file_name("") == "document"


def test_local_store_writes_text_and_returns_uri(tmp_path):
    store = LocalDocumentStore(tmp_path / "docs")
    url = store.save("Acme_Engineer_CV", "hello")

    assert url.startswith("file://")
    assert (tmp_path / "docs" / "Acme_Engineer_CV.txt").read_text(encoding="utf-8") == "hello"


def test_local_store_failure_raises(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(DocumentStoreError):
        LocalDocumentStore(blocker / "sub").save("a", "b")


class FakeResponse:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}", response=self)

    def json(self):
        return self._payload


def test_drive_upload_returns_web_link(monkeypatch):
    seen = {}

    def fake_post(url, data, headers, timeout):
        seen["url"] = url
        seen["body"] = data
        seen["headers"] = headers
        return FakeResponse({"id": "f1", "webViewLink": "https://docs.google.com/document/d/f1"})

    monkeypatch.setattr(docstore.requests, "post", fake_post)
    url = GoogleDriveDocumentStore("token", folder_id="folder").save("Acme_CV", "text body")

    assert url == "https://docs.google.com/document/d/f1"
    assert "uploadType=multipart" in seen["url"]
    assert seen["headers"]["Authorization"] == "Bearer token"
    assert b"text body" in seen["body"]
    assert b'"parents": ["folder"]' in seen["body"]


def test_drive_upload_without_link_fails(monkeypatch):
    monkeypatch.setattr(docstore.requests, "post", lambda *a, **kw: FakeResponse({"id": "f1"}))
    with pytest.raises(DocumentStoreError):
        GoogleDriveDocumentStore("token").save("Acme_CV", "x")


def test_drive_client_error_is_not_retried(monkeypatch):
    calls = []

    def fake_post(*args, **kwargs):
        calls.append(1)
        return FakeResponse({}, status=401)

    monkeypatch.setattr(docstore.requests, "post", fake_post)
    with pytest.raises(DocumentStoreError):
        GoogleDriveDocumentStore("token").save("Acme_CV", "x")
    assert len(calls) == 1
