"""External persistence for generated documents (local folder or Google Drive)."""
from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from pathlib import Path

import requests

from job_copilot.errors import DocumentStoreError
from job_copilot.log import get_logger
from job_copilot.retry import is_transient_http_error, retry

log = get_logger(__name__)

DRIVE_UPLOAD_URL = (
    "https://www.googleapis.com/upload/drive/v3/files"
    "?uploadType=multipart&fields=id,name,webViewLink"
)
GOOGLE_DOC_MIME_TYPE = "application/vnd.google-apps.document"


def safe_file_name(name: str, limit: int = 120) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9 _.-]", "_", name).strip()
    return (cleaned or "document")[:limit]


class DocumentStore(ABC):
    @abstractmethod
    def save(self, name: str, content: str) -> str:
        """Persist ``content`` and return a URL to it; raise DocumentStoreError on failure."""


class LocalDocumentStore(DocumentStore):
    def __init__(self, root: Path) -> None:
        self.root = root

    def save(self, name: str, content: str) -> str:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path = self.root / f"{safe_file_name(name)}.txt"
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise DocumentStoreError(f"Could not write {name}: {exc}") from exc
        return path.resolve().as_uri()


class GoogleDriveDocumentStore(DocumentStore):
    """Uploads plain text as a Google Doc via a multipart Drive upload."""

    def __init__(self, access_token: str, folder_id: str | None = None, timeout: float = 15.0) -> None:
        self.access_token = access_token
        self.folder_id = folder_id
        self.timeout = timeout

    def save(self, name: str, content: str) -> str:
        metadata: dict[str, object] = {"name": safe_file_name(name), "mimeType": GOOGLE_DOC_MIME_TYPE}
        if self.folder_id:
            metadata["parents"] = [self.folder_id]
        try:
            data = self._upload(metadata, content)
        except requests.RequestException as exc:
            raise DocumentStoreError(f"Drive upload of {name} failed: {exc}") from exc
        url = data.get("webViewLink")
        if not url:
            raise DocumentStoreError(f"Drive upload of {name} returned no link")
        log.info("Saved %s to Google Drive", name)
        return str(url)

    @retry(max_attempts=3, base_delay=1.0, retryable=(requests.RequestException,), should_retry=is_transient_http_error)
    def _upload(self, metadata: dict[str, object], content: str) -> dict:
        boundary = "copilotBoundary4f1c9d2a"
        body = b"".join([
            f"--{boundary}\r\n".encode("utf-8"),
            b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
            json.dumps(metadata).encode("utf-8"),
            b"\r\n",
            f"--{boundary}\r\n".encode("utf-8"),
            b"Content-Type: text/plain; charset=UTF-8\r\n\r\n",
            content.encode("utf-8"),
            b"\r\n",
            f"--{boundary}--\r\n".encode("utf-8"),
        ])
        r = requests.post(
            DRIVE_UPLOAD_URL,
            data=body,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": f"multipart/related; boundary={boundary}",
            },
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json()
