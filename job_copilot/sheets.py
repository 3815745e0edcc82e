"""Google Sheets mirror of the application pipeline."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote

import requests

from job_copilot.errors import MirrorError
from job_copilot.fingerprint import stable_job_id
from job_copilot.log import get_logger
from job_copilot.models import Application, ApplicationStatus, Job, UserProfile
from job_copilot.retry import is_transient_http_error, retry

log = get_logger(__name__)

SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"
DEFAULT_SHEET_NAME = "Applications"
COLUMNS: list[str] = [
    "Job ID",
    "Company",
    "Title",
    "Location",
    "Status",
    "Applied Date",
    "Fit Score",
    "Salary",
    "Source URL",
    "CV Link",
    "Cover Letter Link",
    "Rejection Reason",
]


class SpreadsheetMirror(ABC):
    @abstractmethod
    def import_all(self) -> list[Application]:
        pass

    @abstractmethod
    def sync_all(self, applications: list[Application]) -> None:
        pass


def column_letters(one_based_index: int) -> str:
    if one_based_index <= 0:
        raise ValueError("one_based_index must be >= 1")
    out: list[str] = []
    value = one_based_index
    while value > 0:
        value, remainder = divmod(value - 1, 26)
        out.append(chr(ord("A") + remainder))
    return "".join(reversed(out))


def application_to_row(app: Application) -> list[str]:
    job = app.job
    return [
        job.id,
        job.company,
        job.title,
        job.location,
        app.status.value,
        app.applied_date or "",
        "" if job.fit_score is None else str(job.fit_score),
        job.salary,
        job.source_url or "",
        app.cv_url or "",
        app.cover_letter_url or "",
        app.rejection_reason or "",
    ]


def row_to_application(values: list[Any]) -> Application | None:
    """Map one sheet row to an Application; None for blank rows."""
    cells = {col: (str(values[i]).strip() if i < len(values) and values[i] is not None else "") for i, col in enumerate(COLUMNS)}
    if not cells["Company"] and not cells["Title"]:
        return None

    status = ApplicationStatus.parse(cells["Status"]) or ApplicationStatus.TRACKED
    if status == ApplicationStatus.APPLIED_BY_AGENT:
        # No submission attempt exists locally for an imported row.
        status = ApplicationStatus.APPLIED

    try:
        score = int(float(cells["Fit Score"])) if cells["Fit Score"] else None
    except ValueError:
        score = None
    if score is not None and not 0 <= score <= 100:
        score = None

    job = Job(
        id=cells["Job ID"] or stable_job_id("sheet", cells["Company"], cells["Title"], cells["Source URL"]),
        company=cells["Company"],
        title=cells["Title"],
        location=cells["Location"],
        salary=cells["Salary"],
        source_url=cells["Source URL"] or None,
        fit_score=score,
    )
    rejection = cells["Rejection Reason"] or None
    return Application(
        job=job,
        status=status,
        applied_date=cells["Applied Date"] or None,
        rejection_reason=rejection if status == ApplicationStatus.REJECTED else None,
        cv_url=cells["CV Link"] or None,
        cover_letter_url=cells["Cover Letter Link"] or None,
    )


class GoogleSheetsMirror(SpreadsheetMirror):
    def __init__(self, spreadsheet_id: str, access_token: str, sheet_name: str = DEFAULT_SHEET_NAME, timeout: float = 15.0) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.access_token = access_token
        self.sheet_name = sheet_name
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}", "Accept": "application/json"}

    def _range(self, start_row: int = 1) -> str:
        return f"{self.sheet_name}!A{start_row}:{column_letters(len(COLUMNS))}"

    def _values_url(self, range_name: str, suffix: str = "") -> str:
        sheet = quote(self.spreadsheet_id, safe="")
        return f"{SHEETS_API}/{sheet}/values/{quote(range_name, safe='!:$')}{suffix}"

    @retry(max_attempts=3, base_delay=1.0, retryable=(requests.RequestException,), should_retry=is_transient_http_error)
    def _request(self, method: str, url: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        r = requests.request(method, url, headers=self._headers(), json=payload, timeout=self.timeout)
        r.raise_for_status()
        data = r.json() if r.content else {}
        if not isinstance(data, dict):
            raise MirrorError("Google Sheets response must be a JSON object")
        return data

    def import_all(self) -> list[Application]:
        try:
            data = self._request("GET", self._values_url(self._range(1)))
        except requests.RequestException as exc:
            raise MirrorError(f"Reading sheet {self.spreadsheet_id} failed: {exc}") from exc
        rows = data.get("values") or []
        if rows and rows[0] and str(rows[0][0]).strip() == COLUMNS[0]:
            rows = rows[1:]
        apps = [a for a in (row_to_application(r) for r in rows) if a is not None]
        log.info("Imported %d row(s) from sheet %s", len(apps), self.spreadsheet_id)
        return apps

    def sync_all(self, applications: list[Application]) -> None:
        values = [COLUMNS] + [application_to_row(a) for a in applications]
        try:
            self._request("POST", self._values_url(self._range(1), ":clear"), {})
            self._request("PUT", self._values_url(self._range(1), "?valueInputOption=RAW"), {"values": values})
        except requests.RequestException as exc:
            raise MirrorError(f"Writing sheet {self.spreadsheet_id} failed: {exc}") from exc
        log.info("Synced %d application(s) to sheet %s", len(applications), self.spreadsheet_id)

    @classmethod
    def create_sheet(cls, profile: UserProfile, access_token: str, timeout: float = 15.0) -> "GoogleSheetsMirror":
        payload = {
            "properties": {"title": f"{profile.name or 'Job'} Applications"},
            "sheets": [{"properties": {"title": DEFAULT_SHEET_NAME}}],
        }
        try:
            r = requests.post(
                SHEETS_API,
                json=payload,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=timeout,
            )
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as exc:
            raise MirrorError(f"Creating spreadsheet failed: {exc}") from exc
        spreadsheet_id = data.get("spreadsheetId")
        if not spreadsheet_id:
            raise MirrorError("Creating spreadsheet returned no id")
        log.info("Created spreadsheet %s", data.get("spreadsheetUrl"))
        return cls(spreadsheet_id, access_token, timeout=timeout)

    @property
    def url(self) -> str:
        return f"https://docs.google.com/spreadsheets/d/{self.spreadsheet_id}/edit"
