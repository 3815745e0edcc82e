"""
Application submitters.

``BrowserSubmitter`` drives the posting with Playwright: Easy Apply runs the
in-platform flow where the platform has one (LinkedIn, Indeed) and reports
every other posting as not supported, Complex Apply fills ATS forms
(Greenhouse, Lever, Workday, generic career pages) with the agent's
credentials. ``AutomationServiceSubmitter`` delegates both strategies to a
backend automation service over HTTP.
"""
from __future__ import annotations

import os
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator
from urllib.parse import urlparse

import requests

from job_copilot.errors import SubmitterUnavailable
from job_copilot.log import get_logger
from job_copilot.models import Job, SubmissionOutcome, UserProfile
from job_copilot.vault import agent_credentials

log = get_logger(__name__)

EASY_APPLY_PLATFORMS = {"linkedin", "indeed"}


class ApplicationSubmitter(ABC):
    @abstractmethod
    def easy_apply(self, job: Job, profile: UserProfile) -> SubmissionOutcome:
        pass

    @abstractmethod
    def complex_apply(self, job: Job, profile: UserProfile) -> SubmissionOutcome:
        pass


def detect_platform(url: str) -> str:
    """Classify the URL into a known platform type."""
    u = url.lower()
    if "linkedin.com" in u:
        return "linkedin"
    if "indeed.com" in u:
        return "indeed"
    if "myworkdayjobs.com" in u or "workday.com" in u:
        return "workday"
    if "greenhouse.io" in u:
        return "greenhouse"
    if "lever.co" in u:
        return "lever"
    return "generic"


# ---------------------------------------------------------------------------
# HTTP automation service
# ---------------------------------------------------------------------------

class AutomationServiceSubmitter(ApplicationSubmitter):
    def __init__(self, base_url: str, token: str = "", timeout: float = 120.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def easy_apply(self, job: Job, profile: UserProfile) -> SubmissionOutcome:
        return self._post("/automation/easy-apply", job, profile)

    def complex_apply(self, job: Job, profile: UserProfile) -> SubmissionOutcome:
        return self._post("/automation/complex-apply", job, profile)

    def _post(self, endpoint: str, job: Job, profile: UserProfile) -> SubmissionOutcome:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        body: dict[str, Any] = {
            "job": job.to_dict(),
            "profile": {"name": profile.name, "email": profile.email, "locations": profile.locations},
        }
        try:
            r = requests.post(f"{self.base_url}{endpoint}", json=body, headers=headers, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as exc:
            raise SubmitterUnavailable(f"Could not reach the automation service: {exc}") from exc
        lines = data.get("log") or []
        return SubmissionOutcome(success=bool(data.get("success")), log=[str(x) for x in lines], job_id=job.id)


# ---------------------------------------------------------------------------
# Playwright
# ---------------------------------------------------------------------------

def _visible(locator) -> bool:
    """Safe visibility check that never throws."""
    try:
        return locator.count() > 0 and locator.first.is_visible(timeout=2000)
    except Exception:
        return False


def _click_first_visible(page, selectors: list[str]) -> bool:
    for sel in selectors:
        loc = page.locator(sel).first
        if _visible(loc):
            loc.click()
            return True
    return False


def _fill_first(page, selectors: list[str], value: str) -> bool:
    if not value:
        return False
    for sel in selectors:
        loc = page.locator(sel).first
        if _visible(loc):
            loc.fill(value)
            return True
    return False


def _upload_resume(page, resume_path: Path | None) -> None:
    if not resume_path:
        return
    fi = page.locator('input[type="file"]')
    if _visible(fi):
        fi.first.set_input_files(str(resume_path))
        time.sleep(1)


class BrowserSubmitter(ApplicationSubmitter):
    def __init__(self, *, headless: bool = True, resume_path: Path | None = None, page_timeout_ms: int = 20_000) -> None:
        self.headless = headless
        self.resume_path = resume_path
        self.page_timeout_ms = page_timeout_ms

    @contextmanager
    def _page(self, url: str) -> Iterator[Any]:
        try:
            from playwright.sync_api import sync_playwright
        except ImportError as exc:
            raise SubmitterUnavailable("Playwright not installed — `pip install playwright && playwright install chromium`") from exc

        with sync_playwright() as p:
            browser = p.chromium.launch(headless=self.headless, args=["--incognito"])
            try:
                context = browser.new_context(viewport={"width": 1280, "height": 900})
                page = context.new_page()
                page.set_default_timeout(self.page_timeout_ms)
                page.goto(url, wait_until="domcontentloaded", timeout=self.page_timeout_ms + 5000)
                time.sleep(2)
                yield page
            finally:
                browser.close()

    @staticmethod
    def _url(job: Job) -> str:
        if not job.source_url:
            raise SubmitterUnavailable(f"Job {job.id} has no source URL to open")
        return job.source_url

    def easy_apply(self, job: Job, profile: UserProfile) -> SubmissionOutcome:
        url = self._url(job)
        platform = detect_platform(url)
        if platform not in EASY_APPLY_PLATFORMS:
            host = urlparse(url).hostname or url
            return SubmissionOutcome(
                success=False,
                job_id=job.id,
                log=[f"[INFO] Postings on {host} are not supported for Easy Apply."],
            )

        log.info("Easy Apply: %s @ %s → %s", job.title, job.company, platform)
        with self._page(url) as page:
            if platform == "linkedin":
                ok, msg = self._linkedin_easy_apply(page, profile)
            else:
                ok, msg = self._indeed_apply(page)
        return SubmissionOutcome(success=ok, job_id=job.id, log=[f"[{'SUCCESS' if ok else 'WARN'}] {msg}"])

    def complex_apply(self, job: Job, profile: UserProfile) -> SubmissionOutcome:
        url = self._url(job)
        platform = detect_platform(url)
        email, password = agent_credentials(profile)
        if not email:
            return SubmissionOutcome(success=False, job_id=job.id, log=["[WARN] No agent email configured for Complex Apply."])

        log.info("Complex Apply: %s @ %s → %s", job.title, job.company, platform)
        with self._page(url) as page:
            if platform == "greenhouse":
                ok, msg = self._greenhouse(page, profile, email)
            elif platform == "lever":
                ok, msg = self._lever(page, profile, email)
            elif platform == "workday":
                ok, msg = self._workday(page, email)
            else:
                ok, msg = self._generic(page, email, password)
        return SubmissionOutcome(success=ok, job_id=job.id, log=[f"[{'SUCCESS' if ok else 'WARN'}] {msg}"])

    # -- Easy Apply flows ---------------------------------------------------

    def _linkedin_easy_apply(self, page, profile: UserProfile) -> tuple[bool, str]:
        easy = page.get_by_role("button", name="Easy Apply")
        if not _visible(easy):
            # The posting exists but only links out to the employer's ATS.
            return False, "This LinkedIn posting is not supported for Easy Apply."
        easy.first.click()
        time.sleep(2)
        for _ in range(10):
            _upload_resume(page, self.resume_path)
            _fill_first(page, ['input[type="email"]'], profile.email)
            submit = page.get_by_role("button", name="Submit application")
            if _visible(submit):
                submit.first.click()
                time.sleep(2)
                return True, "Submitted via LinkedIn Easy Apply"
            nxt = page.get_by_role("button", name="Next").or_(page.get_by_role("button", name="Review"))
            if not _visible(nxt):
                break
            nxt.first.click()
            time.sleep(2)
        return False, "Easy Apply form incomplete: required questions need a human"

    def _indeed_apply(self, page) -> tuple[bool, str]:
        if not _click_first_visible(page, ['button:has-text("Apply now")', 'a:has-text("Apply now")']):
            if _visible(page.locator(':text("Apply on company site")')):
                return False, "This Indeed posting is not supported for Easy Apply."
            return False, "Indeed Apply button not found"
        time.sleep(3)
        _upload_resume(page, self.resume_path)
        if _click_first_visible(page, ['button:has-text("Submit your application")', 'button:has-text("Submit")']):
            time.sleep(2)
            return True, "Submitted via Indeed Apply"
        return False, "Indeed application did not reach the submit step"

    # -- Complex Apply flows ------------------------------------------------

    @staticmethod
    def _names(profile: UserProfile) -> tuple[str, str]:
        parts = profile.name.strip().split(maxsplit=1)
        return (parts[0] if parts else "", parts[1] if len(parts) > 1 else "")

    def _greenhouse(self, page, profile: UserProfile, email: str) -> tuple[bool, str]:
        first, last = self._names(profile)
        _fill_first(page, ["#first_name", 'input[name="first_name"]'], first)
        _fill_first(page, ["#last_name", 'input[name="last_name"]'], last)
        _fill_first(page, ["#email", 'input[name="email"]', 'input[type="email"]'], email)
        _upload_resume(page, self.resume_path)
        if _click_first_visible(page, ['input[type="submit"]', 'button[type="submit"]', 'button:has-text("Submit")']):
            time.sleep(3)
            return True, "Applied on Greenhouse"
        return False, "Greenhouse submit button not found"

    def _lever(self, page, profile: UserProfile, email: str) -> tuple[bool, str]:
        _click_first_visible(page, ["a.postings-btn", 'a:has-text("Apply for this job")'])
        time.sleep(2)
        _fill_first(page, ['input[name="name"]'], profile.name)
        _fill_first(page, ['input[name="email"]', 'input[type="email"]'], email)
        _upload_resume(page, self.resume_path)
        if _click_first_visible(page, ['button[type="submit"]', 'button:has-text("Submit application")']):
            time.sleep(3)
            return True, "Applied on Lever"
        return False, "Lever submit button not found"

    def _workday(self, page, email: str) -> tuple[bool, str]:
        if not _click_first_visible(page, [
            'a[data-automation-id="jobPostingApplyButton"]',
            'button[data-automation-id="jobPostingApplyButton"]',
        ]):
            return False, "Workday Apply button not found"
        time.sleep(3)
        _fill_first(page, ['input[data-automation-id="email"]', 'input[type="email"]'], email)
        _upload_resume(page, self.resume_path)
        if _click_first_visible(page, ['button[data-automation-id="bottom-navigation-next-button"]', 'button:has-text("Submit")']):
            time.sleep(2)
            return True, "Applied on Workday"
        return False, "Workday form could not be advanced"

    def _generic(self, page, email: str, password: str) -> tuple[bool, str]:
        if password and _visible(page.locator('input[type="password"]')):
            _fill_first(page, ['input[type="email"]', 'input[name="email"]'], email)
            page.locator('input[type="password"]').first.fill(password)
            _click_first_visible(page, ['button:has-text("Sign in")', 'button:has-text("Login")', 'button[type="submit"]'])
            time.sleep(3)

        for label in ["Apply", "Apply Now", "Apply for this job"]:
            btn = page.locator(f'button:has-text("{label}"), a:has-text("{label}")').first
            if not _visible(btn):
                continue
            btn.click()
            time.sleep(3)
            _fill_first(page, ['input[type="email"]', 'input[name="email"]'], email)
            _upload_resume(page, self.resume_path)
            if _click_first_visible(page, ['button:has-text("Submit")', 'input[type="submit"]']):
                time.sleep(2)
                return True, "Applied via career page form"
            return False, "Career page form has no submit button"
        return False, "No Apply button found on page"


def resume_path_from_env() -> Path | None:
    raw = os.environ.get("RESUME_PATH", "").strip()
    if not raw:
        return None
    path = Path(raw).expanduser()
    return path if path.is_file() else None
