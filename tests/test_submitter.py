import pytest
import requests

from conftest import make_job
from job_copilot import submitter as submitter_module
from job_copilot.errors import SubmitterUnavailable
from job_copilot.escalation import is_unsupported_signal
from job_copilot.models import Job, UserProfile
from job_copilot.submitter import AutomationServiceSubmitter, BrowserSubmitter, detect_platform


@pytest.mark.parametrize(
    "url,platform",
    [
        ("https://www.linkedin.com/jobs/view/1", "linkedin"),
        ("https://de.indeed.com/viewjob?jk=2", "indeed"),
        ("https://acme.wd5.myworkdayjobs.com/en-US/careers/job/3", "workday"),
        ("https://boards.greenhouse.io/acme/jobs/4", "greenhouse"),
        ("https://jobs.lever.co/acme/5", "lever"),
        ("https://acme.com/careers/6", "generic"),
    ],
)
def test_detect_platform(url, platform):
    assert detect_platform(url) == platform


def test_browser_easy_apply_reports_unsupported_platforms_without_a_browser():
    job = make_job("g", url="https://boards.greenhouse.io/acme/jobs/4")
    outcome = BrowserSubmitter().easy_apply(job, UserProfile())

    assert not outcome.success
    assert is_unsupported_signal(outcome.log)
    assert "boards.greenhouse.io" in outcome.log[0]


def test_browser_needs_a_source_url():
    job = Job(id="n", company="Acme", title="Engineer")
    with pytest.raises(SubmitterUnavailable):
        BrowserSubmitter().easy_apply(job, UserProfile())


def test_complex_apply_without_credentials(monkeypatch):
    monkeypatch.delenv("AGENT_EMAIL", raising=False)
    job = make_job("c", url="https://jobs.lever.co/acme/5")
    outcome = BrowserSubmitter().complex_apply(job, UserProfile())

    assert not outcome.success
    assert "No agent email" in outcome.log[0]


class FakeResponse:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(str(self.status_code), response=self)

    def json(self):
        return self._payload


def test_automation_service_posts_job_and_profile(monkeypatch, profile):
    seen = {}

    def fake_post(url, json, headers, timeout):
        seen.update(url=url, body=json, headers=headers)
        return FakeResponse({"success": True, "log": ["[SUCCESS] Submitted."]})

    monkeypatch.setattr(submitter_module.requests, "post", fake_post)
    service = AutomationServiceSubmitter("https://automation.example/", token="t0k")
    outcome = service.complex_apply(make_job("s1"), profile)

    assert outcome.success
    assert outcome.log == ["[SUCCESS] Submitted."]
    assert seen["url"] == "https://automation.example/automation/complex-apply"
    assert seen["body"]["job"]["id"] == "s1"
    assert seen["body"]["profile"]["name"] == "Jane Doe"
    assert seen["headers"]["Authorization"] == "Bearer t0k"


def test_automation_service_outage_is_unavailable(monkeypatch, profile):
    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(submitter_module.requests, "post", fake_post)
    with pytest.raises(SubmitterUnavailable):
        AutomationServiceSubmitter("https://automation.example").easy_apply(make_job("s1"), profile)
