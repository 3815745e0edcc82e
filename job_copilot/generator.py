"""Generate tailored CVs, cover letters and interview prep kits (LLM or offline template)."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Sequence

from job_copilot.errors import GenerationFailure
from job_copilot.log import get_logger
from job_copilot.models import DocumentKind, Experiment, Job, UserProfile
from job_copilot.retry import is_transient_http_error, retry

log = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama-3.3-70b-versatile"

_MAX_TOKENS: dict[DocumentKind, int] = {
    DocumentKind.CV: 1800,
    DocumentKind.COVER_LETTER: 600,
    DocumentKind.INTERVIEW_PREP: 1500,
}


class DocumentGenerator(ABC):
    @abstractmethod
    def generate(
        self,
        kind: DocumentKind,
        profile: UserProfile,
        job: Job,
        active_experiments: Sequence[Experiment] = (),
    ) -> str:
        """Return the document text; raise on failure."""


def _experiment_block(experiments: Sequence[Experiment]) -> str:
    if not experiments:
        return ""
    lines = "\n".join(f"- {e.hypothesis} (method: {e.method})" for e in experiments)
    return f"\nActive strategy experiments to apply:\n{lines}\n"


def build_prompt(kind: DocumentKind, profile: UserProfile, job: Job, experiments: Sequence[Experiment] = ()) -> str:
    skills = ", ".join(profile.key_skills[:10])
    posting = f"""Job title: {job.title}
Company: {job.company}
Location: {job.location}
Job description (excerpt): {job.description[:2500]}"""

    if kind is DocumentKind.CV:
        return f"""Rewrite the candidate's CV so it is ATS-optimized for this role.
Keep every fact truthful; reorder and rephrase to mirror the posting's keywords.
Candidate name: {profile.name}
Key skills: {skills}
Base CV:
{profile.base_cv[:6000]}

{posting}
{_experiment_block(experiments)}
Return plain text only, no commentary."""

    if kind is DocumentKind.COVER_LETTER:
        return f"""Write a professional cover letter (under 300 words) for this role.
Candidate name: {profile.name}
Candidate summary: {profile.summary}
Key skills: {skills}

{posting}

Match the tone to the company and role. Mention 2–3 relevant skills. End with a clear one-line CTA.
End the letter with "Best regards," followed by {profile.name}. Do not use placeholders like [Your Name]."""

    return f"""Prepare an interview prep kit in Markdown for {profile.name}.
Include: a short company brief, 5 likely behavioural questions with STAR answer outlines
drawn from the candidate's background, 5 technical questions for the role, and 3 questions
the candidate should ask.
Candidate summary: {profile.summary}
Key skills: {skills}

{posting}"""


class LLMDocumentGenerator(DocumentGenerator):
    """OpenAI-compatible chat completions (Groq by default)."""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, base_url: str = DEFAULT_BASE_URL, timeout: float = 90.0) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        if self._client is None:
            from openai import OpenAI

            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout)
        return self._client

    @retry(max_attempts=2, base_delay=2.0, should_retry=is_transient_http_error)
    def _complete(self, prompt: str, max_tokens: int) -> str:
        r = self._get_client().chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
        )
        return (r.choices[0].message.content or "").strip()

    def generate(self, kind: DocumentKind, profile: UserProfile, job: Job, active_experiments: Sequence[Experiment] = ()) -> str:
        prompt = build_prompt(kind, profile, job, active_experiments)
        text = self._complete(prompt, _MAX_TOKENS[kind])
        if not text:
            raise GenerationFailure(f"Empty {kind.value} returned by {self.model}")
        log.info("%s generated for %s @ %s", kind.value, job.title, job.company)
        return text


class TemplateDocumentGenerator(DocumentGenerator):
    """Offline fallback used when no LLM key is configured."""

    def generate(self, kind: DocumentKind, profile: UserProfile, job: Job, active_experiments: Sequence[Experiment] = ()) -> str:
        renderers: dict[DocumentKind, Callable[[UserProfile, Job], str]] = {
            DocumentKind.CV: _template_cv,
            DocumentKind.COVER_LETTER: _template_letter,
            DocumentKind.INTERVIEW_PREP: _template_prep,
        }
        return renderers[kind](profile, job)


def _template_cv(profile: UserProfile, job: Job) -> str:
    skills = ", ".join(profile.key_skills[:8])
    return f"""{profile.name}
Target role: {job.title} — {job.company}

Key skills: {skills}

{profile.base_cv.strip()}"""


def _template_letter(profile: UserProfile, job: Job) -> str:
    skills = ", ".join(profile.key_skills[:5])
    return f"""Dear Hiring Team,

I am writing to apply for the {job.title} position at {job.company}.

{profile.summary}

My experience aligns with your requirements, including: {skills}. I am particularly interested in contributing to your team's success.

I would welcome the opportunity to discuss how my background can contribute to your team.

Best regards,
{profile.name}"""


def _template_prep(profile: UserProfile, job: Job) -> str:
    skills = "\n".join(f"- How have you used {s}?" for s in profile.key_skills[:5])
    return f"""# Interview prep: {job.title} @ {job.company}

## Company
Research {job.company}'s product, customers and recent news.

## Likely questions
- Tell me about yourself.
- Why {job.company}?
{skills}

## Questions to ask
- What does success look like in the first 90 days?
- How is the team structured?"""


def get_generator(env_getter: Callable[[str], str]) -> DocumentGenerator:
    api_key = env_getter("LLM_API_KEY") or env_getter("GROQ_API_KEY")
    if not api_key:
        log.info("No LLM_API_KEY — using template documents")
        return TemplateDocumentGenerator()
    return LLMDocumentGenerator(
        api_key=api_key,
        model=env_getter("LLM_MODEL") or DEFAULT_MODEL,
        base_url=env_getter("LLM_BASE_URL") or DEFAULT_BASE_URL,
    )
