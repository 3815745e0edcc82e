from types import SimpleNamespace

import pytest

from conftest import make_job
from job_copilot.errors import GenerationFailure
from job_copilot.generator import (
    LLMDocumentGenerator,
    TemplateDocumentGenerator,
    build_prompt,
    get_generator,
)
from job_copilot.models import DocumentKind, Experiment


def test_get_generator_falls_back_to_templates():
    assert isinstance(get_generator(lambda key: ""), TemplateDocumentGenerator)

    env = {"GROQ_API_KEY": "gsk", "LLM_MODEL": "m1"}
    llm = get_generator(lambda key: env.get(key, ""))
    assert isinstance(llm, LLMDocumentGenerator)
    assert llm.model == "m1"


def test_cv_prompt_carries_experiments(profile):
    exp = Experiment(id="e1", hypothesis="Quantify impact", method="Add metrics", status="active")
    prompt = build_prompt(DocumentKind.CV, profile, make_job("p", company="Globex"), [exp])

    assert "ATS-optimized" in prompt
    assert "Quantify impact" in prompt
    assert profile.base_cv in prompt


def test_template_documents_mention_the_job(profile):
    job = make_job("t", company="Globex", title="SRE")
    gen = TemplateDocumentGenerator()
    for kind in DocumentKind:
        text = gen.generate(kind, profile, job)
        assert "Globex" in text or "SRE" in text


def _fake_client(content):
    message = SimpleNamespace(content=content)
    response = SimpleNamespace(choices=[SimpleNamespace(message=message)])
    completions = SimpleNamespace(create=lambda **kwargs: response)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_llm_generator_returns_text(profile):
    gen = LLMDocumentGenerator(api_key="k")
    gen._client = _fake_client("  Dear Globex team  ")
    assert gen.generate(DocumentKind.COVER_LETTER, profile, make_job("l")) == "Dear Globex team"


def test_llm_generator_rejects_empty_output(profile):
    gen = LLMDocumentGenerator(api_key="k")
    gen._client = _fake_client("")
    with pytest.raises(GenerationFailure):
        gen.generate(DocumentKind.CV, profile, make_job("l"))
