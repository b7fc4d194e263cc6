"""
Tests for the Gemini-backed career agents.

A fake client stands in for ``genai.Client``; only the response text matters.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from agents.base import sanitize, strip_code_fences
from agents.career import ATSScoringAgent, CoverLetterAgent, ResumeAgent
from core.errors import ExternalServiceError
from tests.factories import SAMPLE_RESUME

JOB = {
    "title": "Backend Engineer",
    "description": "Build APIs",
    "skills": ["python"],
    "requirements": ["3 years"],
    "experience_level": "mid",
}


def fake_client(text=None, error=None):
    generate = AsyncMock(return_value=SimpleNamespace(text=text), side_effect=error)
    return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate)))


class TestHelpers:
    @pytest.mark.parametrize("raw,expected", [
        ('{"a": 1}', '{"a": 1}'),
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```\n{"a": 1}\n```', '{"a": 1}'),
        ('  {"a": 1}  ', '{"a": 1}'),
    ])
    def test_strip_code_fences(self, raw, expected):
        assert strip_code_fences(raw) == expected

    def test_sanitize(self):
        assert sanitize("`rm -rf`") == "rm -rf"
        assert sanitize(None) == ""
        assert len(sanitize("x" * 5000)) == 1500


class TestATSScoringAgent:
    @pytest.mark.asyncio
    async def test_valid_answer(self):
        answer = json.dumps({"atsScore": 81, "improvementSuggestions": "Mention Docker"})
        agent = ATSScoringAgent(client=fake_client(f"```json\n{answer}\n```"))

        result = await agent.process({"resume": SAMPLE_RESUME, "job": JOB})

        assert result.ats_score == 81
        assert result.improvement_suggestions == "Mention Docker"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", [
        "not json",
        json.dumps({"atsScore": 150, "improvementSuggestions": "x"}),
        json.dumps({"atsScore": 50}),
    ])
    async def test_invalid_answer(self, text):
        agent = ATSScoringAgent(client=fake_client(text))

        with pytest.raises(ExternalServiceError, match="invalid format"):
            await agent.process({"resume": SAMPLE_RESUME, "job": JOB})

    @pytest.mark.asyncio
    async def test_model_failure(self):
        agent = ATSScoringAgent(client=fake_client(error=RuntimeError("quota")))

        with pytest.raises(ExternalServiceError, match="unavailable"):
            await agent.process({"resume": SAMPLE_RESUME, "job": JOB})

    @pytest.mark.asyncio
    async def test_empty_answer(self):
        agent = ATSScoringAgent(client=fake_client(""))

        with pytest.raises(ExternalServiceError, match="empty"):
            await agent.process({"resume": SAMPLE_RESUME, "job": JOB})


class TestCoverLetterAgent:
    @pytest.mark.asyncio
    async def test_prompt_carries_job_and_company(self):
        client = fake_client("  Dear hiring manager,\n...  ")
        agent = CoverLetterAgent(client=client)

        letter = await agent.process(
            {"resume": SAMPLE_RESUME, "job": JOB, "company_name": "Acme"}
        )

        assert letter == "Dear hiring manager,\n..."
        prompt = client.aio.models.generate_content.await_args.kwargs["contents"]
        assert "Backend Engineer" in prompt
        assert "Acme" in prompt


class TestResumeAgent:
    @pytest.mark.asyncio
    async def test_camel_case_answer_is_accepted(self):
        answer = {
            "resume": {
                "fullName": "Ada Lovelace",
                "bio": "Engineer",
                "location": "London",
                "contactInformation": {"email": "ada@example.com", "phone": ""},
                "socialLinks": [{"platform": "GitHub", "url": "https://github.com/ada"}],
                "skills": ["python"],
            }
        }
        agent = ResumeAgent(client=fake_client(json.dumps(answer)))

        document = await agent.process({"full_name": "Ada Lovelace"})

        dumped = document.model_dump()
        assert dumped["full_name"] == "Ada Lovelace"
        assert dumped["contact_information"]["email"] == "ada@example.com"
        assert dumped["projects"] == []
