"""
Career document agents: ATS scoring, cover letters and structured resumes.
"""

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from agents.base import BaseAgent, sanitize


# ==================== Response schemas ===================== #
class ATSResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ats_score: int = Field(..., ge=0, le=100, alias="atsScore")
    improvement_suggestions: str = Field(..., min_length=1, alias="improvementSuggestions")


class ContactInformation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    phone: str


class ResumeSocialLink(BaseModel):
    platform: str
    url: str


class ResumeDocument(BaseModel):
    """Structured resume as stored on the job seeker profile."""

    model_config = ConfigDict(populate_by_name=True)

    full_name: str = Field(..., min_length=1, alias="fullName")
    bio: str
    location: str
    contact_information: ContactInformation = Field(..., alias="contactInformation")
    social_links: List[ResumeSocialLink] = Field(default_factory=list, alias="socialLinks")
    education: List[Dict[str, Any]] = Field(default_factory=list)
    experiences: List[Dict[str, Any]] = Field(default_factory=list)
    projects: List[Dict[str, Any]] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)


class ResumeEnvelope(BaseModel):
    resume: ResumeDocument


def _dump(value: Any) -> str:
    return sanitize(json.dumps(value, default=str))


# ==================== Agents ===================== #
class ATSScoringAgent(BaseAgent):
    def __init__(self, **kwargs):
        super().__init__(
            name="ats_scorer",
            instructions=(
                "You are an applicant tracking system evaluator. Answer with JSON only."
            ),
            **kwargs,
        )

    async def process(self, input_data: Dict[str, Any]) -> ATSResult:
        """Score a resume against a job.

        Args:
            input_data: {"resume": ResumeDocument-shaped dict, "job": job dict}
        """
        resume, job = input_data["resume"], input_data["job"]
        prompt = f"""
Return:
{{
  "atsScore": 0-100,
  "improvementSuggestions": "short, helpful suggestions"
}}
Job:
- Title: {sanitize(job.get("title"))}
- Description: {sanitize(job.get("description"))}
- Skills: {_dump(job.get("skills", []))}
- Requirements: {_dump(job.get("requirements", []))}
- Level: {sanitize(job.get("experience_level"))}

Resume:
- Name: {sanitize(resume.get("full_name"))}
- Bio: {sanitize(resume.get("bio"))}
- Skills: {_dump(resume.get("skills", []))}
- Experience: {_dump(resume.get("experiences", []))}
- Projects: {_dump(resume.get("projects", []))}
- Education: {_dump(resume.get("education", []))}
"""
        return await self.run_json(prompt, ATSResult)


class CoverLetterAgent(BaseAgent):
    def __init__(self, **kwargs):
        super().__init__(
            name="cover_letter_writer",
            instructions="You write concise, professional cover letters in plain text.",
            **kwargs,
        )

    async def process(self, input_data: Dict[str, Any]) -> str:
        """Write a 200-300 word cover letter for a resume and job."""
        resume, job = input_data["resume"], input_data["job"]
        company_name: Optional[str] = input_data.get("company_name")
        prompt = f"""
Write a 200-300 word professional cover letter.

Job:
- Title: {sanitize(job.get("title"))}
- Description: {sanitize(job.get("description"))}
- Company: {sanitize(company_name or "Unknown Company")}

Applicant:
- Name: {sanitize(resume.get("full_name"))}
- Bio: {sanitize(resume.get("bio"))}
- Skills: {_dump(resume.get("skills", []))}
- Experience: {_dump(resume.get("experiences", []))}
- Contact: {_dump(resume.get("contact_information", {}))}
"""
        return (await self.run(prompt)).strip()


class ResumeAgent(BaseAgent):
    def __init__(self, **kwargs):
        super().__init__(
            name="resume_generator",
            instructions="You turn profile data into a structured resume. Answer with JSON only.",
            **kwargs,
        )

    async def process(self, input_data: Dict[str, Any]) -> ResumeDocument:
        """Generate a structured resume from profile data."""
        prompt = f"""
Generate a structured JSON resume with this data:
- Name: {sanitize(input_data.get("full_name"))}
- Bio: {sanitize(input_data.get("bio"))}
- Location: {sanitize(input_data.get("location"))}
- Contact: {_dump(input_data.get("contact_information", {}))}
- Social Links: {_dump(input_data.get("social_links", []))}
- Education: {_dump(input_data.get("education", []))}
- Experiences: {_dump(input_data.get("experiences", []))}
- Projects: {_dump(input_data.get("projects", []))}
- Skills: {_dump(input_data.get("skills", []))}

Respond in this format:
{{
  "resume": {{
    "fullName": "...",
    "bio": "...",
    "location": "...",
    "contactInformation": {{"email": "...", "phone": "..."}},
    "socialLinks": [{{"platform": "...", "url": "..."}}],
    "education": [],
    "experiences": [],
    "projects": [],
    "skills": []
  }}
}}
Return only JSON, no extra text.
"""
        envelope = await self.run_json(prompt, ResumeEnvelope)
        return envelope.resume


ats_scoring_agent = ATSScoringAgent()
cover_letter_agent = CoverLetterAgent()
resume_agent = ResumeAgent()
