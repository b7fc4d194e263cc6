"""
Agents package for the Gemini-backed generators.

Each agent wraps one prompt and validates what the model returns before any
caller persists it.
"""

from agents.base import BaseAgent
from agents.career import (
    ATSScoringAgent,
    CoverLetterAgent,
    ResumeAgent,
    ats_scoring_agent,
    cover_letter_agent,
    resume_agent,
)

__all__ = [
    "BaseAgent",
    "ATSScoringAgent",
    "CoverLetterAgent",
    "ResumeAgent",
    "ats_scoring_agent",
    "cover_letter_agent",
    "resume_agent",
]
