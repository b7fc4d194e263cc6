"""Base agent class for the Gemini-backed generators."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type, TypeVar

from google.genai import types
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

MAX_FIELD_LENGTH = 1500


def sanitize(text: Optional[str], max_length: int = MAX_FIELD_LENGTH) -> str:
    """Strip backticks and truncate user-supplied text before it enters a prompt."""
    return (text or "").replace("`", "")[:max_length]


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) fence from a response."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


class BaseAgent(ABC):
    """Base class for all AI agents using Google Gemini."""

    def __init__(
        self,
        name: str,
        instructions: str,
        model: Optional[str] = None,
        client: Any = None,
    ):
        """Initialize the agent.

        Args:
            name: Agent name
            instructions: System instructions for the agent
            model: Google model to use (defaults to GOOGLE_MODEL)
            client: Pre-built ``genai.Client`` (built lazily from settings otherwise)
        """
        from core.config import settings

        self.name = name
        self.instructions = instructions
        self.model = model or settings.google_model
        self._client = client

    def _get_client(self):
        """Get or create the Gemini client."""
        if self._client is None:
            from google import genai
            from core.config import settings

            self._client = genai.Client(
                api_key=settings.google_api_key,
            )
        return self._client

    @abstractmethod
    async def process(self, input_data: Dict[str, Any]) -> Any:
        """Process input data and return results.

        Args:
            input_data: Input data for the agent

        Returns:
            Processing results
        """
        pass

    async def run(self, prompt: str) -> str:
        """Run the agent with a prompt.

        Args:
            prompt: User prompt

        Returns:
            Model response text

        Raises:
            ExternalServiceError: the model call failed or returned nothing
        """
        client = self._get_client()
        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=self.instructions,
                ),
            )
        except Exception as e:
            logger.error(f"{self.name}: model call failed: {type(e).__name__}: {e}")
            raise ExternalServiceError("AI service unavailable") from e

        text = response.text
        if not text:
            logger.error(f"{self.name}: model returned an empty response")
            raise ExternalServiceError("AI returned an empty response")
        return text

    async def run_json(self, prompt: str, schema: Type[M]) -> M:
        """Run the agent and validate its JSON answer against ``schema``.

        Raises:
            ExternalServiceError: "AI returned invalid format" when the answer
                is not JSON or does not match the schema
        """
        text = await self.run(prompt)
        try:
            return schema.model_validate(json.loads(strip_code_fences(text)))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning(f"{self.name}: response did not match {schema.__name__}: {e}")
            raise ExternalServiceError("AI returned invalid format") from e
