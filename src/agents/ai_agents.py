"""
AI Agents for the Expense Tracker

DESIGN DECISION: The AI service is an opaque text completion capability.
The agent receives a fully built prompt and returns text. It never reads
storage, never builds prompts and never decides what to show the user.

CRITICAL BOUNDARIES:

1. INSIGHT AGENT:
   - CAN: Turn a serialized transaction list and a question into prose
   - CANNOT: See any data the prompt builder didn't serialize
   - CANNOT: Modify the ledger
   - MUST: Raise InsightServiceError on any failure, so the caller can
     fall back to a fixed message

The LLM is a WRITER, not an ORACLE.
Every number it sees comes from the stored transactions.
"""

from typing import Optional

import google.generativeai as genai
from pydantic import BaseModel, Field

from src.config import get_settings
from src.config.settings import GeminiSettings


class InsightServiceError(Exception):
    """The AI service failed or returned nothing usable."""
    pass


class InsightResponse(BaseModel):
    """
    Result of one insight request, as shown to the user.

    `used_fallback` is True when the text is a canned message rather
    than the AI service's reply.
    """

    text: str = Field(
        description="Text shown to the user"
    )
    used_fallback: bool = Field(
        default=False,
        description="Whether a canned message replaced the service reply"
    )
    record_count: int = Field(
        default=0,
        ge=0,
        description="Transactions serialized into the prompt"
    )


class InsightAgent:
    """
    Gemini-backed completion service for spending insights.

    RESPONSIBILITIES:
    - Send one prompt, return the reply text

    BOUNDARIES:
    - NEVER retries (the user can ask again)
    - NEVER alters the reply
    """

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    @property
    def model_name(self) -> str:
        return self._settings.model_name

    async def complete(self, prompt: str) -> str:
        """
        Send a prompt and return the reply text.

        Raises:
            InsightServiceError: If the call fails or the reply has no text
        """
        try:
            response = await self._model.generate_content_async(prompt)
            text = response.text
        except Exception as e:
            raise InsightServiceError(f"Gemini request failed: {e}") from e

        if not text:
            raise InsightServiceError("Gemini returned an empty response")
        return text
