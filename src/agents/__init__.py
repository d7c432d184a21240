"""AI Agents package."""

from src.agents.ai_agents import (
    InsightAgent,
    InsightResponse,
    InsightServiceError,
)
from src.agents.prompts import (
    EMPTY_LEDGER_MESSAGE,
    FALLBACK_MESSAGE,
    GENERAL_INSIGHT_QUESTION,
    InsightPrompt,
    build_general_insight_prompt,
    build_insight_prompt,
    parse_insight_response,
)

__all__ = [
    "InsightAgent",
    "InsightResponse",
    "InsightServiceError",
    # Prompt building
    "EMPTY_LEDGER_MESSAGE",
    "FALLBACK_MESSAGE",
    "GENERAL_INSIGHT_QUESTION",
    "InsightPrompt",
    "build_general_insight_prompt",
    "build_insight_prompt",
    "parse_insight_response",
]
