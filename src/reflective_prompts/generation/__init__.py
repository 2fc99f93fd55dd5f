"""Insight generation module.

Provides the generation oracle abstraction, prompt templates and the
multi-stage validator applied to untrusted oracle output.
"""

from .oracle import (
    GenerationOracle,
    OllamaInsightsOracle,
    OpenAIInsightsOracle,
    OracleResponse,
    create_oracle,
)
from .prompts import SYSTEM_PROMPT, build_user_prompt, format_entries
from .validators import ValidationResult, validate_insight_output

__all__ = [
    "GenerationOracle",
    "OpenAIInsightsOracle",
    "OllamaInsightsOracle",
    "OracleResponse",
    "create_oracle",
    "SYSTEM_PROMPT",
    "build_user_prompt",
    "format_entries",
    "ValidationResult",
    "validate_insight_output",
]
