"""
Application configuration management.

This module handles configuration from environment variables using Pydantic Settings.
Every ranking, caching and scheduling policy constant lives here so it can be tuned
per deployment without code changes.
"""

import math
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings


def oracle_worst_case_seconds(timeout_seconds: float, max_retries: int, retry_delay: float) -> float:
    """
    Longest a single oracle generation can run when every attempt times out.

    Each attempt is bounded by timeout_seconds and attempts are separated by
    the exponential backoff sleeps (retry_delay * 2**attempt). Provider SDK
    retries are disabled, so nothing multiplies this further.

    Examples:
        >>> oracle_worst_case_seconds(30, 3, 1.0)
        93.0
    """
    attempts = max(max_retries, 1)
    backoff = sum(retry_delay * (2 ** attempt) for attempt in range(attempts - 1))
    return float(timeout_seconds * attempts + backoff)


class Settings(BaseSettings):
    """
    Application configuration from environment variables.

    All settings can be overridden via environment variables with the same name.
    """

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Persistence (tracker state, artifact cache, prompt assignments)
    database_url: str = "sqlite:///reflective_prompts.db"
    database_pool_size: int = 5
    database_echo_sql: bool = False

    # Normalizer
    normalizer_strategy: str = "suffix"  # "suffix" | "porter" | "none"
    normalizer_min_term_length: int = 3

    # Ranking
    ranking_top_k: int = 5
    ranking_max_per_theme: int = 2
    ranking_min_documents: int = 1

    # Artifact cache (AI insights)
    insights_cache_ttl_hours: int = 168  # 7 days
    insights_milestone_every: int = 3  # Regenerate at 3, 6, 9, ... documents
    insights_min_documents: int = 3
    oracle_max_documents: int = 20  # Newest N documents sent to the oracle
    oracle_max_content_chars: int = 500  # Per document, token budget

    # Background generation tracker
    generation_threshold: int = 2  # New qualifying documents since last generation
    generation_cooldown_seconds: int = 300
    # Stuck in_flight rows older than this are released; None derives it from the oracle budget
    generation_lock_timeout_seconds: Optional[int] = None
    generation_lock_margin_seconds: int = 30
    generation_max_workers: int = 4
    follow_up_lookback_days: int = 14
    sweep_active_days: int = 30  # Weekly sweep covers users with a document this recent

    # Generation oracle (LLM)
    llm_provider: str = "openai"  # "openai" | "deepseek" | "openrouter" | "ollama"
    llm_model: str = "gpt-4o-mini"
    llm_api_key: str = ""  # Optional for Ollama, required for cloud providers
    llm_api_base_url: str = ""  # Empty = provider default
    llm_temperature: float = 0.7
    llm_max_tokens: int = 800
    oracle_timeout_seconds: int = 30
    llm_max_retries: int = 3
    llm_retry_delay_seconds: float = 1.0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @model_validator(mode="after")
    def derive_lock_timeout(self):
        """
        Keep the generation lock alive for as long as a generation can run.

        A lock that goes stale while its oracle call is still retrying lets a
        second job start for the same user.
        """
        worst_case = oracle_worst_case_seconds(
            self.oracle_timeout_seconds, self.llm_max_retries, self.llm_retry_delay_seconds
        )
        if self.generation_lock_timeout_seconds is None:
            self.generation_lock_timeout_seconds = (
                math.ceil(worst_case) + self.generation_lock_margin_seconds
            )
        elif self.generation_lock_timeout_seconds <= worst_case:
            raise ValueError(
                f"generation_lock_timeout_seconds ({self.generation_lock_timeout_seconds}) must "
                f"exceed the worst-case oracle time ({worst_case:.0f}s)"
            )
        return self


# Global settings instance
settings = Settings()
