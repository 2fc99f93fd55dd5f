"""
Generation oracle abstraction for AI insight artifacts.

Provides a unified interface over LLM providers:
- OpenAI API (gpt-4o-mini by default)
- DeepSeek and OpenRouter (OpenAI-compatible endpoints)
- Ollama (self-hosted models)

Every implementation bounds calls by a timeout, retries with exponential
backoff, validates the payload, and reports any failure as GenerationError.
"""

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import ollama
import structlog
from openai import OpenAI

from ..config import settings
from ..errors import GenerationError
from ..models.documents import Document
from .prompts import SYSTEM_PROMPT, build_user_prompt, format_entries
from .validators import validate_insight_output

logger = structlog.get_logger(__name__)


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class OracleResponse:
    """
    Validated oracle output plus request metadata.
    """

    content: Dict[str, Any]

    # Metadata
    model: str
    provider: str
    tokens_input: Optional[int] = None
    tokens_output: Optional[int] = None
    tokens_total: Optional[int] = None
    latency_ms: int = 0
    documents_sent: int = 0


# ============================================================================
# ABSTRACT BASE CLASS
# ============================================================================

class GenerationOracle(ABC):
    """
    Abstract base class for generation oracles.

    Subclasses implement _complete(), which returns the raw JSON text and
    token usage; generate() handles truncation, retries and validation.
    """

    provider_name = "abstract"

    def __init__(
        self,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 800,
        timeout_seconds: int = 30,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        max_documents: int = 20,
        max_content_chars: int = 500,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_documents = max_documents
        self.max_content_chars = max_content_chars

        self.logger = logger.bind(oracle=self.__class__.__name__, model=model)

    @abstractmethod
    def _complete(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        """
        Run one completion.

        Returns:
            Dict with "text" (raw JSON string) and optional "tokens_input",
            "tokens_output", "tokens_total"
        """

    def generate(self, documents: Sequence[Document]) -> OracleResponse:
        """
        Produce a validated insight payload for the given documents.

        Only the newest max_documents are sent, each truncated to
        max_content_chars.

        Raises:
            GenerationError: On timeout, provider failure after retries, or
                output that fails validation
        """
        if not documents:
            raise GenerationError("No documents to generate from")

        start_time = time.time()
        entries = format_entries(documents, self.max_documents, self.max_content_chars)
        user_prompt = build_user_prompt(entries)

        self.logger.info("oracle_generation_started", documents_sent=len(entries))

        try:
            raw = self._retry_with_backoff(self._complete, SYSTEM_PROMPT, user_prompt)
        except Exception as e:
            self.logger.error(
                "oracle_generation_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise GenerationError(f"{self.provider_name} generation failed: {e}") from e

        validation = validate_insight_output(raw.get("text") or "")
        if not validation.valid:
            self.logger.warning("oracle_output_invalid", errors=validation.errors)
            raise GenerationError(f"Malformed oracle output: {'; '.join(validation.errors)}")

        if validation.warnings:
            self.logger.info("oracle_output_warnings", warnings=validation.warnings)

        latency_ms = int((time.time() - start_time) * 1000)
        response = OracleResponse(
            content=validation.cleaned_data,
            model=self.model,
            provider=self.provider_name,
            tokens_input=raw.get("tokens_input"),
            tokens_output=raw.get("tokens_output"),
            tokens_total=raw.get("tokens_total"),
            latency_ms=latency_ms,
            documents_sent=len(entries),
        )

        self.logger.info(
            "oracle_generation_completed",
            latency_ms=latency_ms,
            tokens_total=response.tokens_total,
            themes_count=len(response.content["themes"]),
        )
        return response

    def _retry_with_backoff(self, func, *args, **kwargs):
        """
        Execute function with exponential backoff retry logic.

        Raises:
            Last exception encountered after all retries exhausted
        """
        for attempt in range(self.max_retries):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if attempt == self.max_retries - 1:
                    self.logger.error(
                        "oracle_call_failed_after_retries",
                        error=str(e),
                        attempts=self.max_retries,
                    )
                    raise

                wait_time = self.retry_delay * (2 ** attempt)
                self.logger.warning(
                    "oracle_call_retry",
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    error=str(e),
                    wait_seconds=wait_time,
                )
                time.sleep(wait_time)


# ============================================================================
# OPENAI-COMPATIBLE ORACLE
# ============================================================================

class OpenAIInsightsOracle(GenerationOracle):
    """
    OpenAI-compatible oracle (OpenAI, DeepSeek, OpenRouter).

    Uses JSON mode (response_format json_object) so the reply is a single
    object with no surrounding prose.
    """

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        provider_name: str = "openai",
        client: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(model=model, **kwargs)
        self.provider_name = provider_name
        self.base_url = base_url
        # Retries belong to _retry_with_backoff; SDK retries would multiply the lock budget
        self.client = client or OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=self.timeout_seconds,
            max_retries=0,
        )

    def _complete(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
        )

        text = response.choices[0].message.content
        if not text:
            raise ValueError("Empty response from OpenAI-compatible API")

        usage = response.usage
        return {
            "text": text,
            "tokens_input": usage.prompt_tokens if usage else None,
            "tokens_output": usage.completion_tokens if usage else None,
            "tokens_total": usage.total_tokens if usage else None,
        }


# ============================================================================
# OLLAMA ORACLE
# ============================================================================

class OllamaInsightsOracle(GenerationOracle):
    """
    Ollama oracle for self-hosted models (qwen2.5, llama3.1, ...).

    Requires Ollama running locally or reachable via base_url.
    """

    provider_name = "ollama"

    def __init__(
        self,
        model: str,
        base_url: str = "http://localhost:11434",
        client: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(model=model, **kwargs)
        self.base_url = base_url
        self.client = client or ollama.Client(host=base_url, timeout=self.timeout_seconds)

    def _complete(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        response = self.client.chat(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            format="json",
            options={
                "temperature": self.temperature,
                "num_predict": self.max_tokens,
            },
        )

        text = response.get("message", {}).get("content")
        if not text:
            raise ValueError("Empty response from Ollama")

        tokens_input = response.get("prompt_eval_count")
        tokens_output = response.get("eval_count")
        tokens_total = (
            tokens_input + tokens_output
            if tokens_input is not None and tokens_output is not None
            else None
        )
        return {
            "text": text if isinstance(text, str) else json.dumps(text),
            "tokens_input": tokens_input,
            "tokens_output": tokens_output,
            "tokens_total": tokens_total,
        }


# ============================================================================
# ORACLE FACTORY
# ============================================================================

_OPENAI_COMPATIBLE_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com",
    "openrouter": "https://openrouter.ai/api/v1",
}


def create_oracle(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    **override_kwargs,
) -> GenerationOracle:
    """
    Factory function to create the configured generation oracle.

    Priority order for configuration:
    1. Explicit parameters passed to this function
    2. Settings from config

    Args:
        provider: "openai", "deepseek", "openrouter" or "ollama"
        model: Model name (provider-specific)
        **override_kwargs: Override any oracle parameters

    Returns:
        Configured GenerationOracle instance

    Raises:
        ValueError: If provider is unknown or an API key is missing
    """
    provider = provider or settings.llm_provider
    model = model or settings.llm_model

    oracle_params = {
        "temperature": override_kwargs.get("temperature", settings.llm_temperature),
        "max_tokens": override_kwargs.get("max_tokens", settings.llm_max_tokens),
        "timeout_seconds": override_kwargs.get("timeout_seconds", settings.oracle_timeout_seconds),
        "max_retries": override_kwargs.get("max_retries", settings.llm_max_retries),
        "retry_delay": override_kwargs.get("retry_delay", settings.llm_retry_delay_seconds),
        "max_documents": override_kwargs.get("max_documents", settings.oracle_max_documents),
        "max_content_chars": override_kwargs.get(
            "max_content_chars", settings.oracle_max_content_chars
        ),
    }

    logger.info("creating_oracle", provider=provider, model=model)

    if provider == "ollama":
        return OllamaInsightsOracle(
            model=model,
            base_url=override_kwargs.get("base_url")
            or settings.llm_api_base_url
            or "http://localhost:11434",
            client=override_kwargs.get("client"),
            **oracle_params,
        )

    if provider in _OPENAI_COMPATIBLE_BASE_URLS:
        api_key = override_kwargs.get("api_key", settings.llm_api_key)
        if not api_key:
            raise ValueError(f"{provider} API key required (set LLM_API_KEY env var)")

        return OpenAIInsightsOracle(
            model=model,
            api_key=api_key,
            base_url=override_kwargs.get("base_url")
            or settings.llm_api_base_url
            or _OPENAI_COMPATIBLE_BASE_URLS[provider],
            provider_name=provider,
            client=override_kwargs.get("client"),
            **oracle_params,
        )

    raise ValueError(
        f"Unknown oracle provider: {provider}. "
        f"Supported: {sorted(['ollama', *_OPENAI_COMPATIBLE_BASE_URLS])}"
    )
