"""
Unit tests for generation oracles and the oracle factory.

Provider clients are mocked; no network calls are made.
"""

import json
from unittest.mock import MagicMock, Mock, patch

import pytest

from reflective_prompts.errors import GenerationError
from reflective_prompts.generation.oracle import (
    GenerationOracle,
    OllamaInsightsOracle,
    OpenAIInsightsOracle,
    create_oracle,
)
from reflective_prompts.generation.prompts import SYSTEM_PROMPT, build_user_prompt, format_entries


def _openai_client(text, prompt_tokens=900, completion_tokens=400):
    client = MagicMock()
    completion = MagicMock()
    completion.choices = [MagicMock()]
    completion.choices[0].message.content = text
    completion.usage.prompt_tokens = prompt_tokens
    completion.usage.completion_tokens = completion_tokens
    completion.usage.total_tokens = prompt_tokens + completion_tokens
    client.chat.completions.create.return_value = completion
    return client


class StubOracle(GenerationOracle):
    """Oracle whose completions come from a list of canned results."""

    provider_name = "stub"

    def __init__(self, outcomes, **kwargs):
        super().__init__(model="stub-model", retry_delay=0, **kwargs)
        self.outcomes = list(outcomes)
        self.prompts = []

    def _complete(self, system_prompt, user_prompt):
        self.prompts.append(user_prompt)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return {"text": outcome}


class TestFormatEntries:
    """Test the per-request token budget."""

    @pytest.mark.unit
    def test_newest_documents_truncated(self, make_document):
        docs = [make_document("x" * 900, hours_ago=i) for i in range(25)]

        entries = format_entries(docs, max_documents=20, max_content_chars=500)

        assert len(entries) == 20
        assert all(len(e["content"]) == 500 for e in entries)
        assert entries[0]["date"] == docs[0].created_at.strftime("%Y-%m-%d")

    @pytest.mark.unit
    def test_untitled_and_word_count(self, make_document):
        entries = format_entries([make_document("one two three")], 20, 500)

        assert entries[0]["title"] == "Untitled"
        assert entries[0]["word_count"] == 3

    @pytest.mark.unit
    def test_user_prompt_embeds_entries(self, make_document):
        entries = format_entries([make_document("Felt calm today", title="Calm")], 20, 500)

        prompt = build_user_prompt(entries)

        assert json.dumps({"entries": entries}, ensure_ascii=False) in prompt


class TestGenerate:
    """Test generate(): retries, validation and error mapping."""

    @pytest.mark.unit
    def test_success(self, stress_documents, valid_insight):
        oracle = StubOracle([json.dumps(valid_insight)])

        response = oracle.generate(stress_documents)

        assert response.content["summary"] == valid_insight["summary"]
        assert response.provider == "stub"
        assert response.documents_sent == 3

    @pytest.mark.unit
    def test_empty_documents(self):
        with pytest.raises(GenerationError):
            StubOracle([]).generate([])

    @pytest.mark.unit
    def test_retries_then_succeeds(self, stress_documents, valid_insight):
        oracle = StubOracle([TimeoutError("slow"), json.dumps(valid_insight)])

        response = oracle.generate(stress_documents)

        assert len(oracle.prompts) == 2
        assert response.content["themes"]

    @pytest.mark.unit
    def test_retries_exhausted(self, stress_documents):
        oracle = StubOracle([TimeoutError("slow")] * 3, max_retries=3)

        with pytest.raises(GenerationError, match="generation failed"):
            oracle.generate(stress_documents)

        assert len(oracle.prompts) == 3

    @pytest.mark.unit
    def test_backoff_is_exponential(self, stress_documents, valid_insight):
        oracle = StubOracle([TimeoutError("a"), TimeoutError("b"), json.dumps(valid_insight)])
        oracle.retry_delay = 1.0

        with patch("reflective_prompts.generation.oracle.time.sleep") as mock_sleep:
            oracle.generate(stress_documents)

        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    @pytest.mark.unit
    def test_malformed_output(self, stress_documents):
        oracle = StubOracle(["I could not find any themes."])

        with pytest.raises(GenerationError, match="Malformed oracle output"):
            oracle.generate(stress_documents)


class TestOpenAIInsightsOracle:
    """Test the OpenAI-compatible client wiring."""

    @pytest.mark.unit
    def test_request_parameters(self, stress_documents, valid_insight):
        client = _openai_client(json.dumps(valid_insight))
        oracle = OpenAIInsightsOracle(model="gpt-4o-mini", api_key="sk-test", client=client)

        response = oracle.generate(stress_documents)

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 800
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert response.tokens_total == 1300
        assert response.provider == "openai"

    @pytest.mark.unit
    def test_empty_content_is_failure(self, stress_documents):
        client = _openai_client("")
        oracle = OpenAIInsightsOracle(
            model="gpt-4o-mini", api_key="sk-test", client=client, max_retries=1
        )

        with pytest.raises(GenerationError):
            oracle.generate(stress_documents)

    @pytest.mark.unit
    def test_sdk_retries_disabled(self):
        with patch("reflective_prompts.generation.oracle.OpenAI") as mock_openai:
            OpenAIInsightsOracle(model="gpt-4o-mini", api_key="sk-test", timeout_seconds=30)

        kwargs = mock_openai.call_args.kwargs
        assert kwargs["max_retries"] == 0
        assert kwargs["timeout"] == 30


class TestOllamaInsightsOracle:
    """Test the Ollama client wiring."""

    @pytest.mark.unit
    def test_request_parameters(self, stress_documents, valid_insight):
        client = Mock()
        client.chat.return_value = {
            "message": {"content": json.dumps(valid_insight)},
            "prompt_eval_count": 700,
            "eval_count": 300,
        }
        oracle = OllamaInsightsOracle(model="qwen2.5:7b", client=client)

        response = oracle.generate(stress_documents)

        kwargs = client.chat.call_args.kwargs
        assert kwargs["format"] == "json"
        assert kwargs["options"] == {"temperature": 0.7, "num_predict": 800}
        assert response.tokens_total == 1000
        assert response.provider == "ollama"


class TestCreateOracle:
    """Test the oracle factory."""

    @pytest.mark.unit
    def test_openai_requires_key(self):
        with pytest.raises(ValueError, match="API key required"):
            create_oracle(provider="openai", api_key="")

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "provider,base_url",
        [
            ("openai", "https://api.openai.com/v1"),
            ("deepseek", "https://api.deepseek.com"),
            ("openrouter", "https://openrouter.ai/api/v1"),
        ],
    )
    def test_openai_compatible_providers(self, provider, base_url):
        oracle = create_oracle(provider=provider, api_key="sk-test", client=MagicMock())

        assert isinstance(oracle, OpenAIInsightsOracle)
        assert oracle.provider_name == provider
        assert oracle.base_url == base_url
        assert oracle.max_documents == 20
        assert oracle.max_content_chars == 500

    @pytest.mark.unit
    def test_ollama(self):
        oracle = create_oracle(provider="ollama", model="llama3.1:8b", client=Mock())

        assert isinstance(oracle, OllamaInsightsOracle)
        assert oracle.model == "llama3.1:8b"

    @pytest.mark.unit
    def test_overrides(self):
        oracle = create_oracle(
            provider="ollama", client=Mock(), temperature=0.2, max_documents=5
        )

        assert oracle.temperature == 0.2
        assert oracle.max_documents == 5

    @pytest.mark.unit
    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown oracle provider"):
            create_oracle(provider="anthropic-direct")
