"""Tests for the enrichment pipeline and its OpenAI client."""

from __future__ import annotations

import json
import threading
from types import SimpleNamespace
from typing import Any, Dict, List
from unittest.mock import MagicMock

import openai
import pytest

from clipscribe.config import AppConfig
from clipscribe.enrichment.client import EnrichmentClient, client_from_settings, resolve_api_key
from clipscribe.enrichment.pipeline import (
    NO_SUMMARY,
    EnrichmentPipeline,
    build_categorize_messages,
    build_summary_messages,
    parse_category_response,
    should_summarize,
)
from clipscribe.errors import EnrichmentServiceFailure
from clipscribe.models import ImageCapture, TextCapture
from clipscribe.store.settings import LLM_API_KEY, LLM_MODEL, SettingsCache

CATEGORY_JSON = json.dumps({"category": "code_snippet", "tags": ["python", "function"]})


class ScriptedClient:
    """Answers categorization and summary requests from fixed strings."""

    def __init__(self, category: Any = CATEGORY_JSON, summary: Any = "- A short summary") -> None:
        self.category = category
        self.summary = summary
        self.calls: List[List[Dict[str, Any]]] = []
        self._lock = threading.Lock()

    def complete(self, messages: List[Dict[str, Any]]) -> str:
        with self._lock:
            self.calls.append(messages)
        system = messages[0]["content"]
        answer = self.summary if "summarization" in system else self.category
        if isinstance(answer, Exception):
            raise answer
        return answer


def _pipeline(client: Any) -> EnrichmentPipeline:
    return EnrichmentPipeline(lambda: client)


IMAGE = ImageCapture(data="iVBORw0KGgo=", width=640, height=480)


class TestMessages:
    """Test request message construction."""

    def test_text_categorize_messages(self) -> None:
        messages = build_categorize_messages(TextCapture(plain="def f(): pass"))

        assert messages[0]["role"] == "system"
        assert messages[1] == {
            "role": "user",
            "content": "Categorize this text content:\n\ndef f(): pass",
        }

    def test_text_at_limit_is_sent_unmodified(self) -> None:
        text = "y" * 2000

        messages = build_categorize_messages(TextCapture(plain=text), max_chars=2000)

        assert messages[1]["content"] == "Categorize this text content:\n\n" + text

    def test_text_is_truncated(self) -> None:
        messages = build_categorize_messages(TextCapture(plain="x" * 3000), max_chars=2000)

        assert messages[1]["content"].endswith("x" * 2000 + "...")

    def test_image_messages_embed_data_url(self) -> None:
        messages = build_summary_messages(IMAGE)
        parts = messages[1]["content"]

        assert parts[0]["type"] == "text"
        assert "640x480" in parts[0]["text"]
        assert parts[1]["image_url"]["url"] == "data:image/png;base64,iVBORw0KGgo="


class TestParseCategoryResponse:
    """Test model output parsing."""

    def test_plain_json(self) -> None:
        assert parse_category_response(CATEGORY_JSON) == ("code_snippet", ("python", "function"))

    def test_fenced_json(self) -> None:
        assert parse_category_response(f"```json\n{CATEGORY_JSON}\n```") == (
            "code_snippet",
            ("python", "function"),
        )

    def test_non_string_tags_dropped(self) -> None:
        content = json.dumps({"category": "data", "tags": ["csv", 3, None, " logs "]})

        assert parse_category_response(content) == ("data", ("csv", "logs"))

    @pytest.mark.parametrize(
        "content",
        [
            "not json at all",
            "[]",
            json.dumps({"category": "notes"}),
            json.dumps({"category": 1, "tags": []}),
            json.dumps({"category": "  ", "tags": ["a"]}),
        ],
    )
    def test_unusable(self, content: str) -> None:
        assert parse_category_response(content) is None


class TestShouldSummarize:
    def test_url_text(self) -> None:
        assert should_summarize(TextCapture(plain="  https://example.com/article \n"))

    def test_plain_text(self) -> None:
        assert not should_summarize(TextCapture(plain="hello world"))

    def test_image(self) -> None:
        assert should_summarize(IMAGE)


class TestEnrich:
    """Test EnrichmentPipeline.enrich."""

    def test_text_success(self) -> None:
        client = ScriptedClient()

        result = _pipeline(client).enrich(TextCapture(plain="def f(): pass"))

        assert result.category == "code_snippet"
        assert result.tags == ("python", "function")
        assert result.summary is None
        assert result.degraded is False
        assert len(client.calls) == 1

    def test_url_gets_summary(self) -> None:
        client = ScriptedClient(
            category=json.dumps({"category": "url", "tags": ["article"]}),
            summary="- Key point",
        )

        result = _pipeline(client).enrich(TextCapture(plain="https://example.com/post"))

        assert result.category == "url"
        assert result.summary == "- Key point"
        assert len(client.calls) == 2

    def test_text_fallback_on_service_failure(self) -> None:
        client = ScriptedClient(category=EnrichmentServiceFailure("timeout"))

        result = _pipeline(client).enrich(TextCapture(plain="hello"))

        assert (result.category, result.tags) == ("other", ("uncategorized",))
        assert result.summary is None
        assert result.degraded is True

    def test_text_fallback_on_unparseable_output(self) -> None:
        result = _pipeline(ScriptedClient(category="I think it's code")).enrich(
            TextCapture(plain="hello")
        )

        assert (result.category, result.tags) == ("other", ("uncategorized",))

    def test_image_fallback_and_sentinel(self) -> None:
        """An unreachable service still yields a complete image result."""
        client = ScriptedClient(
            category=EnrichmentServiceFailure("down"), summary=EnrichmentServiceFailure("down")
        )

        result = _pipeline(client).enrich(IMAGE)

        assert (result.category, result.tags) == ("image", ("screenshot",))
        assert result.summary == NO_SUMMARY
        assert result.degraded is True

    def test_empty_summary_uses_sentinel(self) -> None:
        result = _pipeline(ScriptedClient(summary="   ")).enrich(IMAGE)

        assert result.category == "code_snippet"
        assert result.summary == NO_SUMMARY

    def test_client_factory_failure(self) -> None:
        """A missing credential degrades to fallbacks without raising."""

        def factory() -> Any:
            raise EnrichmentServiceFailure("No API key configured")

        result = EnrichmentPipeline(factory).enrich(TextCapture(plain="https://example.com"))

        assert (result.category, result.tags) == ("other", ("uncategorized",))
        assert result.summary == NO_SUMMARY
        assert result.degraded is True

    @pytest.mark.parametrize(
        ("capture", "expected"),
        [
            (IMAGE, ("image", ("screenshot",), NO_SUMMARY)),
            (TextCapture(plain="https://example.com"), ("other", ("uncategorized",), NO_SUMMARY)),
            (TextCapture(plain="plain words"), ("other", ("uncategorized",), None)),
        ],
    )
    def test_internal_failure_keeps_summary_sentinel(
        self, capture: Any, expected: Any, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A crash inside enrichment still reports the sentinel when a summary was due."""
        pipeline = _pipeline(ScriptedClient())
        monkeypatch.setattr(
            pipeline, "_enrich", MagicMock(side_effect=RuntimeError("cannot schedule new futures"))
        )

        result = pipeline.enrich(capture)

        assert (result.category, result.tags, result.summary) == expected
        assert result.degraded is True

    def test_unexpected_client_error(self) -> None:
        result = _pipeline(ScriptedClient(category=KeyError("weird"))).enrich(
            TextCapture(plain="x")
        )

        assert result.category == "other"


def _completion(content: Any) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestEnrichmentClient:
    """Test the OpenAI wrapper with a mocked SDK client."""

    def test_complete_sends_request(self) -> None:
        sdk = MagicMock()
        sdk.chat.completions.create.return_value = _completion("  hello  ")
        client = EnrichmentClient("sk-test", "gpt-4o", max_output_tokens=100, client=sdk)
        messages = [{"role": "user", "content": "hi"}]

        assert client.complete(messages) == "hello"
        sdk.chat.completions.create.assert_called_once_with(
            model="gpt-4o", messages=messages, max_tokens=100
        )

    def test_sdk_error_is_wrapped(self) -> None:
        sdk = MagicMock()
        sdk.chat.completions.create.side_effect = openai.OpenAIError("rate limited")
        client = EnrichmentClient("sk-test", "gpt-4o", client=sdk)

        with pytest.raises(EnrichmentServiceFailure):
            client.complete([])

    def test_no_choices(self) -> None:
        sdk = MagicMock()
        sdk.chat.completions.create.return_value = SimpleNamespace(choices=[])
        client = EnrichmentClient("sk-test", "gpt-4o", client=sdk)

        with pytest.raises(EnrichmentServiceFailure):
            client.complete([])

    def test_null_content(self) -> None:
        sdk = MagicMock()
        sdk.chat.completions.create.return_value = _completion(None)

        assert EnrichmentClient("sk-test", "gpt-4o", client=sdk).complete([]) == ""


class TestClientFromSettings:
    """Test credential and model resolution."""

    def test_key_from_settings(self, settings: SettingsCache, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        settings.set(LLM_API_KEY, "sk-settings")

        assert resolve_api_key(settings) == "sk-settings"

    def test_key_from_environment(
        self, settings: SettingsCache, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

        assert resolve_api_key(settings) == "sk-env"

    def test_missing_key_raises(self, settings: SettingsCache, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(EnrichmentServiceFailure):
            client_from_settings(settings, AppConfig(db_path=settings.database.db_path))

    def test_model_override(self, settings: SettingsCache, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        settings.set(LLM_API_KEY, "sk-settings")
        settings.set(LLM_MODEL, "gpt-4o-mini")

        client = client_from_settings(settings, AppConfig(db_path=settings.database.db_path))

        assert client.model == "gpt-4o-mini"
        assert client.max_output_tokens == 100
