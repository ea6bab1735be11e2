"""Thin wrapper around the OpenAI chat completions API."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import openai

from clipscribe.config import AppConfig
from clipscribe.errors import EnrichmentServiceFailure
from clipscribe.store.settings import LLM_API_KEY, LLM_MODEL, SettingsCache

LOGGER = logging.getLogger(__name__)

ENV_API_KEY = "OPENAI_API_KEY"


class EnrichmentClient:
    """Sends role-tagged messages and returns the model's text output."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        max_output_tokens: int = 100,
        timeout: float = 30.0,
        max_retries: int = 2,
        client: Any = None,
    ) -> None:
        self.model = model
        self.max_output_tokens = max_output_tokens
        self._client = client or openai.OpenAI(
            api_key=api_key, timeout=timeout, max_retries=max_retries
        )

    def complete(self, messages: List[Dict[str, Any]]) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_output_tokens,
            )
        except openai.OpenAIError as exc:
            raise EnrichmentServiceFailure(f"OpenAI request failed: {exc}") from exc

        if not response.choices:
            raise EnrichmentServiceFailure("OpenAI returned no choices")
        return (response.choices[0].message.content or "").strip()


def resolve_api_key(settings: SettingsCache) -> Optional[str]:
    """Credential from settings, falling back to the environment."""
    return settings.get(LLM_API_KEY) or os.environ.get(ENV_API_KEY) or None


def client_from_settings(settings: SettingsCache, config: AppConfig) -> EnrichmentClient:
    """Build a client from the settings as they are right now.

    Called once per enrichment so credential and model edits apply to the
    next capture without a restart.
    """
    api_key = resolve_api_key(settings)
    if not api_key:
        raise EnrichmentServiceFailure(
            f"No API key configured; set '{LLM_API_KEY}' or {ENV_API_KEY}"
        )
    model = settings.get(LLM_MODEL) or config.model_name
    return EnrichmentClient(
        api_key,
        model,
        max_output_tokens=config.max_output_tokens,
        timeout=config.request_timeout,
    )
