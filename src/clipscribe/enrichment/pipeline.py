"""Categorization and summarization of captures with fallback values."""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from pydantic import BaseModel, StrictStr, ValidationError

from clipscribe.errors import EnrichmentServiceFailure
from clipscribe.models import Capture, EnrichmentResult, ImageCapture, TextCapture
from clipscribe.enrichment.prompts import (
    CATEGORIZE_IMAGE_TEMPLATE,
    CATEGORIZE_PROMPT,
    CATEGORIZE_TEXT_TEMPLATE,
    SUMMARY_IMAGE_TEMPLATE,
    SUMMARY_PROMPT,
    SUMMARY_TEXT_TEMPLATE,
)
from clipscribe.utils.text import is_url, strip_code_fence, truncate

LOGGER = logging.getLogger(__name__)

NO_SUMMARY = "No summary available"
TEXT_FALLBACK = ("other", ("uncategorized",))
IMAGE_FALLBACK = ("image", ("screenshot",))

Message = Dict[str, Any]


class CompletionClient(Protocol):
    def complete(self, messages: List[Message]) -> str: ...


class CategoryResponse(BaseModel):
    category: StrictStr
    tags: List[StrictStr]


def build_categorize_messages(capture: Capture, max_chars: int = 2000) -> List[Message]:
    if isinstance(capture, TextCapture):
        content = CATEGORIZE_TEXT_TEMPLATE.format(content=truncate(capture.plain, max_chars))
        return [
            {"role": "system", "content": CATEGORIZE_PROMPT},
            {"role": "user", "content": content},
        ]
    if isinstance(capture, ImageCapture):
        prompt = CATEGORIZE_IMAGE_TEMPLATE.format(width=capture.width, height=capture.height)
        return [
            {"role": "system", "content": CATEGORIZE_PROMPT},
            _image_message(prompt, capture),
        ]
    raise TypeError(f"Unsupported capture type: {type(capture).__name__}")


def build_summary_messages(capture: Capture, max_chars: int = 2000) -> List[Message]:
    if isinstance(capture, TextCapture):
        content = SUMMARY_TEXT_TEMPLATE.format(content=truncate(capture.plain, max_chars))
        return [
            {"role": "system", "content": SUMMARY_PROMPT},
            {"role": "user", "content": content},
        ]
    if isinstance(capture, ImageCapture):
        prompt = SUMMARY_IMAGE_TEMPLATE.format(width=capture.width, height=capture.height)
        return [
            {"role": "system", "content": SUMMARY_PROMPT},
            _image_message(prompt, capture),
        ]
    raise TypeError(f"Unsupported capture type: {type(capture).__name__}")


def _image_message(prompt: str, capture: ImageCapture) -> Message:
    return {
        "role": "user",
        "content": [
            {"type": "text", "text": prompt},
            {
                "type": "image_url",
                "image_url": {"url": f"data:image/png;base64,{capture.data}", "detail": "auto"},
            },
        ],
    }


def parse_category_response(content: str) -> Optional[Tuple[str, Tuple[str, ...]]]:
    """Parse ``{"category": ..., "tags": [...]}`` from model output.

    Strict validation first; if that fails, any JSON object with a string
    ``category`` and a list ``tags`` is accepted with non-string tags dropped.
    Returns ``None`` when nothing usable is found.
    """
    text = strip_code_fence(content)
    try:
        parsed = CategoryResponse.model_validate_json(text)
        category, tags = parsed.category, list(parsed.tags)
    except ValidationError:
        try:
            data = json.loads(text)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        category, tags = data.get("category"), data.get("tags")
        if not isinstance(category, str) or not isinstance(tags, list):
            return None
        tags = [tag for tag in tags if isinstance(tag, str)]

    category = category.strip()
    if not category:
        return None
    return category, tuple(tag.strip() for tag in tags if tag.strip())


def should_summarize(capture: Capture) -> bool:
    if isinstance(capture, ImageCapture):
        return True
    if isinstance(capture, TextCapture):
        return is_url(capture.plain.strip())
    raise TypeError(f"Unsupported capture type: {type(capture).__name__}")


def fallback_category(capture: Capture) -> Tuple[str, Tuple[str, ...]]:
    if isinstance(capture, ImageCapture):
        return IMAGE_FALLBACK
    return TEXT_FALLBACK


class EnrichmentPipeline:
    """Turns a capture into an :class:`EnrichmentResult`. Never raises."""

    def __init__(
        self,
        client_factory: Callable[[], CompletionClient],
        *,
        max_text_chars: int = 2000,
    ) -> None:
        self.client_factory = client_factory
        self.max_text_chars = max_text_chars

    def enrich(self, capture: Capture) -> EnrichmentResult:
        try:
            return self._enrich(capture)
        except Exception:
            LOGGER.exception("Enrichment failed unexpectedly")
            category, tags = fallback_category(capture)
            try:
                summary = NO_SUMMARY if should_summarize(capture) else None
            except TypeError:
                summary = None
            return EnrichmentResult(category=category, tags=tags, summary=summary, degraded=True)

    def _enrich(self, capture: Capture) -> EnrichmentResult:
        summarize = should_summarize(capture)
        try:
            client: Optional[CompletionClient] = self.client_factory()
        except Exception as exc:
            LOGGER.error("Enrichment client unavailable: %s", exc)
            client = None

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="enrich") as pool:
            category_future = pool.submit(self._categorize, client, capture)
            summary_future = pool.submit(self._summarize, client, capture) if summarize else None
            category, tags, category_degraded = category_future.result()
            summary, summary_degraded = (None, False)
            if summary_future is not None:
                summary, summary_degraded = summary_future.result()

        return EnrichmentResult(
            category=category,
            tags=tags,
            summary=summary,
            degraded=category_degraded or summary_degraded,
        )

    def _categorize(
        self, client: Optional[CompletionClient], capture: Capture
    ) -> Tuple[str, Tuple[str, ...], bool]:
        try:
            if client is None:
                raise EnrichmentServiceFailure("no client")
            content = client.complete(build_categorize_messages(capture, self.max_text_chars))
            parsed = parse_category_response(content)
            if parsed is None:
                raise EnrichmentServiceFailure(f"Unparseable categorization: {content[:200]!r}")
        except Exception as exc:
            LOGGER.error("LLM categorization failed: %s", exc)
            category, tags = fallback_category(capture)
            return category, tags, True

        category, tags = parsed
        LOGGER.info("LLM categorized as: %s with tags: %s", category, list(tags))
        return category, tags, False

    def _summarize(self, client: Optional[CompletionClient], capture: Capture) -> Tuple[str, bool]:
        try:
            if client is None:
                raise EnrichmentServiceFailure("no client")
            summary = client.complete(build_summary_messages(capture, self.max_text_chars)).strip()
        except Exception as exc:
            LOGGER.error("LLM summarization failed: %s", exc)
            return NO_SUMMARY, True

        if not summary:
            return NO_SUMMARY, True
        LOGGER.debug("LLM summary: %s", summary)
        return summary, False
