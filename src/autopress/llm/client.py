from __future__ import annotations

import json
import logging
import re
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any

import jsonschema

from ..models import Article
from ..utils import escape_html_text, extract_json, log_event, unique_strings
from .prompts import SYSTEM_PROMPT, build_fallback_prompt, build_rewrite_prompt

logger = logging.getLogger(__name__)

REWRITE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["title"],
    "properties": {
        "title": {"type": "string", "minLength": 1},
        "seo_title": {"type": "string"},
        "meta_description": {"type": "string"},
        "focus_keyword": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
        "content_html": {"type": "string"},
        "content": {"type": "string"},
    },
    "anyOf": [{"required": ["content_html"]}, {"required": ["content"]}],
}

_HAS_MARKUP_RE = re.compile(r"<(p|h2|h3|ul|ol|div|blockquote)\b", re.IGNORECASE)


class RewriteError(ValueError):
    def __init__(self, message: str, retryable: bool = False, status: int | None = None) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.status = status


@dataclass(frozen=True)
class SamplingParams:
    temperature: float
    max_tokens: int


def sampling_for_attempt(
    attempt: int,
    base_temperature: float,
    temperature_step: float,
    min_temperature: float,
    base_max_tokens: int,
    max_tokens_step: int,
) -> SamplingParams:
    """Each later attempt gets a larger token budget and a lower temperature."""
    index = max(0, attempt - 1)
    return SamplingParams(
        temperature=round(max(min_temperature, base_temperature - temperature_step * index), 3),
        max_tokens=base_max_tokens + max_tokens_step * index,
    )


def paragraphs_to_html(text: str) -> str:
    if _HAS_MARKUP_RE.search(text or ""):
        return text.strip()
    blocks = [block.strip() for block in re.split(r"\n\s*\n", text or "") if block.strip()]
    return "\n".join(f"<p>{escape_html_text(' '.join(block.split()))}</p>" for block in blocks)


def normalize_rewrite_output(payload: Any) -> Article:
    if not isinstance(payload, dict):
        raise RewriteError("rewrite_output_not_object")
    data = dict(payload)
    if isinstance(data.get("tags"), str):
        data["tags"] = [part.strip() for part in data["tags"].split(",")]
    try:
        jsonschema.validate(data, REWRITE_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise RewriteError(f"rewrite_schema_invalid: {exc.message}") from exc
    body = (data.get("content_html") or "").strip() or paragraphs_to_html(data.get("content") or "")
    if not body.strip():
        raise RewriteError("rewrite_empty_content")
    return Article(
        title=data["title"].strip(),
        seo_title=(data.get("seo_title") or "").strip(),
        meta_description=(data.get("meta_description") or "").strip(),
        focus_keyword=(data.get("focus_keyword") or "").strip(),
        tags=unique_strings(data.get("tags") or [])[:5],
        body_html=body,
    )


class RewriteClient:
    """Rewrite collaborator over an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(self, base_url: str, api_key: str, model: str, timeout: int = 90) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def rewrite(
        self,
        raw_text: str,
        original_title: str,
        meta: dict[str, str],
        params: SamplingParams,
        corrective: str = "",
        min_words: int = 350,
    ) -> Article:
        prompt = build_rewrite_prompt(
            raw_text,
            original_title,
            source=meta.get("source", ""),
            published_at=meta.get("published_at", ""),
            role_constraints=meta.get("role_constraints", ""),
            corrective=corrective,
            min_words=min_words,
        )
        return self._article(prompt, params)

    def generate(self, topic: str, params: SamplingParams, min_words: int = 350) -> Article:
        return self._article(build_fallback_prompt(topic, min_words), params)

    def _article(self, prompt: str, params: SamplingParams) -> Article:
        raw = self.complete(
            [{"role": "system", "content": SYSTEM_PROMPT}, {"role": "user", "content": prompt}],
            params,
        )
        parsed = extract_json(raw)
        if parsed is None:
            raise RewriteError("rewrite_output_not_json")
        return normalize_rewrite_output(parsed)

    def complete(self, messages: list[dict[str, str]], params: SamplingParams) -> str:
        if not self.base_url:
            raise RewriteError("llm_base_url_not_set")
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
            "response_format": {"type": "json_object"},
        }
        request = urllib.request.Request(
            f"{self.base_url}/chat/completions",
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                raw = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore")[:300]
            retryable = exc.code == 429 or 500 <= exc.code <= 599
            log_event(logger, logging.WARNING, "llm_call_failed", status=exc.code, retryable=retryable)
            raise RewriteError(f"http_error {exc.code}: {detail}", retryable=retryable, status=exc.code) from exc
        except (urllib.error.URLError, TimeoutError, ConnectionError) as exc:
            log_event(logger, logging.WARNING, "llm_call_failed", error=str(exc), retryable=True)
            raise RewriteError(f"network_error: {exc}", retryable=True) from exc
        try:
            data = json.loads(raw)
            content = data["choices"][0]["message"]["content"]
        except (json.JSONDecodeError, KeyError, IndexError, TypeError) as exc:
            raise RewriteError("openai_missing_choices") from exc
        if not content:
            raise RewriteError("empty_completion")
        return content
