import io
import json
import urllib.error

import pytest

from autopress.llm import (
    RewriteClient,
    RewriteError,
    SamplingParams,
    build_corrective_instructions,
    build_rewrite_prompt,
    normalize_rewrite_output,
    paragraphs_to_html,
    sampling_for_attempt,
)
from autopress.llm import client as client_module
from autopress.models import RetryReason


class FakeResponse:
    def __init__(self, payload):
        self._body = json.dumps(payload).encode("utf-8")

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def _completion(content):
    return {"choices": [{"message": {"content": content}}]}


def test_normalize_accepts_comma_tags_and_plain_content():
    article = normalize_rewrite_output(
        {
            "title": " Guvernul aprobă bugetul ",
            "tags": "buget, guvern, buget",
            "content": "Primul paragraf.\n\nAl doilea   paragraf.",
        }
    )
    assert article.title == "Guvernul aprobă bugetul"
    assert article.tags == ["buget", "guvern"]
    assert article.body_html == "<p>Primul paragraf.</p>\n<p>Al doilea paragraf.</p>"


def test_normalize_rejects_missing_content():
    with pytest.raises(RewriteError) as excinfo:
        normalize_rewrite_output({"title": "Titlu"})
    assert str(excinfo.value).startswith("rewrite_schema_invalid")
    with pytest.raises(RewriteError):
        normalize_rewrite_output(["not", "an", "object"])


def test_normalize_falls_back_to_content_when_html_is_empty():
    article = normalize_rewrite_output({"title": "Titlu", "content_html": "  ", "content": "Un paragraf."})
    assert article.body_html == "<p>Un paragraf.</p>"

    with pytest.raises(RewriteError) as excinfo:
        normalize_rewrite_output({"title": "Titlu", "content_html": "", "content": ""})
    assert str(excinfo.value) == "rewrite_empty_content"


def test_paragraphs_to_html_keeps_existing_markup():
    assert paragraphs_to_html("<p>deja html</p>") == "<p>deja html</p>"
    assert paragraphs_to_html("a < b") == "<p>a &lt; b</p>"


def test_sampling_cools_down_and_grows_budget():
    first = sampling_for_attempt(1, 0.7, 0.15, 0.3, 2000, 500)
    third = sampling_for_attempt(3, 0.7, 0.15, 0.3, 2000, 500)
    fifth = sampling_for_attempt(5, 0.7, 0.15, 0.3, 2000, 500)
    assert first == SamplingParams(temperature=0.7, max_tokens=2000)
    assert third == SamplingParams(temperature=0.4, max_tokens=3000)
    assert fifth.temperature == 0.3


def test_corrective_instructions():
    assert build_corrective_instructions(None) == ""
    text = build_corrective_instructions(RetryReason.ROLE_MISMATCH, "Ion Popescu: ministru")
    assert "Ion Popescu: ministru" in text
    assert "500" in build_corrective_instructions(RetryReason.SHORT_CONTENT, min_words=500)


def test_rewrite_prompt_carries_constraints():
    prompt = build_rewrite_prompt(
        "Text sursa",
        "Titlu sursa",
        source="Digi24",
        role_constraints="- Pentru Ion Popescu, foloseste functia «premier».",
        min_words=400,
    )
    assert "Minim 400 de cuvinte" in prompt
    assert "«premier»" in prompt
    assert "Sursa: Digi24" in prompt


def test_client_parses_json_completion(monkeypatch):
    sent = {}

    def fake_urlopen(request, timeout):
        sent["url"] = request.full_url
        sent["body"] = json.loads(request.data.decode("utf-8"))
        content = json.dumps({"title": "Titlu nou", "content_html": "<p>Corp</p>"})
        return FakeResponse(_completion(f"```json\n{content}\n```"))

    monkeypatch.setattr(client_module.urllib.request, "urlopen", fake_urlopen)
    client = RewriteClient("https://llm.local/v1/", "key", "model-x")

    article = client.rewrite("text", "Titlu", {"source": "Digi24"}, SamplingParams(0.5, 1200))

    assert article.title == "Titlu nou"
    assert sent["url"] == "https://llm.local/v1/chat/completions"
    assert sent["body"]["temperature"] == 0.5
    assert sent["body"]["max_tokens"] == 1200


def test_client_marks_server_errors_retryable(monkeypatch):
    def fake_urlopen(request, timeout):
        raise urllib.error.HTTPError(request.full_url, 503, "busy", {}, io.BytesIO(b"busy"))

    monkeypatch.setattr(client_module.urllib.request, "urlopen", fake_urlopen)
    client = RewriteClient("https://llm.local/v1", "key", "model-x")

    with pytest.raises(RewriteError) as excinfo:
        client.generate("Politica", SamplingParams(0.5, 1200))
    assert excinfo.value.retryable
    assert excinfo.value.status == 503


def test_client_rejects_non_json_completion(monkeypatch):
    monkeypatch.setattr(
        client_module.urllib.request, "urlopen", lambda request, timeout: FakeResponse(_completion("nu e json"))
    )
    client = RewriteClient("https://llm.local/v1", "key", "model-x")

    with pytest.raises(RewriteError) as excinfo:
        client.generate("Politica", SamplingParams(0.5, 1200))
    assert str(excinfo.value) == "rewrite_output_not_json"
    assert not excinfo.value.retryable
