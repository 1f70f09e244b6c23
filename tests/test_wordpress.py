import io
import json
import socket
import urllib.error

import pytest

from autopress import wordpress
from autopress.models import Article
from autopress.wordpress import PublishError, WordPressClient


class FakeResponse:
    def __init__(self, payload, headers=None):
        self._body = b"" if payload is None else json.dumps(payload).encode("utf-8")
        self.headers = headers or {}

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def client():
    return WordPressClient(
        "https://example.ro/",
        "editor",
        "app pass",
        seo_meta_keys={"seo_title": "_yoast_wpseo_title", "focus_keyword": "_yoast_wpseo_focuskw"},
    )


def test_publish_error_retryability():
    assert PublishError("x", status=429).is_retryable
    assert PublishError("x", status=502).is_retryable
    assert PublishError("x", code="econnreset").is_retryable
    assert not PublishError("x", status=400).is_retryable
    assert not PublishError("x", status=401, code="rest_cannot_create").is_retryable


def test_create_sends_seo_meta_and_slug(monkeypatch, client):
    sent = []

    def fake_urlopen(request, timeout):
        sent.append(json.loads(request.data.decode("utf-8")))
        return FakeResponse({"id": 7, "link": "https://example.ro/t/", "title": {"rendered": "T &amp; U"}, "status": "draft"})

    monkeypatch.setattr(wordpress.urllib.request, "urlopen", fake_urlopen)
    article = Article(title="T & U", seo_title="T & U", focus_keyword="T", body_html="<p>x</p>")

    post = client.create(article, 4058, featured_media_id=55, slug="t-u", status="draft", tag_ids=[1, 2])

    assert post.id == 7
    assert post.title == "T & U"
    payload = sent[0]
    assert payload["categories"] == [4058]
    assert payload["slug"] == "t-u"
    assert payload["featured_media"] == 55
    assert payload["tags"] == [1, 2]
    assert payload["meta"] == {"_yoast_wpseo_title": "T & U", "_yoast_wpseo_focuskw": "T"}


def test_http_error_maps_status_and_code(monkeypatch, client):
    def fake_urlopen(request, timeout):
        detail = json.dumps({"code": "rest_post_invalid_id"}).encode("utf-8")
        raise urllib.error.HTTPError(request.full_url, 404, "missing", {}, io.BytesIO(detail))

    monkeypatch.setattr(wordpress.urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(PublishError) as excinfo:
        client.update(9, {"status": "publish"})
    assert excinfo.value.status == 404
    assert excinfo.value.code == "rest_post_invalid_id"
    assert not excinfo.value.is_retryable


def test_network_timeout_is_retryable(monkeypatch, client):
    def fake_urlopen(request, timeout):
        raise urllib.error.URLError(socket.timeout("timed out"))

    monkeypatch.setattr(wordpress.urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(PublishError) as excinfo:
        client.find_by_slug("titlu")
    assert excinfo.value.code == "ETIMEDOUT"
    assert excinfo.value.is_retryable


def test_count_published_today_reads_total_header(monkeypatch, client, now):
    urls = []

    def fake_urlopen(request, timeout):
        urls.append(request.full_url)
        return FakeResponse([{"id": 1}], headers={"X-WP-Total": "4"})

    monkeypatch.setattr(wordpress.urllib.request, "urlopen", fake_urlopen)

    assert client.count_published_today(4058, "Europe/Bucharest", now=now) == 4
    assert "categories=4058" in urls[0]
    assert "after=2026-10-19T00%3A00%3A00%2B03%3A00" in urls[0]


def test_ensure_terms_reuses_existing_and_creates_missing(monkeypatch, client):
    responses = [
        FakeResponse([{"id": 3, "name": "Buget"}]),
        FakeResponse([]),
        FakeResponse({"id": 9, "name": "spitale"}),
    ]
    methods = []

    def fake_urlopen(request, timeout):
        methods.append(request.get_method())
        return responses.pop(0)

    monkeypatch.setattr(wordpress.urllib.request, "urlopen", fake_urlopen)

    assert client.ensure_terms(["buget", "spitale"]) == [3, 9]
    assert methods == ["GET", "GET", "POST"]


def test_site_host(client):
    assert client.site_host == "example.ro"
