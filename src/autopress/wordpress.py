from __future__ import annotations

import base64
import html
import json
import logging
import socket
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime
from typing import Any

from .models import Article, RemotePost
from .utils import host_of, local_midnight, log_event, utc_now

logger = logging.getLogger(__name__)

RETRYABLE_CODES = {"ECONNRESET", "ETIMEDOUT", "ECONNABORTED", "EAI_AGAIN"}
ANY_STATUS = "publish,future,draft,pending,private"


class PublishError(RuntimeError):
    def __init__(self, message: str, status: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code

    @property
    def is_retryable(self) -> bool:
        if self.status == 429:
            return True
        if self.status is not None and 500 <= self.status <= 599:
            return True
        return (self.code or "").upper() in RETRYABLE_CODES


def _error_code(exc: BaseException) -> str:
    reason = getattr(exc, "reason", exc)
    if isinstance(reason, (socket.timeout, TimeoutError)):
        return "ETIMEDOUT"
    if isinstance(reason, ConnectionResetError):
        return "ECONNRESET"
    if isinstance(reason, ConnectionAbortedError):
        return "ECONNABORTED"
    if isinstance(reason, socket.gaierror) and reason.errno == socket.EAI_AGAIN:
        return "EAI_AGAIN"
    return type(reason).__name__.upper()


def _remote_post(raw: dict[str, Any]) -> RemotePost:
    title = raw.get("title")
    if isinstance(title, dict):
        title = title.get("rendered") or title.get("raw") or ""
    return RemotePost(
        id=int(raw.get("id") or 0),
        url=str(raw.get("link") or ""),
        title=html.unescape(str(title or "")),
        slug=str(raw.get("slug") or ""),
        featured_media=int(raw.get("featured_media") or 0),
        status=str(raw.get("status") or ""),
    )


class WordPressClient:
    """Content store backed by the WordPress REST API (``/wp-json/wp/v2``)."""

    def __init__(
        self,
        base_url: str,
        user: str,
        app_password: str,
        timeout: int = 30,
        seo_meta_keys: dict[str, str] | None = None,
        user_agent: str = "autopress/0.1",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.seo_meta_keys = seo_meta_keys or {}
        self.user_agent = user_agent
        token = base64.b64encode(f"{user}:{app_password}".encode("utf-8")).decode("ascii")
        self._auth = f"Basic {token}"

    @property
    def site_host(self) -> str:
        return host_of(self.base_url)

    def find_by_slug(self, slug: str) -> RemotePost | None:
        if not slug:
            return None
        items, _ = self._request("GET", "/posts", params={"slug": slug, "status": ANY_STATUS})
        for item in items or []:
            return _remote_post(item)
        return None

    def search_by_title(self, text: str, limit: int = 10) -> list[RemotePost]:
        if not text.strip():
            return []
        items, _ = self._request(
            "GET",
            "/posts",
            params={"search": text, "per_page": limit, "status": ANY_STATUS, "_fields": "id,link,title,slug,status"},
        )
        return [_remote_post(item) for item in items or []]

    def list_recent(self, category_id: int | None = None, limit: int = 20) -> list[RemotePost]:
        params: dict[str, Any] = {
            "per_page": max(1, min(limit, 100)),
            "orderby": "date",
            "order": "desc",
            "_fields": "id,link,title,slug,status,featured_media",
        }
        if category_id:
            params["categories"] = category_id
        items, _ = self._request("GET", "/posts", params=params)
        return [_remote_post(item) for item in items or []]

    def create(
        self,
        article: Article,
        category_id: int,
        featured_media_id: int | None = None,
        slug: str = "",
        status: str = "publish",
        tag_ids: list[int] | None = None,
    ) -> RemotePost:
        payload: dict[str, Any] = {
            "title": article.title,
            "content": article.body_html,
            "excerpt": article.meta_description,
            "status": status,
            "categories": [category_id],
        }
        if slug:
            payload["slug"] = slug
        if featured_media_id:
            payload["featured_media"] = featured_media_id
        if tag_ids:
            payload["tags"] = tag_ids
        meta = self._seo_meta(article)
        if meta:
            payload["meta"] = meta
        item, _ = self._request("POST", "/posts", payload=payload)
        post = _remote_post(item or {})
        log_event(logger, logging.INFO, "wp_post_created", post_id=post.id, status=post.status, slug=post.slug)
        return post

    def update(self, post_id: int, patch: dict[str, Any]) -> RemotePost:
        item, _ = self._request("POST", f"/posts/{post_id}", payload=patch)
        return _remote_post(item or {})

    def upload_media(
        self,
        data: bytes,
        content_type: str,
        filename: str,
        metadata: dict[str, str] | None = None,
    ) -> int:
        headers = {
            "Content-Type": content_type,
            "Content-Disposition": f'attachment; filename="{filename}"',
        }
        item, _ = self._request("POST", "/media", body=data, headers=headers)
        media_id = int((item or {}).get("id") or 0)
        if media_id and metadata:
            patch = {
                key: value
                for key, value in (
                    ("title", metadata.get("title")),
                    ("alt_text", metadata.get("alt_text")),
                    ("caption", metadata.get("caption")),
                )
                if value
            }
            if patch:
                self._request("POST", f"/media/{media_id}", payload=patch)
        return media_id

    def count_published_today(
        self,
        category_id: int | None,
        tz_name: str,
        now: datetime | None = None,
    ) -> int:
        midnight = local_midnight(now or utc_now(), tz_name)
        params: dict[str, Any] = {
            "after": midnight.isoformat(),
            "per_page": 1,
            "status": "publish",
            "_fields": "id",
        }
        if category_id:
            params["categories"] = category_id
        _, headers = self._request("GET", "/posts", params=params)
        try:
            return int(headers.get("x-wp-total", "0"))
        except ValueError:
            return 0

    def ensure_terms(self, names: list[str], taxonomy: str = "tags") -> list[int]:
        ids: list[int] = []
        for name in names:
            items, _ = self._request("GET", f"/{taxonomy}", params={"search": name, "per_page": 20})
            match = None
            for item in items or []:
                if html.unescape(str(item.get("name") or "")).lower() == name.lower():
                    match = item
                    break
            if match is None:
                match, _ = self._request("POST", f"/{taxonomy}", payload={"name": name})
            term_id = int((match or {}).get("id") or 0)
            if term_id:
                ids.append(term_id)
        return ids

    def _seo_meta(self, article: Article) -> dict[str, str]:
        values = {
            "seo_title": article.seo_title,
            "meta_description": article.meta_description,
            "focus_keyword": article.focus_keyword,
        }
        return {
            meta_key: values[field]
            for field, meta_key in self.seo_meta_keys.items()
            if field in values and values[field] and meta_key
        }

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
        body: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> tuple[Any, dict[str, str]]:
        url = f"{self.base_url}/wp-json/wp/v2{path}"
        if params:
            url = f"{url}?{urllib.parse.urlencode(params)}"
        data = body
        request_headers = {"Authorization": self._auth, "User-Agent": self.user_agent, "Accept": "application/json"}
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            request_headers["Content-Type"] = "application/json"
        request_headers.update(headers or {})
        request = urllib.request.Request(url, data=data, method=method, headers=request_headers)
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                raw = response.read().decode("utf-8")
                response_headers = {key.lower(): value for key, value in response.headers.items()}
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore")[:300]
            code = None
            try:
                code = json.loads(detail).get("code")
            except (json.JSONDecodeError, AttributeError):
                code = None
            raise PublishError(f"http_error {exc.code}: {detail}", status=exc.code, code=code) from exc
        except urllib.error.URLError as exc:
            raise PublishError(f"network_error: {exc.reason}", code=_error_code(exc)) from exc
        except (TimeoutError, ConnectionError) as exc:
            raise PublishError(f"network_error: {exc}", code=_error_code(exc)) from exc
        if not raw:
            return None, response_headers
        try:
            return json.loads(raw), response_headers
        except json.JSONDecodeError as exc:
            raise PublishError("invalid_json_response", code="EBADJSON") from exc
