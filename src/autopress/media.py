from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import urljoin, urlsplit
from urllib.request import Request, urlopen

from bs4 import BeautifulSoup

from .config import PublishConfig
from .models import Article, CandidateItem
from .utils import log_event, short_hash

logger = logging.getLogger(__name__)

DECORATIVE_RE = re.compile(r"(?:logo|icon|favicon|avatar|sprite|ads?|banner|watermark)")
MAX_HTML_CANDIDATES = 30
MAX_DOWNLOAD_ATTEMPTS = 10
USER_AGENT = "autopress/0.1"

_EXTENSIONS = (("jpeg", "jpg"), ("jpg", "jpg"), ("png", "png"), ("webp", "webp"), ("gif", "gif"))


class MediaError(RuntimeError):
    pass


class MediaStore(Protocol):
    def upload_media(
        self,
        data: bytes,
        content_type: str,
        filename: str,
        metadata: dict[str, str] | None = None,
    ) -> int: ...


@dataclass(frozen=True)
class DownloadedImage:
    url: str
    data: bytes
    content_type: str

    @property
    def filename(self) -> str:
        return f"featured-{short_hash(self.url, 12)}.{extension_for(self.content_type)}"


def extension_for(content_type: str) -> str:
    normalized = (content_type or "").lower()
    for needle, extension in _EXTENSIONS:
        if needle in normalized:
            return extension
    return "jpg"


def is_http_url(value: str) -> bool:
    try:
        return urlsplit(value).scheme in {"http", "https"}
    except ValueError:
        return False


def looks_decorative(url: str) -> bool:
    return DECORATIVE_RE.search((url or "").lower()) is not None


def unique_urls(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        raw = (value or "").strip()
        if not raw:
            continue
        key = raw.split("#", 1)[0]
        if key in seen:
            continue
        seen.add(key)
        result.append(raw)
    return result


def _absolute(value: str, base_url: str) -> str:
    raw = (value or "").strip()
    if not raw:
        return ""
    if is_http_url(raw):
        return raw
    if base_url:
        joined = urljoin(base_url, raw)
        return joined if is_http_url(joined) else ""
    return ""


def extract_image_candidates(html: str, base_url: str = "") -> list[str]:
    if not html:
        return []
    soup = BeautifulSoup(html, "html.parser")
    found: list[str] = []
    for prop in ("og:image", "og:image:secure_url"):
        for tag in soup.find_all("meta", attrs={"property": prop}):
            found.append(tag.get("content") or "")
    for name in ("twitter:image", "twitter:image:src"):
        for tag in soup.find_all("meta", attrs={"name": name}):
            found.append(tag.get("content") or "")
    for tag in soup.find_all("link", attrs={"rel": "image_src"}):
        found.append(tag.get("href") or "")
    for tag in soup.find_all("img", src=True):
        found.append(tag["src"])
    absolute = [url for url in (_absolute(value, base_url) for value in found) if url]
    return unique_urls(absolute)[:MAX_HTML_CANDIDATES]


def _get(url: str, accept: str, timeout: int) -> tuple[bytes, str]:
    request = Request(url, headers={"User-Agent": USER_AGENT, "Accept": accept})
    try:
        with urlopen(request, timeout=timeout) as response:
            return response.read(), response.headers.get("Content-Type", "")
    except (HTTPError, URLError, TimeoutError, ConnectionError) as exc:
        raise MediaError(f"fetch_failed {url}: {exc}") from exc


def download_image(url: str, timeout: int, min_bytes: int) -> DownloadedImage:
    data, content_type = _get(url, "image/avif,image/webp,image/*,*/*;q=0.8", timeout)
    content_type = content_type.split(";")[0].strip().lower()
    if not content_type.startswith("image/"):
        raise MediaError(f"invalid_content_type {content_type or 'unknown'}")
    if len(data) < min_bytes:
        raise MediaError(f"image_too_small {len(data)}")
    return DownloadedImage(url=url, data=data, content_type=content_type)


def fetch_source_html(url: str, timeout: int) -> str:
    data, _ = _get(url, "text/html,application/xhtml+xml", timeout)
    return data.decode("utf-8", errors="replace")


def find_source_image(
    source_url: str,
    feed_candidates: Iterable[str],
    timeout: int,
    min_bytes: int,
    downloader: Callable[[str, int, int], DownloadedImage] = download_image,
    html_fetcher: Callable[[str, int], str] | None = fetch_source_html,
) -> DownloadedImage:
    initial = [url for url in (_absolute(value, source_url) for value in feed_candidates) if url]
    scraped: list[str] = []
    if html_fetcher is not None and is_http_url(source_url):
        try:
            scraped = extract_image_candidates(html_fetcher(source_url, timeout), source_url)
        except MediaError as exc:
            log_event(logger, logging.INFO, "source_image_scrape_skipped", error=str(exc))
    candidates = [url for url in unique_urls(initial + scraped) if not looks_decorative(url)]
    if not candidates:
        raise MediaError("no_image_candidates")
    last_error: MediaError | None = None
    for candidate in candidates[:MAX_DOWNLOAD_ATTEMPTS]:
        try:
            return downloader(candidate, timeout, min_bytes)
        except MediaError as exc:
            last_error = exc
    raise last_error or MediaError("no_valid_image")


def select_featured_media(
    article: Article,
    item: CandidateItem | None,
    config: PublishConfig,
    store: MediaStore,
    finder: Callable[..., DownloadedImage] = find_source_image,
) -> int | None:
    """Featured media id: the configured default, else an uploaded source image."""
    if config.default_featured_media_id > 0:
        return config.default_featured_media_id
    if not config.use_source_image or item is None:
        return None
    try:
        image = finder(
            item.source_url,
            item.image_candidate_urls,
            config.image_timeout_seconds,
            config.image_min_bytes,
        )
        media_id = store.upload_media(
            image.data,
            image.content_type,
            image.filename,
            {
                "title": article.seo_title or article.title,
                "alt_text": article.title or article.focus_keyword,
                "caption": article.meta_description,
            },
        )
    except Exception as exc:  # noqa: BLE001
        log_event(logger, logging.INFO, "image_skipped", error=str(exc))
        return None
    return media_id or None
