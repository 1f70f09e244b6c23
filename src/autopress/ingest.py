from __future__ import annotations

import html
import logging
import random
import re
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

import feedparser
from bs4 import BeautifulSoup

from .config import FeedsConfig, SourceConfig
from .dedupe import RunSeenSet
from .models import CandidateItem
from .utils import host_of, log_event, parse_date_value

logger = logging.getLogger(__name__)

GENERIC_AGGREGATOR_RE = re.compile(r"^google news", re.IGNORECASE)
_TITLE_SUFFIX_RE = re.compile(r"\s[-–—]\s([^–—-]{2,80})$")
_NOT_A_PUBLISHER_RE = re.compile(r"^(breaking|live|ultima ora)$", re.IGNORECASE)
MAX_IMAGE_CANDIDATES = 10

Fetcher = Callable[[SourceConfig, FeedsConfig], "bytes | None"]


@dataclass(frozen=True)
class SourceFetch:
    source: SourceConfig
    status: str
    items: list[CandidateItem]
    error: str | None = None


def _fetch_url(
    url: str,
    headers: dict[str, str],
    timeout: int,
    max_retries: int,
    backoff_seconds: int,
) -> tuple[int | None, bytes | None, str | None]:
    attempt = 0
    while attempt <= max_retries:
        try:
            request = Request(url, headers=headers)
            with urlopen(request, timeout=timeout) as response:
                status = response.getcode()
                content = response.read()
            return status, content, None
        except HTTPError as exc:
            if exc.code in {429, 503} and attempt < max_retries:
                time.sleep(backoff_seconds * (attempt + 1))
                attempt += 1
                continue
            return exc.code, None, str(exc)
        except (URLError, TimeoutError, ConnectionError) as exc:
            if attempt >= max_retries:
                return None, None, str(exc)
            time.sleep(backoff_seconds * (attempt + 1))
            attempt += 1
    return None, None, "Unknown fetch error"


def fetch_feed(source: SourceConfig, feeds: FeedsConfig) -> bytes | None:
    status, content, error = _fetch_url(
        source.url,
        headers={"User-Agent": feeds.user_agent},
        timeout=feeds.timeout_seconds,
        max_retries=feeds.max_retries,
        backoff_seconds=feeds.backoff_seconds,
    )
    if error or not content:
        log_event(
            logger,
            logging.ERROR,
            "source_fetch_failed",
            source=source.name,
            http_status=status,
            error=error or "empty response",
        )
        return None
    return content


def source_name_from_title(title: str) -> str:
    match = _TITLE_SUFFIX_RE.search((title or "").strip())
    if not match:
        return ""
    candidate = match.group(1).strip()
    if not candidate or _NOT_A_PUBLISHER_RE.match(candidate):
        return ""
    return candidate


def resolve_source_name(feed_name: str, title: str, source_url: str = "") -> str:
    """Publisher name for attribution; aggregator feeds defer to the item itself."""
    current = (feed_name or "").strip()
    from_title = source_name_from_title(title)
    from_url = host_of(source_url)
    generic = bool(GENERIC_AGGREGATOR_RE.match(current))
    if from_title:
        return from_title if generic or not current else current
    if generic and from_url:
        return from_url
    return current or from_url or "Sursa"


def _entry_text(value: str | None) -> str:
    if not value:
        return ""
    soup = BeautifulSoup(value, "html.parser")
    return re.sub(r"\s+", " ", soup.get_text(" ", strip=True)).strip()


def _entry_body(entry: Any) -> str:
    contents = entry.get("content") or []
    for item in contents:
        text = _entry_text(item.get("value") if isinstance(item, dict) else None)
        if text:
            return text
    return _entry_text(entry.get("summary") or entry.get("description"))


def _entry_images(entry: Any) -> tuple[str, ...]:
    urls: list[str] = []
    for key in ("media_content", "media_thumbnail"):
        for media in entry.get(key) or []:
            url = media.get("url") if isinstance(media, dict) else None
            if url:
                urls.append(url)
    for link in entry.get("links") or []:
        if not isinstance(link, dict):
            continue
        if link.get("rel") == "enclosure" and str(link.get("type") or "").startswith("image/"):
            if link.get("href"):
                urls.append(link["href"])
    summary = entry.get("summary") or ""
    if "<img" in summary:
        soup = BeautifulSoup(summary, "html.parser")
        for img in soup.find_all("img", src=True):
            urls.append(img["src"])
    unique: list[str] = []
    for url in urls:
        if url not in unique:
            unique.append(url)
    return tuple(unique[:MAX_IMAGE_CANDIDATES])


def entry_to_candidate(entry: Any, source: SourceConfig) -> CandidateItem | None:
    title = html.unescape((entry.get("title") or "").strip())
    link = (entry.get("link") or "").strip()
    if not title or not link:
        return None
    published_at = parse_date_value(entry.get("published_parsed") or entry.get("updated_parsed"))
    if published_at is None:
        published_at = parse_date_value(entry.get("published") or entry.get("updated"))
    return CandidateItem(
        title=title,
        body_text=_entry_body(entry),
        source_name=resolve_source_name(source.name, title, link),
        source_url=link,
        published_at=published_at,
        suggested_category_id=source.category_id,
        image_candidate_urls=_entry_images(entry),
        guid=entry.get("id") or None,
    )


def parse_feed(content: bytes, source: SourceConfig) -> list[CandidateItem]:
    parsed = feedparser.parse(content)
    if parsed.bozo:
        log_event(
            logger,
            logging.WARNING,
            "feed_parse_warning",
            source=source.name,
            error=str(parsed.bozo_exception),
        )
    items: list[CandidateItem] = []
    for entry in (parsed.entries or [])[: source.max_per_run]:
        candidate = entry_to_candidate(entry, source)
        if candidate is not None:
            items.append(candidate)
    return items


def process_source(source: SourceConfig, feeds: FeedsConfig, fetcher: Fetcher = fetch_feed) -> SourceFetch:
    try:
        content = fetcher(source, feeds)
    except Exception as exc:  # noqa: BLE001
        log_event(logger, logging.ERROR, "source_fetch_failed", source=source.name, error=str(exc))
        return SourceFetch(source=source, status="error", items=[], error=str(exc))
    if not content:
        return SourceFetch(source=source, status="error", items=[], error="empty response")
    items = parse_feed(content, source)
    log_event(logger, logging.INFO, "source_parsed", source=source.name, found_count=len(items))
    return SourceFetch(source=source, status="ok", items=items)


def group_targets(limit: int, mix: dict[str, float], groups: list[str]) -> dict[str, int]:
    targets: dict[str, int] = {}
    remaining = limit
    ordered = [group for group in mix if group in groups] + [group for group in groups if group not in mix]
    for index, group in enumerate(ordered):
        if index == len(ordered) - 1:
            targets[group] = max(0, remaining)
            break
        share = round(limit * mix.get(group, 0.0))
        share = min(share, remaining)
        targets[group] = share
        remaining -= share
    return targets


def collect_candidates(
    feeds: FeedsConfig,
    limit: int,
    seen: RunSeenSet | None = None,
    rng: random.Random | None = None,
    fetcher: Fetcher = fetch_feed,
) -> list[CandidateItem]:
    """Fetch every source concurrently and merge up to ``limit`` unique items.

    Source order is shuffled per run; the group mix decides how many items
    each group contributes and shortfalls are topped up from the rest.
    """
    seen = seen if seen is not None else RunSeenSet()
    rng = rng or random.Random()
    sources = list(feeds.sources)
    rng.shuffle(sources)

    workers = max(1, min(feeds.max_workers, len(sources) or 1))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        results = list(executor.map(lambda source: process_source(source, feeds, fetcher), sources))

    groups: list[str] = []
    by_group: dict[str, list[CandidateItem]] = {}
    for result in results:
        group = result.source.group
        if group not in by_group:
            groups.append(group)
            by_group[group] = []
        for item in result.items:
            if seen.check_and_add(item.title, item.source_url, item.guid):
                log_event(logger, logging.DEBUG, "candidate_seen_in_run", title=item.title[:80])
                continue
            by_group[group].append(item)

    targets = group_targets(limit, feeds.mix, groups)
    selected: list[CandidateItem] = []
    leftovers: list[CandidateItem] = []
    for group in groups:
        items = by_group[group]
        take = targets.get(group, 0)
        selected.extend(items[:take])
        leftovers.extend(items[take:])
    if len(selected) < limit:
        selected.extend(leftovers[: limit - len(selected)])

    log_event(
        logger,
        logging.INFO,
        "candidates_collected",
        sources=len(sources),
        collected=len(selected),
        limit=limit,
    )
    return selected
