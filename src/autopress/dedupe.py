from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta
from typing import Protocol

from .config import DedupeConfig
from .history import HistoryStore
from .models import DedupeVerdict, RemotePost
from .normalize import normalize_text
from .topics import is_topic_match, topic_tokens
from .utils import log_event, normalize_url, parse_date_value, short_hash, slugify, utc_now
from .wordpress import PublishError

logger = logging.getLogger(__name__)

SLUG_TITLE_CHARS = 60
SLUG_FALLBACK_PREFIX = "stire"

NOT_DUPLICATE = DedupeVerdict(duplicate=False)


class RemoteLookup(Protocol):
    def find_by_slug(self, slug: str) -> RemotePost | None: ...

    def search_by_title(self, text: str, limit: int = 10) -> list[RemotePost]: ...

    def list_recent(self, category_id: int | None = None, limit: int = 20) -> list[RemotePost]: ...


def _identity_hash(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


class RunSeenSet:
    """Run-local identity set collapsing the same story seen in several feeds."""

    def __init__(self) -> None:
        self._seen: set[str] = set()

    @staticmethod
    def identity_keys(title: str, link: str | None = None, guid: str | None = None) -> list[str]:
        keys: list[str] = []
        title_key = normalize_text(title)
        if title_key:
            keys.append("t:" + _identity_hash(title_key))
        link_key = normalize_url(link)
        if link_key:
            keys.append("u:" + _identity_hash(link_key))
        if guid and guid.strip():
            keys.append("g:" + _identity_hash(guid.strip()))
        return keys

    def check_and_add(self, title: str, link: str | None = None, guid: str | None = None) -> bool:
        """Return True when the item was already seen; record it otherwise."""
        keys = self.identity_keys(title, link, guid)
        if any(key in self._seen for key in keys):
            return True
        self._seen.update(keys)
        return False

    def __len__(self) -> int:
        return len(self._seen)


def build_stable_post_slug(source_url: str | None, title: str | None) -> str:
    """Deterministic slug derived from the canonical source URL and title."""
    candidates = slug_candidates(source_url, title)
    return candidates[0] if candidates else ""


def slug_candidates(source_url: str | None, title: str | None) -> list[str]:
    canonical = normalize_url(source_url)
    seed = canonical or normalize_text(title)
    if not seed:
        return []
    digest = short_hash(seed)
    readable = slugify(normalize_text(title), SLUG_TITLE_CHARS)
    candidates: list[str] = []
    if readable:
        candidates.append(f"{readable}-{digest}")
    candidates.append(f"{SLUG_FALLBACK_PREFIX}-{digest}")
    return candidates


def _prefix_key(title: str, size: int) -> str | None:
    tokens = normalize_text(title).split()
    if len(tokens) < size:
        return None
    return " ".join(tokens[:size])


class DedupeEngine:
    def __init__(
        self,
        config: DedupeConfig,
        history: HistoryStore,
        remote: RemoteLookup | None = None,
        seen: RunSeenSet | None = None,
    ) -> None:
        self.config = config
        self.history = history
        self.remote = remote if config.remote_enabled else None
        self.seen = seen or RunSeenSet()

    def check_history(
        self,
        title: str,
        source_url: str | None = None,
        now: datetime | None = None,
    ) -> DedupeVerdict:
        title_key = normalize_text(title)
        url_key = normalize_url(source_url)
        entries = self.history.entries()
        for entry in entries:
            if title_key and entry.title_key == title_key:
                return DedupeVerdict(True, "history", "exact_title")
            if url_key and entry.source_url == url_key:
                return DedupeVerdict(True, "history", "exact_source_url")

        tokens = topic_tokens(title, max_tokens=self.config.topic_max_tokens)
        if not tokens:
            return NOT_DUPLICATE
        cutoff = (now or utc_now()) - timedelta(hours=self.config.window_hours)
        for entry in entries:
            created = parse_date_value(entry.created_at)
            if created is None or created < cutoff:
                continue
            if is_topic_match(
                tokens,
                entry.topic_tokens,
                self.config.overlap_ratio,
                self.config.min_overlap,
            ):
                return DedupeVerdict(True, "history", "topic_overlap")
        return NOT_DUPLICATE

    def check_remote(
        self,
        title: str,
        source_url: str | None = None,
        seo_title: str | None = None,
        slug: str | None = None,
    ) -> DedupeVerdict:
        if self.remote is None:
            return NOT_DUPLICATE
        try:
            return self._check_remote(title, source_url, seo_title, slug)
        except PublishError as exc:
            log_event(logger, logging.WARNING, "remote_dedupe_failed", error=str(exc))
            return NOT_DUPLICATE

    def _check_remote(
        self,
        title: str,
        source_url: str | None,
        seo_title: str | None,
        slug: str | None,
    ) -> DedupeVerdict:
        slugs = []
        if slug:
            slugs.append(slug)
        for candidate in slug_candidates(source_url, title):
            if candidate not in slugs:
                slugs.append(candidate)
        for candidate in slugs:
            if self.remote.find_by_slug(candidate) is not None:
                return DedupeVerdict(True, "remote", "slug")

        size = self.config.title_prefix_tokens
        for query in (title, seo_title):
            if not query:
                continue
            query_key = normalize_text(query)
            query_prefix = _prefix_key(query, size)
            for post in self.remote.search_by_title(query):
                post_key = normalize_text(post.title)
                if query_key and post_key == query_key:
                    return DedupeVerdict(True, "remote", "exact_title")
                if query_prefix and _prefix_key(post.title, size) == query_prefix:
                    return DedupeVerdict(True, "remote", "title_prefix")

        tokens = topic_tokens(title, max_tokens=self.config.topic_max_tokens)
        if tokens:
            for post in self.remote.list_recent(limit=self.config.remote_recent_limit):
                post_tokens = topic_tokens(post.title, max_tokens=self.config.topic_max_tokens)
                if is_topic_match(tokens, post_tokens, self.config.overlap_ratio, self.config.min_overlap):
                    return DedupeVerdict(True, "remote", "topic_overlap")
        return NOT_DUPLICATE

    def is_duplicate(
        self,
        title: str,
        source_url: str | None = None,
        seo_title: str | None = None,
        slug: str | None = None,
        now: datetime | None = None,
    ) -> DedupeVerdict:
        verdict = self.check_history(title, source_url, now)
        if not verdict.duplicate:
            verdict = self.check_remote(title, source_url, seo_title, slug)
        if verdict.duplicate:
            log_event(
                logger,
                logging.INFO,
                "duplicate_detected",
                layer=verdict.layer,
                reason=verdict.reason,
                title=title[:80],
            )
        return verdict
