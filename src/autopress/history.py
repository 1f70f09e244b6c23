from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timedelta
from typing import Callable

from .models import HistoryEntry
from .normalize import normalize_text
from .topics import build_topic_key
from .utils import log_event, normalize_url, parse_date_value, utc_now

logger = logging.getLogger(__name__)


class HistoryCache:
    """In-process copy of the history log, dropped on every write."""

    def __init__(self) -> None:
        self._entries: list[HistoryEntry] | None = None

    def get_or_load(self, loader: Callable[[], list[HistoryEntry]]) -> list[HistoryEntry]:
        if self._entries is None:
            self._entries = loader()
        return self._entries

    def invalidate(self) -> None:
        self._entries = None

    @property
    def loaded(self) -> bool:
        return self._entries is not None


def build_history_entry(
    title: str,
    source_url: str,
    created_at: datetime | None = None,
    topic_max_tokens: int = 8,
) -> HistoryEntry:
    topic_key = build_topic_key(title, max_tokens=topic_max_tokens)
    return HistoryEntry(
        title_key=normalize_text(title),
        topic_key=topic_key,
        topic_tokens=tuple(topic_key.split(" ")) if topic_key else (),
        source_url=normalize_url(source_url),
        created_at=(created_at or utc_now()).isoformat(),
    )


def _entry_from_dict(raw: dict) -> HistoryEntry | None:
    if not isinstance(raw, dict):
        return None
    title_key = str(raw.get("title_key") or "")
    topic_key = str(raw.get("topic_key") or "")
    tokens = raw.get("topic_tokens")
    if not isinstance(tokens, list):
        tokens = topic_key.split(" ") if topic_key else []
    if not title_key and not topic_key and not raw.get("source_url"):
        return None
    return HistoryEntry(
        title_key=title_key,
        topic_key=topic_key,
        topic_tokens=tuple(str(token) for token in tokens if token),
        source_url=str(raw.get("source_url") or ""),
        created_at=str(raw.get("created_at") or ""),
    )


def _entry_to_dict(entry: HistoryEntry) -> dict:
    return {
        "title_key": entry.title_key,
        "topic_key": entry.topic_key,
        "topic_tokens": list(entry.topic_tokens),
        "source_url": entry.source_url,
        "created_at": entry.created_at,
    }


class HistoryStore:
    def __init__(
        self,
        path: str,
        max_items: int = 500,
        max_age_days: int = 14,
        cache: HistoryCache | None = None,
    ) -> None:
        self.path = path
        self.max_items = max_items
        self.max_age_days = max_age_days
        self.cache = cache or HistoryCache()

    def entries(self) -> list[HistoryEntry]:
        return self.cache.get_or_load(self._read)

    def _read(self) -> list[HistoryEntry]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            log_event(logger, logging.WARNING, "history_read_failed", path=self.path, error=str(exc))
            return []
        if not isinstance(raw, list):
            log_event(logger, logging.WARNING, "history_invalid_format", path=self.path)
            return []
        entries: list[HistoryEntry] = []
        for item in raw:
            entry = _entry_from_dict(item)
            if entry is not None:
                entries.append(entry)
        return entries

    def prune(self, entries: list[HistoryEntry], now: datetime | None = None) -> list[HistoryEntry]:
        current = now or utc_now()
        cutoff = current - timedelta(days=self.max_age_days)
        kept: list[HistoryEntry] = []
        for entry in entries:
            created = parse_date_value(entry.created_at)
            # undated legacy entries are kept until the count cap drops them
            if created is not None and created < cutoff:
                continue
            kept.append(entry)
        if self.max_items > 0:
            kept = kept[-self.max_items :]
        return kept

    def append(self, entry: HistoryEntry, now: datetime | None = None) -> None:
        entries = list(self.entries())
        entries.append(entry)
        self._write(self.prune(entries, now))

    def record(
        self,
        title: str,
        source_url: str,
        now: datetime | None = None,
        topic_max_tokens: int = 8,
    ) -> HistoryEntry:
        entry = build_history_entry(title, source_url, now, topic_max_tokens)
        self.append(entry, now)
        log_event(logger, logging.INFO, "history_recorded", topic_key=entry.topic_key)
        return entry

    def prune_now(self, now: datetime | None = None) -> int:
        entries = list(self.entries())
        kept = self.prune(entries, now)
        self._write(kept)
        return len(entries) - len(kept)

    def _write(self, entries: list[HistoryEntry]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump([_entry_to_dict(entry) for entry in entries], handle, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)
        self.cache.invalidate()
