from __future__ import annotations

import calendar
import dataclasses
import hashlib
import json
import logging
import os
import re
import sys
import unicodedata
from datetime import date, datetime, timezone, tzinfo
from email.utils import parsedate_to_datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .normalize import normalize_text

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")
_TRACKING_PREFIXES = ("utm_",)
_TRACKING_KEYS = {"gclid", "fbclid", "mc_cid", "mc_eid", "oc"}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _format_value(value: Any) -> str:
    text = str(value)
    if not text or any(char.isspace() for char in text):
        return '"' + text.replace('"', "'") + '"'
    return text


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Emit ``event=<name> key=value ...``; values with whitespace are quoted."""
    parts = [f"event={event}"]
    parts.extend(f"{key}={_format_value(value)}" for key, value in fields.items())
    logger.log(level, " ".join(parts))


def _level(name: str) -> int:
    return getattr(logging, name.strip().upper(), logging.INFO)


def configure_logging(logger_name: str, default_level: str = "INFO") -> logging.Logger:
    """Idempotent root setup: one stdout handler, an optional AP_LOG_FILE handler."""
    level_name = os.environ.get("AP_LOG_LEVEL", default_level)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=_level(level_name), format=LOG_FORMAT)
    if not any(_is_stdout(handler) for handler in root.handlers):
        _attach(root, logging.StreamHandler(sys.stdout), level_name)
    log_path = os.environ.get("AP_LOG_FILE")
    if log_path and not any(_writes_to(handler, log_path) for handler in root.handlers):
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        _attach(root, logging.FileHandler(log_path, encoding="utf-8"), level_name)
    _apply_log_overrides(os.environ.get("AP_LOG_LEVELS", ""))
    return logging.getLogger(logger_name)


def _is_stdout(handler: logging.Handler) -> bool:
    return isinstance(handler, logging.StreamHandler) and getattr(handler, "stream", None) is sys.stdout


def _writes_to(handler: logging.Handler, log_path: str) -> bool:
    return isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(log_path)


def _attach(root: logging.Logger, handler: logging.Handler, level_name: str) -> None:
    handler.setLevel(_level(level_name))
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)


def _apply_log_overrides(spec: str) -> None:
    # "autopress.links=DEBUG,autopress.wordpress=WARNING"
    for item in spec.split(","):
        name, sep, level = item.partition("=")
        if sep and name.strip():
            logging.getLogger(name.strip()).setLevel(_level(level))


def json_dumps(value: Any, indent: int | None = None) -> str:
    return json.dumps(value, default=_json_default, sort_keys=True, indent=indent, ensure_ascii=False)


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def normalize_url(url: str | None) -> str:
    if not url:
        return ""
    split = urlsplit(url.strip())
    scheme = (split.scheme or "http").lower()
    netloc = split.netloc.lower()
    if netloc.startswith("www."):
        netloc = netloc[4:]
    if ":" in netloc:
        host, port = netloc.rsplit(":", 1)
        if (scheme == "http" and port == "80") or (scheme == "https" and port == "443"):
            netloc = host
    path = split.path or "/"
    if path != "/" and path.endswith("/"):
        path = path[:-1]
    query_params = [
        (key, value)
        for key, value in parse_qsl(split.query, keep_blank_values=True)
        if key and not key.lower().startswith(_TRACKING_PREFIXES) and key.lower() not in _TRACKING_KEYS
    ]
    query = urlencode(sorted(query_params)) if query_params else ""
    return urlunsplit((scheme, netloc, path, query, ""))


def host_of(url: str | None) -> str:
    if not url:
        return ""
    try:
        host = urlsplit(url.strip()).hostname or ""
    except ValueError:
        return ""
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def short_hash(value: str, length: int = 10) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:length]


def slugify(text: str | None, max_length: int = 80) -> str:
    if not text:
        return ""
    normalized = (
        unicodedata.normalize("NFKD", text)
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", normalized).strip("-").lower()
    return cleaned[:max_length].strip("-")


def strip_html(text: str | None) -> str:
    if not text:
        return ""
    return _TAG_RE.sub(" ", text)


def plain_text(html: str | None) -> str:
    return _WS_RE.sub(" ", strip_html(html)).strip()


def word_count(text: str | None) -> int:
    stripped = strip_html(text).strip()
    if not stripped:
        return 0
    return len(stripped.split())


def truncate_at_word(text: str | None, max_chars: int) -> str:
    if not text:
        return ""
    value = _WS_RE.sub(" ", text).strip()
    if len(value) <= max_chars:
        return value
    cut = value[: max_chars + 1]
    space = cut.rfind(" ")
    if space > 0:
        cut = cut[:space]
    else:
        cut = value[:max_chars]
    return cut.rstrip(" ,;:-–—").strip()


def contains_normalized(haystack: str | None, needle: str | None) -> bool:
    left = normalize_text(haystack or "")
    right = normalize_text(needle or "")
    if not left or not right:
        return False
    return f" {right} " in f" {left} "


def extract_json(text: str | None) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            return None


def unique_strings(values: Iterable[Any] | None) -> list[str]:
    if not values:
        return []
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if not value:
            continue
        clean = str(value).strip()
        if not clean:
            continue
        key = normalize_text(clean)
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(clean)
    return result


def escape_html_text(text: str | None) -> str:
    return (
        (text or "")
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
    )


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def get_zone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def _normalize_datetime(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_date_value(value: Any) -> datetime | None:
    if value is None:
        return None
    if hasattr(value, "tm_year"):
        return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)
    if isinstance(value, datetime):
        return _normalize_datetime(value)
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            parsed = parsedate_to_datetime(value)
            return _normalize_datetime(parsed)
        except (TypeError, ValueError):
            try:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
                return _normalize_datetime(parsed)
            except ValueError:
                return None
    return None


def hours_since(value: datetime | None, now: datetime | None = None) -> float | None:
    if value is None:
        return None
    current = now or utc_now()
    return (current - _normalize_datetime(value)).total_seconds() / 3600.0


def is_recent(value: datetime | None, max_hours: float, now: datetime | None = None) -> bool:
    hours = hours_since(value, now)
    if hours is None:
        return False
    return hours <= max_hours


def is_same_calendar_day(value: datetime | None, now: datetime, tz_name: str) -> bool:
    if value is None:
        return False
    zone = get_zone(tz_name)
    return _normalize_datetime(value).astimezone(zone).date() == now.astimezone(zone).date()


def local_midnight(now: datetime, tz_name: str) -> datetime:
    zone = get_zone(tz_name)
    local = now.astimezone(zone)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)
