from __future__ import annotations

import re

from .normalize import STOPWORDS, normalize_text, tokenize
from .utils import strip_html, truncate_at_word

PUBLISHER_HINTS = (
    "digi24",
    "protv",
    "stirile protv",
    "antena 3",
    "antena 1",
    "observator",
    "realitatea",
    "romania tv",
    "hotnews",
    "g4media",
    "libertatea",
    "adevarul",
    "mediafax",
    "agerpres",
    "news ro",
    "euronews",
    "ziarul financiar",
    "economica",
    "profit ro",
    "gandul",
    "evz",
    "spotmedia",
    "b1 tv",
    "capital",
    "click",
    "playtech",
    "libertatea ro",
)

ATTRIBUTION_CUES = (
    ("potrivit",),
    ("conform",),
    ("citat", "de"),
    ("relateaza",),
    ("informeaza",),
    ("scrie",),
    ("noteaza",),
    ("via",),
)

SOURCE_FRAGMENT_HINTS = ("surse", "sursa", "sursei", "presa", "publicatia", "agentia", "postul")

# Clause openers that leave a headline unfinished when only a word or two follows them.
DANGLING_CONNECTORS = (
    ("in", "timp", "ce"),
    ("dupa", "ce"),
    ("inainte", "ca"),
    ("inainte", "de", "a"),
    ("pentru", "ca"),
    ("in", "conditiile", "in", "care"),
    ("astfel", "incat"),
    ("desi",),
    ("deoarece",),
    ("intrucat",),
    ("fiindca",),
    ("iar",),
    ("dar",),
    ("insa",),
    ("while",),
    ("after",),
    ("because",),
    ("although",),
)

DANGLING_TAIL_MAX = 1
MIN_WORDS_AFTER_STRIP = 5

_MARKDOWN_RE = re.compile(r"[#*_`]")
_SUFFIX_RE = re.compile(r"\s[-–—|]\s([^-–—|]{2,80})$")
_EDGE_PUNCT = " \t,;:-–—|/&(…"
_ELLIPSIS_RE = re.compile(r"(?:\s*(?:\.{2,}|…))+$")
_PUNISHABLE_ENDINGS = (",", ";", ":", "-", "–", "—", "(", "/", "&", "|", "...", "…")
_WRAPPING_QUOTES = "\"'„”“«»"


def _basic_clean(text: str) -> str:
    value = strip_html(text or "")
    value = _MARKDOWN_RE.sub("", value)
    value = re.sub(r"\s+", " ", value).strip()
    return _unwrap_quotes(value)


def _unwrap_quotes(value: str) -> str:
    while len(value) >= 2 and value[0] in _WRAPPING_QUOTES and value[-1] in _WRAPPING_QUOTES:
        value = value[1:-1].strip()
    return value


def _looks_like_outlet(fragment: str) -> bool:
    candidate = fragment.strip()
    if not candidate:
        return False
    if "." in candidate:
        return True
    normalized = normalize_text(candidate)
    if not normalized:
        return False
    if re.search(r"news|tv", normalized):
        return True
    return normalized in PUBLISHER_HINTS


def strip_publisher_suffix(title: str) -> str:
    match = _SUFFIX_RE.search(title)
    if not match:
        return title
    if not _looks_like_outlet(match.group(1)):
        return title
    return title[: match.start()].rstrip()


def _cue_at(normalized_words: list[str], index: int) -> int:
    for cue in ATTRIBUTION_CUES:
        end = index + len(cue)
        if tuple(normalized_words[index:end]) == cue:
            return len(cue)
    return 0


def _looks_like_source_fragment(words: list[str]) -> bool:
    if not words or len(words) > 6:
        return False
    fragment = " ".join(words)
    if "." in fragment:
        return True
    normalized = normalize_text(fragment)
    if any(hint in normalized.split() for hint in SOURCE_FRAGMENT_HINTS):
        return True
    if _looks_like_outlet(fragment):
        return True
    first = words[0].lstrip("\"'„«(")
    return bool(first) and first[0].isupper()


def strip_attribution(title: str) -> str:
    words = title.split()
    normalized = [normalize_text(word) for word in words]
    for index in range(len(words) - 1, 2, -1):
        cue_len = _cue_at(normalized, index)
        if not cue_len:
            continue
        tail = words[index + cue_len :]
        if not _looks_like_source_fragment(tail):
            continue
        return " ".join(words[:index]).rstrip(_EDGE_PUNCT)
    return title


def dangling_connector_length(title: str) -> int:
    """Number of trailing words forming an unfinished clause, 0 when none."""
    tokens = tokenize(title)
    if not tokens:
        return 0
    for connector in sorted(DANGLING_CONNECTORS, key=len, reverse=True):
        size = len(connector)
        for tail in range(0, DANGLING_TAIL_MAX + 1):
            start = len(tokens) - tail - size
            if start < 0:
                continue
            if tuple(tokens[start : start + size]) == connector:
                return size + tail
    return 0


def has_dangling_connector(title: str) -> bool:
    return dangling_connector_length(title) > 0


def _strip_dangling(title: str) -> str:
    length = dangling_connector_length(title)
    if not length:
        return title
    words = title.split()
    if len(words) - length < MIN_WORDS_AFTER_STRIP:
        return title
    return " ".join(words[:-length]).rstrip(_EDGE_PUNCT)


def _strip_trailing_stopword(title: str) -> str:
    words = title.split()
    if len(words) <= 1:
        return title
    if normalize_text(words[-1]) not in STOPWORDS:
        return title
    return " ".join(words[:-1]).rstrip(_EDGE_PUNCT)


def clean_title(text: str | None, max_chars: int = 110) -> str:
    """Tidy a headline for publication.

    Drops markup, a trailing " - Publisher" suffix, trailing source
    attributions, unfinished clauses and dangling stopwords, and caps the
    length at a word boundary. Every step only shortens the title and the
    steps repeat until nothing changes, so the result is a fixed point:
    cleaning it again returns it unchanged.
    """
    value = _basic_clean(text or "")
    if not value:
        return ""
    value = truncate_at_word(value, max_chars)
    while True:
        previous = value
        value = strip_publisher_suffix(value)
        value = strip_attribution(value)
        value = _ELLIPSIS_RE.sub("", value).rstrip(_EDGE_PUNCT)
        value = _strip_dangling(value)
        value = _strip_trailing_stopword(value)
        value = _unwrap_quotes(value)
        if value == previous:
            break
    return value.strip()


def is_strong_title(title: str | None, min_words: int = 5) -> bool:
    value = _basic_clean(title or "")
    if not value:
        return False
    tokens = tokenize(value)
    if len(tokens) < min_words:
        return False
    if value.endswith(_PUNISHABLE_ENDINGS):
        return False
    if tokens[-1] in STOPWORDS:
        return False
    if has_dangling_connector(value):
        return False
    return True
