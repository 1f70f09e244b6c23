from __future__ import annotations

import re
import unicodedata
from functools import lru_cache
from typing import Iterable

_QUOTES = re.compile(r"['\"`’‘“”„«»]")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_MULTI_SPACE = re.compile(r"\s+")

STOPWORDS = frozenset(
    {
        "a", "al", "ale", "ca", "care", "cand", "ce", "cu", "cum", "dar", "de",
        "despre", "din", "dupa", "fara", "iar", "in", "intre", "la", "mai", "nu",
        "o", "ori", "pana", "pe", "pentru", "prin", "sa", "sau", "se", "si",
        "spre", "sub", "un", "unei", "unui", "the", "of", "and", "to", "for",
    }
)


def normalize_text(text: object) -> str:
    if not text:
        return ""
    value = unicodedata.normalize("NFD", str(text))
    value = "".join(char for char in value if not unicodedata.combining(char))
    value = value.lower()
    value = _QUOTES.sub("", value)
    value = _NON_ALNUM.sub(" ", value)
    return _MULTI_SPACE.sub(" ", value).strip()


def tokenize(text: object) -> list[str]:
    normalized = normalize_text(text)
    if not normalized:
        return []
    return normalized.split(" ")


@lru_cache(maxsize=2048)
def _term_pattern(term: str, prefix: bool) -> re.Pattern[str]:
    escaped = re.escape(term)
    if prefix:
        return re.compile(rf"(?<![a-z0-9]){escaped}")
    return re.compile(rf"(?<![a-z0-9]){escaped}(?![a-z0-9])")


def contains_term(normalized_text: str, term: str, prefix: bool = False) -> bool:
    """Match a keyword against already-normalized text.

    With ``prefix`` the keyword only has to start a word, which lets
    ``guvern`` match inflected forms such as ``guvernul``.
    """
    needle = normalize_text(term)
    if not normalized_text or not needle:
        return False
    return _term_pattern(needle, prefix).search(normalized_text) is not None


def count_term_matches(normalized_text: str, terms: Iterable[str], prefix: bool = False) -> int:
    if not normalized_text:
        return 0
    return sum(1 for term in terms if contains_term(normalized_text, term, prefix=prefix))


def contains_any_term(normalized_text: str, terms: Iterable[str], prefix: bool = False) -> bool:
    if not normalized_text:
        return False
    return any(contains_term(normalized_text, term, prefix=prefix) for term in terms)
