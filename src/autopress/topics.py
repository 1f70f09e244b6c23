from __future__ import annotations

from typing import Iterable

from .normalize import tokenize

NOISE_TOKENS = frozenset(
    {
        # generic news vocabulary
        "stiri", "stire", "stirea", "ultima", "ultimele", "ora", "breaking", "live",
        "video", "foto", "update", "news", "azi", "astazi", "ieri", "maine", "oficial",
        "exclusiv", "anunt", "anunta", "declara", "spune", "despre", "dupa", "pentru",
        "care", "acest", "aceasta", "este", "sunt", "fost", "are", "avea", "din",
        "the", "and", "with", "from", "romania", "romaniei", "roman",
        # publishers
        "digi24", "protv", "hotnews", "g4media", "adevarul", "libertatea", "mediafax",
        "agerpres", "realitatea", "antena", "observator", "euronews", "gandul", "spotmedia",
        "google",
    }
)

MIN_TOKEN_LENGTH = 3


def _meaningful(tokens: Iterable[str], noise: frozenset[str]) -> list[str]:
    result: list[str] = []
    seen: set[str] = set()
    for token in tokens:
        if len(token) < MIN_TOKEN_LENGTH:
            continue
        if token.isdigit() or token in noise:
            continue
        if token in seen:
            continue
        seen.add(token)
        result.append(token)
    return result


def build_topic_key(text: str | None, max_tokens: int = 8, noise: frozenset[str] = NOISE_TOKENS) -> str:
    """Reduce a title to an ordered, de-noised token key for fuzzy matching."""
    tokens = _meaningful(tokenize(text or ""), noise)
    return " ".join(tokens[:max_tokens])


def topic_tokens(text: str | None, max_tokens: int = 8, noise: frozenset[str] = NOISE_TOKENS) -> list[str]:
    key = build_topic_key(text, max_tokens=max_tokens, noise=noise)
    return key.split(" ") if key else []


def topic_overlap_count(tokens_a: Iterable[str], tokens_b: Iterable[str]) -> int:
    return len(set(tokens_a) & set(tokens_b))


def topic_overlap_ratio(tokens_a: Iterable[str], tokens_b: Iterable[str]) -> float:
    set_a = set(tokens_a)
    set_b = set(tokens_b)
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / min(len(set_a), len(set_b))


def is_topic_match(
    tokens_a: Iterable[str],
    tokens_b: Iterable[str],
    min_ratio: float,
    min_overlap: int,
) -> bool:
    set_a = set(tokens_a)
    set_b = set(tokens_b)
    if not set_a or not set_b:
        return False
    overlap = topic_overlap_count(set_a, set_b)
    if overlap < min_overlap:
        return False
    return overlap / min(len(set_a), len(set_b)) >= min_ratio
