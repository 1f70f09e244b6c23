from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Callable, Iterable

from .config import LinkingConfig
from .headline import clean_title
from .models import LinkTarget
from .normalize import STOPWORDS, normalize_text
from .utils import contains_normalized, log_event, plain_text, strip_html

logger = logging.getLogger(__name__)

GENERIC_TOKENS = frozenset(
    {"romania", "roman", "stiri", "ultima", "ora", "azi", "video", "foto", "news", "update"}
)
WINDOW_SIZES = (5, 4, 3, 2)
MAX_WINDOW_STARTS = 8
MIN_PHRASE_CHARS = 10
MIN_SINGLE_WORD_CHARS = 6
ARTICLE_TOKEN_CHARS = 3000
EXACT_PHRASE_BONUS = 15

_PARAGRAPH_RE = re.compile(r"<p\b[^>]*>.*?</p>", re.IGNORECASE | re.DOTALL)
_ANCHOR_OPEN_RE = re.compile(r"<a\b[^>]*>", re.IGNORECASE)
_TAG_SPLIT_RE = re.compile(r"(<[^>]*>)")


@dataclass(frozen=True)
class AnchorChoice:
    url: str
    anchor: str
    score: int


@dataclass(frozen=True)
class LinkResult:
    html: str
    linked_count: int


def meaningful_tokens(text: str) -> list[str]:
    return [
        token
        for token in normalize_text(text).split()
        if len(token) >= 3 and token not in STOPWORDS and token not in GENERIC_TOKENS
    ]


def build_anchor_candidates(title: str) -> list[str]:
    """Phrases of 2-5 words and single long words taken from a target title."""
    cleaned = clean_title(strip_html(title), 120)
    words = cleaned.split()
    if len(words) < 2:
        return []
    candidates: list[str] = []
    for size in WINDOW_SIZES:
        if len(words) < size:
            continue
        starts = min(len(words) - size + 1, MAX_WINDOW_STARTS)
        for start in range(starts):
            phrase = " ".join(words[start : start + size])
            if len(meaningful_tokens(phrase)) < 2 or len(phrase) < MIN_PHRASE_CHARS:
                continue
            if phrase not in candidates:
                candidates.append(phrase)
    for word in words:
        token = normalize_text(word)
        if len(token) < MIN_SINGLE_WORD_CHARS or token in STOPWORDS or token in GENERIC_TOKENS:
            continue
        if word not in candidates:
            candidates.append(word)
    return candidates


def pick_best_anchor(target_title: str, article_tokens: set[str], article_text: str) -> tuple[str, int] | None:
    best: tuple[str, int] | None = None
    for anchor in build_anchor_candidates(target_title):
        tokens = meaningful_tokens(anchor)
        if not tokens:
            continue
        matched = sum(1 for token in tokens if token in article_tokens)
        minimum = 1 if len(tokens) == 1 else max(2, math.ceil(len(tokens) * 0.6))
        if matched < minimum:
            continue
        exact = contains_normalized(article_text, anchor)
        if not exact and len(tokens) > 1:
            continue
        score = matched * 10 + len(anchor) + (EXACT_PHRASE_BONUS if exact else 0)
        if best is None or score > best[1]:
            best = (anchor, score)
    return best


def _has_link_to(html: str, url: str) -> bool:
    pattern = re.compile(rf"<a\b[^>]*href=[\"']{re.escape(url)}[\"'][^>]*>", re.IGNORECASE)
    return pattern.search(html) is not None


def inject_anchor(paragraph: str, anchor: str, url: str) -> str | None:
    """Link the first bounded occurrence of ``anchor`` in visible text; None when nothing changed."""
    if not paragraph or not anchor or not url:
        return None
    if _ANCHOR_OPEN_RE.search(paragraph):
        return None
    pattern = re.compile(
        rf"(^|[\s(\[\"'])({re.escape(anchor)})(?=($|[\s)\],.!?:;\"']))",
        re.IGNORECASE,
    )
    segments = _TAG_SPLIT_RE.split(paragraph)
    for index, segment in enumerate(segments):
        # odd positions are the tags themselves, attributes included
        if index % 2 or not segment:
            continue
        replaced, count = pattern.subn(
            lambda match: f'{match.group(1)}<a href="{url}">{match.group(2)}</a>',
            segment,
            count=1,
        )
        if count:
            segments[index] = replaced
            return "".join(segments)
    return None


def _unique_by_url(targets: Iterable[LinkTarget]) -> list[LinkTarget]:
    seen: set[str] = set()
    result: list[LinkTarget] = []
    for target in targets:
        url = (target.url or "").strip()
        if not url or url in seen:
            continue
        seen.add(url)
        result.append(target)
    return result


def add_internal_links_to_html(
    html: str,
    targets: Iterable[LinkTarget],
    article_title: str = "",
    focus_keyword: str = "",
    max_links: int = 3,
) -> LinkResult:
    """Rewrite anchor phrases in paragraphs into links to previously published posts.

    Each target gets its best-scoring anchor; anchors are placed from the
    second paragraph on, falling back to the lead. A paragraph that already
    holds a link is never touched, an anchor text is used once, a target URL
    is linked at most once, and no more than ``max_links`` links are added.
    """
    unique_targets = _unique_by_url(targets)
    if not html or not unique_targets or max_links <= 0:
        return LinkResult(html or "", 0)
    paragraphs = _PARAGRAPH_RE.findall(html)
    if not paragraphs:
        return LinkResult(html, 0)

    article_text = plain_text(html)
    article_tokens = set(
        meaningful_tokens(f"{article_title} {focus_keyword} {strip_html(html)[:ARTICLE_TOKEN_CHARS]}")
    )
    title_key = normalize_text(article_title)

    choices: list[AnchorChoice] = []
    for target in unique_targets:
        target_title = strip_html(target.title).strip()
        url = target.url.strip()
        if not target_title or normalize_text(target_title) == title_key:
            continue
        if _has_link_to(html, url):
            continue
        best = pick_best_anchor(target_title, article_tokens, article_text)
        if best is None:
            continue
        choices.append(AnchorChoice(url=url, anchor=best[0], score=best[1]))
    if not choices:
        return LinkResult(html, 0)
    choices.sort(key=lambda choice: choice.score, reverse=True)

    updated = list(paragraphs)
    used_anchors: set[str] = set()
    linked = 0

    def _place(choice: AnchorChoice, start: int) -> bool:
        for index in range(start, len(updated)):
            paragraph = updated[index]
            if _ANCHOR_OPEN_RE.search(paragraph):
                continue
            if not contains_normalized(strip_html(paragraph), choice.anchor):
                continue
            replaced = inject_anchor(paragraph, choice.anchor, choice.url)
            if replaced is None:
                continue
            updated[index] = replaced
            return True
        return False

    for choice in choices:
        if linked >= max_links:
            break
        anchor_key = normalize_text(choice.anchor)
        if anchor_key in used_anchors:
            continue
        if not (_place(choice, 1) or _place(choice, 0)):
            continue
        used_anchors.add(anchor_key)
        linked += 1

    if not linked:
        return LinkResult(html, 0)
    pointer = iter(updated)
    return LinkResult(_PARAGRAPH_RE.sub(lambda _: next(pointer), html), linked)


class LinkTargetCache:
    """Per-run cache of link targets keyed by category; never invalidated within a run."""

    def __init__(self) -> None:
        self._targets: dict[str, list[LinkTarget]] = {}

    def get_or_load(self, key: str, loader: Callable[[], list[LinkTarget]]) -> list[LinkTarget]:
        if key not in self._targets:
            self._targets[key] = loader()
        return self._targets[key]

    def __contains__(self, key: str) -> bool:
        return key in self._targets


def load_link_targets(
    cache: LinkTargetCache,
    fetch: Callable[[int | None, int], list[LinkTarget]],
    category_id: int | None,
    config: LinkingConfig,
) -> list[LinkTarget]:
    scoped: list[LinkTarget] = []
    if category_id and category_id > 0:
        scoped = cache.get_or_load(f"cat:{category_id}", lambda: fetch(category_id, config.fetch_limit))
    if config.category_strict:
        if scoped:
            return scoped
        if not config.cross_category_fallback:
            return []
    generic = cache.get_or_load("cat:all", lambda: fetch(None, config.fetch_limit))
    if not category_id:
        return generic
    merged = [target for target in scoped + generic if target.url.strip() and target.title.strip()]
    return _unique_by_url(merged)


def add_internal_links(
    html: str,
    article_title: str,
    focus_keyword: str,
    category_id: int | None,
    cache: LinkTargetCache,
    fetch: Callable[[int | None, int], list[LinkTarget]],
    config: LinkingConfig,
) -> LinkResult:
    if not config.enabled or config.max_links <= 0 or not html:
        return LinkResult(html or "", 0)
    targets = load_link_targets(cache, fetch, category_id, config)
    if not targets:
        return LinkResult(html, 0)
    result = add_internal_links_to_html(
        html,
        targets,
        article_title=article_title,
        focus_keyword=focus_keyword,
        max_links=config.max_links,
    )
    if result.linked_count:
        log_event(logger, logging.INFO, "internal_links_added", count=result.linked_count, category=category_id)
    return result
