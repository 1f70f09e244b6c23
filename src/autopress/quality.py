from __future__ import annotations

import re
from typing import Iterable

from bs4 import BeautifulSoup

from .config import QualityConfig
from .headline import clean_title, is_strong_title
from .models import Article
from .signals import (
    DEFAULT_PROMO_TABLES,
    PromoTables,
    count_context_word_occurrences,
    is_media_outlet_promotion,
    is_tabloid_title,
)
from .utils import (
    contains_normalized,
    escape_html_text,
    host_of,
    plain_text,
    truncate_at_word,
    unique_strings,
    word_count,
)

ATTRIBUTION_CLASS = "source-attribution"
CONTEXT_ALTERNATES = ("in acest cadru", "in aceasta situatie", "potrivit datelor disponibile")
MAX_TAGS = 5

_H1_RE = re.compile(r"<h1[^>]*>.*?</h1>", re.IGNORECASE | re.DOTALL)
_H2_RE = re.compile(r"<h2\b[^>]*>", re.IGNORECASE)
_CLOSE_P_RE = re.compile(r"</p>", re.IGNORECASE)
_ANCHOR_RE = re.compile(r"<a\b[^>]*href=[\"']([^\"']+)[\"'][^>]*>(.*?)</a>", re.IGNORECASE | re.DOTALL)
_CONTEXT_PHRASE_RE = re.compile(r"\b(in|în)\s+contextul\b", re.IGNORECASE)


def strip_h1(html: str) -> str:
    if not html:
        return ""
    removed = _H1_RE.sub("", html).strip()
    if word_count(removed) > 20:
        return removed
    return html.strip()


def sanitize_content(html: str) -> str:
    cleaned = strip_h1(html)
    if word_count(cleaned) == 0:
        return html or ""
    return cleaned


def first_paragraph_text(html: str) -> str:
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    paragraph = soup.find("p")
    node = paragraph if paragraph is not None else soup
    return re.sub(r"\s+", " ", node.get_text(" ", strip=True)).strip()


def has_h2_heading(html: str) -> bool:
    return _H2_RE.search(html or "") is not None


def keyword_from_text(text: str, max_words: int = 4) -> str:
    return " ".join((text or "").split()[:max_words])


def build_meta_description(article: Article, config: QualityConfig) -> str:
    lead = first_paragraph_text(article.body_html)
    body = plain_text(article.body_html)
    candidate = re.sub(r"\s+", " ", lead or article.meta_description or article.title or "").strip()

    if article.focus_keyword and not contains_normalized(candidate, article.focus_keyword):
        candidate = f"{article.focus_keyword}: {candidate}".strip()
    if len(candidate) < config.meta_min_chars and body:
        candidate = re.sub(r"\s+", " ", f"{candidate} {body}").strip()

    candidate = truncate_at_word(candidate, config.meta_max_chars)
    if len(candidate) < config.meta_min_chars:
        fallback = re.sub(r"\s+", " ", f"{article.title}. {lead}").strip()
        if len(fallback) > len(candidate):
            candidate = truncate_at_word(fallback, config.meta_max_chars)
    return candidate


def ensure_h2_with_keyword(article: Article) -> None:
    if not article.body_html or has_h2_heading(article.body_html):
        return
    heading = clean_title(article.focus_keyword or article.title or "Detalii", 80)
    if not heading:
        return
    h2 = f"<h2>{escape_html_text(heading)}</h2>"
    match = _CLOSE_P_RE.search(article.body_html)
    if match is None:
        article.body_html = f"{h2}\n{article.body_html}"
        return
    at = match.end()
    article.body_html = f"{article.body_html[:at]}\n{h2}\n{article.body_html[at:]}"


def ensure_seo_fields(article: Article, fallback_title: str, config: QualityConfig) -> Article:
    """Backfill title, focus keyword, tags, SEO title and meta description.

    The focus keyword always ends up contained in the title; the SEO title
    is rebuilt from the title when it lost the keyword.
    """
    base_title = article.title or fallback_title or ""
    article.title = clean_title(base_title, config.title_max_chars)

    if not article.focus_keyword:
        article.focus_keyword = keyword_from_text(base_title, 4)
    article.focus_keyword = clean_title(article.focus_keyword, 80)
    if not contains_normalized(article.title, article.focus_keyword):
        article.focus_keyword = keyword_from_text(article.title, 3)
    article.focus_keyword = truncate_at_word(article.focus_keyword, 80)

    article.tags = unique_strings(
        [
            *article.tags,
            article.focus_keyword,
            keyword_from_text(base_title, 3),
            keyword_from_text(base_title, 2),
        ]
    )[:MAX_TAGS]

    article.seo_title = clean_title(article.seo_title or article.title or base_title, config.seo_title_max_chars)
    if not contains_normalized(article.seo_title, article.focus_keyword):
        article.seo_title = clean_title(article.title, config.seo_title_max_chars)

    article.meta_description = truncate_at_word(article.meta_description or "", config.meta_max_chars)
    if len(article.meta_description) < config.meta_min_chars:
        article.meta_description = build_meta_description(article, config)

    ensure_h2_with_keyword(article)
    return article


def is_internal_href(href: str, site_host: str) -> bool:
    value = (href or "").strip()
    if not value:
        return False
    if value.startswith("/") and not value.startswith("//"):
        return True
    if value.startswith("#"):
        return True
    if not site_host:
        return True
    return host_of(value) == site_host


def remove_external_links(html: str, site_host: str, keep_classes: Iterable[str] = ()) -> str:
    """Unwrap anchors pointing outside ``site_host``, keeping their text."""
    if not html:
        return ""
    keep = tuple(keep_classes)

    def _replace(match: re.Match[str]) -> str:
        full = match.group(0)
        if is_internal_href(match.group(1), site_host):
            return full
        if keep and any(name in full for name in keep):
            return full
        return match.group(2)

    return _ANCHOR_RE.sub(_replace, html)


def count_internal_links(html: str, site_host: str) -> int:
    if not html:
        return 0
    soup = BeautifulSoup(html, "html.parser")
    count = 0
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href:
            continue
        if href.startswith("/") or (site_host and host_of(href) == site_host):
            count += 1
        elif not site_host:
            count += 1
    return count


def reduce_context_phrase_repetition(html: str, max_occurrences: int = 1) -> str:
    if not html:
        return ""
    limit = max(0, max_occurrences)
    seen = 0

    def _replace(match: re.Match[str]) -> str:
        nonlocal seen
        seen += 1
        if seen <= limit:
            return match.group(0)
        replacement = CONTEXT_ALTERNATES[(seen - limit - 1) % len(CONTEXT_ALTERNATES)]
        if match.group(0)[0] in "IÎ":
            return replacement[0].upper() + replacement[1:]
        return replacement

    return _CONTEXT_PHRASE_RE.sub(_replace, html)


def has_source_attribution(html: str) -> bool:
    return ATTRIBUTION_CLASS in (html or "")


def quality_gate_issues(
    article: Article,
    config: QualityConfig,
    *,
    site_host: str = "",
    min_words: int = 0,
    context_word_max: int = -1,
    promo_tables: PromoTables = DEFAULT_PROMO_TABLES,
    expect_attribution: bool = False,
) -> list[str]:
    """Names of the violated rules; an empty list means the article passes.

    Pure: the article is only read.
    """
    rules = config.rules
    body = article.body_html or ""
    issues: list[str] = []

    if rules.get("weak_title", True) and not is_strong_title(article.title, config.min_title_words):
        issues.append("weak_title")
    if rules.get("tabloid_title", True) and is_tabloid_title(article.title, config.title_style):
        issues.append("tabloid_title")
    if rules.get("missing_h2", True) and not has_h2_heading(body):
        issues.append("missing_h2")
    if rules.get("lead_too_short", True) and word_count(first_paragraph_text(body)) < config.min_lead_words:
        issues.append("lead_too_short")
    if rules.get("meta_description_length", True):
        meta_length = len((article.meta_description or "").strip())
        if meta_length < config.meta_min_chars or meta_length > config.meta_max_chars:
            issues.append("meta_description_length")
    if (
        rules.get("keyword_not_in_title", True)
        and article.focus_keyword
        and not contains_normalized(article.title, article.focus_keyword)
    ):
        issues.append("keyword_not_in_title")
    if (
        rules.get("missing_internal_links", False)
        and count_internal_links(body, site_host) < config.min_internal_links
    ):
        issues.append("missing_internal_links")
    if rules.get("media_outlet_promo", True) and is_media_outlet_promotion(
        f"{article.title} {plain_text(body)}", promo_tables
    ):
        issues.append("media_outlet_promo")
    if (
        rules.get("context_word_overused", True)
        and context_word_max >= 0
        and count_context_word_occurrences(body) > context_word_max
    ):
        issues.append("context_word_overused")
    if rules.get("content_too_short", True) and min_words > 0 and word_count(body) < min_words:
        issues.append("content_too_short")
    if rules.get("missing_source_attribution", True) and expect_attribution and not has_source_attribution(body):
        issues.append("missing_source_attribution")
    return issues
