from __future__ import annotations

import re

from .config import EditorialConfig
from .models import Article
from .quality import ATTRIBUTION_CLASS, first_paragraph_text
from .utils import escape_html_text, plain_text, slugify

TOC_CLASS = "toc"
KEY_FACTS_CLASS = "key-facts"
NOTE_CLASS = "editorial-note"
TOC_LABEL = "Cuprins"
KEY_FACTS_LABEL = "Pe scurt"
SOURCE_LABEL = "Sursa"

_H2_FULL_RE = re.compile(r"<h2\b([^>]*)>(.*?)</h2>", re.IGNORECASE | re.DOTALL)
_ID_ATTR_RE = re.compile(r"\bid=[\"']([^\"']+)[\"']", re.IGNORECASE)
_CLOSE_P_RE = re.compile(r"</p>", re.IGNORECASE)
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+(?=[A-ZĂÂÎȘȚ0-9„\"])")


def _insert_after_lead(html: str, block: str) -> str:
    match = _CLOSE_P_RE.search(html)
    if match is None:
        return f"{block}\n{html}"
    return f"{html[: match.end()]}\n{block}{html[match.end():]}"


def add_heading_ids(html: str) -> tuple[str, list[tuple[str, str]]]:
    """Give every ``<h2>`` a stable id; returns the html and (id, text) pairs."""
    headings: list[tuple[str, str]] = []
    used: set[str] = set()

    def _replace(match: re.Match[str]) -> str:
        attrs, inner = match.group(1), match.group(2)
        text = plain_text(inner)
        existing = _ID_ATTR_RE.search(attrs)
        if existing:
            anchor_id = existing.group(1)
            used.add(anchor_id)
            headings.append((anchor_id, text))
            return match.group(0)
        base = slugify(text, 50) or "sectiune"
        anchor_id = base
        suffix = 2
        while anchor_id in used:
            anchor_id = f"{base}-{suffix}"
            suffix += 1
        used.add(anchor_id)
        headings.append((anchor_id, text))
        return f'<h2{attrs} id="{anchor_id}">{inner}</h2>'

    return _H2_FULL_RE.sub(_replace, html), headings


def insert_table_of_contents(html: str, min_headings: int = 3) -> str:
    if not html or f'class="{TOC_CLASS}"' in html:
        return html
    updated, headings = add_heading_ids(html)
    if len(headings) < min_headings:
        return html
    items = "".join(
        f'<li><a href="#{anchor_id}">{escape_html_text(text)}</a></li>' for anchor_id, text in headings
    )
    block = f'<nav class="{TOC_CLASS}"><strong>{TOC_LABEL}</strong><ul>{items}</ul></nav>'
    return _insert_after_lead(updated, block)


def split_sentences(text: str) -> list[str]:
    return [part.strip() for part in _SENTENCE_RE.split(text or "") if part.strip()]


def insert_key_facts(html: str, count: int = 3) -> str:
    if not html or f'class="{KEY_FACTS_CLASS}"' in html:
        return html
    sentences = split_sentences(first_paragraph_text(html))
    if len(sentences) < 2:
        sentences = split_sentences(plain_text(html))
    facts = [sentence for sentence in sentences if len(sentence.split()) >= 4][:count]
    if len(facts) < 2:
        return html
    items = "".join(f"<li>{escape_html_text(fact)}</li>" for fact in facts)
    block = f'<div class="{KEY_FACTS_CLASS}"><strong>{KEY_FACTS_LABEL}</strong><ul>{items}</ul></div>'
    return _insert_after_lead(html, block)


def build_attribution(source_name: str, source_url: str) -> str:
    name = escape_html_text(source_name or SOURCE_LABEL)
    if source_url:
        href = escape_html_text(source_url)
        link = f'<a href="{href}" rel="nofollow noopener" target="_blank">{name}</a>'
    else:
        link = name
    return f'<p class="{ATTRIBUTION_CLASS}">{SOURCE_LABEL}: {link}</p>'


def apply_editorial_structure(
    article: Article,
    config: EditorialConfig,
    source_name: str = "",
    source_url: str = "",
) -> Article:
    html = article.body_html or ""
    if config.key_facts_enabled:
        html = insert_key_facts(html, config.key_facts_count)
    if config.toc_enabled:
        html = insert_table_of_contents(html, config.toc_min_headings)
    if config.attribution_enabled and (source_name or source_url) and ATTRIBUTION_CLASS not in html:
        html = f"{html}\n{build_attribution(source_name, source_url)}"
    note = config.editorial_note.strip()
    if note and NOTE_CLASS not in html:
        html = f'{html}\n<p class="{NOTE_CLASS}"><em>{escape_html_text(note)}</em></p>'
    article.body_html = html
    return article
