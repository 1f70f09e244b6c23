from __future__ import annotations

import logging

from .config import ClassifierConfig, GuardRule
from .models import Article, CandidateItem, CategoryDecision, CategoryScore
from .normalize import count_term_matches, normalize_text
from .utils import log_event, plain_text

logger = logging.getLogger(__name__)

GENERATED_TEXT_CHARS = 1200


def _count(text: str, keywords: list[str]) -> int:
    # prefix matching so "guvern" also counts "guvernul", "guvernului"
    return count_term_matches(text, keywords, prefix=True)


def _generated_text(article: Article | None) -> str:
    if article is None:
        return ""
    parts = [
        article.title,
        article.focus_keyword,
        " ".join(article.tags),
        plain_text(article.body_html)[:GENERATED_TEXT_CHARS],
    ]
    return normalize_text(" ".join(part for part in parts if part))


def compute_category_scores(
    item: CandidateItem,
    article: Article | None,
    config: ClassifierConfig,
) -> dict[int, CategoryScore]:
    """Score every configured category against source and generated text.

    Source title matches weigh the most, then source body, then the
    rewritten text. The incoming category receives ``source_bias``.
    """
    title_text = normalize_text(item.title)
    body_text = normalize_text(" ".join(part for part in (item.body_text, item.source_name) if part))
    generated_text = _generated_text(article)

    scores: dict[int, CategoryScore] = {}
    for category in config.categories:
        source_signal = (
            _count(title_text, category.strong) * 7
            + _count(title_text, category.normal) * 3
            + _count(body_text, category.strong) * 4
            + _count(body_text, category.normal) * 2
        )
        generated_signal = _count(generated_text, category.strong) + _count(
            generated_text, category.normal
        )
        bias = config.source_bias if category.id == item.suggested_category_id else 0
        scores[category.id] = CategoryScore(
            category_id=category.id,
            source_signal=source_signal,
            generated_signal=generated_signal,
            bias=bias,
        )
    return scores


def decisive_matches(item: CandidateItem, terms: list[str]) -> int:
    source_text = normalize_text(
        " ".join(part for part in (item.title, item.body_text, item.source_name) if part)
    )
    return _count(source_text, terms)


def _ranked(scores: dict[int, CategoryScore], config: ClassifierConfig) -> list[CategoryScore]:
    # configuration order breaks ties
    ordered = [scores[category.id] for category in config.categories if category.id in scores]
    return sorted(ordered, key=lambda score: score.total, reverse=True)


def _guard_for(config: ClassifierConfig, from_id: int, to_id: int) -> GuardRule | None:
    for guard in config.guards:
        if guard.from_category == from_id and guard.to_category == to_id:
            return guard
    return None


def resolve_category(
    item: CandidateItem,
    article: Article | None,
    config: ClassifierConfig,
) -> CategoryDecision:
    incoming = item.suggested_category_id
    if config.force_category_id > 0:
        return _decide(
            config.force_category_id,
            incoming != config.force_category_id,
            "forced_category",
            {},
            item,
        )

    known = config.category(incoming) is not None
    fallback = incoming if known else config.default_uncertain_category_id
    scores = compute_category_scores(item, article, config)

    if not config.override_enabled:
        return _decide(fallback, False, "override_disabled", scores, item)

    ranked = _ranked(scores, config)
    if not ranked:
        return _decide(fallback, False, "no_categories", scores, item)
    best = ranked[0]
    second_total = ranked[1].total if len(ranked) > 1 else 0
    current_total = scores[fallback].total if fallback in scores else 0

    if not known:
        if best.total < config.min_score:
            return _decide(fallback, False, "unknown_source_below_min_score", scores, item)
        if best.source_signal < config.min_source_signal:
            return _decide(fallback, False, "unknown_source_low_source_signal", scores, item)
        if best.total < second_total + config.second_best_margin:
            return _decide(fallback, False, "unknown_source_low_confidence", scores, item)
        return _decide(
            best.category_id,
            best.category_id != incoming,
            "unknown_source_inferred",
            scores,
            item,
        )

    if best.category_id == fallback:
        return _decide(fallback, False, "same_as_source", scores, item)
    if best.total < config.min_score:
        return _decide(fallback, False, "below_min_score", scores, item)
    if best.source_signal < config.min_source_signal:
        return _decide(fallback, False, "low_source_signal", scores, item)
    if best.total < current_total + config.override_margin:
        return _decide(fallback, False, "insufficient_margin", scores, item)
    if best.total < second_total + config.second_best_margin:
        return _decide(fallback, False, "too_close_to_second_best", scores, item)

    guard = _guard_for(config, fallback, best.category_id)
    if guard and decisive_matches(item, guard.decisive_terms) < guard.min_matches:
        reason = (
            f"guard_{config.category_name(fallback)}_to_{config.category_name(best.category_id)}"
        )
        return _decide(fallback, False, reason, scores, item)

    return _decide(best.category_id, True, "keyword_override", scores, item)


def _decide(
    category_id: int,
    changed: bool,
    reason: str,
    scores: dict[int, CategoryScore],
    item: CandidateItem,
) -> CategoryDecision:
    if changed:
        log_event(
            logger,
            logging.INFO,
            "category_override",
            from_category=item.suggested_category_id,
            to_category=category_id,
            reason=reason,
        )
    else:
        log_event(
            logger,
            logging.DEBUG,
            "category_kept",
            category=category_id,
            reason=reason,
        )
    return CategoryDecision(category_id=category_id, changed=changed, reason=reason, scores=scores)
