from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Iterable

from .config import FilterConfig
from .models import CandidateItem, PreparedCandidates, ScoredCandidate
from .normalize import normalize_text
from .signals import (
    is_breaking_title,
    is_hard_media_outlet_block,
    is_low_editorial_value_title,
    is_media_outlet_promotion,
)
from .utils import get_zone, hours_since, is_recent, is_same_calendar_day, log_event, utc_now

logger = logging.getLogger(__name__)

_YEAR_RE = re.compile(r"\b(20\d{2})\b")
_DMY_RE = re.compile(r"\b(\d{1,2})[./](\d{1,2})[./](20\d{2})\b")
_ISO_DATE_RE = re.compile(r"\b(20\d{2})-(\d{2})-(\d{2})\b")


def _date_tokens(text: str) -> tuple[list[date], list[int]]:
    dates: list[date] = []
    for day, month, year in _DMY_RE.findall(text):
        try:
            dates.append(date(int(year), int(month), int(day)))
        except ValueError:
            continue
    for year, month, day in _ISO_DATE_RE.findall(text):
        try:
            dates.append(date(int(year), int(month), int(day)))
        except ValueError:
            continue
    years = sorted({int(year) for year in _YEAR_RE.findall(text)})
    return dates, years


def has_only_stale_date_tokens(text: str, today: date) -> bool:
    """True when the text carries date-like tokens and every one is in the past."""
    dates, years = _date_tokens(text or "")
    if not dates and not years:
        return False
    if any(value >= today for value in dates):
        return False
    return all(year < today.year or any(d.year == year for d in dates) for year in years)


def is_recent_enough(
    published_at: datetime | None,
    filters: FilterConfig,
    tz_name: str,
    now: datetime,
) -> bool:
    if published_at is None:
        return not filters.strict_recent and not filters.same_day_only
    if filters.same_day_only and not is_same_calendar_day(published_at, now, tz_name):
        return False
    if filters.strict_recent and not is_recent(published_at, filters.recent_hours, now):
        return False
    return True


def candidate_rejection_reason(
    item: CandidateItem,
    filters: FilterConfig,
    tz_name: str,
    now: datetime | None = None,
) -> str | None:
    current = now or utc_now()
    title = (item.title or "").strip()
    if not title:
        return "missing_title"
    if is_low_editorial_value_title(title, filters.low_value_patterns):
        return "low_editorial_value_title"

    content_text = f"{title} {item.body_text or ''}"
    promo_text = f"{content_text} {item.source_name or ''}".strip()
    if is_hard_media_outlet_block(content_text, filters.promo):
        return "media_outlet_promo_hard"
    if filters.block_media_outlet_promo and is_media_outlet_promotion(promo_text, filters.promo):
        return "media_outlet_promo"

    if item.published_at is None:
        if filters.reject_missing_published_at:
            return "missing_published_at"
        today = current.astimezone(get_zone(tz_name)).date()
        if has_only_stale_date_tokens(content_text, today):
            return "stale_date_tokens_without_published_at"
    elif not is_recent_enough(item.published_at, filters, tz_name, current):
        return "not_same_day_or_not_recent"

    size = len(item.body_text or "")
    if size < filters.min_content_chars and len(title) <= 20:
        return "too_little_content"
    return None


def score_candidate(item: CandidateItem, filters: FilterConfig, now: datetime | None = None) -> int:
    score = 0
    if item.title and is_breaking_title(item.title, filters.breaking_keywords):
        score += 4
    if item.source_name and "breaking" in normalize_text(item.source_name):
        score += 2
    hours = hours_since(item.published_at, now)
    if hours is not None:
        if hours <= 3:
            score += 3
        elif hours <= 12:
            score += 2
        elif hours <= 24:
            score += 1
    if len(item.body_text or "") > filters.body_bonus_chars:
        score += 1
    return score


def prepare_candidates(
    items: Iterable[CandidateItem],
    filters: FilterConfig,
    tz_name: str,
    now: datetime | None = None,
) -> PreparedCandidates:
    current = now or utc_now()
    stats: dict[str, int] = {}
    accepted: list[ScoredCandidate] = []
    for item in items:
        reason = candidate_rejection_reason(item, filters, tz_name, current)
        if reason:
            stats[reason] = stats.get(reason, 0) + 1
            log_event(
                logger,
                logging.DEBUG,
                "candidate_rejected",
                reason=reason,
                title=(item.title or "")[:80],
            )
            continue
        accepted.append(ScoredCandidate(item=item, score=score_candidate(item, filters, current)))
    # sorted() is stable, so equal scores keep feed order
    ranked = sorted(accepted, key=lambda candidate: candidate.score, reverse=True)
    log_event(
        logger,
        logging.INFO,
        "candidates_prepared",
        accepted=len(ranked),
        rejected=sum(stats.values()),
    )
    return PreparedCandidates(candidates=ranked, rejection_stats=stats)
