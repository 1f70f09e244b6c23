from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class CandidateItem:
    title: str
    body_text: str
    source_name: str
    source_url: str
    published_at: datetime | None
    suggested_category_id: int
    image_candidate_urls: tuple[str, ...] = ()
    guid: str | None = None


@dataclass(frozen=True)
class ScoredCandidate:
    item: CandidateItem
    score: int


@dataclass(frozen=True)
class PreparedCandidates:
    candidates: list[ScoredCandidate]
    rejection_stats: dict[str, int]


@dataclass
class Article:
    title: str
    seo_title: str = ""
    meta_description: str = ""
    focus_keyword: str = ""
    tags: list[str] = field(default_factory=list)
    body_html: str = ""


@dataclass(frozen=True)
class CategoryScore:
    category_id: int
    source_signal: int
    generated_signal: int
    bias: int = 0

    @property
    def total(self) -> int:
        return self.source_signal + self.generated_signal + self.bias


@dataclass(frozen=True)
class CategoryDecision:
    category_id: int
    changed: bool
    reason: str
    scores: dict[int, CategoryScore]


@dataclass(frozen=True)
class HistoryEntry:
    title_key: str
    topic_key: str
    topic_tokens: tuple[str, ...]
    source_url: str
    created_at: str


@dataclass(frozen=True)
class LinkTarget:
    url: str
    title: str


@dataclass(frozen=True)
class RemotePost:
    id: int
    url: str
    title: str
    slug: str = ""
    featured_media: int = 0
    status: str = ""


@dataclass(frozen=True)
class DedupeVerdict:
    duplicate: bool
    layer: str | None = None
    reason: str | None = None


class RetryReason(str, Enum):
    SHORT_CONTENT = "short_content"
    WEAK_TITLE = "weak_title"
    ROLE_MISMATCH = "role_mismatch"
    STYLE_REPETITION = "style_repetition"


@dataclass(frozen=True)
class Accepted:
    article: Article


@dataclass(frozen=True)
class RetryableReject:
    reason: RetryReason | None
    detail: str = ""


@dataclass(frozen=True)
class TerminalReject:
    reason: str
    detail: str = ""


AttemptOutcome = Accepted | RetryableReject | TerminalReject


@dataclass(frozen=True)
class CandidateOutcome:
    title: str
    status: str
    reason: str
    category_id: int | None = None
    post_id: int | None = None


@dataclass
class RunResult:
    published: int = 0
    rejection_stats: dict[str, int] = field(default_factory=dict)
    outcomes: list[CandidateOutcome] = field(default_factory=list)
    skipped_reason: str | None = None
