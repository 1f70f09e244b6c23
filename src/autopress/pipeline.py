from __future__ import annotations

import logging
import os
import random
import time
from datetime import datetime
from typing import Any, Callable, Protocol

from .candidates import prepare_candidates
from .classifier import resolve_category
from .config import Config
from .dedupe import DedupeEngine, RunSeenSet, build_stable_post_slug
from .editorial import apply_editorial_structure
from .facts import (
    RoleClaim,
    build_role_constraints,
    build_source_role_claims,
    find_role_mismatches,
    format_role_mismatches,
)
from .headline import clean_title, is_strong_title
from .history import HistoryStore
from .ingest import collect_candidates, fetch_feed
from .links import LinkTargetCache, add_internal_links
from .llm import RewriteError, SamplingParams, build_corrective_instructions, sampling_for_attempt
from .media import select_featured_media
from .models import (
    Accepted,
    Article,
    AttemptOutcome,
    CandidateItem,
    CandidateOutcome,
    LinkTarget,
    RemotePost,
    RetryableReject,
    RetryReason,
    RunResult,
    TerminalReject,
)
from .quality import (
    ensure_seo_fields,
    quality_gate_issues,
    reduce_context_phrase_repetition,
    remove_external_links,
    sanitize_content,
)
from .signals import count_context_word_occurrences, is_tabloid_title
from .utils import get_zone, json_dumps, log_event, plain_text, utc_now, word_count
from .wordpress import PublishError

logger = logging.getLogger(__name__)

ROLE_CHECK_CHARS = 2500


class ContentStore(Protocol):
    site_host: str

    def find_by_slug(self, slug: str) -> RemotePost | None: ...

    def search_by_title(self, text: str, limit: int = 10) -> list[RemotePost]: ...

    def list_recent(self, category_id: int | None = None, limit: int = 20) -> list[RemotePost]: ...

    def create(
        self,
        article: Article,
        category_id: int,
        featured_media_id: int | None = None,
        slug: str = "",
        status: str = "publish",
        tag_ids: list[int] | None = None,
    ) -> RemotePost: ...

    def update(self, post_id: int, patch: dict[str, Any]) -> RemotePost: ...

    def upload_media(
        self,
        data: bytes,
        content_type: str,
        filename: str,
        metadata: dict[str, str] | None = None,
    ) -> int: ...

    def count_published_today(self, category_id: int | None, tz_name: str, now: datetime | None = None) -> int: ...

    def ensure_terms(self, names: list[str], taxonomy: str = "tags") -> list[int]: ...


class Rewriter(Protocol):
    def rewrite(
        self,
        raw_text: str,
        original_title: str,
        meta: dict[str, str],
        params: SamplingParams,
        corrective: str = "",
        min_words: int = 350,
    ) -> Article: ...

    def generate(self, topic: str, params: SamplingParams, min_words: int = 350) -> Article: ...


def is_within_publish_window(
    now: datetime,
    tz_name: str,
    start_hour: int,
    end_hour: int,
    enabled: bool = True,
) -> bool:
    """Local-hour window; the end hour only counts at minute 0 and may wrap past midnight."""
    if not enabled:
        return True
    start = min(23, max(0, start_hour))
    end = min(23, max(0, end_hour))
    if start == end:
        return True
    local = now.astimezone(get_zone(tz_name))
    hour, minute = local.hour, local.minute
    if start < end:
        if hour < start or hour > end:
            return False
        if hour == end:
            return minute == 0
        return True
    if end < hour < start:
        return False
    if hour == end:
        return minute == 0
    return True


def write_run_report(result: RunResult, directory: str, now: datetime | None = None) -> str:
    os.makedirs(directory, exist_ok=True)
    stamp = (now or utc_now()).strftime("%Y%m%dT%H%M%SZ")
    path = os.path.join(directory, f"run-{stamp}.json")
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(json_dumps(result, indent=2))
    return path


class Pipeline:
    def __init__(
        self,
        config: Config,
        store: ContentStore,
        rewriter: Rewriter,
        history: HistoryStore,
        *,
        seen: RunSeenSet | None = None,
        link_cache: LinkTargetCache | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
        fetcher: Callable[..., bytes | None] = fetch_feed,
        dry_run: bool = False,
    ) -> None:
        self.config = config
        self.store = store
        self.rewriter = rewriter
        self.history = history
        self.seen = seen or RunSeenSet()
        self.link_cache = link_cache or LinkTargetCache()
        self.dedupe = DedupeEngine(config.dedupe, history, remote=store, seen=self.seen)
        self.sleep = sleep
        self.clock = clock
        self.rng = rng or random.Random()
        self.fetcher = fetcher
        self.dry_run = dry_run

    # run

    def run(self, items: list[CandidateItem] | None = None) -> RunResult:
        result = RunResult()
        now = self.clock()
        publish_cfg = self.config.publish
        tz_name = self.config.app.timezone
        if not is_within_publish_window(
            now,
            tz_name,
            publish_cfg.window_start_hour,
            publish_cfg.window_end_hour,
            publish_cfg.window_enabled,
        ):
            result.skipped_reason = "outside_publish_window"
            log_event(
                logger,
                logging.INFO,
                "run_skipped",
                reason=result.skipped_reason,
                local_time=now.astimezone(get_zone(tz_name)).isoformat(),
            )
            return result

        target = max(1, publish_cfg.posts_per_run)
        if items is None:
            limit = max(self.config.feeds.candidate_limit, target * 6)
            items = collect_candidates(self.config.feeds, limit, self.seen, self.rng, self.fetcher)

        prepared = prepare_candidates(items, self.config.filters, tz_name, now)
        result.rejection_stats = dict(prepared.rejection_stats)
        if not prepared.candidates:
            log_event(logger, logging.INFO, "no_candidates", rejection_stats=json_dumps(result.rejection_stats))

        for scored in prepared.candidates:
            if result.published >= target:
                break
            outcome = self._guarded(scored.item.title, lambda: self.process_candidate(scored.item))
            result.outcomes.append(outcome)
            if outcome.status in {"published", "dry_run"}:
                result.published += 1

        if result.published == 0 and publish_cfg.fallback_enabled:
            log_event(logger, logging.INFO, "fallback_started")
            outcome = self._guarded("fallback", self.publish_fallback)
            result.outcomes.append(outcome)
            if outcome.status in {"published", "dry_run"}:
                result.published += 1

        log_event(
            logger,
            logging.INFO,
            "run_complete",
            published=result.published,
            candidates=len(prepared.candidates),
            rejection_stats=json_dumps(result.rejection_stats),
        )
        return result

    def _guarded(self, title: str, step: Callable[[], CandidateOutcome]) -> CandidateOutcome:
        try:
            return step()
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.ERROR, "candidate_failed", title=title[:80], error=str(exc))
            return CandidateOutcome(title=title, status="error", reason=type(exc).__name__)

    # per candidate

    def process_candidate(self, item: CandidateItem) -> CandidateOutcome:
        slug = build_stable_post_slug(item.source_url, item.title)
        verdict = self.dedupe.is_duplicate(item.title, item.source_url, slug=slug, now=self.clock())
        if verdict.duplicate:
            return self._skip(item.title, f"duplicate_{verdict.layer}")

        claims: dict[str, RoleClaim] = {}
        if self.config.rewrite.role_fact_check:
            claims = build_source_role_claims(item.title, item.body_text, self.config.rewrite.role_max_claims)

        outcome = self.rewrite_with_retries(item, claims)
        if not isinstance(outcome, Accepted):
            reason = outcome.reason if isinstance(outcome, TerminalReject) else "rewrite_failed"
            return self._skip(item.title, str(reason), outcome.detail)
        article = outcome.article

        decision = resolve_category(item, article, self.config.classifier)
        category_id = decision.category_id
        if category_id <= 0:
            return self._skip(article.title, "unusable_category")
        if self._daily_cap_reached(category_id):
            return self._skip(article.title, "daily_category_cap", category_id=category_id)

        self.finalize_article(article, category_id, item.source_name, item.source_url)
        issues = self.gate(article, expect_attribution=bool(item.source_url or item.source_name))
        if issues:
            return self._skip(article.title, "quality_gate_failed", ",".join(issues), category_id)

        return self.publish(article, category_id, item.source_url, slug, item)

    def rewrite_with_retries(self, item: CandidateItem, claims: dict[str, RoleClaim]) -> AttemptOutcome:
        """Bounded rewrite loop; each corrective reason is retried at most once."""
        rewrite_cfg = self.config.rewrite
        raw_text = "\n\n".join(part for part in (item.title, item.body_text) if part)
        meta = {
            "source": item.source_name,
            "published_at": item.published_at.isoformat() if item.published_at else "",
            "role_constraints": build_role_constraints(claims) if claims else "",
        }
        reason: RetryReason | None = None
        detail = ""
        retried: set[RetryReason] = set()
        last: AttemptOutcome = TerminalReject("rewrite_not_attempted")
        for attempt in range(1, rewrite_cfg.max_attempts + 1):
            params = sampling_for_attempt(
                attempt,
                rewrite_cfg.base_temperature,
                rewrite_cfg.temperature_step,
                rewrite_cfg.min_temperature,
                rewrite_cfg.base_max_tokens,
                rewrite_cfg.max_tokens_step,
            )
            corrective = build_corrective_instructions(reason, detail, rewrite_cfg.min_words)
            last = self._rewrite_attempt(item, raw_text, meta, params, corrective, claims, retried)
            log_event(
                logger,
                logging.INFO,
                "rewrite_attempt",
                attempt=attempt,
                outcome=type(last).__name__,
                reason=getattr(last, "reason", None),
            )
            if not isinstance(last, RetryableReject):
                return last
            if last.reason is not None:
                if last.reason in retried:
                    return TerminalReject(f"{last.reason.value}_persists", last.detail)
                retried.add(last.reason)
            reason, detail = last.reason, last.detail
        return TerminalReject("rewrite_attempts_exhausted", getattr(last, "detail", ""))

    def _rewrite_attempt(
        self,
        item: CandidateItem,
        raw_text: str,
        meta: dict[str, str],
        params: SamplingParams,
        corrective: str,
        claims: dict[str, RoleClaim],
        retried: set[RetryReason],
    ) -> AttemptOutcome:
        rewrite_cfg = self.config.rewrite
        try:
            article = self.rewriter.rewrite(
                raw_text,
                item.title,
                meta,
                params,
                corrective=corrective,
                min_words=rewrite_cfg.min_words,
            )
        except RewriteError as exc:
            log_event(logger, logging.WARNING, "rewrite_failed", error=str(exc), retryable=exc.retryable)
            if exc.retryable and rewrite_cfg.backoff_seconds > 0:
                self.sleep(rewrite_cfg.backoff_seconds)
            return RetryableReject(None, str(exc))
        return self.evaluate_rewrite(article, item.title, claims, retried)

    def evaluate_rewrite(
        self,
        article: Article,
        source_title: str,
        claims: dict[str, RoleClaim],
        retried: set[RetryReason] | frozenset[RetryReason] = frozenset(),
    ) -> AttemptOutcome:
        rewrite_cfg = self.config.rewrite
        quality_cfg = self.config.quality

        if (
            RetryReason.STYLE_REPETITION not in retried
            and rewrite_cfg.context_word_max >= 0
            and count_context_word_occurrences(article.body_html) > rewrite_cfg.context_word_max
        ):
            return RetryableReject(RetryReason.STYLE_REPETITION)

        if claims:
            generated = f"{article.title}\n{plain_text(article.body_html)[:ROLE_CHECK_CHARS]}"
            mismatches = find_role_mismatches(claims, generated)
            if mismatches:
                return RetryableReject(RetryReason.ROLE_MISMATCH, format_role_mismatches(mismatches))

        article.body_html = sanitize_content(article.body_html)
        ensure_seo_fields(article, source_title, quality_cfg)

        if not self._title_ok(article.title):
            fallback = clean_title(source_title, quality_cfg.title_max_chars)
            if not self._title_ok(fallback):
                return RetryableReject(RetryReason.WEAK_TITLE, article.title)
            article.title = fallback
            article.seo_title = clean_title(article.seo_title or fallback, quality_cfg.seo_title_max_chars)
            ensure_seo_fields(article, fallback, quality_cfg)

        words = word_count(article.body_html)
        if words < rewrite_cfg.min_words:
            return RetryableReject(RetryReason.SHORT_CONTENT, str(words))
        return Accepted(article)

    def _title_ok(self, title: str) -> bool:
        quality_cfg = self.config.quality
        if not is_strong_title(title, quality_cfg.min_title_words):
            return False
        return not is_tabloid_title(title, quality_cfg.title_style)

    def _daily_cap_reached(self, category_id: int) -> bool:
        cap = self.config.publish.max_per_category_per_day
        if cap <= 0:
            return False
        try:
            count = self.store.count_published_today(category_id, self.config.app.timezone, self.clock())
        except PublishError as exc:
            log_event(logger, logging.WARNING, "daily_count_failed", category=category_id, error=str(exc))
            return False
        return count >= cap

    # assembly

    def _link_targets(self, category_id: int | None, limit: int) -> list[LinkTarget]:
        return [
            LinkTarget(url=post.url, title=post.title)
            for post in self.store.list_recent(category_id=category_id, limit=limit)
            if post.url and post.title
        ]

    def finalize_article(
        self,
        article: Article,
        category_id: int,
        source_name: str = "",
        source_url: str = "",
    ) -> Article:
        try:
            linked = add_internal_links(
                article.body_html,
                article.title,
                article.focus_keyword,
                category_id,
                self.link_cache,
                self._link_targets,
                self.config.linking,
            )
            article.body_html = linked.html
        except PublishError as exc:
            log_event(logger, logging.WARNING, "internal_linking_skipped", error=str(exc))
        article.body_html = remove_external_links(article.body_html, self.store.site_host)
        article.body_html = reduce_context_phrase_repetition(
            article.body_html, self.config.rewrite.context_word_max
        )
        apply_editorial_structure(article, self.config.editorial, source_name, source_url)
        return article

    def gate(self, article: Article, expect_attribution: bool = False) -> list[str]:
        issues = quality_gate_issues(
            article,
            self.config.quality,
            site_host=self.store.site_host,
            min_words=self.config.rewrite.min_words,
            context_word_max=self.config.rewrite.context_word_max,
            promo_tables=self.config.filters.promo,
            expect_attribution=expect_attribution and self.config.editorial.attribution_enabled,
        )
        if issues:
            log_event(logger, logging.INFO, "quality_gate_failed", title=article.title[:80], issues=",".join(issues))
        if not self.config.quality.strict:
            return []
        return issues

    # publishing

    def publish(
        self,
        article: Article,
        category_id: int,
        source_url: str,
        slug: str,
        item: CandidateItem | None = None,
    ) -> CandidateOutcome:
        verdict = self.dedupe.is_duplicate(
            article.title, source_url, seo_title=article.seo_title, slug=slug, now=self.clock()
        )
        if verdict.duplicate:
            return self._skip(article.title, f"duplicate_{verdict.layer}", category_id=category_id)
        if word_count(article.body_html) < self.config.rewrite.min_words:
            return self._skip(article.title, "content_too_short", category_id=category_id)

        if self.dry_run:
            log_event(logger, logging.INFO, "dry_run_publish", title=article.title[:80], category=category_id, slug=slug)
            return CandidateOutcome(article.title, "dry_run", "dry_run", category_id=category_id)

        media_id = select_featured_media(article, item, self.config.publish, self.store)
        if self.config.publish.require_image and not media_id:
            return self._skip(article.title, "image_required", category_id=category_id)

        tag_ids: list[int] = []
        if article.tags:
            try:
                tag_ids = self.store.ensure_terms(article.tags)
            except PublishError as exc:
                log_event(logger, logging.WARNING, "tags_skipped", error=str(exc))

        try:
            post = self.publish_with_retry(article, category_id, media_id, slug, source_url, tag_ids)
        except PublishError as exc:
            log_event(
                logger,
                logging.ERROR,
                "publish_failed",
                title=article.title[:80],
                status=exc.status,
                code=exc.code,
                retryable=exc.is_retryable,
            )
            return self._skip(article.title, "publish_failed", str(exc), category_id)

        self.history.record(
            article.title,
            source_url,
            now=self.clock(),
            topic_max_tokens=self.config.dedupe.topic_max_tokens,
        )
        post_id = post.id if post is not None else None
        log_event(logger, logging.INFO, "published", title=article.title[:80], post_id=post_id, category=category_id)
        return CandidateOutcome(article.title, "published", "published", category_id=category_id, post_id=post_id)

    def publish_with_retry(
        self,
        article: Article,
        category_id: int,
        media_id: int | None,
        slug: str,
        source_url: str,
        tag_ids: list[int] | None = None,
    ) -> RemotePost | None:
        """Create, reconcile and promote a post with exponential backoff.

        A post stored despite a retryable failure is looked up by slug and
        finished in place. Returns None only when the store holds a matching
        post that cannot be fetched back.
        """
        publish_cfg = self.config.publish
        attempts = max(1, publish_cfg.retries)
        two_step = publish_cfg.draft_then_publish
        created: RemotePost | None = None
        attempt = 1
        while True:
            try:
                if created is None:
                    created = self.store.create(
                        article,
                        category_id,
                        featured_media_id=media_id,
                        slug=slug,
                        status="draft" if two_step else "publish",
                        tag_ids=tag_ids,
                    )
                created = self._reconcile(created, media_id, slug)
                if two_step and created.status != "publish":
                    created = self.store.update(created.id, {"status": "publish"})
                return created
            except PublishError as exc:
                if exc.is_retryable and created is None:
                    verdict = self.dedupe.check_remote(article.title, source_url, article.seo_title, slug)
                    if verdict.duplicate:
                        stored = self._find_stored(slug)
                        log_event(
                            logger,
                            logging.WARNING,
                            "publish_already_present",
                            reason=verdict.reason,
                            post_id=stored.id if stored is not None else None,
                        )
                        if stored is None:
                            return None
                        created = stored
                        continue
                if not exc.is_retryable or attempt >= attempts:
                    raise
                wait = publish_cfg.retry_base_seconds * 2 ** (attempt - 1)
                log_event(
                    logger,
                    logging.WARNING,
                    "publish_retry",
                    attempt=attempt,
                    max_attempts=attempts,
                    status=exc.status or exc.code,
                    wait_seconds=wait,
                )
                self.sleep(wait)
                attempt += 1

    def _find_stored(self, slug: str) -> RemotePost | None:
        if not slug:
            return None
        try:
            return self.store.find_by_slug(slug)
        except PublishError as exc:
            log_event(logger, logging.WARNING, "stored_post_lookup_failed", slug=slug, error=str(exc))
            return None

    def _reconcile(self, post: RemotePost, media_id: int | None, slug: str) -> RemotePost:
        patch: dict[str, Any] = {}
        if media_id and post.featured_media != media_id:
            patch["featured_media"] = media_id
        if slug and post.slug and post.slug != slug:
            patch["slug"] = slug
        if not patch:
            return post
        log_event(logger, logging.INFO, "post_reconciled", post_id=post.id, fields=",".join(sorted(patch)))
        updated = self.store.update(post.id, patch)
        return RemotePost(
            id=updated.id or post.id,
            url=updated.url or post.url,
            title=updated.title or post.title,
            slug=updated.slug or post.slug,
            featured_media=updated.featured_media or post.featured_media,
            status=updated.status or post.status,
        )

    # fallback

    def publish_fallback(self) -> CandidateOutcome:
        categories = list(self.config.classifier.categories)
        self.rng.shuffle(categories)
        rewrite_cfg = self.config.rewrite
        quality_cfg = self.config.quality
        params = sampling_for_attempt(
            1,
            rewrite_cfg.base_temperature,
            rewrite_cfg.temperature_step,
            rewrite_cfg.min_temperature,
            rewrite_cfg.base_max_tokens,
            rewrite_cfg.max_tokens_step,
        )
        last_reason = "no_categories"
        for category in categories:
            log_event(logger, logging.INFO, "fallback_category", category=category.name)
            try:
                article = self.rewriter.generate(category.name, params, min_words=rewrite_cfg.min_words)
            except RewriteError as exc:
                log_event(logger, logging.WARNING, "fallback_generation_failed", error=str(exc))
                last_reason = "rewrite_failed"
                continue
            forced = self.config.classifier.force_category_id
            category_id = forced if forced > 0 else category.id

            article.body_html = sanitize_content(article.body_html)
            ensure_seo_fields(article, article.title, quality_cfg)
            if not self._title_ok(article.title):
                last_reason = "weak_title"
                continue
            if word_count(article.body_html) < rewrite_cfg.min_words:
                last_reason = "content_too_short"
                continue
            if self._daily_cap_reached(category_id):
                last_reason = "daily_category_cap"
                continue

            self.finalize_article(article, category_id)
            if self.gate(article):
                last_reason = "quality_gate_failed"
                continue
            outcome = self.publish(article, category_id, "", build_stable_post_slug("", article.title))
            if outcome.status in {"published", "dry_run"}:
                return outcome
            last_reason = outcome.reason
        return CandidateOutcome("fallback", "skipped", last_reason)

    def _skip(
        self,
        title: str,
        reason: str,
        detail: str = "",
        category_id: int | None = None,
    ) -> CandidateOutcome:
        log_event(logger, logging.INFO, "candidate_skipped", title=title[:80], reason=reason, detail=detail[:200])
        return CandidateOutcome(title=title, status="skipped", reason=reason, category_id=category_id)
