from __future__ import annotations

import argparse
import logging
import os
import random

from .candidates import prepare_candidates
from .config import Config, ConfigError, load_config, load_credentials
from .dedupe import RunSeenSet
from .fsinit import ensure_runtime_dirs, runtime_dirs, set_umask_from_env
from .history import HistoryStore
from .ingest import collect_candidates
from .llm import RewriteClient
from .pipeline import Pipeline, write_run_report
from .utils import configure_logging, json_dumps, log_event, utc_now
from .wordpress import WordPressClient


def _load(args: argparse.Namespace, logger: logging.Logger) -> Config | None:
    path = args.config or os.environ.get("AP_CONFIG_PATH")
    try:
        return load_config(path)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return None


def _history(config: Config) -> HistoryStore:
    return HistoryStore(
        config.paths.history_path,
        max_items=config.dedupe.history_max_items,
        max_age_days=config.dedupe.history_max_age_days,
    )


def _cmd_run(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    credentials = load_credentials()
    if not credentials.wp_url:
        log_event(logger, logging.ERROR, "missing_credentials", hint="set AP_WP_URL, AP_WP_USER, AP_WP_APP_PASSWORD")
        return 1
    if not credentials.llm_api_key:
        log_event(logger, logging.ERROR, "missing_credentials", hint="set AP_LLM_API_KEY")
        return 1

    set_umask_from_env()
    ensure_runtime_dirs(runtime_dirs(config))
    store = WordPressClient(
        credentials.wp_url,
        credentials.wp_user,
        credentials.wp_app_password,
        seo_meta_keys=config.publish.seo_meta_keys,
        user_agent=config.feeds.user_agent,
    )
    rewriter = RewriteClient(
        credentials.llm_base_url,
        credentials.llm_api_key,
        credentials.llm_model,
        timeout=config.rewrite.timeout_seconds,
    )
    pipeline = Pipeline(config, store, rewriter, _history(config), dry_run=args.dry_run)
    result = pipeline.run()
    if args.report:
        path = write_run_report(result, config.paths.run_reports_dir)
        log_event(logger, logging.INFO, "run_report_written", path=path)
    return 0


def _cmd_candidates(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    now = utc_now()
    limit = args.limit or config.feeds.candidate_limit
    items = collect_candidates(config.feeds, limit, RunSeenSet(), random.Random())
    prepared = prepare_candidates(items, config.filters, config.app.timezone, now)
    for scored in prepared.candidates:
        item = scored.item
        log_event(
            logger,
            logging.INFO,
            "candidate",
            score=scored.score,
            source=item.source_name,
            category=item.suggested_category_id,
            title=item.title[:100],
        )
    log_event(
        logger,
        logging.INFO,
        "candidates_summary",
        accepted=len(prepared.candidates),
        rejection_stats=json_dumps(prepared.rejection_stats),
    )
    return 0


def _cmd_history_show(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    entries = _history(config).entries()
    for entry in entries[-args.limit :]:
        log_event(
            logger,
            logging.INFO,
            "history_entry",
            created_at=entry.created_at,
            topic_key=entry.topic_key,
            source_url=entry.source_url,
        )
    log_event(logger, logging.INFO, "history_summary", total=len(entries))
    return 0


def _cmd_history_prune(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    removed = _history(config).prune_now()
    log_event(logger, logging.INFO, "history_pruned", removed=removed)
    return 0


def _cmd_config_check(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    log_event(
        logger,
        logging.INFO,
        "config_ok",
        sources=len(config.feeds.sources),
        categories=len(config.classifier.categories),
        timezone=config.app.timezone,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="autopress", description="autopress CLI")
    parser.add_argument(
        "--config",
        dest="config",
        default=None,
        help="Path to config.yml (defaults to AP_CONFIG_PATH, else built-in defaults)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Collect, rewrite and publish one batch")
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run every stage except the remote writes",
    )
    run_parser.add_argument(
        "--report",
        action="store_true",
        help="Write a JSON run report to paths.run_reports_dir",
    )
    run_parser.set_defaults(func=_cmd_run)

    candidates_parser = subparsers.add_parser("candidates", help="Preview ranked candidates")
    candidates_parser.add_argument("--limit", type=int, default=0, help="Candidate limit")
    candidates_parser.set_defaults(func=_cmd_candidates)

    history_parser = subparsers.add_parser("history", help="Publish history commands")
    history_subparsers = history_parser.add_subparsers(dest="history_command", required=True)

    history_show = history_subparsers.add_parser("show", help="Show recent history entries")
    history_show.add_argument("--limit", type=int, default=20, help="Number of entries to show")
    history_show.set_defaults(func=_cmd_history_show)

    history_prune = history_subparsers.add_parser("prune", help="Drop expired history entries")
    history_prune.set_defaults(func=_cmd_history_prune)

    config_parser = subparsers.add_parser("config", help="Config commands")
    config_subparsers = config_parser.add_subparsers(dest="config_command", required=True)

    config_check = config_subparsers.add_parser("check", help="Validate the config file")
    config_check.set_defaults(func=_cmd_config_check)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = configure_logging("autopress")
    return args.func(args, logger)
