from __future__ import annotations

import copy
import json
import os
from dataclasses import dataclass
from typing import Any

import yaml

from .signals import (
    BREAKING_KEYWORDS,
    DEFAULT_PROMO_TABLES,
    LOW_EDITORIAL_VALUE_PATTERNS,
    TABLOID_PATTERNS,
    PromoTables,
    TitleStyleTables,
)


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class AppConfig:
    name: str
    timezone: str


@dataclass(frozen=True)
class PathsConfig:
    data_dir: str
    history_path: str
    run_reports_dir: str


@dataclass(frozen=True)
class SourceConfig:
    name: str
    url: str
    category_id: int
    max_per_run: int
    group: str


@dataclass(frozen=True)
class FeedsConfig:
    candidate_limit: int
    timeout_seconds: int
    user_agent: str
    max_retries: int
    backoff_seconds: int
    max_workers: int
    mix: dict[str, float]
    sources: list[SourceConfig]


@dataclass(frozen=True)
class FilterConfig:
    recent_hours: int
    strict_recent: bool
    same_day_only: bool
    reject_missing_published_at: bool
    min_content_chars: int
    body_bonus_chars: int
    block_media_outlet_promo: bool
    breaking_keywords: list[str]
    low_value_patterns: list[str]
    promo: PromoTables


@dataclass(frozen=True)
class CategoryConfig:
    id: int
    name: str
    strong: list[str]
    normal: list[str]


@dataclass(frozen=True)
class GuardRule:
    from_category: int
    to_category: int
    decisive_terms: list[str]
    min_matches: int


@dataclass(frozen=True)
class ClassifierConfig:
    override_enabled: bool
    force_category_id: int
    default_uncertain_category_id: int
    source_bias: int
    override_margin: int
    min_score: int
    min_source_signal: int
    second_best_margin: int
    categories: list[CategoryConfig]
    guards: list[GuardRule]

    def category(self, category_id: int) -> CategoryConfig | None:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def category_name(self, category_id: int | None) -> str:
        if category_id is None:
            return "none"
        category = self.category(category_id)
        if category:
            return category.name
        return f"cat_{category_id}"


@dataclass(frozen=True)
class DedupeConfig:
    history_max_items: int
    history_max_age_days: int
    window_hours: int
    overlap_ratio: float
    min_overlap: int
    topic_max_tokens: int
    remote_enabled: bool
    remote_recent_limit: int
    title_prefix_tokens: int


@dataclass(frozen=True)
class RewriteConfig:
    max_attempts: int
    min_words: int
    base_temperature: float
    temperature_step: float
    min_temperature: float
    base_max_tokens: int
    max_tokens_step: int
    timeout_seconds: int
    role_fact_check: bool
    role_max_claims: int
    context_word_max: int
    backoff_seconds: float


@dataclass(frozen=True)
class QualityConfig:
    strict: bool
    rules: dict[str, bool]
    title_max_chars: int
    seo_title_max_chars: int
    meta_min_chars: int
    meta_max_chars: int
    min_lead_words: int
    min_internal_links: int
    min_title_words: int
    title_style: TitleStyleTables


@dataclass(frozen=True)
class LinkingConfig:
    enabled: bool
    max_links: int
    fetch_limit: int
    category_strict: bool
    cross_category_fallback: bool


@dataclass(frozen=True)
class EditorialConfig:
    toc_enabled: bool
    toc_min_headings: int
    key_facts_enabled: bool
    key_facts_count: int
    attribution_enabled: bool
    editorial_note: str


@dataclass(frozen=True)
class PublishConfig:
    posts_per_run: int
    retries: int
    retry_base_seconds: float
    draft_then_publish: bool
    require_image: bool
    default_featured_media_id: int
    use_source_image: bool
    image_min_bytes: int
    image_timeout_seconds: int
    max_per_category_per_day: int
    window_enabled: bool
    window_start_hour: int
    window_end_hour: int
    fallback_enabled: bool
    seo_meta_keys: dict[str, str]


@dataclass(frozen=True)
class Config:
    app: AppConfig
    paths: PathsConfig
    feeds: FeedsConfig
    filters: FilterConfig
    classifier: ClassifierConfig
    dedupe: DedupeConfig
    rewrite: RewriteConfig
    quality: QualityConfig
    linking: LinkingConfig
    editorial: EditorialConfig
    publish: PublishConfig


@dataclass(frozen=True)
class Credentials:
    wp_url: str
    wp_user: str
    wp_app_password: str
    llm_base_url: str
    llm_api_key: str
    llm_model: str


QUALITY_RULES = (
    "weak_title",
    "tabloid_title",
    "missing_h2",
    "lead_too_short",
    "meta_description_length",
    "keyword_not_in_title",
    "missing_internal_links",
    "media_outlet_promo",
    "context_word_overused",
    "content_too_short",
    "missing_source_attribution",
)

POLITICS_DECISIVE_TERMS = [
    "presedinte",
    "premier",
    "prim ministru",
    "guvern",
    "parlament",
    "senat",
    "camera deputatilor",
    "partid",
    "alegeri",
    "coalitie",
    "opozitie",
    "motiune de cenzura",
]

SOCIAL_DECISIVE_TERMS = [
    "educatie",
    "scoala",
    "elev",
    "profesor",
    "sanatate",
    "spital",
    "pacient",
    "comunitate",
    "familie",
    "accident",
    "incendiu",
    "cutremur",
    "ghid",
]

SPORT_DECISIVE_TERMS = [
    "meci",
    "campionat",
    "echipa",
    "antrenor",
    "fotbal",
    "tenis",
    "handbal",
    "gol",
    "liga",
    "turneu",
]

AUTO_DECISIVE_TERMS = [
    "masina",
    "autoturism",
    "automobil",
    "sofer",
    "permis auto",
    "motor",
    "electrica",
    "dacia",
    "inmatriculare",
    "rovinieta",
]

DEFAULT_CONFIG: dict[str, Any] = {
    "app": {
        "name": "autopress",
        "timezone": "Europe/Bucharest",
    },
    "paths": {
        "data_dir": "data",
        "history_path": "data/history.json",
        "run_reports_dir": "data/reports",
    },
    "feeds": {
        "candidate_limit": 20,
        "timeout_seconds": 20,
        "user_agent": "autopress/0.1",
        "max_retries": 2,
        "backoff_seconds": 2,
        "max_workers": 4,
        "mix": {"romania": 0.8, "externe": 0.2},
        "sources": [
            {
                "name": "Google News România – Ultimele știri",
                "url": "https://news.google.com/rss?hl=ro&gl=RO&ceid=RO:ro",
                "category_id": 7,
                "max_per_run": 3,
                "group": "romania",
            },
            {
                "name": "Google News România – Politică",
                "url": "https://news.google.com/rss/search?q=politica+Romania&hl=ro&gl=RO&ceid=RO:ro",
                "category_id": 4058,
                "max_per_run": 2,
                "group": "romania",
            },
            {
                "name": "Google News România – Social",
                "url": "https://news.google.com/rss/search?q=eveniment+Romania&hl=ro&gl=RO&ceid=RO:ro",
                "category_id": 4063,
                "max_per_run": 2,
                "group": "romania",
            },
            {
                "name": "Google News România – Economie",
                "url": "https://news.google.com/rss/search?q=economie+Romania&hl=ro&gl=RO&ceid=RO:ro",
                "category_id": 4064,
                "max_per_run": 2,
                "group": "romania",
            },
            {
                "name": "Google News – Internațional",
                "url": "https://news.google.com/rss/search?q=international+stiri&hl=ro&gl=RO&ceid=RO:ro",
                "category_id": 4060,
                "max_per_run": 2,
                "group": "externe",
            },
        ],
    },
    "filters": {
        "recent_hours": 24,
        "strict_recent": True,
        "same_day_only": True,
        "reject_missing_published_at": False,
        "min_content_chars": 120,
        "body_bonus_chars": 160,
        "block_media_outlet_promo": True,
        "breaking_keywords": list(BREAKING_KEYWORDS),
        "low_value_patterns": list(LOW_EDITORIAL_VALUE_PATTERNS),
        "promo": {
            "outlet_terms": list(DEFAULT_PROMO_TABLES.outlet_terms),
            "promo_verbs": list(DEFAULT_PROMO_TABLES.promo_verbs),
            "promo_targets": list(DEFAULT_PROMO_TABLES.promo_targets),
            "promo_phrases": list(DEFAULT_PROMO_TABLES.promo_phrases),
            "generic_patterns": list(DEFAULT_PROMO_TABLES.generic_patterns),
            "hard_block_tokens": list(DEFAULT_PROMO_TABLES.hard_block_tokens),
        },
    },
    "classifier": {
        "override_enabled": True,
        "force_category_id": 0,
        "default_uncertain_category_id": 7,
        "source_bias": 2,
        "override_margin": 2,
        "min_score": 3,
        "min_source_signal": 6,
        "second_best_margin": 2,
        "categories": [
            {
                "id": 4058,
                "name": "politica",
                "strong": [
                    "presedinte", "premier", "prim ministru", "guvern", "parlament",
                    "senat", "camera deputatilor", "partid", "alegeri", "coalitie",
                    "opozitie", "motiune de cenzura", "cabinet",
                ],
                "normal": [
                    "politica", "deputat", "senator", "ministru", "minister", "primar",
                    "consiliu local", "lege", "ordonanta", "vot", "candidat", "campanie",
                    "mandat",
                ],
            },
            {
                "id": 4063,
                "name": "social",
                "strong": [
                    "educatie", "scoala", "elev", "profesor", "sanatate", "spital",
                    "pacient", "ghid", "comunitate", "accident", "incendiu", "cutremur",
                ],
                "normal": [
                    "social", "copii", "familie", "universitate", "liceu", "gradinita",
                    "trafic", "meteo", "vremea", "transport public", "consumator",
                    "turism", "cultura", "societate", "ajutor social",
                ],
            },
            {
                "id": 4064,
                "name": "economie",
                "strong": [
                    "economie", "economic", "business", "afaceri", "companie",
                    "investitie", "profit", "cifra de afaceri", "bursa", "fiscal",
                    "taxe", "taxa", "inflatie",
                ],
                "normal": [
                    "banca", "credit", "impozit", "piata", "energie", "industrie",
                    "financiar", "salariu", "cariera", "antreprenor", "startup",
                    "export", "import",
                ],
            },
            {
                "id": 4060,
                "name": "externe",
                "strong": [
                    "international", "extern", "sua", "statele unite", "rusia",
                    "ucraina", "nato", "uniunea europeana", "macron", "trump", "putin",
                    "zelenski",
                ],
                "normal": [
                    "franta", "germania", "italia", "spania", "china", "turcia",
                    "moldova", "belgia", "polonia", "israel", "iran", "razboi",
                    "diplomatic",
                ],
            },
            {
                "id": 4061,
                "name": "sport",
                "strong": [
                    "fotbal", "meci", "campionat", "liga", "echipa nationala", "tenis",
                    "handbal", "olimpic", "antrenor",
                ],
                "normal": [
                    "sport", "gol", "turneu", "jucator", "stadion", "transfer",
                    "clasament", "medalie",
                ],
            },
            {
                "id": 4062,
                "name": "auto",
                "strong": [
                    "masina", "autoturism", "automobil", "masini electrice", "dacia",
                    "rovinieta", "permis auto", "inmatriculare",
                ],
                "normal": [
                    "sofer", "motor", "carburant", "benzina", "motorina", "service auto",
                    "drumuri", "autostrada",
                ],
            },
        ],
        "guards": [
            {"from": 4063, "to": 4058, "terms": POLITICS_DECISIVE_TERMS, "min_matches": 2},
            {"from": 4058, "to": 4063, "terms": SOCIAL_DECISIVE_TERMS, "min_matches": 2},
            {"from": 4063, "to": 4061, "terms": SPORT_DECISIVE_TERMS, "min_matches": 2},
            {"from": 4061, "to": 4063, "terms": SOCIAL_DECISIVE_TERMS, "min_matches": 2},
            {"from": 4063, "to": 4062, "terms": AUTO_DECISIVE_TERMS, "min_matches": 2},
            {"from": 4062, "to": 4063, "terms": SOCIAL_DECISIVE_TERMS, "min_matches": 2},
        ],
    },
    "dedupe": {
        "history_max_items": 500,
        "history_max_age_days": 14,
        "window_hours": 72,
        "overlap_ratio": 0.8,
        "min_overlap": 4,
        "topic_max_tokens": 8,
        "remote_enabled": True,
        "remote_recent_limit": 40,
        "title_prefix_tokens": 6,
    },
    "rewrite": {
        "max_attempts": 3,
        "min_words": 350,
        "base_temperature": 0.5,
        "temperature_step": 0.1,
        "min_temperature": 0.2,
        "base_max_tokens": 1800,
        "max_tokens_step": 600,
        "timeout_seconds": 90,
        "role_fact_check": True,
        "role_max_claims": 6,
        "context_word_max": 2,
        "backoff_seconds": 5.0,
    },
    "quality": {
        "strict": True,
        "rules": {rule: rule != "missing_internal_links" for rule in QUALITY_RULES},
        "title_max_chars": 110,
        "seo_title_max_chars": 60,
        "meta_min_chars": 130,
        "meta_max_chars": 160,
        "min_lead_words": 18,
        "min_internal_links": 1,
        "min_title_words": 5,
        "tabloid_patterns": list(TABLOID_PATTERNS),
    },
    "linking": {
        "enabled": True,
        "max_links": 3,
        "fetch_limit": 30,
        "category_strict": True,
        "cross_category_fallback": False,
    },
    "editorial": {
        "toc_enabled": False,
        "toc_min_headings": 3,
        "key_facts_enabled": False,
        "key_facts_count": 3,
        "attribution_enabled": True,
        "editorial_note": "",
    },
    "publish": {
        "posts_per_run": 1,
        "retries": 3,
        "retry_base_seconds": 2.5,
        "draft_then_publish": True,
        "require_image": False,
        "default_featured_media_id": 0,
        "use_source_image": True,
        "image_min_bytes": 12000,
        "image_timeout_seconds": 12,
        "max_per_category_per_day": 0,
        "window_enabled": True,
        "window_start_hour": 8,
        "window_end_hour": 20,
        "fallback_enabled": False,
        "seo_meta_keys": {
            "seo_title": "_yoast_wpseo_title",
            "meta_description": "_yoast_wpseo_metadesc",
            "focus_keyword": "_yoast_wpseo_focuskw",
        },
    },
}

# Maps whose keys are free-form: merged and type-checked per value, never rejected as unknown.
_OPEN_MAPS = {"config.feeds.mix", "config.quality.rules", "config.publish.seo_meta_keys"}
# Open maps replaced wholesale by an override instead of merged key by key.
_REPLACED_MAPS = {"config.feeds.mix"}


def load_config(path: str | None = None) -> Config:
    raw: dict[str, Any] = {}
    if path:
        try:
            with open(path, "r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle)
        except OSError as exc:
            raise ConfigError(f"Cannot read config {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError("config root must be a mapping")
        raw = loaded
    return build_config(raw)


def build_config(overrides: dict[str, Any] | None = None) -> Config:
    errors: list[str] = []
    merged = _merge(_deep_copy(DEFAULT_CONFIG), overrides or {}, "config", errors)
    if not errors:
        _validate_dict(merged, DEFAULT_CONFIG, "config", errors)
    if not errors:
        errors.extend(_validate_semantics(merged))
    if errors:
        raise ConfigError("Invalid config: " + "; ".join(errors))
    return _build_config(merged)


def load_credentials(environ: dict[str, str] | None = None) -> Credentials:
    env = os.environ if environ is None else environ
    return Credentials(
        wp_url=env.get("AP_WP_URL", "").strip().rstrip("/"),
        wp_user=env.get("AP_WP_USER", "").strip(),
        wp_app_password=env.get("AP_WP_APP_PASSWORD", "").strip(),
        llm_base_url=env.get("AP_LLM_BASE_URL", "https://api.openai.com/v1").strip(),
        llm_api_key=env.get("AP_LLM_API_KEY", "").strip(),
        llm_model=env.get("AP_LLM_MODEL", "gpt-4.1-mini").strip(),
    )


def _merge(base: dict[str, Any], overrides: dict[str, Any], path: str, errors: list[str]) -> dict[str, Any]:
    if not isinstance(overrides, dict):
        errors.append(f"{path} must be an object")
        return base
    for key, value in overrides.items():
        key_path = f"{path}.{key}"
        if key not in base and path not in _OPEN_MAPS:
            errors.append(f"unknown {key_path}")
            continue
        if isinstance(value, dict) and isinstance(base.get(key), dict) and key_path not in _REPLACED_MAPS:
            base[key] = _merge(base[key], value, key_path, errors)
        else:
            base[key] = value
    return base


def _validate_dict(value: dict[str, Any], schema: dict[str, Any], path: str, errors: list[str]) -> None:
    if not isinstance(value, dict):
        errors.append(f"{path} must be an object")
        return
    if path in _OPEN_MAPS:
        sample = next(iter(schema.values()), None)
        for key, item in value.items():
            if sample is not None:
                _validate_value(item, sample, f"{path}.{key}", errors)
        return
    for key in schema.keys():
        if key not in value:
            errors.append(f"missing {path}.{key}")
    for key, default in schema.items():
        if key not in value:
            continue
        _validate_value(value[key], default, f"{path}.{key}", errors)


def _validate_value(value: Any, default: Any, path: str, errors: list[str]) -> None:
    if isinstance(default, dict):
        if not isinstance(value, dict):
            errors.append(f"{path} must be an object")
            return
        _validate_dict(value, default, path, errors)
        return
    if isinstance(default, list):
        if not isinstance(value, list):
            errors.append(f"{path} must be a list")
            return
        if default:
            sample = default[0]
            for index, item in enumerate(value):
                if isinstance(sample, dict):
                    if not isinstance(item, dict):
                        errors.append(f"{path} must be a list of objects")
                        break
                    _validate_dict(item, sample, f"{path}[{index}]", errors)
                elif not isinstance(item, type(sample)):
                    errors.append(f"{path} must be a list of {type(sample).__name__}")
                    break
        else:
            for item in value:
                if not isinstance(item, str):
                    errors.append(f"{path} must be a list of strings")
                    break
        return
    if isinstance(default, bool):
        if not isinstance(value, bool):
            errors.append(f"{path} must be a boolean")
        return
    if isinstance(default, int):
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(f"{path} must be an integer")
        return
    if isinstance(default, float):
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            errors.append(f"{path} must be a number")
        return
    if isinstance(default, str):
        if not isinstance(value, str):
            errors.append(f"{path} must be a string")
        return


def _validate_semantics(cfg: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    dedupe = cfg["dedupe"]
    if not 0 < float(dedupe["overlap_ratio"]) <= 1:
        errors.append("config.dedupe.overlap_ratio must be in (0, 1]")
    if int(dedupe["min_overlap"]) < 1:
        errors.append("config.dedupe.min_overlap must be >= 1")
    if int(cfg["rewrite"]["max_attempts"]) < 1:
        errors.append("config.rewrite.max_attempts must be >= 1")
    if int(cfg["publish"]["retries"]) < 1:
        errors.append("config.publish.retries must be >= 1")
    for key in ("window_start_hour", "window_end_hour"):
        if not 0 <= int(cfg["publish"][key]) <= 23:
            errors.append(f"config.publish.{key} must be between 0 and 23")
    unknown_rules = set(cfg["quality"]["rules"]) - set(QUALITY_RULES)
    if unknown_rules:
        errors.append("unknown config.quality.rules: " + ", ".join(sorted(unknown_rules)))
    category_ids = [category["id"] for category in cfg["classifier"]["categories"]]
    if len(category_ids) != len(set(category_ids)):
        errors.append("config.classifier.categories ids must be unique")
    for guard in cfg["classifier"]["guards"]:
        if guard["from"] not in category_ids or guard["to"] not in category_ids:
            errors.append(f"config.classifier.guards references unknown category {guard['from']}->{guard['to']}")
    return errors


def _build_config(cfg: dict[str, Any]) -> Config:
    app_cfg = cfg["app"]
    paths_cfg = cfg["paths"]
    feeds_cfg = cfg["feeds"]
    filters_cfg = cfg["filters"]
    classifier_cfg = cfg["classifier"]
    dedupe_cfg = cfg["dedupe"]
    rewrite_cfg = cfg["rewrite"]
    quality_cfg = cfg["quality"]
    linking_cfg = cfg["linking"]
    editorial_cfg = cfg["editorial"]
    publish_cfg = cfg["publish"]

    app = AppConfig(name=str(app_cfg["name"]), timezone=str(app_cfg["timezone"]))
    paths = PathsConfig(
        data_dir=str(paths_cfg["data_dir"]),
        history_path=str(paths_cfg["history_path"]),
        run_reports_dir=str(paths_cfg["run_reports_dir"]),
    )

    feeds = FeedsConfig(
        candidate_limit=int(feeds_cfg["candidate_limit"]),
        timeout_seconds=int(feeds_cfg["timeout_seconds"]),
        user_agent=str(feeds_cfg["user_agent"]),
        max_retries=int(feeds_cfg["max_retries"]),
        backoff_seconds=int(feeds_cfg["backoff_seconds"]),
        max_workers=int(feeds_cfg["max_workers"]),
        mix={str(key): float(value) for key, value in feeds_cfg["mix"].items()},
        sources=[
            SourceConfig(
                name=str(source["name"]),
                url=str(source["url"]),
                category_id=int(source["category_id"]),
                max_per_run=int(source["max_per_run"]),
                group=str(source["group"]),
            )
            for source in feeds_cfg["sources"]
        ],
    )

    promo_cfg = filters_cfg["promo"]
    filters = FilterConfig(
        recent_hours=int(filters_cfg["recent_hours"]),
        strict_recent=bool(filters_cfg["strict_recent"]),
        same_day_only=bool(filters_cfg["same_day_only"]),
        reject_missing_published_at=bool(filters_cfg["reject_missing_published_at"]),
        min_content_chars=int(filters_cfg["min_content_chars"]),
        body_bonus_chars=int(filters_cfg["body_bonus_chars"]),
        block_media_outlet_promo=bool(filters_cfg["block_media_outlet_promo"]),
        breaking_keywords=list(filters_cfg["breaking_keywords"]),
        low_value_patterns=list(filters_cfg["low_value_patterns"]),
        promo=PromoTables(
            outlet_terms=tuple(promo_cfg["outlet_terms"]),
            promo_verbs=tuple(promo_cfg["promo_verbs"]),
            promo_targets=tuple(promo_cfg["promo_targets"]),
            promo_phrases=tuple(promo_cfg["promo_phrases"]),
            generic_patterns=tuple(promo_cfg["generic_patterns"]),
            hard_block_tokens=tuple(promo_cfg["hard_block_tokens"]),
        ),
    )

    classifier = ClassifierConfig(
        override_enabled=bool(classifier_cfg["override_enabled"]),
        force_category_id=int(classifier_cfg["force_category_id"]),
        default_uncertain_category_id=int(classifier_cfg["default_uncertain_category_id"]),
        source_bias=int(classifier_cfg["source_bias"]),
        override_margin=int(classifier_cfg["override_margin"]),
        min_score=int(classifier_cfg["min_score"]),
        min_source_signal=int(classifier_cfg["min_source_signal"]),
        second_best_margin=int(classifier_cfg["second_best_margin"]),
        categories=[
            CategoryConfig(
                id=int(category["id"]),
                name=str(category["name"]),
                strong=list(category["strong"]),
                normal=list(category["normal"]),
            )
            for category in classifier_cfg["categories"]
        ],
        guards=[
            GuardRule(
                from_category=int(guard["from"]),
                to_category=int(guard["to"]),
                decisive_terms=list(guard["terms"]),
                min_matches=int(guard["min_matches"]),
            )
            for guard in classifier_cfg["guards"]
        ],
    )

    dedupe = DedupeConfig(
        history_max_items=int(dedupe_cfg["history_max_items"]),
        history_max_age_days=int(dedupe_cfg["history_max_age_days"]),
        window_hours=int(dedupe_cfg["window_hours"]),
        overlap_ratio=float(dedupe_cfg["overlap_ratio"]),
        min_overlap=int(dedupe_cfg["min_overlap"]),
        topic_max_tokens=int(dedupe_cfg["topic_max_tokens"]),
        remote_enabled=bool(dedupe_cfg["remote_enabled"]),
        remote_recent_limit=int(dedupe_cfg["remote_recent_limit"]),
        title_prefix_tokens=int(dedupe_cfg["title_prefix_tokens"]),
    )

    rewrite = RewriteConfig(
        max_attempts=int(rewrite_cfg["max_attempts"]),
        min_words=int(rewrite_cfg["min_words"]),
        base_temperature=float(rewrite_cfg["base_temperature"]),
        temperature_step=float(rewrite_cfg["temperature_step"]),
        min_temperature=float(rewrite_cfg["min_temperature"]),
        base_max_tokens=int(rewrite_cfg["base_max_tokens"]),
        max_tokens_step=int(rewrite_cfg["max_tokens_step"]),
        timeout_seconds=int(rewrite_cfg["timeout_seconds"]),
        role_fact_check=bool(rewrite_cfg["role_fact_check"]),
        role_max_claims=int(rewrite_cfg["role_max_claims"]),
        context_word_max=int(rewrite_cfg["context_word_max"]),
        backoff_seconds=float(rewrite_cfg["backoff_seconds"]),
    )

    rules = {rule: True for rule in QUALITY_RULES}
    rules.update({str(key): bool(value) for key, value in quality_cfg["rules"].items()})
    quality = QualityConfig(
        strict=bool(quality_cfg["strict"]),
        rules=rules,
        title_max_chars=int(quality_cfg["title_max_chars"]),
        seo_title_max_chars=int(quality_cfg["seo_title_max_chars"]),
        meta_min_chars=int(quality_cfg["meta_min_chars"]),
        meta_max_chars=int(quality_cfg["meta_max_chars"]),
        min_lead_words=int(quality_cfg["min_lead_words"]),
        min_internal_links=int(quality_cfg["min_internal_links"]),
        min_title_words=int(quality_cfg["min_title_words"]),
        title_style=TitleStyleTables(tabloid_patterns=tuple(quality_cfg["tabloid_patterns"])),
    )

    linking = LinkingConfig(
        enabled=bool(linking_cfg["enabled"]),
        max_links=int(linking_cfg["max_links"]),
        fetch_limit=int(linking_cfg["fetch_limit"]),
        category_strict=bool(linking_cfg["category_strict"]),
        cross_category_fallback=bool(linking_cfg["cross_category_fallback"]),
    )

    editorial = EditorialConfig(
        toc_enabled=bool(editorial_cfg["toc_enabled"]),
        toc_min_headings=int(editorial_cfg["toc_min_headings"]),
        key_facts_enabled=bool(editorial_cfg["key_facts_enabled"]),
        key_facts_count=int(editorial_cfg["key_facts_count"]),
        attribution_enabled=bool(editorial_cfg["attribution_enabled"]),
        editorial_note=str(editorial_cfg["editorial_note"]),
    )

    publish = PublishConfig(
        posts_per_run=int(publish_cfg["posts_per_run"]),
        retries=int(publish_cfg["retries"]),
        retry_base_seconds=float(publish_cfg["retry_base_seconds"]),
        draft_then_publish=bool(publish_cfg["draft_then_publish"]),
        require_image=bool(publish_cfg["require_image"]),
        default_featured_media_id=int(publish_cfg["default_featured_media_id"]),
        use_source_image=bool(publish_cfg["use_source_image"]),
        image_min_bytes=int(publish_cfg["image_min_bytes"]),
        image_timeout_seconds=int(publish_cfg["image_timeout_seconds"]),
        max_per_category_per_day=int(publish_cfg["max_per_category_per_day"]),
        window_enabled=bool(publish_cfg["window_enabled"]),
        window_start_hour=int(publish_cfg["window_start_hour"]),
        window_end_hour=int(publish_cfg["window_end_hour"]),
        fallback_enabled=bool(publish_cfg["fallback_enabled"]),
        seo_meta_keys={str(key): str(value) for key, value in publish_cfg["seo_meta_keys"].items()},
    )

    return Config(
        app=app,
        paths=paths,
        feeds=feeds,
        filters=filters,
        classifier=classifier,
        dedupe=dedupe,
        rewrite=rewrite,
        quality=quality,
        linking=linking,
        editorial=editorial,
        publish=publish,
    )


def _deep_copy(value: dict[str, Any]) -> dict[str, Any]:
    return json.loads(json.dumps(value))
