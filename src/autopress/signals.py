from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

from .normalize import contains_any_term, normalize_text
from .utils import strip_html

BREAKING_KEYWORDS = (
    "breaking",
    "ultima ora",
    "alerta",
    "urgent",
    "cutremur",
    "explozie",
    "incendiu",
    "atac",
    "tragedie",
    "accident",
    "evacuare",
    "victime",
)

LOW_EDITORIAL_VALUE_PATTERNS = (
    r"^comunicat de presa\b",
    r"^publicitate\b",
    r"advertorial",
    r"\bhoroscop",
    r"\bcurs valutar\b",
    r"\bprogram tv\b",
    r"\brezultate loto\b",
    r"\bcontinut sponsorizat\b",
)

TABLOID_PATTERNS = (
    r"\bsoc(?:ant|anta|ul)?\b",
    r"\bincredibil",
    r"\bbomba\b",
    r"\bhalucinant",
    r"\buluitor",
    r"\bnu (?:o )?sa (?:iti|ti) vina sa crezi\b",
    r"\biata ce\b",
    r"\bafla ce\b",
    r"\bvezi ce\b",
    r"\bce a urmat\b",
    r"\bdezvaluiri (?:socante|incendiare)\b",
)

_CONTEXT_WORD_RE = re.compile(r"\bcontext(?:ul|ului)?\b")
_CAPS_WORD_RE = re.compile(r"^[A-ZĂÂÎȘȚŞŢ]{3,}$")


@dataclass(frozen=True)
class PromoTables:
    outlet_terms: tuple[str, ...] = (
        "stirile protv",
        "protv",
        "news ro",
        "digi24",
        "observator",
        "antena 1",
        "antena 3",
        "romania tv",
        "realitatea",
        "hotnews",
        "g4media",
        "libertatea",
        "adevarul",
        "euronews",
    )
    promo_verbs: tuple[str, ...] = (
        "publica",
        "lanseaza",
        "prezinta",
        "difuzeaza",
        "transmite",
        "anunta",
        "promoveaza",
    )
    promo_targets: tuple[str, ...] = (
        "stiri video",
        "stiri online",
        "actualizari",
        "pagina",
        "page",
        "site",
        "canal",
        "emisiune",
        "aplicatie",
        "cont oficial",
        "youtube",
        "facebook",
        "tiktok",
        "serie",
    )
    promo_phrases: tuple[str, ...] = (
        "cele mai recente stiri online",
        "in format de stiri online",
        "format de stiri online",
        "serie de stiri video",
        "fluxului de stiri",
        "de ultima ora pagina",
    )
    generic_patterns: tuple[str, ...] = (
        r"\b(?:publica|publicate|publicat|lanseaza|prezinta|difuzeaza|transmite|anunta)\b.{0,60}\b(?:stiri|news)\b.{0,30}\b(?:online|video)\b",
        r"\bin\s+format\s+de\s+(?:stiri|news)\s+(?:online|video)\b",
        r"\b(?:stiri|news)\s+de\s+ultima\s+ora\s+pagina\s+\d{2,}\b",
        r"\b(?:pagina|page)\s+\d{3,}\b",
        r"\bpublicate?\s+de\s+[a-z0-9][a-z0-9 .-]{1,40}\b",
    )
    hard_block_tokens: tuple[str, ...] = ("stiri", "news", "online", "video")


DEFAULT_PROMO_TABLES = PromoTables()


@dataclass(frozen=True)
class TitleStyleTables:
    tabloid_patterns: tuple[str, ...] = TABLOID_PATTERNS
    max_caps_words: int = 2
    compiled: tuple[re.Pattern[str], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "compiled", tuple(re.compile(pattern) for pattern in self.tabloid_patterns)
        )


DEFAULT_TITLE_STYLE = TitleStyleTables()


def _compile_all(patterns: Iterable[str]) -> list[re.Pattern[str]]:
    return [re.compile(pattern) for pattern in patterns]


def is_breaking_title(title: str, keywords: Iterable[str] = BREAKING_KEYWORDS) -> bool:
    return contains_any_term(normalize_text(title), keywords, prefix=True)


def is_low_editorial_value_title(
    title: str, patterns: Iterable[str] = LOW_EDITORIAL_VALUE_PATTERNS
) -> bool:
    normalized = normalize_text(title)
    if not normalized:
        return False
    return any(pattern.search(normalized) for pattern in _compile_all(patterns))


def is_media_outlet_promotion(text: str, tables: PromoTables = DEFAULT_PROMO_TABLES) -> bool:
    """Heuristic for feed items that merely advertise a media outlet's own output.

    An outlet mention, a known promo phrase or a generic "publishes news
    online" construction opens the check; it only fires when a promo verb,
    a promo target or a numbered-page signal backs it up.
    """
    normalized = normalize_text(text)
    if not normalized:
        return False
    has_outlet = contains_any_term(normalized, tables.outlet_terms)
    has_phrase = contains_any_term(normalized, tables.promo_phrases)
    matches_generic = any(pattern.search(normalized) for pattern in _compile_all(tables.generic_patterns))
    if not has_outlet and not has_phrase and not matches_generic:
        return False

    has_verb = contains_any_term(normalized, tables.promo_verbs)
    has_target = contains_any_term(normalized, tables.promo_targets)
    numeric_page = re.search(r"\b(?:pagina|page)\s+\d{3,}\b", normalized) is not None
    program_signals = (
        re.search(r"\b(?:stiri|news)\s+(?:video|online)\b", normalized) is not None
        or re.search(r"\b(?:editie|sezon|episod)\b", normalized) is not None
    )

    if numeric_page:
        return True
    if has_phrase and (has_outlet or has_verb or has_target):
        return True
    if matches_generic:
        return True
    if has_verb and has_target:
        return True
    if has_verb and program_signals:
        return True
    return False


def is_hard_media_outlet_block(text: str, tables: PromoTables = DEFAULT_PROMO_TABLES) -> bool:
    normalized = normalize_text(text)
    if not normalized:
        return False
    return (
        contains_any_term(normalized, tables.outlet_terms)
        and contains_any_term(normalized, tables.promo_verbs)
        and contains_any_term(normalized, tables.hard_block_tokens)
    )


def is_tabloid_title(title: str, tables: TitleStyleTables = DEFAULT_TITLE_STYLE) -> bool:
    raw = (title or "").strip()
    if not raw:
        return False
    if "!!" in raw or "?!" in raw or raw.endswith("!"):
        return True
    caps_words = [word for word in raw.split() if _CAPS_WORD_RE.match(word.strip(".,:;!?\"'"))]
    if len(caps_words) > tables.max_caps_words:
        return True
    normalized = normalize_text(raw)
    return any(pattern.search(normalized) for pattern in tables.compiled)


def count_context_word_occurrences(html: str) -> int:
    normalized = normalize_text(strip_html(html))
    if not normalized:
        return 0
    return len(_CONTEXT_WORD_RE.findall(normalized))
