from __future__ import annotations

import re
from dataclasses import dataclass, field

from .normalize import normalize_text
from .utils import strip_html

ROLE_PATTERN = (
    r"(?i:prim[-\s]?ministr(?:ul|ului)?|premier(?:ul|ului)?|primar(?:ul|ului)?"
    r"|pre(?:ș|ş|s)edinte(?:le|lui)?|ministr(?:ul|ului|u)?|senator(?:ul|ului)?"
    r"|deputat(?:ul|ului)?|judec(?:a|ă)tor(?:ul|ului)?|guvernator(?:ul|ului)?"
    r"|procuror(?:ul|ului)?|avocat(?:ul|ului|a)?|director(?:ul|ului)?)"
)
_NAME_TOKEN = r"[A-ZĂÂÎȘȚŞŢ](?:[^\W\d_]|['’\-])+"
NAME_PATTERN = rf"{_NAME_TOKEN}(?:\s+{_NAME_TOKEN}){{1,2}}"

ROLE_THEN_NAME_RE = re.compile(rf"\b({ROLE_PATTERN})\s+({NAME_PATTERN})")
NAME_THEN_ROLE_RE = re.compile(rf"({NAME_PATTERN})\s*,\s*({ROLE_PATTERN})")

# checked in order; "prim ministru" must win over "ministru"
CANONICAL_ROLES = (
    ("prim ministr", "premier"),
    ("premier", "premier"),
    ("primar", "primar"),
    ("presedinte", "presedinte"),
    ("ministr", "ministru"),
    ("senator", "senator"),
    ("deputat", "deputat"),
    ("judecator", "judecator"),
    ("guvernator", "guvernator"),
    ("procuror", "procuror"),
    ("avocat", "avocat"),
    ("director", "director"),
)

DEFAULT_ROLE_CONSTRAINT = "- Pastreaza functiile oficiale exact asa cum apar in sursa."


@dataclass
class RoleClaim:
    name: str
    roles: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class RoleMismatch:
    name: str
    expected: tuple[str, ...]
    found: str


def canonical_role(role_text: str) -> str | None:
    role = normalize_text(role_text)
    if not role:
        return None
    for needle, canonical in CANONICAL_ROLES:
        if needle in role:
            return canonical
    return None


def _clean_name(name: str) -> str:
    return re.sub(r"[,:;.!?]+$", "", re.sub(r"\s+", " ", name or "")).strip()


def looks_like_person_name(name: str) -> bool:
    tokens = _clean_name(name).split()
    if len(tokens) < 2 or len(tokens) > 3:
        return False
    return all(token[0].isupper() for token in tokens)


def _add_claim(claims: dict[str, RoleClaim], raw_name: str, raw_role: str, max_claims: int) -> None:
    name = _clean_name(raw_name)
    if not looks_like_person_name(name):
        return
    role = canonical_role(raw_role)
    if role is None:
        return
    key = normalize_text(name)
    if not key:
        return
    if key not in claims and len(claims) >= max_claims:
        return
    claims.setdefault(key, RoleClaim(name=name)).roles.add(role)


def extract_person_role_claims(text: str, max_claims: int = 8) -> dict[str, RoleClaim]:
    """Find "role Name" and "Name, role" pairs, keyed by normalized name."""
    source = re.sub(r"\s+", " ", strip_html(text)).strip()
    claims: dict[str, RoleClaim] = {}
    if not source:
        return claims
    limit = max(1, int(max_claims))
    for match in ROLE_THEN_NAME_RE.finditer(source):
        _add_claim(claims, match.group(2), match.group(1), limit)
    for match in NAME_THEN_ROLE_RE.finditer(source):
        _add_claim(claims, match.group(1), match.group(2), limit)
    return claims


def build_source_role_claims(title: str, body: str, max_claims: int = 6) -> dict[str, RoleClaim]:
    from_title = extract_person_role_claims(title, max_claims)
    if from_title:
        return from_title
    return extract_person_role_claims(f"{title}\n{body}".strip(), max_claims)


def build_role_constraints(claims: dict[str, RoleClaim]) -> str:
    lines: list[str] = []
    for claim in claims.values():
        roles = sorted(claim.roles)
        if not roles:
            continue
        if len(roles) == 1:
            lines.append(f"- Pentru {claim.name}, foloseste functia «{roles[0]}».")
        else:
            lines.append(f"- Pentru {claim.name}, functiile valide sunt: {', '.join(roles)}.")
    return "\n".join(lines) if lines else DEFAULT_ROLE_CONSTRAINT


def find_role_mismatches(source_claims: dict[str, RoleClaim], generated_text: str) -> list[RoleMismatch]:
    if not source_claims:
        return []
    generated = extract_person_role_claims(generated_text, max_claims=20)
    mismatches: list[RoleMismatch] = []
    for key, source_claim in source_claims.items():
        generated_claim = generated.get(key)
        if generated_claim is None:
            continue
        for role in sorted(generated_claim.roles):
            if role not in source_claim.roles:
                mismatches.append(
                    RoleMismatch(name=source_claim.name, expected=tuple(sorted(source_claim.roles)), found=role)
                )
                break
    return mismatches


def format_role_mismatches(mismatches: list[RoleMismatch]) -> str:
    return "; ".join(
        f"{item.name}: {item.found} (expected {'/'.join(item.expected)})" for item in mismatches[:4]
    )
