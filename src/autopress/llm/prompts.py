from __future__ import annotations

from ..models import RetryReason

SYSTEM_PROMPT = "Esti un jurnalist profesionist. Raspunzi doar cu JSON valid."

OUTPUT_CONTRACT = """Raspunde DOAR cu un obiect JSON cu cheile:
{
  "title": "titlu clar, informativ, fara clickbait",
  "seo_title": "max 60 de caractere, contine focus_keyword",
  "meta_description": "130-160 de caractere",
  "focus_keyword": "2-4 cuvinte prezente in titlu",
  "tags": ["2-5 taguri"],
  "content_html": "<p>lead</p><h2>subtitlu</h2><p>...</p>"
}"""

REWRITE_TEMPLATE = """Rescrie stirea de mai jos in limba romana, intr-un stil jurnalistic clar, neutru si informat.

REGULI OBLIGATORII:
- Text original, fara plagiat.
- Fara citarea altor publicatii si fara formulari de tip "potrivit surselor".
- Minim {min_words} de cuvinte.
- Fara sectiune intitulata "Concluzie".
- Ton profesionist, fara senzationalism, fara semne de exclamare in titlu.
- Paragrafe scurte (2-3 propozitii), cu subtitluri <h2> relevante.
- Primul paragraf rezuma esenta stirii (lead) in cel putin 18 cuvinte.
- Titlul este o propozitie completa, fara final suspendat.

FUNCTII OFICIALE:
{role_constraints}
{corrective}
{contract}

Titlu original: {original_title}
Sursa: {source}
Publicat: {published_at}

STIRE DE RESCRIS:
\"\"\"
{raw_text}
\"\"\""""

FALLBACK_TEMPLATE = """Scrie un articol de stiri jurnalistic, obiectiv, in limba romana, pe tema: {topic}.

REGULI STRICTE:
- Fara markdown si fara emoji.
- Titlu clar, o singura propozitie completa.
- 3-5 subtitluri <h2> tematice, paragrafe scurte.
- Minim {min_words} de cuvinte; primul paragraf este un lead de cel putin 18 cuvinte.
- Nu inventa cifre, nume sau declaratii.

{contract}"""

CORRECTIVE_INSTRUCTIONS: dict[RetryReason, str] = {
    RetryReason.SHORT_CONTENT: (
        "Varianta anterioara a fost prea scurta. Extinde articolul la cel putin {min_words} de cuvinte "
        "cu context si detalii verificabile din sursa, fara repetitii."
    ),
    RetryReason.WEAK_TITLE: (
        "Titlul anterior a fost slab sau senzationalist. Scrie un titlu complet, de cel putin 5 cuvinte, "
        "fara majuscule excesive, fara semne de exclamare si fara final suspendat."
    ),
    RetryReason.ROLE_MISMATCH: (
        "Varianta anterioara a atribuit functii gresite unor persoane ({detail}). "
        "Foloseste EXACT functiile din sursa si din lista de functii oficiale."
    ),
    RetryReason.STYLE_REPETITION: (
        "Varianta anterioara a repetat excesiv cuvantul \"context\". Foloseste-l cel mult o data "
        "si reformuleaza restul aparitiilor."
    ),
}


def build_corrective_instructions(
    reason: RetryReason | None,
    detail: str = "",
    min_words: int = 350,
) -> str:
    """Corrective paragraph for a re-prompt; empty for a first attempt."""
    if reason is None:
        return ""
    template = CORRECTIVE_INSTRUCTIONS[reason]
    return "\nCORECTII:\n- " + template.format(detail=detail or "n/a", min_words=min_words) + "\n"


def build_rewrite_prompt(
    raw_text: str,
    original_title: str,
    *,
    source: str = "",
    published_at: str = "",
    role_constraints: str = "",
    corrective: str = "",
    min_words: int = 350,
) -> str:
    return REWRITE_TEMPLATE.format(
        min_words=min_words,
        role_constraints=role_constraints or "- Pastreaza functiile oficiale exact asa cum apar in sursa.",
        corrective=corrective,
        contract=OUTPUT_CONTRACT,
        original_title=original_title,
        source=source or "necunoscuta",
        published_at=published_at or "necunoscut",
        raw_text=raw_text,
    )


def build_fallback_prompt(topic: str, min_words: int = 350) -> str:
    return FALLBACK_TEMPLATE.format(topic=topic, min_words=min_words, contract=OUTPUT_CONTRACT)
