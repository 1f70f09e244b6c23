import pytest

from autopress.headline import (
    clean_title,
    has_dangling_connector,
    is_strong_title,
    strip_attribution,
    strip_publisher_suffix,
)
from autopress.normalize import contains_term, normalize_text, tokenize


def test_normalize_text_strips_diacritics_and_punctuation():
    assert normalize_text("Ședința «Guvernului» — azi, la 10:00!") == "sedinta guvernului azi la 10 00"
    assert tokenize("Două   cuvinte") == ["doua", "cuvinte"]
    assert normalize_text(None) == ""


def test_contains_term_prefix_matches_inflections():
    text = normalize_text("Guvernului i se cere demisia")
    assert contains_term(text, "guvern", prefix=True)
    assert not contains_term(text, "guvern")


def test_dangling_connector_title_rejected_and_trimmed_title_accepted():
    title = "Primarul Capitalei a anunțat noi restricții de trafic în timp ce autoritățile"
    trimmed = "Primarul Capitalei a anunțat noi restricții de trafic"

    assert has_dangling_connector(title)
    assert not is_strong_title(title)
    assert is_strong_title(trimmed)
    assert clean_title(title) == trimmed


def test_publisher_suffix_removed_only_for_outlets():
    assert strip_publisher_suffix("Guvernul aprobă bugetul pe anul viitor - Digi24") == (
        "Guvernul aprobă bugetul pe anul viitor"
    )
    assert strip_publisher_suffix("Guvernul aprobă bugetul - HotNews.ro") == "Guvernul aprobă bugetul"
    kept = "Finala Cupei Davis - ultimul act"
    assert strip_publisher_suffix(kept) == kept


def test_attribution_clause_removed():
    title = "Prețul energiei va crește de la 1 ianuarie, potrivit Mediafax"
    assert strip_attribution(title) == "Prețul energiei va crește de la 1 ianuarie"


def test_clean_title_truncates_at_word_boundary():
    title = "Consiliul General a aprobat bugetul municipiului pentru anul viitor după o ședință lungă"
    cleaned = clean_title(title, 40)
    assert len(cleaned) <= 40
    assert title.startswith(cleaned)
    assert not cleaned.endswith(" ")


@pytest.mark.parametrize(
    "title",
    [
        "Primarul Capitalei a anunțat noi restricții de trafic în timp ce autoritățile",
        "„Guvernul aprobă bugetul pe anul viitor” - Digi24",
        "Ministrul Sănătății anunță noi reguli pentru spitale, potrivit Agerpres",
        "Parlamentul dezbate legea pensiilor speciale în sesiune extraordinară...",
        "Meciul de aseară s-a încheiat la egalitate iar",
    ],
)
def test_clean_title_is_idempotent(title):
    once = clean_title(title)
    assert clean_title(once) == once


def test_is_strong_title_rejects_short_and_punctuated_titles():
    assert not is_strong_title("Prea scurt")
    assert not is_strong_title("Guvernul a anunțat astăzi măsuri noi:")
    assert not is_strong_title("Guvernul a discutat măsurile despre")
    assert is_strong_title("Guvernul a anunțat astăzi măsuri fiscale noi")
