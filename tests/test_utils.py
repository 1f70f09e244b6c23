from datetime import datetime, timezone

from autopress.models import CandidateOutcome, RetryReason
from autopress.utils import (
    contains_normalized,
    extract_json,
    host_of,
    json_dumps,
    normalize_url,
    parse_date_value,
    slugify,
    truncate_at_word,
    word_count,
)


def test_normalize_url_strips_tracking_and_sorts():
    url = "https://www.Example.com/path/?utm_source=news&b=2&a=1&fbclid=x"
    assert normalize_url(url) == "https://example.com/path?a=1&b=2"


def test_host_of_drops_www():
    assert host_of("https://www.digi24.ro/stiri/x") == "digi24.ro"
    assert host_of("") == ""


def test_slugify_strips_diacritics():
    assert slugify("Guvernul anunță o taxă nouă") == "guvernul-anunta-o-taxa-noua"


def test_truncate_at_word_keeps_whole_words():
    assert truncate_at_word("unu doi trei patru", 9) == "unu doi"
    assert truncate_at_word("scurt", 20) == "scurt"


def test_contains_normalized_matches_whole_words_only():
    assert contains_normalized("Taxa pe clădiri crește", "taxa pe cladiri")
    assert not contains_normalized("Taxare automată", "taxa")


def test_extract_json_finds_embedded_object():
    assert extract_json('Raspuns: {"title": "x"} gata') == {"title": "x"}
    assert extract_json("nimic") is None


def test_parse_date_value_handles_rfc822_and_iso():
    rfc = parse_date_value("Mon, 19 Oct 2026 08:30:00 +0300")
    iso = parse_date_value("2026-10-19T05:30:00Z")
    assert rfc == iso == datetime(2026, 10, 19, 5, 30, tzinfo=timezone.utc)
    assert parse_date_value("not a date") is None


def test_word_count_ignores_markup():
    assert word_count("<p>unu <strong>doi</strong></p><p>trei</p>") == 3


def test_json_dumps_serializes_dataclasses_and_enums():
    payload = {"outcome": CandidateOutcome("t", "skipped", "dup"), "reason": RetryReason.WEAK_TITLE}
    text = json_dumps(payload)
    assert '"reason": "weak_title"' in text
    assert '"status": "skipped"' in text
