import copy
from dataclasses import replace

from autopress.models import Article
from autopress.quality import (
    count_internal_links,
    ensure_seo_fields,
    has_h2_heading,
    quality_gate_issues,
    reduce_context_phrase_repetition,
    remove_external_links,
    sanitize_content,
)
from autopress.utils import contains_normalized

LEAD = (
    "Guvernul a aprobat joi bugetul pentru spitalele județene, iar fondurile suplimentare vor fi "
    "folosite pentru aparatură medicală modernă și pentru angajarea de personal nou în regiuni."
)
SECOND = "Ministerul Sănătății va publica lista unităților care primesc bani în următoarele două săptămâni."


def _article(body):
    return Article(
        title="Guvernul aprobă bugetul pentru spitalele județene",
        seo_title="Guvernul aprobă bugetul pentru spitalele județene",
        meta_description=("Guvernul a aprobat bugetul pentru spitale. " * 4)[:145],
        focus_keyword="bugetul pentru spitalele",
        tags=["spitale", "buget"],
        body_html=body,
    )


def test_missing_h2_is_reported_without_hiding_other_issues(config):
    without_h2 = _article(f"<p>{LEAD}</p><p>{SECOND}</p>")
    with_h2 = _article(f"<p>{LEAD}</p><h2>Bugetul pentru spitalele județene</h2><p>{SECOND}</p>")

    issues = quality_gate_issues(without_h2, config.quality)

    assert "missing_h2" in issues
    assert issues == ["missing_h2"]
    assert quality_gate_issues(with_h2, config.quality) == []


def test_gate_reports_every_violation(config):
    article = _article(f"<p>{SECOND}</p>")
    article.title = "Prea scurt"

    issues = quality_gate_issues(article, config.quality, min_words=350, expect_attribution=True)

    assert {"weak_title", "missing_h2", "lead_too_short", "keyword_not_in_title"} <= set(issues)
    assert "content_too_short" in issues
    assert "missing_source_attribution" in issues


def test_gate_does_not_mutate_article(config):
    article = _article(f"<p>{LEAD}</p>")
    before = copy.deepcopy(article)
    quality_gate_issues(article, config.quality, site_host="example.ro", min_words=10)
    assert article == before


def test_gate_flags_tabloid_and_context_overuse(config):
    body = f"<p>{LEAD} In contextul actual, contextul politic si contextul economic conteaza.</p><h2>Buget</h2>"
    article = _article(body)
    article.title = "ȘOC! Guvernul aprobă bugetul pentru spitalele județene"

    issues = quality_gate_issues(article, config.quality, context_word_max=2)

    assert "tabloid_title" in issues
    assert "context_word_overused" in issues


def test_internal_links_rule_is_opt_in(config):
    article = _article(f"<p>{LEAD}</p><h2>Detalii</h2><p>{SECOND}</p>")
    assert "missing_internal_links" not in quality_gate_issues(article, config.quality, site_host="example.ro")

    rules = dict(config.quality.rules, missing_internal_links=True)
    strict = replace(config.quality, rules=rules)
    assert "missing_internal_links" in quality_gate_issues(article, strict, site_host="example.ro")


def test_ensure_seo_fields_backfills_everything(config):
    article = Article(
        title="Guvernul aprobă bugetul pentru spitalele județene - Digi24",
        body_html=f"<p>{LEAD}</p><p>{SECOND}</p>",
    )

    ensure_seo_fields(article, "", config.quality)

    assert article.title == "Guvernul aprobă bugetul pentru spitalele județene"
    assert article.focus_keyword
    assert contains_normalized(article.title, article.focus_keyword)
    assert contains_normalized(article.seo_title, article.focus_keyword)
    assert len(article.seo_title) <= config.quality.seo_title_max_chars
    assert config.quality.meta_min_chars <= len(article.meta_description) <= config.quality.meta_max_chars
    assert has_h2_heading(article.body_html)
    assert 1 <= len(article.tags) <= 5


def test_remove_external_links_keeps_internal_and_text():
    html = (
        '<p><a href="/local">intern</a> si <a href="https://www.example.ro/y">acasa</a> '
        'si <a href="https://digi24.ro/z">extern</a></p>'
    )
    cleaned = remove_external_links(html, "example.ro")
    assert "digi24.ro" not in cleaned
    assert "extern" in cleaned
    assert count_internal_links(cleaned, "example.ro") == 2


def test_context_phrase_repetition_replaced_after_limit():
    html = "<p>În contextul crizei. În contextul actual. Ne aflăm în contextul unor schimbări.</p>"
    reduced = reduce_context_phrase_repetition(html, 1)
    assert reduced.count("ontextul") == 1
    assert "In acest cadru actual" in reduced
    assert "in aceasta situatie unor" in reduced


def test_sanitize_content_strips_h1_only_when_body_remains():
    body = "<h1>Titlu</h1><p>" + "cuvant " * 30 + "</p>"
    assert "<h1>" not in sanitize_content(body)
    short = "<h1>Titlu</h1><p>doar atat</p>"
    assert sanitize_content(short) == short
