from autopress.config import build_config
from autopress.editorial import (
    add_heading_ids,
    apply_editorial_structure,
    build_attribution,
    insert_key_facts,
    insert_table_of_contents,
)
from autopress.models import Article

LEAD = (
    "<p>Prima propoziție are destule cuvinte aici. A doua propoziție are și ea cuvinte. "
    "A treia propoziție încheie paragraful de start.</p>"
)


def test_heading_ids_are_unique():
    html, headings = add_heading_ids("<h2>Detalii</h2><p>x</p><h2>Detalii</h2>")
    assert [anchor for anchor, _ in headings] == ["detalii", "detalii-2"]
    assert 'id="detalii-2"' in html


def test_table_of_contents_needs_enough_headings():
    body = f"{LEAD}<h2>Unu</h2><p>a</p><h2>Doi</h2><p>b</p>"
    assert insert_table_of_contents(body, 3) == body

    body += "<h2>Trei</h2><p>c</p>"
    with_toc = insert_table_of_contents(body, 3)
    assert with_toc.index('<nav class="toc">') > with_toc.index("</p>")
    assert '<a href="#trei">Trei</a>' in with_toc
    assert insert_table_of_contents(with_toc, 3) == with_toc


def test_key_facts_come_from_lead_sentences():
    html = insert_key_facts(LEAD, 2)
    assert '<div class="key-facts">' in html
    assert html.count("<li>") == 2
    assert "<li>Prima propoziție are destule cuvinte aici.</li>" in html


def test_attribution_markup():
    assert build_attribution("Digi24", "https://digi24.ro/x") == (
        '<p class="source-attribution">Sursa: '
        '<a href="https://digi24.ro/x" rel="nofollow noopener" target="_blank">Digi24</a></p>'
    )
    assert build_attribution("", "") == '<p class="source-attribution">Sursa: Sursa</p>'


def test_apply_editorial_structure_is_idempotent():
    config = build_config(
        {"editorial": {"key_facts_enabled": True, "editorial_note": "Articol redactat de echipa noastră."}}
    ).editorial
    article = Article(title="Titlu", body_html=LEAD)

    apply_editorial_structure(article, config, "Digi24", "https://digi24.ro/x")
    first = article.body_html
    apply_editorial_structure(article, config, "Digi24", "https://digi24.ro/x")

    assert article.body_html == first
    assert first.count("source-attribution") == 1
    assert first.endswith('<p class="editorial-note"><em>Articol redactat de echipa noastră.</em></p>')
