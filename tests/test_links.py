from autopress.config import build_config
from autopress.links import (
    LinkTargetCache,
    add_internal_links,
    add_internal_links_to_html,
    build_anchor_candidates,
    inject_anchor,
    load_link_targets,
)
from autopress.models import LinkTarget

HTML = (
    "<p>Primaria a prezentat joi planul de investitii pentru anul viitor.</p>"
    "<p>Consiliul General a aprobat bugetul municipiului Bucuresti pentru anul viitor.</p>"
    "<p>Alte detalii despre transportul public din Capitala.</p>"
)
BUDGET = LinkTarget("https://example.ro/buget-bucuresti/", "Consiliul General a aprobat bugetul municipiului Bucuresti")
TRANSPORT = LinkTarget("https://example.ro/transport/", "Transportul public din Capitala se scumpeste")


def test_links_added_once_per_target():
    result = add_internal_links_to_html(HTML, [BUDGET, TRANSPORT], article_title="Planul de investitii")

    assert result.linked_count == 2
    assert result.html.count(f'href="{BUDGET.url}"') == 1
    assert result.html.count(f'href="{TRANSPORT.url}"') == 1

    again = add_internal_links_to_html(result.html, [BUDGET, TRANSPORT], article_title="Planul de investitii")
    assert again.linked_count == 0
    assert again.html == result.html


def test_max_links_caps_injections():
    result = add_internal_links_to_html(HTML, [BUDGET, TRANSPORT], max_links=1)
    assert result.linked_count == 1
    assert result.html.count("<a href=") == 1


def test_target_matching_article_title_is_skipped():
    result = add_internal_links_to_html(HTML, [BUDGET], article_title=BUDGET.title)
    assert result.linked_count == 0
    assert result.html == HTML


def test_anchor_candidates_need_meaningful_words():
    assert build_anchor_candidates("Stiri") == []
    candidates = build_anchor_candidates(TRANSPORT.title)
    assert "Transportul public din Capitala" in candidates
    assert "scumpeste" in candidates


def test_link_targets_are_cached_per_category():
    calls = []

    def fetch(category_id, limit):
        calls.append(category_id)
        return [BUDGET] if category_id else [TRANSPORT]

    config = build_config().linking
    cache = LinkTargetCache()

    assert load_link_targets(cache, fetch, 4058, config) == [BUDGET]
    assert load_link_targets(cache, fetch, 4058, config) == [BUDGET]
    assert calls == [4058]


def test_strict_category_without_targets_does_not_cross_over():
    calls = []

    def fetch(category_id, limit):
        calls.append(category_id)
        return [] if category_id else [TRANSPORT]

    strict = build_config().linking
    assert load_link_targets(LinkTargetCache(), fetch, 4058, strict) == []
    assert calls == [4058]

    relaxed = build_config({"linking": {"cross_category_fallback": True}}).linking
    assert load_link_targets(LinkTargetCache(), fetch, 4058, relaxed) == [TRANSPORT]


def test_disabled_linking_returns_html_untouched():
    config = build_config({"linking": {"enabled": False}}).linking

    def fetch(category_id, limit):
        raise AssertionError("fetch must not be called")

    result = add_internal_links(HTML, "Titlu", "", 4058, LinkTargetCache(), fetch, config)
    assert result.html == HTML
    assert result.linked_count == 0


def test_anchor_is_never_written_into_attributes():
    url = "https://example.ro/b/"
    paragraph = '<p><img alt="bugetul municipiului Bucuresti"> Consiliul a votat bugetul municipiului Bucuresti azi.</p>'

    linked = inject_anchor(paragraph, "bugetul municipiului Bucuresti", url)

    assert linked == (
        '<p><img alt="bugetul municipiului Bucuresti"> Consiliul a votat '
        f'<a href="{url}">bugetul municipiului Bucuresti</a> azi.</p>'
    )
    assert inject_anchor('<p><img title="bugetul municipiului Bucuresti"></p>', "bugetul municipiului Bucuresti", url) is None


def test_anchor_after_inline_tag_is_linked():
    linked = inject_anchor("<p><strong>Bugetul</strong> Bucuresti creste</p>", "Bucuresti", "https://example.ro/b/")
    assert linked == '<p><strong>Bugetul</strong> <a href="https://example.ro/b/">Bucuresti</a> creste</p>'
