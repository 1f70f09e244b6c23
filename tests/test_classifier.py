from autopress.classifier import compute_category_scores, decisive_matches, resolve_category
from autopress.config import build_config
from autopress.models import Article, CandidateItem

SOCIAL = 4063
POLITICS = 4058


def _item(title, body="Întâlnirea a avut loc joi la sediul instituției.", category=SOCIAL):
    return CandidateItem(
        title=title,
        body_text=body,
        source_name="Google News România – Social",
        source_url="https://example.com/stire",
        published_at=None,
        suggested_category_id=category,
    )


def test_guard_vetoes_override_without_decisive_terms(config):
    item = _item("Ministrul și primarul au discutat noua lege a deputaților")

    decision = resolve_category(item, None, config.classifier)

    assert decision.category_id == SOCIAL
    assert not decision.changed
    assert decision.reason == "guard_social_to_politica"
    assert decision.scores[POLITICS].total > decision.scores[SOCIAL].total


def test_override_allowed_with_decisive_terms(config):
    item = _item("Guvernul și Parlamentul au discutat noua lege a deputaților")

    assert decisive_matches(item, ["guvern", "parlament", "senat"]) == 2
    decision = resolve_category(item, None, config.classifier)

    assert decision.category_id == POLITICS
    assert decision.changed
    assert decision.reason == "keyword_override"


def test_resolution_is_deterministic(config):
    item = _item("Guvernul și Parlamentul au discutat noua lege a deputaților")
    article = Article(title="Guvernul discută legea", tags=["guvern", "lege"], body_html="<p>Guvernul a discutat.</p>")

    first = resolve_category(item, article, config.classifier)
    second = resolve_category(item, article, config.classifier)

    assert first == second


def test_source_category_kept_when_it_scores_best(config):
    item = _item("Spitalul județean primește pacienți din trei județe", category=SOCIAL)
    decision = resolve_category(item, None, config.classifier)
    assert decision.category_id == SOCIAL
    assert decision.reason == "same_as_source"


def test_forced_category_wins():
    config = build_config({"classifier": {"force_category_id": 4061}})
    decision = resolve_category(_item("Guvernul și Parlamentul au votat"), None, config.classifier)
    assert decision.category_id == 4061
    assert decision.reason == "forced_category"


def test_override_disabled_keeps_source_category():
    config = build_config({"classifier": {"override_enabled": False}})
    decision = resolve_category(_item("Guvernul și Parlamentul au votat"), None, config.classifier)
    assert decision.category_id == SOCIAL
    assert decision.reason == "override_disabled"


def test_unknown_source_category_falls_back_when_signal_is_weak(config):
    item = _item("Un nou record a fost stabilit aseară", category=7)
    decision = resolve_category(item, None, config.classifier)
    assert decision.category_id == config.classifier.default_uncertain_category_id
    assert decision.reason == "unknown_source_below_min_score"


def test_source_title_weighs_more_than_generated_text(config):
    item = _item("Echipa națională de fotbal a câștigat meciul", category=SOCIAL)
    article = Article(title="x", body_html="<p>fotbal</p>")
    scores = compute_category_scores(item, article, config.classifier)
    sport = scores[4061]
    assert sport.source_signal > sport.generated_signal
    assert scores[SOCIAL].bias == config.classifier.source_bias
