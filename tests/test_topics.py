from autopress.topics import (
    build_topic_key,
    is_topic_match,
    topic_overlap_ratio,
    topic_tokens,
)


def test_topic_key_drops_noise_short_and_numeric_tokens():
    key = build_topic_key("Digi24: Ultima oră - 3 morți în 2026 după explozia de la Bacău")
    assert key == "morti explozia bacau"


def test_topic_key_caps_token_count():
    assert len(topic_tokens("unu doi trei patru cinci sase sapte opt noua zece", max_tokens=4)) == 4


def test_overlap_ratio_empty_side_is_zero():
    assert topic_overlap_ratio([], ["alegeri"]) == 0.0


def test_election_topics_match_each_other():
    first = topic_tokens("alegeri locale bucuresti primar nou")
    second = topic_tokens("alegeri locale bucuresti ales primar")

    assert topic_overlap_ratio(first, second) >= 0.8
    assert is_topic_match(first, second, 0.8, 4)
    assert is_topic_match(second, first, 0.8, 4)


def test_overlap_ratio_is_symmetric():
    a = topic_tokens("Guvernul aproba bugetul pentru spitale judetene")
    b = topic_tokens("Bugetul spitalelor judetene aprobat de Guvern")
    assert topic_overlap_ratio(a, b) == topic_overlap_ratio(b, a)


def test_unrelated_topics_do_not_match():
    a = topic_tokens("alegeri locale bucuresti primar nou")
    b = topic_tokens("campionatul european de handbal feminin")
    assert not is_topic_match(a, b, 0.8, 4)
