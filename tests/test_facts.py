from autopress.facts import (
    DEFAULT_ROLE_CONSTRAINT,
    build_role_constraints,
    build_source_role_claims,
    canonical_role,
    extract_person_role_claims,
    find_role_mismatches,
)


def test_role_mismatch_detected():
    source = build_source_role_claims("Premierul Ion Popescu a anunțat noi măsuri fiscale", "")

    mismatches = find_role_mismatches(source, "Ministrul Ion Popescu a anunțat noi măsuri fiscale.")

    assert len(mismatches) == 1
    assert mismatches[0].name == "Ion Popescu"
    assert mismatches[0].found == "ministru"
    assert mismatches[0].expected == ("premier",)


def test_matching_role_is_not_a_mismatch():
    source = build_source_role_claims("Premierul Ion Popescu a anunțat noi măsuri fiscale", "")
    assert find_role_mismatches(source, "Ion Popescu, premierul țării, a vorbit joi.") == []


def test_title_claims_take_precedence_over_body():
    claims = build_source_role_claims(
        "Primarul Maria Ionescu inaugurează podul",
        "Ministrul Vasile Dumitru a fost prezent.",
    )
    assert list(claims) == ["maria ionescu"]
    assert claims["maria ionescu"].roles == {"primar"}


def test_canonical_role_prefers_prime_minister():
    assert canonical_role("prim-ministrul") == "premier"
    assert canonical_role("ministrului") == "ministru"
    assert canonical_role("ospătar") is None


def test_single_word_names_are_ignored():
    assert extract_person_role_claims("Ministrul Popescu a declarat") == {}


def test_role_constraints_text():
    claims = build_source_role_claims("Premierul Ion Popescu a anunțat noi măsuri fiscale", "")
    assert build_role_constraints(claims) == "- Pentru Ion Popescu, foloseste functia «premier»."
    assert build_role_constraints({}) == DEFAULT_ROLE_CONSTRAINT
