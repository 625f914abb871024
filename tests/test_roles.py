import pytest

from labguard.roles import canonical_set, normalize_role, slugify, synonyms_of


@pytest.mark.parametrize(
    "value,expected",
    [
        ("Quality Supervisor!!", "quality-supervisor"),
        ("  multiple   spaces  ", "multiple-spaces"),
        ("Analista", "analista"),
        ("!!!", ""),
        (None, ""),
    ],
)
def test_slugify(value, expected):
    assert slugify(value) == expected


@pytest.mark.parametrize(
    "slug,expected",
    [
        ("evaluador", "evaluator"),
        ("evaluator", "evaluator"),
        ("analista", "analyst"),
        (" Analyst ", "analyst"),
        ("recepcionista", "recepcion"),
        ("admin", "admin"),
        ("quality-supervisor", "quality-supervisor"),
        ("", None),
        (None, None),
    ],
)
def test_normalize_role(slug, expected):
    assert normalize_role(slug) == expected


def test_synonyms_of_includes_every_stored_slug():
    assert synonyms_of("analista") == {"analista", "analyst"}
    assert synonyms_of("evaluator") == {"evaluador", "evaluator"}
    assert synonyms_of("custom") == {"custom"}


def test_canonical_set_drops_empty_slugs():
    assert canonical_set(["evaluador", "evaluator", "", "admin"]) == {"evaluator", "admin"}
