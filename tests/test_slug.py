import re

from formforge.slug import MAX_BASE_LENGTH, SUFFIX_LENGTH, generate_slug

SLUG_SHAPE = re.compile(r"^[a-z0-9_-]+-[a-z0-9]{6}$")


def test_slug_from_title():
    slug = generate_slug("Customer Feedback")
    assert slug.startswith("customer-feedback-")
    assert SLUG_SHAPE.match(slug)


def test_slug_strips_punctuation_and_accents():
    slug = generate_slug("  Café  Survey!!  2024 ")
    assert slug.startswith("cafe-survey-2024-")


def test_slug_collapses_hyphens():
    slug = generate_slug("a -- b")
    assert slug.startswith("a-b-")


def test_slug_for_empty_title():
    assert generate_slug("!!!").startswith("form-")
    assert generate_slug("").startswith("form-")


def test_slug_base_is_truncated():
    slug = generate_slug("x" * 200)
    base = slug[: -(SUFFIX_LENGTH + 1)]
    assert len(base) == MAX_BASE_LENGTH


def test_slugs_differ_for_same_title():
    assert generate_slug("Same") != generate_slug("Same")
