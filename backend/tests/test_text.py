from __future__ import annotations

from portfolio.services.text import (
    dedupe_keep_order,
    extract_question_keywords,
    significant_words,
    split_delimited,
    tokenize,
)
from portfolio.services.theme_dictionary import (
    broad_theme_for,
    first_keyword_theme,
    is_generic_area,
    match_buckets,
)


def test_tokenize_and_significant_words():
    assert tokenize("Hello,  World! a", 1) == ["hello", "world"]
    assert significant_words("The Theory of the Firm with Design") == ["theory", "firm", "design"]


def test_question_keywords_drop_stopwords():
    words = extract_question_keywords("What does the research say about venture capital?")
    assert words == ["research", "say", "venture", "capital"]


def test_split_and_dedupe():
    assert split_delimited("a; b;; c ") == ["a", "b", "c"]
    assert split_delimited(None) == []
    assert dedupe_keep_order(["Design", "design", " b ", 3, ""]) == ["Design", "b"]
    assert dedupe_keep_order(["AI", "ai", "AI "], ignore_case=False) == ["AI", "ai"]


def test_match_buckets_follow_table_order():
    assert match_buckets(["Venture Capital funding"]) == ["venture capital", "finance"]
    assert match_buckets([]) == []
    assert match_buckets(["", None]) == []


def test_broad_and_keyword_themes():
    assert broad_theme_for("Digital platforms", []) == "Technology Entrepreneurship"
    assert broad_theme_for("Something else", ["family firm"]) == "Family Business"
    assert broad_theme_for("Something else", []) is None
    assert first_keyword_theme(["cognitive biases"]) == "Entrepreneurial Cognition"
    assert first_keyword_theme(["astronomy"]) is None


def test_generic_areas():
    assert is_generic_area("General Research")
    assert is_generic_area("Entrepreneurship and Innovation")
    assert is_generic_area("  ")
    assert not is_generic_area("Opportunity Recognition")
