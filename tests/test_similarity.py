from __future__ import annotations

import pytest

from budget_engine.similarity import (
    calculate_similarity,
    find_similar_strings,
    fuzzy_match,
    levenshtein_distance,
    normalize_text,
)


def test_normalize_text_strips_accents_case_and_whitespace():
    assert normalize_text("  Açaí PÃO  ") == "acai pao"


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ("", "", 0),
        ("abc", "", 3),
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
        ("same", "same", 0),
    ],
)
def test_levenshtein_distance(a, b, expected):
    assert levenshtein_distance(a, b) == expected
    assert levenshtein_distance(b, a) == expected


def test_similarity_is_one_for_normalized_equal_strings():
    assert calculate_similarity("Café", "  cafe ") == 1.0


def test_similarity_empty_strings():
    assert calculate_similarity("", "") == 1.0
    assert calculate_similarity("", "netflix") == 0.0
    assert calculate_similarity("netflix", "   ") == 0.0


def test_unrelated_descriptions_score_zero():
    assert calculate_similarity("Uber", "Spotify") == pytest.approx(0.0)


def test_similarity_uses_longer_length():
    # "netflix" vs "netflx": one deletion over 7 characters.
    assert calculate_similarity("Netflix", "Netflx") == pytest.approx(1 - 1 / 7)


def test_similarity_is_symmetric_and_bounded():
    for a, b in [("Uber", "Uber Trip"), ("Spotify", "Spotfy Premium"), ("x", "yz")]:
        s = calculate_similarity(a, b)
        assert s == calculate_similarity(b, a)
        assert 0.0 <= s <= 1.0


def test_fuzzy_match_literal_substring():
    assert fuzzy_match("Pagamento Netflix.com", "netflix")


def test_fuzzy_match_word_level_with_typo():
    assert fuzzy_match("Supermercado Extra", "supermercdo")


def test_fuzzy_match_requires_every_query_word():
    assert fuzzy_match("Uber Trip Sao Paulo", "uber paulo")
    assert not fuzzy_match("Uber Trip Sao Paulo", "uber rio")


def test_fuzzy_match_threshold_is_respected():
    # "spotfy" vs "spotify" scores 6/7.
    assert fuzzy_match("Spotify Premium", "spotfy", threshold=0.8)
    assert not fuzzy_match("Spotify Premium", "spotfy", threshold=0.9)
    assert not fuzzy_match("Amazon", "zzzzzz")


def test_find_similar_strings_orders_by_similarity():
    found = find_similar_strings("Netflix", ["Netflx", "Netflix", "Hulu", "Netfliix"])
    assert [s.text for s in found][0] == "Netflix"
    assert "Hulu" not in [s.text for s in found]
    sims = [s.similarity for s in found]
    assert sims == sorted(sims, reverse=True)
