"""
Tests for "did you mean" suggestions.
"""

import pytest

from prompty.errors import VariableNotFoundError
from prompty.suggestions import find_similar, levenshtein


class TestLevenshtein:

    @pytest.mark.parametrize("a,b,expected", [
        ("kitten", "sitting", 3),
        ("", "abc", 3),
        ("abc", "", 3),
        ("same", "same", 0),
        ("flaw", "lawn", 2),
    ])
    def test_distance(self, a, b, expected):
        assert levenshtein(a, b) == expected


class TestFindSimilar:

    def test_orders_by_distance_then_name(self):
        assert find_similar("name", ["Name", "age", "nm"]) == ["Name", "age", "nm"]

    def test_substring_of_target_matches(self):
        assert find_similar("customer_address", ["address", "phone"]) == ["address"]

    def test_longer_name_containing_target_is_not_suggested(self):
        assert find_similar("name", ["first_name", "username"]) == []

    def test_skips_identical_candidate(self):
        assert find_similar("name", ["name", "nam"]) == ["nam"]

    def test_limit(self):
        assert len(find_similar("a", ["ab", "ac", "ad", "ae"])) == 3

    def test_no_match(self):
        assert find_similar("title", ["description", "count"]) == []


class TestSuggestionsInErrors:

    def test_typo_suggestion(self, engine):
        with pytest.raises(VariableNotFoundError, match="did you mean: user_name") as exc_info:
            engine.execute('{~prompty.var name="usr_name" /~}', {"user_name": "Ann"})
        assert exc_info.value.suggestions == ["user_name"]

    def test_available_keys_without_suggestion(self, engine):
        with pytest.raises(VariableNotFoundError, match=r"available: alpha, beta") as exc_info:
            engine.execute('{~prompty.var name="zzzzzz" /~}', {"beta": 1, "alpha": 2})
        assert exc_info.value.suggestions == []
