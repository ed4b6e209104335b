"""
Tests for the variable context, value conversions and error strategy parsing.
"""

import datetime as dt

import pytest

from prompty.context import Context, flatten_paths, lookup_path
from prompty.strategy import ErrorStrategy
from prompty.values import as_number, is_truthy, stringify, type_name


class TestContext:

    def setup_method(self):
        self.root = Context({
            "user": {"name": "Alice", "address": {"city": "Paris"}},
            "items": ["a", "b"],
            "title": "root",
        })

    def test_dotted_lookup(self):
        assert self.root.get("user.name") == ("Alice", True)
        assert self.root.get("user.address.city") == ("Paris", True)

    def test_sequence_index(self):
        assert self.root.get("items.1") == ("b", True)
        assert self.root.get("items.5") == (None, False)

    def test_missing_paths(self):
        assert self.root.get("user.email") == (None, False)
        assert self.root.get("title.length") == (None, False)
        assert self.root.get("") == (None, False)

    def test_none_value_is_found(self):
        context = Context({"nothing": None})
        assert context.get("nothing") == (None, True)
        assert context.has("nothing")

    def test_child_scope_shadows_parent(self):
        child = self.root.child({"title": "child", "extra": 1})

        assert child.get("title") == ("child", True)
        assert child.get("user.name") == ("Alice", True)
        assert self.root.get("extra") == (None, False)

    def test_shadowing_is_by_first_segment(self):
        """A child binding of ``user`` hides every ``user.*`` path of the parent"""
        child = self.root.child({"user": {"id": 7}})

        assert child.get("user.id") == (7, True)
        assert child.get("user.name") == (None, False)

    def test_helpers(self):
        assert self.root.get_default("missing", "fallback") == "fallback"
        assert self.root.get_string("items") == '["a", "b"]'
        assert self.root.get_string("missing", "n/a") == "n/a"
        assert self.root.has("user.address")

    def test_keys(self):
        child = self.root.child({"extra": 1})

        assert child.keys() == ["extra"]
        assert child.all_keys() == ["extra", "items", "title", "user"]
        assert list(child) == child.all_keys()

    def test_flattened(self):
        child = self.root.child({"title": "child"})
        merged = child.flattened()

        assert merged["title"] == "child"
        assert merged["items"] == ["a", "b"]

    def test_data_is_copied(self):
        data = {"a": 1}
        context = Context(data)
        data["b"] = 2

        assert not context.has("b")


class TestPathHelpers:

    def test_lookup_path(self):
        assert lookup_path({"a": [{"b": 1}]}, "a.0.b") == (1, True)
        assert lookup_path({"a": 1}, "a.b") == (None, False)

    def test_flatten_paths(self):
        assert flatten_paths({"a": {"b": 1, "c": {"d": 2}}, "e": 3}) == ["a", "a.b", "a.c", "a.c.d", "e"]


class TestValues:

    @pytest.mark.parametrize("value,expected", [
        (None, ""),
        ("text", "text"),
        (True, "true"),
        (False, "false"),
        (42, "42"),
        (3.0, "3"),
        (2.5, "2.5"),
        ([1, "a"], '[1, "a"]'),
        ({"k": "v"}, '{"k": "v"}'),
        (dt.date(2024, 3, 5), "2024-03-05"),
    ])
    def test_stringify(self, value, expected):
        assert stringify(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (None, False),
        ("", False),
        ("x", True),
        (0, False),
        (0.0, False),
        (7, True),
        ([], False),
        ({"a": 1}, True),
        (object(), True),
    ])
    def test_is_truthy(self, value, expected):
        assert is_truthy(value) is expected

    def test_as_number(self):
        assert as_number("3.5") == 3.5
        assert as_number(" 2 ") == 2.0
        assert as_number("x") is None
        assert as_number(True) is None

    def test_type_name(self):
        assert type_name(None) == "nil"
        assert type_name(True) == "bool"
        assert type_name(1) == "int"
        assert type_name(1.5) == "float"
        assert type_name("s") == "string"
        assert type_name([1]) == "slice"
        assert type_name({}) == "map"


class TestErrorStrategy:

    @pytest.mark.parametrize("text,expected", [
        ("throw", ErrorStrategy.THROW),
        ("default", ErrorStrategy.DEFAULT),
        ("remove", ErrorStrategy.REMOVE),
        (" KeepRaw ", ErrorStrategy.KEEPRAW),
        ("LOG", ErrorStrategy.LOG),
    ])
    def test_parse(self, text, expected):
        assert ErrorStrategy.parse(text) is expected

    def test_parse_missing(self):
        assert ErrorStrategy.parse(None) is None

    def test_parse_invalid(self):
        with pytest.raises(ValueError, match="invalid error strategy 'explode'"):
            ErrorStrategy.parse("explode")
