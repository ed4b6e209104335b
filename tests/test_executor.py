"""
Tests for template execution: variables, control flow, includes and error strategies.
"""

import logging

import pytest

from prompty import Engine, EngineConfig
from prompty.errors import (
    DepthExceededError,
    ExecutionError,
    InheritanceCycleError,
    InheritanceError,
    TemplateNotFoundError,
    VariableNotFoundError,
)
from prompty.storage import MemoryTemplateStore


class TestVariables:

    def test_default_used_when_missing(self, engine):
        source = 'Hello {~prompty.var name="user.name" default="Guest" /~}!'

        assert engine.execute(source, {}) == "Hello Guest!"
        assert engine.execute(source, {"user": {"name": "Alice"}}) == "Hello Alice!"

    def test_values_are_stringified(self, engine):
        source = '{~prompty.var name="n" /~} {~prompty.var name="ok" /~} {~prompty.var name="tags" /~}'
        output = engine.execute(source, {"n": 2.0, "ok": True, "tags": ["a", "b"]})

        assert output == '2 true ["a", "b"]'

    def test_null_value_renders_empty(self, engine):
        assert engine.execute('[{~prompty.var name="x" default="d" /~}]', {"x": None}) == "[]"

    def test_missing_variable_suggests_similar_names(self, engine):
        with pytest.raises(VariableNotFoundError) as exc_info:
            engine.execute('{~prompty.var name="usr" /~}', {"user": "x"})

        error = exc_info.value
        assert error.path == "usr"
        assert error.suggestions == ["user"]
        assert "did you mean: user?" in str(error)
        assert error.tag_name == "prompty.var"
        assert error.position.line == 1

    def test_missing_variable_lists_available_keys(self, engine):
        with pytest.raises(VariableNotFoundError) as exc_info:
            engine.execute('{~prompty.var name="zzzzzz" /~}', {"alpha": 1, "beta": 2})

        assert exc_info.value.suggestions == []
        assert exc_info.value.available == ["alpha", "beta"]
        assert "(available: alpha, beta)" in str(exc_info.value)

    def test_escaped_delimiter_renders_literally(self, engine):
        assert engine.execute("Use \\{~ to open a tag") == "Use {~ to open a tag"


class TestConditionals:

    SOURCE = (
        '{~prompty.if eval="tier == \'gold\'"~}G'
        '{~prompty.elseif eval="points > 100"~}P'
        '{~prompty.else~}N{~/prompty.if~}'
    )

    @pytest.mark.parametrize("data,expected", [
        ({"tier": "gold", "points": 500}, "G"),
        ({"tier": "silver", "points": 500}, "P"),
        ({"tier": "silver", "points": 5}, "N"),
    ])
    def test_branch_selection(self, engine, data, expected):
        assert engine.execute(self.SOURCE, data) == expected

    def test_no_branch_matches_without_else(self, engine):
        assert engine.execute('a{~prompty.if eval="flag"~}b{~/prompty.if~}c', {"flag": False}) == "ac"

    def test_evaluation_error(self, engine):
        source = '{~prompty.if eval="name < 5"~}x{~/prompty.if~}'

        with pytest.raises(ExecutionError, match="condition expression evaluation failed: 'name < 5'"):
            engine.execute(source, {"name": "abc"})

    def test_evaluation_error_with_strategy(self, engine):
        source = '[{~prompty.if eval="name < 5" onerror="remove"~}x{~/prompty.if~}]'
        assert engine.execute(source, {"name": "abc"}) == "[]"


class TestLoops:

    def test_limit(self, engine):
        source = '{~prompty.for item="x" in="items" limit="2"~}{~prompty.var name="x" /~},{~/prompty.for~}'
        assert engine.execute(source, {"items": ["a", "b", "c"]}) == "a,b,"

    def test_index(self, engine):
        source = '{~prompty.for item="x" index="i" in="items" limit="5"~}{~prompty.var name="i" /~}:{~prompty.var name="x" /~} {~/prompty.for~}'
        assert engine.execute(source, {"items": ["a", "b"]}) == "0:a 1:b "

    def test_mapping_iterates_sorted_entries(self, engine):
        source = '{~prompty.for item="e" in="scores" limit="10"~}{~prompty.var name="e.key" /~}={~prompty.var name="e.value" /~};{~/prompty.for~}'
        assert engine.execute(source, {"scores": {"b": 2, "a": 1}}) == "a=1;b=2;"

    def test_nested_loops(self, engine):
        source = (
            '{~prompty.for item="row" in="rows" limit="5"~}'
            '{~prompty.for item="cell" in="row.cells" limit="5"~}{~prompty.var name="cell" /~}{~/prompty.for~}|'
            '{~/prompty.for~}'
        )
        data = {"rows": [{"cells": [1, 2]}, {"cells": [3]}]}

        assert engine.execute(source, data) == "12|3|"

    def test_loop_variable_does_not_leak(self, engine):
        source = (
            '{~prompty.for item="x" in="items" limit="5"~}{~/prompty.for~}'
            '{~prompty.var name="x" default="gone" /~}'
        )
        assert engine.execute(source, {"items": [1]}) == "gone"

    def test_loop_item_shadows_outer_variable(self, engine):
        source = '{~prompty.for item="name" in="names" limit="5"~}{~prompty.var name="name" /~}{~/prompty.for~}-{~prompty.var name="name" /~}'
        assert engine.execute(source, {"name": "outer", "names": ["in"]}) == "in-outer"

    @pytest.mark.parametrize("data", [{}, {"items": None}, {"items": []}])
    def test_absent_or_empty_source(self, engine, data):
        source = 'a{~prompty.for item="x" in="items" limit="5"~}X{~/prompty.for~}b'
        assert engine.execute(source, data) == "ab"

    def test_non_iterable_source(self, engine):
        source = '{~prompty.for item="x" in="count" limit="5"~}X{~/prompty.for~}'

        with pytest.raises(ExecutionError, match="value is not iterable: 'count'"):
            engine.execute(source, {"count": 5})

    def test_iteration_cap_without_limit(self):
        engine = Engine(EngineConfig(max_loop_iterations=3))
        source = '{~prompty.for item="x" in="items"~}{~prompty.var name="x" /~}{~/prompty.for~}'

        assert engine.execute(source, {"items": [1, 2, 3]}) == "123"
        with pytest.raises(ExecutionError, match="loop iteration limit exceeded \\(3\\)"):
            engine.execute(source, {"items": [1, 2, 3, 4, 5]})

    def test_explicit_limit_bypasses_cap(self):
        engine = Engine(EngineConfig(max_loop_iterations=3))
        source = '{~prompty.for item="x" in="items" limit="4"~}{~prompty.var name="x" /~}{~/prompty.for~}'

        assert engine.execute(source, {"items": [1, 2, 3, 4, 5]}) == "1234"


class TestSwitch:

    SOURCE = (
        '{~prompty.switch eval="level"~}'
        '{~prompty.case value="1"~}one{~/prompty.case~}'
        '{~prompty.case value="beta"~}b{~/prompty.case~}'
        '{~prompty.case eval="level > 5"~}big{~/prompty.case~}'
        '{~prompty.casedefault~}other{~/prompty.casedefault~}'
        '{~/prompty.switch~}'
    )

    @pytest.mark.parametrize("level,expected", [
        (1, "one"),
        ("beta", "b"),
        (9, "big"),
        (3, "other"),
    ])
    def test_case_selection(self, engine, level, expected):
        assert engine.execute(self.SOURCE, {"level": level}) == expected

    def test_first_match_wins(self, engine):
        source = (
            '{~prompty.switch eval="x"~}'
            '{~prompty.case eval="x > 1"~}first{~/prompty.case~}'
            '{~prompty.case eval="x > 2"~}second{~/prompty.case~}'
            '{~/prompty.switch~}'
        )
        assert engine.execute(source, {"x": 10}) == "first"

    def test_no_match_without_default(self, engine):
        source = '{~prompty.switch eval="x"~}{~prompty.case value="a"~}A{~/prompty.case~}{~/prompty.switch~}'
        assert engine.execute(source, {"x": "z"}) == ""


class TestIncludeLoadFailures:

    def test_missing_parent_is_node_local(self, engine):
        engine.register_template("orphan", '{~prompty.extends template="nope" /~}')

        assert engine.execute('A{~prompty.include template="orphan" onerror="remove" /~}B') == "AB"

    def test_missing_parent_under_throw(self, engine):
        engine.register_template("orphan", '{~prompty.extends template="nope" /~}')

        with pytest.raises(ExecutionError, match="failed to load template 'orphan': parent template not found: 'nope'") as exc_info:
            engine.execute('{~prompty.include template="orphan" /~}')
        assert isinstance(exc_info.value.__cause__, InheritanceError)
        assert exc_info.value.tag_name == "prompty.include"

    def test_invalid_provider_source_uses_default(self):
        store = MemoryTemplateStore()
        store.add("broken", "{~prompty.if~}x{~/prompty.if~}")
        engine = Engine(provider=store)

        source = '{~prompty.include template="broken" onerror="default" default="n/a" /~}'
        assert engine.execute(source) == "n/a"

    def test_inheritance_cycle_stays_fatal(self, engine):
        engine.register_template("a", '{~prompty.extends template="b" /~}')
        engine.register_template("b", '{~prompty.extends template="a" /~}')

        with pytest.raises(InheritanceCycleError):
            engine.execute('{~prompty.include template="a" onerror="remove" /~}')


class TestIncludes:

    def test_include_shares_scope(self, engine):
        engine.register_template("greeting", 'Hello {~prompty.var name="name" /~}')
        assert engine.execute('{~prompty.include template="greeting" /~}!', {"name": "Bob"}) == "Hello Bob!"

    def test_extra_attributes_become_variables(self, engine):
        engine.register_template("greeting", 'Hello {~prompty.var name="name" /~}')
        source = '{~prompty.include template="greeting" name="Zed" /~}'

        assert engine.execute(source, {"name": "Bob"}) == "Hello Zed"

    def test_with_mapping(self, engine):
        engine.register_template("card", '{~prompty.var name="title" /~} by {~prompty.var name="author" /~}')
        source = '{~prompty.include template="card" with="book" /~}'

        assert engine.execute(source, {"book": {"title": "Dune", "author": "Herbert"}}) == "Dune by Herbert"

    def test_with_scalar_is_bound_as_value(self, engine):
        engine.register_template("show", '[{~prompty.var name="_value" /~}]')
        assert engine.execute('{~prompty.include template="show" with="count" /~}', {"count": 7}) == "[7]"

    def test_with_replaces_outer_scope(self, engine):
        engine.register_template("card", '{~prompty.var name="outer" default="hidden" /~}')
        source = '{~prompty.include template="card" with="book" /~}'

        assert engine.execute(source, {"outer": "visible", "book": {}}) == "hidden"

    def test_isolate(self, engine):
        engine.register_template("greeting", 'Hello {~prompty.var name="name" /~}')

        with pytest.raises(VariableNotFoundError):
            engine.execute('{~prompty.include template="greeting" isolate="true" /~}', {"name": "Bob"})

        source = '{~prompty.include template="greeting" isolate="true" name="Iso" /~}'
        assert engine.execute(source, {"name": "Bob"}) == "Hello Iso"

    def test_child_error_is_include_failure(self, engine):
        engine.register_template("broken", '{~prompty.var name="missing" /~}')
        source = '[{~prompty.include template="broken" onerror="default" default="n/a" /~}]'

        assert engine.execute(source) == "[n/a]"

    def test_missing_template(self, engine):
        with pytest.raises(TemplateNotFoundError, match="template not found: 'nope'"):
            engine.execute('{~prompty.include template="nope" /~}')

    def test_recursive_include_hits_depth_limit(self, engine):
        engine.register_template("loop", 'x{~prompty.include template="loop" /~}')

        with pytest.raises(DepthExceededError, match="maximum template inclusion depth exceeded \\(10\\)"):
            engine.execute_template("loop")

    def test_depth_limit_counts_nesting(self):
        shallow = Engine(EngineConfig(max_depth=1))
        deep = Engine(EngineConfig(max_depth=2))
        for engine in (shallow, deep):
            engine.register_template("leaf", "L")
            engine.register_template("mid", 'M{~prompty.include template="leaf" /~}')

        assert deep.execute('{~prompty.include template="mid" /~}') == "ML"
        with pytest.raises(DepthExceededError):
            shallow.execute('{~prompty.include template="mid" /~}')

    def test_included_template_uses_its_own_config(self, engine):
        engine.register_template("inner", '---\nmodel:\n  name: inner\n---\n{~prompty.config name="model.name" /~}')
        source = '---\nmodel:\n  name: outer\n---\n{~prompty.config name="model.name" /~}/{~prompty.include template="inner" /~}'

        assert engine.execute(source) == "outer/inner"

    def test_include_of_inheriting_template(self, engine):
        engine.register_template("base", '<{~prompty.block name="b"~}base{~/prompty.block~}>')
        engine.register_template("child", '{~prompty.extends template="base" /~}{~prompty.block name="b"~}child{~/prompty.block~}')

        assert engine.execute('{~prompty.include template="child" /~}') == "<child>"


class TestErrorStrategies:

    def test_throw_is_default(self, failing_engine):
        with pytest.raises(ExecutionError, match="resolver execution failed: boom") as exc_info:
            failing_engine.execute("{~acme.fail /~}")

        assert exc_info.value.tag_name == "acme.fail"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_default(self, failing_engine):
        output = failing_engine.execute('[{~acme.fail onerror="default" default="fallback" /~}]')
        assert output == "[fallback]"

    def test_default_without_attribute_is_empty(self, failing_engine):
        assert failing_engine.execute('[{~acme.fail onerror="default" /~}]') == "[]"

    def test_remove(self, failing_engine):
        assert failing_engine.execute('a{~acme.fail onerror="remove" /~}b') == "ab"

    def test_keepraw(self, failing_engine):
        tag = '{~acme.fail  x="1" onerror="keepraw" /~}'
        assert failing_engine.execute(f"<{tag}>") == f"<{tag}>"

    def test_keepraw_on_block_tag_keeps_whole_block(self, failing_engine):
        tag = '{~acme.fail onerror="keepraw"~}child {~prompty.var name="x" /~}{~/acme.fail~}'
        assert failing_engine.execute(tag, {"x": 1}) == tag

    def test_log(self, failing_engine, caplog):
        with caplog.at_level(logging.WARNING, logger="prompty.executor"):
            output = failing_engine.execute('a{~acme.fail onerror="log" /~}b')

        assert output == "ab"
        assert "boom" in caplog.text
        assert "acme.fail" in caplog.text

    def test_log_uses_configured_logger(self, caplog):
        engine = Engine(EngineConfig(error_strategy="log", logger=logging.getLogger("tests.prompty")))

        with caplog.at_level(logging.WARNING, logger="tests.prompty"):
            assert engine.execute('x{~prompty.var name="missing" /~}y') == "xy"

        assert any(r.name == "tests.prompty" for r in caplog.records)
        assert "variable not found: 'missing'" in caplog.text

    def test_engine_default_strategy(self):
        engine = Engine(EngineConfig(error_strategy="remove"))
        assert engine.execute('a{~prompty.var name="missing" /~}b') == "ab"

    def test_node_strategy_overrides_engine_default(self):
        engine = Engine(EngineConfig(error_strategy="remove"))

        with pytest.raises(VariableNotFoundError):
            engine.execute('{~prompty.var name="missing" onerror="throw" /~}')

    def test_strategy_applies_to_variables(self, engine):
        assert engine.execute('[{~prompty.var name="missing" onerror="keepraw" /~}]') == '[{~prompty.var name="missing" onerror="keepraw" /~}]'

    def test_failure_in_loop_body_is_per_node(self, failing_engine):
        source = '{~prompty.for item="x" in="items" limit="3"~}{~prompty.var name="x" /~}{~acme.fail onerror="remove" /~};{~/prompty.for~}'
        assert failing_engine.execute(source, {"items": [1, 2]}) == "1;2;"
