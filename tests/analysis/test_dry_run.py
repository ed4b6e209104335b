"""
Tests for dry-run analysis.
"""

from unittest.mock import Mock

import pytest

from prompty.analysis import dry_run
from prompty.errors import TemplateParseError
from prompty.resolvers import FunctionResolver
from prompty.template.tokens import Position
from prompty.template.validation import ValidationResult


class TestDryRunVariables:

    def test_found_missing_and_defaulted(self, engine):
        source = (
            '{~prompty.var name="user.name" /~}|'
            '{~prompty.var name="user.email" /~}|'
            '{~prompty.var name="title" default="Untitled" /~}'
        )
        result = engine.dry_run(source, {"user": {"name": "Ann"}})

        assert result.valid is True
        assert result.output == "Ann|{{user.email}}|Untitled"
        assert [(v.name, v.in_data) for v in result.variables] == [
            ("user.name", True),
            ("user.email", False),
            ("title", False),
        ]
        assert result.variables[2].has_default
        assert result.missing_variables == ["user.email"]

    def test_nested_path_against_empty_mapping(self, engine):
        result = engine.dry_run('{~prompty.var name="user.name" /~}', {"user": {}})

        assert result.missing_variables == ["user.name"]
        assert result.variables[0].line == 1
        assert result.variables[0].column == 1

    def test_suggestions(self, engine):
        result = engine.dry_run('{~prompty.var name="usr_name" /~}', {"user_name": "x"})
        assert result.variables[0].suggestions == ["user_name"]

    def test_unused_data(self, engine):
        result = engine.dry_run(
            '{~prompty.var name="user.name" /~}',
            {"user": {"name": "A", "age": 3}, "extra": 1},
        )
        assert result.unused_data == ["extra", "user.age"]

    def test_ancestor_reference_uses_descendants(self, engine):
        result = engine.dry_run('{~prompty.var name="user" /~}', {"user": {"name": "A", "tags": {"x": 1}}})
        assert result.unused_data == []

    def test_expression_paths_count_as_used(self, engine):
        source = '{~prompty.if eval="flags.beta && len(items) > 0"~}x{~/prompty.if~}'
        result = engine.dry_run(source, {"flags": {"beta": True, "alpha": False}, "items": [1]})

        assert result.unused_data == ["flags.alpha"]

    def test_loop_variables_are_not_in_data(self, engine):
        source = '{~prompty.for item="x" in="items" limit="3"~}{~prompty.var name="x" /~}{~/prompty.for~}'
        result = engine.dry_run(source, {"items": [1, 2]})

        assert result.output == "{{for:x in items}}{{x}}{{/for}}"
        assert result.missing_variables == ["x"]
        assert result.unused_data == []


class TestDryRunStructure:

    def test_resolvers_are_never_invoked(self, engine):
        resolve = Mock(side_effect=AssertionError("resolver must not run during dry run"))
        engine.register_resolver(FunctionResolver("acme.lookup", resolve))

        result = engine.dry_run('{~acme.lookup key="k" onerror="remove" /~}')

        resolve.assert_not_called()
        assert result.output == "{{acme.lookup}}"
        reference = result.resolvers[0]
        assert reference.tag_name == "acme.lookup"
        assert reference.registered is True
        assert reference.attributes == {"key": "k"}

    def test_unregistered_tag(self, engine):
        result = engine.dry_run("{~acme.unknown /~}")

        assert result.valid is True
        assert result.output == "{{tag:acme.unknown}}"
        assert result.resolvers[0].registered is False
        assert "line 1: unknown tag 'acme.unknown'" in result.warnings
        assert "line 1: no resolver registered for tag 'acme.unknown'" in result.warnings

    def test_conditional_placeholder_visits_every_branch(self, engine):
        source = (
            '{~prompty.if eval="isAdmin"~}A{~prompty.var name="a" /~}'
            '{~prompty.elseif eval="isGuest"~}G'
            '{~prompty.else~}B{~prompty.var name="b" /~}{~/prompty.if~}'
        )
        result = engine.dry_run(source, {"isAdmin": True})

        assert result.output == "{{if:isAdmin}}A{{a}}{{elseif:isGuest}}G{{else}}B{{b}}{{/if}}"
        assert result.missing_variables == ["a", "b"]
        conditional = result.conditionals[0]
        assert conditional.condition == "isAdmin"
        assert conditional.has_elseif and conditional.has_else

    def test_switch_placeholder(self, engine):
        source = (
            '{~prompty.switch eval="tier"~}'
            '{~prompty.case value="gold"~}G{~/prompty.case~}'
            '{~prompty.case eval="points > 10"~}P{~/prompty.case~}'
            '{~prompty.casedefault~}D{~/prompty.casedefault~}'
            '{~/prompty.switch~}'
        )
        result = engine.dry_run(source, {"tier": "gold", "points": 1, "spare": 0})

        assert result.output == "{{switch:tier}}{{case:gold}}G{{case eval:points > 10}}P{{default}}D{{/switch}}"
        assert result.unused_data == ["spare"]

    def test_loop_reference(self, engine):
        result = engine.dry_run('{~prompty.for item="x" index="i" in="items" limit="3"~}{~/prompty.for~}')

        loop = result.loops[0]
        assert (loop.item, loop.source, loop.index, loop.limit, loop.in_data) == ("x", "items", "i", 3, False)
        assert "line 1: loop source 'items' not found in data" in result.warnings

    def test_includes(self, engine):
        engine.register_template("footer", "bye")
        source = '{~prompty.include template="footer" /~}\n{~prompty.include template="nope" isolate="true" /~}'

        result = engine.dry_run(source)

        assert result.output == "{{include:footer}}\n{{include:nope}}"
        assert [(i.template_name, i.exists, i.isolated) for i in result.includes] == [
            ("footer", True, False),
            ("nope", False, True),
        ]
        assert result.warnings == ["line 2: included template 'nope' not found"]

    def test_include_with_path_counts_as_used(self, engine):
        engine.register_template("card", '{~prompty.var name="title" /~}')
        result = engine.dry_run('{~prompty.include template="card" with="book" /~}', {"book": {"title": "T"}})

        assert result.unused_data == []

    def test_message_placeholder(self, engine):
        result = engine.dry_run('{~prompty.message role="user"~}hi{~/prompty.message~}')
        assert result.output == "{{message:user}}hi{{/message}}"

    def test_invalid_template_fails_to_parse(self, engine):
        with pytest.raises(TemplateParseError):
            engine.dry_run("{~prompty.if~}x{~/prompty.if~}")

    def test_validation_errors_make_result_invalid(self, engine):
        validation = ValidationResult()
        validation.add_error("something broke", Position(0, 3, 1))

        result = dry_run(engine.executor, (), validation=validation)

        assert result.valid is False
        assert result.errors == ["line 3: something broke"]

    def test_report_text(self, engine):
        result = engine.dry_run('{~prompty.var name="missing" /~}{~acme.x /~}', {"unused": 1})
        text = result.to_text()

        assert text.startswith("=== Dry Run Result ===\nValid: true")
        assert "  - missing [line 1]: MISSING" in text
        assert "  - acme.x [line 1]: NOT REGISTERED" in text
        assert "Unused Data (1):" in text
        assert text.endswith("=== Placeholder Output ===\n{{missing}}{{tag:acme.x}}\n")
