"""
Tests for the resolver registry and the built-in resolvers.
"""

from unittest.mock import Mock

import pytest

from prompty.context import Context
from prompty.errors import RegistrationError, ResolverNotFoundError
from prompty.resolvers import (
    ConfigResolver,
    EnvResolver,
    FunctionResolver,
    ResolveCall,
    ResolverKind,
    ResolverRegistry,
)
from prompty.template.attributes import AttributeSet


def _attrs(**values):
    return AttributeSet.from_dict(values)


class TestResolverRegistry:

    def setup_method(self):
        self.registry = ResolverRegistry()

    def test_register_and_lookup(self):
        resolver = FunctionResolver("acme.greet", lambda call, ctx, attrs: "hi")
        self.registry.register(resolver)

        assert self.registry.get("acme.greet") is resolver
        assert "acme.greet" in self.registry
        assert self.registry.names() == ["acme.greet"]
        assert len(self.registry) == 1
        assert self.registry.get("acme.other") is None

    def test_duplicate(self):
        self.registry.register(FunctionResolver("acme.greet", lambda c, x, a: ""))
        with pytest.raises(RegistrationError, match="resolver already registered: acme.greet"):
            self.registry.register(FunctionResolver("acme.greet", lambda c, x, a: ""))

    @pytest.mark.parametrize("name", ["prompty.if", "prompty.var", "prompty.include", "block"])
    def test_structural_names_are_reserved(self, name):
        with pytest.raises(RegistrationError, match="reserved for a built-in"):
            self.registry.register(FunctionResolver(name, lambda c, x, a: ""))

    def test_structural_names_are_not_stored(self):
        """Reserved built-ins are not looked up through the table"""
        assert self.registry.get("prompty.var") is None
        assert not self.registry.has("prompty.if")
        assert "prompty.for" not in self.registry

    def test_empty_name(self):
        with pytest.raises(RegistrationError, match="cannot be empty"):
            self.registry.register(FunctionResolver("", lambda c, x, a: ""))


class TestResolverKind:

    def test_accepts(self):
        assert ResolverKind.ANY.accepts(True) and ResolverKind.ANY.accepts(False)
        assert ResolverKind.LEAF.accepts(True) and not ResolverKind.LEAF.accepts(False)
        assert ResolverKind.BLOCK.accepts(False) and not ResolverKind.BLOCK.accepts(True)


class TestEnvResolver:

    def setup_method(self):
        self.resolver = EnvResolver({"HOME_DIR": "/home/test"})
        self.call = ResolveCall(tag_name="prompty.env")
        self.context = Context()

    def test_present(self):
        assert self.resolver.resolve(self.call, self.context, _attrs(name="HOME_DIR")) == "/home/test"

    def test_default(self):
        attrs = _attrs(name="MISSING", default="fallback")
        assert self.resolver.resolve(self.call, self.context, attrs) == "fallback"

    def test_missing_is_empty(self):
        assert self.resolver.resolve(self.call, self.context, _attrs(name="MISSING")) == ""

    def test_required(self):
        with pytest.raises(LookupError, match="required environment variable not set: MISSING"):
            self.resolver.resolve(self.call, self.context, _attrs(name="MISSING", required="true"))

    def test_validate_requires_name(self):
        with pytest.raises(ValueError, match="missing required attribute 'name'"):
            self.resolver.validate(_attrs())

    def test_reads_process_environment(self, engine, monkeypatch):
        monkeypatch.setenv("PROMPTY_TEST_VALUE", "from-env")
        assert engine.execute('{~prompty.env name="PROMPTY_TEST_VALUE" /~}') == "from-env"


class TestConfigResolver:

    def setup_method(self):
        self.resolver = ConfigResolver()
        self.call = ResolveCall(tag_name="prompty.config", config={"model": {"name": "gpt-4", "temperature": 0.2}})

    def test_dotted_lookup(self):
        context = Context()
        assert self.resolver.resolve(self.call, context, _attrs(name="model.name")) == "gpt-4"
        assert self.resolver.resolve(self.call, context, _attrs(name="model.temperature")) == "0.2"

    def test_missing_with_default(self):
        assert self.resolver.resolve(self.call, Context(), _attrs(name="model.top_p", default="1")) == "1"

    def test_missing_without_default(self):
        with pytest.raises(LookupError, match="config value not found: model.top_p"):
            self.resolver.resolve(self.call, Context(), _attrs(name="model.top_p"))


class TestCustomResolvers:

    def test_leaf_resolver_sees_attributes_and_context(self, engine):
        resolve = Mock(return_value="Hello")
        engine.register_resolver(FunctionResolver("acme.greet", resolve))

        output = engine.execute('{~acme.greet who="Ann" /~}!', {"lang": "en"})

        assert output == "Hello!"
        call, context, attrs = resolve.call_args[0]
        assert call.tag_name == "acme.greet"
        assert call.self_closing is True
        assert call.position.line == 1
        assert context.get("lang") == ("en", True)
        assert attrs.get("who") == "Ann"

    def test_block_resolver_output_is_a_prefix(self, engine):
        engine.register_resolver(FunctionResolver("acme.wrap", lambda call, ctx, attrs: "[pre]"))
        assert engine.execute("{~acme.wrap~}body{~/acme.wrap~}") == "[pre]body"

    def test_resolver_receives_block_flag_and_config(self, engine, recording_resolver):
        source = "---\nmodel:\n  name: m1\n---\n{~acme.record~}x{~/acme.record~}"

        assert engine.execute(source) == "[rec]x"
        call = recording_resolver.calls[0]
        assert call.self_closing is False
        assert call.config == {"model": {"name": "m1"}}
        assert call.depth == 0

    def test_resolver_sees_loop_variables(self, engine):
        engine.register_resolver(FunctionResolver(
            "acme.shout",
            lambda call, ctx, attrs: ctx.get_string(attrs.get("var")).upper(),
        ))
        source = '{~prompty.for item="w" in="words" limit="5"~}{~acme.shout var="w" /~} {~/prompty.for~}'

        assert engine.execute(source, {"words": ["hi", "yo"]}) == "HI YO "

    def test_unregistered_tag_fails_at_render(self, engine):
        with pytest.raises(ResolverNotFoundError, match="no resolver registered for 'acme.missing'"):
            engine.execute("{~acme.missing /~}")

    def test_validate_hook_runs_at_parse_time(self, engine):
        def _validate(attrs):
            if not attrs.has("id"):
                raise ValueError("missing 'id'")

        resolve = Mock(return_value="ok")
        engine.register_resolver(FunctionResolver("acme.item", resolve, validate=_validate))

        assert not engine.validate("{~acme.item /~}").is_valid()
        assert engine.execute('{~acme.item id="1" /~}') == "ok"
