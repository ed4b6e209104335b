"""
Built-in resolvers registered on every engine.

Variables, includes, messages and the control tags are handled by the
parser and executor directly; only tags that behave like ordinary plugins
live here.
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

from ..context import Context, lookup_path
from ..template.attributes import AttributeSet
from ..template.shapes import ATTR_DEFAULT, ATTR_NAME, ATTR_REQUIRED, TAG_CONFIG, TAG_ENV
from ..values import stringify
from .base import ResolveCall, Resolver, ResolverKind, require_attribute
from .registry import ResolverRegistry


class EnvResolver(Resolver):
    """
    ``prompty.env``: environment variable lookup.

    Missing variable: the ``default`` attribute if present, an error when
    ``required="true"``, otherwise "".
    """

    kind = ResolverKind.LEAF

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ

    @property
    def tag_name(self) -> str:
        return TAG_ENV

    def validate(self, attrs: AttributeSet) -> None:
        require_attribute(attrs, ATTR_NAME)

    def resolve(self, call: ResolveCall, context: Context, attrs: AttributeSet) -> str:
        name = require_attribute(attrs, ATTR_NAME)
        environ = self._environ if self._environ is not None else os.environ
        value = environ.get(name)
        if value is not None:
            return value
        if attrs.has(ATTR_DEFAULT):
            return attrs.get_default(ATTR_DEFAULT, "")
        if attrs.get_bool(ATTR_REQUIRED):
            raise LookupError(f"required environment variable not set: {name}")
        return ""


class ConfigResolver(Resolver):
    """``prompty.config``: dotted lookup into the template's front matter."""

    kind = ResolverKind.LEAF

    @property
    def tag_name(self) -> str:
        return TAG_CONFIG

    def validate(self, attrs: AttributeSet) -> None:
        require_attribute(attrs, ATTR_NAME)

    def resolve(self, call: ResolveCall, context: Context, attrs: AttributeSet) -> str:
        path = require_attribute(attrs, ATTR_NAME)
        value, found = lookup_path(call.config, path)
        if found:
            return stringify(value)
        if attrs.has(ATTR_DEFAULT):
            return attrs.get_default(ATTR_DEFAULT, "")
        raise LookupError(f"config value not found: {path}")


def register_builtins(registry: ResolverRegistry) -> None:
    registry.register(EnvResolver())
    registry.register(ConfigResolver())


__all__ = ["EnvResolver", "ConfigResolver", "register_builtins"]
