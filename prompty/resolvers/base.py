"""
Resolver plugin contract.

A resolver produces text for one tag name. ``validate`` runs at parse time
and reports bad attributes by raising; ``resolve`` runs at render time.
For block tags the returned text is a prefix placed before the rendered
children: a resolver never sees or transforms its children's output.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional

from ..context import Context
from ..template.attributes import AttributeSet
from ..template.tokens import Position


class ResolverKind(Enum):
    """Tag layouts a resolver accepts."""
    LEAF = "leaf"
    BLOCK = "block"
    ANY = "any"

    def accepts(self, self_closing: bool) -> bool:
        if self == ResolverKind.ANY:
            return True
        return self_closing == (self == ResolverKind.LEAF)


@dataclass(frozen=True)
class ResolveCall:
    """
    Per-invocation information handed to a resolver.

    Attributes:
        tag_name: Name of the tag being rendered
        position: Position of the tag in its template
        self_closing: False for block tags, whose output becomes a prefix
        config: Front-matter configuration of the template being rendered
        depth: Current include depth
    """
    tag_name: str
    position: Position = field(default_factory=Position)
    self_closing: bool = True
    config: Dict[str, Any] = field(default_factory=dict)
    depth: int = 0


class Resolver(ABC):
    """Base class for tag resolvers."""

    kind: ClassVar[ResolverKind] = ResolverKind.ANY

    @property
    @abstractmethod
    def tag_name(self) -> str:
        """Full tag name this resolver handles, e.g. ``acme.greeting``."""
        pass

    def validate(self, attrs: AttributeSet) -> None:
        """
        Check attributes at parse time.

        Raises:
            ValueError: When the attributes cannot work
        """
        pass

    @abstractmethod
    def resolve(self, call: ResolveCall, context: Context, attrs: AttributeSet) -> str:
        """
        Produce the tag's text.

        Raises:
            Exception: Any failure; the owning node's error strategy decides what happens
        """
        pass


ResolveFn = Callable[[ResolveCall, Context, AttributeSet], str]
ValidateFn = Callable[[AttributeSet], None]


class FunctionResolver(Resolver):
    """Resolver assembled from plain callables."""

    def __init__(
        self,
        tag_name: str,
        resolve: ResolveFn,
        validate: Optional[ValidateFn] = None,
        kind: ResolverKind = ResolverKind.ANY,
    ):
        self._tag_name = tag_name
        self._resolve = resolve
        self._validate = validate
        self.kind = kind

    @property
    def tag_name(self) -> str:
        return self._tag_name

    def validate(self, attrs: AttributeSet) -> None:
        if self._validate is not None:
            self._validate(attrs)

    def resolve(self, call: ResolveCall, context: Context, attrs: AttributeSet) -> str:
        return self._resolve(call, context, attrs)


def require_attribute(attrs: AttributeSet, name: str) -> str:
    """
    Value of a mandatory attribute.

    Raises:
        ValueError: When the attribute is missing or empty
    """
    value = attrs.get(name)
    if not value:
        raise ValueError(f"missing required attribute '{name}'")
    return value


__all__ = [
    "ResolverKind",
    "ResolveCall",
    "Resolver",
    "ResolveFn",
    "ValidateFn",
    "FunctionResolver",
    "require_attribute",
]
