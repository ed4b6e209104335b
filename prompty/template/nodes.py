"""
Template AST nodes.

Nodes are immutable and own their children exclusively. ``raw_source`` is
the exact source span of a tag (open delimiter through the end of its close
tag) and backs the keepraw error strategy. ``strategy`` is the node's
``onerror`` attribute, parsed once when the tree is built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..expressions.model import Expr
from ..strategy import ErrorStrategy
from .attributes import AttributeSet
from .tokens import Position


@dataclass(frozen=True)
class TemplateNode:
    """Base class for all template AST nodes."""
    pass


# Child sequence of a node
NodeList = Tuple[TemplateNode, ...]


@dataclass(frozen=True)
class TextNode(TemplateNode):
    """Literal text, emitted verbatim."""
    text: str
    position: Position = field(default_factory=Position)


@dataclass(frozen=True)
class VarNode(TemplateNode):
    """``prompty.var``: variable interpolation by dotted path."""
    path: str
    default: Optional[str] = None
    attrs: AttributeSet = field(default_factory=AttributeSet)
    strategy: Optional[ErrorStrategy] = None
    raw_source: str = ""
    position: Position = field(default_factory=Position)

    @property
    def tag_name(self) -> str:
        return "prompty.var"


@dataclass(frozen=True)
class TagNode(TemplateNode):
    """
    Tag dispatched to a registered resolver.

    For block tags the resolver output is a prefix: the rendered text is
    ``resolver output + rendered children``.
    """
    name: str
    attrs: AttributeSet = field(default_factory=AttributeSet)
    children: NodeList = ()
    self_closing: bool = True
    strategy: Optional[ErrorStrategy] = None
    raw_source: str = ""
    position: Position = field(default_factory=Position)

    @property
    def tag_name(self) -> str:
        return self.name


@dataclass(frozen=True)
class IncludeNode(TemplateNode):
    """``prompty.include``: inline rendering of a named template."""
    template: str
    attrs: AttributeSet = field(default_factory=AttributeSet)
    strategy: Optional[ErrorStrategy] = None
    raw_source: str = ""
    position: Position = field(default_factory=Position)

    @property
    def tag_name(self) -> str:
        return "prompty.include"

    @property
    def isolated(self) -> bool:
        return self.attrs.get_bool("isolate")


@dataclass(frozen=True)
class ConditionalBranch:
    """One ``if``/``elseif`` arm."""
    condition: str
    expr: Optional[Expr]
    body: NodeList = ()
    position: Position = field(default_factory=Position)


@dataclass(frozen=True)
class ConditionalNode(TemplateNode):
    """``prompty.if`` with its ``elseif`` arms and optional ``else``."""
    branches: Tuple[ConditionalBranch, ...]
    else_body: Optional[NodeList] = None
    attrs: AttributeSet = field(default_factory=AttributeSet)
    strategy: Optional[ErrorStrategy] = None
    raw_source: str = ""
    position: Position = field(default_factory=Position)

    @property
    def tag_name(self) -> str:
        return "prompty.if"


@dataclass(frozen=True)
class ForNode(TemplateNode):
    """``prompty.for``: bounded iteration over a sequence or mapping."""
    item: str
    source_path: str
    index: Optional[str] = None
    limit: Optional[int] = None
    body: NodeList = ()
    attrs: AttributeSet = field(default_factory=AttributeSet)
    strategy: Optional[ErrorStrategy] = None
    raw_source: str = ""
    position: Position = field(default_factory=Position)

    @property
    def tag_name(self) -> str:
        return "prompty.for"


@dataclass(frozen=True)
class SwitchCase:
    """``prompty.case``: matches by literal ``value`` or by ``eval`` expression."""
    value: Optional[str] = None
    condition: Optional[str] = None
    expr: Optional[Expr] = None
    body: NodeList = ()
    position: Position = field(default_factory=Position)


@dataclass(frozen=True)
class SwitchNode(TemplateNode):
    """``prompty.switch`` with its cases and optional ``casedefault``."""
    expression: str
    expr: Optional[Expr]
    cases: Tuple[SwitchCase, ...] = ()
    default_body: Optional[NodeList] = None
    attrs: AttributeSet = field(default_factory=AttributeSet)
    strategy: Optional[ErrorStrategy] = None
    raw_source: str = ""
    position: Position = field(default_factory=Position)

    @property
    def tag_name(self) -> str:
        return "prompty.switch"


@dataclass(frozen=True)
class MessageNode(TemplateNode):
    """``prompty.message``: groups its body into one conversational turn."""
    role: str
    cache: Optional[str] = None
    body: NodeList = ()
    attrs: AttributeSet = field(default_factory=AttributeSet)
    strategy: Optional[ErrorStrategy] = None
    raw_source: str = ""
    position: Position = field(default_factory=Position)

    @property
    def tag_name(self) -> str:
        return "prompty.message"


@dataclass(frozen=True)
class ExtendsNode(TemplateNode):
    """Inheritance directive naming the parent template."""
    template: str
    position: Position = field(default_factory=Position)


@dataclass(frozen=True)
class BlockNode(TemplateNode):
    """Named, overridable region."""
    name: str
    body: NodeList = ()
    position: Position = field(default_factory=Position)


@dataclass(frozen=True)
class ParentNode(TemplateNode):
    """Placeholder for the ancestor's body of the enclosing block."""
    position: Position = field(default_factory=Position)


def find_extends(nodes: NodeList) -> Optional[ExtendsNode]:
    """Return the leading extends directive, skipping whitespace-only text."""
    for node in nodes:
        if isinstance(node, TextNode) and not node.text.strip():
            continue
        return node if isinstance(node, ExtendsNode) else None
    return None


__all__ = [
    "TemplateNode",
    "NodeList",
    "TextNode",
    "VarNode",
    "TagNode",
    "IncludeNode",
    "ConditionalBranch",
    "ConditionalNode",
    "ForNode",
    "SwitchCase",
    "SwitchNode",
    "MessageNode",
    "ExtendsNode",
    "BlockNode",
    "ParentNode",
    "find_extends",
]
