"""
Built-in tag names, attribute names and tag shapes.

The shape table tells the parser how each built-in tag is laid out
(leaf, block, control or inheritance directive) and which attributes it
cannot do without.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

NAMESPACE = "prompty"
RESERVED_PREFIX = NAMESPACE + "."

# Tags
TAG_VAR = "prompty.var"
TAG_RAW = "prompty.raw"
TAG_COMMENT = "prompty.comment"
TAG_INCLUDE = "prompty.include"
TAG_IF = "prompty.if"
TAG_ELSEIF = "prompty.elseif"
TAG_ELSE = "prompty.else"
TAG_FOR = "prompty.for"
TAG_SWITCH = "prompty.switch"
TAG_CASE = "prompty.case"
TAG_CASE_DEFAULT = "prompty.casedefault"
TAG_ENV = "prompty.env"
TAG_CONFIG = "prompty.config"
TAG_EXTENDS = "prompty.extends"
TAG_BLOCK = "prompty.block"
TAG_PARENT = "prompty.parent"
TAG_MESSAGE = "prompty.message"

# Attributes
ATTR_NAME = "name"
ATTR_DEFAULT = "default"
ATTR_TEMPLATE = "template"
ATTR_WITH = "with"
ATTR_ISOLATE = "isolate"
ATTR_EVAL = "eval"
ATTR_ONERROR = "onerror"
ATTR_ITEM = "item"
ATTR_INDEX = "index"
ATTR_IN = "in"
ATTR_LIMIT = "limit"
ATTR_VALUE = "value"
ATTR_REQUIRED = "required"
ATTR_ROLE = "role"
ATTR_CACHE = "cache"

MESSAGE_ROLES = ("system", "user", "assistant", "tool")

# Inheritance directives may be written without the namespace
_ALIASES: Dict[str, str] = {
    "extends": TAG_EXTENDS,
    "block": TAG_BLOCK,
    "parent": TAG_PARENT,
}


class TagKind(enum.Enum):
    """Layout of a tag in source."""
    LEAF = "leaf"            # self-closing only
    BLOCK = "block"          # open/close pair with children
    CONTROL = "control"      # handled structurally by the parser (if/for/switch, raw, comment)
    DIRECTIVE = "directive"  # inheritance (extends/block/parent)
    MARKER = "marker"        # branch separator inside a control block (elseif/else/case)


@dataclass(frozen=True)
class TagShape:
    name: str
    kind: TagKind
    required: Tuple[str, ...] = ()


BUILTIN_SHAPES: Dict[str, TagShape] = {
    shape.name: shape
    for shape in (
        TagShape(TAG_VAR, TagKind.LEAF, (ATTR_NAME,)),
        TagShape(TAG_INCLUDE, TagKind.LEAF, (ATTR_TEMPLATE,)),
        TagShape(TAG_ENV, TagKind.LEAF, (ATTR_NAME,)),
        TagShape(TAG_CONFIG, TagKind.LEAF, (ATTR_NAME,)),
        TagShape(TAG_MESSAGE, TagKind.BLOCK, (ATTR_ROLE,)),
        TagShape(TAG_IF, TagKind.CONTROL, (ATTR_EVAL,)),
        TagShape(TAG_FOR, TagKind.CONTROL, (ATTR_ITEM, ATTR_IN)),
        TagShape(TAG_SWITCH, TagKind.CONTROL, (ATTR_EVAL,)),
        TagShape(TAG_RAW, TagKind.CONTROL),
        TagShape(TAG_COMMENT, TagKind.CONTROL),
        TagShape(TAG_ELSEIF, TagKind.MARKER, (ATTR_EVAL,)),
        TagShape(TAG_ELSE, TagKind.MARKER),
        TagShape(TAG_CASE, TagKind.MARKER),
        TagShape(TAG_CASE_DEFAULT, TagKind.MARKER),
        TagShape(TAG_EXTENDS, TagKind.DIRECTIVE, (ATTR_TEMPLATE,)),
        TagShape(TAG_BLOCK, TagKind.DIRECTIVE, (ATTR_NAME,)),
        TagShape(TAG_PARENT, TagKind.DIRECTIVE),
    )
}


def canonical_tag_name(name: str) -> str:
    """Map short inheritance aliases to their namespaced names."""
    return _ALIASES.get(name, name)


def builtin_shape(name: str) -> Optional[TagShape]:
    return BUILTIN_SHAPES.get(canonical_tag_name(name))


__all__ = [
    "NAMESPACE",
    "RESERVED_PREFIX",
    "TAG_VAR", "TAG_RAW", "TAG_COMMENT", "TAG_INCLUDE",
    "TAG_IF", "TAG_ELSEIF", "TAG_ELSE", "TAG_FOR",
    "TAG_SWITCH", "TAG_CASE", "TAG_CASE_DEFAULT",
    "TAG_ENV", "TAG_CONFIG", "TAG_EXTENDS", "TAG_BLOCK", "TAG_PARENT", "TAG_MESSAGE",
    "ATTR_NAME", "ATTR_DEFAULT", "ATTR_TEMPLATE", "ATTR_WITH", "ATTR_ISOLATE",
    "ATTR_EVAL", "ATTR_ONERROR", "ATTR_ITEM", "ATTR_INDEX", "ATTR_IN", "ATTR_LIMIT",
    "ATTR_VALUE", "ATTR_REQUIRED", "ATTR_ROLE", "ATTR_CACHE",
    "MESSAGE_ROLES",
    "TagKind",
    "TagShape",
    "BUILTIN_SHAPES",
    "canonical_tag_name",
    "builtin_shape",
]
