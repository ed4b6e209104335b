"""
Lexical types for template source.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Position:
    """Location in template source. ``line`` and ``column`` are 1-based."""
    offset: int = 0
    line: int = 1
    column: int = 1

    def __str__(self) -> str:
        return f"line {self.line}, column {self.column}"


class TokenType(enum.Enum):
    """Shapes of tokens produced by the lexer."""
    TEXT = "TEXT"
    SELF_CLOSING = "SELF_CLOSING"   # {~ns.tag a="v" /~}
    BLOCK_OPEN = "BLOCK_OPEN"       # {~ns.tag a="v"~}
    BLOCK_CLOSE = "BLOCK_CLOSE"     # {~/ns.tag~}
    EOF = "EOF"


# Attribute pairs in source order; duplicates are kept here and collapsed by AttributeSet
AttributePairs = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class Token:
    """
    Token with positional information.

    ``value`` is the literal text for TEXT tokens and the tag name for tag tokens.
    ``end`` is the offset just past the token, used to slice the original
    source of a tag for the keepraw strategy.
    """
    type: TokenType
    value: str
    position: Position
    end: int
    attrs: AttributePairs = ()

    @property
    def is_tag(self) -> bool:
        return self.type in (TokenType.SELF_CLOSING, TokenType.BLOCK_OPEN, TokenType.BLOCK_CLOSE)

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.position.line}:{self.position.column})"


__all__ = ["Position", "TokenType", "AttributePairs", "Token"]
