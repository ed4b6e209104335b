"""
AST for ``eval`` expressions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Tuple


class ExprType(Enum):
    """Kinds of expression nodes."""
    LITERAL = "literal"
    IDENTIFIER = "identifier"
    UNARY = "unary"
    BINARY = "binary"
    CALL = "call"
    GROUP = "group"


@dataclass(frozen=True)
class Expr(ABC):
    """Base class for expression nodes."""

    @abstractmethod
    def get_type(self) -> ExprType:
        pass

    def __str__(self) -> str:
        return self._to_string()

    @abstractmethod
    def _to_string(self) -> str:
        pass


@dataclass(frozen=True)
class LiteralExpr(Expr):
    """String, number, boolean or nil literal."""
    value: Any

    def get_type(self) -> ExprType:
        return ExprType.LITERAL

    def _to_string(self) -> str:
        if self.value is None:
            return "nil"
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        if isinstance(self.value, str):
            return repr(self.value)
        return str(self.value)


@dataclass(frozen=True)
class IdentifierExpr(Expr):
    """Dotted variable path looked up in the context."""
    path: str

    def get_type(self) -> ExprType:
        return ExprType.IDENTIFIER

    def _to_string(self) -> str:
        return self.path


@dataclass(frozen=True)
class UnaryExpr(Expr):
    """``!operand``"""
    operator: str
    operand: Expr

    def get_type(self) -> ExprType:
        return ExprType.UNARY

    def _to_string(self) -> str:
        return f"{self.operator}{self.operand}"


@dataclass(frozen=True)
class BinaryExpr(Expr):
    """Logical or comparison operator applied to two operands."""
    operator: str
    left: Expr
    right: Expr

    def get_type(self) -> ExprType:
        return ExprType.BINARY

    def _to_string(self) -> str:
        return f"{self.left} {self.operator} {self.right}"


@dataclass(frozen=True)
class CallExpr(Expr):
    """Call into the registered function table."""
    name: str
    args: Tuple[Expr, ...] = ()

    def get_type(self) -> ExprType:
        return ExprType.CALL

    def _to_string(self) -> str:
        return f"{self.name}({', '.join(str(a) for a in self.args)})"


@dataclass(frozen=True)
class GroupExpr(Expr):
    """Parenthesised sub-expression."""
    inner: Expr

    def get_type(self) -> ExprType:
        return ExprType.GROUP

    def _to_string(self) -> str:
        return f"({self.inner})"


def collect_identifiers(expr: Optional[Expr]) -> List[str]:
    """Variable paths referenced anywhere in an expression, in source order."""
    if expr is None:
        return []
    if isinstance(expr, IdentifierExpr):
        return [expr.path]
    if isinstance(expr, UnaryExpr):
        return collect_identifiers(expr.operand)
    if isinstance(expr, BinaryExpr):
        return collect_identifiers(expr.left) + collect_identifiers(expr.right)
    if isinstance(expr, CallExpr):
        paths: List[str] = []
        for arg in expr.args:
            paths.extend(collect_identifiers(arg))
        return paths
    if isinstance(expr, GroupExpr):
        return collect_identifiers(expr.inner)
    return []


__all__ = [
    "ExprType",
    "Expr",
    "LiteralExpr",
    "IdentifierExpr",
    "UnaryExpr",
    "BinaryExpr",
    "CallExpr",
    "GroupExpr",
    "collect_identifiers",
]
