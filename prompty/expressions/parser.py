"""
Recursive-descent parser for ``eval`` expressions.

Grammar:
expression → or_expr
or_expr    → and_expr ("||" and_expr)*
and_expr   → cmp_expr ("&&" cmp_expr)*
cmp_expr   → unary (("==" | "!=" | "<" | "<=" | ">" | ">=") unary)?
unary      → "!" unary | primary
primary    → literal | IDENTIFIER ("(" (expression ("," expression)*)? ")")? | "(" expression ")"
"""

from __future__ import annotations

from typing import List

from ..errors import ExpressionSyntaxError
from .lexer import ExprLexer, ExprToken
from .model import (
    BinaryExpr,
    CallExpr,
    Expr,
    GroupExpr,
    IdentifierExpr,
    LiteralExpr,
    UnaryExpr,
)

COMPARISON_OPERATORS = ("==", "!=", "<", "<=", ">", ">=")


class ExprParser:
    """Builds an expression AST from source text."""

    def __init__(self):
        self.lexer = ExprLexer()
        self._tokens: List[ExprToken] = []
        self._position = 0

    def parse(self, text: str) -> Expr:
        """
        Parse an expression string.

        Raises:
            ExpressionSyntaxError: On empty input or a syntax error
        """
        self._tokens = self.lexer.tokenize(text)
        self._position = 0

        if self._current_token().type == "EOF":
            raise ExpressionSyntaxError("empty expression", 0)

        result = self._parse_or()

        if not self._is_at_end():
            current = self._current_token()
            raise ExpressionSyntaxError(f"unexpected token '{current.value}'", current.position)

        return result

    def _parse_or(self) -> Expr:
        left = self._parse_and()
        while self._match_operator("||"):
            right = self._parse_and()
            left = BinaryExpr(operator="||", left=left, right=right)
        return left

    def _parse_and(self) -> Expr:
        left = self._parse_comparison()
        while self._match_operator("&&"):
            right = self._parse_comparison()
            left = BinaryExpr(operator="&&", left=left, right=right)
        return left

    def _parse_comparison(self) -> Expr:
        left = self._parse_unary()
        token = self._current_token()
        if token.type == "OPERATOR" and token.value in COMPARISON_OPERATORS:
            self._advance()
            right = self._parse_unary()
            return BinaryExpr(operator=token.value, left=left, right=right)
        return left

    def _parse_unary(self) -> Expr:
        if self._match_operator("!"):
            return UnaryExpr(operator="!", operand=self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self) -> Expr:
        token = self._current_token()

        if token.type == "SYMBOL" and token.value == "(":
            self._advance()
            inner = self._parse_or()
            if not self._match_symbol(")"):
                raise ExpressionSyntaxError("expected closing parenthesis", self._current_token().position)
            return GroupExpr(inner=inner)

        if token.type in ("STRING", "NUMBER"):
            self._advance()
            return LiteralExpr(value=token.value)

        if token.type == "KEYWORD":
            self._advance()
            return LiteralExpr(value=ExprLexer.KEYWORDS[token.value])

        if token.type == "IDENTIFIER":
            self._advance()
            if self._match_symbol("("):
                return CallExpr(name=token.value, args=tuple(self._parse_arguments()))
            return IdentifierExpr(path=token.value)

        if token.type == "EOF":
            raise ExpressionSyntaxError("unexpected end of expression", token.position)
        raise ExpressionSyntaxError(f"unexpected token '{token.value}'", token.position)

    def _parse_arguments(self) -> List[Expr]:
        args: List[Expr] = []
        if self._match_symbol(")"):
            return args
        while True:
            args.append(self._parse_or())
            if self._match_symbol(","):
                continue
            if self._match_symbol(")"):
                return args
            raise ExpressionSyntaxError("expected closing parenthesis", self._current_token().position)

    # Token helpers

    def _current_token(self) -> ExprToken:
        if self._position >= len(self._tokens):
            return ExprToken("EOF", "", self._tokens[-1].position if self._tokens else 0)
        return self._tokens[self._position]

    def _advance(self) -> ExprToken:
        token = self._current_token()
        if not self._is_at_end():
            self._position += 1
        return token

    def _is_at_end(self) -> bool:
        return self._current_token().type == "EOF"

    def _match_operator(self, operator: str) -> bool:
        token = self._current_token()
        if token.type == "OPERATOR" and token.value == operator:
            self._advance()
            return True
        return False

    def _match_symbol(self, symbol: str) -> bool:
        token = self._current_token()
        if token.type == "SYMBOL" and token.value == symbol:
            self._advance()
            return True
        return False


def parse_expression(text: str) -> Expr:
    """Parse an expression string into an AST."""
    return ExprParser().parse(text)


__all__ = ["ExprParser", "parse_expression", "COMPARISON_OPERATORS"]
