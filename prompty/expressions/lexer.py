"""
Tokenizer for ``eval`` expressions.

Produces:
- IDENTIFIER: dotted variable paths and function names
- STRING: single- or double-quoted literals with backslash escapes
- NUMBER: integer or decimal literals
- KEYWORD: true, false, nil
- OPERATOR: && || ! == != < > <= >=
- SYMBOL: ( ) ,
- EOF
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List

from ..errors import ExpressionSyntaxError


@dataclass(frozen=True)
class ExprToken:
    """
    Expression token.

    Attributes:
        type: Token kind
        value: Source text of the token (decoded value for strings)
        position: Offset in the expression string
    """
    type: str
    value: Any
    position: int

    def __repr__(self) -> str:
        return f"ExprToken({self.type}, {self.value!r}, pos={self.position})"


_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "\\": "\\",
    "\"": "\"",
    "'": "'",
}


class ExprLexer:
    """Splits an expression string into tokens."""

    # (pattern, token type, ignored)
    TOKEN_SPECS = [
        (r"\s+", "WHITESPACE", True),
        (r"&&|\|\||==|!=|<=|>=|<|>|!", "OPERATOR", False),
        (r"[(),]", "SYMBOL", False),
        (r"\d+(?:\.\d+)?|\.\d+", "NUMBER", False),
        (r"[^\W\d]\w*(?:\.\w+)*", "IDENTIFIER", False),
    ]

    KEYWORDS = {"true": True, "false": False, "nil": None}

    def __init__(self):
        self._compiled = [
            (re.compile(pattern), token_type, ignore)
            for pattern, token_type, ignore in self.TOKEN_SPECS
        ]

    def tokenize(self, text: str) -> List[ExprToken]:
        """
        Tokenize an expression.

        Raises:
            ExpressionSyntaxError: On an unterminated string or an unknown character
        """
        tokens: List[ExprToken] = []
        position = 0
        length = len(text)

        while position < length:
            char = text[position]
            if char in ("\"", "'"):
                value, position_after = self._read_string(text, position)
                tokens.append(ExprToken("STRING", value, position))
                position = position_after
                continue

            for pattern, token_type, ignore in self._compiled:
                match = pattern.match(text, position)
                if not match:
                    continue
                value = match.group(0)
                if not ignore:
                    tokens.append(self._make_token(token_type, value, position))
                position = match.end()
                break
            else:
                raise ExpressionSyntaxError(f"unexpected character '{char}'", position)

        tokens.append(ExprToken("EOF", "", position))
        return tokens

    def _make_token(self, token_type: str, value: str, position: int) -> ExprToken:
        if token_type == "NUMBER":
            number = float(value)
            return ExprToken("NUMBER", number, position)
        if token_type == "IDENTIFIER" and value in self.KEYWORDS:
            return ExprToken("KEYWORD", value, position)
        return ExprToken(token_type, value, position)

    @staticmethod
    def _read_string(text: str, start: int):
        quote = text[start]
        chars: List[str] = []
        position = start + 1
        while position < len(text):
            char = text[position]
            if char == "\\" and position + 1 < len(text):
                following = text[position + 1]
                chars.append(_ESCAPES.get(following, following))
                position += 2
                continue
            if char == quote:
                return "".join(chars), position + 1
            chars.append(char)
            position += 1
        raise ExpressionSyntaxError("unterminated string literal", start)


__all__ = ["ExprToken", "ExprLexer"]
