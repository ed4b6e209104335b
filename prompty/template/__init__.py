"""
Template front end: lexer, parser, AST, validation and inheritance.
"""

from __future__ import annotations

from .attributes import AttributeSet
from .inheritance import InheritanceResolver
from .lexer import TemplateLexer, tokenize
from .messages import Message, extract_messages
from .parser import ParseResult, TemplateParser, parse_template
from .tokens import Position, Token, TokenType
from .validation import Severity, ValidationIssue, ValidationResult

__all__ = [
    "AttributeSet",
    "Position",
    "Token",
    "TokenType",
    "TemplateLexer",
    "tokenize",
    "TemplateParser",
    "ParseResult",
    "parse_template",
    "InheritanceResolver",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "Message",
    "extract_messages",
]
