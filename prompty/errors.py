"""
Exception hierarchy for the prompty engine.

Syntax errors carry an exact source position. Execution errors carry the
tag name and position of the node that failed, so error strategies and the
caller can both report where a render went wrong.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .template.tokens import Position
    from .template.validation import ValidationResult


class PromptyError(Exception):
    """Base class for all prompty errors."""
    pass


class TemplateSyntaxError(PromptyError):
    """Error tied to a position in template source."""

    def __init__(self, message: str, position: Optional[Position] = None):
        self.message = message
        self.position = position
        if position is not None:
            super().__init__(f"{message} at {position}")
        else:
            super().__init__(message)

    @property
    def line(self) -> int:
        return self.position.line if self.position else 0

    @property
    def column(self) -> int:
        return self.position.column if self.position else 0


class LexerError(TemplateSyntaxError):
    """Fatal tokenization error (unterminated tag or string, bad tag name)."""
    pass


class TemplateParseError(TemplateSyntaxError):
    """
    Structural error in a template.

    When raised after error-tolerant parsing, ``validation`` holds every
    issue collected in the pass, not only the first one.
    """

    def __init__(
        self,
        message: str,
        position: Optional[Position] = None,
        validation: Optional[ValidationResult] = None,
    ):
        super().__init__(message, position)
        self.validation = validation


class ExpressionError(PromptyError):
    """Base class for expression errors."""
    pass


class ExpressionSyntaxError(ExpressionError):
    """Malformed expression inside an ``eval`` attribute."""

    def __init__(self, message: str, offset: int):
        self.message = message
        self.offset = offset
        super().__init__(f"{message} at position {offset}")


class ExpressionEvaluationError(ExpressionError):
    """Type mismatch or other failure while evaluating an expression."""
    pass


class FunctionError(ExpressionError):
    """Unknown function, wrong arity or a failing function body."""
    pass


class ExecutionError(PromptyError):
    """Failure of a single node while rendering."""

    def __init__(self, message: str, tag_name: str = "", position: Optional[Position] = None):
        self.message = message
        self.tag_name = tag_name
        self.position = position
        parts = [message]
        if tag_name:
            parts.append(f"[{tag_name}]")
        if position is not None:
            parts.append(f"at {position}")
        super().__init__(" ".join(parts))


class VariableNotFoundError(ExecutionError):
    """Variable path missing from context and no default given."""

    def __init__(
        self,
        path: str,
        position: Optional[Position] = None,
        suggestions: Optional[List[str]] = None,
        available: Optional[List[str]] = None,
    ):
        self.path = path
        self.suggestions = list(suggestions or [])
        self.available = list(available or [])
        message = f"variable not found: '{path}'"
        if self.suggestions:
            message += f" (did you mean: {', '.join(self.suggestions)}?)"
        elif self.available:
            message += f" (available: {', '.join(self.available)})"
        super().__init__(message, "prompty.var", position)


class ResolverNotFoundError(ExecutionError):
    """No resolver is registered for a tag."""
    pass


class TemplateNotFoundError(ExecutionError):
    """Named template missing from the template provider."""
    pass


class DepthExceededError(ExecutionError):
    """Include nesting went past the configured maximum."""
    pass


class InheritanceError(PromptyError):
    """Invalid extends/block/parent structure discovered while merging."""
    pass


@dataclass
class InheritanceCycleError(InheritanceError):
    """Template extends chain revisits a template already being resolved."""
    chain: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"inheritance cycle detected: {' -> '.join(self.chain)}"


@dataclass
class InheritanceDepthError(InheritanceError):
    """Extends chain longer than the configured maximum."""
    chain: List[str] = field(default_factory=list)
    max_depth: int = 0

    def __str__(self) -> str:
        return (
            f"maximum inheritance depth {self.max_depth} exceeded: "
            f"{' -> '.join(self.chain)}"
        )


class RegistrationError(PromptyError):
    """Invalid resolver, function or template registration."""
    pass


class FrontmatterError(PromptyError):
    """Front matter block present but not parseable."""
    pass


__all__ = [
    "PromptyError",
    "TemplateSyntaxError",
    "LexerError",
    "TemplateParseError",
    "ExpressionError",
    "ExpressionSyntaxError",
    "ExpressionEvaluationError",
    "FunctionError",
    "ExecutionError",
    "VariableNotFoundError",
    "ResolverNotFoundError",
    "TemplateNotFoundError",
    "DepthExceededError",
    "InheritanceError",
    "InheritanceCycleError",
    "InheritanceDepthError",
    "RegistrationError",
    "FrontmatterError",
]
