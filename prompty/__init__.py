"""
prompty: a templating language and execution engine for LLM prompts.

Templates use ``{~ns.tag attr="v" /~}`` and ``{~ns.tag~}...{~/ns.tag~}``
tags for variables, conditionals, bounded loops, includes, inheritance,
conversation messages and pluggable resolvers.
"""

from __future__ import annotations

from .analysis import DryRunResult, ExplainResult, VariableAccess, VariableReference
from .context import Context
from .engine import Engine, EngineConfig, Template
from .errors import (
    DepthExceededError,
    ExecutionError,
    ExpressionError,
    ExpressionEvaluationError,
    ExpressionSyntaxError,
    FrontmatterError,
    FunctionError,
    InheritanceCycleError,
    InheritanceDepthError,
    InheritanceError,
    LexerError,
    PromptyError,
    RegistrationError,
    ResolverNotFoundError,
    TemplateNotFoundError,
    TemplateParseError,
    TemplateSyntaxError,
    VariableNotFoundError,
)
from .expressions import VARIADIC, Func
from .frontmatter import PromptConfig
from .resolvers import FunctionResolver, ResolveCall, Resolver, ResolverKind
from .strategy import ErrorStrategy
from .template import AttributeSet, Message, Position, Severity, ValidationIssue, ValidationResult, extract_messages
from .version import tool_version

__all__ = [
    # Engine
    "Engine",
    "EngineConfig",
    "Template",
    "Context",
    "ErrorStrategy",
    "PromptConfig",
    # Plugins
    "Resolver",
    "ResolverKind",
    "ResolveCall",
    "FunctionResolver",
    "Func",
    "VARIADIC",
    "AttributeSet",
    # Results
    "Position",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "DryRunResult",
    "VariableReference",
    "ExplainResult",
    "VariableAccess",
    "Message",
    "extract_messages",
    # Errors
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
    "tool_version",
]
