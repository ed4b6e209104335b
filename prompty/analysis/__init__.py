"""
Static analysis over the effective AST: dry-run, explain and AST dumps.
"""

from __future__ import annotations

from .dryrun import (
    ConditionalReference,
    DryRunMode,
    DryRunResult,
    IncludeReference,
    LoopReference,
    ResolverReference,
    VariableReference,
    dry_run,
)
from .explain import ExplainResult, TraceMode, VariableAccess, explain
from .printer import format_ast

__all__ = [
    "DryRunResult",
    "DryRunMode",
    "VariableReference",
    "ResolverReference",
    "IncludeReference",
    "ConditionalReference",
    "LoopReference",
    "dry_run",
    "ExplainResult",
    "VariableAccess",
    "TraceMode",
    "explain",
    "format_ast",
]
