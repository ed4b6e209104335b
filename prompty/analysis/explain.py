"""
Explain mode: a real render instrumented with an AST dump, a trace of
every variable resolution and wall-clock timing.

Execution errors are captured in the result instead of propagating, so a
failing template still yields its AST and the partial trace.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..context import Context
from ..errors import PromptyError
from ..executor import ExecuteMode, Executor
from ..template.nodes import NodeList, VarNode
from ..values import stringify
from .printer import format_ast


@dataclass
class VariableAccess:
    """Outcome of one variable lookup during execution."""
    path: str
    value: Any
    found: bool
    default: Optional[str]
    line: int
    column: int

    @property
    def status(self) -> str:
        if self.found:
            return f"= {stringify(self.value)}"
        if self.default is not None:
            return f"not found, using default: {self.default!r}"
        return "NOT_FOUND"


@dataclass
class ExplainResult:
    ast: str = ""
    variables: List[VariableAccess] = field(default_factory=list)
    output: str = ""
    error: Optional[PromptyError] = None
    parse_time: float = 0.0
    execution_time: float = 0.0
    total_time: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_text(self) -> str:
        lines: List[str] = ["=== Template Explanation ===", "", "--- AST Structure ---", self.ast.rstrip("\n")]

        if self.variables:
            lines += ["", "--- Variable Accesses ---"]
            for access in self.variables:
                lines.append(f"  [line {access.line}] {access.path}: {access.status}")

        lines += [
            "",
            "--- Timing ---",
            f"  Total: {self.total_time * 1000:.3f}ms",
            f"  Parsing: {self.parse_time * 1000:.3f}ms",
            f"  Execution: {self.execution_time * 1000:.3f}ms",
        ]

        if self.error is not None:
            lines += ["", "--- Error ---", f"  {self.error}"]

        lines += ["", "--- Output ---", self.output]
        return "\n".join(lines) + "\n"


class TraceMode(ExecuteMode):
    """ExecuteMode that records every variable lookup, including inside includes."""

    def __init__(self):
        self.accesses: List[VariableAccess] = []

    def on_variable(self, node: VarNode, value: Any, found: bool) -> None:
        self.accesses.append(VariableAccess(
            path=node.path,
            value=value if found else None,
            found=found,
            default=node.default,
            line=node.position.line,
            column=node.position.column,
        ))


def explain(
    executor: Executor,
    nodes: NodeList,
    data: Optional[Mapping[str, Any]] = None,
    config: Optional[Dict[str, Any]] = None,
    parse_time: float = 0.0,
) -> ExplainResult:
    """
    Execute an effective AST with instrumentation.

    Args:
        executor: Executor to render with (resolvers are called)
        nodes: Effective AST
        data: Render data
        config: Front-matter data for ``prompty.config``
        parse_time: Seconds already spent parsing, reported alongside execution
    """
    start = time.perf_counter()
    result = ExplainResult(ast=format_ast(nodes), parse_time=parse_time)

    mode = TraceMode()
    exec_start = time.perf_counter()
    try:
        result.output = executor.execute(nodes, Context(data), mode=mode, config=config)
    except PromptyError as e:
        result.error = e
    result.execution_time = time.perf_counter() - exec_start

    result.variables = mode.accesses
    result.total_time = parse_time + (time.perf_counter() - start)
    return result


__all__ = ["VariableAccess", "ExplainResult", "TraceMode", "explain"]
