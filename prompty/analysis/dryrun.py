"""
Dry-run analysis.

Walks the effective AST through the shared executor in a static mode:
every branch and loop body is visited once, no resolver is ever invoked,
and the output is a placeholder rendering rather than a faithful one.

Variable references are checked against the supplied data only, so loop
item variables always show up as not in data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from ..context import Context, PATH_SEPARATOR, flatten_paths, lookup_path
from ..executor import Executor, RenderState, WalkMode
from ..expressions.model import collect_identifiers
from ..suggestions import find_similar
from ..template.nodes import ConditionalNode, ForNode, IncludeNode, NodeList, SwitchNode, TagNode, VarNode
from ..template.shapes import ATTR_ONERROR, ATTR_WITH
from ..template.validation import ValidationResult
from ..values import stringify


@dataclass
class VariableReference:
    name: str
    line: int
    column: int
    in_data: bool
    default: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)

    @property
    def has_default(self) -> bool:
        return self.default is not None


@dataclass
class ResolverReference:
    tag_name: str
    attributes: Dict[str, str]
    line: int
    column: int
    registered: bool


@dataclass
class IncludeReference:
    template_name: str
    attributes: Dict[str, str]
    line: int
    column: int
    exists: bool
    isolated: bool


@dataclass
class ConditionalReference:
    condition: str
    line: int
    column: int
    has_elseif: bool
    has_else: bool


@dataclass
class LoopReference:
    item: str
    source: str
    line: int
    column: int
    in_data: bool
    index: Optional[str] = None
    limit: Optional[int] = None


@dataclass
class DryRunResult:
    """Structured dry-run report plus placeholder output."""
    valid: bool = True
    output: str = ""
    variables: List[VariableReference] = field(default_factory=list)
    resolvers: List[ResolverReference] = field(default_factory=list)
    includes: List[IncludeReference] = field(default_factory=list)
    conditionals: List[ConditionalReference] = field(default_factory=list)
    loops: List[LoopReference] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    missing_variables: List[str] = field(default_factory=list)
    unused_data: List[str] = field(default_factory=list)

    def to_text(self) -> str:
        """Human-readable report."""
        lines: List[str] = ["=== Dry Run Result ===", f"Valid: {str(self.valid).lower()}"]

        if self.variables:
            lines += ["", f"Variables ({len(self.variables)}):"]
            for var in self.variables:
                if var.in_data:
                    status = "found"
                elif var.has_default:
                    status = f"not found (default: {var.default!r})"
                else:
                    status = "MISSING"
                lines.append(f"  - {var.name} [line {var.line}]: {status}")
                if var.suggestions:
                    lines.append(f"    Did you mean: {', '.join(var.suggestions)}?")

        if self.resolvers:
            lines += ["", f"Resolvers ({len(self.resolvers)}):"]
            for res in self.resolvers:
                status = "" if res.registered else ": NOT REGISTERED"
                lines.append(f"  - {res.tag_name} [line {res.line}]{status}")

        if self.includes:
            lines += ["", f"Includes ({len(self.includes)}):"]
            for inc in self.includes:
                status = "found" if inc.exists else "NOT FOUND"
                lines.append(f"  - {inc.template_name} [line {inc.line}]: {status}")

        if self.conditionals:
            lines += ["", f"Conditionals ({len(self.conditionals)}):"]
            for cond in self.conditionals:
                lines.append(f"  - {cond.condition} [line {cond.line}]")

        if self.loops:
            lines += ["", f"Loops ({len(self.loops)}):"]
            for loop in self.loops:
                status = "source found" if loop.in_data else "source NOT FOUND"
                lines.append(f"  - for {loop.item} in {loop.source} [line {loop.line}]: {status}")

        for title, items in (
            ("Missing Variables", self.missing_variables),
            ("Unused Data", self.unused_data),
            ("Errors", self.errors),
            ("Warnings", self.warnings),
        ):
            if items:
                lines += ["", f"{title} ({len(items)}):"]
                lines += [f"  - {item}" for item in items]

        lines += ["", "=== Placeholder Output ===", self.output]
        return "\n".join(lines) + "\n"


class DryRunMode(WalkMode):
    """Static walk that records references and renders placeholders."""

    evaluates = False

    def __init__(
        self,
        data: Mapping[str, Any],
        result: DryRunResult,
        template_exists: Callable[[str], bool],
    ):
        self.data = data
        self.result = result
        self.template_exists = template_exists
        self.available = flatten_paths(data)
        self.referenced: Set[str] = set()

    def render_var(self, executor: Executor, node: VarNode, scope: Context, state: RenderState) -> str:
        value, in_data = lookup_path(self.data, node.path)
        if in_data:
            self.referenced.add(node.path)

        suggestions: List[str] = []
        if not in_data and node.default is None:
            suggestions = find_similar(node.path, self.available)

        self.result.variables.append(VariableReference(
            name=node.path,
            line=node.position.line,
            column=node.position.column,
            in_data=in_data,
            default=node.default,
            suggestions=suggestions,
        ))

        if in_data:
            return stringify(value)
        if node.default is not None:
            return node.default
        return f"{{{{{node.path}}}}}"

    def render_tag(self, executor: Executor, node: TagNode, scope: Context, state: RenderState) -> str:
        registered = executor.resolvers.has(node.name)
        self.result.resolvers.append(ResolverReference(
            tag_name=node.name,
            attributes=node.attrs.without(ATTR_ONERROR).to_dict(),
            line=node.position.line,
            column=node.position.column,
            registered=registered,
        ))
        if not registered:
            self.result.warnings.append(
                f"line {node.position.line}: no resolver registered for tag '{node.name}'"
            )
            return f"{{{{tag:{node.name}}}}}"
        return f"{{{{{node.name}}}}}"

    def render_include(self, executor: Executor, node: IncludeNode, scope: Context, state: RenderState) -> str:
        exists = self.template_exists(node.template)
        self.result.includes.append(IncludeReference(
            template_name=node.template,
            attributes=node.attrs.to_dict(),
            line=node.position.line,
            column=node.position.column,
            exists=exists,
            isolated=node.isolated,
        ))
        if not exists:
            self.result.warnings.append(
                f"line {node.position.line}: included template '{node.template}' not found"
            )
        with_path = node.attrs.get(ATTR_WITH)
        if with_path:
            self._reference(with_path)
        return f"{{{{include:{node.template}}}}}"

    def visit_conditional(self, node: ConditionalNode, scope: Context) -> None:
        first = node.branches[0] if node.branches else None
        self.result.conditionals.append(ConditionalReference(
            condition=first.condition if first else "",
            line=node.position.line,
            column=node.position.column,
            has_elseif=len(node.branches) > 1,
            has_else=node.else_body is not None,
        ))
        for branch in node.branches:
            for path in collect_identifiers(branch.expr):
                self._reference(path)

    def visit_loop(self, node: ForNode, scope: Context) -> None:
        in_data = self._reference(node.source_path)
        self.result.loops.append(LoopReference(
            item=node.item,
            source=node.source_path,
            line=node.position.line,
            column=node.position.column,
            in_data=in_data,
            index=node.index,
            limit=node.limit,
        ))
        if not in_data:
            self.result.warnings.append(
                f"line {node.position.line}: loop source '{node.source_path}' not found in data"
            )

    def visit_switch(self, node: SwitchNode, scope: Context) -> None:
        for path in collect_identifiers(node.expr):
            self._reference(path)
        for case in node.cases:
            for path in collect_identifiers(case.expr):
                self._reference(path)

    def _reference(self, path: str) -> bool:
        in_data = lookup_path(self.data, path)[1]
        if in_data:
            self.referenced.add(path)
        return in_data

    def unused_paths(self) -> List[str]:
        """
        Data paths never referenced.

        A path counts as used when it is referenced, when a descendant is
        referenced, or when an ancestor is referenced as a whole.
        """
        used: Set[str] = set()
        for path in self.referenced:
            segments = path.split(PATH_SEPARATOR)
            for end in range(1, len(segments) + 1):
                used.add(PATH_SEPARATOR.join(segments[:end]))

        unused: List[str] = []
        for path in self.available:
            if path in used or any(path.startswith(ref + PATH_SEPARATOR) for ref in self.referenced):
                continue
            unused.append(path)
        return sorted(unused)


def dry_run(
    executor: Executor,
    nodes: NodeList,
    data: Optional[Mapping[str, Any]] = None,
    template_exists: Optional[Callable[[str], bool]] = None,
    validation: Optional[ValidationResult] = None,
) -> DryRunResult:
    """
    Analyse an effective AST against sample data without invoking resolvers.

    Args:
        executor: Executor holding the resolver and function registries
        nodes: Effective AST
        data: Data the template would be rendered with
        template_exists: Include target check; every include is missing when None
        validation: Parse-time issues to fold into the report
    """
    data = dict(data or {})
    result = DryRunResult()
    mode = DryRunMode(data, result, template_exists or (lambda name: False))

    if validation is not None:
        for issue in validation.errors():
            result.errors.append(f"line {issue.line}: {issue.message}")
        for issue in validation.warnings():
            result.warnings.append(f"line {issue.line}: {issue.message}")

    result.output = executor.execute(nodes, Context(data), mode=mode)

    result.missing_variables = sorted({
        var.name for var in result.variables if not var.in_data and not var.has_default
    })
    result.unused_data = mode.unused_paths()
    result.valid = not result.errors
    return result


__all__ = [
    "VariableReference",
    "ResolverReference",
    "IncludeReference",
    "ConditionalReference",
    "LoopReference",
    "DryRunResult",
    "DryRunMode",
    "dry_run",
]
