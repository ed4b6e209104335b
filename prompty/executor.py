"""
Execution engine for prompty templates.

One depth-first walk over the effective AST serves every execution mode.
Control flow (conditionals, loops, switches, messages) is handled here once;
a WalkMode decides what happens at the leaves: variable references,
resolver tags and includes. ExecuteMode renders for real, TraceMode (in
``prompty.analysis``) records variable resolutions on top of it, and the
dry-run mode renders placeholders without invoking any resolver.

Node failures are raised as ExecutionError and absorbed by the failing
node's error strategy: the node's ``onerror`` attribute, else the engine
default, else THROW.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Optional, Tuple

from .context import Context, flatten_paths
from .errors import (
    DepthExceededError,
    ExecutionError,
    ExpressionError,
    InheritanceCycleError,
    PromptyError,
    ResolverNotFoundError,
    TemplateNotFoundError,
    VariableNotFoundError,
)
from .expressions.evaluator import ExprEvaluator
from .expressions.functions import FuncRegistry
from .expressions.model import Expr
from .resolvers.base import ResolveCall
from .resolvers.registry import ResolverRegistry
from .strategy import ErrorStrategy
from .suggestions import find_similar
from .template.messages import wrap_message
from .template.nodes import (
    ConditionalNode,
    ForNode,
    IncludeNode,
    MessageNode,
    NodeList,
    SwitchNode,
    TagNode,
    TextNode,
    VarNode,
)
from .template.shapes import (
    ATTR_DEFAULT,
    ATTR_ISOLATE,
    ATTR_ONERROR,
    ATTR_TEMPLATE,
    ATTR_WITH,
    TAG_INCLUDE,
)
from .values import stringify

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10
DEFAULT_MAX_LOOP_ITERATIONS = 10000

# Child-scope key for a non-mapping ``with`` value
VALUE_KEY = "_value"

# Include attributes that are not passed to the child template as variables
INCLUDE_RESERVED_ATTRS = frozenset({ATTR_TEMPLATE, ATTR_WITH, ATTR_ISOLATE, ATTR_ONERROR, ATTR_DEFAULT})

MAX_AVAILABLE_KEYS = 10

# Effective nodes and front-matter data of a named template, or None when it is not registered
IncludeLoader = Callable[[str], Optional[Tuple[NodeList, Dict[str, Any]]]]


@dataclass
class RenderState:
    """Per-call walk state. Never shared between calls."""
    mode: WalkMode
    config: Dict[str, Any] = field(default_factory=dict)
    depth: int = 0

    def nested(self, config: Dict[str, Any]) -> RenderState:
        return RenderState(mode=self.mode, config=config, depth=self.depth + 1)


class WalkMode(ABC):
    """
    Leaf behaviour of one walk.

    ``evaluates`` is False for static walks: every branch of every control
    block is visited once and rendered as placeholders.
    """

    evaluates: ClassVar[bool] = True

    @abstractmethod
    def render_var(self, executor: Executor, node: VarNode, scope: Context, state: RenderState) -> str:
        """Text for a variable reference. Raises ExecutionError on failure."""
        pass

    @abstractmethod
    def render_tag(self, executor: Executor, node: TagNode, scope: Context, state: RenderState) -> str:
        """Leaf text, or the prefix placed before a block tag's children."""
        pass

    @abstractmethod
    def render_include(self, executor: Executor, node: IncludeNode, scope: Context, state: RenderState) -> str:
        pass

    def visit_conditional(self, node: ConditionalNode, scope: Context) -> None:
        pass

    def visit_loop(self, node: ForNode, scope: Context) -> None:
        pass

    def visit_switch(self, node: SwitchNode, scope: Context) -> None:
        pass


class ExecuteMode(WalkMode):
    """Real rendering: resolves variables, calls resolvers, follows includes."""

    def render_var(self, executor: Executor, node: VarNode, scope: Context, state: RenderState) -> str:
        value, found = scope.get(node.path)
        self.on_variable(node, value, found)
        if found:
            return stringify(value)
        if node.default is not None:
            return node.default
        raise missing_variable_error(node, scope)

    def on_variable(self, node: VarNode, value: Any, found: bool) -> None:
        """Hook called with the outcome of every variable lookup."""
        pass

    def render_tag(self, executor: Executor, node: TagNode, scope: Context, state: RenderState) -> str:
        resolver = executor.resolvers.get(node.name)
        if resolver is None:
            raise ResolverNotFoundError(f"unknown tag: no resolver registered for '{node.name}'", node.name, node.position)

        call = ResolveCall(
            tag_name=node.name,
            position=node.position,
            self_closing=node.self_closing,
            config=state.config,
            depth=state.depth,
        )
        try:
            return resolver.resolve(call, scope, node.attrs)
        except ExecutionError:
            raise
        except Exception as e:
            raise ExecutionError(f"resolver execution failed: {e}", node.name, node.position) from e

    def render_include(self, executor: Executor, node: IncludeNode, scope: Context, state: RenderState) -> str:
        if state.depth >= executor.max_depth:
            raise DepthExceededError(
                f"maximum template inclusion depth exceeded ({executor.max_depth})",
                TAG_INCLUDE,
                node.position,
            )

        try:
            loaded = executor.load_include(node.template) if executor.load_include is not None else None
        except (InheritanceCycleError, ExecutionError):
            raise
        except PromptyError as e:
            raise ExecutionError(
                f"failed to load template '{node.template}': {e}",
                TAG_INCLUDE,
                node.position,
            ) from e
        if loaded is None:
            raise TemplateNotFoundError(f"template not found: '{node.template}'", TAG_INCLUDE, node.position)

        nodes, config = loaded
        child_scope = include_scope(node, scope)
        logger.debug(f"Including '{node.template}' at depth {state.depth + 1}")
        return executor.render(nodes, child_scope, state.nested(config))


def include_scope(node: IncludeNode, scope: Context) -> Context:
    """
    Variable scope of an included template.

    - isolate="true": only the include's extra attributes
    - with="path": the mapping at ``path`` (a non-mapping value is bound
      as ``_value``) plus the extra attributes
    - otherwise the current scope with the extra attributes layered on top
    """
    extras = {name: value for name, value in node.attrs.items() if name not in INCLUDE_RESERVED_ATTRS}

    if node.isolated:
        return Context(extras)

    with_path = node.attrs.get(ATTR_WITH)
    if with_path:
        value, found = scope.get(with_path)
        data: Dict[str, Any] = {}
        if found:
            if isinstance(value, Mapping):
                data.update(value)
            else:
                data[VALUE_KEY] = value
        data.update(extras)
        return Context(data)

    return scope.child(extras)


def missing_variable_error(node: VarNode, scope: Context) -> VariableNotFoundError:
    candidates = flatten_paths(scope.flattened())
    suggestions = find_similar(node.path, candidates)
    available = scope.all_keys()[:MAX_AVAILABLE_KEYS] if not suggestions else []
    return VariableNotFoundError(node.path, node.position, suggestions, available)


class Executor:
    """
    Renders effective ASTs.

    Holds the registries shared by all calls; per-call state travels in
    RenderState and Context, so one executor can serve concurrent renders.
    """

    def __init__(
        self,
        resolvers: ResolverRegistry,
        funcs: FuncRegistry,
        load_include: Optional[IncludeLoader] = None,
        error_strategy: ErrorStrategy = ErrorStrategy.THROW,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_loop_iterations: int = DEFAULT_MAX_LOOP_ITERATIONS,
        error_logger: Optional[logging.Logger] = None,
    ):
        self.resolvers = resolvers
        self.funcs = funcs
        self.load_include = load_include
        self.error_strategy = error_strategy
        self.max_depth = max_depth
        self.max_loop_iterations = max_loop_iterations
        self.error_logger = error_logger or logger

        self._handlers: Dict[type, Callable[[Any, Context, RenderState], str]] = {
            TextNode: self._render_text,
            VarNode: self._render_var,
            TagNode: self._render_tag,
            IncludeNode: self._render_include,
            ConditionalNode: self._render_conditional,
            ForNode: self._render_for,
            SwitchNode: self._render_switch,
            MessageNode: self._render_message,
        }

    def execute(
        self,
        nodes: NodeList,
        context: Context,
        mode: Optional[WalkMode] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Render a top-level template.

        Raises:
            ExecutionError: When a node fails under the THROW strategy
        """
        state = RenderState(mode=mode or ExecuteMode(), config=dict(config or {}))
        return self.render(nodes, context, state)

    def render(self, nodes: NodeList, scope: Context, state: RenderState) -> str:
        parts: List[str] = []
        for node in nodes:
            handler = self._handlers.get(type(node))
            if handler is None:
                raise ExecutionError(f"unsupported node type: {type(node).__name__}")
            parts.append(handler(node, scope, state))
        return "".join(parts)

    # Error strategies

    def strategy_for(self, node: Any) -> ErrorStrategy:
        """Node ``onerror`` > engine default > THROW."""
        return node.strategy or self.error_strategy or ErrorStrategy.THROW

    def recover(self, node: Any, error: ExecutionError) -> str:
        """
        Apply the node's error strategy to a failure.

        Returns:
            Replacement text for the node

        Raises:
            ExecutionError: Under THROW
        """
        strategy = self.strategy_for(node)
        logger.debug(f"Applying '{strategy.value}' to failure in {node.tag_name}: {error}")

        if strategy == ErrorStrategy.THROW:
            raise error
        if strategy == ErrorStrategy.DEFAULT:
            return node.attrs.get_default(ATTR_DEFAULT, "")
        if strategy == ErrorStrategy.KEEPRAW:
            return node.raw_source
        if strategy == ErrorStrategy.LOG:
            self.error_logger.warning(f"Template error in {node.tag_name} at {node.position}: {error}")
        return ""

    # Node handlers

    def _render_text(self, node: TextNode, scope: Context, state: RenderState) -> str:
        return node.text

    def _render_var(self, node: VarNode, scope: Context, state: RenderState) -> str:
        try:
            return state.mode.render_var(self, node, scope, state)
        except ExecutionError as e:
            return self.recover(node, e)

    def _render_tag(self, node: TagNode, scope: Context, state: RenderState) -> str:
        try:
            prefix = state.mode.render_tag(self, node, scope, state)
        except ExecutionError as e:
            return self.recover(node, e)
        if node.self_closing:
            return prefix
        return prefix + self.render(node.children, scope, state)

    def _render_include(self, node: IncludeNode, scope: Context, state: RenderState) -> str:
        try:
            return state.mode.render_include(self, node, scope, state)
        except ExecutionError as e:
            return self.recover(node, e)

    def _render_conditional(self, node: ConditionalNode, scope: Context, state: RenderState) -> str:
        state.mode.visit_conditional(node, scope)
        if not state.mode.evaluates:
            return self._conditional_placeholder(node, scope, state)

        try:
            body = self._select_branch(node, scope)
        except ExecutionError as e:
            return self.recover(node, e)
        if body is None:
            return ""
        return self.render(body, scope, state)

    def _select_branch(self, node: ConditionalNode, scope: Context) -> Optional[NodeList]:
        for branch in node.branches:
            if self._evaluate_bool(branch.expr, branch.condition, scope, node):
                return branch.body
        return node.else_body

    def _render_for(self, node: ForNode, scope: Context, state: RenderState) -> str:
        state.mode.visit_loop(node, scope)
        if not state.mode.evaluates:
            body = self.render(node.body, scope, state)
            return f"{{{{for:{node.item} in {node.source_path}}}}}{body}{{{{/for}}}}"

        try:
            items = self._loop_items(node, scope)
        except ExecutionError as e:
            return self.recover(node, e)

        parts: List[str] = []
        for index, item in enumerate(items):
            bindings: Dict[str, Any] = {node.item: item}
            if node.index:
                bindings[node.index] = index
            parts.append(self.render(node.body, scope.child(bindings), state))
        return "".join(parts)

    def _loop_items(self, node: ForNode, scope: Context) -> List[Any]:
        """
        Materialise the iteration sequence, applying ``limit``.

        An absent or null source iterates zero times. Mappings iterate as
        ``{"key": k, "value": v}`` entries in sorted key order.
        """
        source, found = scope.get(node.source_path)
        if not found or source is None:
            return []

        if isinstance(source, Mapping):
            items: List[Any] = [
                {"key": key, "value": source[key]}
                for key in sorted(source, key=str)
            ]
        elif isinstance(source, (list, tuple)):
            items = list(source)
        else:
            raise ExecutionError(
                f"value is not iterable: '{node.source_path}'",
                node.tag_name,
                node.position,
            )

        if node.limit is not None:
            return items[:node.limit]
        if len(items) > self.max_loop_iterations:
            raise ExecutionError(
                f"loop iteration limit exceeded ({self.max_loop_iterations})",
                node.tag_name,
                node.position,
            )
        return items

    def _render_switch(self, node: SwitchNode, scope: Context, state: RenderState) -> str:
        state.mode.visit_switch(node, scope)
        if not state.mode.evaluates:
            return self._switch_placeholder(node, scope, state)

        try:
            body = self._select_case(node, scope)
        except ExecutionError as e:
            return self.recover(node, e)
        if body is None:
            return ""
        return self.render(body, scope, state)

    def _select_case(self, node: SwitchNode, scope: Context) -> Optional[NodeList]:
        value = stringify(self._evaluate(node.expr, node.expression, scope, node))
        for case in node.cases:
            if case.value is not None:
                if case.value == value:
                    return case.body
            elif self._evaluate_bool(case.expr, case.condition or "", scope, node):
                return case.body
        return node.default_body

    def _render_message(self, node: MessageNode, scope: Context, state: RenderState) -> str:
        body = self.render(node.body, scope, state)
        if not state.mode.evaluates:
            return f"{{{{message:{node.role}}}}}{body}{{{{/message}}}}"
        return wrap_message(node.role, body, node.cache)

    # Expressions

    def _evaluate(self, expr: Optional[Expr], text: str, scope: Context, node: Any) -> Any:
        if expr is None:
            raise ExecutionError(f"invalid expression '{text}'", node.tag_name, node.position)
        try:
            return ExprEvaluator(self.funcs, scope).evaluate(expr)
        except ExpressionError as e:
            raise ExecutionError(
                f"condition expression evaluation failed: '{text}': {e}",
                node.tag_name,
                node.position,
            ) from e

    def _evaluate_bool(self, expr: Optional[Expr], text: str, scope: Context, node: Any) -> bool:
        if expr is None:
            raise ExecutionError(f"invalid expression '{text}'", node.tag_name, node.position)
        try:
            return ExprEvaluator(self.funcs, scope).evaluate_bool(expr)
        except ExpressionError as e:
            raise ExecutionError(
                f"condition expression evaluation failed: '{text}': {e}",
                node.tag_name,
                node.position,
            ) from e

    # Placeholders for static walks

    def _conditional_placeholder(self, node: ConditionalNode, scope: Context, state: RenderState) -> str:
        parts: List[str] = []
        for index, branch in enumerate(node.branches):
            marker = "if" if index == 0 else "elseif"
            parts.append(f"{{{{{marker}:{branch.condition}}}}}")
            parts.append(self.render(branch.body, scope, state))
        if node.else_body is not None:
            parts.append("{{else}}")
            parts.append(self.render(node.else_body, scope, state))
        parts.append("{{/if}}")
        return "".join(parts)

    def _switch_placeholder(self, node: SwitchNode, scope: Context, state: RenderState) -> str:
        parts: List[str] = [f"{{{{switch:{node.expression}}}}}"]
        for case in node.cases:
            if case.value is not None:
                parts.append(f"{{{{case:{case.value}}}}}")
            else:
                parts.append(f"{{{{case eval:{case.condition}}}}}")
            parts.append(self.render(case.body, scope, state))
        if node.default_body is not None:
            parts.append("{{default}}")
            parts.append(self.render(node.default_body, scope, state))
        parts.append("{{/switch}}")
        return "".join(parts)


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_MAX_LOOP_ITERATIONS",
    "VALUE_KEY",
    "INCLUDE_RESERVED_ATTRS",
    "IncludeLoader",
    "RenderState",
    "WalkMode",
    "ExecuteMode",
    "Executor",
    "include_scope",
    "missing_variable_error",
]
