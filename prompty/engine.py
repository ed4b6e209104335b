"""
Engine facade.

Owns the resolver registry, the function table and the named-template
store, and turns template source into executable Template objects:
front matter split -> lex -> parse (error tolerant) -> inheritance merge.
Registration is expected to finish before concurrent renders begin.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .analysis.dryrun import DryRunResult, dry_run
from .analysis.explain import ExplainResult, explain
from .context import Context
from .errors import (
    FrontmatterError,
    InheritanceError,
    LexerError,
    PromptyError,
    TemplateNotFoundError,
    TemplateParseError,
)
from .executor import DEFAULT_MAX_DEPTH, DEFAULT_MAX_LOOP_ITERATIONS, Executor
from .expressions.functions import Func, FuncRegistry, default_func_registry
from .frontmatter import PromptConfig, split_frontmatter
from .resolvers.base import Resolver
from .resolvers.builtins import register_builtins
from .resolvers.registry import ResolverRegistry
from .storage import MemoryTemplateStore, TemplateProvider
from .strategy import ErrorStrategy
from .template.inheritance import DEFAULT_MAX_INHERITANCE_DEPTH, ROOT_TEMPLATE, InheritanceResolver
from .template.lexer import DEFAULT_CLOSE_DELIM, DEFAULT_OPEN_DELIM
from .template.messages import Message, extract_messages
from .template.nodes import NodeList, find_extends
from .template.parser import ParseResult, parse_template
from .template.tokens import Position
from .template.validation import ValidationResult

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """
    Engine-wide settings.

    Attributes:
        open_delim: Tag open delimiter
        close_delim: Tag close delimiter
        error_strategy: Strategy for nodes without an ``onerror`` attribute
        max_depth: Maximum include nesting
        max_inheritance_depth: Longest allowed extends chain
        max_loop_iterations: Cap for loops without a ``limit`` attribute
        logger: Destination of the ``log`` error strategy
    """
    open_delim: str = DEFAULT_OPEN_DELIM
    close_delim: str = DEFAULT_CLOSE_DELIM
    error_strategy: Union[ErrorStrategy, str] = ErrorStrategy.THROW
    max_depth: int = DEFAULT_MAX_DEPTH
    max_inheritance_depth: int = DEFAULT_MAX_INHERITANCE_DEPTH
    max_loop_iterations: int = DEFAULT_MAX_LOOP_ITERATIONS
    logger: Optional[logging.Logger] = None

    def __post_init__(self):
        if not self.open_delim or not self.close_delim:
            raise ValueError("delimiters cannot be empty")
        if self.open_delim == self.close_delim:
            raise ValueError("open and close delimiters must differ")
        if isinstance(self.error_strategy, str):
            self.error_strategy = ErrorStrategy.parse(self.error_strategy)
        for name in ("max_depth", "max_inheritance_depth", "max_loop_iterations"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


class Template:
    """
    A parsed template with inheritance already merged.

    Immutable after construction; safe to execute from several threads.
    """

    def __init__(
        self,
        engine: Engine,
        source: str,
        body: str,
        nodes: NodeList,
        validation: ValidationResult,
        config: Optional[PromptConfig] = None,
        name: Optional[str] = None,
        parse_time: float = 0.0,
    ):
        self._engine = engine
        self._source = source
        self._body = body
        self._nodes = nodes
        self._validation = validation
        self._config = config
        self._name = name
        self._parse_time = parse_time

    @property
    def source(self) -> str:
        """Full source including front matter."""
        return self._source

    @property
    def body(self) -> str:
        """Source without front matter."""
        return self._body

    @property
    def config(self) -> Optional[PromptConfig]:
        return self._config

    @property
    def config_data(self) -> Dict[str, Any]:
        return dict(self._config.raw) if self._config is not None else {}

    @property
    def nodes(self) -> NodeList:
        """Effective AST."""
        return self._nodes

    @property
    def validation(self) -> ValidationResult:
        """Warnings and infos collected while parsing."""
        return self._validation

    @property
    def name(self) -> Optional[str]:
        return self._name

    @property
    def parse_time(self) -> float:
        return self._parse_time

    def execute(self, data: Optional[Mapping[str, Any]] = None) -> str:
        """
        Render with ``data``.

        Raises:
            ExecutionError: When a node fails under the THROW strategy
        """
        return self._engine.executor.execute(self._nodes, Context(data), config=self.config_data)

    def execute_messages(self, data: Optional[Mapping[str, Any]] = None) -> List[Message]:
        """Render and split the output into conversation messages."""
        return extract_messages(self.execute(data))

    def dry_run(self, data: Optional[Mapping[str, Any]] = None) -> DryRunResult:
        return dry_run(
            self._engine.executor,
            self._nodes,
            data,
            template_exists=self._engine.has_template,
            validation=self._validation,
        )

    def explain(self, data: Optional[Mapping[str, Any]] = None) -> ExplainResult:
        return explain(
            self._engine.executor,
            self._nodes,
            data,
            config=self.config_data,
            parse_time=self._parse_time,
        )

    def __repr__(self) -> str:
        label = self._name or ROOT_TEMPLATE
        return f"Template({label!r}, nodes={len(self._nodes)})"


class Engine:
    """
    Entry point of the templating engine.

    Coordinates:
    - ResolverRegistry for tag dispatch (built-ins registered on construction)
    - FuncRegistry for expression functions
    - MemoryTemplateStore for named templates used by includes and extends,
      with an optional external TemplateProvider consulted for names not
      registered locally
    - Executor for every execution mode
    """

    def __init__(self, config: Optional[EngineConfig] = None, provider: Optional[TemplateProvider] = None):
        self.config = config or EngineConfig()
        self.provider = provider

        self.resolvers = ResolverRegistry()
        register_builtins(self.resolvers)
        self.funcs: FuncRegistry = default_func_registry()
        self.templates = MemoryTemplateStore()

        self.executor = Executor(
            resolvers=self.resolvers,
            funcs=self.funcs,
            load_include=self._load_include,
            error_strategy=self.config.error_strategy,
            max_depth=self.config.max_depth,
            max_loop_iterations=self.config.max_loop_iterations,
            error_logger=self.config.logger,
        )

        self._lock = threading.RLock()
        # Syntax-only parses of named templates
        self._parsed: Dict[str, Tuple[Optional[PromptConfig], str, ParseResult]] = {}
        # Syntax-only parses of provider templates, dropped with the other caches
        self._provider_parsed: Dict[str, Tuple[Optional[PromptConfig], str, ParseResult]] = {}
        # Fully resolved named templates
        self._compiled: Dict[str, Template] = {}
        # Merged parent trees shared by inheritance resolutions
        self._inheritance_cache: Dict[str, Tuple[NodeList, int]] = {}

    # Registration

    def register_resolver(self, resolver: Resolver) -> None:
        """
        Raises:
            RegistrationError: Duplicate or reserved tag name
        """
        self.resolvers.register(resolver)

    def register_func(self, func: Func) -> None:
        """
        Raises:
            RegistrationError: Duplicate name or invalid arity
        """
        self.funcs.register(func)

    def register_template(self, name: str, source: str) -> None:
        """
        Add a named template for includes and extends.

        The source is parsed immediately so syntax errors surface at
        registration; inheritance is merged lazily on first use, so
        parents may be registered after their children.

        Raises:
            RegistrationError: Empty, reserved (``prompty.``) or duplicate name
            LexerError, TemplateParseError, FrontmatterError: Invalid source
        """
        with self._lock:
            self.templates.check_name(name)
            parsed = self._parse_syntax(source, name)
            self.templates.add(name, source)
            self._parsed[name] = parsed
            self._invalidate()
        logger.debug(f"Registered template '{name}'")

    def unregister_template(self, name: str) -> bool:
        with self._lock:
            removed = self.templates.remove(name)
            self._parsed.pop(name, None)
            self._invalidate()
        if removed:
            logger.debug(f"Unregistered template '{name}'")
        return removed

    def has_template(self, name: str) -> bool:
        if self.templates.has_template(name):
            return True
        return self.provider is not None and self.provider.has_template(name)

    def list_templates(self) -> List[str]:
        """Registered template names, sorted."""
        return self.templates.names()

    def template_count(self) -> int:
        return len(self.templates)

    def get_template(self, name: str) -> Template:
        """
        Compiled named template.

        Raises:
            TemplateNotFoundError: No template registered under ``name``
        """
        template = self._compiled_template(name)
        if template is None:
            raise TemplateNotFoundError(f"template not found: '{name}'")
        return template

    def clear_cache(self) -> None:
        with self._lock:
            self._invalidate()

    # Parsing

    def parse(self, source: str, name: Optional[str] = None) -> Template:
        """
        Build an executable Template.

        Raises:
            FrontmatterError: Malformed front matter
            LexerError: Unterminated tag or string
            TemplateParseError: Any ERROR-severity validation issue; carries the full ValidationResult
            InheritanceError: Cycle, depth or missing parent in the extends chain
        """
        start = time.perf_counter()
        config, body, parsed = self._parse_syntax(source, name)
        nodes = self._resolve_inheritance(parsed.nodes, name)
        parse_time = time.perf_counter() - start
        return Template(
            engine=self,
            source=source,
            body=body,
            nodes=nodes,
            validation=parsed.validation,
            config=config,
            name=name,
            parse_time=parse_time,
        )

    def validate(self, source: str) -> ValidationResult:
        """
        Report every problem in ``source`` without raising.

        Lexer, front-matter and inheritance failures are reported as
        ERROR issues alongside the parser's own findings.
        """
        result = ValidationResult()
        try:
            config, body = split_frontmatter(source, self.config.open_delim, self.config.close_delim)
        except FrontmatterError as e:
            result.add_error(str(e), Position())
            return result

        try:
            parsed = parse_template(body, self.resolvers, self.config.open_delim, self.config.close_delim)
        except LexerError as e:
            result.add_error(e.message, e.position or Position())
            return result

        result.extend(parsed.validation)
        if not result.has_errors() and parsed.extends is not None:
            try:
                self._resolve_inheritance(parsed.nodes, None)
            except (InheritanceError, TemplateParseError, LexerError, FrontmatterError) as e:
                result.add_error(str(e), parsed.extends.position, "prompty.extends")
        return result

    # Execution

    def execute(self, source: str, data: Optional[Mapping[str, Any]] = None) -> str:
        """Parse and render ``source`` in one call."""
        return self.parse(source).execute(data)

    def execute_template(self, name: str, data: Optional[Mapping[str, Any]] = None) -> str:
        """
        Render a registered template.

        Raises:
            TemplateNotFoundError: No template registered under ``name``
        """
        return self.get_template(name).execute(data)

    def dry_run(self, source: str, data: Optional[Mapping[str, Any]] = None) -> DryRunResult:
        return self.parse(source).dry_run(data)

    def explain(self, source: str, data: Optional[Mapping[str, Any]] = None) -> ExplainResult:
        """
        Instrumented render. Parse failures are captured in the result
        like execution failures.
        """
        start = time.perf_counter()
        try:
            template = self.parse(source)
        except PromptyError as e:
            elapsed = time.perf_counter() - start
            return ExplainResult(error=e, parse_time=elapsed, total_time=elapsed)
        return template.explain(data)

    # Internals

    def _parse_syntax(
        self,
        source: str,
        name: Optional[str],
    ) -> Tuple[Optional[PromptConfig], str, ParseResult]:
        config, body = split_frontmatter(source, self.config.open_delim, self.config.close_delim)
        parsed = parse_template(body, self.resolvers, self.config.open_delim, self.config.close_delim)
        if parsed.validation.has_errors():
            errors = parsed.validation.errors()
            first = errors[0]
            count = len(errors)
            where = f"template '{name}': " if name else ""
            suffix = f" (and {count - 1} more error(s))" if count > 1 else ""
            raise TemplateParseError(f"{where}{first.message}{suffix}", first.position, parsed.validation)
        return config, body, parsed

    def _resolve_inheritance(self, nodes: NodeList, name: Optional[str]) -> NodeList:
        if find_extends(nodes) is None:
            return InheritanceResolver(self._load_parent).resolve(nodes)
        resolver = InheritanceResolver(
            self._load_parent,
            max_depth=self.config.max_inheritance_depth,
            cache=self._inheritance_cache,
        )
        return resolver.resolve(nodes, name or ROOT_TEMPLATE)

    def _load_parent(self, name: str) -> Optional[NodeList]:
        with self._lock:
            parsed = self._parsed.get(name) or self._provider_parsed.get(name)
            if parsed is None:
                source = self._provider_source(name)
                if source is None:
                    return None
                parsed = self._parse_syntax(source, name)
                self._provider_parsed[name] = parsed
        return parsed[2].nodes

    def _template_source(self, name: str) -> Optional[str]:
        source = self.templates.get_template_source(name)
        if source is None:
            source = self._provider_source(name)
        return source

    def _provider_source(self, name: str) -> Optional[str]:
        if self.provider is None or not self.provider.has_template(name):
            return None
        return self.provider.get_template_source(name)

    def _compiled_template(self, name: str) -> Optional[Template]:
        with self._lock:
            template = self._compiled.get(name)
            if template is not None:
                return template
            source = self._template_source(name)
            if source is None:
                return None
            template = self.parse(source, name)
            self._compiled[name] = template
            return template

    def _load_include(self, name: str) -> Optional[Tuple[NodeList, Dict[str, Any]]]:
        template = self._compiled_template(name)
        if template is None:
            return None
        return template.nodes, template.config_data

    def _invalidate(self) -> None:
        self._compiled.clear()
        self._provider_parsed.clear()
        self._inheritance_cache.clear()


__all__ = ["EngineConfig", "Template", "Engine"]
