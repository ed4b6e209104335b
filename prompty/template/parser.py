"""
Error-tolerant parser for prompty templates.

Turns the lexer's token stream into an AST using the built-in tag shapes
and the resolver registry. Structural problems (unmatched close tags,
missing required attributes, misplaced directives) are recorded as
validation issues and parsing continues, so one pass reports every problem
in a template. Unknown tags are warnings and are kept as TagNodes for
render-time dispatch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, FrozenSet, List, Optional, Protocol, Set, Tuple

from ..errors import ExpressionSyntaxError
from ..expressions.model import Expr
from ..expressions.parser import ExprParser
from ..strategy import ErrorStrategy
from .attributes import AttributeSet
from .lexer import DEFAULT_CLOSE_DELIM, DEFAULT_OPEN_DELIM, TemplateLexer
from .nodes import (
    BlockNode,
    ConditionalBranch,
    ConditionalNode,
    ExtendsNode,
    ForNode,
    IncludeNode,
    MessageNode,
    NodeList,
    ParentNode,
    SwitchCase,
    SwitchNode,
    TagNode,
    TemplateNode,
    TextNode,
    VarNode,
    find_extends,
)
from .shapes import (
    ATTR_CACHE,
    ATTR_DEFAULT,
    ATTR_EVAL,
    ATTR_IN,
    ATTR_INDEX,
    ATTR_ITEM,
    ATTR_LIMIT,
    ATTR_NAME,
    ATTR_ONERROR,
    ATTR_ROLE,
    ATTR_TEMPLATE,
    ATTR_VALUE,
    MESSAGE_ROLES,
    TAG_BLOCK,
    TAG_CASE,
    TAG_CASE_DEFAULT,
    TAG_COMMENT,
    TAG_ELSE,
    TAG_ELSEIF,
    TAG_EXTENDS,
    TAG_FOR,
    TAG_IF,
    TAG_INCLUDE,
    TAG_MESSAGE,
    TAG_PARENT,
    TAG_RAW,
    TAG_SWITCH,
    TAG_VAR,
    TagKind,
    builtin_shape,
    canonical_tag_name,
)
from .tokens import Token, TokenType
from .validation import ValidationResult

if TYPE_CHECKING:
    from ..resolvers.base import Resolver

_IF_MARKERS: FrozenSet[str] = frozenset({TAG_ELSEIF, TAG_ELSE})
_SWITCH_MARKERS: FrozenSet[str] = frozenset({TAG_CASE, TAG_CASE_DEFAULT})
_NO_MARKERS: FrozenSet[str] = frozenset()


class ResolverLookup(Protocol):
    """Read side of the resolver registry used for parse-time validation."""

    def get(self, name: str) -> Optional[Resolver]:
        ...


@dataclass
class ParseResult:
    """AST of one template plus every issue found while building it."""
    nodes: NodeList
    validation: ValidationResult = field(default_factory=ValidationResult)

    @property
    def extends(self) -> Optional[ExtendsNode]:
        return find_extends(self.nodes)


class TemplateParser:
    """
    Builds the AST for one template.

    Args:
        tokens: Output of TemplateLexer.tokenize
        source: The exact text the tokens were produced from
        resolvers: Registry consulted for unknown tags and validate hooks
        open_delim: Open delimiter in use, for nested raw block detection
    """

    def __init__(
        self,
        tokens: List[Token],
        source: str,
        resolvers: Optional[ResolverLookup] = None,
        open_delim: str = DEFAULT_OPEN_DELIM,
    ):
        self.tokens = tokens
        self.source = source
        self.resolvers = resolvers
        self.open_delim = open_delim
        self.validation = ValidationResult()

        self._position = 0
        self._open: List[str] = []
        self._block_depth = 0
        self._block_names: Set[str] = set()
        self._extends_seen = False
        self._significant_seen = False
        self._expr_parser = ExprParser()

        self._handlers: Dict[str, Callable[[Token, str, AttributeSet, Optional[ErrorStrategy]], Optional[TemplateNode]]] = {
            TAG_VAR: self._parse_var,
            TAG_INCLUDE: self._parse_include,
            TAG_IF: self._parse_if,
            TAG_FOR: self._parse_for,
            TAG_SWITCH: self._parse_switch,
            TAG_RAW: self._parse_raw,
            TAG_COMMENT: self._parse_comment,
            TAG_MESSAGE: self._parse_message,
            TAG_EXTENDS: self._parse_extends,
            TAG_BLOCK: self._parse_block,
            TAG_PARENT: self._parse_parent,
            TAG_ELSEIF: self._parse_stray_marker,
            TAG_ELSE: self._parse_stray_marker,
            TAG_CASE: self._parse_stray_marker,
            TAG_CASE_DEFAULT: self._parse_stray_marker,
        }

    def parse(self) -> ParseResult:
        nodes = self._parse_sequence(_NO_MARKERS)
        return ParseResult(tuple(nodes), self.validation)

    # Sequences

    def _parse_sequence(self, markers: FrozenSet[str]) -> List[TemplateNode]:
        """
        Parse sibling nodes until EOF, a close tag of an open block, or one of ``markers``.
        """
        nodes: List[TemplateNode] = []
        while True:
            token = self._current()
            if token.type == TokenType.EOF:
                return nodes
            if token.type == TokenType.BLOCK_CLOSE:
                if canonical_tag_name(token.value) in self._open:
                    return nodes
                self.validation.add_error(
                    f"unmatched closing tag '{token.value}'", token.position, token.value
                )
                self._advance()
                continue
            if token.is_tag and canonical_tag_name(token.value) in markers:
                return nodes

            node = self._parse_node()
            if node is None:
                continue
            nodes.append(node)
            if not self._open and not (isinstance(node, TextNode) and not node.text.strip()):
                self._significant_seen = True

    def _parse_node(self) -> Optional[TemplateNode]:
        token = self._advance()
        if token.type == TokenType.TEXT:
            return TextNode(token.value, token.position)

        name = canonical_tag_name(token.value)
        attrs = AttributeSet(token.attrs)
        strategy = self._parse_strategy(token, name, attrs)

        handler = self._handlers.get(name)
        if handler is not None:
            return handler(token, name, attrs, strategy)
        return self._parse_resolver_tag(token, name, attrs, strategy)

    def _parse_children(self, token: Token) -> Tuple[NodeList, int]:
        """Parse the body of a block tag through its close tag; returns (children, end offset)."""
        self._open.append(canonical_tag_name(token.value))
        children = self._parse_sequence(_NO_MARKERS)
        end = self._expect_close(token)
        self._open.pop()
        return tuple(children), end

    def _expect_close(self, token: Token) -> int:
        current = self._current()
        name = canonical_tag_name(token.value)
        if current.type == TokenType.BLOCK_CLOSE and canonical_tag_name(current.value) == name:
            self._advance()
            return current.end
        if current.type == TokenType.EOF:
            self.validation.add_error(f"unclosed tag '{token.value}'", token.position, name)
        else:
            self.validation.add_error(
                f"unmatched closing tag '{current.value}' (expected closing tag for '{token.value}')",
                current.position,
                name,
            )
        return current.position.offset

    # Built-in leaves

    def _parse_var(self, token: Token, name: str, attrs: AttributeSet, strategy: Optional[ErrorStrategy]) -> TemplateNode:
        self._require(token, name, attrs, ATTR_NAME)
        end = self._leaf_end(token, name)
        return VarNode(
            path=attrs.get_default(ATTR_NAME, ""),
            default=attrs.get(ATTR_DEFAULT),
            attrs=attrs,
            strategy=strategy,
            raw_source=self._raw(token, end),
            position=token.position,
        )

    def _parse_include(self, token: Token, name: str, attrs: AttributeSet, strategy: Optional[ErrorStrategy]) -> TemplateNode:
        self._require(token, name, attrs, ATTR_TEMPLATE)
        end = self._leaf_end(token, name)
        return IncludeNode(
            template=attrs.get_default(ATTR_TEMPLATE, ""),
            attrs=attrs,
            strategy=strategy,
            raw_source=self._raw(token, end),
            position=token.position,
        )

    def _parse_resolver_tag(self, token: Token, name: str, attrs: AttributeSet, strategy: Optional[ErrorStrategy]) -> TemplateNode:
        self_closing = token.type == TokenType.SELF_CLOSING
        resolver = self.resolvers.get(name) if self.resolvers is not None else None
        shape = builtin_shape(name)

        if resolver is not None:
            if not resolver.kind.accepts(self_closing):
                expected = "a block tag" if self_closing else "self-closing"
                self.validation.add_error(f"tag '{name}' must be {expected}", token.position, name)
            try:
                resolver.validate(attrs)
            except Exception as e:
                self.validation.add_error(f"invalid attributes: {e}", token.position, name)
        elif shape is not None:
            if shape.kind == TagKind.LEAF and not self_closing:
                self.validation.add_error(f"tag '{name}' must be self-closing", token.position, name)
            elif shape.kind == TagKind.BLOCK and self_closing:
                self.validation.add_error(f"tag '{name}' must be a block tag", token.position, name)
            for attr in shape.required:
                self._require(token, name, attrs, attr)
        else:
            self.validation.add_warning(f"unknown tag '{token.value}'", token.position, name)

        children: NodeList = ()
        end = token.end
        if not self_closing:
            children, end = self._parse_children(token)
        return TagNode(
            name=name,
            attrs=attrs,
            children=children,
            self_closing=self_closing,
            strategy=strategy,
            raw_source=self._raw(token, end),
            position=token.position,
        )

    # Control blocks

    def _parse_if(self, token: Token, name: str, attrs: AttributeSet, strategy: Optional[ErrorStrategy]) -> Optional[TemplateNode]:
        if not self._require_block(token, name):
            return None
        condition = attrs.get(ATTR_EVAL)
        if not condition:
            self.validation.add_error(f"missing required attribute '{ATTR_EVAL}'", token.position, name)

        self._open.append(name)
        body = self._parse_sequence(_IF_MARKERS)
        branches = [ConditionalBranch(condition or "", self._parse_expr(condition, token, name), tuple(body), token.position)]
        else_body: Optional[NodeList] = None

        while self._at_marker(_IF_MARKERS):
            marker = self._advance()
            marker_name = canonical_tag_name(marker.value)
            marker_attrs = AttributeSet(marker.attrs)
            body = self._parse_sequence(_IF_MARKERS)

            if marker_name == TAG_ELSEIF:
                if else_body is not None:
                    self.validation.add_error("elseif after else", marker.position, marker_name)
                branch_condition = marker_attrs.get(ATTR_EVAL)
                if not branch_condition:
                    self.validation.add_error(f"missing required attribute '{ATTR_EVAL}'", marker.position, marker_name)
                branches.append(ConditionalBranch(
                    branch_condition or "",
                    self._parse_expr(branch_condition, marker, marker_name),
                    tuple(body),
                    marker.position,
                ))
            else:
                if marker_attrs.has(ATTR_EVAL):
                    self.validation.add_error("else cannot have an 'eval' attribute", marker.position, marker_name)
                if else_body is not None:
                    self.validation.add_error("multiple else branches", marker.position, marker_name)
                    continue
                else_body = tuple(body)

        end = self._expect_close(token)
        self._open.pop()
        return ConditionalNode(
            branches=tuple(branches),
            else_body=else_body,
            attrs=attrs,
            strategy=strategy,
            raw_source=self._raw(token, end),
            position=token.position,
        )

    def _parse_for(self, token: Token, name: str, attrs: AttributeSet, strategy: Optional[ErrorStrategy]) -> Optional[TemplateNode]:
        if not self._require_block(token, name):
            return None
        self._require(token, name, attrs, ATTR_ITEM)
        self._require(token, name, attrs, ATTR_IN)

        limit: Optional[int] = None
        raw_limit = attrs.get(ATTR_LIMIT)
        if raw_limit is not None:
            try:
                limit = int(raw_limit.strip())
                if limit < 0:
                    raise ValueError(raw_limit)
            except ValueError:
                limit = None
                self.validation.add_error(f"invalid 'limit' attribute value '{raw_limit}'", token.position, name)
        else:
            self.validation.add_info("loop has no 'limit' attribute", token.position, name)

        body, end = self._parse_children(token)
        return ForNode(
            item=attrs.get_default(ATTR_ITEM, ""),
            source_path=attrs.get_default(ATTR_IN, ""),
            index=attrs.get(ATTR_INDEX) or None,
            limit=limit,
            body=body,
            attrs=attrs,
            strategy=strategy,
            raw_source=self._raw(token, end),
            position=token.position,
        )

    def _parse_switch(self, token: Token, name: str, attrs: AttributeSet, strategy: Optional[ErrorStrategy]) -> Optional[TemplateNode]:
        if not self._require_block(token, name):
            return None
        expression = attrs.get(ATTR_EVAL)
        if not expression:
            self.validation.add_error(f"missing required attribute '{ATTR_EVAL}'", token.position, name)

        self._open.append(name)
        cases: List[SwitchCase] = []
        default_body: Optional[NodeList] = None

        while True:
            current = self._current()
            if current.type in (TokenType.EOF, TokenType.BLOCK_CLOSE):
                break
            if current.type == TokenType.TEXT:
                if current.value.strip():
                    self.validation.add_error("unexpected content inside switch block", current.position, name)
                self._advance()
                continue

            case_name = canonical_tag_name(current.value)
            if case_name not in _SWITCH_MARKERS:
                self.validation.add_error(f"unexpected tag inside switch block: '{current.value}'", current.position, name)
                self._parse_node()
                continue

            case_token = self._advance()
            case_attrs = AttributeSet(case_token.attrs)
            body: NodeList = ()
            if case_token.type == TokenType.BLOCK_OPEN:
                body, _ = self._parse_children(case_token)

            if case_name == TAG_CASE:
                if default_body is not None:
                    self.validation.add_error("default case must be last in switch", case_token.position, case_name)
                value = case_attrs.get(ATTR_VALUE)
                condition = case_attrs.get(ATTR_EVAL) if value is None else None
                if value is None and not condition:
                    self.validation.add_error("case requires 'value' or 'eval' attribute", case_token.position, case_name)
                cases.append(SwitchCase(
                    value=value,
                    condition=condition,
                    expr=self._parse_expr(condition, case_token, case_name),
                    body=body,
                    position=case_token.position,
                ))
            elif default_body is not None:
                self.validation.add_error("only one default case allowed in switch", case_token.position, case_name)
            else:
                default_body = body

        end = self._expect_close(token)
        self._open.pop()
        return SwitchNode(
            expression=expression or "",
            expr=self._parse_expr(expression, token, name),
            cases=tuple(cases),
            default_body=default_body,
            attrs=attrs,
            strategy=strategy,
            raw_source=self._raw(token, end),
            position=token.position,
        )

    def _parse_raw(self, token: Token, name: str, attrs: AttributeSet, strategy: Optional[ErrorStrategy]) -> Optional[TemplateNode]:
        if token.type == TokenType.SELF_CLOSING:
            return None
        content = ""
        current = self._current()
        if current.type == TokenType.TEXT:
            content = self._advance().value
            if f"{self.open_delim}{TAG_RAW}" in content:
                self.validation.add_error("nested raw blocks are not allowed", current.position, name)
        self._parse_children(token)
        return TextNode(content, token.position)

    def _parse_comment(self, token: Token, name: str, attrs: AttributeSet, strategy: Optional[ErrorStrategy]) -> Optional[TemplateNode]:
        if token.type == TokenType.BLOCK_OPEN:
            self._parse_children(token)
        return None

    def _parse_message(self, token: Token, name: str, attrs: AttributeSet, strategy: Optional[ErrorStrategy]) -> TemplateNode:
        role = attrs.get(ATTR_ROLE)
        if not role:
            self.validation.add_error(f"missing required attribute '{ATTR_ROLE}'", token.position, name)
        elif role.strip().lower() not in MESSAGE_ROLES:
            self.validation.add_error(
                f"invalid message role '{role}' (expected one of: {', '.join(MESSAGE_ROLES)})",
                token.position,
                name,
            )
        body: NodeList = ()
        end = token.end
        if token.type == TokenType.BLOCK_OPEN:
            body, end = self._parse_children(token)
        return MessageNode(
            role=(role or "").strip().lower(),
            cache=attrs.get(ATTR_CACHE),
            body=body,
            attrs=attrs,
            strategy=strategy,
            raw_source=self._raw(token, end),
            position=token.position,
        )

    def _parse_stray_marker(self, token: Token, name: str, attrs: AttributeSet, strategy: Optional[ErrorStrategy]) -> None:
        owner = TAG_IF if name in _IF_MARKERS else TAG_SWITCH
        self.validation.add_error(f"'{token.value}' outside of '{owner}'", token.position, name)
        return None

    # Inheritance directives

    def _parse_extends(self, token: Token, name: str, attrs: AttributeSet, strategy: Optional[ErrorStrategy]) -> Optional[TemplateNode]:
        self._require(token, name, attrs, ATTR_TEMPLATE)
        if self._extends_seen:
            self.validation.add_error("multiple extends directives", token.position, name)
        elif self._open or self._significant_seen:
            self.validation.add_error("extends must be the first tag in the template", token.position, name)
        self._leaf_end(token, name)
        if self._extends_seen:
            return None
        self._extends_seen = True
        return ExtendsNode(attrs.get_default(ATTR_TEMPLATE, ""), token.position)

    def _parse_block(self, token: Token, name: str, attrs: AttributeSet, strategy: Optional[ErrorStrategy]) -> TemplateNode:
        self._require(token, name, attrs, ATTR_NAME)
        block_name = attrs.get_default(ATTR_NAME, "")
        if block_name and block_name in self._block_names:
            self.validation.add_error(f"duplicate block name '{block_name}'", token.position, name)
        self._block_names.add(block_name)

        body: NodeList = ()
        if token.type == TokenType.BLOCK_OPEN:
            self._block_depth += 1
            body, _ = self._parse_children(token)
            self._block_depth -= 1
        return BlockNode(block_name, body, token.position)

    def _parse_parent(self, token: Token, name: str, attrs: AttributeSet, strategy: Optional[ErrorStrategy]) -> TemplateNode:
        if self._block_depth == 0:
            self.validation.add_error("parent directive outside of a block", token.position, name)
        self._leaf_end(token, name)
        return ParentNode(token.position)

    # Helpers

    def _parse_strategy(self, token: Token, name: str, attrs: AttributeSet) -> Optional[ErrorStrategy]:
        try:
            return ErrorStrategy.parse(attrs.get(ATTR_ONERROR))
        except ValueError:
            self.validation.add_error(
                f"invalid onerror attribute value '{attrs.get(ATTR_ONERROR)}'", token.position, name
            )
            return None

    def _parse_expr(self, text: Optional[str], token: Token, name: str) -> Optional[Expr]:
        if not text:
            return None
        try:
            return self._expr_parser.parse(text)
        except ExpressionSyntaxError as e:
            self.validation.add_error(f"invalid expression '{text}': {e}", token.position, name)
            return None

    def _require(self, token: Token, name: str, attrs: AttributeSet, attr: str) -> bool:
        if attrs.get(attr):
            return True
        self.validation.add_error(f"missing required attribute '{attr}'", token.position, name)
        return False

    def _require_block(self, token: Token, name: str) -> bool:
        if token.type == TokenType.BLOCK_OPEN:
            return True
        self.validation.add_error(f"tag '{name}' must be a block tag", token.position, name)
        return False

    def _leaf_end(self, token: Token, name: str) -> int:
        """End offset of a tag that should be self-closing; a block form is reported and skipped."""
        if token.type == TokenType.SELF_CLOSING:
            return token.end
        self.validation.add_error(f"tag '{name}' must be self-closing", token.position, name)
        _, end = self._parse_children(token)
        return end

    def _raw(self, token: Token, end: int) -> str:
        return self.source[token.position.offset:end]

    def _at_marker(self, markers: FrozenSet[str]) -> bool:
        token = self._current()
        return token.type in (TokenType.SELF_CLOSING, TokenType.BLOCK_OPEN) and canonical_tag_name(token.value) in markers

    def _current(self) -> Token:
        return self.tokens[min(self._position, len(self.tokens) - 1)]

    def _advance(self) -> Token:
        token = self._current()
        if token.type != TokenType.EOF:
            self._position += 1
        return token


def parse_template(
    source: str,
    resolvers: Optional[ResolverLookup] = None,
    open_delim: str = DEFAULT_OPEN_DELIM,
    close_delim: str = DEFAULT_CLOSE_DELIM,
) -> ParseResult:
    """
    Tokenize and parse template source.

    Raises:
        LexerError: On an unterminated tag or string
    """
    tokens = TemplateLexer(source, open_delim, close_delim).tokenize()
    return TemplateParser(tokens, source, resolvers, open_delim).parse()


__all__ = ["ResolverLookup", "ParseResult", "TemplateParser", "parse_template"]
