"""
Indented text dump of a template AST.
"""

from __future__ import annotations

from typing import List

from ..template.nodes import (
    BlockNode,
    ConditionalNode,
    ExtendsNode,
    ForNode,
    IncludeNode,
    MessageNode,
    NodeList,
    ParentNode,
    SwitchNode,
    TagNode,
    TemplateNode,
    TextNode,
    VarNode,
)

INDENT = "  "
MAX_TEXT_PREVIEW = 40


def format_ast(nodes: NodeList) -> str:
    """
    Pretty-print a node list as a tree rooted at ``Root``.

    Text previews are truncated and newlines escaped so each node stays on
    one line.
    """
    lines: List[str] = ["Root"]
    _format_nodes(nodes, 1, lines)
    return "\n".join(lines) + "\n"


def _format_nodes(nodes: NodeList, depth: int, lines: List[str]) -> None:
    for node in nodes:
        _format_node(node, depth, lines)


def _format_node(node: TemplateNode, depth: int, lines: List[str]) -> None:
    indent = INDENT * depth

    if isinstance(node, TextNode):
        lines.append(f"{indent}Text: {_preview(node.text)}")

    elif isinstance(node, VarNode):
        default = f" (default: {node.default!r})" if node.default is not None else ""
        lines.append(f"{indent}Var: {node.path}{default} (line {node.position.line})")

    elif isinstance(node, TagNode):
        attrs = ", ".join(f'{name}="{value}"' for name, value in node.attrs.items())
        attrs = f" [{attrs}]" if attrs else ""
        lines.append(f"{indent}Tag: {node.name}{attrs} (line {node.position.line})")
        _format_nodes(node.children, depth + 1, lines)

    elif isinstance(node, IncludeNode):
        isolated = " (isolated)" if node.isolated else ""
        lines.append(f"{indent}Include: {node.template}{isolated} (line {node.position.line})")

    elif isinstance(node, ConditionalNode):
        condition = node.branches[0].condition if node.branches else ""
        lines.append(f"{indent}Conditional: {condition} (line {node.position.line})")
        for index, branch in enumerate(node.branches):
            label = "Then:" if index == 0 else f"ElseIf: {branch.condition}"
            lines.append(f"{indent}{INDENT}{label}")
            _format_nodes(branch.body, depth + 2, lines)
        if node.else_body is not None:
            lines.append(f"{indent}{INDENT}Else:")
            _format_nodes(node.else_body, depth + 2, lines)

    elif isinstance(node, ForNode):
        header = f"{indent}For: {node.item} in {node.source_path}"
        if node.index:
            header += f" (index: {node.index})"
        if node.limit is not None:
            header += f" (limit: {node.limit})"
        lines.append(f"{header} (line {node.position.line})")
        _format_nodes(node.body, depth + 1, lines)

    elif isinstance(node, SwitchNode):
        lines.append(f"{indent}Switch: {node.expression} (line {node.position.line})")
        for case in node.cases:
            if case.value is not None:
                lines.append(f"{indent}{INDENT}Case: {case.value}")
            else:
                lines.append(f"{indent}{INDENT}Case eval: {case.condition}")
            _format_nodes(case.body, depth + 2, lines)
        if node.default_body is not None:
            lines.append(f"{indent}{INDENT}Default:")
            _format_nodes(node.default_body, depth + 2, lines)

    elif isinstance(node, MessageNode):
        cache = f" (cache: {node.cache})" if node.cache else ""
        lines.append(f"{indent}Message: {node.role}{cache} (line {node.position.line})")
        _format_nodes(node.body, depth + 1, lines)

    elif isinstance(node, ExtendsNode):
        lines.append(f"{indent}Extends: {node.template}")

    elif isinstance(node, BlockNode):
        lines.append(f"{indent}Block: {node.name}")
        _format_nodes(node.body, depth + 1, lines)

    elif isinstance(node, ParentNode):
        lines.append(f"{indent}Parent")

    else:
        lines.append(f"{indent}{type(node).__name__}")


def _preview(text: str) -> str:
    if len(text) > MAX_TEXT_PREVIEW:
        text = text[:MAX_TEXT_PREVIEW] + "..."
    return '"' + text.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"') + '"'


__all__ = ["format_ast"]
