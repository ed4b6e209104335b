"""
Template inheritance (extends / block / parent).

Resolves a template that starts with an extends directive into one
effective AST:
- the parent chain is resolved bottom-up, so a three-level chain is fully
  merged before the child's overrides are applied
- each parent block is replaced by the same-named child block; a parent
  directive inside the override is replaced by the ancestor's block body
- blocks the child does not override keep the parent's body
- the result contains no extends, block or parent nodes

Input trees are never modified; merged trees are new objects, so a parsed
parent can be shared by many children and cached.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import InheritanceCycleError, InheritanceDepthError, InheritanceError
from .nodes import (
    BlockNode,
    ConditionalNode,
    ExtendsNode,
    ForNode,
    MessageNode,
    NodeList,
    ParentNode,
    SwitchNode,
    TagNode,
    TemplateNode,
    find_extends,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_INHERITANCE_DEPTH = 10
ROOT_TEMPLATE = "<template>"

# Returns the parsed (unresolved) nodes of a named template, or None when it does not exist
TemplateLoader = Callable[[str], Optional[NodeList]]

# Merged tree of a template and the number of extends hops above it
MergedTree = Tuple[NodeList, int]

NodeListTransform = Callable[[NodeList], NodeList]


def map_children(node: TemplateNode, transform: NodeListTransform) -> TemplateNode:
    """Rebuild a container node with ``transform`` applied to each of its child lists."""
    if isinstance(node, TagNode):
        return dataclasses.replace(node, children=transform(node.children))
    if isinstance(node, (ForNode, MessageNode, BlockNode)):
        return dataclasses.replace(node, body=transform(node.body))
    if isinstance(node, ConditionalNode):
        branches = tuple(
            dataclasses.replace(branch, body=transform(branch.body)) for branch in node.branches
        )
        else_body = transform(node.else_body) if node.else_body is not None else None
        return dataclasses.replace(node, branches=branches, else_body=else_body)
    if isinstance(node, SwitchNode):
        cases = tuple(dataclasses.replace(case, body=transform(case.body)) for case in node.cases)
        default_body = transform(node.default_body) if node.default_body is not None else None
        return dataclasses.replace(node, cases=cases, default_body=default_body)
    return node


def strip_directives(nodes: NodeList) -> NodeList:
    """Flatten blocks into their bodies and drop extends/parent directives."""
    result: List[TemplateNode] = []
    for node in nodes:
        if isinstance(node, BlockNode):
            result.extend(strip_directives(node.body))
        elif isinstance(node, (ExtendsNode, ParentNode)):
            continue
        else:
            result.append(map_children(node, strip_directives))
    return tuple(result)


def collect_blocks(nodes: NodeList) -> Dict[str, BlockNode]:
    """All blocks in a tree by name, outermost first."""
    blocks: Dict[str, BlockNode] = {}

    def _walk(children: NodeList) -> NodeList:
        for node in children:
            if isinstance(node, BlockNode) and node.name not in blocks:
                blocks[node.name] = node
            map_children(node, _walk)
        return children

    _walk(nodes)
    return blocks


class InheritanceResolver:
    """
    Merges extends chains.

    Handles:
    - Cycle detection via resolution stack
    - Depth limit on the extends chain
    - Caching of merged parent trees by template name
    """

    def __init__(
        self,
        loader: TemplateLoader,
        max_depth: int = DEFAULT_MAX_INHERITANCE_DEPTH,
        cache: Optional[Dict[str, MergedTree]] = None,
    ):
        """
        Args:
            loader: Returns parsed nodes of a named template, or None
            max_depth: Longest allowed extends chain
            cache: Shared cache of merged trees and their chain lengths, keyed by template name
        """
        self._loader = loader
        self._max_depth = max_depth
        self._resolution_stack: List[str] = []
        self._cache: Dict[str, MergedTree] = cache if cache is not None else {}

    def resolve(self, nodes: NodeList, name: str = ROOT_TEMPLATE) -> NodeList:
        """
        Produce the effective AST of a template.

        Args:
            nodes: Parsed nodes of the template
            name: Template name, used for cycle detection

        Returns:
            Merged tree without extends/block/parent nodes

        Raises:
            InheritanceCycleError: If the extends chain revisits a template
            InheritanceDepthError: If the chain is longer than the maximum
            InheritanceError: If a parent template does not exist
        """
        if find_extends(nodes) is None:
            return strip_directives(nodes)
        return strip_directives(self._merge(nodes, name)[0])

    def _merge(self, nodes: NodeList, name: str) -> MergedTree:
        """Apply the template's blocks onto its resolved parent, keeping block nodes."""
        extends = find_extends(nodes)
        if extends is None:
            return nodes, 0

        if name in self._resolution_stack:
            cycle = self._resolution_stack[self._resolution_stack.index(name):] + [name]
            raise InheritanceCycleError(chain=cycle)

        self._resolution_stack.append(name)
        try:
            if len(self._resolution_stack) > self._max_depth:
                raise InheritanceDepthError(
                    chain=self._resolution_stack + [extends.template],
                    max_depth=self._max_depth,
                )
            parent_tree, parent_hops = self._load_merged(extends.template)
            overrides = collect_blocks(nodes)
            logger.debug(
                f"Merging '{name}' onto '{extends.template}' "
                f"({len(overrides)} block override(s))"
            )
            return self._apply_overrides(parent_tree, overrides), parent_hops + 1
        finally:
            self._resolution_stack.pop()

    def _load_merged(self, name: str) -> MergedTree:
        if name in self._resolution_stack:
            cycle = self._resolution_stack[self._resolution_stack.index(name):] + [name]
            raise InheritanceCycleError(chain=cycle)
        cached = self._cache.get(name)
        if cached is not None:
            # A cached chain still counts against the depth limit
            if len(self._resolution_stack) + cached[1] > self._max_depth:
                raise InheritanceDepthError(
                    chain=self._resolution_stack + [name],
                    max_depth=self._max_depth,
                )
            return cached

        nodes = self._loader(name)
        if nodes is None:
            parent = self._resolution_stack[-1] if self._resolution_stack else ROOT_TEMPLATE
            raise InheritanceError(f"parent template not found: '{name}' (extended by '{parent}')")

        merged = self._merge(nodes, name)
        self._cache[name] = merged
        return merged

    def _apply_overrides(self, nodes: NodeList, overrides: Dict[str, BlockNode]) -> NodeList:
        result: List[TemplateNode] = []
        for node in nodes:
            if isinstance(node, BlockNode):
                parent_body = self._apply_overrides(node.body, overrides)
                override = overrides.get(node.name)
                if override is None:
                    result.append(dataclasses.replace(node, body=parent_body))
                else:
                    body = _substitute_parent(override.body, parent_body)
                    result.append(dataclasses.replace(node, body=body))
            else:
                result.append(map_children(node, lambda children: self._apply_overrides(children, overrides)))
        return tuple(result)


def _substitute_parent(body: NodeList, parent_body: NodeList) -> NodeList:
    """Splice ``parent_body`` in place of every parent directive in ``body``."""
    result: List[TemplateNode] = []
    for node in body:
        if isinstance(node, ParentNode):
            result.extend(parent_body)
        else:
            result.append(map_children(node, lambda children: _substitute_parent(children, parent_body)))
    return tuple(result)


__all__ = [
    "DEFAULT_MAX_INHERITANCE_DEPTH",
    "ROOT_TEMPLATE",
    "TemplateLoader",
    "MergedTree",
    "InheritanceResolver",
    "map_children",
    "strip_directives",
    "collect_blocks",
]
