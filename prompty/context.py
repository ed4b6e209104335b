"""
Hierarchical variable context.

The outermost scope holds the data supplied by the caller; loop bodies and
includes push child scopes over it. A dotted path is resolved in the
innermost scope that binds its first segment. Lookups never raise: a missing
path is reported as not found.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .values import stringify

PATH_SEPARATOR = "."

_MISSING = object()


def lookup_path(data: Any, path: str) -> Tuple[Any, bool]:
    """
    Walk ``path`` through nested mappings and sequences.

    Returns:
        (value, found)
    """
    if not path:
        return None, False
    current = data
    for segment in path.split(PATH_SEPARATOR):
        if isinstance(current, Mapping):
            current = current.get(segment, _MISSING)
            if current is _MISSING:
                return None, False
        elif isinstance(current, (list, tuple)) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return None, False
            current = current[index]
        else:
            return None, False
    return current, True


def flatten_paths(data: Mapping[str, Any], prefix: str = "") -> List[str]:
    """All dotted paths in a nested mapping, parents before children."""
    paths: List[str] = []
    for key, value in data.items():
        path = f"{prefix}{PATH_SEPARATOR}{key}" if prefix else str(key)
        paths.append(path)
        if isinstance(value, Mapping):
            paths.extend(flatten_paths(value, path))
    return paths


class Context:
    """One scope in the variable chain."""

    def __init__(self, data: Optional[Mapping[str, Any]] = None, parent: Optional[Context] = None):
        self._data: Dict[str, Any] = dict(data or {})
        self._parent = parent

    @property
    def data(self) -> Dict[str, Any]:
        """Variables bound in this scope only."""
        return self._data

    @property
    def parent(self) -> Optional[Context]:
        return self._parent

    def get(self, path: str) -> Tuple[Any, bool]:
        """Resolve a dotted path through the scope chain."""
        if not path:
            return None, False
        head = path.split(PATH_SEPARATOR, 1)[0]
        scope: Optional[Context] = self
        while scope is not None:
            if head in scope._data:
                return lookup_path(scope._data, path)
            scope = scope._parent
        return None, False

    def get_default(self, path: str, default: Any) -> Any:
        value, found = self.get(path)
        return value if found else default

    def get_string(self, path: str, default: str = "") -> str:
        value, found = self.get(path)
        return stringify(value) if found else default

    def has(self, path: str) -> bool:
        return self.get(path)[1]

    def child(self, data: Optional[Mapping[str, Any]] = None) -> Context:
        """New scope whose lookups fall back to this one."""
        return Context(data, parent=self)

    def keys(self) -> List[str]:
        """Names bound in this scope, sorted."""
        return sorted(self._data)

    def all_keys(self) -> List[str]:
        """Names visible from this scope through the whole chain, sorted."""
        names = set(self._data)
        scope = self._parent
        while scope is not None:
            names.update(scope._data)
            scope = scope._parent
        return sorted(names)

    def flattened(self) -> Dict[str, Any]:
        """Merged view of the chain, inner scopes shadowing outer ones."""
        chain: List[Context] = []
        scope: Optional[Context] = self
        while scope is not None:
            chain.append(scope)
            scope = scope._parent
        merged: Dict[str, Any] = {}
        for scope in reversed(chain):
            merged.update(scope._data)
        return merged

    def __iter__(self) -> Iterator[str]:
        return iter(self.all_keys())

    def __repr__(self) -> str:
        return f"Context(keys={self.all_keys()})"


__all__ = ["Context", "lookup_path", "flatten_paths", "PATH_SEPARATOR"]
