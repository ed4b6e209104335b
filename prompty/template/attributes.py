"""
Tag attribute set.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Tuple

TRUE_VALUES = ("true", "1", "yes")


class AttributeSet:
    """
    Ordered, read-only mapping of attribute names to string values.

    Built from the raw (name, value) pairs of a tag; when a name repeats
    the last occurrence wins.
    """

    __slots__ = ("_values",)

    def __init__(self, pairs: Iterable[Tuple[str, str]] = ()):
        values: Dict[str, str] = {}
        for name, value in pairs:
            values[name] = value
        self._values = values

    @classmethod
    def from_dict(cls, values: Dict[str, str]) -> AttributeSet:
        return cls(values.items())

    def get(self, name: str) -> Optional[str]:
        return self._values.get(name)

    def get_default(self, name: str, default: str) -> str:
        value = self._values.get(name)
        return default if value is None else value

    def get_bool(self, name: str, default: bool = False) -> bool:
        """Interpret an attribute as a flag (``true``/``1``/``yes``, case-insensitive)."""
        value = self._values.get(name)
        if value is None:
            return default
        return value.strip().lower() in TRUE_VALUES

    def has(self, name: str) -> bool:
        return name in self._values

    def keys(self) -> List[str]:
        return list(self._values)

    def items(self) -> List[Tuple[str, str]]:
        return list(self._values.items())

    def to_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def without(self, *names: str) -> AttributeSet:
        """Copy of the set minus the given names."""
        return AttributeSet((k, v) for k, v in self._values.items() if k not in names)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AttributeSet):
            return NotImplemented
        return list(self._values.items()) == list(other._values.items())

    def __hash__(self) -> int:
        return hash(tuple(self._values.items()))

    def __repr__(self) -> str:
        inner = ", ".join(f'{k}="{v}"' for k, v in self._values.items())
        return f"AttributeSet({inner})"


__all__ = ["AttributeSet", "TRUE_VALUES"]
