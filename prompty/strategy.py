"""
Error-handling strategies applied when a node fails to render.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorStrategy(Enum):
    """
    Per-node failure policy.

    THROW    abort the render and propagate the error
    DEFAULT  substitute the node's ``default`` attribute (or "")
    REMOVE   substitute "" silently
    KEEPRAW  substitute the tag's original source text
    LOG      log a warning and substitute ""
    """
    THROW = "throw"
    DEFAULT = "default"
    REMOVE = "remove"
    KEEPRAW = "keepraw"
    LOG = "log"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional[ErrorStrategy]:
        """
        Parse an ``onerror`` attribute value.

        Returns None for a missing value.

        Raises:
            ValueError: For an unknown strategy name
        """
        if value is None:
            return None
        normalized = value.strip().lower()
        for strategy in cls:
            if strategy.value == normalized:
                return strategy
        valid = ", ".join(s.value for s in cls)
        raise ValueError(f"invalid error strategy '{value}' (expected one of: {valid})")


__all__ = ["ErrorStrategy"]
