"""
Resolver registry: tag name to resolver table.

Only resolver-backed tags live in the table (``prompty.env``,
``prompty.config`` and custom tags). Structural built-ins such as
``prompty.var``, ``prompty.if`` and ``prompty.for`` are rendered by the
parser and executor directly; their names are reserved rather than stored,
so ``get()`` returns None and ``has()`` returns False for them.

Registration is expected to happen once, before renders start. A duplicate
name, or a reserved structural name, is rejected immediately.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from ..errors import RegistrationError
from ..template.shapes import BUILTIN_SHAPES, TAG_CONFIG, TAG_ENV, canonical_tag_name
from .base import Resolver

logger = logging.getLogger(__name__)

# Built-ins handled by the parser and executor themselves; no resolver may claim them
STRUCTURAL_TAGS = frozenset(name for name in BUILTIN_SHAPES if name not in (TAG_ENV, TAG_CONFIG))


class ResolverRegistry:
    """Thread-safe table of resolvers keyed by full tag name."""

    def __init__(self):
        self._resolvers: Dict[str, Resolver] = {}
        self._lock = threading.RLock()

    def register(self, resolver: Resolver) -> None:
        """
        Add a resolver.

        Raises:
            RegistrationError: Empty name, structural built-in name or duplicate
        """
        name = resolver.tag_name
        if not name:
            raise RegistrationError("resolver tag name cannot be empty")
        if canonical_tag_name(name) in STRUCTURAL_TAGS:
            raise RegistrationError(f"tag name is reserved for a built-in: {name}")
        with self._lock:
            if name in self._resolvers:
                raise RegistrationError(f"resolver already registered: {name}")
            self._resolvers[name] = resolver
        logger.debug(f"Registered resolver '{name}'")

    def get(self, name: str) -> Optional[Resolver]:
        with self._lock:
            return self._resolvers.get(name)

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._resolvers

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._resolvers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._resolvers)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)


__all__ = ["ResolverRegistry", "STRUCTURAL_TAGS"]
