"""
Named-template lookup used by includes and inheritance.

The engine only needs synchronous lookup by name; anything backed by a
database or filesystem plugs in through TemplateProvider.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Protocol

from .errors import RegistrationError
from .template.shapes import RESERVED_PREFIX

logger = logging.getLogger(__name__)


class TemplateProvider(Protocol):
    """Read interface over a named-template table."""

    def has_template(self, name: str) -> bool:
        ...

    def get_template_source(self, name: str) -> Optional[str]:
        ...


class MemoryTemplateStore:
    """In-memory named-template table."""

    def __init__(self):
        self._sources: Dict[str, str] = {}
        self._lock = threading.RLock()

    def check_name(self, name: str) -> None:
        """
        Raises:
            RegistrationError: Empty name, reserved ``prompty.`` prefix or name already taken
        """
        if not name:
            raise RegistrationError("template name cannot be empty")
        if name.startswith(RESERVED_PREFIX):
            raise RegistrationError(f"template name uses reserved prompty.* namespace: {name}")
        with self._lock:
            if name in self._sources:
                raise RegistrationError(f"template already registered: {name}")

    def add(self, name: str, source: str) -> None:
        """
        Store a template source under ``name``.

        Raises:
            RegistrationError: Empty name, reserved ``prompty.`` prefix or duplicate name
        """
        with self._lock:
            self.check_name(name)
            self._sources[name] = source
        logger.debug(f"Stored template '{name}' ({len(source)} chars)")

    def remove(self, name: str) -> bool:
        with self._lock:
            return self._sources.pop(name, None) is not None

    def has_template(self, name: str) -> bool:
        with self._lock:
            return name in self._sources

    def get_template_source(self, name: str) -> Optional[str]:
        with self._lock:
            return self._sources.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._sources)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sources)


__all__ = ["TemplateProvider", "MemoryTemplateStore"]
