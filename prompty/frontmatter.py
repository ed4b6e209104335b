"""
Front matter for prompt templates.

A template may start with a YAML block between ``---`` lines, or with a
``{~prompty.config~}...{~/prompty.config~}`` block holding JSON. Either
form describes model parameters, inputs and sample data; it is split off
before the body is tokenized and never rendered.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .context import lookup_path
from .errors import FrontmatterError

_yaml = YAML(typ="safe")

# Pattern for YAML front matter: starts with ---, ends with ---
_FRONTMATTER_PATTERN = re.compile(
    r'^---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|$)',
    re.DOTALL
)

CONFIG_BLOCK_TAG = "prompty.config"


@dataclass
class PromptConfig:
    """
    Parsed front matter.

    Well-known keys get their own fields; everything is also kept in
    ``raw`` for dotted lookups by the ``prompty.config`` tag.
    """
    name: str = ""
    description: str = ""
    model: Dict[str, Any] = field(default_factory=dict)
    inputs: Dict[str, Any] = field(default_factory=dict)
    sample: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PromptConfig:
        """Create from a parsed YAML or JSON mapping."""
        def _mapping(key: str) -> Dict[str, Any]:
            value = data.get(key) or {}
            if not isinstance(value, dict):
                raise FrontmatterError(f"front matter key '{key}' must be a mapping")
            return dict(value)

        return cls(
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            model=_mapping("model"),
            inputs=_mapping("inputs"),
            sample=_mapping("sample"),
            raw=dict(data),
        )

    def get(self, path: str) -> Tuple[Any, bool]:
        """Dotted lookup into the raw front matter."""
        return lookup_path(self.raw, path)


def split_frontmatter(
    source: str,
    open_delim: str = "{~",
    close_delim: str = "~}",
) -> Tuple[Optional[PromptConfig], str]:
    """
    Separate front matter from the template body.

    Args:
        source: Full template source
        open_delim: Tag open delimiter, for the JSON config block form
        close_delim: Tag close delimiter

    Returns:
        Tuple of (config, body); config is None when the source has no front matter

    Raises:
        FrontmatterError: When a front matter block is present but malformed
    """
    if source.startswith("---"):
        match = _FRONTMATTER_PATTERN.match(source)
        if match:
            try:
                data = _yaml.load(match.group(1))
            except YAMLError as e:
                raise FrontmatterError(f"failed to parse YAML front matter: {e}") from e
            return _to_config(data), source[match.end():]
        return None, source

    stripped = source.lstrip()
    open_tag = f"{open_delim}{CONFIG_BLOCK_TAG}{close_delim}"
    if stripped.startswith(open_tag):
        close_tag = f"{open_delim}/{CONFIG_BLOCK_TAG}{close_delim}"
        start = len(source) - len(stripped) + len(open_tag)
        end = source.find(close_tag, start)
        if end < 0:
            raise FrontmatterError("config block not properly closed")
        try:
            data = json.loads(source[start:end])
        except json.JSONDecodeError as e:
            raise FrontmatterError(f"failed to parse config block JSON: {e}") from e
        body = source[end + len(close_tag):]
        return _to_config(data), body.lstrip("\r\n")

    return None, source


def _to_config(data: Any) -> PromptConfig:
    if data is None:
        return PromptConfig()
    if not isinstance(data, dict):
        raise FrontmatterError("front matter must be a mapping")
    return PromptConfig.from_dict(data)


__all__ = ["PromptConfig", "split_frontmatter", "CONFIG_BLOCK_TAG"]
