"""
Conversation message markers.

A rendered ``prompty.message`` block is wrapped in NUL-delimited markers
carrying its role and cache hint. ``extract_messages`` turns rendered output
back into a list of messages for chat-style APIs. Text outside any message
block is ignored by extraction.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

MESSAGE_START_PREFIX = "\x00MSG_START:"
MESSAGE_START_SUFFIX = ":"
MESSAGE_END = "\x00MSG_END\x00"

_MESSAGE_PATTERN = re.compile(
    r"\x00MSG_START:(?P<role>[^:\x00]*):(?P<cache>[^:\x00]*):(?P<content>.*?)\x00MSG_END\x00",
    re.DOTALL,
)


@dataclass(frozen=True)
class Message:
    role: str
    content: str
    cache: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"role": self.role, "content": self.content}
        if self.cache:
            data["cache"] = self.cache
        return data


def sanitize_content(text: str) -> str:
    """Drop NUL bytes so message content cannot forge markers."""
    return text.replace("\x00", "")


def wrap_message(role: str, content: str, cache: Optional[str] = None) -> str:
    """Surround rendered content with start/end markers."""
    return (
        f"{MESSAGE_START_PREFIX}{role}{MESSAGE_START_SUFFIX}{cache or ''}{MESSAGE_START_SUFFIX}"
        f"{sanitize_content(content)}{MESSAGE_END}"
    )


def extract_messages(output: str) -> List[Message]:
    """
    Parse message markers out of rendered output.

    Returns:
        Messages in output order with surrounding whitespace stripped
    """
    messages: List[Message] = []
    for match in _MESSAGE_PATTERN.finditer(output):
        messages.append(Message(
            role=match.group("role"),
            content=match.group("content").strip(),
            cache=match.group("cache") or None,
        ))
    return messages


def has_messages(output: str) -> bool:
    return MESSAGE_START_PREFIX in output


def strip_message_markers(output: str) -> str:
    """Rendered output with markers removed and message bodies kept in place."""
    return _MESSAGE_PATTERN.sub(lambda m: m.group("content"), output)


__all__ = [
    "Message",
    "MESSAGE_START_PREFIX",
    "MESSAGE_END",
    "sanitize_content",
    "wrap_message",
    "extract_messages",
    "has_messages",
    "strip_message_markers",
]
