"""
Validation issues collected while parsing.

The parser keeps going after a structural problem so a single pass can
report every issue in a template. Only ERROR issues make a template
unusable for execution.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from .tokens import Position


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class ValidationIssue:
    severity: Severity
    message: str
    position: Position = field(default_factory=Position)
    tag_name: str = ""

    @property
    def line(self) -> int:
        return self.position.line

    @property
    def column(self) -> int:
        return self.position.column

    def __str__(self) -> str:
        tag = f" [{self.tag_name}]" if self.tag_name else ""
        return f"{self.position}: {self.severity.value}: {self.message}{tag}"


@dataclass
class ValidationResult:
    """Ordered list of issues found in one template."""
    issues: List[ValidationIssue] = field(default_factory=list)

    def add(self, severity: Severity, message: str, position: Position, tag_name: str = "") -> None:
        self.issues.append(ValidationIssue(severity, message, position, tag_name))

    def add_error(self, message: str, position: Position, tag_name: str = "") -> None:
        self.add(Severity.ERROR, message, position, tag_name)

    def add_warning(self, message: str, position: Position, tag_name: str = "") -> None:
        self.add(Severity.WARNING, message, position, tag_name)

    def add_info(self, message: str, position: Position, tag_name: str = "") -> None:
        self.add(Severity.INFO, message, position, tag_name)

    def extend(self, other: ValidationResult) -> None:
        self.issues.extend(other.issues)

    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    def infos(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.INFO]

    def has_errors(self) -> bool:
        return any(i.severity == Severity.ERROR for i in self.issues)

    def has_warnings(self) -> bool:
        return any(i.severity == Severity.WARNING for i in self.issues)

    def is_valid(self) -> bool:
        return not self.has_errors()

    def __str__(self) -> str:
        if not self.issues:
            return "no issues"
        return "\n".join(str(i) for i in self.issues)


__all__ = ["Severity", "ValidationIssue", "ValidationResult"]
