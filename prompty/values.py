"""
Conversions between template data values and text.
"""

from __future__ import annotations

import datetime as dt
import json
from typing import Any, Optional


def stringify(value: Any) -> str:
    """
    Render a data value as template text.

    None renders as "", booleans as true/false, whole floats without a
    fractional part, collections as JSON.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e16:
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (dt.datetime, dt.date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def as_number(value: Any) -> Optional[float]:
    """Numeric view of a value, or None when it has none. Booleans are not numbers."""
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def is_truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) > 0
    return True


def type_name(value: Any) -> str:
    """Language-neutral type name used by ``typeOf``."""
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "slice"
    if isinstance(value, dict):
        return "map"
    if isinstance(value, (dt.datetime, dt.date)):
        return "time"
    return type(value).__name__


__all__ = ["stringify", "is_number", "as_number", "is_truthy", "type_name"]
