"""
Function table callable from expressions.

A function declares its arity bounds; ``max_args == -1`` means variadic.
Arity is checked before the function body runs. Failures inside the body
are wrapped in FunctionError with the function name.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..errors import FunctionError, RegistrationError
from ..values import as_number, is_number, is_truthy, stringify, type_name

logger = logging.getLogger(__name__)

VARIADIC = -1

FuncImpl = Callable[[List[Any]], Any]


@dataclass(frozen=True)
class Func:
    """Host function exposed to expressions."""
    name: str
    min_args: int
    max_args: int
    fn: FuncImpl

    def check_arity(self, count: int) -> None:
        if count < self.min_args:
            raise FunctionError(
                f"too few arguments for {self.name}: expected at least {self.min_args}, got {count}"
            )
        if self.max_args != VARIADIC and count > self.max_args:
            raise FunctionError(
                f"too many arguments for {self.name}: expected at most {self.max_args}, got {count}"
            )


class FuncRegistry:
    """
    Name-keyed function table.

    Registration is expected to finish before concurrent evaluation starts;
    the lock only keeps late registration from racing with lookups.
    """

    def __init__(self):
        self._funcs: Dict[str, Func] = {}
        self._lock = threading.RLock()

    def register(self, func: Func) -> None:
        """
        Add a function.

        Raises:
            RegistrationError: Empty name, missing body, bad arity or duplicate name
        """
        if not func.name:
            raise RegistrationError("function name cannot be empty")
        if func.fn is None:
            raise RegistrationError(f"function {func.name} has no implementation")
        if func.min_args < 0 or (func.max_args != VARIADIC and func.max_args < func.min_args):
            raise RegistrationError(f"invalid arity for function {func.name}")
        with self._lock:
            if func.name in self._funcs:
                raise RegistrationError(f"function already registered: {func.name}")
            self._funcs[func.name] = func
        logger.debug(f"Registered function '{func.name}'")

    def get(self, name: str) -> Optional[Func]:
        with self._lock:
            return self._funcs.get(name)

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._funcs

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._funcs)

    def call(self, name: str, args: List[Any]) -> Any:
        """
        Invoke a function by name.

        Raises:
            FunctionError: Unknown name, arity mismatch or failure inside the body
        """
        func = self.get(name)
        if func is None:
            raise FunctionError(f"function not found: {name}")
        func.check_arity(len(args))
        try:
            return func.fn(args)
        except FunctionError:
            raise
        except Exception as e:
            raise FunctionError(f"function {name} failed: {e}") from e

    def __len__(self) -> int:
        with self._lock:
            return len(self._funcs)


# Argument helpers

def _expect_string(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected string argument, got {type_name(value)}")
    return value


def _expect_int(value: Any) -> int:
    number = as_number(value)
    if number is None or not float(number).is_integer():
        raise TypeError(f"expected integer argument, got {type_name(value)}")
    return int(number)


def _expect_map(value: Any) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise TypeError(f"expected map argument, got {type_name(value)}")
    return value


# Strings

def _contains(args: List[Any]) -> bool:
    haystack, needle = args
    if isinstance(haystack, (list, tuple)):
        return needle in haystack
    if isinstance(haystack, dict):
        return needle in haystack
    return _expect_string(needle) in _expect_string(haystack)


def _trim_prefix(args: List[Any]) -> str:
    value, prefix = _expect_string(args[0]), _expect_string(args[1])
    return value[len(prefix):] if prefix and value.startswith(prefix) else value


def _trim_suffix(args: List[Any]) -> str:
    value, suffix = _expect_string(args[0]), _expect_string(args[1])
    return value[:-len(suffix)] if suffix and value.endswith(suffix) else value


def _join(args: List[Any]) -> str:
    items, separator = args
    if not isinstance(items, (list, tuple)):
        raise TypeError(f"expected slice argument, got {type_name(items)}")
    return _expect_string(separator).join(stringify(item) for item in items)


# Collections

def _len(args: List[Any]) -> int:
    value = args[0]
    if value is None:
        return 0
    if isinstance(value, (str, list, tuple, dict)):
        return len(value)
    raise TypeError(f"cannot take length of {type_name(value)}")


def _first(args: List[Any]) -> Any:
    value = args[0]
    if not isinstance(value, (str, list, tuple)):
        raise TypeError(f"expected slice or string, got {type_name(value)}")
    return value[0] if value else None


def _last(args: List[Any]) -> Any:
    value = args[0]
    if not isinstance(value, (str, list, tuple)):
        raise TypeError(f"expected slice or string, got {type_name(value)}")
    return value[-1] if value else None


def _keys(args: List[Any]) -> List[str]:
    return sorted(str(k) for k in _expect_map(args[0]))


def _values(args: List[Any]) -> List[Any]:
    mapping = _expect_map(args[0])
    return [mapping[k] for k in sorted(mapping, key=str)]


def _has(args: List[Any]) -> bool:
    return _expect_string(args[1]) in _expect_map(args[0])


# Types

def _to_int(args: List[Any]) -> int:
    value = args[0]
    if isinstance(value, bool):
        return 1 if value else 0
    number = as_number(value)
    if number is None:
        raise TypeError(f"cannot convert {type_name(value)} to int")
    return int(number)


def _to_float(args: List[Any]) -> float:
    value = args[0]
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    number = as_number(value)
    if number is None:
        raise TypeError(f"cannot convert {type_name(value)} to float")
    return number


def _to_bool(args: List[Any]) -> bool:
    value = args[0]
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("true", "1", "yes"):
            return True
        if normalized in ("false", "0", "no", ""):
            return False
        raise TypeError(f"cannot convert '{value}' to bool")
    return is_truthy(value)


def _is_empty(args: List[Any]) -> bool:
    value = args[0]
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) == 0
    return False


def _default(args: List[Any]) -> Any:
    value, fallback = args
    return fallback if value is None or value == "" else value


def _coalesce(args: List[Any]) -> Any:
    for value in args:
        if value is not None and value != "":
            return value
    return None


# Dates

_DATE_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d-%m-%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%a, %d %b %Y %H:%M:%S %z",
]


def _aware(value: dt.datetime) -> dt.datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=dt.timezone.utc)


def _parse_time_string(text: str) -> dt.datetime:
    candidate = text.strip()
    iso = candidate[:-1] + "+00:00" if candidate.endswith("Z") else candidate
    try:
        return _aware(dt.datetime.fromisoformat(iso))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return _aware(dt.datetime.strptime(candidate, fmt))
        except ValueError:
            continue
    raise ValueError(f"invalid time format: '{text}'")


def _to_time(value: Any) -> dt.datetime:
    if isinstance(value, dt.datetime):
        return _aware(value)
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day, tzinfo=dt.timezone.utc)
    if isinstance(value, str):
        return _parse_time_string(value)
    if is_number(value):
        return dt.datetime.fromtimestamp(value, tz=dt.timezone.utc)
    raise TypeError(f"expected time argument, got {type_name(value)}")


def _parse_date(args: List[Any]) -> dt.datetime:
    text = _expect_string(args[0])
    if len(args) > 1:
        return _aware(dt.datetime.strptime(text, _expect_string(args[1])))
    return _parse_time_string(text)


def _diff_days(args: List[Any]) -> int:
    delta = _to_time(args[1]) - _to_time(args[0])
    return int(delta.total_seconds() / 86400)


def register_builtin_funcs(registry: FuncRegistry) -> None:
    """Register the standard function library."""
    builtins = [
        # strings
        Func("upper", 1, 1, lambda a: _expect_string(a[0]).upper()),
        Func("lower", 1, 1, lambda a: _expect_string(a[0]).lower()),
        Func("trim", 1, 1, lambda a: _expect_string(a[0]).strip()),
        Func("trimPrefix", 2, 2, _trim_prefix),
        Func("trimSuffix", 2, 2, _trim_suffix),
        Func("hasPrefix", 2, 2, lambda a: _expect_string(a[0]).startswith(_expect_string(a[1]))),
        Func("hasSuffix", 2, 2, lambda a: _expect_string(a[0]).endswith(_expect_string(a[1]))),
        Func("contains", 2, 2, _contains),
        Func("replace", 3, 3, lambda a: _expect_string(a[0]).replace(_expect_string(a[1]), _expect_string(a[2]))),
        Func("split", 2, 2, lambda a: _expect_string(a[0]).split(_expect_string(a[1]))),
        Func("join", 2, 2, _join),
        # collections
        Func("len", 1, 1, _len),
        Func("first", 1, 1, _first),
        Func("last", 1, 1, _last),
        Func("keys", 1, 1, _keys),
        Func("values", 1, 1, _values),
        Func("has", 2, 2, _has),
        # types
        Func("toString", 1, 1, lambda a: stringify(a[0])),
        Func("toInt", 1, 1, _to_int),
        Func("toFloat", 1, 1, _to_float),
        Func("toBool", 1, 1, _to_bool),
        Func("typeOf", 1, 1, lambda a: type_name(a[0])),
        Func("isNil", 1, 1, lambda a: a[0] is None),
        Func("isEmpty", 1, 1, _is_empty),
        # util
        Func("default", 2, 2, _default),
        Func("coalesce", 1, VARIADIC, _coalesce),
        # dates
        Func("now", 0, 0, lambda a: dt.datetime.now(dt.timezone.utc)),
        Func("formatDate", 2, 2, lambda a: _to_time(a[0]).strftime(_expect_string(a[1]))),
        Func("parseDate", 1, 2, _parse_date),
        Func("addDays", 2, 2, lambda a: _to_time(a[0]) + dt.timedelta(days=_expect_int(a[1]))),
        Func("addHours", 2, 2, lambda a: _to_time(a[0]) + dt.timedelta(hours=_expect_int(a[1]))),
        Func("addMinutes", 2, 2, lambda a: _to_time(a[0]) + dt.timedelta(minutes=_expect_int(a[1]))),
        Func("diffDays", 2, 2, _diff_days),
        Func("year", 1, 1, lambda a: _to_time(a[0]).year),
        Func("month", 1, 1, lambda a: _to_time(a[0]).month),
        Func("day", 1, 1, lambda a: _to_time(a[0]).day),
        Func("weekday", 1, 1, lambda a: _to_time(a[0]).strftime("%A")),
        Func("isAfter", 2, 2, lambda a: _to_time(a[0]) > _to_time(a[1])),
        Func("isBefore", 2, 2, lambda a: _to_time(a[0]) < _to_time(a[1])),
    ]
    for func in builtins:
        registry.register(func)


def default_func_registry() -> FuncRegistry:
    """Fresh registry holding the standard function library."""
    registry = FuncRegistry()
    register_builtin_funcs(registry)
    return registry


__all__ = [
    "VARIADIC",
    "Func",
    "FuncImpl",
    "FuncRegistry",
    "register_builtin_funcs",
    "default_func_registry",
]
