"""
Expression language used in ``eval`` attributes of conditional tags.
"""

from __future__ import annotations

from .evaluator import ExprEvaluator, evaluate_condition, evaluate_expression
from .functions import VARIADIC, Func, FuncRegistry, default_func_registry
from .model import Expr
from .parser import ExprParser, parse_expression

__all__ = [
    "Expr",
    "ExprParser",
    "parse_expression",
    "ExprEvaluator",
    "evaluate_expression",
    "evaluate_condition",
    "Func",
    "FuncRegistry",
    "VARIADIC",
    "default_func_registry",
]
