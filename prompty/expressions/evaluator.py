"""
Evaluator for ``eval`` expressions.

Identifiers resolve through the active Context. A path that does not
resolve evaluates to None (the absent value): falsy, and equal only to
another absent value or the ``nil`` literal. ``&&`` and ``||`` short-circuit.
"""

from __future__ import annotations

from typing import Any, Protocol, Tuple, cast

from ..errors import ExpressionEvaluationError
from ..values import as_number, is_number, is_truthy, type_name
from .functions import FuncRegistry
from .model import (
    BinaryExpr,
    CallExpr,
    Expr,
    ExprType,
    GroupExpr,
    IdentifierExpr,
    LiteralExpr,
    UnaryExpr,
)
from .parser import ExprParser


class VariableSource(Protocol):
    """Anything that resolves dotted paths, typically a Context."""

    def get(self, path: str) -> Tuple[Any, bool]:
        ...


class ExprEvaluator:
    """
    Evaluates expression ASTs against a variable source.

    Function calls go through the given FuncRegistry; unknown functions and
    arity mismatches surface as FunctionError.
    """

    def __init__(self, funcs: FuncRegistry, variables: VariableSource):
        self.funcs = funcs
        self.variables = variables

    def evaluate(self, expr: Expr) -> Any:
        """
        Compute the value of an expression.

        Raises:
            ExpressionEvaluationError: On a type mismatch
            FunctionError: On a failing function call
        """
        expr_type = expr.get_type()

        if expr_type == ExprType.LITERAL:
            return cast(LiteralExpr, expr).value
        elif expr_type == ExprType.IDENTIFIER:
            value, found = self.variables.get(cast(IdentifierExpr, expr).path)
            return value if found else None
        elif expr_type == ExprType.GROUP:
            return self.evaluate(cast(GroupExpr, expr).inner)
        elif expr_type == ExprType.UNARY:
            return self._evaluate_unary(cast(UnaryExpr, expr))
        elif expr_type == ExprType.BINARY:
            return self._evaluate_binary(cast(BinaryExpr, expr))
        elif expr_type == ExprType.CALL:
            return self._evaluate_call(cast(CallExpr, expr))
        else:
            raise ExpressionEvaluationError(f"unknown expression type: {expr_type}")

    def evaluate_bool(self, expr: Expr) -> bool:
        return is_truthy(self.evaluate(expr))

    def _evaluate_unary(self, expr: UnaryExpr) -> Any:
        if expr.operator == "!":
            return not is_truthy(self.evaluate(expr.operand))
        raise ExpressionEvaluationError(f"unknown unary operator: {expr.operator}")

    def _evaluate_binary(self, expr: BinaryExpr) -> Any:
        operator = expr.operator

        if operator == "&&":
            return is_truthy(self.evaluate(expr.left)) and is_truthy(self.evaluate(expr.right))
        if operator == "||":
            return is_truthy(self.evaluate(expr.left)) or is_truthy(self.evaluate(expr.right))

        left = self.evaluate(expr.left)
        right = self.evaluate(expr.right)

        if operator == "==":
            return values_equal(left, right)
        if operator == "!=":
            return not values_equal(left, right)
        if operator in ("<", "<=", ">", ">="):
            return compare_ordered(operator, left, right)
        raise ExpressionEvaluationError(f"unknown operator: {operator}")

    def _evaluate_call(self, expr: CallExpr) -> Any:
        args = [self.evaluate(arg) for arg in expr.args]
        return self.funcs.call(expr.name, args)


def values_equal(left: Any, right: Any) -> bool:
    """
    Equality used by ``==``.

    When either side is a number both sides are compared as floats; a side
    without a numeric reading makes the values unequal.
    """
    if left is None or right is None:
        return left is None and right is None
    if is_number(left) or is_number(right):
        left_number, right_number = as_number(left), as_number(right)
        if left_number is None or right_number is None:
            return False
        return left_number == right_number
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return left == right


def compare_ordered(operator: str, left: Any, right: Any) -> bool:
    """
    Ordering used by ``<``, ``<=``, ``>``, ``>=``.

    Raises:
        ExpressionEvaluationError: When the operands are neither both numeric nor both strings
    """
    if is_number(left) or is_number(right):
        left_value, right_value = as_number(left), as_number(right)
        if left_value is None or right_value is None:
            raise ExpressionEvaluationError(
                f"type mismatch in comparison: {type_name(left)} {operator} {type_name(right)}"
            )
    elif isinstance(left, str) and isinstance(right, str):
        left_value, right_value = left, right
    else:
        raise ExpressionEvaluationError(
            f"type mismatch in comparison: {type_name(left)} {operator} {type_name(right)}"
        )

    if operator == "<":
        return left_value < right_value
    if operator == "<=":
        return left_value <= right_value
    if operator == ">":
        return left_value > right_value
    return left_value >= right_value


def evaluate_expression(text: str, funcs: FuncRegistry, variables: VariableSource) -> Any:
    """Parse and evaluate an expression string in one step."""
    return ExprEvaluator(funcs, variables).evaluate(ExprParser().parse(text))


def evaluate_condition(text: str, funcs: FuncRegistry, variables: VariableSource) -> bool:
    """Parse and evaluate an expression string as a condition."""
    return is_truthy(evaluate_expression(text, funcs, variables))


__all__ = [
    "VariableSource",
    "ExprEvaluator",
    "values_equal",
    "compare_ordered",
    "evaluate_expression",
    "evaluate_condition",
]
