from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from .codec import AttributeCodec
from .errors import ValidationError

_OPERATORS = {
    "=": "EQ",
    "==": "EQ",
    "!=": "NE",
    "<": "LT",
    "<=": "LE",
    ">": "GT",
    ">=": "GE",
    ">=<=": "BETWEEN",
    "between": "BETWEEN",
    "beginsWith": "BEGINS_WITH",
    "startsWith": "BEGINS_WITH",
    "notContains": "NOT_CONTAINS",
    "doesNotContain": "NOT_CONTAINS",
}

# Comparisons that hold for every stored value once an empty operand is dropped.
_EMPTY_MEANS_PRESENT = frozenset({"NE", "GT", "BEGINS_WITH", "NOT_CONTAINS"})

_SCALARS = (str, int, float, Decimal, bytes, bytearray)


def comparison(op: str) -> str:
    return _OPERATORS.get(op, op.upper())


class ConditionBuilder:
    """Turns ``{"field": expr}`` conditions into legacy ``KeyConditions`` / ``ScanFilter`` clauses."""

    def __init__(self, codec: AttributeCodec) -> None:
        self._codec = codec

    def conditions(self, exprs: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
        return {field: self.condition(field, expr) for field, expr in exprs.items()}

    def condition(self, field: str, expr: Any) -> dict[str, Any]:
        if expr is None:
            return {"ComparisonOperator": "NULL"}
        if isinstance(expr, str) and expr in ("notNull", "NOT_NULL"):
            return {"ComparisonOperator": "NOT_NULL"}

        if isinstance(expr, _SCALARS):
            op, operands = "EQ", [expr]
        elif isinstance(expr, (list, tuple, set, frozenset)):
            op, operands = "IN", list(expr)
        elif isinstance(expr, Mapping):
            if len(expr) != 1:
                raise ValidationError(f"condition for {field} must have exactly one operator")
            ((raw_op, raw_values),) = expr.items()
            op = comparison(str(raw_op))
            operands = list(raw_values) if isinstance(raw_values, (list, tuple)) else [raw_values]
        else:
            raise ValidationError(f"unsupported condition for {field}: {expr!r}")

        encoded = [self._codec.encode(value, field) for value in operands]
        if op == "IN":
            encoded = [attr for attr in encoded if attr is not None]
            if not encoded:
                return {"ComparisonOperator": "NULL"}
        elif not encoded or any(attr is None for attr in encoded):
            return {"ComparisonOperator": "NOT_NULL" if op in _EMPTY_MEANS_PRESENT else "NULL"}

        return {"ComparisonOperator": op, "AttributeValueList": encoded}
