"""Canonical query-condition tree.

A condition is either a ``Leaf`` comparing one field against a value, or a
``Group`` combining child conditions with AND/OR. Both are immutable and
validate their own shape on construction, so any ``Condition`` that exists
is structurally sound.
"""

from collections.abc import Set
from dataclasses import dataclass
from datetime import date
from typing import Any, Union

from billing_core.errors import create_error
from billing_core.types import Connector, Operator

STRING_OPERATORS = frozenset({Operator.CONTAINS, Operator.STARTS_WITH, Operator.ENDS_WITH})
RANGE_OPERATORS = frozenset({Operator.GT, Operator.GTE, Operator.LT, Operator.LTE})
EQUALITY_OPERATORS = frozenset({Operator.EQ, Operator.NE})


def is_array_value(value: Any) -> bool:
    """Whether a value is acceptable as the right-hand side of ``in``."""
    return isinstance(value, (list, tuple, Set))


def is_range_value(value: Any) -> bool:
    """Numbers (not bools) and dates/datetimes."""
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, float, date))


def coerce_operator(operator: Operator | str | None, field: str | None = None) -> Operator:
    if operator is None:
        return Operator.EQ
    if isinstance(operator, Operator):
        return operator
    try:
        return Operator(str(operator).lower())
    except ValueError:
        raise create_error(
            "CONDITION_INVALID",
            field=field,
            operator=str(operator),
            detail=f"Unknown operator '{operator}' on field '{field}'",
        ) from None


def coerce_connector(kind: Connector | str) -> Connector:
    if isinstance(kind, Connector):
        return kind
    try:
        return Connector(str(kind).upper())
    except ValueError:
        raise create_error(
            "CONDITION_INVALID", detail=f"Unknown connector '{kind}', expected AND or OR"
        ) from None


@dataclass(frozen=True)
class Leaf:
    """Single field comparison."""

    field: str
    value: Any
    operator: Operator = Operator.EQ

    def __post_init__(self) -> None:
        if not isinstance(self.field, str) or not self.field:
            raise create_error(
                "CONDITION_INVALID", detail=f"Condition field must be a non-empty string, got {self.field!r}"
            )
        operator = coerce_operator(self.operator, self.field)
        object.__setattr__(self, "operator", operator)

        if operator == Operator.IN:
            if not is_array_value(self.value):
                raise create_error(
                    "CONDITION_OPERAND_TYPE",
                    field=self.field,
                    operator=operator,
                    detail=f"'in' requires an array value, got {type(self.value).__name__}",
                )
        elif operator in STRING_OPERATORS:
            if not isinstance(self.value, str):
                raise create_error(
                    "CONDITION_OPERAND_TYPE",
                    field=self.field,
                    operator=operator,
                    detail=f"'{operator.value}' requires a string value, got {type(self.value).__name__}",
                )
        elif operator in RANGE_OPERATORS:
            if not is_range_value(self.value):
                raise create_error(
                    "CONDITION_OPERAND_TYPE",
                    field=self.field,
                    operator=operator,
                    detail=(
                        f"'{operator.value}' requires a numeric or temporal value, "
                        f"got {type(self.value).__name__}"
                    ),
                )


@dataclass(frozen=True)
class Group:
    """AND/OR combination of child conditions. Never empty."""

    kind: Connector
    children: tuple["Condition", ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", coerce_connector(self.kind))
        children = tuple(self.children)
        if not children:
            raise create_error(
                "CONDITION_INVALID", detail=f"{self.kind.value} group must have at least one child"
            )
        for child in children:
            if not isinstance(child, (Leaf, Group)):
                raise create_error(
                    "CONDITION_INVALID",
                    detail=f"Group children must be conditions, got {type(child).__name__}",
                )
        object.__setattr__(self, "children", children)


Condition = Union[Leaf, Group]


def and_(*children: Condition) -> Group:
    """AND group of the given conditions."""
    return Group(Connector.AND, children)


def or_(*children: Condition) -> Group:
    """OR group of the given conditions."""
    return Group(Connector.OR, children)


def iter_leaves(condition: Condition):
    """Yield every leaf of a condition, depth first, left to right."""
    if isinstance(condition, Leaf):
        yield condition
        return
    for child in condition.children:
        yield from iter_leaves(child)
