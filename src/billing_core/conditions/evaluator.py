"""Reference evaluation of conditions against in-memory records.

These semantics are the contract every storage adapter must preserve when
it translates a condition into its native filter.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from billing_core.errors import create_error
from billing_core.schema.types import FieldSpec
from billing_core.types import Connector, FieldType, Operator

from .types import (
    RANGE_OPERATORS,
    STRING_OPERATORS,
    Condition,
    Group,
    Leaf,
    iter_leaves,
)

_RANGE_FIELD_TYPES = frozenset({FieldType.NUMBER, FieldType.DATE})


def values_equal(left: Any, right: Any) -> bool:
    """Exact equality: a bool only ever equals a bool."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    return bool(left == right)


def validate_condition(
    condition: Condition,
    fields: Mapping[str, FieldSpec] | None = None,
    model: str | None = None,
) -> None:
    """Check a condition against a table's field set.

    Leaf construction already guarantees operand shapes; this adds the checks
    that need the schema: unknown fields and operators applied to fields of
    the wrong type, and naive datetimes compared with date fields. Fields
    with custom (non-builtin) types are not type checked.

    Raises:
        ValidationError: On unknown fields or operand/field type mismatches
    """
    if fields is None:
        return

    for leaf in iter_leaves(condition):
        spec = fields.get(leaf.field)
        if spec is None:
            raise create_error("FIELD_UNKNOWN", field=leaf.field, model=model or "?")
        if not isinstance(spec.type, FieldType):
            continue

        if leaf.operator in STRING_OPERATORS and spec.type != FieldType.STRING:
            raise create_error(
                "CONDITION_OPERAND_TYPE",
                field=leaf.field,
                operator=leaf.operator,
                detail=f"'{leaf.operator.value}' applies only to string fields, "
                f"'{leaf.field}' is {spec.type_name}",
            )
        if leaf.operator in RANGE_OPERATORS and spec.type not in _RANGE_FIELD_TYPES:
            raise create_error(
                "CONDITION_OPERAND_TYPE",
                field=leaf.field,
                operator=leaf.operator,
                detail=f"'{leaf.operator.value}' requires a number or date field, "
                f"'{leaf.field}' is {spec.type_name}",
            )


def is_naive_datetime(value: Any) -> bool:
    return isinstance(value, datetime) and value.utcoffset() is None


def _operands(leaf: Leaf) -> Iterable[Any]:
    if leaf.operator == Operator.IN:
        return leaf.value
    return (leaf.value,)


def evaluate(condition: Condition, record: Mapping[str, Any]) -> bool:
    """Whether a record satisfies a condition.

    Args:
        condition: Canonical condition
        record: Field values; absent fields read as None

    Returns:
        True if the record matches

    Raises:
        ValidationError: If a record value cannot be compared with the operand
    """
    if isinstance(condition, Group):
        if condition.kind == Connector.AND:
            return all(evaluate(child, record) for child in condition.children)
        return any(evaluate(child, record) for child in condition.children)
    return _evaluate_leaf(condition, record.get(condition.field))


def filter_records(
    condition: Condition | None, records: Iterable[Mapping[str, Any]]
) -> list[Mapping[str, Any]]:
    """Records matching the condition, in input order. None matches all."""
    if condition is None:
        return list(records)
    return [record for record in records if evaluate(condition, record)]


def _evaluate_leaf(leaf: Leaf, actual: Any) -> bool:
    operator = leaf.operator
    expected = leaf.value

    if operator == Operator.EQ:
        return values_equal(actual, expected)
    if operator == Operator.NE:
        return not values_equal(actual, expected)
    if operator == Operator.IN:
        return any(values_equal(actual, candidate) for candidate in expected)

    if actual is None:
        return False

    if operator in STRING_OPERATORS:
        if not isinstance(actual, str):
            raise create_error(
                "CONDITION_OPERAND_TYPE",
                field=leaf.field,
                operator=operator,
                detail=f"'{operator.value}' applies only to strings, "
                f"record value is {type(actual).__name__}",
            )
        if operator == Operator.CONTAINS:
            return expected in actual
        if operator == Operator.STARTS_WITH:
            return actual.startswith(expected)
        return actual.endswith(expected)

    if isinstance(actual, bool):
        raise create_error(
            "CONDITION_OPERAND_TYPE",
            field=leaf.field,
            operator=operator,
            detail="Booleans cannot be range compared",
        )
    try:
        if operator == Operator.GT:
            return actual > expected
        if operator == Operator.GTE:
            return actual >= expected
        if operator == Operator.LT:
            return actual < expected
        return actual <= expected
    except TypeError as e:
        raise create_error(
            "CONDITION_OPERAND_TYPE",
            field=leaf.field,
            operator=operator,
            detail=str(e),
        ) from e
