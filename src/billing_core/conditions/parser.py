"""Normalization of user-facing where-inputs into canonical conditions."""

from collections.abc import Mapping, Sequence
from typing import Any

from billing_core.errors import create_error
from billing_core.types import Connector

from .types import Condition, Group, Leaf, coerce_connector

WhereInput = Condition | Mapping[str, Any] | Sequence[Any] | None


def parse_condition(raw: WhereInput) -> Condition | None:
    """Normalize a where-input into a canonical condition.

    Accepted shapes:
        - ``Leaf`` / ``Group`` instances (returned as-is)
        - ``{"field": ..., "value": ..., "operator"?: ...}`` leaf mappings
        - ``{"type": "and" | "or", "value": [...]}`` group mappings
        - sequences of leaves; leaves without a connector (or with ``AND``)
          are ANDed, leaves with connector ``OR`` are ORed, and the two
          groups are ANDed together
        - shorthand mappings such as ``{"id": "cus_1"}`` (AND of equalities)

    Args:
        raw: Where-input in any accepted shape

    Returns:
        Canonical condition, or None when the input places no restriction

    Raises:
        ValidationError: If the input is malformed
    """
    if raw is None:
        return None
    if isinstance(raw, (Leaf, Group)):
        return raw
    if isinstance(raw, Mapping):
        return _parse_mapping(raw)
    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        return _parse_sequence(raw)
    raise create_error(
        "CONDITION_INVALID",
        detail=f"Unsupported condition input of type {type(raw).__name__}",
    )


def _is_group_mapping(raw: Mapping[str, Any]) -> bool:
    kind = raw.get("type")
    return (
        isinstance(kind, str)
        and kind.upper() in Connector.__members__
        and isinstance(raw.get("value"), (list, tuple))
    )


def _parse_mapping(raw: Mapping[str, Any]) -> Condition | None:
    if "field" in raw:
        return _parse_leaf(raw)

    if _is_group_mapping(raw):
        children = [_parse_required(item) for item in raw["value"]]
        return Group(coerce_connector(raw["type"]), tuple(children))

    leaves = [Leaf(str(key), _unwrap_value(key, value)) for key, value in raw.items()]
    if not leaves:
        return None
    if len(leaves) == 1:
        return leaves[0]
    return Group(Connector.AND, tuple(leaves))


def _parse_leaf(raw: Mapping[str, Any]) -> Leaf:
    field = raw["field"]
    if "value" not in raw:
        raise create_error(
            "CONDITION_INVALID", field=field, detail=f"Condition on '{field}' has no value"
        )
    return Leaf(field, _unwrap_value(field, raw["value"]), raw.get("operator"))


def _unwrap_value(field: Any, value: Any) -> Any:
    # {"type": "literal", "value": x} wraps a plain value
    if isinstance(value, Mapping) and set(value) == {"type", "value"}:
        if value["type"] == "literal":
            return value["value"]
        raise create_error(
            "CONDITION_INVALID",
            field=str(field),
            detail=f"Unsupported value reference type '{value['type']}'",
        )
    return value


def _parse_required(item: Any) -> Condition:
    condition = parse_condition(item)
    if condition is None:
        raise create_error("CONDITION_INVALID", detail="Empty condition inside a group")
    return condition


def _parse_sequence(items: Sequence[Any]) -> Condition | None:
    if not items:
        return None

    and_part: list[Condition] = []
    or_part: list[Condition] = []
    for item in items:
        connector = Connector.AND
        if isinstance(item, Mapping) and item.get("connector") is not None:
            connector = coerce_connector(item["connector"])
        condition = _parse_required(item)
        (or_part if connector == Connector.OR else and_part).append(condition)

    if or_part:
        or_condition = or_part[0] if len(or_part) == 1 else Group(Connector.OR, tuple(or_part))
        if not and_part:
            return or_condition
        and_part.append(or_condition)

    if len(and_part) == 1:
        return and_part[0]
    return Group(Connector.AND, tuple(and_part))
