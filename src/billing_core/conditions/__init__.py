"""Backend-agnostic query conditions.

Usage:
    from billing_core.conditions import parse_condition, evaluate

    where = parse_condition([
        {"field": "status", "value": "active"},
        {"field": "quantity", "value": [1, 2, 3], "operator": "in"},
    ])
    evaluate(where, {"status": "active", "quantity": 2})  # True
"""

from .evaluator import (
    evaluate,
    filter_records,
    is_naive_datetime,
    validate_condition,
    values_equal,
)
from .parser import WhereInput, parse_condition
from .translator import ConditionTranslator, escape_like, like_pattern
from .types import (
    RANGE_OPERATORS,
    STRING_OPERATORS,
    Condition,
    Group,
    Leaf,
    and_,
    iter_leaves,
    or_,
)

__all__ = [
    # Types
    "Condition",
    "Group",
    "Leaf",
    "WhereInput",
    "RANGE_OPERATORS",
    "STRING_OPERATORS",
    "and_",
    "or_",
    "iter_leaves",
    # Parsing and evaluation
    "parse_condition",
    "evaluate",
    "filter_records",
    "is_naive_datetime",
    "validate_condition",
    "values_equal",
    # Translation
    "ConditionTranslator",
    "escape_like",
    "like_pattern",
]
