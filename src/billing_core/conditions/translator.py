"""Base class for adapter-side condition translation."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Generic, TypeVar

from billing_core.errors import create_error
from billing_core.types import Connector, Operator

from .types import Condition, Group, Leaf

T = TypeVar("T")

LIKE_WILDCARDS = ("%", "_")


def escape_like(value: str, escape: str = "\\") -> str:
    """Escape LIKE wildcards so the value matches literally.

    The escape character itself is escaped first.
    """
    escaped = value.replace(escape, escape + escape)
    for wildcard in LIKE_WILDCARDS:
        escaped = escaped.replace(wildcard, escape + wildcard)
    return escaped


def like_pattern(operator: Operator, value: str, escape: str = "\\") -> str:
    """LIKE pattern equivalent to a string operator."""
    literal = escape_like(value, escape)
    if operator == Operator.CONTAINS:
        return f"%{literal}%"
    if operator == Operator.STARTS_WITH:
        return f"{literal}%"
    if operator == Operator.ENDS_WITH:
        return f"%{literal}"
    raise ValueError(f"{operator.value} has no LIKE equivalent")


class ConditionTranslator(ABC, Generic[T]):
    """Translate canonical conditions into a backend's native filter.

    Subclasses implement ``translate_leaf`` and ``combine``. Operators outside
    ``supported_operators`` are rejected with UnsupportedOperatorError before
    ``translate_leaf`` is reached, never approximated.
    """

    name: str = "adapter"
    supported_operators: frozenset[Operator] = frozenset(Operator)

    def translate(self, condition: Condition) -> T:
        if isinstance(condition, Group):
            parts = [self.translate(child) for child in condition.children]
            return self.combine(condition.kind, parts)
        self.check_operator(condition)
        return self.translate_leaf(condition)

    def check_operator(self, leaf: Leaf) -> None:
        if leaf.operator not in self.supported_operators:
            raise create_error(
                "OPERATOR_UNSUPPORTED",
                operator=leaf.operator,
                field=leaf.field,
                adapter=self.name,
            )

    @abstractmethod
    def translate_leaf(self, leaf: Leaf) -> T:
        """Native filter for one comparison."""

    @abstractmethod
    def combine(self, kind: Connector, parts: Sequence[T]) -> T:
        """Native filter combining translated children."""
