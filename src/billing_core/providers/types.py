"""Provider contribution types."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from billing_core.errors import create_error
from billing_core.types import Capability

ProviderMethod = Callable[..., Any]

# Attributes of the merged views that would shadow a provider or method name
RESERVED_METHOD_NAMES = frozenset({"get", "keys", "items", "values", "provider_id", "capabilities"})
RESERVED_PROVIDER_IDS = frozenset({"get", "keys", "items", "values", "require", "to_dict"})


def parse_capability(value: Any, provider_id: Any = "?") -> Capability:
    """Coerce a capability name.

    Raises:
        ConfigurationError: If the capability is unknown
    """
    try:
        return Capability(value)
    except ValueError:
        raise create_error(
            "PROVIDER_INVALID",
            provider_id=provider_id,
            detail=f"Unknown capability '{value}'. "
            f"Expected one of: {', '.join(c.value for c in Capability)}",
        ) from None


@dataclass(frozen=True)
class ProviderContribution:
    """One plugin's method set for one provider capability.

    Attributes:
        provider_id: Provider identity (e.g. "stripe"); contributions sharing
            it are merged into one method table
        capability: Capability the methods implement
        methods: Method name -> callable (usually async)
    """

    provider_id: str
    capability: Capability
    methods: Mapping[str, ProviderMethod] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.provider_id, str) or not self.provider_id:
            raise create_error(
                "PROVIDER_INVALID",
                provider_id=self.provider_id,
                detail="provider_id must be a non-empty string",
            )
        if self.provider_id in RESERVED_PROVIDER_IDS or self.provider_id.startswith("_"):
            raise create_error(
                "PROVIDER_INVALID",
                provider_id=self.provider_id,
                detail="provider_id clashes with an attribute of the provider table",
            )
        object.__setattr__(self, "capability", parse_capability(self.capability, self.provider_id))

        if not isinstance(self.methods, Mapping):
            raise create_error(
                "PROVIDER_INVALID",
                provider_id=self.provider_id,
                detail="methods must be a mapping of name to callable",
            )
        for name, method in self.methods.items():
            if not isinstance(name, str) or name in RESERVED_METHOD_NAMES or name.startswith("_"):
                raise create_error(
                    "PROVIDER_INVALID",
                    provider_id=self.provider_id,
                    detail=f"Method name {name!r} is reserved or not reachable as an attribute",
                )
            if not callable(method):
                raise create_error(
                    "PROVIDER_INVALID",
                    provider_id=self.provider_id,
                    detail=f"Method '{name}' is not callable",
                )
        object.__setattr__(self, "methods", dict(self.methods))

    @classmethod
    def from_value(cls, value: Any) -> "ProviderContribution":
        """Accept a contribution or a mapping with the same keys.

        Both ``provider_id`` and the camel-cased ``providerId`` are read.
        """
        if isinstance(value, ProviderContribution):
            return value
        if not isinstance(value, Mapping):
            raise create_error(
                "PROVIDER_INVALID",
                provider_id="?",
                detail=f"Expected a ProviderContribution or mapping, got {type(value).__name__}",
            )
        provider_id = value.get("provider_id", value.get("providerId"))
        return cls(
            provider_id=provider_id,
            capability=value.get("capability"),
            methods=value.get("methods") or {},
        )
