"""Plugin descriptor and result types."""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from billing_core.errors import create_error
from billing_core.hooks import hook_name
from billing_core.providers import ProviderContribution, parse_capability
from billing_core.schema import SchemaDefinition, normalize_schema
from billing_core.types import Capability

if TYPE_CHECKING:
    from .context import DependencyContext

PluginInit = Callable[["DependencyContext"], "PluginResult | Mapping[str, Any]"]

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True)
class ProviderRequirement:
    """A provider (and optionally a capability) a plugin cannot work without."""

    provider_id: str
    capability: Capability | None = None

    @classmethod
    def from_value(cls, value: Any) -> "ProviderRequirement":
        """Accept a requirement, a provider id, or a ``(provider_id, capability)`` pair.

        Raises:
            ConfigurationError: On a malformed pair or an unknown capability
        """
        if isinstance(value, ProviderRequirement):
            return value
        if isinstance(value, str):
            return cls(value)
        try:
            provider_id, capability = value
        except (TypeError, ValueError):
            raise create_error(
                "PROVIDER_INVALID",
                provider_id="?",
                detail=f"Expected a provider id or (provider_id, capability) pair, got {value!r}",
            ) from None
        if not capability:
            return cls(provider_id)
        return cls(provider_id, parse_capability(capability, provider_id))


@dataclass(eq=False)
class PluginDescriptor:
    """A plugin as configured: id, dependencies and init function.

    Descriptors compare by identity. Listing the same object twice (directly
    or through dependencies) is fine; two different objects with the same id
    are a configuration conflict.
    """

    id: str
    init: PluginInit
    dependencies: tuple["PluginDescriptor", ...] = ()
    required_providers: tuple[ProviderRequirement, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise create_error("PLUGIN_INVALID", plugin_id=self.id, detail="id must be a non-empty string")
        if not callable(self.init):
            raise create_error("PLUGIN_INVALID", plugin_id=self.id, detail="init must be callable")
        dependencies = tuple(self.dependencies)
        for dependency in dependencies:
            if not isinstance(dependency, PluginDescriptor):
                raise create_error(
                    "PLUGIN_INVALID",
                    plugin_id=self.id,
                    detail=f"Dependency {dependency!r} is not a plugin descriptor",
                )
        self.dependencies = dependencies
        self.required_providers = tuple(
            ProviderRequirement.from_value(r) for r in self.required_providers
        )

    def __repr__(self) -> str:
        deps = [d.id for d in self.dependencies]
        return f"PluginDescriptor(id={self.id!r}, dependencies={deps})"


@dataclass
class Endpoint:
    """HTTP endpoint contributed by a plugin.

    ``handler`` is a FastAPI-compatible callable; its signature declares the
    path parameters, query parameters and body it accepts.
    """

    path: str
    method: str
    handler: Callable[..., Any]
    name: str | None = None

    def __post_init__(self) -> None:
        label = self.name or f"{self.method} {self.path}"
        if not isinstance(self.method, str) or self.method.upper() not in HTTP_METHODS:
            raise create_error(
                "PLUGIN_INVALID",
                plugin_id=label,
                detail=f"Unsupported HTTP method {self.method!r}",
            )
        self.method = self.method.upper()
        if not isinstance(self.path, str) or not self.path.startswith("/"):
            raise create_error(
                "PLUGIN_INVALID",
                plugin_id=label,
                detail=f"Endpoint path must start with '/': {self.path!r}",
            )
        if not callable(self.handler):
            raise create_error(
                "PLUGIN_INVALID",
                plugin_id=label,
                detail=f"Endpoint handler for {self.path!r} must be callable",
            )


_RESULT_KEYS = frozenset({"schema", "providers", "endpoints", "hooks", "methods"})


@dataclass
class PluginResult:
    """What a plugin's init contributes. Every part is optional."""

    schema: SchemaDefinition | None = None
    providers: list[ProviderContribution] = field(default_factory=list)
    endpoints: dict[str, Endpoint] = field(default_factory=dict)
    hooks: dict[str, Any] = field(default_factory=dict)
    methods: dict[str, Callable[..., Any]] = field(default_factory=dict)

    @classmethod
    def from_value(cls, value: Any, plugin_id: str) -> "PluginResult":
        """Normalize an init return value.

        Accepts a PluginResult, a mapping with the result keys, or None.

        Raises:
            ConfigurationError: On unknown keys or malformed parts
        """
        if value is None:
            return cls()
        if isinstance(value, PluginResult):
            raw: Mapping[str, Any] = {
                "schema": value.schema,
                "providers": value.providers,
                "endpoints": value.endpoints,
                "hooks": value.hooks,
                "methods": value.methods,
            }
        elif isinstance(value, Mapping):
            unknown = set(value) - _RESULT_KEYS
            if unknown:
                raise create_error(
                    "PLUGIN_INVALID_RESULT",
                    plugin_id=plugin_id,
                    detail=f"Unknown keys: {sorted(unknown)}. Expected: {sorted(_RESULT_KEYS)}",
                )
            raw = value
        else:
            raise create_error(
                "PLUGIN_INVALID_RESULT",
                plugin_id=plugin_id,
                detail=f"init returned {type(value).__name__}, expected PluginResult or mapping",
            )

        return cls(
            schema=normalize_schema(raw.get("schema")) or None,
            providers=[ProviderContribution.from_value(p) for p in _as_list(raw.get("providers"))],
            endpoints=_endpoints(raw.get("endpoints"), plugin_id),
            hooks=_hooks(raw.get("hooks"), plugin_id),
            methods=_methods(raw.get("methods"), plugin_id),
        )


@dataclass
class ResolvedPlugin:
    """A descriptor together with its normalized init result."""

    descriptor: PluginDescriptor
    result: PluginResult

    @property
    def id(self) -> str:
        return self.descriptor.id


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (ProviderContribution, Mapping)):
        return [value]
    return list(value)


def _endpoints(value: Any, plugin_id: str) -> dict[str, Endpoint]:
    if not value:
        return {}
    if not isinstance(value, Mapping):
        raise create_error(
            "PLUGIN_INVALID_RESULT", plugin_id=plugin_id, detail="endpoints must map names to endpoints"
        )
    endpoints = {}
    for name, endpoint in value.items():
        if not isinstance(endpoint, Endpoint):
            raise create_error(
                "PLUGIN_INVALID_RESULT",
                plugin_id=plugin_id,
                detail=f"Endpoint '{name}' is not an Endpoint",
            )
        if endpoint.name is None:
            endpoint.name = name
        endpoints[name] = endpoint
    return endpoints


def _methods(value: Any, plugin_id: str) -> dict[str, Callable[..., Any]]:
    if not value:
        return {}
    if not isinstance(value, Mapping):
        raise create_error(
            "PLUGIN_INVALID_RESULT", plugin_id=plugin_id, detail="methods must map names to callables"
        )
    for name, method in value.items():
        if not callable(method):
            raise create_error(
                "PLUGIN_INVALID_RESULT",
                plugin_id=plugin_id,
                detail=f"Method '{name}' is not callable",
            )
    return dict(value)


def _hooks(value: Any, plugin_id: str) -> dict[str, Any]:
    if not value:
        return {}
    if not isinstance(value, Mapping):
        raise create_error(
            "PLUGIN_INVALID_RESULT", plugin_id=plugin_id, detail="hooks must map hook names to handlers"
        )
    hooks: dict[str, Any] = {}
    for name, handlers in value.items():
        if callable(handlers):
            handler_list = [handlers]
        elif isinstance(handlers, (list, tuple)):
            handler_list = list(handlers)
        else:
            handler_list = [handlers]
        if not all(callable(h) for h in handler_list):
            raise create_error(
                "PLUGIN_INVALID_RESULT",
                plugin_id=plugin_id,
                detail=f"Hook '{hook_name(name)}' has a handler that is not callable",
            )
        hooks[hook_name(name)] = handler_list
    return hooks


def iter_descriptors(values: Iterable[Any]) -> list[PluginDescriptor]:
    """Validate a configured plugin list."""
    descriptors = []
    for value in values:
        if not isinstance(value, PluginDescriptor):
            raise create_error(
                "PLUGIN_INVALID",
                plugin_id=getattr(value, "id", repr(value)),
                detail="Configured plugins must be PluginDescriptor instances (see create_plugin)",
            )
        descriptors.append(value)
    return descriptors
