"""Capability-based provider method merging.

Contributions are grouped by ``provider_id``. Within one provider the method
maps of every capability and every plugin are unioned; when two
contributions declare the same method name the later one wins. Nothing is
ever merged across different provider ids.
"""

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from billing_core.errors import create_error
from billing_core.logging import BillingLogger, get_logger
from billing_core.types import Capability

from .types import ProviderContribution, ProviderMethod, parse_capability


class ProviderMethods(Mapping[str, ProviderMethod]):
    """Merged method set of one provider.

    Methods are reachable as attributes (``stripe.create_subscription``) or
    items (``stripe["create_subscription"]``). Unknown names raise
    ProviderNotFoundError, which is also an AttributeError. Method names that
    the mapping interface would shadow (``get``, ``keys`` and the like) are
    rejected when contributed.
    """

    __slots__ = ("_provider_id", "_methods", "_capabilities")

    def __init__(
        self,
        provider_id: str,
        methods: Mapping[str, ProviderMethod],
        capabilities: Iterable[Capability] = (),
    ):
        self._provider_id = provider_id
        self._methods = methods
        self._capabilities = capabilities

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def capabilities(self) -> tuple[Capability, ...]:
        """Capabilities contributed for this provider, in first-seen order."""
        return tuple(self._capabilities)

    def __getitem__(self, name: str) -> ProviderMethod:
        try:
            return self._methods[name]
        except KeyError:
            raise create_error(
                "PROVIDER_METHOD_NOT_FOUND", provider_id=self._provider_id, method=name
            ) from None

    def __getattr__(self, name: str) -> ProviderMethod:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def __contains__(self, name: object) -> bool:
        return name in self._methods

    def get(self, name: str, default: Any = None) -> Any:
        return self._methods.get(name, default)

    def __iter__(self) -> Iterator[str]:
        return iter(self._methods)

    def __len__(self) -> int:
        return len(self._methods)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ProviderMethods):
            return (
                self._provider_id == other._provider_id
                and dict(self._methods) == dict(other._methods)
                and self.capabilities == other.capabilities
            )
        return super().__eq__(other)

    def __repr__(self) -> str:
        return f"ProviderMethods({self._provider_id!r}, methods={list(self._methods)})"


class MergedProviderTable(Mapping[str, ProviderMethods]):
    """Provider id -> merged methods.

    ``providers.stripe.create_subscription(...)`` and
    ``providers["stripe"]["create_subscription"]`` are equivalent. An unknown
    provider id raises ProviderNotFoundError.
    """

    __slots__ = ("_methods", "_capabilities")

    def __init__(
        self,
        methods: Mapping[str, Mapping[str, ProviderMethod]],
        capabilities: Mapping[str, Iterable[Capability]],
    ):
        self._methods = methods
        self._capabilities = capabilities

    def __getitem__(self, provider_id: str) -> ProviderMethods:
        methods = self._methods.get(provider_id)
        if methods is None:
            raise create_error("PROVIDER_NOT_FOUND", provider_id=provider_id)
        return ProviderMethods(provider_id, methods, self._capabilities.get(provider_id, ()))

    def __getattr__(self, provider_id: str) -> ProviderMethods:
        if provider_id.startswith("_"):
            raise AttributeError(provider_id)
        return self[provider_id]

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._methods

    def get(self, provider_id: str, default: Any = None) -> Any:
        if provider_id not in self._methods:
            return default
        return self[provider_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._methods)

    def __len__(self) -> int:
        return len(self._methods)

    def require(
        self,
        provider_id: str,
        capability: Capability | str | None = None,
        plugin_id: str | None = None,
    ) -> ProviderMethods:
        """Return a provider, failing with ConfigurationError if it is missing.

        Args:
            provider_id: Provider identity
            capability: Capability the provider must have been contributed for
            plugin_id: Requiring plugin, for the error message

        Raises:
            ConfigurationError: If the provider or capability is absent, or the
                capability is unknown
        """
        if capability:
            capability = parse_capability(capability, provider_id)
        suffix = f" with capability '{capability.value}'" if capability else ""
        if provider_id not in self._methods or (
            capability and capability not in self._capabilities.get(provider_id, ())
        ):
            raise create_error(
                "PROVIDER_REQUIRED",
                plugin_id=plugin_id or "?",
                provider_id=provider_id,
                capability_suffix=suffix,
            )
        return self[provider_id]

    def to_dict(self) -> dict[str, list[str]]:
        """Provider id -> method names, for logs and debugging."""
        return {provider_id: list(methods) for provider_id, methods in self._methods.items()}

    def __repr__(self) -> str:
        return f"MergedProviderTable({self.to_dict()!r})"


class ProviderMerger:
    """Folds provider contributions, in order, into one table."""

    def __init__(self, logger: BillingLogger | None = None):
        self._methods: dict[str, dict[str, ProviderMethod]] = {}
        self._capabilities: dict[str, dict[Capability, None]] = {}
        self._sources: dict[tuple[str, str], str | None] = {}
        self._frozen: MergedProviderTable | None = None
        self._logger = logger or get_logger("providers")

    @property
    def frozen(self) -> bool:
        return self._frozen is not None

    def add(self, contribution: ProviderContribution | Mapping[str, Any], source: str | None = None) -> None:
        """Fold one contribution.

        Raises:
            ConfigurationError: If the contribution is malformed or the merger is frozen
        """
        if self._frozen is not None:
            raise create_error("SCHEMA_FROZEN", kind="provider table")
        contribution = ProviderContribution.from_value(contribution)
        provider_id = contribution.provider_id

        methods = self._methods.setdefault(provider_id, {})
        self._capabilities.setdefault(provider_id, {})[contribution.capability] = None

        for name, method in contribution.methods.items():
            if name in methods and methods[name] is not method:
                self._logger.debug(
                    "Provider method overridden",
                    provider_id=provider_id,
                    method=name,
                    capability=contribution.capability.value,
                    previous_source=self._sources.get((provider_id, name)),
                    source=source,
                )
            methods[name] = method
            self._sources[(provider_id, name)] = source

    def add_all(
        self,
        contributions: Iterable[ProviderContribution | Mapping[str, Any]] | None,
        source: str | None = None,
    ) -> None:
        for contribution in contributions or ():
            self.add(contribution, source)

    def live_view(self) -> MergedProviderTable:
        """Table that reflects later additions."""
        return MergedProviderTable(self._methods, self._capabilities)

    def snapshot(self) -> MergedProviderTable:
        return MergedProviderTable(
            {provider_id: dict(methods) for provider_id, methods in self._methods.items()},
            {provider_id: tuple(caps) for provider_id, caps in self._capabilities.items()},
        )

    def freeze(self) -> MergedProviderTable:
        """Stop accepting contributions and return the final table."""
        if self._frozen is None:
            self._frozen = self.snapshot()
        return self._frozen

    def source_of(self, provider_id: str, method: str) -> str | None:
        """Plugin id that last contributed a method."""
        return self._sources.get((provider_id, method))


def merge_providers(
    *contributions: ProviderContribution | Mapping[str, Any],
) -> MergedProviderTable:
    """Fold contributions left to right and return the frozen table."""
    merger = ProviderMerger()
    merger.add_all(contributions)
    return merger.freeze()
