"""Plugin factory."""

from collections.abc import Iterable
from typing import Any

from .types import PluginDescriptor, PluginInit


def create_plugin(
    id: str,
    init: PluginInit,
    depends_on: Iterable[PluginDescriptor] = (),
    required_providers: Iterable[Any] = (),
) -> PluginDescriptor:
    """Create a plugin descriptor.

    Args:
        id: Plugin id; also the namespace of its methods (``billing.methods.<id>``)
        init: Called once with a DependencyContext; returns a PluginResult or
            a mapping with any of ``schema``, ``providers``, ``endpoints``,
            ``hooks`` and ``methods``
        depends_on: Plugins that must resolve first; their tables and
            providers are visible through the context passed to ``init``
        required_providers: Provider ids, or ``(provider_id, capability)``
            pairs, that must exist once every plugin has resolved

    Returns:
        PluginDescriptor

    Example:
        audit = create_plugin(
            "audit",
            lambda ctx: {"schema": {"audit_log": {"event": "string"}}},
            depends_on=[core],
        )
    """
    return PluginDescriptor(
        id=id,
        init=init,
        dependencies=tuple(depends_on),
        required_providers=tuple(required_providers),
    )
