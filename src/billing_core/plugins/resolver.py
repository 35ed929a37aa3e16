"""Dependency-ordered plugin resolution."""

import inspect
from collections.abc import Callable, Iterable, Iterator, Sequence

from billing_core.errors import BillingError, ConfigurationError, create_error
from billing_core.logging import BillingLogger, get_logger

from .context import DependencyContext
from .types import PluginDescriptor, PluginResult, ResolvedPlugin

ContextBuilder = Callable[[PluginDescriptor, Sequence[ResolvedPlugin]], DependencyContext]
ResolvedCallback = Callable[[ResolvedPlugin], None]

_VISITING = 1
_DONE = 2


class PluginResolver:
    """Orders plugin descriptors and runs their init functions.

    Ordering is a depth-first topological sort over the configured list and
    everything reachable through ``dependencies``: a plugin's dependencies
    come before it, and plugins with no ordering constraint between them keep
    the order in which they are first reached (dependency order, then
    declaration order). Descriptors are tracked by identity, so a dependency
    shared by several plugins is resolved once.
    """

    def __init__(self, logger: BillingLogger | None = None):
        self._logger = logger or get_logger("plugins")

    def order(self, descriptors: Iterable[PluginDescriptor]) -> list[PluginDescriptor]:
        """Topologically order descriptors.

        Raises:
            ConfigurationError: On a dependency cycle or a duplicate id
        """
        state: dict[int, int] = {}
        by_id: dict[str, PluginDescriptor] = {}
        ordered: list[PluginDescriptor] = []
        # Explicit DFS stack of (descriptor, remaining dependencies); it is also the cycle path
        stack: list[tuple[PluginDescriptor, Iterator[PluginDescriptor]]] = []

        def enter(descriptor: PluginDescriptor) -> None:
            mark = state.get(id(descriptor))
            if mark == _DONE:
                return
            if mark == _VISITING:
                start = next(i for i, (d, _) in enumerate(stack) if d is descriptor)
                cycle = [d.id for d, _ in stack[start:]] + [descriptor.id]
                raise create_error(
                    "PLUGIN_CYCLE", plugin_id=descriptor.id, cycle=" -> ".join(cycle)
                )

            existing = by_id.get(descriptor.id)
            if existing is not None and existing is not descriptor:
                raise create_error("PLUGIN_DUPLICATE_ID", plugin_id=descriptor.id)
            by_id[descriptor.id] = descriptor

            state[id(descriptor)] = _VISITING
            stack.append((descriptor, iter(descriptor.dependencies)))

        for root in descriptors:
            enter(root)
            while stack:
                descriptor, remaining = stack[-1]
                dependency = next(remaining, None)
                if dependency is not None:
                    enter(dependency)
                    continue
                stack.pop()
                state[id(descriptor)] = _DONE
                ordered.append(descriptor)
        return ordered

    def resolve(
        self,
        descriptors: Iterable[PluginDescriptor],
        build_context: ContextBuilder,
        on_resolved: ResolvedCallback | None = None,
    ) -> list[ResolvedPlugin]:
        """Initialize plugins in dependency order.

        Args:
            descriptors: Configured plugins
            build_context: Builds the DependencyContext for a descriptor,
                given the plugins resolved so far
            on_resolved: Called with each resolved plugin before the next
                one initializes (the facade folds contributions here)

        Returns:
            Resolved plugins in resolution order

        Raises:
            ConfigurationError: On ordering problems or a failing init
        """
        ordered = self.order(descriptors)
        self._logger.debug("Plugin order resolved", order=[d.id for d in ordered])

        resolved: list[ResolvedPlugin] = []
        for descriptor in ordered:
            context = build_context(descriptor, resolved)
            result = self._init(descriptor, context)
            plugin = ResolvedPlugin(descriptor=descriptor, result=result)
            resolved.append(plugin)
            if on_resolved is not None:
                on_resolved(plugin)
        return resolved

    def _init(self, descriptor: PluginDescriptor, context: DependencyContext) -> PluginResult:
        try:
            value = descriptor.init(context)
        except ConfigurationError:
            raise
        except BillingError as e:
            raise create_error(
                "PLUGIN_INIT_FAILED", cause=e, plugin_id=descriptor.id, detail=e.message
            ) from e
        except Exception as e:
            raise create_error(
                "PLUGIN_INIT_FAILED",
                plugin_id=descriptor.id,
                detail=f"{type(e).__name__}: {e}",
            ) from e

        if inspect.isawaitable(value):
            if inspect.iscoroutine(value):
                value.close()
            raise create_error(
                "PLUGIN_INVALID_RESULT",
                plugin_id=descriptor.id,
                detail="init must return its result synchronously",
            )
        return PluginResult.from_value(value, descriptor.id)
