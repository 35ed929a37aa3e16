"""Hook registry and sequential dispatch."""

import inspect
from collections.abc import Iterable, Mapping
from typing import Any

from billing_core.logging import BillingLogger, get_logger

from .types import BillingHook, HookErrorObserver, HookHandler, hook_name


class HookManager:
    """Named lifecycle events with ordered, isolated handler dispatch.

    Handlers for one hook run strictly one after another, in registration
    order, and all receive the same context object. A failing handler is
    logged (and reported to the observer, if any) and the next handler still
    runs; ``run_hook`` never raises because of a handler.

    The registry stays mutable after construction. Mutating it while a
    ``run_hook`` is in flight is only meant for test teardown.
    """

    def __init__(
        self,
        logger: BillingLogger | None = None,
        observer: HookErrorObserver | None = None,
    ):
        self._handlers: dict[str, list[HookHandler]] = {}
        self._logger = logger or get_logger("hooks")
        self._observer = observer

    def register(self, name: BillingHook | str, handler: HookHandler) -> None:
        """Append a handler to a hook.

        Raises:
            TypeError: If handler is not callable
        """
        if not callable(handler):
            raise TypeError(f"Hook handler for '{hook_name(name)}' must be callable")
        self._handlers.setdefault(hook_name(name), []).append(handler)

    def register_many(
        self, hooks: Mapping[BillingHook | str, HookHandler | Iterable[HookHandler]] | None
    ) -> None:
        """Register a mapping of hook name to handler (or list of handlers)."""
        if not hooks:
            return
        for name, value in hooks.items():
            if callable(value):
                self.register(name, value)
            else:
                for handler in value:
                    self.register(name, handler)

    async def run_hook(self, name: BillingHook | str, context: Any = None) -> None:
        """Invoke every handler registered for ``name`` in order."""
        key = hook_name(name)
        handlers = self._handlers.get(key)
        if not handlers:
            return

        for handler in list(handlers):
            try:
                result = handler(context)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._logger.exception(
                    "Hook handler failed",
                    hook=key,
                    handler=_handler_name(handler),
                )
                self._notify(key, handler, e, context)

    def has_handlers(self, name: BillingHook | str) -> bool:
        return bool(self._handlers.get(hook_name(name)))

    def handlers(self, name: BillingHook | str) -> list[HookHandler]:
        """Registered handlers for a hook, in order (a copy)."""
        return list(self._handlers.get(hook_name(name), ()))

    def names(self) -> list[str]:
        """Hook names with at least one handler, in first-registration order."""
        return [name for name, handlers in self._handlers.items() if handlers]

    def remove(self, name: BillingHook | str, handler: HookHandler) -> bool:
        """Remove the first registration of ``handler``. Returns False if absent."""
        handlers = self._handlers.get(hook_name(name))
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    def clear(self, name: BillingHook | str | None = None) -> None:
        """Drop all handlers, or only those of one hook."""
        if name is None:
            self._handlers.clear()
        else:
            self._handlers.pop(hook_name(name), None)

    def _notify(self, hook: str, handler: HookHandler, error: Exception, context: Any) -> None:
        if self._observer is None:
            return
        try:
            self._observer(hook, handler, error, context)
        except Exception:
            self._logger.exception("Hook error observer failed", hook=hook)


def _handler_name(handler: HookHandler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)
