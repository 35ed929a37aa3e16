"""Hook names, handler signatures and context dataclasses."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

HookHandler = Callable[[Any], Awaitable[None] | None]


class BillingHook(str, Enum):
    """Lifecycle events fired by the built-in plugins.

    Hook names are plain strings; plugins may fire and listen to their own.
    """

    BEFORE_CUSTOMER_CREATE = "before_customer_create"
    AFTER_CUSTOMER_CREATE = "after_customer_create"
    BEFORE_SUBSCRIBE = "before_subscribe"
    AFTER_SUBSCRIBE = "after_subscribe"
    BEFORE_CANCEL = "before_cancel"
    AFTER_CANCEL = "after_cancel"
    ON_USAGE_REPORTED = "on_usage_reported"


def hook_name(name: "BillingHook | str") -> str:
    return name.value if isinstance(name, BillingHook) else str(name)


class HookErrorObserver(Protocol):
    """Receives handler failures swallowed by ``HookManager.run_hook``."""

    def __call__(self, hook: str, handler: HookHandler, error: Exception, context: Any) -> None:
        ...


@dataclass
class CustomerHookContext:
    """Context for before/after_customer_create."""

    data: dict[str, Any]
    customer: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SubscriptionHookContext:
    """Context for before/after_subscribe and before/after_cancel."""

    data: dict[str, Any]
    customer: dict[str, Any] | None = None
    subscription: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class UsageHookContext:
    """Context for on_usage_reported."""

    usage: dict[str, Any]
    customer: dict[str, Any]
    metadata: dict[str, Any] = field(default_factory=dict)
