"""Lifecycle hooks."""

from .manager import HookManager
from .types import (
    BillingHook,
    CustomerHookContext,
    HookErrorObserver,
    HookHandler,
    SubscriptionHookContext,
    UsageHookContext,
    hook_name,
)

__all__ = [
    "HookManager",
    "BillingHook",
    "HookHandler",
    "HookErrorObserver",
    "CustomerHookContext",
    "SubscriptionHookContext",
    "UsageHookContext",
    "hook_name",
]
