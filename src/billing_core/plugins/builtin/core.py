"""Core billing plugin: customers, subscriptions, invoices, payment methods."""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from billing_core.api.models import (
    CustomerCreateRequest,
    CustomerUpdateRequest,
    HealthCheck,
    SubscriptionCancelRequest,
    SubscriptionCreateRequest,
)
from billing_core.conditions import WhereInput
from billing_core.db import Record
from billing_core.errors import create_error
from billing_core.hooks import BillingHook, CustomerHookContext, SubscriptionHookContext
from billing_core.logging import get_logger
from billing_core.providers import ProviderMethods
from billing_core.types import Capability, SubscriptionStatus

from ..context import DependencyContext
from ..factory import create_plugin
from ..types import Endpoint, PluginDescriptor, PluginResult

CORE_PLUGIN_ID = "core"

ACTIVE_STATUSES = (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIALING.value)

logger = get_logger("plugins.core")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


CORE_SCHEMA: dict[str, Any] = {
    "customer": {
        "id": {"type": "string", "required": True},
        "billable_id": "string",
        "billable_type": "string",
        "provider_id": "string",
        "provider_customer_id": "string",
        "email": "string",
        "metadata": "json",
        "created_at": {"type": "date", "required": True, "default": utc_now},
        "updated_at": {"type": "date", "required": True, "default": utc_now},
    },
    "subscription": {
        "id": {"type": "string", "required": True},
        "customer_id": {"type": "string", "required": True, "references": "customer.id"},
        "provider_id": "string",
        "provider_subscription_id": "string",
        "status": {"type": "string", "required": True, "default": SubscriptionStatus.ACTIVE.value},
        "product_id": "string",
        "price_id": "string",
        "quantity": {"type": "number", "default": 1},
        "current_period_start": "date",
        "current_period_end": "date",
        "cancel_at": "date",
        "canceled_at": "date",
        "ended_at": "date",
        "trial_end": "date",
        "metadata": "json",
        "created_at": {"type": "date", "required": True, "default": utc_now},
        "updated_at": {"type": "date", "required": True, "default": utc_now},
    },
    "invoice": {
        "id": {"type": "string", "required": True},
        "customer_id": {"type": "string", "required": True, "references": "customer.id"},
        "subscription_id": {"type": "string", "references": "subscription.id"},
        "provider_id": "string",
        "provider_invoice_id": "string",
        "number": "string",
        "status": {"type": "string", "required": True},
        "amount": {"type": "number", "required": True},
        "currency": {"type": "string", "required": True},
        "paid_at": "date",
        "due_date": "date",
        "metadata": "json",
        "created_at": {"type": "date", "required": True, "default": utc_now},
    },
    "payment_method": {
        "id": {"type": "string", "required": True},
        "customer_id": {"type": "string", "required": True, "references": "customer.id"},
        "provider_id": "string",
        "provider_payment_method_id": "string",
        "type": {"type": "string", "required": True},
        "last4": "string",
        "brand": "string",
        "is_default": {"type": "boolean", "required": True, "default": False},
        "metadata": "json",
    },
}


class CoreMethods:
    """Methods exposed as ``billing.methods.core``.

    Tables are reached through ``context.with_extras()`` at call time: the
    core plugin declares the tables itself, so its dependency-scoped handle
    does not see them during init.
    """

    def __init__(self, context: DependencyContext, provider_id: str | None = None):
        self._context = context
        self._provider_id = provider_id

    @property
    def _db(self):
        return self._context.with_extras().db

    @property
    def _hooks(self):
        return self._context.hooks

    def _provider(self) -> ProviderMethods | None:
        if self._provider_id is None:
            return None
        return self._context.with_extras().providers[self._provider_id]

    # Customers

    async def create_customer(self, data: Mapping[str, Any]) -> Record:
        context = CustomerHookContext(data=dict(data))
        await self._hooks.run_hook(BillingHook.BEFORE_CUSTOMER_CREATE, context)

        record = dict(context.data)
        provider = self._provider()
        if provider is not None:
            remote = await provider.create_customer(dict(context.data))
            record["provider_id"] = self._provider_id
            record["provider_customer_id"] = _remote_id(remote, "provider_customer_id")

        customer = await self._db.create("customer", record)
        context.customer = customer
        logger.info("Customer created", customer_id=customer["id"])

        await self._hooks.run_hook(BillingHook.AFTER_CUSTOMER_CREATE, context)
        return customer

    async def get_customer(self, customer_id: str) -> Record | None:
        return await self._db.find_one("customer", {"id": customer_id})

    async def update_customer(self, customer_id: str, data: Mapping[str, Any]) -> Record:
        existing = await self._require("customer", customer_id)
        provider = self._provider()
        if provider is not None and "update_customer" in provider:
            await provider.update_customer(existing.get("provider_customer_id"), dict(data))

        updated = await self._db.update(
            "customer", {"id": customer_id}, {**data, "updated_at": utc_now()}
        )
        return updated or existing

    async def delete_customer(self, customer_id: str) -> None:
        existing = await self._require("customer", customer_id)
        provider = self._provider()
        if provider is not None and "delete_customer" in provider:
            await provider.delete_customer(existing.get("provider_customer_id"))
        await self._db.delete("customer", {"id": customer_id})
        logger.info("Customer deleted", customer_id=customer_id)

    async def list_customers(self, where: WhereInput = None) -> list[Record]:
        return await self._db.find_many("customer", where)

    # Subscriptions

    async def create_subscription(self, data: Mapping[str, Any]) -> Record:
        customer = await self._require("customer", data.get("customer_id"))
        context = SubscriptionHookContext(data=dict(data), customer=customer)
        await self._hooks.run_hook(BillingHook.BEFORE_SUBSCRIBE, context)

        record = dict(context.data)
        provider = self._provider()
        if provider is not None:
            remote = await provider.create_subscription(
                {**context.data, "provider_customer_id": customer.get("provider_customer_id")}
            )
            record["provider_id"] = self._provider_id
            record["provider_subscription_id"] = _remote_id(remote, "provider_subscription_id")
            for key in ("status", "current_period_start", "current_period_end", "trial_end"):
                if remote and remote.get(key) is not None:
                    record[key] = remote[key]

        subscription = await self._db.create("subscription", record)
        context.subscription = subscription
        logger.info(
            "Subscription created",
            subscription_id=subscription["id"],
            customer_id=customer["id"],
        )

        await self._hooks.run_hook(BillingHook.AFTER_SUBSCRIBE, context)
        return subscription

    async def get_subscription(self, subscription_id: str) -> Record | None:
        return await self._db.find_one("subscription", {"id": subscription_id})

    async def list_subscriptions(self, where: WhereInput = None) -> list[Record]:
        return await self._db.find_many("subscription", where)

    async def get_active_subscriptions(self, customer_id: str) -> list[Record]:
        return await self._db.find_many(
            "subscription",
            [
                {"field": "customer_id", "value": customer_id},
                {"field": "status", "value": list(ACTIVE_STATUSES), "operator": "in"},
            ],
        )

    async def update_subscription(self, subscription_id: str, data: Mapping[str, Any]) -> Record:
        existing = await self._require("subscription", subscription_id)
        changes = dict(data)
        provider = self._provider()
        if provider is not None and "update_subscription" in provider:
            remote = await provider.update_subscription(
                existing.get("provider_subscription_id"), dict(data)
            )
            if remote and remote.get("status"):
                changes["status"] = remote["status"]

        updated = await self._db.update(
            "subscription", {"id": subscription_id}, {**changes, "updated_at": utc_now()}
        )
        return updated or existing

    async def cancel_subscription(self, subscription_id: str, immediately: bool = False) -> Record:
        """Cancel now, or at the end of the current period.

        Raises:
            NotFoundError: If the subscription does not exist
        """
        existing = await self._require("subscription", subscription_id)
        context = SubscriptionHookContext(
            data={"immediately": immediately}, subscription=existing
        )
        await self._hooks.run_hook(BillingHook.BEFORE_CANCEL, context)

        provider = self._provider()
        if provider is not None and "cancel_subscription" in provider:
            await provider.cancel_subscription(
                existing.get("provider_subscription_id"), immediately=immediately
            )

        now = utc_now()
        if immediately:
            changes = {
                "status": SubscriptionStatus.CANCELED.value,
                "canceled_at": now,
                "ended_at": now,
            }
        else:
            changes = {"cancel_at": existing.get("current_period_end") or now, "canceled_at": now}
        changes["updated_at"] = now

        canceled = await self._db.update("subscription", {"id": subscription_id}, changes)
        context.subscription = canceled
        logger.info(
            "Subscription canceled", subscription_id=subscription_id, immediately=immediately
        )

        await self._hooks.run_hook(BillingHook.AFTER_CANCEL, context)
        return canceled or existing

    # Invoices and payment methods

    async def list_invoices(self, where: WhereInput = None) -> list[Record]:
        return await self._db.find_many("invoice", where)

    async def list_payment_methods(self, where: WhereInput = None) -> list[Record]:
        return await self._db.find_many("payment_method", where)

    async def _require(self, model: str, entity_id: Any) -> Record:
        record = await self._db.find_one(model, {"id": entity_id}) if entity_id else None
        if record is None:
            raise create_error("ENTITY_NOT_FOUND", model=model, entity_id=entity_id)
        return record

    def as_dict(self) -> dict[str, Any]:
        return {
            "create_customer": self.create_customer,
            "get_customer": self.get_customer,
            "update_customer": self.update_customer,
            "delete_customer": self.delete_customer,
            "list_customers": self.list_customers,
            "create_subscription": self.create_subscription,
            "get_subscription": self.get_subscription,
            "list_subscriptions": self.list_subscriptions,
            "get_active_subscriptions": self.get_active_subscriptions,
            "update_subscription": self.update_subscription,
            "cancel_subscription": self.cancel_subscription,
            "list_invoices": self.list_invoices,
            "list_payment_methods": self.list_payment_methods,
        }


def _remote_id(remote: Mapping[str, Any] | None, key: str) -> Any:
    if not remote:
        return None
    return remote.get(key, remote.get("id"))


def _core_endpoints(methods: CoreMethods, context: DependencyContext) -> dict[str, Endpoint]:
    async def health() -> HealthCheck:
        return HealthCheck(status="ok", plugins=list(context.with_extras().plugins))

    async def create_customer(body: CustomerCreateRequest) -> dict[str, Any]:
        return await methods.create_customer(body.model_dump(exclude_none=True))

    async def list_customers(email: str | None = None) -> list[dict[str, Any]]:
        where = {"email": email} if email is not None else None
        return await methods.list_customers(where)

    async def get_customer(customer_id: str) -> dict[str, Any]:
        customer = await methods.get_customer(customer_id)
        if customer is None:
            raise create_error("ENTITY_NOT_FOUND", model="customer", entity_id=customer_id)
        return customer

    async def update_customer(customer_id: str, body: CustomerUpdateRequest) -> dict[str, Any]:
        return await methods.update_customer(customer_id, body.model_dump(exclude_unset=True))

    async def delete_customer(customer_id: str) -> dict[str, Any]:
        await methods.delete_customer(customer_id)
        return {"deleted": True, "id": customer_id}

    async def create_subscription(body: SubscriptionCreateRequest) -> dict[str, Any]:
        return await methods.create_subscription(body.model_dump(exclude_none=True))

    async def list_subscriptions(
        customer_id: str | None = None, status: str | None = None
    ) -> list[dict[str, Any]]:
        where = {
            key: value
            for key, value in (("customer_id", customer_id), ("status", status))
            if value is not None
        }
        return await methods.list_subscriptions(where or None)

    async def get_subscription(subscription_id: str) -> dict[str, Any]:
        subscription = await methods.get_subscription(subscription_id)
        if subscription is None:
            raise create_error(
                "ENTITY_NOT_FOUND", model="subscription", entity_id=subscription_id
            )
        return subscription

    async def cancel_subscription(
        subscription_id: str, body: SubscriptionCancelRequest
    ) -> dict[str, Any]:
        return await methods.cancel_subscription(subscription_id, immediately=body.immediately)

    return {
        "health": Endpoint("/health", "GET", health),
        "create_customer": Endpoint("/customers", "POST", create_customer),
        "list_customers": Endpoint("/customers", "GET", list_customers),
        "get_customer": Endpoint("/customers/{customer_id}", "GET", get_customer),
        "update_customer": Endpoint("/customers/{customer_id}", "PATCH", update_customer),
        "delete_customer": Endpoint("/customers/{customer_id}", "DELETE", delete_customer),
        "create_subscription": Endpoint("/subscriptions", "POST", create_subscription),
        "list_subscriptions": Endpoint("/subscriptions", "GET", list_subscriptions),
        "get_subscription": Endpoint("/subscriptions/{subscription_id}", "GET", get_subscription),
        "cancel_subscription": Endpoint(
            "/subscriptions/{subscription_id}/cancel", "POST", cancel_subscription
        ),
    }


def core_plugin(provider_id: str | None = None) -> PluginDescriptor:
    """The core billing plugin.

    Args:
        provider_id: Payment provider customers and subscriptions are
            created with. Another plugin must contribute it with the
            ``customer`` and ``subscription`` capabilities. Without one,
            records are only stored locally.

    Returns:
        Plugin descriptor with id ``core``
    """

    def init(context: DependencyContext) -> PluginResult:
        methods = CoreMethods(context, provider_id)
        return PluginResult(
            schema=CORE_SCHEMA,
            endpoints=_core_endpoints(methods, context),
            methods=methods.as_dict(),
        )

    required = ()
    if provider_id is not None:
        required = ((provider_id, Capability.CUSTOMER), (provider_id, Capability.SUBSCRIPTION))
    return create_plugin(CORE_PLUGIN_ID, init, required_providers=required)
