"""Usage metering plugin."""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from billing_core.api.models import UsageAggregation, UsageRecordRequest
from billing_core.db import Record, SortBy
from billing_core.errors import create_error
from billing_core.hooks import BillingHook, UsageHookContext
from billing_core.logging import get_logger

from ..context import DependencyContext
from ..factory import create_plugin
from ..types import Endpoint, PluginDescriptor, PluginResult
from .core import utc_now

USAGE_PLUGIN_ID = "usage"

logger = get_logger("plugins.usage")

USAGE_SCHEMA: dict[str, Any] = {
    "usage": {
        "id": {"type": "string", "required": True},
        "customer_id": {"type": "string", "required": True, "references": "customer.id"},
        "subscription_id": {"type": "string", "references": "subscription.id"},
        "metric_name": {"type": "string", "required": True},
        "quantity": {"type": "number", "required": True},
        "timestamp": {"type": "date", "required": True, "default": utc_now},
        "metadata": "json",
        "created_at": {"type": "date", "required": True, "default": utc_now},
        "updated_at": {"type": "date", "required": True, "default": utc_now},
    },
}


def _usage_filter(
    customer_id: str,
    subscription_id: str | None = None,
    metric_name: str | None = None,
) -> list[dict[str, Any]]:
    where = [{"field": "customer_id", "value": customer_id}]
    if subscription_id is not None:
        where.append({"field": "subscription_id", "value": subscription_id})
    if metric_name is not None:
        where.append({"field": "metric_name", "value": metric_name})
    return where


class UsageMethods:
    """Methods exposed as ``billing.methods.usage``."""

    def __init__(self, context: DependencyContext):
        self._context = context

    async def record_usage(self, data: Mapping[str, Any]) -> Record:
        """Store one usage event for an existing customer.

        The customer (and subscription, when given) is looked up through the
        dependency-bound handle, which sees the core plugin's tables.

        Raises:
            NotFoundError: If the customer or subscription does not exist
        """
        customer_id = data.get("customer_id")
        customer = await self._context.db.find_one("customer", {"id": customer_id})
        if customer is None:
            raise create_error("ENTITY_NOT_FOUND", model="customer", entity_id=customer_id)

        subscription_id = data.get("subscription_id")
        if subscription_id is not None:
            subscription = await self._context.db.find_one(
                "subscription", {"id": subscription_id, "customer_id": customer_id}
            )
            if subscription is None:
                raise create_error(
                    "ENTITY_NOT_FOUND", model="subscription", entity_id=subscription_id
                )

        record = {key: value for key, value in data.items() if value is not None}
        usage = await self._context.with_extras().db.create("usage", record)
        logger.debug(
            "Usage recorded",
            customer_id=customer_id,
            metric_name=usage.get("metric_name"),
            quantity=usage.get("quantity"),
        )

        await self._context.hooks.run_hook(
            BillingHook.ON_USAGE_REPORTED, UsageHookContext(usage=usage, customer=customer)
        )
        return usage

    async def get_usage(
        self,
        customer_id: str,
        subscription_id: str | None = None,
        metric_name: str | None = None,
        period_start: datetime | None = None,
        period_end: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Usage totals per (subscription, metric) within an optional period.

        Groups appear in the order their first record was stored. Without an
        explicit period, a group's bounds are its earliest and latest record.
        """
        where = _usage_filter(customer_id, subscription_id, metric_name)
        if period_start is not None:
            where.append({"field": "timestamp", "value": period_start, "operator": "gte"})
        if period_end is not None:
            where.append({"field": "timestamp", "value": period_end, "operator": "lte"})

        records = await self._context.with_extras().db.find_many("usage", where)

        groups: dict[tuple[Any, Any], dict[str, Any]] = {}
        for record in records:
            key = (record.get("subscription_id"), record.get("metric_name"))
            group = groups.get(key)
            if group is None:
                group = groups[key] = {
                    "customer_id": record["customer_id"],
                    "subscription_id": record.get("subscription_id"),
                    "metric_name": record.get("metric_name"),
                    "total_quantity": 0,
                    "records": [],
                }
            group["total_quantity"] += record.get("quantity") or 0
            group["records"].append(record)

        for group in groups.values():
            timestamps = [r["timestamp"] for r in group["records"] if r.get("timestamp")]
            group["period_start"] = period_start or (min(timestamps) if timestamps else None)
            group["period_end"] = period_end or (max(timestamps) if timestamps else None)
            group["record_count"] = len(group["records"])
        return list(groups.values())

    async def get_usage_records(
        self,
        customer_id: str,
        subscription_id: str | None = None,
        metric_name: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Record]:
        """Raw usage records, oldest first."""
        return await self._context.with_extras().db.find_many(
            "usage",
            _usage_filter(customer_id, subscription_id, metric_name),
            limit=limit,
            offset=offset,
            sort_by=SortBy("timestamp"),
        )

    async def delete_usage(self, usage_id: str) -> None:
        """Delete one usage record.

        Raises:
            NotFoundError: If no record has the id
        """
        deleted = await self._context.with_extras().db.delete("usage", {"id": usage_id})
        if not deleted:
            raise create_error("ENTITY_NOT_FOUND", model="usage", entity_id=usage_id)

    def as_dict(self) -> dict[str, Any]:
        return {
            "record_usage": self.record_usage,
            "get_usage": self.get_usage,
            "get_usage_records": self.get_usage_records,
            "delete_usage": self.delete_usage,
        }


def _usage_endpoints(methods: UsageMethods) -> dict[str, Endpoint]:
    async def record_usage(body: UsageRecordRequest) -> dict[str, Any]:
        return await methods.record_usage(body.model_dump(exclude_none=True))

    async def list_usage(
        customer_id: str,
        subscription_id: str | None = None,
        metric_name: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        return await methods.get_usage_records(
            customer_id, subscription_id, metric_name, limit=limit, offset=offset
        )

    async def usage_summary(
        customer_id: str,
        subscription_id: str | None = None,
        metric_name: str | None = None,
        period_start: datetime | None = None,
        period_end: datetime | None = None,
    ) -> list[UsageAggregation]:
        groups = await methods.get_usage(
            customer_id, subscription_id, metric_name, period_start, period_end
        )
        return [
            UsageAggregation(**{k: v for k, v in group.items() if k != "records"})
            for group in groups
        ]

    return {
        "record_usage": Endpoint("/usage", "POST", record_usage),
        "list_usage": Endpoint("/usage", "GET", list_usage),
        "usage_summary": Endpoint("/usage/summary", "GET", usage_summary),
    }


def usage_metering_plugin(core: PluginDescriptor) -> PluginDescriptor:
    """Usage metering on top of the core plugin.

    Args:
        core: The configured core plugin descriptor (the same object, since
            descriptors are matched by identity)

    Returns:
        Plugin descriptor with id ``usage``
    """

    def init(context: DependencyContext) -> PluginResult:
        methods = UsageMethods(context)
        return PluginResult(
            schema=USAGE_SCHEMA,
            endpoints=_usage_endpoints(methods),
            methods=methods.as_dict(),
        )

    return create_plugin(USAGE_PLUGIN_ID, init, depends_on=[core])
