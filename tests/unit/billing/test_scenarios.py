"""End-to-end composition scenarios."""

import logging

import pytest

from billing_core import create_billing
from billing_core.conditions import evaluate, parse_condition
from billing_core.hooks import BillingHook
from billing_core.plugins import PluginResult, create_plugin
from billing_core.providers import ProviderContribution

pytestmark = pytest.mark.scenario


@pytest.mark.asyncio
async def test_core_and_usage_share_one_schema(billing) -> None:
    """Core and usage compose into one schema and usage can be recorded for a customer."""
    schema = billing.get_merged_schema()
    assert schema.has_table("customer")
    assert schema.has_table("usage")
    assert schema.get_field("usage", "customer_id").references == "customer.id"

    customer = await billing.methods.core.create_customer({"email": "ada@example.com"})
    subscription = await billing.methods.core.create_subscription({"customer_id": customer["id"]})
    usage = await billing.methods.usage.record_usage(
        {
            "customer_id": customer["id"],
            "subscription_id": subscription["id"],
            "metric_name": "api_calls",
            "quantity": 10,
        }
    )
    assert usage["customer_id"] == customer["id"]


@pytest.mark.asyncio
async def test_capabilities_of_one_provider_are_merged() -> None:
    """Two plugins contributing different capabilities of one provider."""

    async def create_subscription(data):
        return {"id": "sub_remote"}

    async def create_checkout_session(data):
        return {"url": "https://checkout.example.com/session"}

    a = create_plugin(
        "a",
        lambda ctx: PluginResult(
            providers=[
                ProviderContribution(
                    "stripe", "subscription", {"create_subscription": create_subscription}
                )
            ]
        ),
    )
    b = create_plugin(
        "b",
        lambda ctx: {
            "providers": [
                {
                    "provider_id": "stripe",
                    "capability": "checkout-session",
                    "methods": {"create_checkout_session": create_checkout_session},
                }
            ]
        },
    )
    billing = create_billing([a, b])

    assert set(billing.providers.stripe) == {"create_subscription", "create_checkout_session"}
    assert (await billing.providers.stripe.create_checkout_session({}))["url"].startswith("https")
    assert (await billing.providers["stripe"]["create_subscription"]({}))["id"] == "sub_remote"


def test_sequence_condition_with_in_operator() -> None:
    """A two-leaf AND sequence with an ``in`` leaf."""
    condition = parse_condition(
        [
            {"field": "status", "value": "active"},
            {"field": "quantity", "value": [1, 2, 3], "operator": "in"},
        ]
    )
    assert evaluate(condition, {"status": "active", "quantity": 2})
    assert not evaluate(condition, {"status": "active", "quantity": 5})


@pytest.mark.asyncio
async def test_failing_customer_hook_is_isolated(billing, caplog) -> None:
    """A throwing before-hook does not stop later handlers or the operation."""
    calls: list[str] = []

    def broken(ctx):
        calls.append("broken")
        raise RuntimeError("handler exploded")

    billing.hooks.register(BillingHook.BEFORE_CUSTOMER_CREATE, broken)
    billing.hooks.register(BillingHook.BEFORE_CUSTOMER_CREATE, lambda ctx: calls.append("before"))
    billing.hooks.register(BillingHook.AFTER_CUSTOMER_CREATE, lambda ctx: calls.append("after"))

    with caplog.at_level(logging.ERROR, logger="billing"):
        customer = await billing.methods.core.create_customer({"email": "ada@example.com"})

    assert customer["email"] == "ada@example.com"
    assert calls == ["broken", "before", "after"]
    [failure] = [r for r in caplog.records if r.getMessage() == "Hook handler failed"]
    assert failure.hook == "before_customer_create"
    assert failure.exc_info[1].args == ("handler exploded",)
