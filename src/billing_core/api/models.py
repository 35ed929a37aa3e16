"""REST API request and response models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# ─────────────────────────────────────────────────────────────────
# Error Response
# ─────────────────────────────────────────────────────────────────


class ErrorDetail(BaseModel):
    """Error detail model (matches BillingError.to_dict)."""

    code: str
    category: str
    message: str
    detail: str | None = None
    suggestion: str | None = None
    field: str | None = None
    operator: str | None = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: ErrorDetail


# ─────────────────────────────────────────────────────────────────
# Health
# ─────────────────────────────────────────────────────────────────


class HealthCheck(BaseModel):
    """Health check response."""

    status: str = "ok"
    plugins: list[str] = Field(default_factory=list)


# ─────────────────────────────────────────────────────────────────
# Customers
# ─────────────────────────────────────────────────────────────────


class CustomerCreateRequest(BaseModel):
    """Create customer request."""

    email: str | None = None
    billable_id: str | None = None
    billable_type: str | None = None
    metadata: dict[str, Any] | None = None


class CustomerUpdateRequest(BaseModel):
    """Update customer request. Only fields that are set are applied."""

    email: str | None = None
    metadata: dict[str, Any] | None = None


# ─────────────────────────────────────────────────────────────────
# Subscriptions
# ─────────────────────────────────────────────────────────────────


class SubscriptionCreateRequest(BaseModel):
    """Create subscription request."""

    customer_id: str
    product_id: str | None = None
    price_id: str | None = None
    quantity: int = Field(default=1, ge=1)
    trial_end: datetime | None = None
    metadata: dict[str, Any] | None = None


class SubscriptionCancelRequest(BaseModel):
    """Cancel subscription request."""

    immediately: bool = False


# ─────────────────────────────────────────────────────────────────
# Usage
# ─────────────────────────────────────────────────────────────────


class UsageRecordRequest(BaseModel):
    """Record usage request."""

    customer_id: str
    subscription_id: str
    metric_name: str
    quantity: float = Field(ge=0)
    timestamp: datetime | None = None
    metadata: dict[str, Any] | None = None


class UsageAggregation(BaseModel):
    """Usage totals for one subscription and metric."""

    customer_id: str
    subscription_id: str
    metric_name: str
    total_quantity: float
    period_start: datetime | None = None
    period_end: datetime | None = None
    record_count: int
