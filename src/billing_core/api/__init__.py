"""Billing REST API."""

from .errors import setup_error_handlers
from .router import BillingAPI, create_billing_router

__all__ = [
    "BillingAPI",
    "create_billing_router",
    "setup_error_handlers",
]
