"""Billing configuration."""

from .loader import ConfigLoader, resolve_env_vars
from .models import BillingConfig, LoggingConfig

__all__ = [
    "BillingConfig",
    "ConfigLoader",
    "LoggingConfig",
    "resolve_env_vars",
]
