"""Shared enumerations for billing core."""

from enum import Enum


class LogLevel(str, Enum):
    """Log verbosity level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Log output format."""

    JSON = "json"
    TEXT = "text"


class FieldType(str, Enum):
    """Column type of a schema field."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    JSON = "json"


class Operator(str, Enum):
    """Comparison operator of a condition leaf."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


class Connector(str, Enum):
    """Boolean connector of a condition group."""

    AND = "AND"
    OR = "OR"


class Capability(str, Enum):
    """Category of payment-provider behavior."""

    SUBSCRIPTION = "subscription"
    CHECKOUT_SESSION = "checkout-session"
    CUSTOMER = "customer"
    INVOICE = "invoice"
    ONE_TIME = "one-time"
    EXTENSION = "extension"


class SubscriptionStatus(str, Enum):
    """Lifecycle status of a subscription."""

    ACTIVE = "active"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAST_DUE = "past_due"
    TRIALING = "trialing"
    UNPAID = "unpaid"
    PAUSED = "paused"
