"""Payment-provider contributions and merging."""

from .merger import MergedProviderTable, ProviderMerger, ProviderMethods, merge_providers
from .types import (
    RESERVED_METHOD_NAMES,
    RESERVED_PROVIDER_IDS,
    ProviderContribution,
    ProviderMethod,
    parse_capability,
)

__all__ = [
    "ProviderContribution",
    "ProviderMethod",
    "parse_capability",
    "RESERVED_METHOD_NAMES",
    "RESERVED_PROVIDER_IDS",
    "ProviderMethods",
    "MergedProviderTable",
    "ProviderMerger",
    "merge_providers",
]
