"""Test mocks for billing-core.

Provides mock implementations for testing:
- MockProvider: In-process payment provider contributed as a plugin
"""

from .mock_provider import MockProvider

__all__ = ["MockProvider"]
