"""
Pytest configuration and shared fixtures for billing-core tests.
"""

import sys
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
import yaml

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from billing_core import BillingCore, create_billing  # noqa: E402
from billing_core.db import MemoryAdapter  # noqa: E402
from billing_core.logging import reset_loggers  # noqa: E402
from billing_core.plugins import PluginDescriptor  # noqa: E402
from billing_core.plugins.builtin import core_plugin, usage_metering_plugin  # noqa: E402

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def write_config(tmp_path: Path):
    """Write a YAML config file and return its path."""

    def _write(data: dict[str, Any], name: str = "billing-config.yaml") -> Path:
        path = tmp_path / name
        with path.open("w") as f:
            yaml.safe_dump(data, f)
        return path

    return _write


# =============================================================================
# Logging Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _fresh_loggers() -> Generator[None, None, None]:
    """Drop cached loggers between tests."""
    yield
    reset_loggers()


# =============================================================================
# Billing Fixtures
# =============================================================================


@pytest.fixture
def memory_adapter() -> MemoryAdapter:
    """Create an empty in-memory adapter."""
    return MemoryAdapter()


@pytest.fixture
def core() -> PluginDescriptor:
    """Core plugin without a payment provider."""
    return core_plugin()


@pytest.fixture
def usage(core: PluginDescriptor) -> PluginDescriptor:
    """Usage metering plugin depending on the core fixture."""
    return usage_metering_plugin(core)


@pytest.fixture
def billing(
    core: PluginDescriptor, usage: PluginDescriptor, memory_adapter: MemoryAdapter
) -> BillingCore:
    """Billing core with core and usage plugins over a memory adapter."""
    return create_billing([core, usage], database=memory_adapter)


# =============================================================================
# Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "scenario: End-to-end composition scenarios")
