"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for netbox_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from netbox_mock import MockNetBoxClient  # noqa: E402

from netbox_operator.context import ReconcileContext  # noqa: E402


@pytest.fixture
def netbox() -> MockNetBoxClient:
    """Empty in-memory NetBox."""
    return MockNetBoxClient()


@pytest.fixture
def context(netbox: MockNetBoxClient) -> ReconcileContext:
    """Reconcile context bound to the in-memory NetBox."""
    return ReconcileContext.for_client(netbox)
