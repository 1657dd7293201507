"""NetBox API Mock for Integration Testing.

This module provides an in-memory stand-in for the NetBox REST API that
enables reconciler and runner tests without a NetBox server.

Key Features:
- In-memory object store rendered the way NetBox renders reads
- PATCH (merge) and PUT (replace) update semantics
- Tag lookup by name, duplicates allowed to simulate ambiguity
- Error injection per operation (HTTP status or transport failure)
- Recorded calls for asserting on the remote traffic

Usage:
    from netbox_mock import MockNetBoxClient

    client = MockNetBoxClient()
    client.state.add_tag("production")
    context = ReconcileContext.for_client(client)

    state = Reconciler(SITE, context).create({"name": "DC 1", "slug": "dc1"})
    assert client.state.count("dcim/sites") == 1
"""

from .client import MockCall, MockNetBoxClient, http_error
from .state import TAGS_ENDPOINT, MockNetBoxState

__all__ = [
    "TAGS_ENDPOINT",
    "MockCall",
    "MockNetBoxClient",
    "MockNetBoxState",
    "http_error",
]
