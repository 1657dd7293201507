"""Explicit reconcile context threaded through every reconciler call.

The context owns the transport and the reference resolver for the
duration of a run. open_context() acquires them at process start and
releases the HTTP session on exit; nothing is held in module globals.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Protocol

from azure.core.exceptions import AzureError

from .client import NetBoxClient, check_server_version, error_detail, status_code_of
from .config import Config
from .errors import TransportError
from .resolver import ReferenceResolver

logger = logging.getLogger(__name__)


class RemoteClient(Protocol):
    """Remote calls the reconciler issues, one per logical operation."""

    def create(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]: ...

    def get(self, endpoint: str, identifier: int) -> dict[str, Any]: ...

    def update(
        self,
        endpoint: str,
        identifier: int,
        payload: dict[str, Any],
        *,
        partial: bool = True,
    ) -> dict[str, Any]: ...

    def delete(self, endpoint: str, identifier: int) -> None: ...

    def list(
        self, endpoint: str, *, limit: int | None = None, **filters: Any
    ) -> dict[str, Any]: ...


@dataclass(frozen=True)
class ReconcileContext:
    """Transport and resolver shared by the reconcilers of one run."""

    client: RemoteClient
    resolver: ReferenceResolver

    @classmethod
    def for_client(cls, client: RemoteClient) -> ReconcileContext:
        """Build a context resolving tags through the same client."""
        return cls(client=client, resolver=ReferenceResolver(client))


@contextmanager
def open_context(config: Config) -> Iterator[ReconcileContext]:
    """Open a NetBox session for the duration of the block.

    Raises:
        TransportError: If the startup version check cannot reach NetBox.
    """
    with NetBoxClient.from_config(config) as client:
        if not config.skip_version_check:
            try:
                check_server_version(client)
            except AzureError as e:
                raise TransportError(
                    f"Error getting NetBox status: {error_detail(e)}",
                    status_code=status_code_of(e),
                ) from e
        logger.debug("Opened reconcile context", extra={"server_url": config.server_url})
        yield ReconcileContext.for_client(client)
