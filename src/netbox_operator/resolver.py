"""Reference resolution: human-readable names to canonical NetBox identifiers.

Each name is looked up individually with a capped page size. The cap only
needs to be large enough to tell "exactly one" apart from "more than one";
uniqueness of names is enforced by NetBox itself.

Resolution is all-or-nothing. The first failure aborts the batch so a
write payload is never assembled from partially resolved references.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from azure.core.exceptions import AzureError

from .client import error_detail, status_code_of
from .config import REFERENCE_SAMPLE_LIMIT
from .errors import AmbiguousReferenceError, TransportError, UnresolvedReferenceError

logger = logging.getLogger(__name__)

TAGS_ENDPOINT = "extras/tags"


class ListingClient(Protocol):
    """The slice of the transport the resolver needs."""

    def list(self, endpoint: str, *, limit: int | None = None, **filters: Any) -> dict[str, Any]:
        """Return one page of objects matching the filters."""


class ReferenceResolver:
    """Resolve reference names against one NetBox endpoint.

    Stateless apart from its configuration; safe to share between
    reconcilers of different resources.
    """

    def __init__(
        self,
        client: ListingClient,
        *,
        endpoint: str = TAGS_ENDPOINT,
        lookup_field: str = "name",
        sample_limit: int = REFERENCE_SAMPLE_LIMIT,
    ) -> None:
        if sample_limit < 2:
            raise ValueError("sample_limit must be at least 2 to detect ambiguous references")
        self._client = client
        self._endpoint = endpoint
        self._lookup_field = lookup_field
        self._sample_limit = sample_limit

    @property
    def endpoint(self) -> str:
        """Get the endpoint references are resolved against."""
        return self._endpoint

    def resolve_one(self, name: str) -> int:
        """Resolve a single name to its identifier.

        Raises:
            UnresolvedReferenceError: If no object has this name.
            AmbiguousReferenceError: If more than one object has this name.
            TransportError: If the lookup itself fails.
        """
        try:
            page = self._client.list(
                self._endpoint,
                limit=self._sample_limit,
                **{self._lookup_field: name},
            )
        except AzureError as e:
            raise TransportError(
                f"Error retrieving '{name}' from {self._endpoint}: {error_detail(e)}",
                status_code=status_code_of(e),
            ) from e

        results = page.get("results") or []
        if not results:
            raise UnresolvedReferenceError(name, self._endpoint)
        if len(results) > 1:
            raise AmbiguousReferenceError(name, len(results), self._endpoint)
        return int(results[0]["id"])

    def resolve(self, names: Iterable[str]) -> dict[str, int]:
        """Resolve every name, returning exactly one identifier per name.

        Lookups are issued in sorted order so repeated runs produce the same
        call sequence.
        """
        resolved: dict[str, int] = {}
        for name in sorted(set(names)):
            resolved[name] = self.resolve_one(name)

        logger.debug(
            "Resolved references",
            extra={"endpoint": self._endpoint, "count": len(resolved)},
        )
        return resolved
