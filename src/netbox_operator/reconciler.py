"""Generic resource reconciler implementing the CRUD+Import lifecycle.

One Reconciler instance manages resources of one kind. All kind specific
behaviour (endpoint, schema, mapping, update semantics) comes from the
ResourceKind, so the control flow below is shared by every kind.

STATE MACHINE:
    Unmanaged --create/import--> Managed --delete--> Unmanaged
    Managed --read (remote gone)--> Unmanaged

Operations on one resource must not run concurrently; different resources
may be reconciled in parallel since the only shared object, the reference
resolver, is stateless.

Tracked state is only ever built from the authoritative remote response:
NetBox may default or normalise fields, so success is never reported from
the locally submitted payload.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from azure.core.exceptions import AzureError, ResourceNotFoundError

from .client import error_detail, status_code_of
from .context import ReconcileContext
from .errors import (
    RemoteReadError,
    RemoteWriteError,
    UnsupportedOperationError,
)
from .resources import Operation, ResourceKind
from .schema import DeclaredResource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackedState:
    """What the engine last confirmed on NetBox for one resource.

    Attributes:
        kind: Resource kind name.
        identifier: NetBox identifier, immutable for the object's lifetime.
        attributes: Declared attributes as read back (None means absent).
    """

    kind: str
    identifier: int
    attributes: dict[str, Any] = field(default_factory=dict)

    def declared(self) -> dict[str, Any]:
        """Return populated attributes only."""
        return {k: v for k, v in self.attributes.items() if v is not None}


class Reconciler:
    """Create, read, update, delete and import resources of one kind.

    Raises (from every operation, as applicable):
        ValidationError: Declared resource rejected before any remote call.
        UnresolvedReferenceError / AmbiguousReferenceError: Tag lookup failed.
        TransportError: Tag lookup could not reach NetBox.
        RemoteReadError / RemoteWriteError: NetBox call failed.
        UnsupportedOperationError: The kind does not offer the operation.
    """

    def __init__(self, kind: ResourceKind, context: ReconcileContext) -> None:
        self._kind = kind
        self._context = context

    @property
    def kind(self) -> ResourceKind:
        """Get the resource kind managed by this reconciler."""
        return self._kind

    def validate(self, declared: Mapping[str, Any] | DeclaredResource) -> DeclaredResource:
        """Validate a declared resource against the kind's schema."""
        return self._kind.schema.validate(declared)

    def create(self, declared: Mapping[str, Any] | DeclaredResource) -> TrackedState:
        """Create the resource and return its tracked state.

        On failure nothing is tracked; the resource stays unmanaged.
        """
        self._require(Operation.CREATE)
        spec = self.validate(declared)
        payload = self._kind.mapper.to_remote_payload(spec, self._context.resolver)

        try:
            remote = self._context.client.create(self._kind.endpoint, payload)
        except AzureError as e:
            logger.error(
                "Failed to create resource",
                extra={"kind": self._kind.name, "error": error_detail(e)},
            )
            raise RemoteWriteError(
                self._kind.name,
                "create",
                error_detail(e),
                status_code=status_code_of(e),
            ) from e

        if remote.get("id") is None:
            raise RemoteWriteError(self._kind.name, "create", "response carried no identifier")
        state = self._track(int(remote["id"]), remote)
        logger.info(
            "Created resource",
            extra={"kind": self._kind.name, "identifier": state.identifier},
        )
        return state

    def read(self, state: TrackedState | int) -> TrackedState | None:
        """Refresh tracked state from NetBox.

        Returns:
            The refreshed state, or None if the resource was deleted out of
            band (drift). The caller must then discard its tracked state.

        Raises:
            RemoteReadError: For any failure other than not-found; the
                caller's tracked state stays as it was.
        """
        self._require(Operation.READ)
        identifier = _identifier_of(state)

        try:
            remote = self._context.client.get(self._kind.endpoint, identifier)
        except ResourceNotFoundError:
            logger.warning(
                "Resource no longer exists, dropping from tracked state",
                extra={"kind": self._kind.name, "identifier": identifier},
            )
            return None
        except AzureError as e:
            raise RemoteReadError(
                self._kind.name,
                identifier,
                error_detail(e),
                status_code=status_code_of(e),
            ) from e

        return self._track(identifier, remote)

    def update(
        self,
        state: TrackedState,
        declared: Mapping[str, Any] | DeclaredResource,
    ) -> TrackedState:
        """Converge an existing resource to its declaration.

        Kinds with partial_update send PATCH, the others PUT. The payload
        always carries every mapped attribute so dropped attributes are
        cleared remotely.

        Raises:
            RemoteWriteError: On failure, including not-found (an update of a
                vanished resource cannot satisfy the caller's intent).
        """
        self._require(Operation.UPDATE)
        spec = self.validate(declared)
        payload = self._kind.mapper.to_remote_payload(spec, self._context.resolver)

        try:
            remote = self._context.client.update(
                self._kind.endpoint,
                state.identifier,
                payload,
                partial=self._kind.partial_update,
            )
        except ResourceNotFoundError as e:
            raise RemoteWriteError(
                self._kind.name,
                "update",
                "resource no longer exists",
                identifier=state.identifier,
                status_code=404,
                not_found=True,
            ) from e
        except AzureError as e:
            raise RemoteWriteError(
                self._kind.name,
                "update",
                error_detail(e),
                identifier=state.identifier,
                status_code=status_code_of(e),
            ) from e

        updated = self._track(state.identifier, remote)
        logger.info(
            "Updated resource",
            extra={
                "kind": self._kind.name,
                "identifier": updated.identifier,
                "partial": self._kind.partial_update,
            },
        )
        return updated

    def delete(self, state: TrackedState | int) -> None:
        """Delete the resource. Deleting a resource that is already gone succeeds.

        Raises:
            RemoteWriteError: For any failure other than not-found; the
                resource stays managed.
        """
        self._require(Operation.DELETE)
        identifier = _identifier_of(state)

        try:
            self._context.client.delete(self._kind.endpoint, identifier)
        except ResourceNotFoundError:
            logger.info(
                "Resource already deleted",
                extra={"kind": self._kind.name, "identifier": identifier},
            )
            return
        except AzureError as e:
            raise RemoteWriteError(
                self._kind.name,
                "delete",
                error_detail(e),
                identifier=identifier,
                status_code=status_code_of(e),
            ) from e

        logger.info(
            "Deleted resource",
            extra={"kind": self._kind.name, "identifier": identifier},
        )

    def import_resource(self, identifier: int) -> TrackedState | None:
        """Adopt an existing NetBox object by identifier.

        Behaves exactly like read(): None if no such object exists.
        """
        self._require(Operation.IMPORT)
        state = self.read(int(identifier))
        if state is not None:
            logger.info(
                "Imported resource",
                extra={"kind": self._kind.name, "identifier": state.identifier},
            )
        return state

    def _require(self, operation: Operation) -> None:
        if not self._kind.supports(operation):
            raise UnsupportedOperationError(self._kind.name, operation.value)

    def _track(self, identifier: int, remote: Mapping[str, Any]) -> TrackedState:
        return TrackedState(
            kind=self._kind.name,
            identifier=identifier,
            attributes=self._kind.mapper.from_remote_payload(remote),
        )


def _identifier_of(state: TrackedState | int) -> int:
    if isinstance(state, TrackedState):
        return state.identifier
    return int(state)
