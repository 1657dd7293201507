"""Single-pass convergence of a set of declarations.

For every declaration: read the tracked object (detecting drift), then
create, update or leave it alone. Tracked addresses that are no longer
declared are deleted. Failures are recorded per resource and do not stop
the pass; nothing is retried.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .context import ReconcileContext
from .errors import OperatorError
from .reconciler import Reconciler, TrackedState
from .resources import ResourceKind, get_resource_kind
from .spec_loader import Declaration

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Outcome of one convergence pass."""

    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    replaced: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    drifted: list[str] = field(default_factory=list)
    errors: dict[str, OperatorError] = field(default_factory=dict)
    state: dict[str, tuple[str, int]] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """Check if every resource converged."""
        return not self.errors

    @property
    def changes(self) -> int:
        """Number of remote writes performed."""
        return len(self.created) + len(self.updated) + len(self.replaced) + len(self.deleted)


def changed_attributes(
    kind: ResourceKind, desired: Mapping[str, Any], tracked: TrackedState
) -> list[str]:
    """List attributes whose declared value differs from the tracked one."""
    return [
        name
        for name in kind.mapper.attributes
        if desired.get(name) != tracked.attributes.get(name)
    ]


def apply(
    context: ReconcileContext,
    declarations: Iterable[Declaration],
    state: Mapping[str, tuple[str, int]],
) -> ApplyResult:
    """Converge NetBox towards the declarations.

    Args:
        context: Open reconcile context.
        declarations: Validated declarations.
        state: Tracked identifiers keyed by address, from the previous pass.

    Returns:
        ApplyResult whose state holds the identifiers to persist.
    """
    result = ApplyResult(state=dict(state))
    declared_addresses: set[str] = set()

    for declaration in declarations:
        address = declaration.address
        declared_addresses.add(address)
        reconciler = Reconciler(declaration.kind, context)
        try:
            _converge(reconciler, declaration, result)
        except OperatorError as e:
            logger.error(
                "Failed to reconcile resource",
                extra={"address": address, "error": str(e), "error_type": type(e).__name__},
            )
            result.errors[address] = e

    for address, (kind_name, identifier) in sorted(state.items()):
        if address in declared_addresses:
            continue
        try:
            kind = get_resource_kind(kind_name)
        except ValueError as e:
            logger.error(
                "Unknown resource kind in state, leaving it tracked",
                extra={"address": address, "kind": kind_name, "error": str(e)},
            )
            continue
        try:
            Reconciler(kind, context).delete(identifier)
        except OperatorError as e:
            logger.error(
                "Failed to delete undeclared resource",
                extra={"address": address, "identifier": identifier, "error": str(e)},
            )
            result.errors[address] = e
            continue
        result.state.pop(address, None)
        result.deleted.append(address)

    logger.info(
        "Apply finished",
        extra={
            "created": len(result.created),
            "updated": len(result.updated),
            "replaced": len(result.replaced),
            "unchanged": len(result.unchanged),
            "deleted": len(result.deleted),
            "drifted": len(result.drifted),
            "errors": len(result.errors),
        },
    )
    return result


def _converge(reconciler: Reconciler, declaration: Declaration, result: ApplyResult) -> None:
    address = declaration.address
    kind = declaration.kind
    tracked_entry = result.state.get(address)

    tracked: TrackedState | None = None
    if tracked_entry is not None:
        tracked = reconciler.read(tracked_entry[1])
        if tracked is None:
            result.drifted.append(address)
            result.state.pop(address, None)

    if tracked is None:
        created = reconciler.create(declaration.spec)
        result.state[address] = (kind.name, created.identifier)
        result.created.append(address)
        return

    changed = changed_attributes(kind, declaration.spec.model_dump(), tracked)
    if not changed:
        result.unchanged.append(address)
        return

    if kind.schema.requires_replace(changed):
        reconciler.delete(tracked)
        result.state.pop(address, None)
        created = reconciler.create(declaration.spec)
        result.state[address] = (kind.name, created.identifier)
        result.replaced.append(address)
        return

    logger.info("Drift detected", extra={"address": address, "attributes": changed})
    reconciler.update(tracked, declaration.spec)
    result.updated.append(address)
