"""Resource kinds: the capability set a kind supplies to the reconciler.

A kind bundles its NetBox endpoint, its Schema Registry entry, its
Attribute Mapper and its update semantics. The reconciler is generic over
kinds; adding a kind means adding one entry here and one model in
models.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .mapping import (
    AttributeMapper,
    choice,
    foreign_key,
    key_values,
    nullable,
    required,
    scalar_set,
    tags,
    text,
)
from .models import ServiceSpec, SiteSpec, VirtualMachineSpec
from .schema import ResourceSchema


class Operation(str, Enum):
    """Lifecycle operations a resource kind may offer."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    IMPORT = "import"


ALL_OPERATIONS: frozenset[Operation] = frozenset(Operation)


@dataclass(frozen=True)
class ResourceKind:
    """Everything the reconciler needs to manage one kind of NetBox object.

    Attributes:
        name: Kind name used in declarations (e.g. "site").
        endpoint: NetBox API endpoint relative to /api.
        schema: Attribute declarations and validation.
        mapper: Declared <-> remote transcription.
        partial_update: True to update with PATCH, False to send a full PUT.
        operations: Lifecycle operations the kind supports.
    """

    name: str
    endpoint: str
    schema: ResourceSchema
    mapper: AttributeMapper
    partial_update: bool = False
    operations: frozenset[Operation] = field(default=ALL_OPERATIONS)

    def supports(self, operation: Operation) -> bool:
        """Check whether the kind offers an operation."""
        return operation in self.operations


SITE = ResourceKind(
    name="site",
    endpoint="dcim/sites",
    schema=ResourceSchema("site", SiteSpec),
    mapper=AttributeMapper(
        [
            required("name"),
            required("slug"),
            choice("status"),
            text("description"),
            text("facility"),
            nullable("longitude"),
            nullable("latitude"),
            text("physical_address"),
            text("shipping_address"),
            foreign_key("region_id", "region"),
            foreign_key("group_id", "group"),
            foreign_key("tenant_id", "tenant"),
            nullable("timezone", "time_zone"),
            scalar_set("asn_ids", "asns"),
            tags(),
        ]
    ),
    partial_update=True,
)

VIRTUAL_MACHINE = ResourceKind(
    name="virtual_machine",
    endpoint="virtualization/virtual-machines",
    schema=ResourceSchema("virtual_machine", VirtualMachineSpec),
    mapper=AttributeMapper(
        [
            required("name"),
            choice("status"),
            foreign_key("cluster_id", "cluster"),
            foreign_key("site_id", "site"),
            foreign_key("tenant_id", "tenant"),
            foreign_key("role_id", "role"),
            foreign_key("platform_id", "platform"),
            nullable("vcpus"),
            nullable("memory_mb", "memory"),
            nullable("disk_mb", "disk"),
            text("description"),
            text("comments"),
            tags(),
        ]
    ),
)

SERVICE = ResourceKind(
    name="service",
    endpoint="ipam/services",
    schema=ResourceSchema("service", ServiceSpec),
    mapper=AttributeMapper(
        [
            required("name"),
            scalar_set("ports"),
            choice("protocol"),
            foreign_key("device_id", "device"),
            foreign_key("virtual_machine_id", "virtual_machine"),
            scalar_set("ip_addresses", "ipaddresses"),
            text("description"),
            text("comments"),
            key_values("custom_fields"),
            tags(),
        ]
    ),
)

RESOURCE_KINDS: dict[str, ResourceKind] = {
    kind.name: kind for kind in (SITE, VIRTUAL_MACHINE, SERVICE)
}


def get_resource_kind(name: str) -> ResourceKind:
    """Look up a registered resource kind.

    Raises:
        ValueError: If the kind is unknown.
    """
    kind = RESOURCE_KINDS.get(name)
    if kind is None:
        raise ValueError(f"Unknown resource kind '{name}'. Valid kinds: {list(RESOURCE_KINDS)}")
    return kind
