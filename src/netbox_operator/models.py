"""Pydantic models for declared NetBox resources.

These models provide:
1. Type-safe parsing of declaration files
2. Validation at the boundary (fail fast, before any remote call)
3. The attribute table consumed by the Schema Registry

Absent optional attributes are None. Sets are frozensets so declared
resources stay immutable.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AfterValidator, Field, field_validator, model_validator

from .schema import CrossFieldError, DeclaredResource, computed, one_of_case_insensitive

# =============================================================================
# Shared attribute types
# =============================================================================

SITE_STATUS_OPTIONS = ("planned", "staging", "active", "decommissioning", "retired")
VIRTUAL_MACHINE_STATUS_OPTIONS = (
    "offline",
    "active",
    "planned",
    "staged",
    "failed",
    "decommissioning",
)
SERVICE_PROTOCOL_OPTIONS = ("tcp", "udp", "sctp")

Text = Annotated[str, Field(min_length=1)]
Description = Annotated[str, Field(min_length=1, max_length=200)]
ObjectId = Annotated[int, Field(ge=1)]
TagNames = frozenset[Annotated[str, Field(min_length=1, max_length=100)]]
Port = Annotated[int, Field(ge=1, le=65535)]


# =============================================================================
# Site
# =============================================================================


class SiteSpec(DeclaredResource):
    """Site (dcim/sites)."""

    name: Annotated[str, Field(min_length=1, max_length=100)]
    slug: Annotated[str, Field(min_length=1, max_length=100, pattern=r"^[-a-zA-Z0-9_]+$")]
    status: Annotated[str, AfterValidator(one_of_case_insensitive(SITE_STATUS_OPTIONS))] = Field(
        "active",
        description=f"One of {', '.join(SITE_STATUS_OPTIONS)}",
        json_schema_extra=computed(),
    )
    description: Description | None = None
    facility: Annotated[str, Field(min_length=1, max_length=50)] | None = None
    longitude: Annotated[float, Field(ge=-180, le=180)] | None = Field(
        None, description="The longitude of the site."
    )
    latitude: Annotated[float, Field(ge=-90, le=90)] | None = Field(
        None, description="The latitude of the site."
    )
    physical_address: Annotated[str, Field(min_length=1, max_length=200)] | None = Field(
        None, description="The physical address of the site."
    )
    shipping_address: Annotated[str, Field(min_length=1, max_length=200)] | None = Field(
        None, description="The shipping address of the site."
    )
    region_id: ObjectId | None = None
    group_id: ObjectId | None = None
    tenant_id: ObjectId | None = None
    timezone: Text | None = None
    asn_ids: frozenset[ObjectId] | None = None
    tags: TagNames | None = None


# =============================================================================
# Virtual machine
# =============================================================================


class VirtualMachineSpec(DeclaredResource):
    """Virtual machine (virtualization/virtual-machines)."""

    name: Annotated[str, Field(min_length=1, max_length=64)] = Field(
        description="The name of the Virtual Machine"
    )
    status: Annotated[
        str, AfterValidator(one_of_case_insensitive(VIRTUAL_MACHINE_STATUS_OPTIONS))
    ] = Field(description="Status of the machine")
    cluster_id: ObjectId | None = None
    site_id: ObjectId | None = None
    tenant_id: ObjectId | None = None
    role_id: ObjectId | None = None
    platform_id: ObjectId | None = None
    vcpus: Annotated[float, Field(ge=0)] | None = None
    memory_mb: Annotated[int, Field(ge=0)] | None = None
    disk_mb: Annotated[int, Field(ge=0)] | None = None
    description: Description | None = None
    comments: Text | None = None
    tags: TagNames | None = None

    @model_validator(mode="after")
    def require_placement(self) -> VirtualMachineSpec:
        if self.cluster_id is None and self.site_id is None:
            raise CrossFieldError("cluster_id", "one of cluster_id or site_id must be set")
        return self


# =============================================================================
# Service
# =============================================================================


class ServiceSpec(DeclaredResource):
    """Service bound to a device or virtual machine (ipam/services)."""

    name: Annotated[str, Field(min_length=1, max_length=100)]
    ports: frozenset[Port] = Field(min_length=1)
    protocol: Annotated[str, AfterValidator(one_of_case_insensitive(SERVICE_PROTOCOL_OPTIONS))]
    device_id: ObjectId | None = Field(None, json_schema_extra={"requires_replace": True})
    virtual_machine_id: ObjectId | None = Field(
        None, json_schema_extra={"requires_replace": True}
    )
    ip_addresses: frozenset[ObjectId] | None = None
    description: Description | None = None
    comments: Text | None = None
    custom_fields: dict[str, Any] | None = None
    tags: TagNames | None = None

    @field_validator("custom_fields", mode="before")
    @classmethod
    def drop_null_custom_fields(cls, v: Any) -> Any:
        # NetBox reports unset custom fields as null
        if isinstance(v, dict):
            return {key: value for key, value in v.items() if value is not None}
        return v

    @model_validator(mode="after")
    def require_single_parent(self) -> ServiceSpec:
        if (self.device_id is None) == (self.virtual_machine_id is None):
            raise CrossFieldError(
                "virtual_machine_id",
                "exactly one of device_id or virtual_machine_id must be set",
            )
        return self

