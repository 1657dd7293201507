"""Attribute Mapper: declared attributes <-> NetBox wire payloads.

Each attribute of a resource kind is bound to one transcription rule,
fixed for the life of the kind. Outbound, absent optional attributes are
written as their wire "empty" value ("" for text, null for numbers and
foreign keys, [] for lists) so that dropping an attribute from the
declaration clears it remotely. Inbound, those empty values map back to
absent, never to a stored empty string.

Foreign references arrive as nested objects ({"id": 3, "name": ...}) and
are reduced to the bare identifier. Reference sets (tags) are resolved by
name before anything is transcribed, so a failed lookup leaves no partial
payload behind.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from .schema import DeclaredResource


class Transcription(str, Enum):
    """Transcription rules between declared and remote representations."""

    # Always copied as-is
    REQUIRED_SCALAR = "required_scalar"
    # Copied when present; empty wire value when absent
    OPTIONAL_SCALAR = "optional_scalar"
    # Names resolved to identifiers on the way out
    REFERENCE_SET = "reference_set"
    # Optional integer <-> nested {"id": ...}
    FOREIGN_KEY = "foreign_key"
    # Set of scalars (or nested ids) <-> list
    SCALAR_SET = "scalar_set"
    # String <-> {"value": ..., "label": ...}
    CHOICE = "choice"
    # Free-form mapping; null entries are dropped inbound
    MAPPING = "mapping"


class Resolver(Protocol):
    """Anything able to turn reference names into identifiers."""

    def resolve(self, names: Iterable[str]) -> dict[str, int]:
        """Return exactly one identifier per name."""


@dataclass(frozen=True)
class AttributeMapping:
    """Binding of one declared attribute to one remote field.

    Attributes:
        attribute: Declared attribute name.
        remote_field: Field name in the NetBox payload.
        transcription: Rule applied in both directions.
        empty: Wire value written when an optional attribute is absent.
    """

    attribute: str
    remote_field: str
    transcription: Transcription = Transcription.OPTIONAL_SCALAR
    empty: Any = None


def text(attribute: str, remote_field: str | None = None) -> AttributeMapping:
    """Optional text attribute; cleared remotely with an empty string."""
    return AttributeMapping(attribute, remote_field or attribute, Transcription.OPTIONAL_SCALAR, "")


def required(attribute: str, remote_field: str | None = None) -> AttributeMapping:
    """Required scalar attribute."""
    return AttributeMapping(attribute, remote_field or attribute, Transcription.REQUIRED_SCALAR)


def nullable(attribute: str, remote_field: str | None = None) -> AttributeMapping:
    """Optional non-text scalar; cleared remotely with null."""
    return AttributeMapping(attribute, remote_field or attribute, Transcription.OPTIONAL_SCALAR)


def foreign_key(attribute: str, remote_field: str) -> AttributeMapping:
    """Optional reference to another object by identifier."""
    return AttributeMapping(attribute, remote_field, Transcription.FOREIGN_KEY)


def scalar_set(attribute: str, remote_field: str | None = None) -> AttributeMapping:
    """Set of integers or identifiers."""
    return AttributeMapping(attribute, remote_field or attribute, Transcription.SCALAR_SET)


def choice(attribute: str, remote_field: str | None = None) -> AttributeMapping:
    """Enumerated value NetBox reports as {"value": ..., "label": ...}."""
    return AttributeMapping(attribute, remote_field or attribute, Transcription.CHOICE)


def tags(attribute: str = "tags", remote_field: str = "tags") -> AttributeMapping:
    """Tag names resolved to tag identifiers."""
    return AttributeMapping(attribute, remote_field, Transcription.REFERENCE_SET)


def key_values(attribute: str, remote_field: str | None = None) -> AttributeMapping:
    """Free-form key/value mapping such as custom fields."""
    return AttributeMapping(attribute, remote_field or attribute, Transcription.MAPPING)


def _nested_id(value: Any) -> Any:
    if isinstance(value, Mapping):
        return value.get("id")
    return value


class AttributeMapper:
    """Bidirectional mapper for one resource kind."""

    def __init__(self, mappings: Iterable[AttributeMapping]) -> None:
        self._mappings: tuple[AttributeMapping, ...] = tuple(mappings)
        seen: set[str] = set()
        for m in self._mappings:
            if m.attribute in seen:
                raise ValueError(f"Attribute mapped twice: {m.attribute}")
            seen.add(m.attribute)

    @property
    def mappings(self) -> tuple[AttributeMapping, ...]:
        """Get the attribute mappings in declaration order."""
        return self._mappings

    @property
    def attributes(self) -> list[str]:
        """Get the declared attribute names covered by this mapper."""
        return [m.attribute for m in self._mappings]

    def to_remote_payload(
        self,
        declared: DeclaredResource | Mapping[str, Any],
        resolver: Resolver | None = None,
    ) -> dict[str, Any]:
        """Build the write payload for a declared resource.

        Raises:
            UnresolvedReferenceError: If a referenced name does not exist.
            AmbiguousReferenceError: If a referenced name is not unique.
            TransportError: If a reference lookup fails.
        """
        values = declared.model_dump() if isinstance(declared, DeclaredResource) else dict(declared)

        # Resolve every reference set before transcribing anything
        resolved: dict[str, dict[str, int]] = {}
        for m in self._mappings:
            if m.transcription == Transcription.REFERENCE_SET and values.get(m.attribute):
                if resolver is None:
                    raise ValueError(f"A resolver is required to map '{m.attribute}'")
                resolved[m.attribute] = resolver.resolve(values[m.attribute])

        payload: dict[str, Any] = {}
        for m in self._mappings:
            value = values.get(m.attribute)
            payload[m.remote_field] = self._outbound(m, value, resolved.get(m.attribute))
        return payload

    def _outbound(
        self, m: AttributeMapping, value: Any, resolved: dict[str, int] | None
    ) -> Any:
        if m.transcription == Transcription.REQUIRED_SCALAR:
            return value
        if m.transcription == Transcription.REFERENCE_SET:
            if not resolved:
                return []
            return [{"id": resolved[name], "name": name} for name in sorted(resolved)]
        if m.transcription == Transcription.SCALAR_SET:
            return sorted(value) if value else []
        if m.transcription == Transcription.MAPPING:
            return dict(value) if value else {}
        # OPTIONAL_SCALAR, FOREIGN_KEY, CHOICE
        return m.empty if value is None else value

    def from_remote_payload(self, remote: Mapping[str, Any]) -> dict[str, Any]:
        """Map a remote object back to declared attributes.

        Returns:
            Patch with one entry per mapped attribute; absent attributes
            are None.
        """
        return {m.attribute: self._inbound(m, remote.get(m.remote_field)) for m in self._mappings}

    def _inbound(self, m: AttributeMapping, value: Any) -> Any:
        if m.transcription == Transcription.REQUIRED_SCALAR:
            return value
        if value is None:
            return None
        if m.transcription == Transcription.REFERENCE_SET:
            names = frozenset(v["name"] if isinstance(v, Mapping) else str(v) for v in value)
            return names or None
        if m.transcription == Transcription.SCALAR_SET:
            items = frozenset(_nested_id(v) for v in value)
            return items or None
        if m.transcription == Transcription.FOREIGN_KEY:
            return _nested_id(value)
        if m.transcription == Transcription.CHOICE:
            value = value.get("value") if isinstance(value, Mapping) else value
            return value or None
        if m.transcription == Transcription.MAPPING:
            populated = {k: v for k, v in value.items() if v is not None}
            return populated or None
        # OPTIONAL_SCALAR: empty string means the field was cleared
        if value == "":
            return None
        return value
