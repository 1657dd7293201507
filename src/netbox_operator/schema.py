"""Schema Registry: per-kind attribute declarations and pre-flight validation.

Declared resources are pydantic models. The registry derives a queryable
attribute table from each model (name, kind, default, constraints) and
converts pydantic failures into the engine's ValidationError so callers
only ever see one validation error type.

Validation is pure: it never touches the remote service.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticUndefined

from .errors import ValidationError


class AttributeKind(str, Enum):
    """How an attribute participates in the declared configuration."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    COMPUTED = "computed"
    OPTIONAL_COMPUTED = "optional_computed"


class CrossFieldError(ValueError):
    """Raised by model validators for constraints spanning several attributes.

    Carries the attribute reported to the caller.
    """

    def __init__(self, attribute: str, message: str) -> None:
        self.attribute = attribute
        super().__init__(message)


def one_of_case_insensitive(options: Iterable[str]) -> Callable[[str], str]:
    """Build a validator accepting any casing of the options, normalised to lower case."""
    allowed = tuple(o.lower() for o in options)

    def validate(value: str) -> str:
        lowered = value.lower()
        if lowered not in allowed:
            raise ValueError(f"must be one of {', '.join(allowed)}")
        return lowered

    return validate


def computed(**extra: Any) -> dict[str, Any]:
    """json_schema_extra marker for attributes the remote fills in when absent."""
    return {"computed": True, **extra}


class DeclaredResource(BaseModel):
    """Base class for declared resources.

    Unknown attributes are rejected. Empty collections are normalised to
    absent so that a declaration survives a write/read round trip
    unchanged: the remote cannot distinguish "empty" from "unset".
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("*", mode="after")
    @classmethod
    def empty_collection_is_absent(cls, v: Any) -> Any:
        if isinstance(v, (set, frozenset, dict, list)) and not v:
            return None
        return v

    def declared(self) -> dict[str, Any]:
        """Return populated attributes only (absent attributes omitted)."""
        return {k: v for k, v in self.model_dump().items() if v is not None}


@dataclass(frozen=True)
class AttributeSchema:
    """Declaration of a single attribute.

    Attributes:
        name: Attribute name in the declared configuration.
        kind: Required, optional, computed or optional+computed.
        default: Default applied when the attribute is absent (None if none).
        annotation: Python type of the attribute.
        constraints: Human-readable validation predicates.
        description: Operator facing description.
        requires_replace: True if changing the attribute needs delete+create.
    """

    name: str
    kind: AttributeKind
    default: Any = None
    annotation: Any = None
    constraints: tuple[str, ...] = ()
    description: str = ""
    requires_replace: bool = False


@dataclass(frozen=True)
class ResourceSchema:
    """Queryable schema for one resource kind, backed by a pydantic model."""

    kind: str
    model: type[DeclaredResource]
    attributes: dict[str, AttributeSchema] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        attributes: dict[str, AttributeSchema] = {}
        for name, info in self.model.model_fields.items():
            extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
            default = None if info.default is PydanticUndefined else info.default
            if info.is_required():
                kind = AttributeKind.REQUIRED
            elif extra.get("computed"):
                kind = AttributeKind.OPTIONAL_COMPUTED
            else:
                kind = AttributeKind.OPTIONAL
            attributes[name] = AttributeSchema(
                name=name,
                kind=kind,
                default=default,
                annotation=info.annotation,
                constraints=tuple(repr(m) for m in info.metadata),
                description=info.description or "",
                requires_replace=bool(extra.get("requires_replace", False)),
            )
        # The remote identifier is always computed
        attributes["id"] = AttributeSchema(
            name="id",
            kind=AttributeKind.COMPUTED,
            annotation=int,
            description=f"{self.kind} identifier assigned by NetBox",
        )
        object.__setattr__(self, "attributes", attributes)

    def attribute(self, name: str) -> AttributeSchema:
        """Get one attribute declaration.

        Raises:
            KeyError: If the kind has no such attribute.
        """
        try:
            return self.attributes[name]
        except KeyError:
            raise KeyError(f"{self.kind} has no attribute '{name}'") from None

    @property
    def required(self) -> list[str]:
        """Names of required attributes."""
        return [a.name for a in self.attributes.values() if a.kind == AttributeKind.REQUIRED]

    def requires_replace(self, changed: Iterable[str]) -> bool:
        """Check whether changing these attributes needs replacement instead of update."""
        return any(self.attribute(name).requires_replace for name in changed)

    def validate(self, raw: Mapping[str, Any] | DeclaredResource) -> DeclaredResource:
        """Validate raw declared attributes.

        Returns:
            The declared resource with defaults applied.

        Raises:
            ValidationError: On the first violated constraint; the message
                lists every violation.
        """
        if isinstance(raw, self.model):
            return raw
        if isinstance(raw, DeclaredResource):
            raw = raw.model_dump(exclude_none=True)
        try:
            return self.model.model_validate(dict(raw))
        except PydanticValidationError as e:
            raise _to_validation_error(self.kind, e) from e


def _to_validation_error(kind: str, error: PydanticValidationError) -> ValidationError:
    violations: list[tuple[str, str]] = []
    for item in error.errors():
        cause = (item.get("ctx") or {}).get("error")
        if isinstance(cause, CrossFieldError):
            attribute = cause.attribute
            constraint = str(cause)
        else:
            attribute = ".".join(str(x) for x in item["loc"]) or kind
            constraint = f"{item['type']}: {item['msg']}"
        violations.append((attribute, constraint))

    attribute, constraint = violations[0]
    lines = "\n".join(f"  - {a}: {c}" for a, c in violations)
    return ValidationError(attribute, constraint, f"Validation failed for {kind}:\n{lines}")
