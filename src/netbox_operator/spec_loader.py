"""Declaration file loading with validation.

A declaration file lists the resources an operator wants to exist:

    resources:
      - kind: site
        name: dc1
        spec:
          name: DC 1
          slug: dc1
          tags: [production]

The Kubernetes-style wrapper (apiVersion/kind/metadata/spec) is accepted
too, with the list under spec.resources.

SECURITY: File size is checked before reading. Every entry is validated
against the Schema Registry before anything reaches NetBox.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .config import MAX_DECLARATION_FILE_SIZE_BYTES
from .errors import ValidationError
from .resources import ResourceKind, get_resource_kind
from .schema import DeclaredResource

logger = logging.getLogger(__name__)

VALID_RESOURCE_NAME_PATTERN = r"^[a-zA-Z_][a-zA-Z0-9_-]{0,127}$"


class SpecLoadError(Exception):
    """Raised when declaration loading or validation fails."""

    pass


@dataclass(frozen=True)
class Declaration:
    """One declared resource from a declaration file."""

    kind: ResourceKind
    name: str
    spec: DeclaredResource

    @property
    def address(self) -> str:
        """Unique address of the resource (e.g. 'site.dc1')."""
        return f"{self.kind.name}.{self.name}"


def read_yaml_mapping(path: Path, max_size: int) -> dict[str, Any]:
    """Read a size-capped YAML file that must contain a mapping.

    Raises:
        SpecLoadError: If the file is missing, too large or malformed.
    """
    if not path.exists():
        raise SpecLoadError(f"File not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat {path}: {e}") from e

    if file_size > max_size:
        raise SpecLoadError(f"File exceeds maximum size of {max_size} bytes: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"File must contain a YAML mapping: {path}")
    return raw_data


def parse_declarations(raw_data: dict[str, Any], source: str = "<memory>") -> list[Declaration]:
    """Validate the resources listed in a parsed declaration document.

    Raises:
        SpecLoadError: If an entry is malformed, duplicated or invalid.
    """
    if "apiVersion" in raw_data and "spec" in raw_data:
        raw_data = raw_data.get("spec") or {}
        if not isinstance(raw_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {source}")

    entries = raw_data.get("resources") or []
    if not isinstance(entries, list):
        raise SpecLoadError(f"'resources' must be a list: {source}")

    declarations: list[Declaration] = []
    seen: set[str] = set()
    errors: list[str] = []

    for index, entry in enumerate(entries):
        where = f"resources[{index}]"
        if not isinstance(entry, dict):
            errors.append(f"  - {where}: entry must be a mapping")
            continue

        name = str(entry.get("name", ""))
        if not re.match(VALID_RESOURCE_NAME_PATTERN, name):
            errors.append(f"  - {where}.name: must match {VALID_RESOURCE_NAME_PATTERN}")
            continue

        try:
            kind = get_resource_kind(str(entry.get("kind", "")))
        except ValueError as e:
            errors.append(f"  - {where}.kind: {e}")
            continue

        address = f"{kind.name}.{name}"
        if address in seen:
            errors.append(f"  - {where}: duplicate resource address {address}")
            continue
        seen.add(address)

        spec_data = entry.get("spec") or {}
        if not isinstance(spec_data, dict):
            errors.append(f"  - {where}.spec: must be a mapping")
            continue

        try:
            spec = kind.schema.validate(spec_data)
        except ValidationError as e:
            errors.append(f"  - {address}.{e.attribute}: {e.constraint}")
            continue

        declarations.append(Declaration(kind=kind, name=name, spec=spec))

    if errors:
        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {source}:\n{error_list}")

    return declarations


def load_declarations(path: Path) -> list[Declaration]:
    """Load and validate a declaration file.

    Raises:
        SpecLoadError: If the file cannot be loaded or fails validation.
    """
    raw_data = read_yaml_mapping(path, MAX_DECLARATION_FILE_SIZE_BYTES)
    declarations = parse_declarations(raw_data, str(path))
    logger.info("Loaded %d declarations from %s", len(declarations), path)
    return declarations
