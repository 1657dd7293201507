"""Tracked identifier store for the command line runner.

Only identifiers are persisted; attributes are always re-read from NetBox.

    resources:
      site.dc1: {kind: site, id: 12}
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from .config import MAX_STATE_FILE_SIZE_BYTES
from .spec_loader import SpecLoadError, read_yaml_mapping

logger = logging.getLogger(__name__)


class StateError(Exception):
    """Raised when the state file cannot be read or written."""

    pass


def load_state(path: Path) -> dict[str, tuple[str, int]]:
    """Load tracked identifiers keyed by resource address.

    A missing file is an empty state.

    Raises:
        StateError: If the file is malformed.
    """
    if not path.exists():
        return {}

    try:
        raw_data = read_yaml_mapping(path, MAX_STATE_FILE_SIZE_BYTES)
    except SpecLoadError as e:
        raise StateError(str(e)) from e

    entries = raw_data.get("resources") or {}
    if not isinstance(entries, dict):
        raise StateError(f"'resources' must be a mapping: {path}")

    state: dict[str, tuple[str, int]] = {}
    for address, entry in entries.items():
        try:
            state[str(address)] = (str(entry["kind"]), int(entry["id"]))
        except (KeyError, TypeError, ValueError) as e:
            raise StateError(f"Invalid state entry for {address}: {entry!r}") from e
    return state


def save_state(path: Path, state: dict[str, tuple[str, int]]) -> None:
    """Write tracked identifiers, replacing the file atomically.

    Raises:
        StateError: If the file cannot be written.
    """
    document = {
        "resources": {
            address: {"kind": kind, "id": identifier}
            for address, (kind, identifier) in sorted(state.items())
        }
    }
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp_path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
        tmp_path.replace(path)
    except OSError as e:
        raise StateError(f"Failed to write state file {path}: {e}") from e

    logger.debug("Saved state", extra={"path": str(path), "resources": len(state)})
