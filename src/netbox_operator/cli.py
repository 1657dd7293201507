"""NetBox operator CLI.

Usage:
    netbox-operator validate resources.yaml       # Validate declarations offline
    netbox-operator schema site                   # Show the attribute table of a kind
    netbox-operator import site 42                # Read an existing object by identifier
    netbox-operator apply resources.yaml          # Converge NetBox to the declarations

Connection settings come from NETBOX_* environment variables (see config.py).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import click
import yaml

from .config import Config, ConfigurationError
from .context import open_context
from .errors import OperatorError
from .main import setup_logging
from .reconciler import Reconciler, TrackedState
from .resources import RESOURCE_KINDS, ResourceKind, get_resource_kind
from .runner import apply as apply_declarations
from .spec_loader import SpecLoadError, load_declarations
from .state import StateError, load_state, save_state

DEFAULT_STATE_FILE = "netbox-operator.state.yaml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _load_config() -> Config:
    try:
        return Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


def _kind_argument(_ctx: click.Context, _param: click.Parameter, value: str) -> ResourceKind:
    try:
        return get_resource_kind(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _plain(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return value


def _state_document(state: TrackedState) -> dict[str, Any]:
    return {
        "kind": state.kind,
        "id": state.identifier,
        "attributes": {k: _plain(v) for k, v in state.declared().items()},
    }


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging verbosity.",
)
@click.option("--text-logs", is_flag=True, help="Plain text logs instead of JSON.")
def cli(log_level: str, text_logs: bool) -> None:
    """Declarative NetBox inventory operator."""
    setup_logging(getattr(logging, log_level.upper()), json_output=not text_logs)


@cli.command()
@click.argument("path", type=click.Path(path_type=Path))
def validate(path: Path) -> None:
    """Validate a declaration file without contacting NetBox."""
    try:
        declarations = load_declarations(path)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e

    for declaration in declarations:
        click.echo(f"ok  {declaration.address}")
    click.echo(f"{len(declarations)} resource(s) valid")


@cli.command()
@click.argument("kind", callback=_kind_argument, metavar=f"[{'|'.join(RESOURCE_KINDS)}]")
def schema(kind: ResourceKind) -> None:
    """Show the attributes of a resource kind."""
    rows = []
    for attribute in kind.schema.attributes.values():
        row: dict[str, Any] = {"name": attribute.name, "kind": attribute.kind.value}
        if attribute.default is not None:
            row["default"] = attribute.default
        if attribute.description:
            row["description"] = attribute.description
        if attribute.requires_replace:
            row["requires_replace"] = True
        rows.append(row)

    document = {
        "kind": kind.name,
        "endpoint": kind.endpoint,
        "update": "partial" if kind.partial_update else "full",
        "attributes": rows,
    }
    click.echo(yaml.safe_dump(document, sort_keys=False))


@cli.command(name="import")
@click.argument("kind", callback=_kind_argument, metavar=f"[{'|'.join(RESOURCE_KINDS)}]")
@click.argument("identifier", type=click.IntRange(min=1))
def import_command(kind: ResourceKind, identifier: int) -> None:
    """Read an existing NetBox object and print its tracked state."""
    config = _load_config()
    try:
        with open_context(config) as context:
            state = Reconciler(kind, context).import_resource(identifier)
    except OperatorError as e:
        raise click.ClickException(str(e)) from e

    if state is None:
        raise click.ClickException(f"No {kind.name} with id {identifier} exists in NetBox")
    click.echo(yaml.safe_dump(_state_document(state), sort_keys=False))


@cli.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option(
    "--state",
    "state_path",
    type=click.Path(path_type=Path),
    default=DEFAULT_STATE_FILE,
    show_default=True,
    help="File tracking NetBox identifiers between runs.",
)
def apply(path: Path, state_path: Path) -> None:
    """Create, update and delete NetBox objects to match a declaration file."""
    try:
        declarations = load_declarations(path)
        state = load_state(state_path)
    except (SpecLoadError, StateError) as e:
        raise click.ClickException(str(e)) from e

    config = _load_config()
    try:
        with open_context(config) as context:
            result = apply_declarations(context, declarations, state)
    except OperatorError as e:
        raise click.ClickException(str(e)) from e

    try:
        save_state(state_path, result.state)
    except StateError as e:
        raise click.ClickException(str(e)) from e

    for label, addresses in (
        ("created", result.created),
        ("updated", result.updated),
        ("replaced", result.replaced),
        ("deleted", result.deleted),
    ):
        for address in addresses:
            click.echo(f"{label:<9} {address}")
    for address, error in result.errors.items():
        click.echo(f"{'failed':<9} {address}: {error}", err=True)

    click.echo(
        f"{result.changes} change(s), {len(result.unchanged)} unchanged, "
        f"{len(result.drifted)} drifted, {len(result.errors)} failed"
    )
    if not result.success:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
