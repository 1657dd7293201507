"""Tests for the command line interface."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner
from netbox_mock import MockNetBoxClient

from netbox_operator import cli as cli_module
from netbox_operator.cli import cli
from netbox_operator.config import Config
from netbox_operator.context import ReconcileContext

DECLARATIONS = {
    "resources": [
        {"kind": "site", "name": "dc1", "spec": {"name": "DC 1", "slug": "dc1"}},
        {
            "kind": "virtual_machine",
            "name": "vm1",
            "spec": {"name": "vm1", "status": "active", "site_id": 1},
        },
    ]
}


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the CLI from reconfiguring the root logger during tests."""
    monkeypatch.setattr(cli_module, "setup_logging", lambda *args, **kwargs: None)


@pytest.fixture
def netbox(monkeypatch: pytest.MonkeyPatch) -> MockNetBoxClient:
    """In-memory NetBox wired into the CLI in place of a real session."""
    client = MockNetBoxClient()

    @contextmanager
    def fake_open_context(config: Config) -> Iterator[ReconcileContext]:
        yield ReconcileContext.for_client(client)

    monkeypatch.setattr(cli_module, "open_context", fake_open_context)
    monkeypatch.setenv("NETBOX_SERVER_URL", "https://netbox.example.com")
    monkeypatch.setenv("NETBOX_API_TOKEN", "secret")
    return client


@pytest.fixture
def declarations_file(tmp_path: Path) -> Path:
    path = tmp_path / "inventory.yaml"
    path.write_text(yaml.safe_dump(DECLARATIONS))
    return path


class TestValidate:
    """Tests for the validate command."""

    def test_valid_file(self, declarations_file: Path) -> None:
        """Test that a valid file lists every resource."""
        result = CliRunner().invoke(cli, ["validate", str(declarations_file)])

        assert result.exit_code == 0
        assert "ok  site.dc1" in result.output
        assert "2 resource(s) valid" in result.output

    def test_invalid_file(self, tmp_path: Path) -> None:
        """Test that validation errors fail the command."""
        path = tmp_path / "inventory.yaml"
        path.write_text(
            yaml.safe_dump({"resources": [{"kind": "site", "name": "dc1", "spec": {}}]})
        )

        result = CliRunner().invoke(cli, ["validate", str(path)])

        assert result.exit_code == 1
        assert "site.dc1.name" in result.output


class TestSchema:
    """Tests for the schema command."""

    def test_site_schema(self) -> None:
        """Test that the attribute table of a kind is printed as YAML."""
        result = CliRunner().invoke(cli, ["schema", "site"])

        assert result.exit_code == 0
        document = yaml.safe_load(result.output)
        assert document["endpoint"] == "dcim/sites"
        assert document["update"] == "partial"
        status = next(a for a in document["attributes"] if a["name"] == "status")
        assert status == {
            "name": "status",
            "kind": "optional_computed",
            "default": "active",
            "description": "One of planned, staging, active, decommissioning, retired",
        }

    def test_requires_replace_flag(self) -> None:
        """Test that replacement attributes are flagged."""
        result = CliRunner().invoke(cli, ["schema", "service"])

        document = yaml.safe_load(result.output)
        flagged = [a["name"] for a in document["attributes"] if a.get("requires_replace")]
        assert flagged == ["device_id", "virtual_machine_id"]

    def test_unknown_kind(self) -> None:
        """Test that an unknown kind is a usage error."""
        result = CliRunner().invoke(cli, ["schema", "rack"])

        assert result.exit_code == 2
        assert "Unknown resource kind" in result.output


class TestApplyCommand:
    """Tests for the apply command."""

    def test_apply_creates_and_saves_state(
        self, netbox: MockNetBoxClient, declarations_file: Path, tmp_path: Path
    ) -> None:
        """Test that apply converges NetBox and writes the state file."""
        state_path = tmp_path / "state.yaml"

        result = CliRunner().invoke(
            cli, ["apply", str(declarations_file), "--state", str(state_path)]
        )

        assert result.exit_code == 0, result.output
        assert "created   site.dc1" in result.output
        assert "2 change(s), 0 unchanged" in result.output
        saved = yaml.safe_load(state_path.read_text())
        assert set(saved["resources"]) == {"site.dc1", "virtual_machine.vm1"}

    def test_second_apply_is_noop(
        self, netbox: MockNetBoxClient, declarations_file: Path, tmp_path: Path
    ) -> None:
        """Test that applying twice reports everything unchanged."""
        state_path = tmp_path / "state.yaml"
        args = ["apply", str(declarations_file), "--state", str(state_path)]
        CliRunner().invoke(cli, args)

        result = CliRunner().invoke(cli, args)

        assert result.exit_code == 0
        assert "0 change(s), 2 unchanged" in result.output

    def test_apply_failure_exit_code(
        self, netbox: MockNetBoxClient, declarations_file: Path, tmp_path: Path
    ) -> None:
        """Test that a failed resource makes apply exit non-zero."""
        netbox.fail_next("create", status_code=400, message="rejected")

        result = CliRunner().invoke(
            cli, ["apply", str(declarations_file), "--state", str(tmp_path / "state.yaml")]
        )

        assert result.exit_code == 1
        assert "failed" in result.output

    def test_apply_requires_configuration(
        self, declarations_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a missing server URL is reported before any work."""
        monkeypatch.delenv("NETBOX_SERVER_URL", raising=False)
        monkeypatch.delenv("NETBOX_API_TOKEN", raising=False)

        result = CliRunner().invoke(
            cli, ["apply", str(declarations_file), "--state", str(tmp_path / "state.yaml")]
        )

        assert result.exit_code == 1
        assert "NETBOX_SERVER_URL is required" in result.output


class TestImportCommand:
    """Tests for the import command."""

    def test_import(self, netbox: MockNetBoxClient) -> None:
        """Test that an existing object is printed as tracked state."""
        identifier = netbox.state.insert("dcim/sites", {"name": "DC 7", "slug": "dc7"})

        result = CliRunner().invoke(cli, ["import", "site", str(identifier)])

        assert result.exit_code == 0, result.output
        document = yaml.safe_load(result.output)
        assert document["id"] == identifier
        assert document["attributes"] == {"name": "DC 7", "slug": "dc7", "status": "active"}

    def test_import_missing(self, netbox: MockNetBoxClient) -> None:
        """Test that importing an unknown identifier fails."""
        result = CliRunner().invoke(cli, ["import", "site", "404"])

        assert result.exit_code == 1
        assert "No site with id 404" in result.output
