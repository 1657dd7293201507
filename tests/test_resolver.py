"""Tests for reference resolution."""

import pytest
from netbox_mock import TAGS_ENDPOINT, MockNetBoxClient

from netbox_operator.errors import (
    AmbiguousReferenceError,
    ReferenceResolutionError,
    TransportError,
    UnresolvedReferenceError,
)
from netbox_operator.resolver import ReferenceResolver


class TestReferenceResolver:
    """Tests for ReferenceResolver."""

    def test_single_match(self, netbox: MockNetBoxClient) -> None:
        """Test that a unique name resolves to its identifier."""
        tag_id = netbox.state.add_tag("production")

        resolver = ReferenceResolver(netbox)

        assert resolver.resolve_one("production") == tag_id

    def test_no_match(self, netbox: MockNetBoxClient) -> None:
        """Test that an unknown name raises UnresolvedReferenceError."""
        resolver = ReferenceResolver(netbox)

        with pytest.raises(UnresolvedReferenceError) as exc_info:
            resolver.resolve_one("missing")

        assert exc_info.value.name == "missing"
        assert isinstance(exc_info.value, ReferenceResolutionError)
        assert "Could not locate" in str(exc_info.value)

    def test_ambiguous_match(self, netbox: MockNetBoxClient) -> None:
        """Test that a name shared by two objects raises AmbiguousReferenceError."""
        netbox.state.add_tag("production", slug="production")
        netbox.state.add_tag("production", slug="production-2")

        resolver = ReferenceResolver(netbox)

        with pytest.raises(AmbiguousReferenceError) as exc_info:
            resolver.resolve_one("production")

        assert exc_info.value.name == "production"
        assert exc_info.value.matches == 2

    def test_lookup_is_capped(self, netbox: MockNetBoxClient) -> None:
        """Test that lookups request at most two matches."""
        for _ in range(5):
            netbox.state.add_tag("shared")

        with pytest.raises(AmbiguousReferenceError) as exc_info:
            ReferenceResolver(netbox).resolve_one("shared")

        assert exc_info.value.matches == 2
        (call,) = netbox.calls_for("list")
        assert call.endpoint == TAGS_ENDPOINT
        assert call.filters == {"name": "shared"}

    def test_batch_resolution(self, netbox: MockNetBoxClient) -> None:
        """Test that a batch returns exactly one identifier per name."""
        edge = netbox.state.add_tag("edge")
        production = netbox.state.add_tag("production")

        resolved = ReferenceResolver(netbox).resolve(["production", "edge", "edge"])

        assert resolved == {"edge": edge, "production": production}

    def test_batch_lookups_in_sorted_order(self, netbox: MockNetBoxClient) -> None:
        """Test that one lookup is issued per name, in sorted order."""
        for name in ("zulu", "alpha", "mike"):
            netbox.state.add_tag(name)

        ReferenceResolver(netbox).resolve(["zulu", "alpha", "mike"])

        names = [c.filters["name"] for c in netbox.calls_for("list")]
        assert names == ["alpha", "mike", "zulu"]

    def test_batch_aborts_on_first_failure(self, netbox: MockNetBoxClient) -> None:
        """Test that a failing name stops the batch."""
        netbox.state.add_tag("zulu")

        with pytest.raises(UnresolvedReferenceError):
            ReferenceResolver(netbox).resolve(["zulu", "bravo"])

        names = [c.filters["name"] for c in netbox.calls_for("list")]
        assert names == ["bravo"]

    def test_empty_batch(self, netbox: MockNetBoxClient) -> None:
        """Test that an empty batch issues no lookups."""
        assert ReferenceResolver(netbox).resolve([]) == {}
        assert netbox.calls == []

    def test_transport_failure(self, netbox: MockNetBoxClient) -> None:
        """Test that a lookup that cannot reach NetBox raises TransportError."""
        netbox.state.add_tag("edge")
        netbox.fail_transport("list")

        with pytest.raises(TransportError) as exc_info:
            ReferenceResolver(netbox).resolve(["edge"])

        assert "edge" in str(exc_info.value)
        assert exc_info.value.status_code is None

    def test_server_error(self, netbox: MockNetBoxClient) -> None:
        """Test that a failing lookup carries the HTTP status."""
        netbox.fail_next("list", status_code=503)

        with pytest.raises(TransportError) as exc_info:
            ReferenceResolver(netbox).resolve_one("edge")

        assert exc_info.value.status_code == 503

    def test_sample_limit_must_detect_ambiguity(self, netbox: MockNetBoxClient) -> None:
        """Test that a sample limit below two is rejected."""
        with pytest.raises(ValueError, match="at least 2"):
            ReferenceResolver(netbox, sample_limit=1)

    def test_custom_endpoint(self, netbox: MockNetBoxClient) -> None:
        """Test that other endpoints and lookup fields can be resolved."""
        netbox.state.insert("tenancy/tenants", {"name": "Blue", "slug": "blue"})

        resolver = ReferenceResolver(netbox, endpoint="tenancy/tenants", lookup_field="slug")

        assert resolver.endpoint == "tenancy/tenants"
        assert resolver.resolve_one("blue") == 1
