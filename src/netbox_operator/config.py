"""Configuration management with validation.

Connection settings are resolved once at process start and validated at
load time so that a misconfigured operator fails before any remote call.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10
MIN_REQUEST_TIMEOUT_SECONDS = 1
MAX_REQUEST_TIMEOUT_SECONDS = 300

# Reference lookups fetch at most this many matches; 2 distinguishes
# "exactly one" from "more than one"
REFERENCE_SAMPLE_LIMIT = 2

# Declaration files
MAX_DECLARATION_FILE_SIZE_BYTES = 1024 * 1024  # 1MB
MAX_STATE_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10MB

# NetBox releases the resource mappings were verified against
SUPPORTED_NETBOX_VERSIONS: tuple[str, ...] = (
    "4.0.0",
    "4.0.1",
    "4.0.2",
    "4.0.3",
    "4.0.5",
    "4.0.6",
    "4.0.7",
    "4.0.8",
    "4.0.9",
    "4.0.10",
)

# Input validation patterns
VALID_SERVER_URL_PATTERN = r"^https?://[^\s/]+(:\d+)?(/[^\s]*)?$"
VALID_HEADER_NAME_PATTERN = r"^[A-Za-z0-9-]+$"


@dataclass(frozen=True)
class Config:
    """Operator configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    # Required fields
    server_url: str
    api_token: str

    # Transport
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    allow_insecure_https: bool = False
    headers: dict[str, str] = field(default_factory=dict)

    # Behavior
    skip_version_check: bool = False
    strip_trailing_slashes_from_url: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.server_url:
            errors.append("NETBOX_SERVER_URL is required")
        else:
            if self.server_url.endswith("/"):
                if self.strip_trailing_slashes_from_url:
                    stripped = self.server_url.rstrip("/")
                    logger.warning(
                        "Stripping trailing slashes from server URL",
                        extra={"server_url": self.server_url, "stripped_url": stripped},
                    )
                    # frozen dataclass: assign through object
                    object.__setattr__(self, "server_url", stripped)
                else:
                    errors.append(
                        "NETBOX_SERVER_URL must not end with a slash when "
                        "NETBOX_STRIP_TRAILING_SLASHES_FROM_URL is false"
                    )
            if not re.match(VALID_SERVER_URL_PATTERN, self.server_url):
                errors.append(
                    f"NETBOX_SERVER_URL must be an http or https URL: {self.server_url}"
                )

        if not self.api_token:
            errors.append("NETBOX_API_TOKEN is required")

        if not (
            MIN_REQUEST_TIMEOUT_SECONDS
            <= self.request_timeout_seconds
            <= MAX_REQUEST_TIMEOUT_SECONDS
        ):
            errors.append(
                f"NETBOX_REQUEST_TIMEOUT must be between {MIN_REQUEST_TIMEOUT_SECONDS} "
                f"and {MAX_REQUEST_TIMEOUT_SECONDS} seconds"
            )

        for name in self.headers:
            if not re.match(VALID_HEADER_NAME_PATTERN, name):
                errors.append(f"NETBOX_HEADERS contains an invalid header name: {name}")
            elif name.lower() == "authorization":
                errors.append("NETBOX_HEADERS must not override the Authorization header")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            NETBOX_SERVER_URL: NetBox location including scheme and optional port
            NETBOX_API_TOKEN: API token sent as "Authorization: Token <token>"
            NETBOX_REQUEST_TIMEOUT: HTTP request timeout in seconds (default: 10)
            NETBOX_SKIP_VERSION_CHECK: If "true", skip the startup version check
            NETBOX_ALLOW_INSECURE_HTTPS: If "true", accept invalid certificates
            NETBOX_HEADERS: Extra headers as "Name=value,Other=value"
            NETBOX_STRIP_TRAILING_SLASHES_FROM_URL: Strip trailing slashes (default: true)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None or value == "":
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        def get_headers(value: str | None) -> dict[str, str]:
            if not value:
                return {}
            headers: dict[str, str] = {}
            for item in value.split(","):
                if not item.strip():
                    continue
                name, sep, header_value = item.partition("=")
                if not sep:
                    raise ConfigurationError(
                        f"NETBOX_HEADERS entries must be Name=value pairs: {item}"
                    )
                headers[name.strip()] = header_value.strip()
            return headers

        return cls(
            server_url=os.environ.get("NETBOX_SERVER_URL", ""),
            api_token=os.environ.get("NETBOX_API_TOKEN", ""),
            request_timeout_seconds=get_int(
                "NETBOX_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
            allow_insecure_https=get_bool("NETBOX_ALLOW_INSECURE_HTTPS", False),
            headers=get_headers(os.environ.get("NETBOX_HEADERS")),
            skip_version_check=get_bool("NETBOX_SKIP_VERSION_CHECK", False),
            strip_trailing_slashes_from_url=get_bool(
                "NETBOX_STRIP_TRAILING_SLASHES_FROM_URL", True
            ),
        )
