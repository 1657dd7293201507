"""NetBox REST transport built on the azure-core HTTP pipeline.

One method per logical remote call. Responses are returned as decoded
JSON; failures are raised as azure-core exceptions so callers can tell
not-found apart from every other remote failure:

- 404 -> ResourceNotFoundError
- 401/403 -> ClientAuthenticationError
- 409 -> ResourceExistsError
- any other non-2xx -> HttpResponseError
- connection failures -> ServiceRequestError / ServiceResponseError

The pipeline runs with retries disabled. Retry policy belongs to the
caller orchestrating the reconciliation.
"""

from __future__ import annotations

import logging
from typing import Any

from azure.core import PipelineClient
from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    DecodeError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
    map_error,
)
from azure.core.pipeline import policies
from azure.core.pipeline.transport import RequestsTransport
from azure.core.rest import HttpRequest, HttpResponse

from .config import SUPPORTED_NETBOX_VERSIONS, Config

logger = logging.getLogger(__name__)

USER_AGENT = "netbox-operator/0.1.0"
API_PATH = "/api"

ERROR_MAP: dict[int, type[HttpResponseError]] = {
    401: ClientAuthenticationError,
    403: ClientAuthenticationError,
    404: ResourceNotFoundError,
    409: ResourceExistsError,
}

# Longest error body kept in exception messages
MAX_ERROR_DETAIL_LENGTH = 500


def error_detail(error: AzureError) -> str:
    """Extract a readable message from an azure-core error.

    NetBox reports validation failures in the response body
    (e.g. {"slug": ["site with this slug already exists."]}), which is
    more useful than the bare status line.
    """
    response = getattr(error, "response", None)
    if response is not None:
        try:
            body = response.text()
        except Exception:  # noqa: BLE001 - body may be unreadable or already consumed
            body = ""
        if body:
            return f"{error.message}: {body[:MAX_ERROR_DETAIL_LENGTH]}"
    return str(error.message)


def status_code_of(error: AzureError) -> int | None:
    """Return the HTTP status code carried by an error, if any."""
    return getattr(error, "status_code", None)


def _json(response: HttpResponse) -> dict[str, Any]:
    """Decode a response body that must be a JSON object.

    A proxy in front of NetBox may answer 2xx with an HTML page; that is
    reported as DecodeError so callers classify it like any remote failure.
    """
    try:
        body = response.json()
    except ValueError as e:
        raise DecodeError(
            message="NetBox returned a non-JSON body", response=response, error=e
        ) from e
    if not isinstance(body, dict):
        raise DecodeError(
            message=f"NetBox returned {type(body).__name__} instead of an object",
            response=response,
        )
    return body


class NetBoxClient:
    """Thin NetBox REST client.

    Endpoints are given relative to /api, e.g. "dcim/sites".

    Use as a context manager to release the underlying HTTP session:

        with NetBoxClient.from_config(config) as client:
            site = client.get("dcim/sites", 42)
    """

    def __init__(
        self,
        server_url: str,
        api_token: str,
        *,
        headers: dict[str, str] | None = None,
        transport: Any | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            server_url: NetBox base URL without trailing slash.
            api_token: API token, sent as "Authorization: Token <token>".
            headers: Extra headers to send on every request.
            transport: azure-core transport (defaults to RequestsTransport).
        """
        self._server_url = server_url.rstrip("/")
        base_headers = {"Accept": "application/json"}
        base_headers.update(headers or {})

        pipeline_policies = [
            policies.HeadersPolicy(base_headers=base_headers),
            policies.UserAgentPolicy(user_agent=USER_AGENT),
            policies.AzureKeyCredentialPolicy(
                AzureKeyCredential(api_token), "Authorization", prefix="Token"
            ),
            policies.RetryPolicy.no_retries(),
            policies.RedirectPolicy(),
            policies.HttpLoggingPolicy(),
        ]
        self._client: PipelineClient = PipelineClient(
            base_url=self._server_url,
            policies=pipeline_policies,
            transport=transport or RequestsTransport(),
        )

    @classmethod
    def from_config(cls, config: Config) -> NetBoxClient:
        """Build a client from validated operator configuration."""
        transport = RequestsTransport(
            connection_timeout=config.request_timeout_seconds,
            read_timeout=config.request_timeout_seconds,
            connection_verify=not config.allow_insecure_https,
        )
        return cls(
            config.server_url,
            config.api_token,
            headers=config.headers,
            transport=transport,
        )

    @property
    def server_url(self) -> str:
        """Get the NetBox base URL."""
        return self._server_url

    def _url(self, endpoint: str, identifier: int | None = None) -> str:
        path = f"{self._server_url}{API_PATH}/{endpoint.strip('/')}/"
        if identifier is not None:
            path += f"{int(identifier)}/"
        return path

    def _send(self, request: HttpRequest, expected: tuple[int, ...]) -> HttpResponse:
        response = self._client.send_request(request)
        if response.status_code not in expected:
            map_error(status_code=response.status_code, response=response, error_map=ERROR_MAP)
            raise HttpResponseError(response=response)
        return response

    def create(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a new object and return the created representation."""
        request = HttpRequest("POST", self._url(endpoint), json=payload)
        return _json(self._send(request, (201,)))

    def get(self, endpoint: str, identifier: int) -> dict[str, Any]:
        """GET a single object by identifier."""
        request = HttpRequest("GET", self._url(endpoint, identifier))
        return _json(self._send(request, (200,)))

    def update(
        self,
        endpoint: str,
        identifier: int,
        payload: dict[str, Any],
        *,
        partial: bool = True,
    ) -> dict[str, Any]:
        """PATCH (partial) or PUT (full) an object and return its new representation."""
        method = "PATCH" if partial else "PUT"
        request = HttpRequest(method, self._url(endpoint, identifier), json=payload)
        return _json(self._send(request, (200,)))

    def delete(self, endpoint: str, identifier: int) -> None:
        """DELETE an object by identifier."""
        request = HttpRequest("DELETE", self._url(endpoint, identifier))
        self._send(request, (200, 204))

    def list(self, endpoint: str, *, limit: int | None = None, **filters: Any) -> dict[str, Any]:
        """GET one page of objects matching the given filters.

        Returns:
            NetBox page: {"count": int, "next": str | None, "results": [...]}.
        """
        params: dict[str, Any] = {k: v for k, v in filters.items() if v is not None}
        if limit is not None:
            params["limit"] = limit
        request = HttpRequest("GET", self._url(endpoint), params=params)
        return _json(self._send(request, (200,)))

    def status(self) -> dict[str, Any]:
        """GET the NetBox status document."""
        request = HttpRequest("GET", self._url("status"))
        return _json(self._send(request, (200,)))

    def close(self) -> None:
        """Release the HTTP session."""
        self._client.close()

    def __enter__(self) -> NetBoxClient:
        self._client.__enter__()
        return self

    def __exit__(self, *exc_details: Any) -> None:
        self._client.__exit__(*exc_details)


def check_server_version(client: NetBoxClient) -> str | None:
    """Warn when the server runs a NetBox release the mappings were not verified on.

    Returns:
        The reported NetBox version, or None if the server did not report one.

    Raises:
        AzureError: If the status endpoint cannot be queried.
    """
    version = client.status().get("netbox-version")
    if version is None:
        logger.warning("NetBox did not report its version", extra={"server_url": client.server_url})
        return None

    version = str(version)
    if version not in SUPPORTED_NETBOX_VERSIONS:
        logger.warning(
            "Possibly unsupported NetBox version",
            extra={
                "netbox_version": version,
                "supported_versions": list(SUPPORTED_NETBOX_VERSIONS),
            },
        )
    else:
        logger.info("Connected to NetBox", extra={"netbox_version": version})
    return version
