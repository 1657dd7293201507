"""Error taxonomy for the reconciliation engine.

Every outcome of a lifecycle operation is classified precisely enough for
the caller to decide whether it is fatal. The core never retries.

Not-found handling:
- Read: not an error, the resource is reported as gone (drift)
- Delete: not an error, deleting a gone resource succeeds
- Update: RemoteWriteError with not_found=True
"""

from __future__ import annotations


class OperatorError(Exception):
    """Base class for all engine errors."""

    pass


class ValidationError(OperatorError):
    """Raised when a declared resource violates its schema.

    Raised before any remote call is issued.
    """

    def __init__(self, attribute: str, constraint: str, message: str | None = None) -> None:
        self.attribute = attribute
        self.constraint = constraint
        super().__init__(message or f"{attribute}: {constraint}")


class ReferenceResolutionError(OperatorError):
    """Base class for symbolic reference failures."""

    def __init__(self, name: str, message: str) -> None:
        self.name = name
        super().__init__(message)


class UnresolvedReferenceError(ReferenceResolutionError):
    """Raised when a reference name matches no remote object."""

    def __init__(self, name: str, endpoint: str = "extras/tags") -> None:
        self.endpoint = endpoint
        super().__init__(name, f"Could not locate referenced object '{name}' in {endpoint}")


class AmbiguousReferenceError(ReferenceResolutionError):
    """Raised when a reference name matches more than one remote object."""

    def __init__(self, name: str, matches: int, endpoint: str = "extras/tags") -> None:
        self.matches = matches
        self.endpoint = endpoint
        super().__init__(
            name, f"Could not map '{name}' to a unique object in {endpoint} ({matches}+ matches)"
        )


class TransportError(OperatorError):
    """Raised when a reference lookup fails at the transport level."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RemoteReadError(OperatorError):
    """Raised when reading a resource fails for a reason other than drift."""

    def __init__(
        self,
        kind: str,
        identifier: int,
        message: str,
        *,
        status_code: int | None = None,
        not_found: bool = False,
    ) -> None:
        self.kind = kind
        self.identifier = identifier
        self.status_code = status_code
        self.not_found = not_found
        super().__init__(f"Unable to read {kind} {identifier}: {message}")


class RemoteWriteError(OperatorError):
    """Raised when a create, update or delete call fails remotely."""

    def __init__(
        self,
        kind: str,
        operation: str,
        message: str,
        *,
        identifier: int | None = None,
        status_code: int | None = None,
        not_found: bool = False,
    ) -> None:
        self.kind = kind
        self.operation = operation
        self.identifier = identifier
        self.status_code = status_code
        self.not_found = not_found
        target = kind if identifier is None else f"{kind} {identifier}"
        super().__init__(f"Unable to {operation} {target}: {message}")


class UnsupportedOperationError(OperatorError):
    """Raised when a resource kind does not offer a lifecycle operation."""

    def __init__(self, kind: str, operation: str) -> None:
        self.kind = kind
        self.operation = operation
        super().__init__(f"Resource kind '{kind}' does not support {operation}")
