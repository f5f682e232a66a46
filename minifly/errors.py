"""Error types raised across the package."""

from __future__ import annotations

from typing import Any, ClassVar


class MiniflyError(Exception):
    """Base class for every error raised by the package."""


class _DetailedError(MiniflyError):
    """An error whose message is a fixed label followed by a detail."""

    label: ClassVar[str] = ""

    def __init__(self, detail: object) -> None:
        self.detail = str(detail)
        super().__init__(f"{self.label}: {self.detail}")

    def __reduce__(self) -> tuple[Any, ...]:
        return (type(self), (self.detail,))


class _FixedError(MiniflyError):
    """An error whose message never changes."""

    label: ClassVar[str] = ""

    def __init__(self) -> None:
        super().__init__(self.label)

    def __reduce__(self) -> tuple[Any, ...]:
        return (type(self), ())


class MachineNotFoundError(_DetailedError):
    """No machine exists with the given id."""

    label = "Machine not found"


class AppNotFoundError(_DetailedError):
    """No application exists with the given name."""

    label = "App not found"


class InvalidConfigurationError(_DetailedError):
    """A configuration could not be read or is not valid."""

    label = "Invalid configuration"


class DockerError(_DetailedError):
    """The container runtime reported a failure."""

    label = "Docker error"


class DatabaseError(_DetailedError):
    """The database reported a failure."""

    label = "Database error"


class NetworkError(_DetailedError):
    """A network operation failed."""

    label = "Network error"


class AuthenticationFailedError(_FixedError):
    """The supplied credentials were rejected."""

    label = "Authentication failed"


class LeaseConflictError(_FixedError):
    """Another lease is already held."""

    label = "Lease conflict"


class InvalidLeaseNonceError(_FixedError):
    """The lease nonce does not match the held lease."""

    label = "Invalid lease nonce"


class NotFoundError(_FixedError):
    """A requested resource does not exist."""

    label = "Resource not found"


class BadRequestError(_DetailedError):
    """A request was malformed."""

    label = "Bad request"


class InternalError(_DetailedError):
    """An unexpected internal failure."""

    label = "Internal error"


class LiteFSError(_DetailedError):
    """A LiteFS operation failed."""

    label = "LiteFS error"