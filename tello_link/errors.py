"""Error taxonomy for tello-link."""

from __future__ import annotations

from typing import Optional


class TelloError(Exception):
    """Base class for errors raised by tello-link."""


class BindUnavailable(TelloError):
    """Raised when a local UDP endpoint cannot be bound."""

    def __init__(self, address: object, reason: Optional[BaseException] = None) -> None:
        detail = f": {reason}" if reason is not None else ""
        super().__init__(f"Unable to bind UDP endpoint {address}{detail}")
        self.address = address


class TransportClosed(TelloError):
    """Raised when a datagram endpoint is used after (or while) being closed."""


class ReceiveTimeout(TelloError, TimeoutError):
    """Raised when no datagram arrived within the receive budget."""


class MalformedTelemetry(TelloError, ValueError):
    """Raised when a known telemetry key carries a value that fails to parse."""

    def __init__(self, key: str, value: str) -> None:
        super().__init__(f"Malformed telemetry value for {key!r}: {value!r}")
        self.key = key
        self.value = value


class ProcessUnavailable(TelloError):
    """Raised when the video decoder process cannot start or exits unexpectedly."""

    def __init__(self, message: str, *, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.returncode = returncode
