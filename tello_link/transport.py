"""UDP datagram transport built on asyncio datagram endpoints.

The rest of the package only talks to :class:`DatagramEndpoint` objects
produced by a :data:`DatagramOpener`. The default opener binds a real UDP
socket through ``loop.create_datagram_endpoint``; tests substitute their own.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, NamedTuple, Optional, Protocol

from .constants import DEFAULT_QUEUE_SIZE
from .errors import BindUnavailable, TransportClosed

LOGGER = logging.getLogger(__name__)


class Endpoint(NamedTuple):
    """An IPv4 host and port pair, comparable with asyncio peer tuples."""

    host: str
    port: int

    @classmethod
    def parse(cls, value: str, *, default_port: Optional[int] = None) -> "Endpoint":
        text = value.strip()
        if ":" in text:
            host_part, port_part = text.rsplit(":", 1)
            try:
                return cls(host_part.strip() or "0.0.0.0", int(port_part))
            except ValueError as exc:
                raise ValueError(f"Invalid port in endpoint {value!r}") from exc
        if default_port is None:
            raise ValueError(f"Endpoint {value!r} has no port")
        return cls(text, default_port)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class Datagram(NamedTuple):
    data: bytes
    address: tuple


class DatagramEndpoint(Protocol):
    """Minimal contract for a bound (optionally connected) UDP socket."""

    def send(self, data: bytes, address: Optional[tuple] = None) -> None:
        """Send one datagram, to ``address`` unless the endpoint is connected."""
        ...

    async def receive(self) -> Datagram:
        """Wait for the next datagram.

        Raises:
            TransportClosed: If the endpoint is closed before or while waiting.
        """
        ...

    def drain(self) -> int:
        """Discard queued datagrams and return how many were dropped."""
        ...

    def close(self) -> None:
        """Release the socket; pending receivers are woken with TransportClosed."""
        ...

    @property
    def closed(self) -> bool:
        ...


DatagramOpener = Callable[..., Awaitable[DatagramEndpoint]]

_CLOSED = object()


class _EndpointProtocol(asyncio.DatagramProtocol):
    def __init__(self, endpoint: "UDPEndpoint") -> None:
        self._endpoint = endpoint

    def datagram_received(self, data: bytes, addr: tuple) -> None:
        self._endpoint.deliver(Datagram(data, addr))

    def error_received(self, exc: Exception) -> None:
        LOGGER.debug("UDP error on %s: %s", self._endpoint.local, exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            LOGGER.warning("UDP endpoint %s lost: %s", self._endpoint.local, exc)
        self._endpoint.close()


class UDPEndpoint:
    """Queue-backed receive side over an asyncio datagram transport."""

    def __init__(
        self,
        local: Endpoint,
        *,
        remote: Optional[Endpoint] = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.local = local
        self.remote = remote
        self._queue_size = max(1, queue_size)
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._transport: Optional[asyncio.DatagramTransport] = None
        self._closed = False
        self._dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def address(self) -> Optional[tuple]:
        """Actual bound socket address, which differs from ``local`` for port 0."""
        if self._transport is None:
            return None
        return self._transport.get_extra_info("sockname")

    @property
    def dropped(self) -> int:
        """Number of datagrams discarded because the queue was full."""
        return self._dropped

    def attach(self, transport: asyncio.DatagramTransport) -> None:
        self._transport = transport

    def send(self, data: bytes, address: Optional[tuple] = None) -> None:
        if self._closed or self._transport is None:
            raise TransportClosed(f"UDP endpoint {self.local} is closed")
        # connected sockets reject an explicit destination
        self._transport.sendto(data, None if self.remote is not None else address)

    async def receive(self) -> Datagram:
        if self._closed:
            raise TransportClosed(f"UDP endpoint {self.local} is closed")
        item = await self._queue.get()
        if item is _CLOSED:
            # leave the marker for any other pending receiver
            self._queue.put_nowait(_CLOSED)
            raise TransportClosed(f"UDP endpoint {self.local} is closed")
        return item  # type: ignore[return-value]

    def drain(self) -> int:
        count = 0
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                self._queue.put_nowait(_CLOSED)
                break
            count += 1
        return count

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._transport is not None:
            self._transport.close()
        self._queue.put_nowait(_CLOSED)

    def deliver(self, datagram: Datagram) -> None:
        if self._closed:
            return
        if self._queue.qsize() >= self._queue_size:
            self._queue.get_nowait()
            self._dropped += 1
            if self._dropped % 100 == 1:
                LOGGER.debug(
                    "Receive queue full on %s, dropped %d datagrams so far",
                    self.local,
                    self._dropped,
                )
        self._queue.put_nowait(datagram)


async def open_datagram_endpoint(
    local: Endpoint,
    *,
    remote: Optional[Endpoint] = None,
    queue_size: int = DEFAULT_QUEUE_SIZE,
) -> UDPEndpoint:
    """Bind a UDP socket on ``local``, connecting it to ``remote`` when given.

    Raises:
        BindUnavailable: If the local address cannot be bound.
    """

    loop = asyncio.get_running_loop()
    endpoint = UDPEndpoint(local, remote=remote, queue_size=queue_size)
    try:
        transport, _ = await loop.create_datagram_endpoint(
            lambda: _EndpointProtocol(endpoint),
            local_addr=tuple(local),
            remote_addr=tuple(remote) if remote is not None else None,
        )
    except OSError as exc:
        raise BindUnavailable(local, exc) from exc

    endpoint.attach(transport)
    LOGGER.debug(
        "Bound UDP endpoint %s%s", local, f" -> {remote}" if remote is not None else ""
    )
    return endpoint


class EndpointState(str, Enum):
    """Lifecycle of a lazily bound endpoint."""

    UNBOUND = "unbound"
    BOUND = "bound"
    CLOSED = "closed"


class LazyEndpoint:
    """Binds its endpoint exactly once, on first use, even under concurrent callers."""

    def __init__(
        self,
        name: str,
        local: Endpoint,
        *,
        remote: Optional[Endpoint] = None,
        opener: DatagramOpener = open_datagram_endpoint,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.name = name
        self.local = local
        self.remote = remote
        self._opener = opener
        self._queue_size = queue_size
        self._lock = asyncio.Lock()
        self._state = EndpointState.UNBOUND
        self._endpoint: Optional[DatagramEndpoint] = None

    @property
    def state(self) -> EndpointState:
        return self._state

    @property
    def is_bound(self) -> bool:
        return self._state == EndpointState.BOUND

    async def get(self) -> DatagramEndpoint:
        """Return the bound endpoint, binding it first if necessary.

        Raises:
            BindUnavailable: If binding fails; the endpoint stays unbound.
            TransportClosed: If the endpoint was closed.
        """

        if self._state == EndpointState.BOUND and self._endpoint is not None:
            return self._endpoint

        async with self._lock:
            if self._state == EndpointState.CLOSED:
                raise TransportClosed(f"{self.name} endpoint is closed")
            if self._endpoint is None:
                LOGGER.debug("Binding %s endpoint on %s", self.name, self.local)
                endpoint = await self._opener(
                    self.local, remote=self.remote, queue_size=self._queue_size
                )
                if self._state == EndpointState.CLOSED:
                    endpoint.close()
                    raise TransportClosed(f"{self.name} endpoint is closed")
                self._endpoint = endpoint
                self._state = EndpointState.BOUND
            return self._endpoint

    def close(self) -> None:
        """Close the endpoint if it was bound. Safe to call repeatedly."""

        if self._state == EndpointState.CLOSED:
            return
        self._state = EndpointState.CLOSED
        endpoint, self._endpoint = self._endpoint, None
        if endpoint is None:
            return
        try:
            endpoint.close()
        except Exception:
            LOGGER.warning("Failed to close %s endpoint", self.name, exc_info=True)
