import asyncio
from typing import Callable, Optional

import pytest

from tello_link.errors import BindUnavailable
from tello_link.transport import Datagram, Endpoint, UDPEndpoint

DRONE = Endpoint("192.168.10.1", 8889)


class FakeDatagramTransport:
    """Stands in for an asyncio datagram transport, recording what is sent."""

    def __init__(self, endpoint: UDPEndpoint, on_send: Optional[Callable] = None):
        self.endpoint = endpoint
        self.on_send = on_send
        self.sent: list[tuple[bytes, Optional[tuple]]] = []
        self.closed = False

    def sendto(self, data: bytes, addr: Optional[tuple] = None) -> None:
        destination = addr if addr is not None else tuple(self.endpoint.remote)
        self.sent.append((data, destination))
        if self.on_send is not None:
            self.on_send(self.endpoint, data)

    def close(self) -> None:
        self.closed = True


class FakeNetwork:
    """Opener producing real UDPEndpoints over fake transports."""

    def __init__(self) -> None:
        self.endpoints: dict[Endpoint, UDPEndpoint] = {}
        self.transports: dict[Endpoint, FakeDatagramTransport] = {}
        self.open_calls: list[Endpoint] = []
        self.unavailable: set[Endpoint] = set()
        self.on_send: Optional[Callable] = None

    async def open(
        self, local: Endpoint, *, remote: Optional[Endpoint] = None, queue_size: int = 512
    ) -> UDPEndpoint:
        self.open_calls.append(local)
        # give concurrent callers a chance to race the bind
        await asyncio.sleep(0)
        if local in self.unavailable:
            raise BindUnavailable(local, OSError(98, "Address already in use"))
        endpoint = UDPEndpoint(local, remote=remote, queue_size=queue_size)
        transport = FakeDatagramTransport(endpoint, self.on_send)
        endpoint.attach(transport)  # type: ignore[arg-type]
        self.endpoints[local] = endpoint
        self.transports[local] = transport
        return endpoint

    def deliver(self, local: Endpoint, data: bytes, sender: tuple = tuple(DRONE)) -> None:
        self.endpoints[local].deliver(Datagram(data, sender))


class FakeDrone:
    """Answers commands the way the drone does.

    ``replies`` maps a command to a list of ``(payload, sender, delay)``
    tuples; unknown commands are answered ``ok`` straight away and commands
    mapped to an empty list are never answered.
    """

    def __init__(self, peer: Endpoint = DRONE) -> None:
        self.peer = peer
        self.received: list[str] = []
        self.replies: dict[str, list[tuple[bytes, tuple, float]]] = {}

    def reply(self, command: str, payload: bytes, *, sender=None, delay: float = 0.0):
        self.replies.setdefault(command, []).append(
            (payload, tuple(sender or self.peer), delay)
        )

    def silence(self, command: str) -> None:
        self.replies[command] = []

    def __call__(self, endpoint: UDPEndpoint, data: bytes) -> None:
        command = data.decode("utf-8")
        self.received.append(command)
        loop = asyncio.get_running_loop()
        for payload, sender, delay in self.replies.get(
            command, [(b"ok", tuple(self.peer), 0.0)]
        ):
            loop.call_later(delay, endpoint.deliver, Datagram(payload, sender))


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def drone(network: FakeNetwork) -> FakeDrone:
    fake = FakeDrone()
    network.on_send = fake
    return fake
