"""Command session: one text command in flight, correlated with its reply.

The drone answers every command with ``ok`` or ``error`` (optionally followed
by more text) from the address commands are sent to. Only one command may be
outstanding at a time, so the send-and-wait sequence runs under a lock.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from . import constants
from .errors import TransportClosed
from .transport import (
    DatagramOpener,
    Endpoint,
    LazyEndpoint,
    open_datagram_endpoint,
)

LOGGER = logging.getLogger(__name__)

ROTATE_LIMIT = 3600
RC_LIMIT = 100
MOVE_MIN_CM = 20
MOVE_MAX_CM = 500


class CommandOutcome(str, Enum):
    """Classification of a command exchange."""

    OK = "ok"
    """The drone replied ``ok``."""

    REJECTED = "rejected"
    """The drone replied ``error``."""

    TIMEOUT = "timeout"
    """No correlated reply arrived within the budget."""

    CLOSED = "closed"
    """The session was closed before a reply arrived."""


class MoveDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    FORWARD = "forward"
    BACK = "back"


class FlipDirection(str, Enum):
    LEFT = "l"
    RIGHT = "r"
    FORWARD = "f"
    BACK = "b"


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Result of a single command. Truthy when the drone acknowledged it."""

    command: str
    outcome: CommandOutcome
    reply: Optional[str] = None
    elapsed: float = 0.0

    @property
    def success(self) -> bool:
        return self.outcome == CommandOutcome.OK

    def __bool__(self) -> bool:
        return self.success


class CommandSession:
    """Sends commands to the drone and waits for the matching reply."""

    def __init__(
        self,
        peer: Endpoint = Endpoint(constants.DEFAULT_DRONE_HOST, constants.DEFAULT_COMMAND_PORT),
        bind: Endpoint = Endpoint.parse(constants.DEFAULT_COMMAND_BIND),
        *,
        timeout: float = constants.DEFAULT_COMMAND_TIMEOUT_SECONDS,
        close_timeout: float = constants.DEFAULT_CLOSE_TIMEOUT_SECONDS,
        opener: DatagramOpener = open_datagram_endpoint,
    ) -> None:
        self._peer = peer
        self._timeout = timeout
        self._close_timeout = close_timeout
        self._closed = False
        self._command_endpoint = LazyEndpoint("command", bind, remote=peer, opener=opener)
        self._command_lock = asyncio.Lock()

    @property
    def peer(self) -> Endpoint:
        return self._peer

    async def open(self) -> None:
        """Bind the command socket.

        Raises:
            BindUnavailable: If the local command port is already in use.
        """
        await self._command_endpoint.get()

    async def send_command(
        self, command: str, timeout: Optional[float] = None
    ) -> CommandResult:
        """Send ``command`` and wait for its ``ok``/``error`` reply.

        Timeouts and rejections are reported in the result, never raised.
        """

        budget = self._timeout if timeout is None else timeout
        try:
            endpoint = await self._command_endpoint.get()
        except TransportClosed:
            return CommandResult(command, CommandOutcome.CLOSED)

        async with self._command_lock:
            loop = asyncio.get_running_loop()
            started = loop.time()

            stale = endpoint.drain()
            if stale:
                LOGGER.debug("Discarded %d stale datagrams before %r", stale, command)

            try:
                endpoint.send(command.encode("utf-8"), tuple(self._peer))
                LOGGER.debug("Sent command %r to %s", command, self._peer)
                async with asyncio.timeout(budget):
                    while True:
                        datagram = await endpoint.receive()
                        if datagram.address != self._peer:
                            LOGGER.debug(
                                "Ignoring datagram from %s while waiting for %r",
                                datagram.address,
                                command,
                            )
                            continue

                        text = datagram.data.decode("utf-8", errors="replace").strip()
                        if text.startswith("ok"):
                            outcome = CommandOutcome.OK
                        elif text.startswith("error"):
                            outcome = CommandOutcome.REJECTED
                        else:
                            LOGGER.debug("Ignoring reply %r to %r", text, command)
                            continue

                        elapsed = loop.time() - started
                        LOGGER.debug(
                            "Command %r answered %r after %.2fs", command, text, elapsed
                        )
                        return CommandResult(command, outcome, text, elapsed)
            except TimeoutError:
                LOGGER.warning("Command %r timed out after %.1fs", command, budget)
                return CommandResult(
                    command, CommandOutcome.TIMEOUT, elapsed=loop.time() - started
                )
            except TransportClosed:
                LOGGER.debug("Command %r interrupted by close", command)
                return CommandResult(
                    command, CommandOutcome.CLOSED, elapsed=loop.time() - started
                )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def enable(self, timeout: Optional[float] = None) -> CommandResult:
        """Enter command mode. It stays enabled until the drone reboots."""
        return await self.send_command("command", timeout)

    async def emergency(self, timeout: Optional[float] = None) -> CommandResult:
        """Stop the motors immediately, without landing."""
        return await self.send_command("emergency", timeout)

    async def take_off(self, timeout: Optional[float] = None) -> CommandResult:
        return await self.send_command("takeoff", timeout)

    async def land(self, timeout: Optional[float] = None) -> CommandResult:
        return await self.send_command("land", timeout)

    async def stream_on(self, timeout: Optional[float] = None) -> CommandResult:
        """Start the video stream. Repeating it while streaming is harmless."""
        return await self.send_command("streamon", timeout)

    async def stream_off(self, timeout: Optional[float] = None) -> CommandResult:
        return await self.send_command("streamoff", timeout)

    async def set_speed(self, speed: int, timeout: Optional[float] = None) -> CommandResult:
        return await self.send_command(f"speed {int(speed)}", timeout)

    async def set_rc(
        self, x: int, y: int, z: int, yaw: int, timeout: Optional[float] = None
    ) -> CommandResult:
        """Set per-axis velocity (z is up) and yaw rate, each in -100..100."""

        for name, value in (("x", x), ("y", y), ("z", z), ("yaw", yaw)):
            if not -RC_LIMIT <= value <= RC_LIMIT:
                raise ValueError(f"rc {name}={value} outside -{RC_LIMIT}..{RC_LIMIT}")
        return await self.send_command(
            f"rc {int(x)} {int(y)} {int(z)} {int(yaw)}", timeout
        )

    async def rotate(self, angle: int, timeout: Optional[float] = None) -> CommandResult:
        """Rotate by ``angle`` tenths of a degree; positive is clockwise."""

        if not -ROTATE_LIMIT <= angle <= ROTATE_LIMIT:
            raise ValueError(f"rotation {angle} outside -{ROTATE_LIMIT}..{ROTATE_LIMIT}")
        if angle > 0:
            return await self.send_command(f"cw {int(angle)}", timeout)
        return await self.send_command(f"ccw {int(-angle)}", timeout)

    async def move(
        self,
        direction: MoveDirection | str,
        distance_cm: int,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        direction = MoveDirection(direction)
        if not MOVE_MIN_CM <= distance_cm <= MOVE_MAX_CM:
            raise ValueError(
                f"move distance {distance_cm} outside {MOVE_MIN_CM}..{MOVE_MAX_CM}"
            )
        return await self.send_command(f"{direction.value} {int(distance_cm)}", timeout)

    async def flip(
        self, direction: FlipDirection | str, timeout: Optional[float] = None
    ) -> CommandResult:
        direction = FlipDirection(direction)
        return await self.send_command(f"flip {direction.value}", timeout)

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Stop the video stream (best effort) and release the command socket.

        Safe to call repeatedly. Commands still waiting for a reply finish
        with :attr:`CommandOutcome.CLOSED`.
        """

        if self._closed:
            return
        self._closed = True

        if self._command_endpoint.is_bound:
            try:
                async with asyncio.timeout(self._close_timeout):
                    result = await self.stream_off(timeout=self._close_timeout)
                if not result:
                    LOGGER.debug("streamoff on close: %s", result.outcome.value)
            except TimeoutError:
                LOGGER.debug("streamoff on close timed out waiting for the session")
            except Exception:
                LOGGER.warning("streamoff on close failed", exc_info=True)

        self._command_endpoint.close()
