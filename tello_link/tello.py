"""High-level client combining commands, telemetry and video."""

from __future__ import annotations

import logging
from typing import Optional

from . import constants
from .config import TelloConfig
from .session import CommandSession
from .state import TelemetrySnapshot
from .telemetry import TelemetryListener
from .transport import DatagramOpener, Endpoint, open_datagram_endpoint
from .video import VideoListener, VideoPacket

LOGGER = logging.getLogger(__name__)


class Tello(CommandSession):
    """Client for a drone in SDK command mode.

    Start with :meth:`enable` to switch the drone to command mode (this also
    checks the link), poll :meth:`read_state` regularly to keep track of the
    battery, and always :meth:`close` when done. Land first.

    The command socket is bound by :meth:`open` (or ``async with``); the
    telemetry and video sockets are bound on first use.
    """

    def __init__(
        self,
        peer: Endpoint = Endpoint(constants.DEFAULT_DRONE_HOST, constants.DEFAULT_COMMAND_PORT),
        command_bind: Endpoint = Endpoint.parse(constants.DEFAULT_COMMAND_BIND),
        state_bind: Endpoint = Endpoint.parse(constants.DEFAULT_STATE_BIND),
        video_bind: Endpoint = Endpoint.parse(constants.DEFAULT_VIDEO_BIND),
        *,
        command_timeout: float = constants.DEFAULT_COMMAND_TIMEOUT_SECONDS,
        close_timeout: float = constants.DEFAULT_CLOSE_TIMEOUT_SECONDS,
        state_timeout: float = constants.DEFAULT_STATE_TIMEOUT_SECONDS,
        video_timeout: float = constants.DEFAULT_VIDEO_TIMEOUT_SECONDS,
        strict_telemetry: bool = False,
        video_queue_size: int = constants.DEFAULT_QUEUE_SIZE,
        opener: DatagramOpener = open_datagram_endpoint,
    ) -> None:
        super().__init__(
            peer,
            command_bind,
            timeout=command_timeout,
            close_timeout=close_timeout,
            opener=opener,
        )
        self.telemetry = TelemetryListener(
            peer,
            state_bind,
            timeout=state_timeout,
            strict=strict_telemetry,
            opener=opener,
        )
        self.video = VideoListener(
            self,
            video_bind,
            timeout=video_timeout,
            queue_size=video_queue_size,
            opener=opener,
        )

    @classmethod
    def from_config(
        cls, config: TelloConfig, *, opener: DatagramOpener = open_datagram_endpoint
    ) -> "Tello":
        return cls(
            config.drone.command_peer,
            config.drone.command_bind,
            config.drone.state_bind,
            config.drone.video_bind,
            command_timeout=config.commands.timeout_seconds,
            close_timeout=config.commands.close_timeout_seconds,
            state_timeout=config.telemetry.timeout_seconds,
            video_timeout=config.video.timeout_seconds,
            strict_telemetry=config.telemetry.strict,
            video_queue_size=config.video.queue_size,
            opener=opener,
        )

    async def read_state(self, timeout: Optional[float] = None) -> TelemetrySnapshot:
        """Wait for the next telemetry snapshot. See :meth:`TelemetryListener.read_state`."""
        return await self.telemetry.read_state(timeout)

    async def read_video(self, timeout: Optional[float] = None) -> VideoPacket:
        """Wait for the next video packet, enabling the stream first.

        The stream is 960x720 at 30 fps, H.264 encoded.
        """
        return await self.video.read_video(timeout)

    async def close(self) -> None:
        """Stop streaming and release all sockets. Safe to call repeatedly."""

        if self.closed:
            return
        self.video.cancel_stream_requests()
        await super().close()
        for listener in (self.telemetry, self.video):
            try:
                listener.close()
            except Exception:
                LOGGER.warning("Failed to close %s", type(listener).__name__, exc_info=True)
        LOGGER.info("Disconnected from %s", self.peer)

    async def __aenter__(self) -> "Tello":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
