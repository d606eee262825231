"""Video listener and packet wrapper for the raw H.264 stream."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from . import constants
from .errors import ReceiveTimeout, TelloError
from .session import CommandSession
from .transport import DatagramOpener, Endpoint, LazyEndpoint, open_datagram_endpoint

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VideoPacket:
    """One video datagram: a 2-byte header followed by elementary stream bytes."""

    data: bytes

    @property
    def header(self) -> bytes:
        return self.data[: constants.VIDEO_HEADER_BYTES]

    @property
    def payload(self) -> bytes:
        """H.264 elementary stream bytes with the header stripped."""
        return self.data[constants.VIDEO_HEADER_BYTES :]

    def write_payload(self, buffer: bytearray | memoryview, offset: int = 0) -> int:
        """Copy the payload into ``buffer`` at ``offset`` and return its length."""

        payload = self.payload
        end = offset + len(payload)
        if end > len(buffer):
            raise ValueError(
                f"buffer too small for {len(payload)} payload bytes at offset {offset}"
            )
        buffer[offset:end] = payload
        return len(payload)

    def __len__(self) -> int:
        return len(self.data)


class VideoListener:
    """Receives video datagrams, turning the stream on before each read.

    ``streamon`` goes out as a background exchange on the command session, so a
    read never waits behind a command in flight.
    """

    def __init__(
        self,
        session: CommandSession,
        bind: Endpoint = Endpoint.parse(constants.DEFAULT_VIDEO_BIND),
        *,
        timeout: float = constants.DEFAULT_VIDEO_TIMEOUT_SECONDS,
        queue_size: int = constants.DEFAULT_QUEUE_SIZE,
        opener: DatagramOpener = open_datagram_endpoint,
    ) -> None:
        self._session = session
        self._timeout = timeout
        self._endpoint = LazyEndpoint(
            "video", bind, opener=opener, queue_size=queue_size
        )
        self._stream_requests: set[asyncio.Task[None]] = set()

    @property
    def is_bound(self) -> bool:
        return self._endpoint.is_bound

    @property
    def pending_stream_requests(self) -> int:
        return len(self._stream_requests)

    async def read_video(self, timeout: Optional[float] = None) -> VideoPacket:
        """Wait for the next video datagram from any sender.

        Binds the video socket on first use and issues ``streamon`` on every
        call. The ``streamon`` exchange runs alongside the receive and is
        bounded by the same ``timeout``; its outcome never fails the read.

        Raises:
            BindUnavailable: If the video port cannot be bound.
            ReceiveTimeout: If no datagram arrived in time.
            TransportClosed: If the listener was closed.
        """

        budget = self._timeout if timeout is None else timeout
        endpoint = await self._endpoint.get()

        request = asyncio.create_task(self._request_stream(budget))
        self._stream_requests.add(request)
        request.add_done_callback(self._stream_requests.discard)

        try:
            async with asyncio.timeout(budget):
                datagram = await endpoint.receive()
        except TimeoutError as exc:
            raise ReceiveTimeout(f"No video datagram within {budget:.1f}s") from exc

        return VideoPacket(datagram.data)

    async def _request_stream(self, budget: float) -> None:
        try:
            async with asyncio.timeout(budget):
                result = await self._session.stream_on(timeout=budget)
        except TimeoutError:
            LOGGER.debug("streamon still waiting for the command lock after %.1fs", budget)
            return
        except TelloError as exc:
            LOGGER.debug("streamon not sent: %s", exc)
            return
        if not result:
            LOGGER.debug("streamon not acknowledged (%s)", result.outcome.value)

    def cancel_stream_requests(self) -> None:
        for request in list(self._stream_requests):
            request.cancel()

    def close(self) -> None:
        self.cancel_stream_requests()
        self._endpoint.close()
