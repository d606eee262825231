"""Video reassembly pipeline.

Received video packets are written, header stripped, to the decoder input.
The decoder output arrives in chunks whose sizes have nothing to do with
frame boundaries; :class:`FrameAssembler` re-cuts them into fixed-size
rgb24 frames.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, List, Optional

from PIL import Image

from . import constants
from .config import VideoConfig
from .decoder import DecoderProcess, SubprocessDecoder, decoder_argv
from .errors import ProcessUnavailable
from .video import VideoPacket

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DecodedFrame:
    """One complete decoded rgb24 image."""

    index: int
    data: bytes
    width: int
    height: int

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGB", (self.width, self.height), self.data)

    def save(self, path: Path, *, quality: int = 90) -> None:
        """Write the frame as an image; the format follows the file suffix."""

        path.parent.mkdir(parents=True, exist_ok=True)
        image = self.to_image()
        if path.suffix.lower() in (".jpg", ".jpeg"):
            image.save(path, format="JPEG", quality=quality)
        else:
            image.save(path)


class FrameAssembler:
    """Accumulates arbitrary-sized chunks into fixed-size frames.

    A single buffer of ``frame_size`` bytes is reused; every emitted frame is
    an independent ``bytes`` copy of it.
    """

    def __init__(self, frame_size: int) -> None:
        if frame_size <= 0:
            raise ValueError("frame_size must be positive")
        self._buffer = bytearray(frame_size)
        self._offset = 0

    @property
    def frame_size(self) -> int:
        return len(self._buffer)

    @property
    def buffered(self) -> int:
        """Bytes of the next frame received so far."""
        return self._offset

    def push(self, chunk: bytes) -> List[bytes]:
        """Consume all of ``chunk`` and return the frames it completed."""

        frames: List[bytes] = []
        view = memoryview(chunk)
        position = 0
        capacity = len(self._buffer)
        while True:
            length = min(len(view) - position, capacity - self._offset)
            if length <= 0:
                break
            self._buffer[self._offset : self._offset + length] = view[
                position : position + length
            ]
            position += length
            self._offset += length
            if self._offset == capacity:
                frames.append(bytes(self._buffer))
                self._offset = 0
        return frames

    def reset(self) -> None:
        self._offset = 0


class VideoPipeline:
    """Feeds video packets to a decoder and yields the decoded frames."""

    def __init__(
        self,
        decoder: DecoderProcess,
        *,
        width: int = constants.DEFAULT_FRAME_WIDTH,
        height: int = constants.DEFAULT_FRAME_HEIGHT,
    ) -> None:
        self._decoder = decoder
        self._width = width
        self._height = height
        self._assembler = FrameAssembler(width * height * constants.BYTES_PER_PIXEL)
        self._frames_requested = False
        self._closing = False
        self._frame_count = 0
        self._bytes_fed = 0

    @classmethod
    async def spawn(cls, config: Optional[VideoConfig] = None) -> "VideoPipeline":
        """Start a decoder process configured from ``config``.

        Raises:
            ProcessUnavailable: If the decoder cannot be started.
        """

        config = config or VideoConfig()
        argv = decoder_argv(
            config.decoder,
            width=config.width,
            height=config.height,
            framerate=config.framerate,
        )
        decoder = await SubprocessDecoder.spawn(
            argv, read_chunk_bytes=config.read_chunk_bytes
        )
        return cls(decoder, width=config.width, height=config.height)

    @property
    def frame_size(self) -> int:
        return self._assembler.frame_size

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def bytes_fed(self) -> int:
        return self._bytes_fed

    async def feed(self, packet: VideoPacket) -> None:
        """Write the packet's stream bytes to the decoder and flush.

        Raises:
            ProcessUnavailable: If the decoder no longer accepts input.
        """

        payload = packet.payload
        if not payload:
            return
        await self._decoder.write(payload, flush=True)
        self._bytes_fed += len(payload)

    def frames(self) -> AsyncIterator[DecodedFrame]:
        """Return the decoded frame stream. It can only be consumed once.

        The stream ends when the pipeline is closed. If the decoder output
        ends for any other reason, :class:`ProcessUnavailable` is raised
        after the last complete frame.
        """

        if self._frames_requested:
            raise RuntimeError("Frame stream already consumed")
        self._frames_requested = True
        return self._iterate_frames()

    async def _iterate_frames(self) -> AsyncIterator[DecodedFrame]:
        async for chunk in self._decoder.chunks():
            for data in self._assembler.push(chunk):
                frame = DecodedFrame(
                    index=self._frame_count,
                    data=data,
                    width=self._width,
                    height=self._height,
                )
                self._frame_count += 1
                yield frame

        if self._assembler.buffered:
            LOGGER.debug(
                "Discarding %d bytes of incomplete frame", self._assembler.buffered
            )
            self._assembler.reset()

        if self._closing:
            return

        returncode = await self._decoder.wait()
        LOGGER.warning("Decoder output ended unexpectedly (returncode=%s)", returncode)
        raise ProcessUnavailable(
            f"Decoder exited with code {returncode}", returncode=returncode
        )

    async def close(self) -> None:
        """Terminate the decoder; the frame stream then ends normally."""

        if self._closing:
            return
        self._closing = True
        try:
            await self._decoder.terminate()
        except Exception:
            LOGGER.warning("Failed to terminate decoder", exc_info=True)

    async def __aenter__(self) -> "VideoPipeline":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
