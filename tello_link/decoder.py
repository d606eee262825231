"""External video decoder process.

The decoder is treated as an opaque byte pipe: H.264 elementary stream goes
in on stdin, raw rgb24 pixels come out on stdout.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Optional, Protocol, Sequence

from . import constants
from .errors import ProcessUnavailable

LOGGER = logging.getLogger(__name__)

TERMINATE_GRACE_SECONDS = 2.0


class DecoderProcess(Protocol):
    """Minimal contract for a spawned decoder."""

    @property
    def returncode(self) -> Optional[int]:
        ...

    async def write(self, data: bytes, *, flush: bool = True) -> None:
        """Write encoded bytes to the decoder input.

        Raises:
            ProcessUnavailable: If the decoder input is no longer writable.
        """
        ...

    def chunks(self) -> AsyncIterator[bytes]:
        """Yield decoded output chunks of arbitrary size until end of stream."""
        ...

    async def wait(self) -> int:
        ...

    async def terminate(self) -> None:
        """Stop the decoder. Never raises."""
        ...


def decoder_argv(
    executable: str = constants.DEFAULT_DECODER,
    *,
    width: int = constants.DEFAULT_FRAME_WIDTH,
    height: int = constants.DEFAULT_FRAME_HEIGHT,
    framerate: int = constants.DEFAULT_FRAMERATE,
) -> list[str]:
    """Build the ffmpeg invocation turning raw H.264 on stdin into rgb24 on stdout."""

    return [
        executable,
        "-loglevel",
        "error",
        "-f",
        "h264",
        "-framerate",
        str(framerate),
        "-probesize",
        "32",
        "-i",
        "-",
        "-f",
        "rawvideo",
        "-pix_fmt",
        "rgb24",
        "-s",
        f"{width}x{height}",
        "-",
    ]


class SubprocessDecoder:
    """Decoder backed by an ``asyncio`` subprocess."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        *,
        read_chunk_bytes: int = constants.DEFAULT_READ_CHUNK_BYTES,
    ) -> None:
        self._process = process
        self._read_chunk_bytes = read_chunk_bytes
        self._terminated = False

    @classmethod
    async def spawn(
        cls,
        argv: Sequence[str],
        *,
        read_chunk_bytes: int = constants.DEFAULT_READ_CHUNK_BYTES,
    ) -> "SubprocessDecoder":
        """Start the decoder process.

        Raises:
            ProcessUnavailable: If the executable cannot be started.
        """

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise ProcessUnavailable(f"Failed to start decoder {argv[0]!r}: {exc}") from exc

        LOGGER.info("Started decoder %s (pid=%s)", argv[0], process.pid)
        return cls(process, read_chunk_bytes=read_chunk_bytes)

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    @property
    def terminated(self) -> bool:
        """Whether :meth:`terminate` was requested."""
        return self._terminated

    async def write(self, data: bytes, *, flush: bool = True) -> None:
        stdin = self._process.stdin
        if stdin is None or stdin.is_closing():
            raise ProcessUnavailable(
                "Decoder input is closed", returncode=self._process.returncode
            )
        try:
            stdin.write(data)
            if flush:
                await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise ProcessUnavailable(
                f"Decoder input closed: {exc}", returncode=self._process.returncode
            ) from exc

    async def chunks(self) -> AsyncIterator[bytes]:
        stdout = self._process.stdout
        if stdout is None:
            return
        while True:
            chunk = await stdout.read(self._read_chunk_bytes)
            if not chunk:
                return
            yield chunk

    async def wait(self) -> int:
        return await self._process.wait()

    async def terminate(self) -> None:
        if self._terminated:
            return
        self._terminated = True

        stdin = self._process.stdin
        if stdin is not None and not stdin.is_closing():
            stdin.close()

        if self._process.returncode is not None:
            return

        try:
            self._process.terminate()
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(self._process.wait(), TERMINATE_GRACE_SECONDS)
        except asyncio.TimeoutError:
            LOGGER.warning("Decoder did not exit in time, killing it")
            with contextlib.suppress(ProcessLookupError):
                self._process.kill()
            try:
                await self._process.wait()
            except Exception:
                LOGGER.warning("Failed to reap decoder process", exc_info=True)
        except Exception:
            LOGGER.warning("Error while stopping decoder", exc_info=True)
