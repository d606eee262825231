"""Command-line interface for tello-link."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .config import TelloConfig, load_config
from .errors import TelloError
from .logging import configure_logging
from .pipeline import DecodedFrame, VideoPipeline
from .status import StatusReporter, StatusServer
from .tello import Tello

LOGGER = logging.getLogger(__name__)

MONITOR_ERROR_BACKOFF_SECONDS = 1.0
FRAME_SETTLE_SECONDS = 1.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tello-link", description="Command, telemetry and video client for Tello drones"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    send_parser = subparsers.add_parser(
        "send", help="Enter command mode and send one raw command"
    )
    send_parser.add_argument("words", nargs="+", help="Command text, e.g. 'speed 20'")

    state_parser = subparsers.add_parser("state", help="Print telemetry snapshots")
    state_parser.add_argument("--count", type=int, default=1)

    record_parser = subparsers.add_parser(
        "record", help="Save the raw H.264 elementary stream to a file"
    )
    record_parser.add_argument("output", type=Path)
    record_parser.add_argument("--packets", type=int, default=1000)

    snapshot_parser = subparsers.add_parser(
        "snapshot", help="Decode the video stream and save one frame as an image"
    )
    snapshot_parser.add_argument("output", type=Path)
    snapshot_parser.add_argument(
        "--max-packets",
        type=int,
        default=3000,
        help="Give up after feeding this many packets without a frame",
    )

    subparsers.add_parser(
        "monitor", help="Poll telemetry and serve the status endpoint until interrupted"
    )

    return parser


async def _send(config: TelloConfig, words: list[str]) -> int:
    async with Tello.from_config(config) as tello:
        if not await tello.enable():
            LOGGER.error("Drone did not enter command mode")
            return 1
        result = await tello.send_command(" ".join(words))
        print(f"{result.command}: {result.outcome.value} {result.reply or ''}".rstrip())
        return 0 if result else 1


async def _state(config: TelloConfig, count: int) -> int:
    async with Tello.from_config(config) as tello:
        if not await tello.enable():
            LOGGER.error("Drone did not enter command mode")
            return 1
        for _ in range(max(1, count)):
            print(await tello.read_state())
        return 0


async def _record(config: TelloConfig, output: Path, packets: int) -> int:
    output.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    async with Tello.from_config(config) as tello:
        if not await tello.enable():
            LOGGER.error("Drone did not enter command mode")
            return 1
        with output.open("wb") as stream:
            for _ in range(max(1, packets)):
                packet = await tello.read_video()
                stream.write(packet.payload)
                written += len(packet.payload)
    LOGGER.info("Wrote %d bytes of H.264 to %s", written, output)
    return 0


async def _first_frame(
    tello: Tello, pipeline: VideoPipeline, max_packets: int
) -> Optional[DecodedFrame]:
    """Feed video packets until the pipeline yields a frame or the packet limit is hit."""

    next_frame = asyncio.ensure_future(anext(pipeline.frames()))
    try:
        for _ in range(max(1, max_packets)):
            if next_frame.done():
                break
            await pipeline.feed(await tello.read_video())
        # the last packet fed may still be in the decoder
        await asyncio.wait({next_frame}, timeout=FRAME_SETTLE_SECONDS)
        if not next_frame.done():
            return None
        return next_frame.result()
    finally:
        if not next_frame.done():
            next_frame.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await next_frame


async def _snapshot(config: TelloConfig, output: Path, max_packets: int) -> int:
    async with Tello.from_config(config) as tello:
        if not await tello.enable():
            LOGGER.error("Drone did not enter command mode")
            return 1

        async with await VideoPipeline.spawn(config.video) as pipeline:
            frame = await _first_frame(tello, pipeline, max_packets)

    if frame is None:
        LOGGER.error("No frame decoded after %d packets", max_packets)
        return 1

    frame.save(output)
    LOGGER.info("Saved %dx%d frame to %s", frame.width, frame.height, output)
    return 0


async def _monitor(config: TelloConfig) -> int:
    reporter = StatusReporter()
    server: Optional[StatusServer] = None
    if config.status.enabled:
        server = StatusServer(reporter, config.status.host, config.status.port)
        await server.start()

    try:
        async with Tello.from_config(config) as tello:
            result = await tello.enable()
            await reporter.update("command", bool(result), result.outcome.value)
            while True:
                try:
                    snapshot = await tello.read_state()
                except TelloError as exc:
                    await reporter.update("telemetry", False, str(exc))
                    await asyncio.sleep(MONITOR_ERROR_BACKOFF_SECONDS)
                    continue
                await reporter.record_snapshot(snapshot)
                await reporter.update("telemetry", True, f"battery {snapshot.bat}%")
    finally:
        if server is not None:
            await server.stop()


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(
        "DEBUG" if args.verbose else config.logging.level,
        log_path=config.logging.path,
        log_network=config.logging.log_network,
        log_traffic=config.logging.log_traffic,
    )

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    try:
        if args.command == "send":
            return asyncio.run(_send(config, args.words))
        if args.command == "state":
            return asyncio.run(_state(config, args.count))
        if args.command == "record":
            return asyncio.run(_record(config, args.output, args.packets))
        if args.command == "snapshot":
            return asyncio.run(_snapshot(config, args.output, args.max_packets))
        if args.command == "monitor":
            return asyncio.run(_monitor(config))
    except KeyboardInterrupt:
        return 130
    except TelloError as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        return 1

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
