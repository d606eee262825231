import asyncio
from pathlib import Path
from typing import Optional

import pytest

from tello_link import cli
from tello_link.pipeline import VideoPipeline
from tello_link.video import VideoPacket


class EchoDecoder:
    """Decoder that emits written bytes as output, like ``cat``."""

    def __init__(self) -> None:
        self.returncode: Optional[int] = None
        self._output: asyncio.Queue[Optional[bytes]] = asyncio.Queue()

    async def write(self, data: bytes, *, flush: bool = True) -> None:
        self._output.put_nowait(data)

    async def chunks(self):
        while (chunk := await self._output.get()) is not None:
            yield chunk

    async def wait(self) -> int:
        return 0

    async def terminate(self) -> None:
        self._output.put_nowait(None)


class FakeVideoSource:
    def __init__(self, *packets: bytes) -> None:
        self.packets = list(packets)
        self.reads = 0

    async def read_video(self, timeout: Optional[float] = None) -> VideoPacket:
        self.reads += 1
        return VideoPacket(self.packets.pop(0))


def test_parser_requires_subcommand():
    parser = cli.build_parser()

    with pytest.raises(SystemExit):
        parser.parse_args([])


def test_parser_accepts_send_words():
    args = cli.build_parser().parse_args(["send", "speed", "20"])

    assert args.command == "send"
    assert args.words == ["speed", "20"]


def test_parser_record_defaults():
    args = cli.build_parser().parse_args(["record", "out.h264"])

    assert args.output == Path("out.h264")
    assert args.packets == 1000


def test_show_config_prints_sections(tmp_path: Path, capsys, monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
    config_path = tmp_path / "tello-link.cfg"
    config_path.write_text("[drone]\nhost = 10.0.0.7\n", encoding="utf-8")

    exit_code = cli.main(["-c", str(config_path), "show-config"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "[drone]" in output
    assert "host = 10.0.0.7" in output
    assert "[video]" in output


@pytest.mark.asyncio
async def test_first_frame_completed_by_last_allowed_packet():
    source = FakeVideoSource(b"\x00\x00abc", b"\x00\x00def")
    pipeline = VideoPipeline(EchoDecoder(), width=2, height=1)

    frame = await cli._first_frame(source, pipeline, max_packets=2)
    await pipeline.close()

    assert frame is not None
    assert frame.data == b"abcdef"
    assert source.reads == 2


@pytest.mark.asyncio
async def test_first_frame_gives_up_after_packet_limit(monkeypatch):
    monkeypatch.setattr(cli, "FRAME_SETTLE_SECONDS", 0.01)
    source = FakeVideoSource(b"\x00\x00ab", b"\x00\x00cd", b"\x00\x00ef")
    pipeline = VideoPipeline(EchoDecoder(), width=2, height=1)

    frame = await cli._first_frame(source, pipeline, max_packets=2)
    await pipeline.close()

    assert frame is None
    assert source.reads == 2
