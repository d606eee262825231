"""Configuration loader for tello-link."""

from __future__ import annotations

import logging
from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import constants
from .transport import Endpoint

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class DroneConfig:
    host: str = constants.DEFAULT_DRONE_HOST
    command_port: int = constants.DEFAULT_COMMAND_PORT
    command_bind: Endpoint = Endpoint.parse(constants.DEFAULT_COMMAND_BIND)
    state_bind: Endpoint = Endpoint.parse(constants.DEFAULT_STATE_BIND)
    video_bind: Endpoint = Endpoint.parse(constants.DEFAULT_VIDEO_BIND)

    @property
    def command_peer(self) -> Endpoint:
        return Endpoint(self.host, self.command_port)


@dataclass(slots=True)
class CommandConfig:
    timeout_seconds: float = constants.DEFAULT_COMMAND_TIMEOUT_SECONDS
    close_timeout_seconds: float = constants.DEFAULT_CLOSE_TIMEOUT_SECONDS


@dataclass(slots=True)
class TelemetryConfig:
    timeout_seconds: float = constants.DEFAULT_STATE_TIMEOUT_SECONDS
    strict: bool = False  # raise on malformed values instead of keeping the default


@dataclass(slots=True)
class VideoConfig:
    timeout_seconds: float = constants.DEFAULT_VIDEO_TIMEOUT_SECONDS
    width: int = constants.DEFAULT_FRAME_WIDTH
    height: int = constants.DEFAULT_FRAME_HEIGHT
    framerate: int = constants.DEFAULT_FRAMERATE
    decoder: str = constants.DEFAULT_DECODER
    read_chunk_bytes: int = constants.DEFAULT_READ_CHUNK_BYTES
    queue_size: int = constants.DEFAULT_QUEUE_SIZE

    @property
    def frame_size(self) -> int:
        return self.width * self.height * constants.BYTES_PER_PIXEL


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    log_network: bool = False
    log_traffic: bool = False


@dataclass(slots=True)
class StatusConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 0


@dataclass(slots=True)
class TelloConfig:
    drone: DroneConfig
    commands: CommandConfig
    telemetry: TelemetryConfig
    video: VideoConfig
    logging: LoggingConfig
    status: StatusConfig
    raw: ConfigParser
    path: Path


def _parse_endpoint(parser: ConfigParser, option: str, default: str) -> Endpoint:
    value = parser.get("drone", option, fallback=default)
    try:
        return Endpoint.parse(value)
    except ValueError:
        LOGGER.warning("Invalid [drone] %s=%r, using %s", option, value, default)
        return Endpoint.parse(default)


def _get_float(parser: ConfigParser, section: str, option: str, default: float) -> float:
    try:
        return parser.getfloat(section, option, fallback=default)
    except ValueError:
        LOGGER.warning("Invalid [%s] %s, using %s", section, option, default)
        return default


def _get_int(parser: ConfigParser, section: str, option: str, default: int) -> int:
    try:
        return parser.getint(section, option, fallback=default)
    except ValueError:
        LOGGER.warning("Invalid [%s] %s, using %s", section, option, default)
        return default


def load_config(path: Optional[Path] = None) -> TelloConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "drone": {
                "host": constants.DEFAULT_DRONE_HOST,
                "command_port": str(constants.DEFAULT_COMMAND_PORT),
                "command_bind": constants.DEFAULT_COMMAND_BIND,
                "state_bind": constants.DEFAULT_STATE_BIND,
                "video_bind": constants.DEFAULT_VIDEO_BIND,
            },
            "commands": {
                "timeout_seconds": str(constants.DEFAULT_COMMAND_TIMEOUT_SECONDS),
                "close_timeout_seconds": str(constants.DEFAULT_CLOSE_TIMEOUT_SECONDS),
            },
            "telemetry": {
                "timeout_seconds": str(constants.DEFAULT_STATE_TIMEOUT_SECONDS),
                "strict": "false",
            },
            "video": {
                "timeout_seconds": str(constants.DEFAULT_VIDEO_TIMEOUT_SECONDS),
                "width": str(constants.DEFAULT_FRAME_WIDTH),
                "height": str(constants.DEFAULT_FRAME_HEIGHT),
                "framerate": str(constants.DEFAULT_FRAMERATE),
                "decoder": constants.DEFAULT_DECODER,
                "read_chunk_bytes": str(constants.DEFAULT_READ_CHUNK_BYTES),
                "queue_size": str(constants.DEFAULT_QUEUE_SIZE),
            },
            "logging": {
                "level": "INFO",
                "path": "",
                "log_network": "false",
                "log_traffic": "false",
            },
            "status": {
                "enabled": "false",
                "host": "127.0.0.1",
                "port": "0",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    drone_host_value = parser.get("drone", "host").strip()
    command_port_value = _get_int(
        parser, "drone", "command_port", constants.DEFAULT_COMMAND_PORT
    )

    if ":" in drone_host_value:
        host_part, port_part = drone_host_value.rsplit(":", 1)
        try:
            parsed_port = int(port_part)
        except ValueError:
            pass
        else:
            drone_host_value = host_part
            command_port_value = parsed_port
            parser.set("drone", "host", host_part)
            parser.set("drone", "command_port", str(parsed_port))

    drone = DroneConfig(
        host=drone_host_value,
        command_port=command_port_value,
        command_bind=_parse_endpoint(
            parser, "command_bind", constants.DEFAULT_COMMAND_BIND
        ),
        state_bind=_parse_endpoint(parser, "state_bind", constants.DEFAULT_STATE_BIND),
        video_bind=_parse_endpoint(parser, "video_bind", constants.DEFAULT_VIDEO_BIND),
    )

    commands = CommandConfig(
        timeout_seconds=max(
            0.1,
            _get_float(
                parser,
                "commands",
                "timeout_seconds",
                constants.DEFAULT_COMMAND_TIMEOUT_SECONDS,
            ),
        ),
        close_timeout_seconds=max(
            0.0,
            _get_float(
                parser,
                "commands",
                "close_timeout_seconds",
                constants.DEFAULT_CLOSE_TIMEOUT_SECONDS,
            ),
        ),
    )

    telemetry = TelemetryConfig(
        timeout_seconds=max(
            0.1,
            _get_float(
                parser,
                "telemetry",
                "timeout_seconds",
                constants.DEFAULT_STATE_TIMEOUT_SECONDS,
            ),
        ),
        strict=parser.getboolean("telemetry", "strict", fallback=False),
    )

    video_defaults = VideoConfig()

    video = VideoConfig(
        timeout_seconds=max(
            0.1,
            _get_float(
                parser, "video", "timeout_seconds", video_defaults.timeout_seconds
            ),
        ),
        width=max(1, _get_int(parser, "video", "width", video_defaults.width)),
        height=max(1, _get_int(parser, "video", "height", video_defaults.height)),
        framerate=max(1, _get_int(parser, "video", "framerate", video_defaults.framerate)),
        decoder=parser.get("video", "decoder", fallback=video_defaults.decoder).strip()
        or video_defaults.decoder,
        read_chunk_bytes=max(
            1024,
            _get_int(
                parser, "video", "read_chunk_bytes", video_defaults.read_chunk_bytes
            ),
        ),
        queue_size=max(
            1, _get_int(parser, "video", "queue_size", video_defaults.queue_size)
        ),
    )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
        log_traffic=parser.getboolean("logging", "log_traffic", fallback=False),
    )

    status = StatusConfig(
        enabled=parser.getboolean("status", "enabled", fallback=False),
        host=parser.get("status", "host", fallback="127.0.0.1"),
        port=_get_int(parser, "status", "port", 0),
    )

    return TelloConfig(
        drone=drone,
        commands=commands,
        telemetry=telemetry,
        video=video,
        logging=logging_config,
        status=status,
        raw=parser,
        path=config_path,
    )


def save_config(config: TelloConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
