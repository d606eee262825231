"""Constants used across the tello-link package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "tello-link"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME
DEFAULT_LOG_PATH = Path.home() / ".local" / "state" / APP_NAME / f"{APP_NAME}.log"

DEFAULT_DRONE_HOST = "192.168.10.1"
DEFAULT_COMMAND_PORT = 8889
DEFAULT_COMMAND_BIND = "0.0.0.0:8889"
DEFAULT_STATE_BIND = "0.0.0.0:8890"
DEFAULT_VIDEO_BIND = "0.0.0.0:11111"

DEFAULT_COMMAND_TIMEOUT_SECONDS = 12.0
DEFAULT_CLOSE_TIMEOUT_SECONDS = 1.0
DEFAULT_STATE_TIMEOUT_SECONDS = 12.0
DEFAULT_VIDEO_TIMEOUT_SECONDS = 3.0

DEFAULT_FRAME_WIDTH = 960
DEFAULT_FRAME_HEIGHT = 720
DEFAULT_FRAMERATE = 30
BYTES_PER_PIXEL = 3  # rgb24

DEFAULT_DECODER = "ffmpeg"
DEFAULT_READ_CHUNK_BYTES = 65536
DEFAULT_QUEUE_SIZE = 512

VIDEO_HEADER_BYTES = 2
