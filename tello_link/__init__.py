"""Command, telemetry and video client for Tello drones."""

from .errors import (
    BindUnavailable,
    MalformedTelemetry,
    ProcessUnavailable,
    ReceiveTimeout,
    TelloError,
    TransportClosed,
)
from .pipeline import DecodedFrame, FrameAssembler, VideoPipeline
from .session import (
    CommandOutcome,
    CommandResult,
    CommandSession,
    FlipDirection,
    MoveDirection,
)
from .state import TelemetrySnapshot, parse_state
from .tello import Tello
from .transport import Endpoint
from .video import VideoPacket

__all__ = [
    "BindUnavailable",
    "CommandOutcome",
    "CommandResult",
    "CommandSession",
    "DecodedFrame",
    "Endpoint",
    "FlipDirection",
    "FrameAssembler",
    "MalformedTelemetry",
    "MoveDirection",
    "ProcessUnavailable",
    "ReceiveTimeout",
    "TelemetrySnapshot",
    "Tello",
    "TelloError",
    "TransportClosed",
    "VideoPacket",
    "VideoPipeline",
    "parse_state",
]
