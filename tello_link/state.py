"""Telemetry snapshot model and parser.

The drone broadcasts its state as a single line of ``key:value`` pairs
separated by ``;``, for example::

    pitch:0;roll:0;yaw:-45;vgx:0;vgy:0;vgz:0;templ:63;temph:65;tof:10;h:0;
    bat:92;baro:584.55;time:0;agx:-3.00;agy:1.00;agz:-999.00;

Fields missing from a datagram keep the defaults the drone reports at
startup, which is why several defaults are not zero.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict

from .errors import MalformedTelemetry

LOGGER = logging.getLogger(__name__)

BATTERY_MIN = -128
BATTERY_MAX = 127


@dataclass(frozen=True, slots=True)
class TelemetrySnapshot:
    """One parsed telemetry datagram."""

    pitch: int = 0
    roll: int = 0
    yaw: int = -45
    vgx: int = 0
    vgy: int = 0
    vgz: int = 0
    templ: int = 0
    temph: int = 0
    tof: int = 0
    h: int = 0
    bat: int = 92
    baro: float = 584.55
    time: float = 0.0
    agx: float = 0.0
    agy: float = 0.0
    agz: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _parse_battery(value: str) -> int:
    parsed = int(value)
    if not BATTERY_MIN <= parsed <= BATTERY_MAX:
        raise ValueError(f"battery value {parsed} out of range")
    return parsed


_PARSERS: Dict[str, Callable[[str], Any]] = {
    **{
        name: int
        for name in ("pitch", "roll", "yaw", "vgx", "vgy", "vgz", "templ", "temph", "tof", "h")
    },
    "bat": _parse_battery,
    **{name: float for name in ("baro", "time", "agx", "agy", "agz")},
}


def parse_state(text: str, *, strict: bool = False) -> TelemetrySnapshot:
    """Parse a telemetry payload into a :class:`TelemetrySnapshot`.

    Empty segments and unknown keys are skipped. A known key whose
    value fails to parse keeps its default; with ``strict`` the failure is
    raised as :class:`MalformedTelemetry` instead.
    """

    values: Dict[str, Any] = {}
    for segment in text.strip().split(";"):
        if not segment:
            continue
        key, _, raw = segment.partition(":")
        key = key.strip()
        parser = _PARSERS.get(key)
        if parser is None:
            continue
        raw = raw.strip()
        try:
            values[key] = parser(raw)
        except ValueError as exc:
            if strict:
                raise MalformedTelemetry(key, raw) from exc
            LOGGER.warning("Ignoring malformed telemetry value %s=%r", key, raw)

    return TelemetrySnapshot(**values)
