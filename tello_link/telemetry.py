"""Telemetry listener receiving state datagrams from the drone."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from . import constants
from .errors import ReceiveTimeout
from .state import TelemetrySnapshot, parse_state
from .transport import DatagramOpener, Endpoint, LazyEndpoint, open_datagram_endpoint

LOGGER = logging.getLogger(__name__)


class TelemetryListener:
    """Waits for the next state datagram sent by the command peer."""

    def __init__(
        self,
        peer: Endpoint,
        bind: Endpoint = Endpoint.parse(constants.DEFAULT_STATE_BIND),
        *,
        timeout: float = constants.DEFAULT_STATE_TIMEOUT_SECONDS,
        strict: bool = False,
        opener: DatagramOpener = open_datagram_endpoint,
    ) -> None:
        self._peer = peer
        self._timeout = timeout
        self._strict = strict
        self._endpoint = LazyEndpoint("telemetry", bind, opener=opener)
        self._last: Optional[TelemetrySnapshot] = None

    @property
    def peer(self) -> Endpoint:
        return self._peer

    @property
    def last_snapshot(self) -> Optional[TelemetrySnapshot]:
        """Most recent snapshot returned by :meth:`read_state`, if any."""
        return self._last

    @property
    def is_bound(self) -> bool:
        return self._endpoint.is_bound

    async def read_state(self, timeout: Optional[float] = None) -> TelemetrySnapshot:
        """Wait for and parse the next telemetry datagram.

        Binds the telemetry socket on first use.

        Raises:
            BindUnavailable: If the telemetry port cannot be bound.
            ReceiveTimeout: If no datagram from the drone arrived in time.
            TransportClosed: If the listener was closed.
            MalformedTelemetry: Only in strict mode, for an unparsable value.
        """

        budget = self._timeout if timeout is None else timeout
        endpoint = await self._endpoint.get()

        try:
            async with asyncio.timeout(budget):
                while True:
                    datagram = await endpoint.receive()
                    if datagram.address == self._peer:
                        break
                    LOGGER.debug("Ignoring telemetry from %s", datagram.address)
        except TimeoutError as exc:
            raise ReceiveTimeout(
                f"No telemetry from {self._peer} within {budget:.1f}s"
            ) from exc

        text = datagram.data.decode("utf-8", errors="replace")
        snapshot = parse_state(text, strict=self._strict)
        self._last = snapshot
        return snapshot

    def close(self) -> None:
        self._endpoint.close()
