"""Serial connection supervision: reading, reconnecting and backoff."""

import asyncio
from enum import Enum
from typing import Callable, Optional
import structlog

from .assembler import SentenceAssembler
from .config import Settings
from .logging_config import (
    LINES_READ,
    SERIAL_CONNECTION_STATUS,
    SERIAL_RECONNECTS,
    error_handler,
)
from .serial_transport import UBX_CFG_RATE_10HZ, SerialTransport, TransportError

logger = structlog.get_logger(__name__)

# Pause after an empty read so a stream at EOF does not spin the loop
IDLE_PAUSE = 0.01

TransportFactory = Callable[[Settings], SerialTransport]


class ConnectionState(str, Enum):
    """Lifecycle of the serial connection."""
    DISCONNECTED = "disconnected"
    OPEN = "open"
    RECONNECTING = "reconnecting"


class ConnectionSupervisor:
    """Keeps the serial port open and feeds every line to the assembler.

    Once the initial open has succeeded, I/O errors never end the
    process: the port is closed and reopened after a short delay. Every
    failed reopen is counted, and after
    ``serial_max_consecutive_failures`` of them in a row the supervisor
    waits the long delay before trying again. All waits end early when
    the shutdown event is set.
    """

    def __init__(self,
                 settings: Settings,
                 assembler: SentenceAssembler,
                 shutdown: asyncio.Event,
                 transport_factory: Optional[TransportFactory] = None):
        """
        Initialize the supervisor.

        Args:
            settings: Application settings
            assembler: Receives every line read from the port
            shutdown: Set when the application should stop
            transport_factory: Builds a transport for each (re)open;
                defaults to :class:`SerialTransport`
        """
        self.settings = settings
        self.assembler = assembler
        self.shutdown = shutdown
        self._transport_factory = transport_factory or SerialTransport
        self.transport: Optional[SerialTransport] = None
        self.state = ConnectionState.DISCONNECTED
        self.failure_count = 0
        self.reconnects = 0
        self.long_backoffs = 0
        self.lines_read = 0

    async def open(self) -> None:
        """
        Open the port for the first time.

        Raises:
            TransportError: If the port cannot be opened
        """
        await self._open_transport()
        logger.info("Serial connection established",
                    port=self.settings.port_name,
                    baudrate=self.settings.baud_rate)

    async def run(self) -> None:
        """Read until the shutdown event is set, reconnecting on I/O errors."""
        if self.transport is None:
            await self.open()

        try:
            while not self.shutdown.is_set():
                try:
                    await self._read_loop()
                except OSError as e:
                    error_handler.handle_transport_error(self.settings.port_name, e)
                    await self._reconnect()
        finally:
            await self._close_transport()
            logger.info("Serial supervisor stopped", **self.get_stats())

    async def _read_loop(self) -> None:
        while not self.shutdown.is_set():
            try:
                raw = await self.transport.read_line(self.settings.serial_read_timeout)
            except asyncio.TimeoutError:
                continue

            if not raw:
                await self._sleep(IDLE_PAUSE)
                continue

            self.failure_count = 0
            self.lines_read += 1
            LINES_READ.inc()
            self.assembler.feed(raw.decode("ascii", errors="ignore").strip())

    async def _reconnect(self) -> None:
        self.state = ConnectionState.RECONNECTING
        await self._close_transport()

        while not self.shutdown.is_set():
            if await self._sleep(self.settings.serial_reconnect_delay):
                return

            try:
                await self._open_transport()
            except OSError as e:
                self.failure_count += 1
                logger.warning("Serial reconnect failed",
                               port=self.settings.port_name,
                               failures=self.failure_count,
                               error=str(e))

                if self.failure_count >= self.settings.serial_max_consecutive_failures:
                    logger.warning("Too many consecutive failures - backing off",
                                   port=self.settings.port_name,
                                   delay=self.settings.serial_long_reconnect_delay)
                    self.long_backoffs += 1
                    self.failure_count = 0
                    if await self._sleep(self.settings.serial_long_reconnect_delay):
                        return
                continue

            self.reconnects += 1
            SERIAL_RECONNECTS.inc()
            logger.info("Serial port reopened",
                        port=self.settings.port_name,
                        reconnects=self.reconnects)
            return

    async def _open_transport(self) -> None:
        transport = self._transport_factory(self.settings)
        await transport.open()

        self.transport = transport
        self.state = ConnectionState.OPEN
        self.failure_count = 0
        SERIAL_CONNECTION_STATUS.set(1)

        # Whatever was half-read belongs to the previous connection
        self.assembler.reset()

        if self.settings.set_gps_to_10hz:
            await self._set_measurement_rate()

    async def _set_measurement_rate(self) -> None:
        try:
            await self.transport.write(UBX_CFG_RATE_10HZ)
            logger.info("Sent 10Hz measurement rate command",
                        port=self.settings.port_name)
        except TransportError as e:
            logger.warning("Failed to send measurement rate command",
                           port=self.settings.port_name,
                           error=str(e))

    async def _close_transport(self) -> None:
        if self.transport is None:
            return

        transport = self.transport
        self.transport = None
        SERIAL_CONNECTION_STATUS.set(0)

        try:
            await transport.close()
        except OSError as e:
            logger.debug("Error closing serial transport", error=str(e))

    async def _sleep(self, delay: float) -> bool:
        """Wait ``delay`` seconds; True if shutdown was requested meanwhile."""
        try:
            await asyncio.wait_for(self.shutdown.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    def get_stats(self) -> dict:
        """Get supervisor statistics."""
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "reconnects": self.reconnects,
            "long_backoffs": self.long_backoffs,
            "lines_read": self.lines_read,
        }
