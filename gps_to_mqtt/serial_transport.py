"""Asynchronous serial transport for the GPS receiver."""

import asyncio
from typing import Optional
import structlog
import serial
import serial_asyncio

from .config import Settings

logger = structlog.get_logger(__name__)

# UBX-CFG-RATE: 100ms measurement rate (10Hz), navigation rate 1, GPS time
UBX_CFG_RATE_10HZ = bytes([
    0xB5, 0x62,  # Header
    0x06, 0x08,  # Class/ID
    0x06, 0x00,  # Payload length
    0x64, 0x00,  # Measurement rate (100ms)
    0x01, 0x00,  # Navigation rate
    0x01, 0x00,  # Time reference
    0x7A, 0x12,  # Checksum
])


class TransportError(IOError):
    """Serial I/O failed and the port has to be reopened."""


class SerialTransport:
    """Line-oriented serial port access on top of pyserial-asyncio.

    ``read_line`` distinguishes the three outcomes the supervisor cares
    about: a line (possibly empty bytes at end of stream), a timeout
    (``asyncio.TimeoutError``, harmless), and a real I/O failure
    (``TransportError``).
    """

    def __init__(self, settings: Settings):
        """
        Initialize serial transport.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self.port = settings.port_name
        self.baudrate = settings.baud_rate
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    @property
    def is_open(self) -> bool:
        """Check if the serial port is open."""
        return self._reader is not None

    async def open(self) -> None:
        """
        Open the serial port (8N1, no flow control).

        Raises:
            TransportError: If the port cannot be opened
        """
        if self.is_open:
            logger.warning("Serial port already open", port=self.port)
            return

        try:
            self._reader, self._writer = await serial_asyncio.open_serial_connection(
                url=self.port,
                baudrate=self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
            )
        except (OSError, ValueError) as e:
            raise TransportError(f"Failed to open {self.port}: {e}") from e

        logger.info("Serial port opened",
                    port=self.port,
                    baudrate=self.baudrate)

    async def read_line(self, timeout: float) -> bytes:
        """
        Read one newline-terminated line.

        Args:
            timeout: Seconds to wait for a complete line

        Returns:
            Raw line including its terminator, or ``b""`` at end of stream

        Raises:
            asyncio.TimeoutError: If no complete line arrived in time
            TransportError: On any other read failure
        """
        if self._reader is None:
            raise TransportError(f"Serial port {self.port} is not open")

        try:
            return await asyncio.wait_for(self._reader.readline(), timeout=timeout)
        except asyncio.TimeoutError:
            raise
        except (OSError, ValueError) as e:
            # readline raises ValueError when a line overruns the stream limit
            raise TransportError(f"Read from {self.port} failed: {e}") from e

    async def write(self, data: bytes) -> None:
        """
        Write raw bytes to the device.

        Raises:
            TransportError: If the port is closed or the write fails
        """
        if self._writer is None:
            raise TransportError(f"Serial port {self.port} is not open")

        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as e:
            raise TransportError(f"Write to {self.port} failed: {e}") from e

    async def close(self) -> None:
        """Close the serial port."""
        writer = self._writer
        self._reader = None
        self._writer = None

        if writer is None:
            return

        try:
            writer.close()
            await asyncio.wait_for(writer.wait_closed(), timeout=1.0)
        except asyncio.TimeoutError:
            logger.debug("Timeout waiting for serial close", port=self.port)
        except OSError as e:
            logger.debug("Error closing serial port", port=self.port, error=str(e))

        logger.info("Serial port closed", port=self.port)
