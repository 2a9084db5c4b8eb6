"""Main entry point for the GPS to MQTT bridge."""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional
import structlog
from prometheus_client import start_http_server
from pydantic import ValidationError

from .config import Settings, load_settings
from .logging_config import (
    setup_logging, error_handler,
    MQTT_CONNECTION_STATUS,
)
from .assembler import SentenceAssembler
from .nmea_decoder import NMEADecoder
from .topic_mapper import TopicMapper
from .publish_cache import PublishCache
from .mqtt_client import MQTTPublisher
from .supervisor import ConnectionSupervisor
from .shutdown import QuitListener

logger = structlog.get_logger(__name__)


class GPSToMQTTBridge:
    """Main application class for the GPS to MQTT bridge."""

    def __init__(self, settings: Settings, publisher: Optional[MQTTPublisher] = None):
        """
        Initialize the bridge.

        Args:
            settings: Application settings
            publisher: MQTT publisher; one is created from settings if omitted
        """
        self.settings = settings
        self.decoder = NMEADecoder(verify_checksum=settings.nmea_verify_checksum)
        self.mapper = TopicMapper(settings)
        self.publisher = publisher or MQTTPublisher(settings)
        self.cache = PublishCache(self.publisher)
        self.assembler = SentenceAssembler(self.handle_sentence)
        self.supervisor: Optional[ConnectionSupervisor] = None
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._health_task: Optional[asyncio.Task] = None

    @property
    def shutdown_event(self) -> asyncio.Event:
        return self._shutdown_event

    async def start(self) -> None:
        """
        Connect to the broker and open the serial port.

        Raises:
            ConnectionError: If the MQTT broker is unreachable
            TransportError: If the serial port cannot be opened
        """
        logger.info("Starting GPS to MQTT bridge",
                    config=self.settings.get_summary())

        await self.publisher.start()

        self.supervisor = ConnectionSupervisor(
            self.settings,
            self.assembler,
            self._shutdown_event
        )
        await self.supervisor.open()

        self._running = True
        self._health_task = asyncio.create_task(self._monitor_health())

        logger.info("GPS to MQTT bridge started successfully")

    async def stop(self) -> None:
        """Stop the bridge gracefully."""
        logger.info("Stopping GPS to MQTT bridge...")

        self._running = False
        self._shutdown_event.set()

        if self._health_task:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
            self._health_task = None

        await self.publisher.stop()

        logger.info("GPS to MQTT bridge stopped")

    def request_shutdown(self) -> None:
        """Ask the bridge to stop; must be called on the event loop."""
        if not self._shutdown_event.is_set():
            logger.info("Shutdown requested")
            self._shutdown_event.set()

    def handle_sentence(self, text: str) -> None:
        """
        Decode one complete sentence and publish whatever changed.

        Args:
            text: Sentence produced by the assembler
        """
        decoded = self.decoder.decode(text)
        if decoded is None:
            return

        for topic, payload in self.mapper.convert(decoded):
            self.cache.publish_if_changed(topic, payload, qos=self.settings.mqtt_qos)

    async def _monitor_health(self) -> None:
        """Monitor application health and log statistics."""
        while self._running:
            try:
                MQTT_CONNECTION_STATUS.set(
                    1 if self.publisher.is_connected() else 0
                )

                stats = {
                    'serial': self.supervisor.get_stats() if self.supervisor else {},
                    'mqtt': self.publisher.get_stats(),
                    'cache': self.cache.get_stats(),
                    'decoder': {
                        'decoded': self.decoder.sentences_decoded,
                        'unknown': self.decoder.unknown_sentences,
                        'errors': self.decoder.decode_errors,
                    },
                    'errors': error_handler.get_error_stats(),
                }

                logger.info("Application statistics", **stats)

                await asyncio.sleep(self.settings.health_check_interval)

            except Exception as e:
                logger.error("Error in health monitor", error=str(e))
                await asyncio.sleep(10)

    async def run(self) -> None:
        """Run the bridge until shutdown."""
        try:
            await self.start()
            await self.supervisor.run()
        finally:
            await self.stop()


def setup_signal_handlers(app: GPSToMQTTBridge) -> None:
    """Set up signal handlers for graceful shutdown."""
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, app.request_shutdown)
        except NotImplementedError:
            # Not available on Windows event loops
            logger.debug("Signal handlers not supported", signal=sig.name)


def start_quit_listener(app: GPSToMQTTBridge) -> QuitListener:
    """Watch stdin for the quit command."""
    loop = asyncio.get_running_loop()

    listener = QuitListener(
        sys.stdin,
        lambda: loop.call_soon_threadsafe(app.request_shutdown)
    )
    listener.start()
    return listener


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="gps-to-mqtt",
        description="Publish NMEA-0183 data from a serial GPS receiver to MQTT"
    )
    parser.add_argument(
        "-c", "--config",
        help="TOML configuration file (replaces the default search paths)"
    )
    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    # Load settings
    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValidationError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    # Set up logging
    setup_logging(settings)

    # Start metrics server
    if settings.metrics_enabled:
        start_http_server(settings.metrics_port)
        logger.info("Prometheus metrics server started",
                    port=settings.metrics_port)

    # Create and run application
    app = GPSToMQTTBridge(settings)

    setup_signal_handlers(app)
    start_quit_listener(app)

    try:
        await app.run()
    except Exception as e:
        logger.error("Fatal error", error=str(e), exc_info=True)
        sys.exit(1)


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
