"""Logging configuration with structured logging support."""

import sys
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Callable, Dict
import structlog
from structlog.stdlib import LoggerFactory
from prometheus_client import Counter, Gauge, Info

from . import __version__
from .config import Settings


# Prometheus metrics
LINES_READ = Counter(
    'gps_serial_lines_read_total',
    'Total number of lines read from the serial port'
)

SENTENCES_ASSEMBLED = Counter(
    'gps_sentences_assembled_total',
    'Total number of complete NMEA sentences assembled'
)

SENTENCES_DECODED = Counter(
    'gps_sentences_decoded_total',
    'Total number of NMEA sentences successfully decoded',
    ['kind']
)

DECODE_ERRORS = Counter(
    'gps_decode_errors_total',
    'Total number of NMEA decode errors'
)

MQTT_PUBLISHED = Counter(
    'mqtt_messages_published_total',
    'Total number of messages published to MQTT'
)

MQTT_PUBLISH_SKIPPED = Counter(
    'mqtt_publish_skipped_total',
    'Total number of publishes skipped because the value was unchanged'
)

MQTT_PUBLISH_ERRORS = Counter(
    'mqtt_publish_errors_total',
    'Total number of errors publishing to MQTT'
)

SERIAL_RECONNECTS = Counter(
    'gps_serial_reconnects_total',
    'Total number of successful serial port reconnects'
)

SERIAL_CONNECTION_STATUS = Gauge(
    'gps_serial_connection_status',
    'Serial port connection status (1=open, 0=closed)'
)

MQTT_CONNECTION_STATUS = Gauge(
    'mqtt_connection_status',
    'MQTT broker connection status (1=connected, 0=disconnected)'
)

APP_INFO = Info(
    'gps_to_mqtt',
    'Application information'
)


APP_NAME = 'gps-to-mqtt'

# Rotated log files kept next to the active one
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3


def setup_logging(settings: Settings) -> None:
    """
    Configure structlog on top of stdlib logging.

    ``text`` output is meant for a person watching the console (the bridge
    is stopped by typing ``q``), so it is colourised when stdout is a
    terminal. ``json`` output is one object per line for log shippers.
    Every entry carries the application name and the serial port, so logs
    from several receivers on one host can be told apart.

    Args:
        settings: Application settings
    """
    level = getattr(logging, settings.log_level)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        make_app_context(settings),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            pad_event=40,
        ))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if settings.log_file:
        add_log_file(settings.log_file, level)

    APP_INFO.info({
        'version': __version__,
        'serial_port': settings.port_name,
        'mqtt_broker': settings.mqtt_url,
        'base_topic': settings.mqtt_base_topic,
    })


def add_log_file(log_file: str, level: int) -> None:
    """
    Copy log output to a size-rotated file.

    Entries are already rendered by structlog (timestamp and level
    included), so the file gets them unchanged. Failing to open the file
    is logged and otherwise ignored: telemetry keeps flowing without it.

    Args:
        log_file: Path of the active log file; parent directories are created
        level: Minimum stdlib logging level written to the file
    """
    try:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
    except OSError as e:
        structlog.get_logger(__name__).error("Cannot write log file",
                                             log_file=log_file,
                                             error=str(e))
        return

    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter("%(message)s"))
    logging.getLogger().addHandler(file_handler)


def make_app_context(settings: Settings) -> Callable[[Any, str, Dict[str, Any]], Dict[str, Any]]:
    """Build a processor stamping each entry with the app name and serial port."""
    port = settings.port_name

    def add_app_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault('app', APP_NAME)
        event_dict.setdefault('serial_port', port)
        return event_dict

    return add_app_context


class ErrorHandler:
    """Centralized error handling with metrics and logging."""

    def __init__(self):
        self.logger = structlog.get_logger(__name__)
        self.error_counts: Dict[str, int] = {}

    def _count(self, category: str) -> None:
        self.error_counts[category] = self.error_counts.get(category, 0) + 1

    def handle_decode_error(self, sentence: str, error: Exception) -> None:
        """Handle NMEA decode errors (too few fields, bad checksum)."""
        DECODE_ERRORS.inc()
        self._count('decode')

        self.logger.warning("NMEA decode error",
                            sentence=sentence,
                            error=str(error),
                            error_type=type(error).__name__)

    def handle_publish_error(self, topic: str, error: Exception) -> None:
        """Handle MQTT publish errors."""
        MQTT_PUBLISH_ERRORS.inc()
        self._count('publish')

        self.logger.error("MQTT publish error",
                          topic=topic,
                          error=str(error),
                          error_type=type(error).__name__)

    def handle_transport_error(self, port: str, error: Exception) -> None:
        """Handle serial transport errors."""
        SERIAL_CONNECTION_STATUS.set(0)
        self._count('transport')

        self.logger.error("Serial transport error",
                          port=port,
                          error=str(error),
                          error_type=type(error).__name__)

    def get_error_stats(self) -> Dict[str, int]:
        """Get error statistics."""
        return self.error_counts.copy()

    def reset_stats(self) -> None:
        """Reset error statistics."""
        self.error_counts.clear()


# Global error handler instance
error_handler = ErrorHandler()
