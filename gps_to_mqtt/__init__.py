"""GPS to MQTT - Publishes NMEA-0183 data from a serial GPS receiver to MQTT."""

__version__ = "1.0.0"

from .config import Settings, load_settings
from .assembler import SentenceAssembler
from .nmea_decoder import NMEADecoder, DecodeError
from .topic_mapper import TopicMapper
from .publish_cache import PublishCache
from .mqtt_client import MQTTPublisher
from .serial_transport import SerialTransport, TransportError
from .supervisor import ConnectionSupervisor, ConnectionState

__all__ = [
    "Settings",
    "load_settings",
    "SentenceAssembler",
    "NMEADecoder",
    "DecodeError",
    "TopicMapper",
    "PublishCache",
    "MQTTPublisher",
    "SerialTransport",
    "TransportError",
    "ConnectionSupervisor",
    "ConnectionState",
]
