"""Change-filtered publishing: only send a topic's value when it differs."""

import threading
from typing import Dict, Optional, Protocol
import structlog

from .logging_config import MQTT_PUBLISHED, MQTT_PUBLISH_SKIPPED, error_handler

logger = structlog.get_logger(__name__)

VALID_QOS = (0, 1, 2)


class PublishSink(Protocol):
    """Anything that can publish a payload to a topic; raises on failure."""

    def publish(self, topic: str, payload: str, qos: int = 0, retain: bool = True) -> None:
        ...


class PublishCache:
    """Remembers the last payload published per topic and suppresses repeats.

    Values are published retained, so subscribers always see the latest
    value without the bus being flooded by a 10Hz receiver repeating it.
    The cache is only updated after a successful publish: a failed publish
    is retried the next time the same value comes in.
    """

    def __init__(self, sink: PublishSink):
        """
        Initialize the cache.

        Args:
            sink: Bus publisher used for changed values
        """
        self.sink = sink
        self._last_values: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.published = 0
        self.skipped = 0
        self.failed = 0

    def publish_if_changed(self, topic: str, payload: str, qos: int = 0) -> bool:
        """
        Publish a payload unless it equals the last one published on the topic.

        Args:
            topic: Full MQTT topic
            payload: Message payload
            qos: Quality of service level (0, 1 or 2)

        Returns:
            True if the value was published or was already current,
            False if the input was invalid or the publish failed
        """
        if not topic or not payload:
            logger.warning("Refusing to publish empty topic or payload",
                           topic=topic, payload=payload)
            return False

        if qos not in VALID_QOS:
            logger.warning("Refusing to publish with invalid QoS",
                           topic=topic, qos=qos)
            return False

        with self._lock:
            if self._last_values.get(topic) == payload:
                self.skipped += 1
                MQTT_PUBLISH_SKIPPED.inc()
                logger.debug("Skipping publish - value unchanged", topic=topic)
                return True

            try:
                self.sink.publish(topic, payload, qos=qos, retain=True)
            except Exception as e:
                self.failed += 1
                error_handler.handle_publish_error(topic, e)
                return False

            self._last_values[topic] = payload
            self.published += 1
            MQTT_PUBLISHED.inc()
            logger.debug("Published changed value", topic=topic, payload=payload)
            return True

    def get(self, topic: str) -> Optional[str]:
        """Last payload successfully published on a topic."""
        with self._lock:
            return self._last_values.get(topic)

    def clear(self) -> None:
        """Forget every cached value so the next values are republished."""
        with self._lock:
            self._last_values.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_values)

    def get_stats(self) -> dict:
        """Get cache statistics."""
        return {
            "topics": len(self),
            "published": self.published,
            "skipped": self.skipped,
            "failed": self.failed,
        }
