"""MQTT client for publishing telemetry with connection management."""

import asyncio
import logging
import threading
from typing import Any, Optional
import structlog
import paho.mqtt.client as mqtt

from .config import Settings
from .logging_config import MQTT_CONNECTION_STATUS

logger = structlog.get_logger(__name__)


class MQTTPublishError(RuntimeError):
    """The broker connection refused or dropped a publish."""


class MQTTPublisher:
    """Managed paho-mqtt client with automatic reconnection.

    paho runs the network loop in its own thread and reconnects on its own
    after the initial connection succeeds; ``publish`` only queues the
    message and never blocks on the network.
    """

    def __init__(self, settings: Settings):
        """
        Initialize MQTT publisher.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self._client: Optional[mqtt.Client] = None
        self._running = False
        self._connected = False
        self._connect_reply = threading.Event()
        self._connect_failure: Optional[str] = None
        self.messages_sent = 0
        self.send_errors = 0

    async def start(self) -> None:
        """
        Connect to the broker and start the network loop.

        Raises:
            ConnectionError: If the broker cannot be reached or refuses us
        """
        if self._running:
            logger.warning("MQTT publisher already running")
            return

        self._client = self._create_client()

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._connect)

        self._running = True

        logger.info("MQTT publisher started",
                    broker=self.settings.mqtt_url)

    async def stop(self) -> None:
        """Stop the network loop and disconnect gracefully."""
        if not self._running:
            return

        self._running = False

        if self._client:
            try:
                self._client.disconnect()
                self._client.loop_stop()
            except Exception as e:
                logger.error("Error disconnecting from MQTT broker", error=str(e))
            finally:
                self._client = None

        self._connected = False
        MQTT_CONNECTION_STATUS.set(0)

        logger.info("MQTT publisher stopped")

    def publish(self, topic: str, payload: str, qos: int = 0, retain: bool = True) -> None:
        """
        Queue a message for the broker.

        Args:
            topic: MQTT topic
            payload: Message payload
            qos: Quality of service level
            retain: Ask the broker to retain the message

        Raises:
            MQTTPublishError: If the message could not be queued
        """
        if self._client is None:
            self.send_errors += 1
            raise MQTTPublishError("MQTT publisher not started")

        info = self._client.publish(topic, payload, qos=qos, retain=retain)

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self.send_errors += 1
            raise MQTTPublishError(
                f"Publish to {topic} failed: {mqtt.error_string(info.rc)}"
            )

        self.messages_sent += 1

    def _create_client(self) -> mqtt.Client:
        """Create and configure the paho client."""
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.settings.mqtt_client_id,
            protocol=mqtt.MQTTv311,
        )

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.enable_logger(logging.getLogger(__name__))
        client.reconnect_delay_set(min_delay=1, max_delay=30)

        if self.settings.mqtt_username:
            client.username_pw_set(
                self.settings.mqtt_username,
                self.settings.mqtt_password
            )

        return client

    def _connect(self) -> None:
        """Blocking connect; runs in an executor thread."""
        self._connect_reply.clear()
        self._connect_failure = None

        logger.info("Connecting to MQTT broker",
                    broker=self.settings.mqtt_url)

        try:
            self._client.connect(
                self.settings.mqtt_host,
                self.settings.mqtt_port,
                keepalive=self.settings.mqtt_keepalive
            )
        except OSError as e:
            raise ConnectionError(
                f"Unable to connect to {self.settings.mqtt_url}: {e}"
            ) from e

        self._client.loop_start()

        if not self._connect_reply.wait(self.settings.mqtt_connect_timeout):
            self._abandon_connection()
            raise ConnectionError(
                f"Timed out waiting for {self.settings.mqtt_url} to accept the connection"
            )

        if self._connect_failure is not None:
            self._abandon_connection()
            raise ConnectionError(
                f"Broker {self.settings.mqtt_url} refused the connection: {self._connect_failure}"
            )

    def _abandon_connection(self) -> None:
        """Close the socket and network thread of a handshake that failed."""
        try:
            self._client.disconnect()
        finally:
            self._client.loop_stop()

    def _on_connect(self, client: mqtt.Client, userdata: Any, flags: Any,
                    reason_code: Any, properties: Any = None) -> None:
        if reason_code.is_failure:
            self._connected = False
            self._connect_failure = str(reason_code)
            MQTT_CONNECTION_STATUS.set(0)
            logger.error("MQTT connection refused", reason=str(reason_code))
        else:
            self._connected = True
            MQTT_CONNECTION_STATUS.set(1)
            logger.info("Connected to MQTT broker",
                        broker=self.settings.mqtt_url)
        self._connect_reply.set()

    def _on_disconnect(self, client: mqtt.Client, userdata: Any, flags: Any,
                       reason_code: Any, properties: Any = None) -> None:
        self._connected = False
        MQTT_CONNECTION_STATUS.set(0)
        if self._running:
            logger.warning("Disconnected from MQTT broker - reconnecting",
                           reason=str(reason_code))

    def is_connected(self) -> bool:
        """Check if connected to the MQTT broker."""
        return self._connected

    def get_stats(self) -> dict:
        """Get publisher statistics."""
        return {
            "connected": self._connected,
            "messages_sent": self.messages_sent,
            "send_errors": self.send_errors,
            "error_rate": self.send_errors / max(1, self.messages_sent + self.send_errors),
        }
