"""Shared fixtures and fakes for the GPS to MQTT tests."""

import asyncio
from typing import List, Optional, Sequence, Union

import pytest
from pydantic_settings import SettingsConfigDict

from gps_to_mqtt.config import Settings
from gps_to_mqtt.logging_config import error_handler
from gps_to_mqtt.mqtt_client import MQTTPublishError


VTG_SENTENCE = "$GNVTG,054.7,T,034.4,M,005.5,N,010.2,K*48"
GGA_SENTENCE = "$GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47"
RMC_SENTENCE = "$GPRMC,123519,A,4807.038,N,01131.000,E,022.4,084.4,230394,003.1,W*6A"


class FakeSink:
    """Records publishes; can be switched into a failing broker."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: List[tuple] = []
        self.started = False

    def publish(self, topic: str, payload: str, qos: int = 0, retain: bool = True) -> None:
        if self.fail:
            raise MQTTPublishError("broker unavailable")
        self.messages.append((topic, payload, qos, retain))

    @property
    def published(self) -> dict:
        return {topic: payload for topic, payload, _, _ in self.messages}

    # Publisher interface used by the bridge
    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    def is_connected(self) -> bool:
        return self.started

    def get_stats(self) -> dict:
        return {"messages_sent": len(self.messages)}


ScriptItem = Union[bytes, Exception]


class FakeTransport:
    """Serial transport that plays back a script of lines and errors.

    When the script runs out the shutdown event is set, so a supervisor
    reading from it stops on its own.
    """

    def __init__(self,
                 script: Sequence[ScriptItem] = (),
                 open_error: Optional[Exception] = None):
        self.script = list(script)
        self.open_error = open_error
        self.shutdown: Optional[asyncio.Event] = None
        self.written: List[bytes] = []
        self.opened = False
        self.closed = False

    async def open(self) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    async def read_line(self, timeout: float) -> bytes:
        await asyncio.sleep(0)
        if not self.script:
            if self.shutdown is not None:
                self.shutdown.set()
            raise asyncio.TimeoutError()

        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def write(self, data: bytes) -> None:
        self.written.append(data)

    async def close(self) -> None:
        self.closed = True


class FakeTransportFactory:
    """Hands out one prepared transport per open attempt."""

    def __init__(self, transports: Sequence[FakeTransport], shutdown: asyncio.Event):
        self.transports = list(transports)
        self.shutdown = shutdown
        self.created: List[FakeTransport] = []

    def __call__(self, settings: Settings) -> FakeTransport:
        transport = self.transports.pop(0)
        transport.shutdown = self.shutdown
        self.created.append(transport)
        return transport


class IsolatedSettings(Settings):
    """Settings that never read .env or TOML files."""

    model_config = SettingsConfigDict(env_file=None, toml_file=())


def make_settings(**overrides) -> Settings:
    """Settings for tests: fast timeouts, no .env or TOML files."""
    values = {
        "port_name": "/dev/ttyTEST0",
        "serial_read_timeout": 0.1,
        "serial_reconnect_delay": 0.0,
        "serial_long_reconnect_delay": 0.0,
        "mqtt_base_topic": "/GOLF86/GPS/",
        "mqtt_connect_timeout": 0.5,
    }
    values.update(overrides)
    return IsolatedSettings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture(autouse=True)
def reset_error_stats():
    error_handler.reset_stats()
    yield
    error_handler.reset_stats()
