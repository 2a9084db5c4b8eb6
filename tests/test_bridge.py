"""End-to-end tests of the bridge: serial lines in, MQTT publishes out."""

import asyncio
from unittest.mock import patch

import pytest

from gps_to_mqtt.__main__ import GPSToMQTTBridge, main, parse_args
from gps_to_mqtt.serial_transport import TransportError

from tests.conftest import (
    GGA_SENTENCE,
    VTG_SENTENCE,
    FakeSink,
    FakeTransport,
    FakeTransportFactory,
)


@pytest.fixture
def bridge(settings, sink):
    return GPSToMQTTBridge(settings, publisher=sink)


class TestHandleSentence:
    def test_vtg_published(self, bridge, sink):
        bridge.handle_sentence(VTG_SENTENCE)

        assert sink.messages == [
            ("/GOLF86/GPS/CRS", "54.7", 0, True),
            ("/GOLF86/GPS/SPD_KTS", "5.5", 0, True),
            ("/GOLF86/GPS/SPD_KPH", "10.2", 0, True),
        ]

    def test_repeated_sentence_published_once(self, bridge, sink):
        bridge.handle_sentence(VTG_SENTENCE)
        bridge.handle_sentence(VTG_SENTENCE)

        assert len(sink.messages) == 3

    def test_only_changed_values_republished(self, bridge, sink):
        bridge.handle_sentence(VTG_SENTENCE)
        bridge.handle_sentence("$GNVTG,054.7,T,034.4,M,006.0,N,011.1,K*48")

        assert sink.messages[3:] == [
            ("/GOLF86/GPS/SPD_KTS", "6", 0, True),
            ("/GOLF86/GPS/SPD_KPH", "11.1", 0, True),
        ]

    def test_undecodable_sentences_publish_nothing(self, bridge, sink):
        bridge.handle_sentence("$GPZDA,201530.00,04,07,2002,00,00*60")
        bridge.handle_sentence("$GPGGA,1*00")

        assert sink.messages == []

    def test_assembled_lines(self, bridge, sink):
        bridge.assembler.feed("$GNVTG,054.7,T,034.4,M,")
        bridge.assembler.feed("005.5,N,010.2,K*48")

        assert sink.published["/GOLF86/GPS/CRS"] == "54.7"


class TestRun:
    @pytest.mark.asyncio
    async def test_serial_to_mqtt(self, settings, sink):
        bridge = GPSToMQTTBridge(settings, publisher=sink)
        factory = FakeTransportFactory(
            [
                FakeTransport([
                    (GGA_SENTENCE + "\r\n").encode(),
                    TransportError("device disconnected"),
                ]),
                FakeTransport([(VTG_SENTENCE + "\r\n").encode()]),
            ],
            bridge.shutdown_event,
        )

        with patch("gps_to_mqtt.supervisor.SerialTransport", factory):
            await asyncio.wait_for(bridge.run(), timeout=5)

        assert sink.published == {
            "/GOLF86/GPS/ALT": "545.4",
            "/GOLF86/GPS/QTY": "1",
            "/GOLF86/GPS/CRS": "54.7",
            "/GOLF86/GPS/SPD_KTS": "5.5",
            "/GOLF86/GPS/SPD_KPH": "10.2",
        }
        assert bridge.supervisor.reconnects == 1
        assert sink.started is False

    @pytest.mark.asyncio
    async def test_serial_open_failure_is_fatal(self, settings, sink):
        bridge = GPSToMQTTBridge(settings, publisher=sink)
        factory = FakeTransportFactory(
            [FakeTransport(open_error=TransportError("No such file or directory"))],
            bridge.shutdown_event,
        )

        with patch("gps_to_mqtt.supervisor.SerialTransport", factory):
            with pytest.raises(TransportError):
                await bridge.run()

        assert sink.started is False

    @pytest.mark.asyncio
    async def test_request_shutdown(self, bridge):
        bridge.request_shutdown()
        assert bridge.shutdown_event.is_set()


class TestMain:
    def test_parse_args(self):
        assert parse_args([]).config is None
        assert parse_args(["--config", "gps.toml"]).config == "gps.toml"

    @pytest.mark.asyncio
    async def test_missing_config_file_exits(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            await main(["--config", str(tmp_path / "missing.toml")])

        assert exc_info.value.code == 1

    @pytest.mark.asyncio
    async def test_invalid_config_exits(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("mqtt_qos = 7\n")

        with pytest.raises(SystemExit) as exc_info:
            await main(["--config", str(path)])

        assert exc_info.value.code == 1

    @pytest.mark.asyncio
    async def test_broker_unreachable_exits(self, tmp_path):
        path = tmp_path / "gps.toml"
        path.write_text("mqtt_port = 1\nmqtt_connect_timeout = 0.1\n")
        failing = FakeSink()

        async def refuse():
            raise ConnectionError("Connection refused")

        failing.start = refuse

        with patch("gps_to_mqtt.__main__.MQTTPublisher", return_value=failing), \
                patch("gps_to_mqtt.__main__.setup_logging"), \
                patch("gps_to_mqtt.__main__.start_quit_listener"):
            with pytest.raises(SystemExit) as exc_info:
                await main(["--config", str(path)])

        assert exc_info.value.code == 1
