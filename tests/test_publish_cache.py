"""Tests for change-filtered publishing."""

import threading

import pytest

from gps_to_mqtt.logging_config import error_handler
from gps_to_mqtt.publish_cache import PublishCache

from tests.conftest import FakeSink


@pytest.fixture
def cache(sink):
    return PublishCache(sink)


class TestPublishCache:
    def test_first_value_published_retained(self, cache, sink):
        assert cache.publish_if_changed("/GOLF86/GPS/ALT", "545.4") is True

        assert sink.messages == [("/GOLF86/GPS/ALT", "545.4", 0, True)]
        assert cache.get("/GOLF86/GPS/ALT") == "545.4"

    def test_unchanged_value_not_republished(self, cache, sink):
        for _ in range(3):
            assert cache.publish_if_changed("/GOLF86/GPS/ALT", "545.4") is True

        assert len(sink.messages) == 1
        assert cache.skipped == 2

    def test_changed_value_published(self, cache, sink):
        cache.publish_if_changed("/GOLF86/GPS/ALT", "545.4")
        cache.publish_if_changed("/GOLF86/GPS/ALT", "546.0")
        cache.publish_if_changed("/GOLF86/GPS/ALT", "545.4")

        assert [payload for _, payload, _, _ in sink.messages] == ["545.4", "546.0", "545.4"]

    def test_topics_are_independent(self, cache, sink):
        cache.publish_if_changed("/GOLF86/GPS/SPD_KTS", "5.5")
        cache.publish_if_changed("/GOLF86/GPS/SPD_KPH", "5.5")

        assert len(sink.messages) == 2
        assert len(cache) == 2

    def test_qos_passed_through(self, cache, sink):
        cache.publish_if_changed("/GOLF86/GPS/CRS", "54.7", qos=1)
        assert sink.messages[0][2] == 1

    @pytest.mark.parametrize("topic,payload,qos", [
        ("", "1", 0),
        ("/GOLF86/GPS/QTY", "", 0),
        ("/GOLF86/GPS/QTY", "1", 3),
        ("/GOLF86/GPS/QTY", "1", -1),
    ])
    def test_invalid_input_rejected(self, cache, sink, topic, payload, qos):
        assert cache.publish_if_changed(topic, payload, qos=qos) is False

        assert sink.messages == []
        assert len(cache) == 0

    def test_failed_publish_leaves_cache_unchanged(self):
        sink = FakeSink(fail=True)
        cache = PublishCache(sink)

        assert cache.publish_if_changed("/GOLF86/GPS/QTY", "1") is False
        assert cache.get("/GOLF86/GPS/QTY") is None
        assert cache.failed == 1
        assert error_handler.get_error_stats() == {"publish": 1}

        # Broker back: the same value goes out
        sink.fail = False
        assert cache.publish_if_changed("/GOLF86/GPS/QTY", "1") is True
        assert sink.messages == [("/GOLF86/GPS/QTY", "1", 0, True)]

    def test_clear_forces_republish(self, cache, sink):
        cache.publish_if_changed("/GOLF86/GPS/QTY", "1")
        cache.clear()
        cache.publish_if_changed("/GOLF86/GPS/QTY", "1")

        assert len(sink.messages) == 2

    def test_concurrent_publishers_send_once(self, cache, sink):
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            cache.publish_if_changed("/GOLF86/GPS/TME", "12:35:19")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert len(sink.messages) == 1

    def test_stats(self, cache):
        cache.publish_if_changed("/GOLF86/GPS/QTY", "1")
        cache.publish_if_changed("/GOLF86/GPS/QTY", "1")

        assert cache.get_stats() == {"topics": 1, "published": 1, "skipped": 1, "failed": 0}
