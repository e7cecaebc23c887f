"""Tests del receptor MQTT con el cliente paho simulado."""

import threading
import time
from types import SimpleNamespace
from unittest.mock import MagicMock, call, patch

import pytest

from taspromto.core.domain import MetricIdentity, MetricKind
from taspromto.mqtt.receiver import (
    FORGET_AFTER_SECONDS,
    KEEPALIVE_SECONDS,
    MQTTReceiver,
    PING_AFTER_SECONDS,
    RECONNECT_MAX_DELAY,
    RECONNECT_MIN_DELAY,
)
from taspromto.pipelines.topics import SUBSCRIPTIONS


def _message(topic, payload):
    return SimpleNamespace(topic=topic, payload=payload)


def _reason(failure=False):
    return SimpleNamespace(is_failure=failure)


@pytest.fixture
def receiver(router):
    return MQTTReceiver(router, broker_host="broker.local", username="user", password="secret")


@pytest.fixture
def mqtt_client():
    return MagicMock()


# =============================================================================
# CONEXIÓN
# =============================================================================

class TestConnection:

    def test_start_configures_client(self, receiver, mqtt_client):
        def connect(host, port, keepalive):
            receiver._on_connect(mqtt_client, None, {}, _reason())

        mqtt_client.connect_async.side_effect = connect
        with patch.object(MQTTReceiver, "_create_client", return_value=mqtt_client):
            assert receiver.start() is True

        mqtt_client.username_pw_set.assert_called_once_with("user", "secret")
        mqtt_client.reconnect_delay_set.assert_called_once_with(RECONNECT_MIN_DELAY, RECONNECT_MAX_DELAY)
        mqtt_client.connect_async.assert_called_once_with("broker.local", 1883, keepalive=KEEPALIVE_SECONDS)
        mqtt_client.loop_start.assert_called_once()
        assert receiver.health_check()["healthy"] is True
        receiver.stop()

    def test_unreachable_broker_keeps_retrying(self, receiver, mqtt_client, monkeypatch):
        monkeypatch.setattr("taspromto.mqtt.receiver.CONNECT_TIMEOUT_SECONDS", 0.2)
        with patch.object(MQTTReceiver, "_create_client", return_value=mqtt_client):
            assert receiver.start() is True

        assert receiver.is_running is True
        assert receiver.health_check()["healthy"] is False
        mqtt_client.loop_start.assert_called_once()
        mqtt_client.loop_stop.assert_not_called()
        receiver.stop()

    def test_start_fails_when_client_setup_raises(self, receiver, mqtt_client):
        mqtt_client.connect_async.side_effect = ValueError("invalid host")
        with patch.object(MQTTReceiver, "_create_client", return_value=mqtt_client):
            assert receiver.start() is False

    def test_subscribes_on_every_connect(self, receiver, mqtt_client):
        receiver._on_connect(mqtt_client, None, {}, _reason())
        receiver._on_disconnect(mqtt_client, None, {}, _reason(True))
        receiver._on_connect(mqtt_client, None, {}, _reason())

        subscribed = [c.args[0] for c in mqtt_client.subscribe.call_args_list]
        assert subscribed == list(SUBSCRIPTIONS) * 2
        assert receiver.stats["connects"] == 2
        assert receiver.stats["disconnects"] == 1

    def test_refused_connection_does_not_subscribe(self, receiver, mqtt_client):
        receiver._on_connect(mqtt_client, None, {}, _reason(True))
        mqtt_client.subscribe.assert_not_called()
        assert receiver.is_connected is False

    def test_stop(self, receiver, mqtt_client):
        receiver._client = mqtt_client
        receiver.stop()
        mqtt_client.loop_stop.assert_called_once()
        mqtt_client.disconnect.assert_called_once()
        assert receiver.is_running is False

    def test_stop_joins_ping_thread(self, receiver, mqtt_client):
        def connect(host, port, keepalive):
            receiver._on_connect(mqtt_client, None, {}, _reason())

        mqtt_client.connect_async.side_effect = connect
        with patch.object(MQTTReceiver, "_create_client", return_value=mqtt_client):
            receiver.start()
        thread = receiver._ping_thread
        assert thread.is_alive()

        receiver.stop()
        assert not thread.is_alive()


# =============================================================================
# MENSAJES
# =============================================================================

class TestMessages:

    def test_message_reaches_registry(self, receiver, mqtt_client, registry):
        receiver._on_message(mqtt_client, None, _message("tele/plug1/SENSOR", b'{"ENERGY":{"Power":42.5}}'))
        assert registry.snapshot()[MetricIdentity(MetricKind.POWER, "plug1")].value == 42.5
        mqtt_client.publish.assert_not_called()

    def test_online_lwt_requests_device_state(self, receiver, mqtt_client):
        receiver._on_message(mqtt_client, None, _message("tele/plug1/LWT", b"Online"))
        assert mqtt_client.publish.call_args_list == [
            call("cmnd/plug1/POWER", ""),
            call("cmnd/plug1/DeviceName", ""),
            call("cmnd/plug1/Status", "2"),
        ]

    def test_offline_lwt_publishes_nothing(self, receiver, mqtt_client, registry):
        receiver._on_message(mqtt_client, None, _message("tele/plug1/LWT", b"Offline"))
        mqtt_client.publish.assert_not_called()
        assert registry.snapshot()[MetricIdentity(MetricKind.ONLINE, "plug1")].value is False

    def test_malformed_message_does_not_raise(self, receiver, mqtt_client, stats):
        receiver._on_message(mqtt_client, None, _message("tele/plug1/SENSOR", b"\xff\xfe"))
        assert stats.malformed == 1


# =============================================================================
# PING DE DISPOSITIVOS
# =============================================================================

@pytest.fixture
def connected(receiver, mqtt_client):
    receiver._client = mqtt_client
    receiver._on_connect(mqtt_client, None, {}, _reason())
    mqtt_client.reset_mock()
    return receiver


class TestDevicePing:

    def test_only_tasmota_topics_are_tracked(self, connected, mqtt_client):
        connected._on_message(mqtt_client, None, _message("tele/plug1/STATE", b'{"POWER":"ON"}'))
        connected._on_message(mqtt_client, None, _message("rtl_433/host/events", b"{}"))
        assert "plug1" in connected._devices
        assert len(connected._devices) == 1

    def test_unnamed_device_is_pinged(self, connected, mqtt_client):
        connected._on_message(mqtt_client, None, _message("tele/plug1/STATE", b'{"POWER":"ON"}'))

        assert connected._ping_stale_devices(now=time.monotonic()) == ["plug1"]
        mqtt_client.publish.assert_called_once_with("cmnd/plug1/DeviceName", "")

    def test_named_fresh_device_is_not_pinged(self, connected, mqtt_client):
        connected._on_message(mqtt_client, None, _message("stat/plug1/RESULT", b'{"DeviceName":"Coffee"}'))

        assert connected._ping_stale_devices(now=time.monotonic()) == []
        mqtt_client.publish.assert_not_called()

    def test_silent_named_device_is_pinged(self, connected, mqtt_client):
        connected._on_message(mqtt_client, None, _message("stat/plug1/RESULT", b'{"DeviceName":"Coffee"}'))

        later = time.monotonic() + PING_AFTER_SECONDS + 1
        assert connected._ping_stale_devices(now=later) == ["plug1"]
        mqtt_client.publish.assert_called_once_with("cmnd/plug1/DeviceName", "")

    def test_long_silent_device_is_forgotten(self, connected, mqtt_client):
        connected._on_message(mqtt_client, None, _message("tele/plug1/STATE", b'{"POWER":"ON"}'))

        later = time.monotonic() + FORGET_AFTER_SECONDS + 1
        assert connected._ping_stale_devices(now=later) == []
        assert "plug1" not in connected._devices
        mqtt_client.publish.assert_not_called()

    def test_no_ping_while_disconnected(self, connected, mqtt_client):
        connected._on_message(mqtt_client, None, _message("tele/plug1/STATE", b'{"POWER":"ON"}'))
        connected._on_disconnect(mqtt_client, None, {}, _reason(True))

        assert connected._ping_stale_devices(now=time.monotonic()) == []
        mqtt_client.publish.assert_not_called()

    def test_ping_loop_sweeps_periodically(self, receiver, monkeypatch):
        swept = threading.Event()
        monkeypatch.setattr("taspromto.mqtt.receiver.PING_INTERVAL_SECONDS", 0.01)
        monkeypatch.setattr(receiver, "_ping_stale_devices", swept.set)

        receiver._start_ping_thread()
        try:
            assert swept.wait(timeout=2)
        finally:
            receiver.stop()
        assert receiver._ping_thread is None
