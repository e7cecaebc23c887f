"""Receptor MQTT.

Usa paho-mqtt para recibir los mensajes de Tasmota, rtl_433, RFLink y
DSMR y los entrega al IngestRouter. El loop de red de paho corre en su
propio hilo y reconecta solo, también cuando el broker no está
disponible al arrancar; este módulo re-suscribe en cada conexión y
dispara el descubrimiento de dispositivos Tasmota.

Un segundo hilo revisa cada minuto los dispositivos Tasmota vistos:
  - sin mensajes en 10 min, o sin DeviceName conocido → cmnd/<device>/DeviceName
  - sin mensajes en 15 min → se olvidan
"""

from __future__ import annotations

import logging
import threading
import time
from typing import AbstractSet, Dict, Iterable, List, Optional

import paho.mqtt.client as mqtt

from ..core.domain import MetricKind
from ..pipelines.router import IngestRouter
from ..pipelines.topics import SUBSCRIPTIONS

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 5
RECONNECT_MIN_DELAY = 1
RECONNECT_MAX_DELAY = 30
CONNECT_TIMEOUT_SECONDS = 5.0

PING_INTERVAL_SECONDS = 60.0
PING_AFTER_SECONDS = 10 * 60.0
FORGET_AFTER_SECONDS = 15 * 60.0

TASMOTA_PREFIXES = ("tele", "stat")

# Comandos que hacen que un Tasmota recién conectado publique su estado
# de relés, su nombre y su versión de firmware.
DISCOVERY_COMMANDS = (
    ("POWER", ""),
    ("DeviceName", ""),
    ("Status", "2"),
)


def tasmota_device(topic: str) -> Optional[str]:
    """Dispositivo de un topic tele/<device>/<leaf> o stat/<device>/<leaf>."""
    parts = topic.split("/")
    if len(parts) != 3 or parts[0] not in TASMOTA_PREFIXES or not parts[1]:
        return None
    return parts[1]


class DeviceTracker:
    """Última vez (reloj monotónico) que se vio cada dispositivo Tasmota."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_seen: Dict[str, float] = {}

    def seen(self, device: str, at: float) -> None:
        with self._lock:
            self._last_seen[device] = at

    def due_for_ping(self, now: float, named: AbstractSet[str]) -> List[str]:
        """Olvida los dispositivos caducados y devuelve los que hay que pingear."""
        with self._lock:
            for device, last_seen in list(self._last_seen.items()):
                if now - last_seen > FORGET_AFTER_SECONDS:
                    del self._last_seen[device]
                    logger.info("[MQTT] Forgetting silent device=%s", device)
            return sorted(
                device
                for device, last_seen in self._last_seen.items()
                if now - last_seen > PING_AFTER_SECONDS or device not in named
            )

    def __contains__(self, device: object) -> bool:
        with self._lock:
            return device in self._last_seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_seen)


class MQTTReceiver:
    """Receptor MQTT que alimenta el router de ingesta."""

    def __init__(
        self,
        router: IngestRouter,
        broker_host: str,
        broker_port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "taspromto",
        subscriptions: Iterable[str] = SUBSCRIPTIONS,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.username = username
        self.password = password
        self.client_id = client_id
        self.subscriptions = tuple(subscriptions)

        self._router = router
        self._client: Optional[mqtt.Client] = None
        self._running = False
        self._connected = False
        self._connects = 0
        self._disconnects = 0

        self._devices = DeviceTracker()
        self._stop_event = threading.Event()
        self._ping_thread: Optional[threading.Thread] = None

    def _create_client(self) -> mqtt.Client:
        return mqtt.Client(
            client_id=self.client_id,
            protocol=mqtt.MQTTv311,
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        )

    def start(self) -> bool:
        """Arranca el loop de red y el hilo de ping.

        Si el broker no responde a tiempo se sigue reintentando en segundo
        plano. False solo si el cliente no se pudo configurar.
        """
        try:
            self._client = self._create_client()
            self._client.on_connect = self._on_connect
            self._client.on_disconnect = self._on_disconnect
            self._client.on_message = self._on_message
            self._client.reconnect_delay_set(RECONNECT_MIN_DELAY, RECONNECT_MAX_DELAY)

            if self.username:
                self._client.username_pw_set(self.username, self.password)

            logger.info("[MQTT] Connecting to %s:%d client_id=%s", self.broker_host, self.broker_port, self.client_id)

            self._client.connect_async(self.broker_host, self.broker_port, keepalive=KEEPALIVE_SECONDS)
            self._client.loop_start()
            self._running = True
            self._start_ping_thread()

            deadline = time.monotonic() + CONNECT_TIMEOUT_SECONDS
            while not self._connected and time.monotonic() < deadline:
                time.sleep(0.1)

            if self._connected:
                logger.info("[MQTT] Started successfully")
                return True
            logger.warning("[MQTT] Broker not reachable yet, retrying in background")
            return True

        except Exception as e:
            logger.exception("[MQTT] Start failed: %s", e)
            return False

    def stop(self) -> None:
        """Detiene el receptor."""
        self._running = False
        self._stop_event.set()
        if self._ping_thread is not None:
            self._ping_thread.join(timeout=5)
            self._ping_thread = None

        if self._client:
            try:
                self._client.loop_stop()
                self._client.disconnect()
            except Exception as e:
                logger.warning("[MQTT] Error stopping: %s", e)

        logger.info("[MQTT] Stopped. %s", self._router.stats)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            self._connected = False
            logger.error("[MQTT] Connection failed: rc=%s", reason_code)
            return

        self._connected = True
        self._connects += 1
        logger.info("[MQTT] Connected to broker")
        for topic in self.subscriptions:
            client.subscribe(topic)
        logger.info("[MQTT] Subscribed to %d topics", len(self.subscriptions))

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self._connected = False
        self._disconnects += 1
        logger.warning("[MQTT] Disconnected (rc=%s)", reason_code)

    def _on_message(self, client, userdata, msg):
        self._router.handle(msg.topic, msg.payload)
        seen = tasmota_device(msg.topic)
        if seen is not None:
            self._devices.seen(seen, time.monotonic())
        device = self._announced_online(msg.topic, msg.payload)
        if device is not None:
            self._request_device_state(client, device)

    @staticmethod
    def _announced_online(topic: str, payload: bytes) -> Optional[str]:
        """Nombre del dispositivo si el mensaje es un LWT `Online` de Tasmota."""
        parts = topic.split("/")
        if len(parts) != 3 or parts[0] != "tele" or parts[2] != "LWT":
            return None
        if payload.strip() != b"Online":
            return None
        return parts[1]

    def _request_device_state(self, client, device: str) -> None:
        logger.debug("[MQTT] Requesting state device=%s", device)
        for command, payload in DISCOVERY_COMMANDS:
            client.publish(f"cmnd/{device}/{command}", payload)

    def _start_ping_thread(self) -> None:
        self._stop_event.clear()
        self._ping_thread = threading.Thread(target=self._ping_loop, name="taspromto-ping", daemon=True)
        self._ping_thread.start()

    def _ping_loop(self) -> None:
        while not self._stop_event.wait(PING_INTERVAL_SECONDS):
            try:
                self._ping_stale_devices()
            except Exception as e:
                logger.exception("[MQTT] Ping sweep failed: %s", e)

    def _named_devices(self) -> AbstractSet[str]:
        return {
            identity.device
            for identity in self._router.registry.snapshot()
            if identity.kind is MetricKind.DEVICE_INFO
        }

    def _ping_stale_devices(self, now: Optional[float] = None) -> List[str]:
        """Pide DeviceName a los dispositivos silenciosos o sin nombre."""
        now = now if now is not None else time.monotonic()
        due = self._devices.due_for_ping(now, self._named_devices())
        if not due or self._client is None or not self._connected:
            return []
        for device in due:
            logger.debug("[MQTT] Pinging device=%s", device)
            self._client.publish(f"cmnd/{device}/DeviceName", "")
        return due

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def stats(self) -> dict:
        return {
            "running": self._running,
            "connected": self._connected,
            "broker": f"{self.broker_host}:{self.broker_port}",
            "connects": self._connects,
            "disconnects": self._disconnects,
            "tracked_devices": len(self._devices),
            **self._router.stats.to_dict(),
        }

    def health_check(self) -> dict:
        return {
            "healthy": self._running and self._connected,
            "running": self._running,
            "connected": self._connected,
            "messages_processed": self._router.stats.processed,
            "messages_malformed": self._router.stats.malformed,
        }
