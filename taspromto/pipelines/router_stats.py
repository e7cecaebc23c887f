"""Estadísticas del router de ingesta.

Lleva dos vistas de los mismos contadores: atributos simples para
/health y logs, y contadores Prometheus para el propio /metrics.
"""

from __future__ import annotations

import threading
from typing import Iterable, Optional

from prometheus_client import CollectorRegistry, Counter


class IngestStats:
    """Contadores de mensajes procesados por el router."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry(auto_describe=True)
        self.received = 0
        self.processed = 0
        self.malformed = 0
        self.unroutable = 0
        self.failed = 0
        self.last_message_at: float = 0
        self._lock = threading.Lock()

        self._messages = Counter(
            "taspromto_messages_total",
            "MQTT messages handled by the ingestion router",
            ["status"],  # processed, malformed, unroutable, error
            registry=self.registry,
        )
        self._decode_failures = Counter(
            "taspromto_decode_failures_total",
            "Payloads rejected by a decoder family",
            ["family"],
            registry=self.registry,
        )

    def record_received(self, at: float) -> None:
        with self._lock:
            self.received += 1
            self.last_message_at = at

    def record_processed(self) -> None:
        with self._lock:
            self.processed += 1
        self._messages.labels(status="processed").inc()

    def record_malformed(self, families: Iterable[str]) -> None:
        with self._lock:
            self.malformed += 1
        self._messages.labels(status="malformed").inc()
        for family in families:
            self._decode_failures.labels(family=family).inc()

    def record_unroutable(self) -> None:
        with self._lock:
            self.unroutable += 1
        self._messages.labels(status="unroutable").inc()

    def record_failed(self) -> None:
        with self._lock:
            self.failed += 1
        self._messages.labels(status="error").inc()

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} processed={self.processed} "
            f"malformed={self.malformed} unroutable={self.unroutable} failed={self.failed}"
        )

    def to_dict(self) -> dict:
        return {
            "received": self.received,
            "processed": self.processed,
            "malformed": self.malformed,
            "unroutable": self.unroutable,
            "failed": self.failed,
            "last_message_at": self.last_message_at,
        }
