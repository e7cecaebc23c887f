"""Router de ingesta: topic MQTT → decoders → nombres → registro.

Cada mensaje se procesa de forma independiente. Un payload mal formado
solo afecta a la familia de decoder que lo rechazó: el resto de familias
del mismo mensaje (tele/<device>/SENSOR alimenta varias) sigue adelante.
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional, Tuple

from ..core.domain import Reading, Topic
from ..decoders import DecoderFamily, Malformed, decode
from ..metrics.registry import MetricRegistry
from .name_resolver import NameResolver
from .router_stats import IngestStats
from .topics import match_topic

logger = logging.getLogger(__name__)

STATS_LOG_EVERY = 100


class IngestRouter:
    """Aplica cada mensaje MQTT al registro de métricas."""

    def __init__(
        self,
        registry: MetricRegistry,
        resolver: NameResolver,
        stats: Optional[IngestStats] = None,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._stats = stats if stats is not None else IngestStats()

    @property
    def registry(self) -> MetricRegistry:
        return self._registry

    @property
    def stats(self) -> IngestStats:
        return self._stats

    def handle(self, topic: str, payload: bytes, timestamp: Optional[float] = None) -> int:
        """Procesa un mensaje y devuelve cuántas métricas se actualizaron.

        Nunca lanza: los errores se registran en las estadísticas y en el log.
        """
        ts = timestamp if timestamp is not None else time.time()
        self._stats.record_received(ts)

        matched = match_topic(topic)
        if matched is None:
            self._stats.record_unroutable()
            logger.debug("[INGEST] Unroutable topic=%s", topic)
            return 0
        parsed, families = matched

        try:
            readings, failures = self._decode_all(families, parsed, payload)
            for reading in readings:
                self._apply(reading, ts)
        except Exception as e:
            self._stats.record_failed()
            logger.exception("[INGEST] Processing error topic=%s: %s", topic, e)
            return 0

        if failures:
            self._stats.record_malformed(family.value for family, _ in failures)
            family, error = failures[0]
            logger.warning(
                "[INGEST] Malformed payload family=%s topic=%s: %s",
                family.value, topic, error,
            )
        else:
            self._stats.record_processed()

        if self._stats.received % STATS_LOG_EVERY == 0:
            logger.info("[INGEST] %s", self._stats)
        return len(readings)

    def _decode_all(
        self,
        families: Tuple[DecoderFamily, ...],
        parsed: Topic,
        payload: bytes,
    ) -> Tuple[List[Reading], List[Tuple[DecoderFamily, Malformed]]]:
        readings: List[Reading] = []
        failures: List[Tuple[DecoderFamily, Malformed]] = []
        for family in families:
            try:
                readings.extend(decode(family, parsed, payload))
            except Malformed as e:
                failures.append((family, e))
        return readings, failures

    def _apply(self, reading: Reading, ts: float) -> None:
        labels = reading.labels
        if reading.namespace is not None:
            name = self._resolver.resolve(reading.namespace, reading.device)
            labels = labels + (("name", name),)
        self._registry.update(reading.identity, reading.value, ts, labels)
