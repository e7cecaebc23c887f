"""Registro en memoria del último valor por métrica.

Escritores: el hilo de red de paho (router de ingesta).
Lectores: los scrapes de /metrics (threadpool de uvicorn).

Un solo lock protege el dict. Se mantiene solo lo justo: una asignación
en update() y una copia superficial en snapshot(); el render ocurre fuera
del lock. Los MetricValue son inmutables, así que un lector nunca ve una
entrada a medio escribir.

No hay borrado: una entrada vive hasta que el proceso termina aunque el
dispositivo deje de publicar. Prometheus aplica su propia política de
staleness cuando un valor deja de cambiar.
"""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import Dict, Mapping

from ..core.domain import MetricIdentity, MetricNumber, MetricValue
from ..core.domain.metric import LabelPairs


class MetricRegistry:
    """Store concurrente identity → último valor."""

    def __init__(self):
        self._entries: Dict[MetricIdentity, MetricValue] = {}
        self._lock = threading.Lock()

    def update(
        self,
        identity: MetricIdentity,
        value: MetricNumber,
        timestamp: float,
        labels: LabelPairs = (),
    ) -> None:
        """Inserta o reemplaza la entrada de `identity`. Gana la última escritura."""
        entry = MetricValue(value=value, timestamp=timestamp, labels=tuple(labels))
        with self._lock:
            self._entries[identity] = entry

    def snapshot(self) -> Mapping[MetricIdentity, MetricValue]:
        """Vista inmutable de todas las entradas en este instante."""
        with self._lock:
            entries = dict(self._entries)
        return MappingProxyType(entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
