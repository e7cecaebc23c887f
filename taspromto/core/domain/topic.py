"""Topic MQTT ya parseado por la tabla de rutas."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Topic:
    """Topic descompuesto.

    raw:    topic completo tal como llegó del broker
    device: segmento que identifica al dispositivo o gateway
    leaf:   último segmento (STATE, SENSOR, water, events, ...)
    path:   segmentos intermedios cuando el formato los tiene (rtl_433 devices)
    """

    raw: str
    device: str
    leaf: str
    path: Tuple[str, ...] = ()
