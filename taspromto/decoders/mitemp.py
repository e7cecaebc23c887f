"""Decoder para sensores Xiaomi BLE reenviados por un gateway Tasmota.

El gateway publica un objeto por sensor en tele/<gateway>/SENSOR:

    "MJ_HT_V1-1D5B3A": {"Temperature": 16.2, "Humidity": 61.0, "Battery": 100}
    "LYWSD03-52680f":  {"Temperature": 21.4, "Humidity": 48.2, "DewPoint": 10.0}

La identidad es el sufijo MAC (6 dígitos hex, en mayúsculas); el prefijo
del fabricante es fijo por modelo.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from pydantic import Field

from ..core.domain import MetricKind, Namespace, Reading, Topic
from .base import Malformed, load_json_object, validate
from .tasmota import TasmotaModel

logger = logging.getLogger(__name__)

MITEMP_KEY = re.compile(r"^(?P<model>MJ_HT_V1|LYWSD03|ATC)-?(?P<suffix>.*)$")
MAC_SUFFIX = re.compile(r"^[0-9A-Fa-f]{6}$")

VENDOR_PREFIX = {
    "MJ_HT_V1": "58:2D:34",
    "LYWSD03": "A4:C1:38",
    "ATC": "A4:C1:38",
}


class MiTempPayload(TasmotaModel):
    temperature: Optional[float] = Field(default=None, alias="Temperature")
    humidity: Optional[float] = Field(default=None, alias="Humidity")
    dew_point: Optional[float] = Field(default=None, alias="DewPoint")
    battery: Optional[float] = Field(default=None, alias="Battery")


def format_mac(prefix: str, suffix: str) -> str:
    """58:2D:34 + 1D5B3A → 58:2D:34:1D:5B:3A"""
    suffix = suffix.upper()
    return ":".join([prefix] + [suffix[i:i + 2] for i in range(0, 6, 2)])


def decode_mitemp(topic: Topic, payload: bytes) -> List[Reading]:
    """Un sensor inválido se descarta sin perder el resto del mensaje.

    Solo es Malformed si ningún sensor del payload se pudo decodificar.
    """
    data = load_json_object(payload)
    readings = []
    failures: List[Malformed] = []
    for key, fields in data.items():
        match = MITEMP_KEY.match(key)
        if match is None:
            continue
        suffix = match.group("suffix")
        if not MAC_SUFFIX.match(suffix):
            logger.warning("[MITEMP] Invalid mac suffix key=%s topic=%s", key, topic.raw)
            continue
        suffix = suffix.upper()
        try:
            sensor = validate(MiTempPayload, fields)
        except Malformed as e:
            logger.warning("[MITEMP] Invalid sensor key=%s topic=%s: %s", key, topic.raw, e)
            failures.append(e)
            continue
        labels = (("mac", format_mac(VENDOR_PREFIX[match.group("model")], suffix)),)

        for kind, value in (
            (MetricKind.TEMPERATURE, sensor.temperature),
            (MetricKind.HUMIDITY, sensor.humidity),
            (MetricKind.DEW_POINT, sensor.dew_point),
            (MetricKind.BATTERY, sensor.battery),
        ):
            if value is None:
                continue
            readings.append(
                Reading(kind, suffix, value, namespace=Namespace.MITEMP, labels=labels)
            )
    if failures and not readings:
        raise failures[0]
    return readings
