"""Tabla de rutas topic → familias de decoders.

El orden importa: gana la primera ruta que coincide, así que las rutas
más específicas van primero. tele/<device>/SENSOR alimenta varias
familias porque Tasmota agrupa todos sus sensores en un solo mensaje.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Pattern, Tuple

from ..core.domain import Topic
from ..decoders import DecoderFamily


@dataclass(frozen=True)
class TopicRoute:
    pattern: Pattern[str]
    families: Tuple[DecoderFamily, ...]

    def match(self, raw: str) -> Optional[Topic]:
        m = self.pattern.match(raw)
        if m is None:
            return None
        groups = m.groupdict()
        path = tuple(groups["path"].split("/")) if groups.get("path") else ()
        return Topic(raw=raw, device=groups["device"], leaf=groups["leaf"], path=path)


def _route(pattern: str, *families: DecoderFamily) -> TopicRoute:
    return TopicRoute(re.compile(pattern), families)


ROUTES: Tuple[TopicRoute, ...] = (
    _route(r"^tele/(?P<device>[^/]+)/(?P<leaf>STATE)$", DecoderFamily.SWITCH),
    _route(
        r"^tele/(?P<device>[^/]+)/(?P<leaf>SENSOR)$",
        DecoderFamily.ENERGY,
        DecoderFamily.CO2,
        DecoderFamily.SMART_METER,
        DecoderFamily.PARTICLE,
        DecoderFamily.MITEMP,
    ),
    _route(r"^tele/(?P<device>[^/]+)/(?P<leaf>LWT)$", DecoderFamily.AVAILABILITY),
    _route(
        r"^stat/(?P<device>[^/]+)/(?P<leaf>RESULT)$",
        DecoderFamily.SWITCH,
        DecoderFamily.DEVICE_INFO,
    ),
    _route(r"^stat/(?P<device>[^/]+)/(?P<leaf>POWER\d*)$", DecoderFamily.SWITCH),
    _route(r"^stat/(?P<device>[^/]+)/(?P<leaf>STATUS2?)$", DecoderFamily.DEVICE_INFO),
    _route(r"^rtl_433/(?P<device>[^/]+)/(?P<leaf>events)$", DecoderFamily.RTL433_EVENT),
    _route(
        r"^rtl_433/(?P<device>[^/]+)/devices/(?P<path>.+)/(?P<leaf>[^/]+)$",
        DecoderFamily.RTL433_FIELD,
    ),
    _route(r"^(?P<device>[^/]+)/(?P<leaf>msg)$", DecoderFamily.RFLINK),
    _route(
        r"^(?P<device>[^/]+)/(?P<leaf>power_delivered_l1|energy_delivered_tariff[12]|gas_delivered|water)$",
        DecoderFamily.DSMR,
    ),
)

# Filtros de suscripción que cubren todas las rutas.
SUBSCRIPTIONS: Tuple[str, ...] = (
    "stat/+/+",
    "tele/+/+",
    "+/msg",
    "+/water",
    "+/gas_delivered",
    "+/energy_delivered_tariff1",
    "+/energy_delivered_tariff2",
    "+/power_delivered_l1",
    "rtl_433/+/events",
    "rtl_433/+/devices/#",
)


def match_topic(raw: str) -> Optional[Tuple[Topic, Tuple[DecoderFamily, ...]]]:
    """Primera ruta que coincide con `raw`, o None si el topic no es nuestro."""
    for route in ROUTES:
        topic = route.match(raw)
        if topic is not None:
            return topic, route.families
    return None
