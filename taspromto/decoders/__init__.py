"""Payload decoders.

Cada familia de dispositivos tiene un decoder puro
`(Topic, payload) -> list[Reading]` que lanza `Malformed` si el payload
no tiene la forma esperada. El conjunto de familias es cerrado: la tabla
DECODERS es la única forma de despacho.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Callable, List, Mapping

from ..core.domain import Reading, Topic
from .base import Malformed
from .dsmr import decode_dsmr
from .mitemp import decode_mitemp
from .rf import decode_rflink, decode_rtl433_event, decode_rtl433_field
from .tasmota import (
    decode_availability,
    decode_co2,
    decode_device_info,
    decode_energy,
    decode_particle,
    decode_smart_meter,
    decode_switch,
)

Decoder = Callable[[Topic, bytes], List[Reading]]


class DecoderFamily(Enum):
    """Familia de dispositivos / formato de payload."""

    SWITCH = "switch"
    DEVICE_INFO = "device_info"
    AVAILABILITY = "availability"
    ENERGY = "energy"
    CO2 = "co2"
    SMART_METER = "smart_meter"
    DSMR = "dsmr"
    PARTICLE = "particle"
    MITEMP = "mitemp"
    RTL433_EVENT = "rtl433_event"
    RTL433_FIELD = "rtl433_field"
    RFLINK = "rflink"


DECODERS: Mapping[DecoderFamily, Decoder] = MappingProxyType({
    DecoderFamily.SWITCH: decode_switch,
    DecoderFamily.DEVICE_INFO: decode_device_info,
    DecoderFamily.AVAILABILITY: decode_availability,
    DecoderFamily.ENERGY: decode_energy,
    DecoderFamily.CO2: decode_co2,
    DecoderFamily.SMART_METER: decode_smart_meter,
    DecoderFamily.DSMR: decode_dsmr,
    DecoderFamily.PARTICLE: decode_particle,
    DecoderFamily.MITEMP: decode_mitemp,
    DecoderFamily.RTL433_EVENT: decode_rtl433_event,
    DecoderFamily.RTL433_FIELD: decode_rtl433_field,
    DecoderFamily.RFLINK: decode_rflink,
})


def decode(family: DecoderFamily, topic: Topic, payload: bytes) -> List[Reading]:
    """Ejecuta el decoder de `family`. Lanza Malformed."""
    return DECODERS[family](topic, payload)


__all__ = [
    "DECODERS",
    "Decoder",
    "DecoderFamily",
    "Malformed",
    "decode",
]
