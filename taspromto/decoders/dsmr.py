"""Decoder para lectores P1 (DSMR) que publican un topic por campo.

  <device>/power_delivered_l1        kW  → power_watts (W)
  <device>/energy_delivered_tariff1  kWh → power_total_low_kwh
  <device>/energy_delivered_tariff2  kWh → power_total_high_kwh
  <device>/gas_delivered             m3  → gas_total_m3
  <device>/water                     m3  → water_total_m3
"""

from __future__ import annotations

from typing import List

from ..core.domain import MetricKind, Reading, Topic
from .base import parse_number

# leaf → (kind, factor de escala)
DSMR_FIELDS = {
    "power_delivered_l1": (MetricKind.POWER, 1000.0),
    "energy_delivered_tariff1": (MetricKind.ENERGY_TOTAL_LOW, 1.0),
    "energy_delivered_tariff2": (MetricKind.ENERGY_TOTAL_HIGH, 1.0),
    "gas_delivered": (MetricKind.GAS_TOTAL, 1.0),
    "water": (MetricKind.WATER_TOTAL, 1.0),
}


def decode_dsmr(topic: Topic, payload: bytes) -> List[Reading]:
    field = DSMR_FIELDS.get(topic.leaf)
    if field is None:
        return []
    kind, scale = field
    value = parse_number(payload)
    if scale != 1.0:
        value = round(value * scale, 6)
    return [Reading(kind, topic.device, value)]
