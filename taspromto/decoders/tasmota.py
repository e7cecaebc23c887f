"""Decoders para dispositivos Tasmota.

Topics:
  tele/<device>/STATE     → estado de relés
  tele/<device>/SENSOR    → ENERGY, sensores CO2, OBIS (SML), PMS5003
  tele/<device>/LWT       → Online / Offline
  stat/<device>/RESULT    → estado de relés, DeviceName
  stat/<device>/POWER[n]  → estado de un relé en texto plano
  stat/<device>/STATUS    → Status.DeviceName
  stat/<device>/STATUS2   → StatusFWR.Version
"""

from __future__ import annotations

import logging
import re
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..core.domain import MetricKind, Reading, Topic
from .base import (
    Malformed,
    PhysicalRange,
    load_json_object,
    parse_text,
    validate,
)

logger = logging.getLogger(__name__)

POWER_KEY = re.compile(r"^POWER([1-8])?$")
FIRMWARE_VERSION = re.compile(r"^(\d+\.\d+)")

# MH-Z19B y SCD30 miden hasta 5000/10000 ppm; por debajo de 1 ppm el sensor
# todavía se está calentando y reporta 0.
CO2_RANGE = PhysicalRange(min_value=0.0, max_value=10000.0)
CO2_WARMUP_PPM = 1.0

ChannelValue = Optional[Union[float, List[float]]]


class TasmotaModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EnergyPayload(TasmotaModel):
    """Objeto ENERGY de tele/<device>/SENSOR.

    Los medidores multicanal reportan listas: "Power": [12, 0]
    """

    power: ChannelValue = Field(default=None, alias="Power")
    today: ChannelValue = Field(default=None, alias="Today")
    yesterday: ChannelValue = Field(default=None, alias="Yesterday")
    total: ChannelValue = Field(default=None, alias="Total")


class Co2Payload(TasmotaModel):
    carbon_dioxide: float = Field(alias="CarbonDioxide")


class ObisPayload(TasmotaModel):
    """Objeto OBIS de un lector P1/SML con Tasmota.

    Power es la potencia neta: positiva al importar, negativa al exportar.
    """

    power: Optional[float] = Field(default=None, alias="Power")
    total: Optional[float] = Field(default=None, alias="Total")
    total_high: Optional[float] = Field(default=None, alias="Total_high")
    total_low: Optional[float] = Field(default=None, alias="Total_low")
    gas_total: Optional[float] = Field(default=None, alias="Gas_total")


class Pms5003Payload(TasmotaModel):
    """Objeto PMS5003.

    "PMS5003":{"CF1":6,"CF2.5":8,"CF10":8,"PM1":6,"PM2.5":8,"PM10":8,
               "PB0.3":0,"PB0.5":0,"PB1":0,"PB2.5":0,"PB5":0,"PB10":0}
    """

    cf1: Optional[float] = Field(default=None, alias="CF1", ge=0)
    cf2_5: Optional[float] = Field(default=None, alias="CF2.5", ge=0)
    cf10: Optional[float] = Field(default=None, alias="CF10", ge=0)
    pm1: Optional[float] = Field(default=None, alias="PM1", ge=0)
    pm2_5: Optional[float] = Field(default=None, alias="PM2.5", ge=0)
    pm10: Optional[float] = Field(default=None, alias="PM10", ge=0)
    pb0_3: Optional[float] = Field(default=None, alias="PB0.3", ge=0)
    pb0_5: Optional[float] = Field(default=None, alias="PB0.5", ge=0)
    pb1: Optional[float] = Field(default=None, alias="PB1", ge=0)
    pb2_5: Optional[float] = Field(default=None, alias="PB2.5", ge=0)
    pb5: Optional[float] = Field(default=None, alias="PB5", ge=0)
    pb10: Optional[float] = Field(default=None, alias="PB10", ge=0)


# (kind, size bucket, attribute)
PARTICLE_FIELDS = (
    (MetricKind.PARTICLE_MASS, "1", "pm1"),
    (MetricKind.PARTICLE_MASS, "2.5", "pm2_5"),
    (MetricKind.PARTICLE_MASS, "10", "pm10"),
    (MetricKind.PARTICLE_MASS_CF1, "1", "cf1"),
    (MetricKind.PARTICLE_MASS_CF1, "2.5", "cf2_5"),
    (MetricKind.PARTICLE_MASS_CF1, "10", "cf10"),
    (MetricKind.PARTICLE_COUNT, "0.3", "pb0_3"),
    (MetricKind.PARTICLE_COUNT, "0.5", "pb0_5"),
    (MetricKind.PARTICLE_COUNT, "1", "pb1"),
    (MetricKind.PARTICLE_COUNT, "2.5", "pb2_5"),
    (MetricKind.PARTICLE_COUNT, "5", "pb5"),
    (MetricKind.PARTICLE_COUNT, "10", "pb10"),
)


class StatusPayload(TasmotaModel):
    device_name: Optional[str] = Field(default=None, alias="DeviceName")


class FirmwarePayload(TasmotaModel):
    version: Optional[str] = Field(default=None, alias="Version")


class DeviceInfoPayload(TasmotaModel):
    device_name: Optional[str] = Field(default=None, alias="DeviceName")
    status: Optional[StatusPayload] = Field(default=None, alias="Status")
    firmware: Optional[FirmwarePayload] = Field(default=None, alias="StatusFWR")


def _switch_value(raw: Any) -> Optional[bool]:
    if isinstance(raw, str):
        state = raw.strip().upper()
        if state == "ON":
            return True
        if state == "OFF":
            return False
    return None


def _channel_readings(kind: MetricKind, device: str, value: ChannelValue) -> List[Reading]:
    if value is None:
        return []
    if isinstance(value, list):
        return [
            Reading(kind, device, float(v), sub_label=str(channel))
            for channel, v in enumerate(value, start=1)
        ]
    return [Reading(kind, device, float(value))]


def decode_switch(topic: Topic, payload: bytes) -> List[Reading]:
    """Estado on/off por relé. POWER equivale a POWER1."""
    if topic.leaf.startswith("POWER"):
        match = POWER_KEY.match(topic.leaf)
        if match is None:
            return []
        state = _switch_value(parse_text(payload))
        if state is None:
            raise Malformed(f"unknown relay state {payload[:20]!r}")
        return [Reading(MetricKind.SWITCH_STATE, topic.device, state, sub_label=match.group(1) or "1")]

    data = load_json_object(payload)
    readings = []
    for key, raw in data.items():
        match = POWER_KEY.match(key)
        if match is None:
            continue
        state = _switch_value(raw)
        if state is None:
            logger.debug("[TASMOTA] Ignoring relay state %s=%r device=%s", key, raw, topic.device)
            continue
        readings.append(
            Reading(MetricKind.SWITCH_STATE, topic.device, state, sub_label=match.group(1) or "1")
        )
    return readings


def decode_device_info(topic: Topic, payload: bytes) -> List[Reading]:
    """DeviceName y versión de firmware."""
    info = validate(DeviceInfoPayload, load_json_object(payload))
    readings = []

    name = info.device_name
    if name is None and info.status is not None:
        name = info.status.device_name
    if name:
        readings.append(Reading(MetricKind.DEVICE_INFO, topic.device, True, labels=(("name", name),)))

    if info.firmware is not None and info.firmware.version:
        firmware = info.firmware.version
        match = FIRMWARE_VERSION.match(firmware)
        version = match.group(1) if match else ""
        readings.append(
            Reading(
                MetricKind.FIRMWARE,
                topic.device,
                True,
                labels=(("firmware", firmware), ("version", version)),
            )
        )
    return readings


def decode_availability(topic: Topic, payload: bytes) -> List[Reading]:
    """Last will: Online / Offline."""
    state = parse_text(payload)
    if state == "Online":
        return [Reading(MetricKind.ONLINE, topic.device, True)]
    if state == "Offline":
        return [Reading(MetricKind.ONLINE, topic.device, False)]
    raise Malformed(f"unknown LWT payload {state[:20]!r}")


def decode_energy(topic: Topic, payload: bytes) -> List[Reading]:
    """Potencia instantánea y energía acumulada (hoy, ayer, total)."""
    data = load_json_object(payload)
    if "ENERGY" not in data:
        return []
    energy = validate(EnergyPayload, data["ENERGY"])

    readings = []
    readings.extend(_channel_readings(MetricKind.POWER, topic.device, energy.power))
    readings.extend(_channel_readings(MetricKind.ENERGY_TODAY, topic.device, energy.today))
    readings.extend(_channel_readings(MetricKind.ENERGY_YESTERDAY, topic.device, energy.yesterday))
    readings.extend(_channel_readings(MetricKind.ENERGY_TOTAL, topic.device, energy.total))
    return readings


def decode_co2(topic: Topic, payload: bytes) -> List[Reading]:
    """Concentración de CO2 de cada sensor con campo CarbonDioxide.

    Un sensor inválido o fuera de rango se descarta con un warning; el
    mensaje solo es Malformed si ningún sensor dio una lectura.
    """
    data = load_json_object(payload)
    readings = []
    failures: List[Malformed] = []
    for sensor, fields in data.items():
        if not isinstance(fields, dict) or "CarbonDioxide" not in fields:
            continue
        try:
            co2 = validate(Co2Payload, fields).carbon_dioxide
            if CO2_RANGE.violates(co2):
                raise Malformed(f"{sensor} CarbonDioxide={co2} ppm outside plausible range")
        except Malformed as e:
            logger.warning("[TASMOTA] Invalid CO2 sensor=%s device=%s: %s", sensor, topic.device, e)
            failures.append(e)
            continue
        if co2 <= CO2_WARMUP_PPM:
            logger.debug("[TASMOTA] CO2 sensor warming up sensor=%s device=%s", sensor, topic.device)
            continue
        readings.append(Reading(MetricKind.CO2, topic.device, co2, sub_label=sensor))
    if failures and not readings:
        raise failures[0]
    return readings


def decode_smart_meter(topic: Topic, payload: bytes) -> List[Reading]:
    """Lector P1 vía Tasmota SML (objeto OBIS)."""
    data = load_json_object(payload)
    if "OBIS" not in data:
        return []
    obis = validate(ObisPayload, data["OBIS"])

    fields = (
        (MetricKind.POWER, obis.power),
        (MetricKind.ENERGY_TOTAL, obis.total),
        (MetricKind.ENERGY_TOTAL_HIGH, obis.total_high),
        (MetricKind.ENERGY_TOTAL_LOW, obis.total_low),
        (MetricKind.GAS_TOTAL, obis.gas_total),
    )
    return [Reading(kind, topic.device, value) for kind, value in fields if value is not None]


def decode_particle(topic: Topic, payload: bytes) -> List[Reading]:
    """Concentración de partículas por tamaño (PMS5003)."""
    data = load_json_object(payload)
    if "PMS5003" not in data:
        return []
    pms = validate(Pms5003Payload, data["PMS5003"])

    readings = []
    for kind, size, attr in PARTICLE_FIELDS:
        value = getattr(pms, attr)
        if value is not None:
            readings.append(Reading(kind, topic.device, value, sub_label=size))
    return readings
