"""Decoders para sensores de temperatura inalámbricos de 433 MHz.

Tres formatos:
- rtl_433 eventos JSON:   rtl_433/<host>/events
- rtl_433 por campo:      rtl_433/<host>/devices/<model>[/<channel>]/<id>/<field>
- RFLink en texto plano:  <gateway>/msg  "20;2D;Bresser;ID=7301;TEMP=00d3;HUM=45;BAT=OK;"

La clave del dispositivo es "model:id:channel", o "model:id" si el sensor
no tiene canal. Las dos formas nunca colisionan porque difieren en el
número de segmentos.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..core.domain import MetricKind, Namespace, Reading, Topic
from .base import Malformed, load_json_object, parse_number, parse_text, validate

RTL433_FIELDS = {
    "temperature_C": MetricKind.TEMPERATURE,
    "humidity": MetricKind.HUMIDITY,
    "battery_ok": MetricKind.BATTERY_OK,
}


class Rtl433Event(BaseModel):
    model_config = ConfigDict(extra="ignore")

    model: str
    id: Union[int, str]
    channel: Optional[Union[int, str]] = None
    temperature_C: Optional[float] = None
    temperature_F: Optional[float] = None
    humidity: Optional[float] = None
    battery_ok: Optional[float] = None


def rf_key(model: str, device_id: object, channel: Optional[object] = None) -> str:
    """Clave estable de un sensor RF: model:id[:channel]."""
    if channel is None or channel == "":
        return f"{model}:{device_id}"
    return f"{model}:{device_id}:{channel}"


def fahrenheit_to_celsius(value: float) -> float:
    return round((value - 32.0) * 5.0 / 9.0, 2)


def _rf_reading(kind: MetricKind, key: str, value: Union[float, bool]) -> Reading:
    return Reading(kind, key, value, namespace=Namespace.RF)


def decode_rtl433_event(topic: Topic, payload: bytes) -> List[Reading]:
    event = validate(Rtl433Event, load_json_object(payload))
    key = rf_key(event.model, event.id, event.channel)

    temperature = event.temperature_C
    if temperature is None and event.temperature_F is not None:
        temperature = fahrenheit_to_celsius(event.temperature_F)

    readings = []
    if temperature is not None:
        readings.append(_rf_reading(MetricKind.TEMPERATURE, key, temperature))
    if event.humidity is not None:
        readings.append(_rf_reading(MetricKind.HUMIDITY, key, event.humidity))
    if event.battery_ok is not None:
        readings.append(_rf_reading(MetricKind.BATTERY_OK, key, event.battery_ok >= 1))
    return readings


def decode_rtl433_field(topic: Topic, payload: bytes) -> List[Reading]:
    field = topic.leaf
    fahrenheit = field == "temperature_F"
    kind = MetricKind.TEMPERATURE if fahrenheit else RTL433_FIELDS.get(field)
    if kind is None:
        return []

    if len(topic.path) == 2:
        model, device_id = topic.path
        channel = None
    elif len(topic.path) == 3:
        model, channel, device_id = topic.path
    else:
        raise Malformed(f"unsupported rtl_433 device topic {topic.raw}")

    value = parse_number(payload)
    if fahrenheit:
        value = fahrenheit_to_celsius(value)
    if kind is MetricKind.BATTERY_OK:
        value = value >= 1
    return [_rf_reading(kind, rf_key(model, device_id, channel), value)]


def _rflink_temperature(raw: str) -> float:
    """TEMP en décimas de grado, hex; el bit 15 es el signo."""
    try:
        value = int(raw, 16)
    except ValueError as e:
        raise Malformed(f"invalid RFLink TEMP={raw!r}") from e
    if value & 0x8000:
        value = -(value & 0x7FFF)
    return value / 10


def decode_rflink(topic: Topic, payload: bytes) -> List[Reading]:
    line = parse_text(payload)
    fields = line.rstrip(";").split(";")
    if len(fields) < 3 or fields[0] != "20":
        raise Malformed(f"not an RFLink message: {line[:40]!r}")

    name = fields[2]
    attrs: Dict[str, str] = {}
    for field in fields[3:]:
        if "=" in field:
            k, v = field.split("=", 1)
            attrs[k] = v

    device_id = attrs.get("ID")
    if not device_id:
        return []
    key = rf_key(name, device_id)

    readings = []
    if "TEMP" in attrs:
        readings.append(_rf_reading(MetricKind.TEMPERATURE, key, _rflink_temperature(attrs["TEMP"])))
    if "HUM" in attrs:
        try:
            humidity = float(int(attrs["HUM"]))
        except ValueError as e:
            raise Malformed(f"invalid RFLink HUM={attrs['HUM']!r}") from e
        readings.append(_rf_reading(MetricKind.HUMIDITY, key, humidity))
    if "BAT" in attrs:
        readings.append(_rf_reading(MetricKind.BATTERY_OK, key, attrs["BAT"].upper() == "OK"))
    return readings
