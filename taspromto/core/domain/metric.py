"""Modelo de dominio para métricas.

Este es el contrato que fluye por todo el pipeline:
MQTT → Decoder → NameResolver → MetricRegistry → Exposition
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

MetricNumber = Union[float, bool]
LabelPairs = Tuple[Tuple[str, str], ...]


class Namespace(str, Enum):
    """Espacios de nombres para la resolución de nombres visibles."""

    MITEMP = "mitemp"
    RF = "rf"


class MetricKind(Enum):
    """Tipo de métrica expuesta. Cada miembro es una familia Prometheus."""

    SWITCH_STATE = ("switch_state", "Relay on/off state (1 = on)", "relay")
    ONLINE = ("tasmota_online", "Device reported online via last will (1 = online)", None)
    DEVICE_INFO = ("tasmota_device_info", "Configured Tasmota device name", None)
    FIRMWARE = ("tasmota_version", "Tasmota firmware version", None)
    POWER = ("power_watts", "Instantaneous active power in watts", "channel")
    ENERGY_TODAY = ("power_today_kwh", "Energy used today in kWh", "channel")
    ENERGY_YESTERDAY = ("power_yesterday_kwh", "Energy used yesterday in kWh", "channel")
    ENERGY_TOTAL = ("power_total_kwh", "Cumulative energy in kWh", "channel")
    ENERGY_TOTAL_HIGH = ("power_total_high_kwh", "Cumulative high tariff energy in kWh", None)
    ENERGY_TOTAL_LOW = ("power_total_low_kwh", "Cumulative low tariff energy in kWh", None)
    GAS_TOTAL = ("gas_total_m3", "Cumulative gas volume in cubic meters", None)
    WATER_TOTAL = ("water_total_m3", "Cumulative water volume in cubic meters", None)
    CO2 = ("sensor_co2", "CO2 concentration in ppm", "sensor")
    PARTICLE_MASS = ("particle_mass_ugm3", "Particle mass concentration in ug/m3", "size")
    PARTICLE_MASS_CF1 = ("particle_mass_cf1_ugm3", "Particle mass concentration (CF=1) in ug/m3", "size")
    PARTICLE_COUNT = ("particle_count_per_dl", "Particles per 0.1 liter of air", "size")
    TEMPERATURE = ("sensor_temperature", "Temperature in degrees Celsius", None)
    HUMIDITY = ("sensor_humidity", "Relative humidity in percent", None)
    DEW_POINT = ("sensor_dew_point", "Dew point in degrees Celsius", None)
    BATTERY = ("sensor_battery", "Battery level in percent", None)
    BATTERY_OK = ("sensor_battery_ok", "Battery state (1 = ok, 0 = low)", None)

    def __init__(self, family: str, help_text: str, sub_label: Optional[str]):
        self.family = family
        self.help_text = help_text
        self.sub_label = sub_label

    @property
    def metric_type(self) -> str:
        return "gauge"


@dataclass(frozen=True)
class MetricIdentity:
    """Identidad estable de una métrica: (tipo, dispositivo, sub-etiqueta).

    `device` es siempre la clave cruda del dispositivo (topic Tasmota, sufijo
    MAC, model:id:channel), nunca el nombre configurado por el operador.
    """

    kind: MetricKind
    device: str
    sub_label: Optional[str] = None

    def sort_key(self) -> tuple:
        return (self.device, self.sub_label or "")


@dataclass(frozen=True)
class MetricValue:
    """Último valor observado para una identidad. Se reemplaza completo."""

    value: MetricNumber
    timestamp: float
    labels: LabelPairs = ()


@dataclass(frozen=True)
class Reading:
    """Salida de un decoder, antes de resolver nombres.

    `namespace` indica que `device` debe traducirse a un nombre visible
    usando el NameResolver.
    """

    kind: MetricKind
    device: str
    value: MetricNumber
    sub_label: Optional[str] = None
    namespace: Optional[Namespace] = None
    labels: LabelPairs = ()

    @property
    def identity(self) -> MetricIdentity:
        return MetricIdentity(self.kind, self.device, self.sub_label)
