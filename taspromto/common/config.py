from __future__ import annotations

import logging
import os
import re
import socket
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from ..core.domain import Namespace

logger = logging.getLogger(__name__)

DEFAULT_MQTT_PORT = 1883
DEFAULT_HTTP_PORT = 80

_MITEMP_SUFFIX = re.compile(r"^[0-9A-Fa-f]{6}$")


class ConfigError(ValueError):
    """Configuración inválida o incompleta. El proceso no debe arrancar."""


@dataclass(frozen=True)
class Settings:
    mqtt_host: str
    mqtt_port: int
    mqtt_username: Optional[str]
    mqtt_password: Optional[str]
    http_port: int
    client_id: str
    log_level: str
    names: Mapping[Namespace, Mapping[str, str]] = field(default_factory=lambda: MappingProxyType({}))


def parse_name_mapping(raw: Optional[str], namespace: Namespace) -> Dict[str, str]:
    """Parsea `clave=Nombre,clave=Nombre`.

    Se separa por la primera `=`, así que el nombre puede contenerla. Las
    claves de mitemp deben ser los 6 dígitos hex finales de la MAC.
    Claves repetidas: gana la última.
    """
    mapping: Dict[str, str] = {}
    if not raw or not raw.strip():
        return mapping

    for pair in raw.split(","):
        if not pair.strip():
            continue
        key, sep, label = pair.partition("=")
        key, label = key.strip(), label.strip()
        if not sep or not key:
            raise ConfigError(f"invalid {namespace.value} name mapping {pair.strip()!r}, expected key=name")
        if namespace is Namespace.MITEMP and not _MITEMP_SUFFIX.match(key):
            raise ConfigError(f"invalid mitemp key {key!r}, expected 6 hex digits")
        if key in mapping:
            logger.warning("[CONFIG] Duplicate %s name key=%s, using last", namespace.value, key)
        mapping[key] = label
    return mapping


def _port(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        port = int(raw)
    except ValueError:
        logger.warning("[CONFIG] Invalid %s=%r, using %d", name, raw, default)
        return default
    if not 0 < port < 65536:
        logger.warning("[CONFIG] Invalid %s=%r, using %d", name, raw, default)
        return default
    return port


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("TASPROMTO_ENV_FILE", ".env")
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    mqtt_host = os.getenv("MQTT_HOSTNAME", "").strip()
    if not mqtt_host:
        raise ConfigError("MQTT_HOSTNAME not set")

    mqtt_username = os.getenv("MQTT_USERNAME") or None
    mqtt_password = os.getenv("MQTT_PASSWORD") or None
    if mqtt_username and mqtt_password is None:
        raise ConfigError("MQTT_USERNAME set without MQTT_PASSWORD")

    names = MappingProxyType({
        Namespace.MITEMP: MappingProxyType(parse_name_mapping(os.getenv("MITEMP_NAMES"), Namespace.MITEMP)),
        Namespace.RF: MappingProxyType(parse_name_mapping(os.getenv("RF_TEMP_NAMES"), Namespace.RF)),
    })

    return Settings(
        mqtt_host=mqtt_host,
        mqtt_port=_port("MQTT_PORT", DEFAULT_MQTT_PORT),
        mqtt_username=mqtt_username,
        mqtt_password=mqtt_password,
        http_port=_port("PORT", DEFAULT_HTTP_PORT),
        client_id=f"taspromto-{socket.gethostname()}",
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        names=names,
    )
