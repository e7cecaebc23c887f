"""Resolución de identificadores crudos a nombres visibles.

Los mapeos se cargan una sola vez al arrancar (MITEMP_NAMES, RF_TEMP_NAMES)
y no cambian durante la vida del proceso. Un identificador sin mapeo no es
un error: se devuelve tal cual.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

from ..core.domain import Namespace

# Normalización de claves por namespace: los sufijos MAC llegan en
# minúsculas o mayúsculas según el firmware del gateway.
KEY_NORMALIZERS: Dict[Namespace, Callable[[str], str]] = {
    Namespace.MITEMP: lambda key: key.strip().upper(),
    Namespace.RF: lambda key: key.strip(),
}


class NameResolver:
    """Lookup inmutable namespace → {clave cruda → nombre}."""

    def __init__(self, mappings: Optional[Mapping[Namespace, Mapping[str, str]]] = None):
        mappings = mappings or {}
        self._mappings: Mapping[Namespace, Mapping[str, str]] = MappingProxyType({
            namespace: MappingProxyType({
                self._normalize(namespace, key): label
                for key, label in mappings.get(namespace, {}).items()
            })
            for namespace in Namespace
        })

    @staticmethod
    def _normalize(namespace: Namespace, key: str) -> str:
        return KEY_NORMALIZERS[namespace](key)

    def resolve(self, namespace: Namespace, raw_key: str) -> str:
        """Nombre configurado para `raw_key`, o `raw_key` sin cambios."""
        return self._mappings[namespace].get(self._normalize(namespace, raw_key), raw_key)

    def mapping(self, namespace: Namespace) -> Mapping[str, str]:
        return self._mappings[namespace]

    @property
    def stats(self) -> dict:
        return {namespace.value: len(mapping) for namespace, mapping in self._mappings.items()}
