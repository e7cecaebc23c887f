"""Utilidades comunes para los decoders de payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Type, TypeVar, Union

import orjson
from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class Malformed(ValueError):
    """El payload no tiene la forma que espera el decoder.

    Solo afecta al mensaje actual: el router lo registra y sigue.
    """


@dataclass(frozen=True)
class PhysicalRange:
    """Rango físico plausible de una magnitud (hard limits)."""

    min_value: Optional[float]
    max_value: Optional[float]

    def violates(self, value: float) -> bool:
        """Verifica si un valor viola el rango físico."""
        if self.min_value is not None and value < self.min_value:
            return True
        if self.max_value is not None and value > self.max_value:
            return True
        return False


def load_json_object(payload: Union[bytes, str]) -> dict[str, Any]:
    """Parsea el payload como objeto JSON o lanza Malformed."""
    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError as e:
        raise Malformed(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise Malformed(f"expected JSON object, got {type(data).__name__}")
    return data


def validate(model: Type[ModelT], data: Any) -> ModelT:
    """Valida `data` contra un modelo pydantic, traduciendo el error a Malformed."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise Malformed(f"{model.__name__}: {e.error_count()} invalid field(s): {e.errors()[0]['msg']}") from e


def parse_number(payload: Union[bytes, str]) -> float:
    """Parsea un payload de texto plano numérico (DSMR, rtl_433 por campo)."""
    text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
    text = text.strip()
    try:
        value = float(text)
    except ValueError as e:
        raise Malformed(f"expected a number, got {text[:40]!r}") from e
    if value != value or value in (float("inf"), float("-inf")):
        raise Malformed(f"non-finite value {text!r}")
    return value


def parse_text(payload: Union[bytes, str]) -> str:
    """Decodifica un payload de texto plano."""
    if isinstance(payload, str):
        return payload.strip()
    try:
        return payload.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise Malformed(f"payload is not UTF-8: {e}") from e
