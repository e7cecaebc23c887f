"""Registro de métricas y exposición en formato Prometheus."""

from .exposition import ExpositionRenderer, metric_families
from .registry import MetricRegistry

__all__ = ["ExpositionRenderer", "MetricRegistry", "metric_families"]
