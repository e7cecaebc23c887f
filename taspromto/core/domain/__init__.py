"""Modelos de dominio del bridge."""

from .metric import (
    MetricIdentity,
    MetricKind,
    MetricNumber,
    MetricValue,
    Namespace,
    Reading,
)
from .topic import Topic

__all__ = [
    "MetricIdentity",
    "MetricKind",
    "MetricNumber",
    "MetricValue",
    "Namespace",
    "Reading",
    "Topic",
]
