"""Exposición del registro en formato de texto Prometheus.

    # HELP power_watts Instantaneous active power in watts
    # TYPE power_watts gauge
    power_watts{device="plug1"} 42.5

ExpositionRenderer es un collector de prometheus_client: en cada scrape
toma un snapshot del MetricRegistry y lo convierte en una familia por
MetricKind (en el orden de la enumeración), con las muestras ordenadas
por (device, sub_label). El formato y el escapado de labels los pone
generate_latest.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterator, List, Mapping, Tuple

from prometheus_client import CollectorRegistry, Metric, generate_latest

from ..core.domain import MetricIdentity, MetricKind, MetricValue
from .registry import MetricRegistry


def sample_labels(identity: MetricIdentity, entry: MetricValue) -> Dict[str, str]:
    labels = {"device": identity.device}
    if identity.sub_label is not None and identity.kind.sub_label:
        labels[identity.kind.sub_label] = identity.sub_label
    labels.update(entry.labels)
    return labels


def metric_families(entries: Mapping[MetricIdentity, MetricValue]) -> List[Metric]:
    """Una familia gauge por MetricKind presente en el snapshot.

    Se usa Metric y no GaugeMetricFamily porque las muestras de una misma
    familia pueden llevar labels distintos (name, mac).
    """
    by_kind: Dict[MetricKind, List[Tuple[MetricIdentity, MetricValue]]] = defaultdict(list)
    for identity, entry in entries.items():
        by_kind[identity.kind].append((identity, entry))

    families = []
    for kind in MetricKind:
        samples = by_kind.get(kind)
        if not samples:
            continue
        family = Metric(kind.family, kind.help_text, kind.metric_type)
        for identity, entry in sorted(samples, key=lambda item: item[0].sort_key()):
            family.add_sample(kind.family, sample_labels(identity, entry), float(entry.value))
        families.append(family)
    return families


class ExpositionRenderer:
    """Collector que renderiza el registro completo en cada scrape."""

    def __init__(self, registry: MetricRegistry):
        self._registry = registry
        self._collectors = CollectorRegistry(auto_describe=False)
        self._collectors.register(self)

    @property
    def registry(self) -> MetricRegistry:
        return self._registry

    def collect(self) -> Iterator[Metric]:
        yield from metric_families(self._registry.snapshot())

    def render(self) -> str:
        """Texto de exposición. Un registro vacío produce un texto vacío."""
        return generate_latest(self._collectors).decode("utf-8")
