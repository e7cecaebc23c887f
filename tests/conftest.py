"""Fixtures compartidas por los tests."""

from typing import Dict

import pytest

from taspromto.core.domain import Namespace
from taspromto.metrics.exposition import ExpositionRenderer
from taspromto.metrics.registry import MetricRegistry
from taspromto.pipelines.name_resolver import NameResolver
from taspromto.pipelines.router import IngestRouter
from taspromto.pipelines.router_stats import IngestStats


@pytest.fixture
def name_mappings() -> Dict[Namespace, Dict[str, str]]:
    return {
        Namespace.MITEMP: {"1D5B3A": "Living Room"},
        Namespace.RF: {"Bresser-3CH:73:1": "Front Yard"},
    }


@pytest.fixture
def resolver(name_mappings) -> NameResolver:
    return NameResolver(name_mappings)


@pytest.fixture
def registry() -> MetricRegistry:
    return MetricRegistry()


@pytest.fixture
def stats() -> IngestStats:
    return IngestStats()


@pytest.fixture
def router(registry, resolver, stats) -> IngestRouter:
    return IngestRouter(registry, resolver, stats)


@pytest.fixture
def renderer(registry) -> ExpositionRenderer:
    return ExpositionRenderer(registry)
