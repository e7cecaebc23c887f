"""Pipeline de ingesta: rutas de topics, resolución de nombres y router."""

from .name_resolver import NameResolver
from .router import IngestRouter
from .router_stats import IngestStats
from .topics import ROUTES, SUBSCRIPTIONS, match_topic

__all__ = [
    "IngestRouter",
    "IngestStats",
    "NameResolver",
    "ROUTES",
    "SUBSCRIPTIONS",
    "match_topic",
]
