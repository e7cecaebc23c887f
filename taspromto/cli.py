"""CLI entry point: MQTT receiver + servidor HTTP de /metrics."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

import uvicorn

from .api.main import create_app
from .common.config import ConfigError, get_settings
from .metrics.exposition import ExpositionRenderer
from .metrics.registry import MetricRegistry
from .mqtt.receiver import MQTTReceiver
from .pipelines.name_resolver import NameResolver
from .pipelines.router import IngestRouter
from .pipelines.router_stats import IngestStats

logger = logging.getLogger(__name__)


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Tasmota / rtl_433 / DSMR MQTT to Prometheus exporter")
    p.add_argument("--port", type=int, default=None, help="HTTP listen port (overrides PORT)")
    p.add_argument("--log-level", default=None, help="logging level (overrides LOG_LEVEL)")
    args = p.parse_args(argv)

    try:
        settings = get_settings()
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
        logger.error("[CONFIG] %s", e)
        return 1

    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    resolver = NameResolver(settings.names)
    registry = MetricRegistry()
    stats = IngestStats()
    router = IngestRouter(registry, resolver, stats)
    receiver = MQTTReceiver(
        router,
        broker_host=settings.mqtt_host,
        broker_port=settings.mqtt_port,
        username=settings.mqtt_username,
        password=settings.mqtt_password,
        client_id=settings.client_id,
    )
    logger.info("taspromto started names=%s", resolver.stats)

    if not receiver.start():
        receiver.stop()
        return 1

    port = args.port or settings.http_port
    app = create_app(ExpositionRenderer(registry), stats, receiver)
    try:
        uvicorn.run(app, host="0.0.0.0", port=port, log_level="warning")
    finally:
        receiver.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
