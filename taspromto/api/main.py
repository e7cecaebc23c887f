from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .. import __version__
from ..metrics.exposition import ExpositionRenderer
from ..mqtt.receiver import MQTTReceiver
from ..pipelines.router_stats import IngestStats

logger = logging.getLogger(__name__)


def create_app(
    renderer: ExpositionRenderer,
    stats: IngestStats,
    receiver: Optional[MQTTReceiver] = None,
) -> FastAPI:
    app = FastAPI(title="taspromto", version=__version__)

    @app.get("/metrics", response_class=PlainTextResponse)
    def metrics():
        """Exposición Prometheus: métricas de dispositivos + contadores propios."""
        try:
            body = renderer.render() + generate_latest(stats.registry).decode("utf-8")
        except Exception as e:
            logger.exception("[HTTP] Metrics render failed: %s", e)
            raise HTTPException(status_code=500, detail="metrics render failed")
        return PlainTextResponse(body, media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    def health():
        """Liveness probe: ok mientras el proceso esté vivo."""
        return {
            "status": "ok",
            "metrics": len(renderer.registry),
            "ingest": stats.to_dict(),
            "mqtt": receiver.health_check() if receiver is not None else None,
        }

    return app
