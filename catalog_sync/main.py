import logging

from fastapi import FastAPI, Response
from prometheus_client import REGISTRY, generate_latest

from catalog_sync import __version__
from catalog_sync.config.logging_config import configure_logging
from catalog_sync.routes import model_sync
from catalog_sync.services import prometheus_metrics  # noqa: F401

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Catalog Sync", version=__version__)
    app.include_router(model_sync.router)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    @app.get("/metrics", tags=["monitoring"], include_in_schema=False)
    async def metrics():
        """Prometheus metrics for fal.ai requests and sync passes"""
        return Response(generate_latest(REGISTRY), media_type="text/plain; charset=utf-8")

    logger.info("✅ Catalog sync API initialized")
    return app
