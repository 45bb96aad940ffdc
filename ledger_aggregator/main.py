from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ledger_aggregator import __version__
from ledger_aggregator.core.config import get_settings
from ledger_aggregator.core.logging import configure_logging, request_id_middleware
from ledger_aggregator.transactions.poller import get_poller
from ledger_aggregator.transactions.router import ingestion_router
from ledger_aggregator.transactions.router import router as transactions_router

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.ENV, settings.DEBUG)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the ingestion loop with the app and stop it on shutdown."""
    logger.info("🚀 Starting ledger aggregator...")
    logger.info(f"Environment: {settings.ENV}")
    logger.info(f"🌐 Ledger RPC URL: {settings.RPC_URL}")

    poller = get_poller()
    await poller.start()
    logger.info("✓ Ingestion loop started")

    yield

    logger.info("🛑 Shutting down ledger aggregator...")
    await poller.stop()
    await poller.client.close()
    logger.info("✓ Shutdown complete")


app = FastAPI(title="Ledger Aggregator", version=__version__, lifespan=lifespan)
app.middleware("http")(request_id_middleware)
app.include_router(transactions_router)
app.include_router(ingestion_router)


@app.get("/healthz")
def healthz():
    logger.debug(f"Healthz endpoint called (env: {settings.ENV})")
    return {"status": "healthy", "env": settings.ENV}
