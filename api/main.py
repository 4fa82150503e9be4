"""Main FastAPI application for the gateway bridge."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies import set_bridge
from api.models import HealthResponse
from api.routes import deposits, mappings, withdrawals
from bridge import GatewayBridge
from main import load_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info("Starting gateway bridge API...")

    config = load_config()
    bridge = GatewayBridge(config)
    await bridge.start()
    await bridge.withdrawal_monitor.start()

    set_bridge(bridge)
    logger.info("Gateway bridge API started successfully")

    yield

    logger.info("Stopping gateway bridge API...")
    set_bridge(None)
    await bridge.stop()
    logger.info("Gateway bridge API stopped")


app = FastAPI(
    title="Gateway Bridge API",
    description="REST API for moving assets between a primary chain and its sidechain",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(mappings.router)
app.include_router(deposits.router)
app.include_router(withdrawals.router)


@app.get("/", response_model=HealthResponse)
async def root():
    """API health check."""
    return HealthResponse(
        status="online",
        service="Gateway Bridge API",
        version="1.0.0"
    )


@app.get("/health")
async def health_check():
    """Simple health check for monitoring."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info"
    )
