"""
Reservas API - FastAPI Backend Application
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import structlog

from reservas_api.config import settings
from reservas_api.api import availability, reservations, webhook_config
from reservas_api.core.errors import register_exception_handlers
from reservas_api.middleware import PathPrefixMiddleware

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting Reservas API", version=settings.api_version)
    yield
    logger.info("Shutting down Reservas API")


# Create FastAPI application
app = FastAPI(
    title="Reservas API",
    description="Table reservations for the restaurant floor, with webhook notifications",
    version=settings.api_version,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

# Outermost: routing and CORS see the normalized path
app.add_middleware(PathPrefixMiddleware)


@app.get("/status")
async def status():
    """Liveness and API version"""
    return {"status": "online", "api_version": settings.api_version}


# Include API routers
app.include_router(availability.router, tags=["Availability"])
app.include_router(reservations.router, prefix="/reservas", tags=["Reservations"])
app.include_router(webhook_config.router, prefix="/webhook", tags=["Webhooks"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "reservas_api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
