"""Main application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from dropiq.ai.llm_service import llm_service
from dropiq.api.deps import get_search_service
from dropiq.api.routes import products
from dropiq.config import settings
from dropiq.db.models import Base
from dropiq.db.session import engine
from dropiq.enrich.service import close_clients
from dropiq.errors import DropIQError

# Configure structured logging
from dropiq.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting DropIQ search API...")

    # Initialize database
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    # Shutdown
    logger.info("Shutting down...")

    await get_search_service().history.drain()
    await close_clients()
    await llm_service.close()
    await engine.dispose()

    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="DropIQ",
    description="Product search across Amazon, Flipkart, Samsung and Sony listings",
    version="0.1.0",
    lifespan=lifespan,
)

# Add Prometheus instrumentation
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics", "/api/health"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
)
instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])


@app.exception_handler(DropIQError)
async def dropiq_error_handler(request: Request, exc: DropIQError):
    """Render service errors in the API's error envelope."""
    body = {"success": False, "error": exc.public_message}
    if exc.status_code >= 500:
        body["message"] = str(exc)
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc}")
    return JSONResponse(status_code=exc.status_code, content=body)


# Include API routes
app.include_router(products.router)


@app.get("/api/health")
async def health():
    """Health check endpoint."""
    return {
        "success": True,
        "message": "DropIQ API is running",
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }


if __name__ == "__main__":
    # Run with uvicorn
    uvicorn.run(
        "dropiq.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
