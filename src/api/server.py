"""FastAPI backend service for recorded-event processing.

Provides REST API endpoints for:
- Opening recording sessions
- Ingesting raw and rrweb events
- Querying, annotating and exporting processed events
"""

from datetime import UTC, datetime

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from src.api.recording_events import router as recording_events_router
from src.config import get_settings
from src.utils.logging import configure_logging

logger = structlog.get_logger()

VERSION = "0.1.0"


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    app = FastAPI(
        title="Recorded Event Processing API",
        description="Turns raw browser interaction streams into replayable test steps",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(recording_events_router)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        """Health check endpoint for load balancers and monitoring."""
        return HealthResponse(
            status="healthy",
            version=VERSION,
            timestamp=datetime.now(UTC).isoformat(),
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level, json_format=settings.log_json)
    uvicorn.run(app, host=settings.server_host, port=settings.server_port)
