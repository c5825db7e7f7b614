"""
FastAPI application for the data agent

- CORS middleware for frontend integration
- Chat streaming, stop and NL2SQL routes
- Health check endpoint
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from dataagent import __version__
from dataagent.api.models import HealthResponse
from dataagent.api.routes import chat
from dataagent.config.settings import Settings, settings as default_settings
from dataagent.service.graph_service import GraphService, build_service
from dataagent.utils.errors import (
    DataAgentError,
    SessionBusyError,
    SnapshotNotFoundError,
    UpstreamUnavailableError,
)
from dataagent.utils.logger import setup_logger

_STATUS = {
    SessionBusyError: 409,
    SnapshotNotFoundError: 404,
    UpstreamUnavailableError: 503,
}


def create_app(settings: Settings = default_settings, service: GraphService = None) -> FastAPI:
    """Build the app; `service` overrides the production wiring (used by tests)"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("FastAPI application starting...")
        app.state.service = service or build_service(settings)
        logger.info(f"Streaming endpoint at http://{settings.api_host}:{settings.api_port}/api/chat/stream")
        yield
        logger.info("FastAPI application shutting down...")
        app.state.service.shutdown()
        logger.info("Service resources released")

    app = FastAPI(
        title="Data Agent API",
        description="Streaming natural-language analytics over relational datasources.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DataAgentError)
    async def data_agent_error_handler(request: Request, exc: DataAgentError):
        status = next((code for cls, code in _STATUS.items() if isinstance(exc, cls)), 500)
        if status >= 500:
            logger.error(f"Request failed: {exc}")
        return JSONResponse(status_code=status, content={"detail": str(exc), "error": type(exc).__name__})

    app.include_router(chat.router)

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check():
        return HealthResponse(status="healthy", service="dataagent-api", version=__version__)

    return app


def get_app() -> FastAPI:
    setup_logger()
    return create_app()
