"""FastAPI application factory for the knowledge API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from knowledge_hub.api.handlers.knowledge import current_user
from knowledge_hub.api.handlers.knowledge import router as knowledge_router
from knowledge_hub.api.middleware.request_logger import RequestLoggerMiddleware
from knowledge_hub.api.models.errors import error_for_exception, server_error
from knowledge_hub.api.models.requests import HealthStatus, ServiceStatus
from knowledge_hub.core.factory import build_service
from knowledge_hub.lib.config import ConfigLoader
from knowledge_hub.models.errors import KnowledgeError
from knowledge_hub.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the knowledge service on startup, close it on shutdown."""
    logger.info("Starting knowledge API server")
    await app.state.service.open()
    try:
        yield
    finally:
        logger.info("Shutting down knowledge API server")
        await app.state.service.close()


def create_app(config: ConfigLoader | None = None, store: DocumentStore | None = None) -> FastAPI:
    """Build the API.

    Args:
        config: Loaded configuration (default: ConfigLoader())
        store: Document store override, mainly for tests

    Returns:
        FastAPI app whose lifespan owns the service
    """
    config = config or ConfigLoader()
    default_user = config.get_env("user_id", "current-user")

    app = FastAPI(
        title="Knowledge Hub API",
        description="Knowledge documents with @mentions, full-text search and versioning",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.service = build_service(
        config,
        store=store,
        user_provider=lambda: current_user.get() or default_user,
    )

    if config.get("cors.enabled", True):
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.get("cors.allow_origins", ["*"]),
            allow_credentials=True,
            allow_methods=config.get("cors.allow_methods", ["GET", "POST", "OPTIONS"]),
            allow_headers=config.get("cors.allow_headers", ["Content-Type", "Authorization"]),
        )
    app.add_middleware(RequestLoggerMiddleware)

    @app.exception_handler(KnowledgeError)
    async def knowledge_error_handler(request: Request, exc: KnowledgeError):
        status_code, body = error_for_exception(exc)
        logger.info(f"{request.method} {request.url.path} -> {status_code}: {exc}")
        return JSONResponse(status_code=status_code, content=body.model_dump())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content=server_error().model_dump())

    app.include_router(knowledge_router)

    @app.get("/health", response_model=HealthStatus)
    async def health():
        services = {}
        try:
            stats = app.state.service.index.get_stats()
            services["index"] = ServiceStatus(
                name="index",
                status="healthy",
                message=f"{stats.total_documents} documents, {stats.total_words} content tokens",
            )
        except Exception as e:
            services["index"] = ServiceStatus(name="index", status="unhealthy", message=str(e))

        try:
            await app.state.service.store.get_all_documents()
            services["store"] = ServiceStatus(name="store", status="healthy")
        except Exception as e:
            services["store"] = ServiceStatus(name="store", status="unhealthy", message=str(e))

        statuses = [s.status for s in services.values()]
        if all(s == "healthy" for s in statuses):
            overall = "healthy"
        elif all(s == "unhealthy" for s in statuses):
            overall = "unhealthy"
        else:
            overall = "degraded"
        return HealthStatus(status=overall, services=services)

    return app
