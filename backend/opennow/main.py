from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from openai import AsyncOpenAI

from .config import Settings, get_settings
from .errors import OpenNowError
from .routes.admin import router as admin_router
from .routes.businesses import router as business_router
from .routes.engagement import router as engagement_router
from .routes.search import router as search_router
from .services.assistant_service import ConversationStore, build_ai_client
from .services.places_client import PlacesClient
from .store import DocumentStore, build_store
from .telemetry.logging_utils import configure_logging
from .telemetry.middleware import TelemetryMiddleware

logger = logging.getLogger(__name__)


def _describe_validation_error(exc: RequestValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(problems) or "Invalid request"


def create_app(
    settings: Settings | None = None,
    store: DocumentStore | None = None,
    places_client: PlacesClient | None = None,
    ai_client: AsyncOpenAI | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.perf_log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings
        app.state.store = store or build_store(settings)
        app.state.places_client = places_client or PlacesClient(settings)
        app.state.ai_client = ai_client or build_ai_client(settings)
        app.state.conversations = ConversationStore(max_messages=settings.ai_history_messages)
        await app.state.store.startup()
        logger.info("%s started env=%s store=%s", settings.app_name, settings.environment, settings.store_backend)
        try:
            yield
        finally:
            if places_client is None:
                await app.state.places_client.aclose()
            if ai_client is None and app.state.ai_client is not None:
                await app.state.ai_client.close()
            await app.state.store.shutdown()

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(TelemetryMiddleware, enabled=settings.telemetry_enabled)

    @app.exception_handler(OpenNowError)
    async def handle_opennow_error(request: Request, exc: OpenNowError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request %s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": _describe_validation_error(exc)})

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/api/health")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    app.include_router(business_router, prefix="/api")
    app.include_router(search_router, prefix="/api")
    app.include_router(engagement_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")
    return app


app = create_app()
