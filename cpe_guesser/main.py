"""
CPE Guesser HTTP API
cpe_guesser/main.py

Keyword lookup service answering "which CPE is this product?" ahead of
vulnerability database queries.
"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
import logging
import time

from cpe_guesser import __version__
from cpe_guesser.api import search
from cpe_guesser.core.config import Settings, load_settings
from cpe_guesser.core.context import AppContext, create_context
from cpe_guesser.core.exceptions import StoreError

logger = logging.getLogger(__name__)


def _rfc3339_now() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def create_app(context: Optional[AppContext] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    When ``context`` is given the caller owns it; otherwise the lifespan
    handler builds one from ``settings`` (or the environment) at startup and
    disposes it at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown events"""
        owned = app.state.context is None
        if owned:
            app.state.context = create_context(settings or load_settings())

        app_settings = app.state.context.settings
        logger.info(f"Starting {app_settings.APP_NAME} v{__version__}")

        try:
            app.state.context.store.create_schema()
        except StoreError as e:
            # Keep serving; /health reports the store as unreachable
            logger.warning(f"Store not ready at startup: {e}")

        yield

        logger.info(f"Shutting down {app_settings.APP_NAME}")
        if owned:
            app.state.context.close()
            app.state.context = None

    debug = bool(context and context.settings.DEBUG)
    app = FastAPI(
        title="CPE Guesser",
        description="Guess CPE entries from product keywords",
        version=__version__,
        debug=debug,
        lifespan=lifespan,
    )
    app.state.context = context

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed JSON and bad query bodies are client errors"""
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(StoreError)
    async def store_exception_handler(request: Request, exc: StoreError):
        logger.error(f"Index lookup failed on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Index lookup failed", "detail": str(exc)},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)

        if app.debug:
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "detail": str(exc),
                    "type": type(exc).__name__
                }
            )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # Request timing middleware
    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add response time header"""
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        return response

    app.include_router(search.router, tags=["Search"])

    @app.get("/")
    async def root():
        """Root endpoint with service information"""
        return {
            "message": "CPE Guesser API",
            "version": __version__,
            "endpoints": ["/search", "/unique", "/health", "/status"],
        }

    @app.get("/health")
    def health_check(request: Request):
        """Liveness probe against the store"""
        try:
            request.app.state.context.store.ping()
        except StoreError as e:
            logger.error(f"Health check failed: {e}")
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "time": _rfc3339_now(), "error": str(e)},
            )

        return {"status": "healthy", "time": _rfc3339_now()}

    @app.get("/status")
    def index_status(request: Request):
        """Index statistics and the most recent import run"""
        return {
            "version": __version__,
            "index": request.app.state.context.store.get_stats(),
        }

    return app


app = create_app()
