from __future__ import annotations

import logging
import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .container import build_container
from .errors import ApiError
from .logging_config import configure_logging
from .routers import auth as auth_router
from .routers import todos as todos_router
from .schemas import HealthResponse
from .secrets_manager import apply_secrets
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "auth", "description": "User registration and login; both return a bearer token."},
    {
        "name": "todos",
        "description": "CRUD and toggle operations on the authenticated user's Todo items.",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the service container on startup and release store/cache on shutdown."""
    settings = apply_secrets(app.state.settings)
    configure_logging(settings.log_level)
    container = build_container(settings)
    container.start()
    app.state.settings = settings
    app.state.container = container
    logger.info(f"Server started in {settings.environment} mode on port {settings.port}")
    try:
        yield
    finally:
        logger.info("Shutting down: closing cache and database connections")
        container.close()


def _error_body(request: Request, message: str, exc: Exception) -> Dict[str, Any]:
    body: Dict[str, Any] = {"message": message}
    settings: Settings = request.app.state.settings
    # Only send stack trace outside production
    if not settings.is_production:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def _log_error(request: Request, status_code: int, message: str) -> None:
    logger.error(f"[{request.method}] {request.url.path} >> StatusCode:: {status_code}, Message:: {message}")


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "path", "query")]
        field = ".".join(loc) or "unknown"
        parts.append(f"{field}: {err.get('msg')}")
    return f"Validation error: {', '.join(parts)}"


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        _log_error(request, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(request, exc.message, exc))

    # Validation failures are client errors and map to 400, not FastAPI's default 422
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _format_validation_errors(exc)
        _log_error(request, 400, message)
        return JSONResponse(status_code=400, content=_error_body(request, message, exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            message = f"Not Found - {request.url.path}"
        else:
            message = str(exc.detail)
        _log_error(request, exc.status_code, message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, message, exc),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"[{request.method}] {request.url.path} >> Unhandled error")
        return JSONResponse(status_code=500, content=_error_body(request, "Internal Server Error", exc))


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    The store, cache and services are created by the lifespan handler, so the
    app must be run by an ASGI server (or entered as `with TestClient(app)`).
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Todo Service",
        description="Authenticated todo-list API with per-user ownership and a read-through cache.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms")
        return response

    _register_exception_handlers(app)

    # PUBLIC_INTERFACE
    @app.get("/health", response_model=HealthResponse, summary="Health Check", tags=["health"])
    def health_check() -> HealthResponse:
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return HealthResponse(status="ok", message="Service is running", timestamp=datetime.now(timezone.utc))

    app.include_router(auth_router.router)
    app.include_router(todos_router.router)
    return app


app = create_app()


# PUBLIC_INTERFACE
def run() -> None:
    """Serve the application with uvicorn on 0.0.0.0:$PORT."""
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)


if __name__ == "__main__":
    run()
