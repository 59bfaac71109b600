"""
Kai Chat - Main Application Entry Point

Chat sessions and tool invocations mediated to the Kai AI service.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from kaichat.core.config import get_settings
from kaichat.core.exceptions import KaiError, ValidationError
from kaichat.core.logger import logger, setup_logging

TOOL_PREFIX = "/api/tool"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    settings = get_settings()
    logger.info(f"Starting Kai Chat in {settings.ENVIRONMENT} mode...")

    # Initialize database if needed
    if settings.is_local:
        from kaichat.infrastructure.local.database import init_db

        await init_db()

    yield

    # Shutdown
    logger.info("Shutting down Kai Chat...")
    from kaichat.api.deps import get_kai_gateway

    await get_kai_gateway().aclose()


class CallableCORSMiddleware(CORSMiddleware):
    """
    CORS for the callable endpoints.

    Paths under ``exempt_prefixes`` pass straight through; the tool route
    answers its own preflight with permissive headers.
    """

    def __init__(self, app, exempt_prefixes: tuple[str, ...] = (), **kwargs):
        super().__init__(app, **kwargs)
        self.exempt_prefixes = exempt_prefixes

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] == "http" and scope["path"].startswith(self.exempt_prefixes):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


def _error_response(error: KaiError) -> JSONResponse:
    return JSONResponse(
        status_code=error.http_status,
        content={"error": {"status": error.status, "message": error.message}},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging("DEBUG" if settings.DEBUG else settings.LOG_LEVEL)

    app = FastAPI(
        title="Kai Chat",
        description="Chat session orchestration and tool ingestion for Kai AI",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    @app.exception_handler(KaiError)
    async def kai_error_handler(request: Request, exc: KaiError):
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.debug(f"Rejected request body on {request.url.path}: {exc.errors()}")
        return _error_response(ValidationError("Invalid request body"))

    # CORS middleware
    app.add_middleware(
        CallableCORSMiddleware,
        exempt_prefixes=(TOOL_PREFIX,),
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    from kaichat.api import chat, tool

    app.include_router(chat.router, tags=["chat"])
    app.include_router(tool.router, prefix=TOOL_PREFIX, tags=["tool"])

    # Mount storage for local development
    storage_path = settings.STORAGE_BASE_PATH
    if not os.path.isabs(storage_path):
        storage_path = os.path.join(os.getcwd(), storage_path)

    if settings.is_local:
        os.makedirs(storage_path, exist_ok=True)
        app.mount("/storage", StaticFiles(directory=storage_path), name="storage")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "version": "0.1.0"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
