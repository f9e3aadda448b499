"""FastAPI application entrypoint. No business logic; only wiring, middleware and error mapping."""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1 import router as v1_router
from app.core.config import Settings, get_settings
from app.core.database import build_engine, build_session_factory
from app.core.errors import AppError
from app.core.logging import configure_logging
from app.models import Base
from app.services.storage import LocalBlobStore
from app.services.upload_sessions import UploadSessionStore
from app.services.upload_sweeper import run_sweeper

logger = logging.getLogger(__name__)


def _error_body(message: str, details: list | None = None) -> dict:
    body: dict = {"error": message}
    if details:
        body["details"] = details
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.details),
        headers=headers,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing errors raised by the framework itself (unknown path, wrong method)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]) or "body",
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=_error_body("Validation failed", details))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the application with its own engine, blob store and upload session store."""
    app_settings = app_settings or get_settings()
    configure_logging(app_settings.LOG_LEVEL)

    engine = build_engine(app_settings.DATABASE_URL, echo=app_settings.DEBUG)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app_settings.AUTO_CREATE_TABLES:
            Base.metadata.create_all(bind=engine)
        sweeper = None
        if app_settings.UPLOAD_SWEEP_ENABLED:
            sweeper = asyncio.create_task(
                run_sweeper(app.state.upload_sessions, app.state.blob_store, app_settings)
            )
        logger.info(
            "DocVault API started (env=%s, upload_dir=%s, max_file_size=%s)",
            app_settings.APP_ENV,
            app_settings.UPLOAD_DIR,
            app_settings.MAX_FILE_SIZE,
        )
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper
            engine.dispose()

    app = FastAPI(
        title="DocVault API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.blob_store = LocalBlobStore(app_settings.UPLOAD_DIR)
    app.state.upload_sessions = UploadSessionStore()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if app_settings.APP_ENV == "dev" else [app_settings.FRONTEND_URL],
        allow_credentials=app_settings.APP_ENV != "dev",
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(v1_router, prefix=app_settings.API_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "DocVault API"}

    return app


app = create_app()
