"""FastAPI application initialization."""

from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from videotube import __version__
from videotube.api.health import router as health_router
from videotube.api.middleware import CorrelationIdMiddleware
from videotube.api.users import router as users_router
from videotube.config import get_settings
from videotube.errors import ApiError
from videotube.models.response import ErrorResponse
from videotube.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    try:
        from videotube.database import init_database, run_migrations

        await init_database()
        await run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - account endpoints will fail",
        )

    logger.info("application_started", log_level=settings.log_level)

    yield

    from videotube.services.media_service import close_media_uploader

    await close_media_uploader()

    from videotube.database import close_database

    await close_database()

    logger.info("application_shutdown")


app = FastAPI(
    title="VideoTube API",
    description="Accounts, sessions and media for a video-sharing platform",
    version=__version__,
    lifespan=lifespan,
)


def _error_response(
    status_code: int,
    message: str,
    errors: list | None = None,
    headers: dict | None = None,
) -> JSONResponse:
    """Render the error envelope."""
    body = ErrorResponse(status_code=status_code, message=message, errors=errors or [])
    if status_code == 401:
        headers = {**(headers or {}), "WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True),
        headers=headers,
    )


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Translate service errors into the error envelope."""
    logger = structlog.get_logger()
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "request_failed",
        status_code=exc.status_code,
        error_type=type(exc).__name__,
        detail=exc.message,
        path=request.url.path,
    )
    return _error_response(exc.status_code, exc.message, exc.errors)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors as 400 with field-level details."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", ()) if loc != "body"),
            "message": error.get("msg", "Validation failed"),
            "type": error.get("type", "value_error"),
        }
        for error in exc.errors()
    ]

    if errors:
        message = errors[0]["message"].removeprefix("Value error, ")
    else:
        message = "Request validation failed"

    structlog.get_logger().warning(
        "validation_error",
        path=request.url.path,
        detail=message,
        errors=errors,
    )
    return _error_response(400, message, errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Wrap framework HTTP errors (404 route, 405 method, ...) in the envelope."""
    return _error_response(exc.status_code, str(exc.detail), headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log with traceback, return a generic 500."""
    structlog.get_logger().error(
        "unhandled_exception",
        path=request.url.path,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return _error_response(500, "Something went wrong")


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(users_router)
app.include_router(health_router)
