import sys
import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request

from api.shared.dtos import ErrorResponse
from api.shared.exceptions import FixieException, MethodNotAllowedError
from core.logging import configure_logging
from core.settings import SETTINGS
from di.container import ApplicationContainer as DependencyContainer

logger = structlog.get_logger("fixie.api")


class CustomFastAPI(FastAPI):
    container: DependencyContainer


def _error_body(error: str, code: str) -> dict:
    return ErrorResponse(error=error, code=code).model_dump()


@asynccontextmanager
async def lifespan(_app: CustomFastAPI):
    logger.info("app.startup.begin")
    start_time = time.time()

    try:
        db_start = time.time()
        db_resource = _app.container.infrastructure.database()
        await db_resource.init()
        async with db_resource.engine.begin() as _conn:
            await _conn.execute(text("SELECT 1"))
        logger.info("app.startup.database", seconds=round(time.time() - db_start, 2))

        identity_resource = _app.container.infrastructure.identity()
        await identity_resource.init()
        logger.info("app.startup.identity", base_url=identity_resource.base_url)

        provider_resource = _app.container.infrastructure.completion_provider()
        await provider_resource.init()
        if provider_resource.client is None:
            logger.warning("app.startup.completion_provider_unconfigured")
        else:
            logger.info("app.startup.completion_provider", model=SETTINGS.OPENAI.MODEL)

        logger.info("app.startup.complete", seconds=round(time.time() - start_time, 2))
    except Exception:
        logger.exception("app.startup.failed")
        raise

    yield

    for name in ("completion_provider", "identity", "database"):
        try:
            await getattr(_app.container.infrastructure, name)().shutdown()
        except Exception:
            logger.exception("app.shutdown.failed", resource=name)
    logger.info("app.shutdown.complete")


def create_fastapi_app() -> CustomFastAPI:
    configure_logging(SETTINGS)

    _app = CustomFastAPI(
        title="Fixie Support Chat API",
        description="Conversational IT support backend",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Initialize dependency container
    _app.container = DependencyContainer()
    _app.container.infrastructure.config.from_dict(SETTINGS.model_dump())
    _app.container.wire(modules=[sys.modules[__name__]])
    _app.container.init_resources()

    # Cross-origin access is unrestricted
    _app.add_middleware(
        CORSMiddleware,
        allow_origins=SETTINGS.APP.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include feature routers
    from api.features.chat.router import router as chat_router
    from api.features.conversation.router import router as conversation_router
    from api.features.tools.router import router as tools_router

    _app.include_router(chat_router, prefix="/api/v1/chat", tags=["Chat"])
    _app.include_router(
        conversation_router, prefix="/api/v1/conversations", tags=["Conversations"]
    )
    _app.include_router(tools_router, prefix="/api/v1/tools", tags=["Tools"])

    return _app


app = create_fastapi_app()


# Health check endpoints
@app.get("/")
async def root():
    return {"message": "Fixie Support Chat API is running", "status": "ok"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/ready")
async def ready():
    return {"status": "ok"}


# Exception handlers
@app.exception_handler(FixieException)
async def fixie_exception_handler(request: Request, exc: FixieException):
    # Turn failures were already logged by the chat controller
    if not request.url.path.startswith("/api/v1/chat"):
        log_method = logger.warning if exc.status_code < 500 else logger.error
        log_method(
            "request.failed",
            path=request.url.path,
            kind=type(exc).__name__,
            error_code=exc.error_code,
            error=exc.message,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.public_message, exc.error_code),
    )


@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=404,
        content=_error_body("Not found", "NOT_FOUND"),
    )


@app.exception_handler(405)
async def method_not_allowed_handler(request: Request, exc: HTTPException):
    error = MethodNotAllowedError(request.method)
    logger.info("request.method_not_allowed", path=request.url.path, **error.details)
    return JSONResponse(
        status_code=error.status_code,
        content=_error_body(error.public_message, error.error_code),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("request.invalid", path=request.url.path, errors=str(exc.errors()))
    return JSONResponse(
        status_code=400,
        content=_error_body("Invalid request", "VALIDATION_ERROR"),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("request.unhandled", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal Server Error", "INTERNAL_ERROR"),
    )
