import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import get_settings
from core.database import dispose_database, get_database_manager, init_database
from core.errors import ServiceError
from core.logging import setup_logging
from core.responses import error_envelope
from routes.api_v1 import api_v1_router
from services.user_service import ensure_bootstrap_admin
from version import get_version

settings = get_settings()
setup_logging(settings)
logger = logging.getLogger(__name__)

_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    422: "UNPROCESSABLE_ENTITY",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_database(settings.database_url)
    manager = get_database_manager()
    await manager.create_schema()
    async with manager.session() as session:
        await ensure_bootstrap_admin(session, settings)
    logger.info("Application startup complete (env=%s)", settings.env)
    yield
    await dispose_database()
    logger.info("Application shutdown complete")


app = FastAPI(title=settings.app_name, version=get_version(), lifespan=lifespan)

# CORS is configured here only, before any routers.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

app.include_router(api_v1_router)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.message, exc.code, exc.details),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(str(exc.detail), code),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=error_envelope("Invalid request", "VALIDATION_ERROR", details),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_envelope("Internal server error", "INTERNAL_ERROR"),
    )


@app.get("/health")
async def health() -> dict:
    """Simple health check endpoint."""
    return {"status": "ok", "version": get_version()}
