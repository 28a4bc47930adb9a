"""FastAPI application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shiftboard.api import (
    agents, auth, clients, contact, deliverables, feedback, health, intake, leads, portal, projects, tasks, webhooks,
)
from shiftboard.config import settings
from shiftboard.database import dispose_engine
from shiftboard.log import configure_logging
from shiftboard.services.store import StoreError, StoreUnavailableError

configure_logging(settings.debug)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("app_starting", database=bool(settings.database_url), classifier=bool(settings.anthropic_api_key))
    yield
    await dispose_engine()


app = FastAPI(
    title=settings.app_name,
    description="Lead intake, classification and client portal backend",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS - allow frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def validation_message(errors: list[dict]) -> str:
    """Collapse pydantic errors into one field-specific message."""
    if not errors:
        return "Invalid request"

    missing = []
    for err in errors:
        field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        if err.get("type") == "json_invalid":
            return "Invalid JSON in request body"
        if err.get("type") == "missing" or (
            err.get("type") == "string_too_short" and (err.get("ctx") or {}).get("min_length") == 1
        ):
            if not field:
                return "Request body is required"
            missing.append(field)
    if missing:
        return f"Missing required fields: {', '.join(missing)}"

    first = errors[0]
    msg = first.get("msg", "Invalid value")
    if first.get("type") == "value_error":
        return msg.removeprefix("Value error, ")
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    return f"{field}: {msg}" if field else msg


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    message = validation_message(exc.errors())
    logger.info("request_validation_failed", path=request.url.path, error=message)
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    health.ERRORS.labels(type="store_unavailable").inc()
    logger.error("store_unavailable_request_failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"error": "Service temporarily unavailable"})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    health.ERRORS.labels(type="store").inc()
    logger.error("store_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"error": "Database error"})


# Mount routers
app.include_router(health.router, prefix=settings.api_prefix)
app.include_router(auth.router, prefix=settings.api_prefix)
app.include_router(contact.router, prefix=settings.api_prefix)
app.include_router(leads.router, prefix=settings.api_prefix)
app.include_router(intake.router, prefix=settings.api_prefix)
app.include_router(clients.router, prefix=settings.api_prefix)
app.include_router(projects.router, prefix=settings.api_prefix)
app.include_router(tasks.router, prefix=settings.api_prefix)
app.include_router(deliverables.router, prefix=settings.api_prefix)
app.include_router(feedback.router, prefix=settings.api_prefix)
app.include_router(agents.router, prefix=settings.api_prefix)
app.include_router(portal.router, prefix=settings.api_prefix)
app.include_router(webhooks.router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
    }
