import os
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .db import Base, engine
from .logging import setup_logging, RequestIdMiddleware
from .models import models  # noqa: F401  (register tables on Base.metadata)
from .routes.assignments import router as assignments_router
from .routes.reports import router as reports_router
from .routes.notifications import router as notifications_router

logger = structlog.get_logger(__name__)


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Permintaan tidak valid"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid")
    return f"Permintaan tidak valid: {location} {message}".strip() if location else f"Permintaan tidak valid: {message}"


def register_exception_handlers(app: FastAPI) -> None:
    # Every non-200 response carries {"error": "..."}

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _first_validation_message(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path, method=request.method)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.database_url.startswith("sqlite:///./"):
        os.makedirs("var", exist_ok=True)
    if settings.auto_create_db:
        Base.metadata.create_all(bind=engine)
    logger.info("startup_complete", app=settings.app_name, environment=settings.environment)
    yield
    engine.dispose()
    logger.info("shutdown_complete", app=settings.app_name)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    register_exception_handlers(app)

    # Routers
    app.include_router(assignments_router)
    app.include_router(reports_router)
    app.include_router(notifications_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
