# enrollment_ledger/main.py - FastAPI application factory
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from contextlib import asynccontextmanager
from typing import Optional
import logging
import time

from enrollment_ledger.core.config import Settings, get_settings
from enrollment_ledger.core.db import DatabaseManager
from enrollment_ledger.core.security import TokenManager
from enrollment_ledger.api.routers import enrollments, students, courses, teachers
from enrollment_ledger.schemas.common import ErrorResponse
from enrollment_ledger.services.errors import EnrollmentLedgerError

logger = logging.getLogger(__name__)

LOG_FORMATS = {
    "simple": "%(levelname)s - %(message)s",
    "detailed": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

HTTP_ERROR_KINDS = {
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
}


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format=LOG_FORMATS.get(settings.LOG_FORMAT, LOG_FORMATS["detailed"]),
    )


def _error(status_code: int, message: str, kind: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=kind).model_dump(),
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the storage handle at startup and dispose it at shutdown"""
        logger.info(f"Starting {settings.API_TITLE} ({settings.ENV})")
        logger.info(f"Database: {settings.database_location}")

        db = DatabaseManager(settings)
        db.initialize()
        if not settings.is_production:
            # production schemas are managed by Alembic
            db.create_all()

        app.state.db = db
        app.state.tokens = TokenManager(settings)
        try:
            yield
        finally:
            logger.info(f"Shutting down {settings.API_TITLE}...")
            db.close()

    app = FastAPI(
        title=settings.API_TITLE,
        description="Course enrollment with a prepaid student balance",
        version=settings.API_VERSION,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"Error processing {request.method} {request.url.path}")
            raise
        process_time = time.time() - start_time
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({process_time:.3f}s)")
        return response

    app.add_middleware(CORSMiddleware, **settings.get_cors_config())

    @app.exception_handler(EnrollmentLedgerError)
    async def ledger_error_handler(request: Request, exc: EnrollmentLedgerError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc.__cause__)
        else:
            logger.info(f"{request.method} {request.url.path} refused ({exc.kind}): {exc.message}")
        return _error(exc.status_code, exc.message, exc.kind)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid input')}" if location else first.get("msg", "Invalid input")
        return _error(status.HTTP_400_BAD_REQUEST, message, "validation_error")

    # also catches the 404/405 responses raised by routing
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        kind = HTTP_ERROR_KINDS.get(exc.status_code, "http_error")
        response = _error(exc.status_code, str(exc.detail), kind)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "internal_failure")

    @app.get("/health")
    def health_check(request: Request):
        database = request.app.state.db.health_check()
        healthy = database["status"] == "healthy"
        return JSONResponse(
            status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "healthy" if healthy else "unhealthy",
                "environment": settings.ENV,
                "version": settings.API_VERSION,
                "database": database,
            },
        )

    app.include_router(enrollments.router, prefix="/api/enrollments", tags=["Enrollments"])
    app.include_router(students.router, prefix="/api/students", tags=["Balance"])
    app.include_router(courses.router, prefix="/api/courses", tags=["Courses"])
    app.include_router(teachers.router, prefix="/api/teachers", tags=["Teachers"])

    return app


app = create_app()
