import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from db.database import engine, Base
from db import models  # noqa: F401  registers tables on Base.metadata
from auth.routes import router as auth_router
from api.profile import router as profile_router
from api.goals import router as goals_router
from api.completed_prayers import router as completed_prayers_router
from services.request_context import TRACE_HEADER, consume_request_scope, start_request_scope
from utils.logging_utils import configure_logging

configure_logging(settings.LOG_LEVEL)
settings.validate_security_configuration()

logger = logging.getLogger("prayers.request")

# Create all tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.APP_NAME, version="1.0.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[TRACE_HEADER],
)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    if not settings.SECURITY_HEADERS_ENABLED:
        return response
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Content-Security-Policy"] = settings.SECURITY_CSP
    return response


def _log_level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    scope = start_request_scope(
        path=request.url.path,
        method=request.method,
        trace_id=request.headers.get(TRACE_HEADER),
    )
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers[TRACE_HEADER] = scope.trace_id
        return response
    except Exception:
        logger.exception(f"{request.method} {request.url.path} errored", extra={"trace_id": scope.trace_id})
        raise
    finally:
        finished = consume_request_scope() or scope
        logger.log(
            _log_level_for_status(status_code),
            f"{request.method} {request.url.path} completed",
            extra={
                "trace_id": finished.trace_id,
                "status_code": status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
                "user_id": finished.user_id,
                "db_query_count": finished.db_query_count,
                "db_query_time_ms": round(finished.db_query_time_ms, 2),
            },
        )


# Routers
app.include_router(auth_router, prefix="/api")
app.include_router(profile_router, prefix="/api")
app.include_router(goals_router, prefix="/api")
app.include_router(completed_prayers_router, prefix="/api")


@app.get("/api/health")
def health_check():
    return {"status": "ok", "app": settings.APP_NAME}
