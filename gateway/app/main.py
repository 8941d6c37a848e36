from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from gateway.app.api.health import router as health_router
from gateway.app.api.prompt import router as prompt_router
from gateway.app.api.users import router as users_router
from gateway.app.config.settings import settings
from gateway.app.core.errors import APIError
from gateway.app.core.logging import request_id_var, setup_logging
from gateway.app.db.session import init_db
from gateway.app.services.container import services

setup_logging(level=settings.log_level, log_file=settings.log_file or None)
logger = logging.getLogger("gateway")

GENERIC_ERROR = "Internal server error. Please try again later."

# Query parameters that must never reach the logs verbatim.
_SENSITIVE_KEYS = {"prompt", "token", "cookie", "authorization"}


def _safe_headers(request: Request) -> dict:
    allowlist = {
        "user-agent",
        "origin",
        "referer",
        "x-forwarded-for",
        "x-real-ip",
        "x-request-id",
    }
    headers = {}
    for key, value in request.headers.items():
        if key.lower() in allowlist:
            headers[key] = value
    return headers


def _safe_query(request: Request) -> dict:
    query = {}
    for key, value in request.query_params.items():
        query[key] = "***" if key.lower() in _SENSITIVE_KEYS else value
    return query


def _request_context(request: Request) -> dict:
    return {
        "method": request.method,
        "path": request.url.path,
        "query": _safe_query(request),
        "client_ip": request.client.host if request.client else None,
        "headers": _safe_headers(request),
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the record store and build outbound clients once per process."""
    init_db()
    services.build(settings)
    try:
        yield
    finally:
        await services.close()


app = FastAPI(title="PromptGate", version=settings.version, lifespan=lifespan)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        # Add security headers (safe defaults)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "no-referrer"
        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_var.reset(token)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        latency = time.time() - start_time
        route = getattr(request.scope.get("route"), "path", request.url.path)

        logger.info(
            "Request completed",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "method": request.method,
                "route": route,
                "status": response.status_code,
                "latency_ms": round(latency * 1000, 2),
            },
        )

        return response


app.add_middleware(SecurityHeadersMiddleware)
app.include_router(health_router)
app.include_router(prompt_router)
app.include_router(users_router)
# Added last so it wraps everything else and the request id is set first.
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestIDMiddleware)


def _error_response(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "code": code, "request_id": request_id},
    )


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "APIError",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "status_code": exc.status_code,
            "error_code": exc.code,
            "error_message": exc.message,
            **_request_context(request),
        },
    )
    return _error_response(request, exc.status_code, exc.code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    detail = exc.detail if isinstance(exc.detail, dict) else {"code": "HTTP_ERROR", "message": str(exc.detail)}
    logger.warning(
        "HTTPException",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "status_code": exc.status_code,
            "error_code": detail.get("code"),
            **_request_context(request),
        },
    )
    return _error_response(
        request,
        exc.status_code,
        detail.get("code", "HTTP_ERROR"),
        detail.get("message", "Request failed"),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(
        "RequestValidationError",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "error_detail": exc.errors(),
            **_request_context(request),
        },
    )
    return _error_response(request, 400, "VALIDATION_ERROR", "Invalid request")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        extra={"request_id": getattr(request.state, "request_id", "unknown"), **_request_context(request)},
        exc_info=True,
    )
    return _error_response(request, 500, "INTERNAL_ERROR", GENERIC_ERROR)
