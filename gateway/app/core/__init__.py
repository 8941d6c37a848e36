from gateway.app.config.settings import settings

from .errors import (
    APIError,
    AuthorizationError,
    InternalError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from .logging import request_id_var, setup_logging

__all__ = [
    "settings",
    "APIError",
    "AuthorizationError",
    "InternalError",
    "NotFoundError",
    "UpstreamError",
    "ValidationError",
    "request_id_var",
    "setup_logging",
]
