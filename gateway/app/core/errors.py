"""Shared error types.

Each error knows the HTTP status it maps to; the handler in ``main`` renders
them as ``{"error": ..., "code": ..., "request_id": ...}``. Messages are
shown to clients, so keep them generic and put details in the logs.
"""
from dataclasses import dataclass


@dataclass(eq=False)
class APIError(Exception):
    code: str
    message: str
    status_code: int = 500

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(APIError):
    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(code=code, message=message, status_code=400)


class AuthorizationError(APIError):
    def __init__(self, message: str, code: str = "FORBIDDEN"):
        super().__init__(code=code, message=message, status_code=403)


class NotFoundError(APIError):
    def __init__(self, message: str = "User not found.", code: str = "NOT_FOUND"):
        super().__init__(code=code, message=message, status_code=404)


class UpstreamError(APIError):
    def __init__(
        self,
        message: str = "Internal server error. Please try again later.",
        code: str = "UPSTREAM_ERROR",
    ):
        super().__init__(code=code, message=message, status_code=500)


class InternalError(APIError):
    def __init__(
        self,
        message: str = "Internal server error. Please try again later.",
        code: str = "INTERNAL_ERROR",
    ):
        super().__init__(code=code, message=message, status_code=500)
