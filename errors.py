"""Application error taxonomy. Each error carries the HTTP status it maps to."""
from typing import Optional


class AppError(Exception):
    status_code = 500
    code = "SERVER_ERROR"
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Please provide all required fields"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Could not validate credentials"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource state conflict"


class ServerError(AppError):
    pass


class ClassificationError(ServerError):
    code = "CLASSIFICATION_FAILED"
    default_message = "Classification failed."
