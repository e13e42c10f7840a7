"""
Error taxonomy shared by the repository, the search core and the API layer.
"""

from typing import Any, Optional


class ApiError(Exception):
    """Base error carrying the HTTP status it should be rendered with."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict:
        return {"error": self.name, "message": self.message, "details": self.details}


class NotFoundError(ApiError):
    status_code = 404

    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, details)


class ValidationError(ApiError):
    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Any] = None):
        super().__init__(message, details)


class DatabaseError(ApiError):
    """Store failure. The message shown to clients never includes driver detail."""

    status_code = 500

    def __init__(self, message: str = "A database error occurred", details: Optional[Any] = None):
        super().__init__(message, details)
