"""
Custom exception classes and error handling.

Provides consistent error responses across the API, plus the non-HTTP
UpstreamDataError raised by the engagement read layer.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any
from uuid import UUID


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )


class UnauthorizedError(APIException):
    """Authentication required."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class ForbiddenError(APIException):
    """Access denied."""

    def __init__(self, detail: str = "Access denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN"
        )


class UpstreamDataError(Exception):
    """
    A read collaborator failed (timeout, connection error, bad query).

    Batch views isolate this per member; single-member lookups let it
    propagate so the caller sees the failure.
    """

    def __init__(self, operation: str, member_id: Optional[UUID] = None, detail: Optional[str] = None):
        self.operation = operation
        self.member_id = member_id
        self.detail = detail
        message = f"{operation} failed"
        if member_id is not None:
            message += f" for member {member_id}"
        if detail:
            message += f": {detail}"
        super().__init__(message)
