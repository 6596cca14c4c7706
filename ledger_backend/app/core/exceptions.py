"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.

Taxonomy:
- ValidationError: caller input is wrong, nothing persisted (400)
- ImmutableEntryError / LockedDocumentError: mutation of posted or settled state (409)
- NotFoundError: unknown id (404)
- AlreadyPostedError / AlreadyPaidError: double application refused (409)

Integrity findings (unbalanced trial balance, projection drift) are never
raised; they are returned inside report payloads.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


# Validation

class ValidationError(AppException):
    """Caller input is invalid. Nothing has been persisted."""

    def __init__(self, message: str, error_code: str = "ERR_VALIDATION_001", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class UnbalancedEntryError(ValidationError):
    """Total debits and total credits of a journal entry differ."""

    def __init__(self, total_debit, total_credit):
        difference = total_debit - total_credit
        super().__init__(
            message=f"Journal entry is not balanced. Debit: {total_debit}, Credit: {total_credit}",
            error_code="ERR_VALIDATION_UNBALANCED",
            details={
                "total_debit": str(total_debit),
                "total_credit": str(total_credit),
                "difference": str(difference),
            }
        )


class DegenerateLineError(ValidationError):
    """A journal line carries both amounts, neither, or a negative one."""

    def __init__(self, line_number: int, reason: str):
        super().__init__(
            message=f"Line {line_number}: {reason}",
            error_code="ERR_VALIDATION_DEGENERATE_LINE",
            details={"line_number": line_number, "reason": reason}
        )


class InsufficientLinesError(ValidationError):
    """A journal entry must touch at least two lines."""

    def __init__(self, line_count: int):
        super().__init__(
            message=f"Journal entry must have at least 2 lines, got {line_count}",
            error_code="ERR_VALIDATION_INSUFFICIENT_LINES",
            details={"line_count": line_count}
        )


class UnknownAccountError(ValidationError):
    """A line references an account that does not exist or is inactive."""

    def __init__(self, account_code: str, line_number: int = None, inactive: bool = False):
        reason = "is inactive" if inactive else "does not exist"
        prefix = f"Line {line_number}: " if line_number else ""
        super().__init__(
            message=f"{prefix}Account {account_code} {reason}",
            error_code="ERR_VALIDATION_ACCOUNT",
            details={"account_code": account_code, "line_number": line_number, "inactive": inactive}
        )


class InvalidDocumentError(ValidationError):
    """A purchase/sales/return document is malformed."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message=message, error_code="ERR_VALIDATION_DOCUMENT", details=details)


# Immutability

class ImmutableEntryError(AppException):
    """Posted journal entries cannot be changed or removed."""

    def __init__(self, entry_id: int, journal_number: str = None):
        super().__init__(
            message=f"Journal entry {journal_number or entry_id} is posted and cannot be modified",
            error_code="ERR_IMMUTABLE_ENTRY",
            status_code=status.HTTP_409_CONFLICT,
            details={"id": entry_id, "journal_number": journal_number}
        )


class LockedDocumentError(AppException):
    """Paid or cancelled documents cannot be changed."""

    def __init__(self, document_number: str, document_status: str):
        super().__init__(
            message=f"Document {document_number} is {document_status} and cannot be modified",
            error_code="ERR_LOCKED_DOCUMENT",
            status_code=status.HTTP_409_CONFLICT,
            details={"document_number": document_number, "status": document_status}
        )


# Lookup

class NotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None, error_code: str = "ERR_NOT_FOUND_001"):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class PartyNotFoundError(NotFoundError):
    def __init__(self, party_id: Any):
        super().__init__("Party", party_id, error_code="ERR_NOT_FOUND_PARTY")


# Double application

class AlreadyPostedError(AppException):
    def __init__(self, entry_id: int, journal_number: str = None):
        super().__init__(
            message=f"Journal entry {journal_number or entry_id} is already posted",
            error_code="ERR_ALREADY_POSTED",
            status_code=status.HTTP_409_CONFLICT,
            details={"id": entry_id, "journal_number": journal_number}
        )


class AlreadyPaidError(AppException):
    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            message=f"{resource} {resource_id} is already paid",
            error_code="ERR_ALREADY_PAID",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource": resource, "id": resource_id}
        )


class AlreadyReversedError(AppException):
    def __init__(self, entry_id: int, reversal_id: int):
        super().__init__(
            message=f"Journal entry {entry_id} has already been reversed by entry {reversal_id}",
            error_code="ERR_ALREADY_REVERSED",
            status_code=status.HTTP_409_CONFLICT,
            details={"id": entry_id, "reversal_id": reversal_id}
        )


# Conflicts

class DuplicateResourceError(AppException):
    def __init__(self, resource: str, key: Dict[str, Any]):
        super().__init__(
            message=f"{resource} already exists",
            error_code="ERR_DUPLICATE",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource": resource, **key}
        )


class ResourceInUseError(AppException):
    """Deleting a referenced account or party is refused; deactivate instead."""

    def __init__(self, resource: str, resource_id: Any, references: int):
        super().__init__(
            message=f"{resource} {resource_id} has {references} referencing records. Consider deactivating instead.",
            error_code="ERR_IN_USE",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource": resource, "id": resource_id, "references": references}
        )


class ConcurrentPostingError(AppException):
    """Another transaction updated the same balance first. The operation was rolled back."""

    def __init__(self, resource: str, keys: List[Any]):
        super().__init__(
            message=f"Concurrent update detected on {resource}; the operation was rolled back",
            error_code="ERR_CONCURRENT_UPDATE",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource": resource, "keys": [str(k) for k in keys]}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc.errors())
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )


def jsonable_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # pydantic puts the raw exception / Decimal input into ctx and input
    cleaned = []
    for error in errors:
        item = {k: v for k, v in error.items() if k not in ("ctx", "input", "url")}
        cleaned.append(item)
    return cleaned
