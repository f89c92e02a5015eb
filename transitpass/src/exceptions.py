"""
Centralized exception handling for TransitPass Verify API.

This module provides:
- Base APIException class extending FastAPI's HTTPException.
- Custom domain-specific exceptions with appropriate status codes and headers.
- Utility functions for formatting DB errors, logging, and routing exceptions.

Usage:
    - Raise specific exceptions in route handlers or services.
    - Use `handle()` to normalize raw exceptions (DB, Redis, Pydantic) into API-friendly responses.
"""

from traceback import format_exception
from logging import getLogger
from fastapi import status, HTTPException
from sqlalchemy.exc import IntegrityError
from psycopg2.errorcodes import UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION
from pydantic import ValidationError
from redis.exceptions import RedisError


# ---------------------------------------------------------------------------
# Utility functions
# ---------------------------------------------------------------------------
def formatIntegrityError(e: IntegrityError) -> str:
    """
    Format a database integrity error into a user-friendly message.

    PostgreSQL errors carry a detail message; other drivers fall back to the
    raw driver message.
    """
    diag = getattr(e.orig, "diag", None)
    errorMessage: str = getattr(diag, "message_detail", None) or str(e.orig)
    errorMessage = errorMessage.translate({ord(i): None for i in '\\"\\.\\(\\)'})
    errorMessage = errorMessage.replace("Key ", "For ")
    errorMessage = errorMessage.replace("=", " value ")
    return errorMessage


def formatValidationError(e: ValidationError) -> str:
    """Flatten pydantic errors into one line, ex:- `pin: Field required`."""
    messages = []
    for error in e.errors():
        location = ".".join(str(part) for part in error["loc"])
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(messages)


def logException(e: Exception) -> None:
    """Log an exception with traceback using Uvicorn's error logger."""
    detail = str(format_exception(type(e), e, e.__traceback__))
    logger = getLogger("uvicorn.error")
    logger.error(detail)


# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------
class APIException(HTTPException):
    """
    Base class for all application-specific exceptions.

    Provides default handling of status_code, detail, and headers.
    The `X-Error` header doubles as the stable error code of the response body.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = None
    headers = None

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("status_code", self.status_code)
        kwargs.setdefault("detail", self.detail)
        kwargs.setdefault("headers", self.headers)
        super().__init__(*args, **kwargs)

    @property
    def code(self) -> str:
        if self.headers and "X-Error" in self.headers:
            return self.headers["X-Error"]
        return type(self).__name__


# ---------------------------------------------------------------------------
# Exception handling entrypoint
# ---------------------------------------------------------------------------
def handle(e: Exception):
    """
    Normalize and re-raise exceptions as API-friendly errors.

    Converts raw exceptions from DB, Pydantic, Redis, etc. into
    corresponding APIException subclasses. Anything else is logged
    and re-raised untouched, to be rendered as an internal error.
    """
    if isinstance(e, IntegrityError):
        sqlstate = getattr(getattr(e.orig, "diag", None), "sqlstate", None)
        if sqlstate == FOREIGN_KEY_VIOLATION:
            raise ForeignKeyViolation(formatIntegrityError(e))
        if sqlstate == UNIQUE_VIOLATION or "UNIQUE" in str(e.orig).upper():
            raise UniqueViolation(formatIntegrityError(e))
    if isinstance(e, ValidationError):
        raise InvalidInput(formatValidationError(e))
    if isinstance(e, APIException):
        raise e
    if isinstance(e, RedisError):
        raise RedisDBError(detail=str(e))

    logException(e)
    raise e


# ---------------------------------------------------------------------------
# Exception Classes
# ---------------------------------------------------------------------------
class InvalidInput(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Missing required fields"
    headers = {"X-Error": "InvalidInput"}

    def __init__(self, detail: str | None = None):
        super().__init__(detail=detail or self.detail)


class UniqueViolation(APIException):
    status_code = status.HTTP_409_CONFLICT
    headers = {"X-Error": "UniqueViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class ForeignKeyViolation(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "ForeignKeyViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class InvalidCredentials(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid conductor credentials"
    headers = {"X-Error": "InvalidCredentials"}


class InactiveAccount(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "The conductor account is not in active status"
    headers = {"X-Error": "InactiveAccount"}


class NoActiveSession(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Conductor session not found or inactive"
    headers = {"X-Error": "NoActiveSession"}


class SessionNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "No active session found"
    headers = {"X-Error": "SessionNotFound"}


class WrongRoute(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Ticket is not valid for this route"
    headers = {"X-Error": "WrongRoute"}


class RouteNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Route not found or inactive"
    headers = {"X-Error": "RouteNotFound"}


class TicketNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Ticket not found"
    headers = {"X-Error": "TicketNotFound"}


class AlreadyBoarded(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Passenger already boarded"
    headers = {"X-Error": "AlreadyBoarded"}


class TicketUnpaid(APIException):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    detail = "Ticket has not been paid"
    headers = {"X-Error": "TicketUnpaid"}


class NotYetBoarded(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Passenger must board first"
    headers = {"X-Error": "NotYetBoarded"}


class AlreadyDroppedOff(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Drop-off already confirmed"
    headers = {"X-Error": "AlreadyDroppedOff"}


class DropoffAlreadyConfirmed(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Cannot change drop-off after confirmation"
    headers = {"X-Error": "DropoffAlreadyConfirmed"}


class StationNotOnRoute(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Station not found on this route"
    headers = {"X-Error": "StationNotOnRoute"}


class InvalidFareInput(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "InvalidFareInput"}

    def __init__(self, name: str):
        detail = f"Invalid {name} provided for fare calculation"
        super().__init__(detail=detail)


class InsufficientFunds(APIException):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    detail = "Insufficient wallet balance"
    headers = {"X-Error": "InsufficientFunds"}


class WalletUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Wallet service is not reachable"
    headers = {"X-Error": "WalletUnavailable"}


class RiderDirectoryUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Rider directory is not reachable"
    headers = {"X-Error": "RiderDirectoryUnavailable"}


class LockAcquireTimeout(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    headers = {"X-Error": "LockAcquireTimeout"}
    detail = "Lock acquisition timed out"


class RedisDBError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    headers = {"X-Error": "RedisAPIError"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)
