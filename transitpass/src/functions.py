from typing import Dict, List, Type
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from transitpass.src import schemas
from transitpass.src.exceptions import (
    APIException,
    InvalidInput,
    formatValidationError,
    logException,
)


def fuseExceptionResponses(exceptions: List[APIException]) -> Dict[int, dict]:
    """
    Generate OpenAPI response documentation by fusing multiple APIException instances.

    Args:
        exceptions (List[APIException]): List of instantiated exceptions.

    Returns:
        Dict[int, dict]: A dictionary of OpenAPI response specs grouped by status code.
    """
    responses = {}

    for exception in exceptions:
        status_code = exception.status_code
        example_key = type(exception).__name__
        example_value = {
            "summary": str(exception.headers),
            "value": {"error": exception.detail, "code": exception.code},
        }

        if status_code not in responses:
            responses[status_code] = {
                "model": schemas.ErrorResponse,
                "content": {
                    "application/json": {"examples": {example_key: example_value}}
                },
            }
        else:
            responses[status_code]["content"]["application/json"]["examples"][
                example_key
            ] = example_value

    return responses


def makeExceptionResponses(
    exceptions: List[Type[APIException] | APIException],
) -> Dict[int, dict]:
    """
    Same as `fuseExceptionResponses`, but also accepts exception classes
    that can be instantiated without arguments.
    """
    instances = [
        exception if isinstance(exception, APIException) else exception()
        for exception in exceptions
    ]
    return fuseExceptionResponses(instances)


def enumStr(enumClass) -> str:
    """
    Convert an Enum class into a comma-separated string of its members.

    Example:
        >>> enumStr(SessionAction)
        'LOGOUT: LOGOUT, UPDATE_LOCATION: UPDATE_LOCATION'
    """
    return ", ".join(f"{x.name}: {x.value}" for x in enumClass)


def errorResponse(statusCode: int, error: str, code: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=statusCode,
        content={"error": error, "code": code},
        headers=headers,
    )


def registerExceptionHandlers(app: FastAPI) -> None:
    """
    Render every error of a sub application as `{"error": ..., "code": ...}`.

    API errors keep their status and `X-Error` header. Request validation
    errors become `InvalidInput`. Anything unexpected is logged and answered
    with a bare 500 that leaks no internals.
    """

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, e: HTTPException):
        code = e.code if isinstance(e, APIException) else "HTTPException"
        return errorResponse(e.status_code, str(e.detail), code, e.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, e: RequestValidationError):
        error = InvalidInput(formatValidationError(e))
        return errorResponse(error.status_code, error.detail, error.code, error.headers)

    @app.exception_handler(Exception)
    async def unexpected_exception_handler(request: Request, e: Exception):
        logException(e)
        return errorResponse(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            "InternalServerError",
        )
