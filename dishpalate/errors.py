"""
Error taxonomy for the API and the handlers that render it.

Every error body has the same shape as a success body: a boolean
``success`` flag plus a human-readable ``message``. That includes errors
FastAPI raises before a route runs (unknown paths, bad request bodies).
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class DishPalateError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationConflict(DishPalateError):
    status_code = 400
    default_message = "User already exists"


class Unauthorized(DishPalateError):
    status_code = 401
    default_message = "Unauthorized access"


class Forbidden(DishPalateError):
    status_code = 403
    default_message = "Forbidden access"


class NotFound(DishPalateError):
    status_code = 404
    default_message = "Not found"


class InternalFailure(DishPalateError):
    status_code = 500
    default_message = "Internal server error"


def _failure(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers,
    )


def describe_validation_errors(errors) -> str:
    """Flatten pydantic errors into ``"body.email: Field required"`` style text."""
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts) or "Invalid request"


async def handle_dish_palate_error(
    request: Request, exc: DishPalateError
) -> JSONResponse:
    return _failure(exc.status_code, exc.message)


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _failure(422, describe_validation_errors(exc.errors()))


async def handle_http_error(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _failure(
        exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None)
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DishPalateError, handle_dish_palate_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
