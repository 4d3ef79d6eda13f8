"""
Operational errors and the centralized error translation layer.

Operational errors (AppError) are expected, user-facing failures and are
returned verbatim. Anything else is a programming or third-party fault: it is
logged with its stack and surfaced as a generic message, except in
development where the full detail is returned for debugging.
"""

import re
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tourbook.core.config import get_settings
from tourbook.core.logging import get_logger

logger = get_logger(__name__)

_PG_DUPLICATE = re.compile(r"Key \((?P<field>[^)]+)\)=\((?P<value>[^)]*)\) already exists")
_SQLITE_DUPLICATE = re.compile(r"UNIQUE constraint failed: (?P<field>[\w., ]+)")


class AppError(Exception):
    """An anticipated failure with a status code and a message safe to show."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status = "fail" if str(status_code).startswith("4") else "error"
        self.is_operational = True


class NotFoundError(AppError):
    def __init__(self, message: str = "No document found with that ID"):
        super().__init__(message, 404)


def handle_validation_error(exc: RequestValidationError) -> AppError:
    errors = exc.errors()
    for error in errors:
        loc = error.get("loc", ())
        if loc and loc[0] in ("path", "query"):
            return AppError(f"Invalid {loc[-1]}: {error.get('input')}.", 400)

    messages = []
    for error in errors:
        field = ".".join(str(part) for part in error.get("loc", ())[1:])
        msg = error.get("msg", "").removeprefix("Value error, ")
        messages.append(f"{field}: {msg}" if field else msg)
    return AppError(f"Invalid input data. {'. '.join(messages)}", 400)


def handle_integrity_error(exc: IntegrityError) -> AppError:
    text = str(exc.orig)
    match = _PG_DUPLICATE.search(text)
    if match:
        return AppError(f"Duplicate field value: {match.group('value')}. Please use another value!", 400)
    match = _SQLITE_DUPLICATE.search(text)
    if match:
        return AppError(f"Duplicate field value: {match.group('field').strip()}. Please use another value!", 400)
    if "unique" in text.lower() or "duplicate" in text.lower():
        return AppError("Duplicate field value. Please use another value!", 400)
    return AppError("Invalid input data. A referenced document does not exist or a required field is missing.", 400)


def handle_jwt_error(exc: JWTError) -> AppError:
    if isinstance(exc, ExpiredSignatureError):
        return AppError("Your token has expired! Please log in again.", 401)
    return AppError("Invalid token. Please log in again.", 401)


def translate(exc: Exception) -> Exception:
    """Map known database/credential fault shapes onto operational errors."""
    if isinstance(exc, AppError):
        return exc
    if isinstance(exc, RequestValidationError):
        return handle_validation_error(exc)
    if isinstance(exc, IntegrityError):
        return handle_integrity_error(exc)
    if isinstance(exc, JWTError):
        return handle_jwt_error(exc)
    return exc


def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api")


def send_error(request: Request, exc: Exception) -> Response:
    settings = get_settings()
    error = translate(exc)
    operational = isinstance(error, AppError)
    status_code = error.status_code if operational else 500
    status = error.status if operational else "error"

    if not operational:
        logger.error("unhandled_error", error=str(exc), exc_info=exc)

    if settings.ENVIRONMENT == "development":
        message = error.message if operational else str(exc)
        if _is_api(request):
            return JSONResponse(
                status_code=status_code,
                content={
                    "status": status,
                    "message": message,
                    "error": repr(exc),
                    "stack": traceback.format_exception(exc),
                },
            )
        return _render_error_page(request, status_code, message)

    if _is_api(request):
        if operational:
            return JSONResponse(status_code=status_code, content={"status": status, "message": error.message})
        return JSONResponse(status_code=500, content={"status": "error", "message": "Something went very wrong!"})

    if operational:
        return _render_error_page(request, status_code, error.message)
    return _render_error_page(request, status_code, "Please try again later.")


def _render_error_page(request: Request, status_code: int, message: str) -> Response:
    from tourbook.core.templating import templates

    return templates.TemplateResponse(
        request,
        "error.html",
        {"title": "Something went wrong!", "msg": message},
        status_code=status_code,
    )


async def _app_error_handler(request: Request, exc: Exception) -> Response:
    return send_error(request, exc)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    if exc.status_code == 404:
        error = AppError(f"Can't find {request.url.path} on this server!", 404)
    else:
        error = AppError(str(exc.detail), exc.status_code)
    return send_error(request, error)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _app_error_handler)
    app.add_exception_handler(IntegrityError, _app_error_handler)
    app.add_exception_handler(JWTError, _app_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _app_error_handler)
