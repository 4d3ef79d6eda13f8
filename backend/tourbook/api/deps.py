"""
Auth guard pipeline as FastAPI dependencies.

    extract -> verify -> resolve -> freshness -> admit

`protect` fails closed with 401, `is_logged_in` never fails (views only adapt
to it), `restrict_to(...)` depends on `protect` so it always runs after it.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.exceptions import RequestValidationError
from jose import ExpiredSignatureError, JWTError
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core.errors import AppError
from tourbook.core.logging import get_logger
from tourbook.core.metrics import record_auth_failure
from tourbook.core.security import decode_access_token, password_changed_after
from tourbook.db.session import get_db
from tourbook.models.user import User
from tourbook.repositories.users import UserRepository

logger = get_logger(__name__)

COOKIE_NAME = "jwt"
LOGGED_OUT = "loggedout"


def _reject(reason: str, message: str) -> AppError:
    record_auth_failure(reason)
    logger.warning("auth_failed", reason=reason)
    return AppError(message, 401)


def extract_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    cookie = request.cookies.get(COOKIE_NAME)
    if cookie and cookie != LOGGED_OUT:
        return cookie
    return None


async def resolve_user(db: AsyncSession, token: str) -> User:
    try:
        claims = decode_access_token(token)
    except ExpiredSignatureError:
        raise _reject("expired", "Your token has expired! Please log in again.")
    except JWTError:
        raise _reject("invalid", "Invalid token. Please log in again.")

    try:
        user_id = int(claims["id"])
        issued_at = int(claims["iat"])
    except (KeyError, TypeError, ValueError):
        raise _reject("invalid", "Invalid token. Please log in again.")

    user = await UserRepository(db).find_by_id(user_id)
    if user is None:
        raise _reject("no_user", "The user belonging to this token no longer exists.")

    if password_changed_after(user.password_changed_at, issued_at):
        raise _reject("stale", "User recently changed password! Please log in again.")
    return user


async def protect(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    token = extract_token(request)
    if not token:
        raise _reject("missing", "You are not logged in! Please log in to get access.")

    user = await resolve_user(db, token)
    request.state.user = user
    return user


async def is_logged_in(request: Request, db: AsyncSession = Depends(get_db)) -> Optional[User]:
    request.state.user = None
    token = extract_token(request)
    if not token:
        return None
    try:
        user = await resolve_user(db, token)
    except AppError:
        return None
    request.state.user = user
    return user


def restrict_to(*roles: str):
    async def check_role(user: User = Depends(protect)) -> User:
        if user.role not in roles:
            logger.warning("permission_denied", user_id=user.id, role=user.role, allowed=roles)
            raise AppError("You do not have permission to perform this action.", 403)
        return user

    return check_role


def parse_body(schema: type[BaseModel], data: dict) -> BaseModel:
    """Validate a form/JSON payload read by hand, reporting errors like a body param."""
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        errors = [{**error, "loc": ("body", *error["loc"])} for error in e.errors()]
        raise RequestValidationError(errors)


def base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")
