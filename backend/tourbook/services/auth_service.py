"""
Authentication service: signup, login, password reset and self-service
account changes. Token issuance and cookies live in the API layer.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core.errors import AppError
from tourbook.core.logging import get_logger
from tourbook.core.metrics import record_login
from tourbook.core.security import create_password_reset_token, hash_reset_token, verify_password
from tourbook.models.user import User
from tourbook.repositories.users import UserRepository
from tourbook.schemas.user import (
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UpdateMeRequest,
    UpdatePasswordRequest,
)
from tourbook.services.email_service import Email

logger = get_logger(__name__)


async def register_user(db: AsyncSession, data: SignupRequest, account_url: str) -> User:
    """
    Create a standard user and send the welcome email.
    A role in the request is ignored; duplicates surface as IntegrityError.
    """
    user = await UserRepository(db).create(data.model_dump(include={"name", "email", "password"}))
    logger.info("user_registered", user_id=user.id, email=user.email)

    await Email(user, account_url).send_welcome()
    return user


async def authenticate_user(db: AsyncSession, data: LoginRequest) -> User:
    """Return the active user for these credentials, or raise a vague 401."""
    user = await UserRepository(db).find_by_email(data.email)

    if not user or not verify_password(data.password, user.password):
        record_login(success=False)
        logger.warning("login_failed", email=data.email)
        raise AppError("Invalid email or password.", 401)

    record_login(success=True)
    logger.info("user_logged_in", user_id=user.id)
    return user


async def request_password_reset(db: AsyncSession, email: str, reset_url_base: str) -> None:
    """
    Store a hashed one-time token and email the plain token.
    If sending fails the token is discarded again.
    """
    repo = UserRepository(db)
    user = await repo.find_by_email(email)
    if not user:
        raise AppError("There is no user with that email address.", 404)

    reset_token, hashed, expires = create_password_reset_token()
    user.password_reset_token = hashed
    user.password_reset_expires = expires
    await db.flush()

    try:
        await Email(user, f"{reset_url_base}/{reset_token}").send_password_reset()
    except OSError as e:
        logger.error("password_reset_email_failed", user_id=user.id, error=str(e))
        user.password_reset_token = None
        user.password_reset_expires = None
        await db.flush()
        raise AppError("There was an error sending the email. Try again later!", 500)

    logger.info("password_reset_requested", user_id=user.id)


async def reset_password(db: AsyncSession, token: str, data: ResetPasswordRequest) -> User:
    repo = UserRepository(db)
    user = await repo.find_by_reset_token(hash_reset_token(token))
    if not user:
        raise AppError("Token is invalid or has expired", 400)

    user = await repo.save(user, {"password": data.password})
    logger.info("password_reset_completed", user_id=user.id)
    return user


async def update_password(db: AsyncSession, user: User, data: UpdatePasswordRequest) -> User:
    if not verify_password(data.password_current, user.password):
        logger.warning("password_update_failed", user_id=user.id, reason="wrong_current_password")
        raise AppError("Your current password is wrong.", 401)

    user = await UserRepository(db).save(user, {"password": data.password})
    logger.info("password_updated", user_id=user.id)
    return user


async def update_me(db: AsyncSession, user: User, data: UpdateMeRequest, photo: Optional[str] = None) -> User:
    """Update name/email (and photo) of the current user, nothing else."""
    values = data.model_dump(exclude_unset=True, exclude_none=True)
    if photo:
        values["photo"] = photo
    return await UserRepository(db).save(user, values)


async def deactivate_user(db: AsyncSession, user: User) -> None:
    user.active = False
    await db.flush()
    logger.info("user_deactivated", user_id=user.id)
