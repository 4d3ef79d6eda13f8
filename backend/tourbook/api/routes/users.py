"""
User endpoints: authentication, self-service account management and admin CRUD.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from tourbook.api import handler_factory as factory
from tourbook.api.deps import COOKIE_NAME, LOGGED_OUT, base_url, parse_body, protect, restrict_to
from tourbook.core.config import get_settings
from tourbook.core.errors import AppError
from tourbook.core.security import create_access_token
from tourbook.db.session import get_db
from tourbook.models.user import User
from tourbook.repositories.users import UserRepository
from tourbook.schemas.user import (
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UpdateMeRequest,
    UpdatePasswordRequest,
    UserResponse,
    UserUpdate,
)
from tourbook.services import auth_service, image_service

router = APIRouter(prefix="/users", tags=["Users"])
admin_only = [Depends(restrict_to("admin"))]


def send_token(user: User, status_code: int) -> JSONResponse:
    """Issue a JWT in the body and as an httpOnly cookie."""
    settings = get_settings()
    token = create_access_token(user.id)
    response = JSONResponse(
        status_code=status_code,
        content={
            "status": "success",
            "token": token,
            "data": {"user": factory.serialize(UserResponse, user)},
        },
    )
    max_age = settings.JWT_COOKIE_EXPIRES_IN_DAYS * 24 * 60 * 60
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=max_age,
        expires=datetime.now(timezone.utc) + timedelta(seconds=max_age),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(data: SignupRequest, request: Request, db: AsyncSession = Depends(get_db)):
    user = await auth_service.register_user(db, data, f"{base_url(request)}/me")
    return send_token(user, status.HTTP_201_CREATED)


@router.post("/login")
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await auth_service.authenticate_user(db, data)
    return send_token(user, status.HTTP_200_OK)


@router.get("/logout")
async def logout():
    response = JSONResponse(content={"status": "success"})
    response.set_cookie(COOKIE_NAME, LOGGED_OUT, max_age=10, httponly=True)
    return response


@router.post("/forgotPassword")
async def forgot_password(data: ForgotPasswordRequest, request: Request, db: AsyncSession = Depends(get_db)):
    reset_url_base = f"{base_url(request)}{get_settings().API_V1_STR}/users/resetPassword"
    await auth_service.request_password_reset(db, data.email, reset_url_base)
    return {"status": "success", "message": "Token sent to email!"}


@router.patch("/resetPassword/{token}")
async def reset_password(token: str, data: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    user = await auth_service.reset_password(db, token, data)
    return send_token(user, status.HTTP_200_OK)


@router.get("/me")
async def get_me(user: User = Depends(protect)):
    return factory.document_response(factory.serialize(UserResponse, user))


@router.patch("/updateMyPassword")
async def update_my_password(
    data: UpdatePasswordRequest,
    user: User = Depends(protect),
    db: AsyncSession = Depends(get_db),
):
    user = await auth_service.update_password(db, user, data)
    return send_token(user, status.HTTP_200_OK)


async def _read_payload(request: Request) -> tuple[dict, Optional[UploadFile]]:
    """Read a JSON or multipart body; multipart may carry a `photo` file."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        photo = form.get("photo")
        fields = {key: value for key, value in form.items() if not isinstance(value, UploadFile)}
        if isinstance(photo, UploadFile) and photo.filename:
            return fields, photo
        return fields, None

    raw = await request.body()
    if not raw:
        return {}, None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        raise AppError("Invalid JSON body.", 400)
    if not isinstance(payload, dict):
        raise AppError("Invalid JSON body.", 400)
    return payload, None


@router.patch("/updateMe")
async def update_me(request: Request, user: User = Depends(protect), db: AsyncSession = Depends(get_db)):
    """Update name, email and photo. Accepts JSON or multipart/form-data."""
    payload, photo = await _read_payload(request)
    if "password" in payload or "password_confirm" in payload:
        raise AppError("This route is not for password updates. Please use /updateMyPassword.", 400)

    data = parse_body(UpdateMeRequest, payload)
    filename = await image_service.process_user_photo(photo, user.id) if photo else None
    user = await auth_service.update_me(db, user, data, photo=filename)
    return {"status": "success", "data": {"user": factory.serialize(UserResponse, user)}}


@router.delete("/deleteMe", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(user: User = Depends(protect), db: AsyncSession = Depends(get_db)):
    await auth_service.deactivate_user(db, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Admin
factory.collection_route(router, "GET", factory.get_all(UserRepository, UserResponse), dependencies=admin_only)


async def create_user():
    raise AppError("This route is not defined! Please use /signup instead", 500)


factory.collection_route(router, "POST", create_user, dependencies=admin_only)

router.get("/{id}", dependencies=admin_only)(factory.get_one(UserRepository, UserResponse))
router.patch("/{id}", dependencies=admin_only)(factory.update_one(UserRepository, UserUpdate, UserResponse))
router.delete(
    "/{id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=admin_only,
)(factory.delete_one(UserRepository))
