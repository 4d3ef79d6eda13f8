"""
Pydantic schemas for user-related request/response validation.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field, model_validator

from tourbook.schemas.base import PartialUpdate

Role = Literal["user", "guide", "lead-guide", "admin"]
Email = Annotated[EmailStr, AfterValidator(str.lower)]


class PasswordConfirmMixin(BaseModel):
    password: str = Field(..., min_length=8, max_length=128)
    password_confirm: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.password_confirm:
            raise ValueError("Passwords are not the same!")
        return self


class SignupRequest(PasswordConfirmMixin):
    name: str = Field(..., min_length=1, max_length=100)
    email: Email

    model_config = {"str_strip_whitespace": True}


class LoginRequest(BaseModel):
    email: Email
    password: str


class ForgotPasswordRequest(BaseModel):
    email: Email


class ResetPasswordRequest(PasswordConfirmMixin):
    pass


class UpdatePasswordRequest(PasswordConfirmMixin):
    password_current: str


class UpdateMeRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[Email] = None

    model_config = {"str_strip_whitespace": True}


class UserUpdate(PartialUpdate):
    """Admin update. Passwords are never changed through this schema."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[Email] = None
    photo: Optional[str] = None
    role: Optional[Role] = None
    active: Optional[bool] = None

    model_config = {"str_strip_whitespace": True}


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    photo: str
    role: str
    created_at: datetime
    version: int

    model_config = {"from_attributes": True}
