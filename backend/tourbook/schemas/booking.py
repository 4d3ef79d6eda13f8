"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from tourbook.schemas.base import PartialUpdate


class BookingCreate(BaseModel):
    tour: int
    user: int
    price: float = Field(..., ge=0)
    paid: bool = True


class BookingUpdate(PartialUpdate):
    tour: Optional[int] = None
    user: Optional[int] = None
    price: Optional[float] = Field(None, ge=0)
    paid: Optional[bool] = None


class BookingTour(BaseModel):
    id: int
    name: str
    slug: str

    model_config = {"from_attributes": True}


class BookingUser(BaseModel):
    id: int
    name: str
    email: str

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: int
    tour: BookingTour
    user: BookingUser
    price: float
    paid: bool
    created_at: datetime
    version: int

    model_config = {"from_attributes": True}
