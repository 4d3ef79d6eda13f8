"""
Pydantic schemas for review-related request/response validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from tourbook.schemas.base import PartialUpdate


class ReviewCreate(BaseModel):
    review: str = Field(..., min_length=1)
    rating: float = Field(..., ge=1, le=5)
    # Default to the nested route's tour and the logged-in user
    tour: Optional[int] = None
    user: Optional[int] = None

    model_config = {"str_strip_whitespace": True}


class ReviewUpdate(PartialUpdate):
    review: Optional[str] = Field(None, min_length=1)
    rating: Optional[float] = Field(None, ge=1, le=5)

    model_config = {"str_strip_whitespace": True}


class ReviewAuthor(BaseModel):
    id: int
    name: str
    photo: str

    model_config = {"from_attributes": True}


class ReviewResponse(BaseModel):
    id: int
    review: str
    rating: float
    tour: int = Field(validation_alias="tour_id")
    user: ReviewAuthor
    created_at: datetime
    version: int

    model_config = {"from_attributes": True}
