from tourbook.schemas.user import (
    SignupRequest, LoginRequest, ForgotPasswordRequest, ResetPasswordRequest,
    UpdatePasswordRequest, UpdateMeRequest, UserUpdate, UserResponse,
)
from tourbook.schemas.review import ReviewCreate, ReviewUpdate, ReviewResponse
from tourbook.schemas.tour import (
    TourCreate, TourUpdate, TourResponse, TourDetailResponse,
    TourStats, MonthlyPlan, TourDistance,
)
from tourbook.schemas.booking import BookingCreate, BookingUpdate, BookingResponse

__all__ = [
    "SignupRequest", "LoginRequest", "ForgotPasswordRequest", "ResetPasswordRequest",
    "UpdatePasswordRequest", "UpdateMeRequest", "UserUpdate", "UserResponse",
    "ReviewCreate", "ReviewUpdate", "ReviewResponse",
    "TourCreate", "TourUpdate", "TourResponse", "TourDetailResponse",
    "TourStats", "MonthlyPlan", "TourDistance",
    "BookingCreate", "BookingUpdate", "BookingResponse",
]
