"""
Booking model representing a paid reservation of a tour by a user.

Key design decisions:
- `price` is a snapshot of the tour price at payment time
- Tour and user are loaded with every booking (tour name, user name/email)
"""

from sqlalchemy import Boolean, CheckConstraint, Column, Float, ForeignKey, Integer
from sqlalchemy.orm import relationship

from tourbook.db.base import Base, TimestampMixin, version_column


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    tour_id = Column(Integer, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    price = Column(Float, nullable=False)
    paid = Column(Boolean, nullable=False, default=True)
    version = version_column()

    tour = relationship("Tour", lazy="selectin")
    user = relationship("User", lazy="selectin")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_booking_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, tour={self.tour_id}, user={self.user_id}, paid={self.paid})>"
