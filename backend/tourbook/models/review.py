"""
Review model: one rating per user per tour.

Key design decisions:
- Unique constraint on (tour_id, user_id) rejects a second review by the same user
- The author is always loaded with the review (name and photo are shown everywhere)
"""

from sqlalchemy import CheckConstraint, Column, Float, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from tourbook.db.base import Base, TimestampMixin, version_column


class Review(Base, TimestampMixin):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    review = Column(Text, nullable=False)
    rating = Column(Float, nullable=False)
    tour_id = Column(Integer, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    version = version_column()

    tour = relationship("Tour", back_populates="reviews", lazy="raise")
    user = relationship("User", lazy="selectin")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("tour_id", "user_id", name="uq_review_tour_user"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="check_review_rating"),
    )

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, tour={self.tour_id}, user={self.user_id}, rating={self.rating})>"
