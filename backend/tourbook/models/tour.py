"""
Tour model with geo-located start point and guide assignments.

Key design decisions:
- `start_location` keeps the GeoJSON point; `start_lat`/`start_lng` mirror it
  into plain indexed columns for radius and distance queries
- `images`, `start_dates` and `locations` are small ordered lists stored as JSON
- Reviews reference the tour, the tour never lists review ids
- Composite index on (price, ratings_average) for the common "cheap and good" listing
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from tourbook.db.base import Base, TimestampMixin, version_column

DIFFICULTIES = ("easy", "medium", "difficult")
DEFAULT_RATINGS_AVERAGE = 4.5

tour_guides = Table(
    "tour_guides",
    Base.metadata,
    Column("tour_id", Integer, ForeignKey("tours.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Tour(Base, TimestampMixin):
    __tablename__ = "tours"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(40), unique=True, nullable=False)
    slug = Column(String(60), nullable=False, index=True)
    duration = Column(Integer, nullable=False)
    max_group_size = Column(Integer, nullable=False)
    difficulty = Column(String(20), nullable=False)
    price = Column(Float, nullable=False)
    price_discount = Column(Float, nullable=True)
    summary = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    image_cover = Column(String(255), nullable=False)
    images = Column(JSON, nullable=False, default=list)
    start_dates = Column(JSON, nullable=False, default=list)
    ratings_average = Column(Float, nullable=False, default=DEFAULT_RATINGS_AVERAGE)
    ratings_quantity = Column(Integer, nullable=False, default=0)
    secret_tour = Column(Boolean, nullable=False, default=False)
    start_location = Column(JSON, nullable=True)
    start_lat = Column(Float, nullable=True)
    start_lng = Column(Float, nullable=True)
    locations = Column(JSON, nullable=False, default=list)
    version = version_column()

    guides = relationship("User", secondary=tour_guides, lazy="selectin", order_by="User.id")
    # Only loaded on request (tour detail); plain attribute access would block the event loop
    reviews = relationship(
        "Review",
        back_populates="tour",
        lazy="raise",
        passive_deletes=True,
        order_by="Review.id",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("ratings_average >= 1 AND ratings_average <= 5", name="check_tour_ratings_average"),
        CheckConstraint("price > 0", name="check_tour_price_positive"),
        CheckConstraint("difficulty IN ('easy', 'medium', 'difficult')", name="check_tour_difficulty"),
        Index("ix_tours_price_ratings", "price", "ratings_average"),
        Index("ix_tours_start_point", "start_lat", "start_lng"),
    )

    def __repr__(self) -> str:
        return f"<Tour(id={self.id}, slug={self.slug}, price={self.price})>"
