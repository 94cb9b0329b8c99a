"""Tour, start date and guide association models."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from app.database import Base

DIFFICULTIES = ("easy", "medium", "difficult")

tour_guide = Table(
    "tour_guide",
    Base.metadata,
    Column("tour_id", Integer, ForeignKey("tour.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
)


class Tour(Base):
    """Bookable tour."""

    __tablename__ = "tour"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(40), unique=True, nullable=False)
    slug = Column(String(64), nullable=False, index=True)
    duration = Column(Integer, nullable=False)
    max_group_size = Column(Integer, nullable=False)
    difficulty = Column(String(16), nullable=False)
    ratings_average = Column(Float, nullable=False, default=4.5)
    ratings_quantity = Column(Integer, nullable=False, default=0)
    price = Column(Float, nullable=False)
    price_discount = Column(Float, nullable=True)
    summary = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    image_cover = Column(String(256), nullable=False)
    images = Column(JSON, nullable=False, default=list)
    start_location = Column(JSON, nullable=True)
    locations = Column(JSON, nullable=False, default=list)
    secret_tour = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    version = Column(Integer, nullable=False)

    start_dates = relationship(
        "TourStartDate",
        cascade="all, delete-orphan",
        order_by="TourStartDate.starts_at",
        passive_deletes=True,
    )
    guides = relationship("User", secondary=tour_guide, order_by="User.id")
    reviews = relationship(
        "Review",
        back_populates="tour",
        cascade="all",
        passive_deletes=True,
        order_by="Review.created_at",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def duration_weeks(self) -> float:
        return self.duration / 7


class TourStartDate(Base):
    """One scheduled departure of a tour."""

    __tablename__ = "tour_start_date"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tour_id = Column(Integer, ForeignKey("tour.id", ondelete="CASCADE"), nullable=False, index=True)
    starts_at = Column(DateTime, nullable=False)
