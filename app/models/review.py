"""Review model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.database import Base


class Review(Base):
    """A user's rating of a tour. One review per user and tour."""

    __tablename__ = "review"
    __table_args__ = (UniqueConstraint("tour_id", "user_id", name="uq_review_tour_user"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    review = Column(Text, nullable=False)
    rating = Column(Float, nullable=False)
    tour_id = Column(Integer, ForeignKey("tour.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    version = Column(Integer, nullable=False)

    tour = relationship("Tour", back_populates="reviews")
    user = relationship("User")

    __mapper_args__ = {"version_id_col": version}
