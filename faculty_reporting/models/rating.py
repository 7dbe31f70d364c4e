"""Lecturer rating model definitions."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Text
from faculty_reporting.database import Base


class LecturerRating(Base):
    """A student's 1 to 5 rating of a lecturer."""
    __tablename__ = "lecturer_ratings"
    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_lecturer_ratings_rating_range"),
    )

    rating_id = Column(Integer, primary_key=True)
    lecturer_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    student_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now)
