"""Course assignment model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer
from faculty_reporting.database import Base


class CourseAssignment(Base):
    """A course handed to a lecturer by a program leader."""
    __tablename__ = "course_assignments"

    assignment_id = Column(Integer, primary_key=True)
    course_id = Column(Integer, ForeignKey("courses.course_id"), nullable=False)
    lecturer_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    assigned_by = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    assigned_at = Column(DateTime, default=datetime.now)
