"""Lecture report model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from faculty_reporting.database import Base


class Report(Base):
    """A weekly lecture report owned by the lecturer who submitted it.

    ``lecturer_name``, ``class_name``, ``course_name`` and ``course_code`` are
    snapshots taken when the report is created. They are never rewritten, so a
    later rename of the course or class leaves historical reports untouched.
    """
    __tablename__ = "reports"

    report_id = Column(Integer, primary_key=True)
    lecturer_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    lecturer_name = Column(String)
    faculty_id = Column(Integer, ForeignKey("faculties.faculty_id"))

    class_id = Column(Integer, ForeignKey("classes.class_id"))
    class_name = Column(String)
    course_id = Column(Integer, ForeignKey("courses.course_id"))
    course_name = Column(String)
    course_code = Column(String)

    week_of_reporting = Column(String)
    date_of_lecture = Column(String)
    students_present = Column(Integer)
    total_students = Column(Integer)
    venue = Column(String)
    lecture_time = Column(String)
    topic = Column(String)
    learning_outcomes = Column(Text)
    recommendations = Column(Text)

    prl_feedback = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now)
