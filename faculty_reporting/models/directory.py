"""Faculty, class and course reference data."""

from sqlalchemy import Column, ForeignKey, Integer, String
from faculty_reporting.database import Base


class Faculty(Base):
    __tablename__ = "faculties"

    faculty_id = Column(Integer, primary_key=True)
    faculty_name = Column(String, nullable=False)


class SchoolClass(Base):
    """A cohort of students taught together."""
    __tablename__ = "classes"

    class_id = Column(Integer, primary_key=True)
    class_name = Column(String, nullable=False)
    year = Column(Integer)
    faculty_id = Column(Integer, ForeignKey("faculties.faculty_id"))


class Course(Base):
    __tablename__ = "courses"

    course_id = Column(Integer, primary_key=True)
    course_name = Column(String, nullable=False)
    course_code = Column(String, nullable=False)
    faculty_id = Column(Integer, ForeignKey("faculties.faculty_id"))
