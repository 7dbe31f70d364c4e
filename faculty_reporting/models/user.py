"""User and role profile model definitions."""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String
from faculty_reporting.database import Base


class Role(str, enum.Enum):
    """Closed set of roles a user may hold."""

    STUDENT = "Student"
    LECTURER = "Lecturer"
    PRL = "PRL"
    PL = "PL"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    role = Column(
        Enum(Role, native_enum=False, values_callable=lambda roles: [role.value for role in roles], length=16),
        nullable=False,
    )
    faculty_id = Column(Integer, ForeignKey("faculties.faculty_id"))
    created_at = Column(DateTime, default=datetime.now)


class Student(Base):
    """Student profile; every student belongs to one class."""
    __tablename__ = "students"

    user_id = Column(Integer, ForeignKey("users.user_id"), primary_key=True)
    class_id = Column(Integer, ForeignKey("classes.class_id"), nullable=False)


class Lecturer(Base):
    __tablename__ = "lecturers"

    user_id = Column(Integer, ForeignKey("users.user_id"), primary_key=True)
    faculty_id = Column(Integer, ForeignKey("faculties.faculty_id"))


class ProgramReviewer(Base):
    __tablename__ = "program_reviewers"

    user_id = Column(Integer, ForeignKey("users.user_id"), primary_key=True)
    faculty_id = Column(Integer, ForeignKey("faculties.faculty_id"))


class ProgramLeader(Base):
    __tablename__ = "program_leaders"

    user_id = Column(Integer, ForeignKey("users.user_id"), primary_key=True)
    faculty_id = Column(Integer, ForeignKey("faculties.faculty_id"))
