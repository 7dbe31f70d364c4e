import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key')
os.environ.setdefault('BCRYPT_ROUNDS', '4')

from faculty_reporting.auth.dependencies import Principal  # noqa: E402
from faculty_reporting.auth.passwords import hash_password  # noqa: E402
from faculty_reporting.database import Base  # noqa: E402
from faculty_reporting.models.assignment import CourseAssignment  # noqa: E402,F401
from faculty_reporting.models.directory import Course, Faculty, SchoolClass  # noqa: E402
from faculty_reporting.models.rating import LecturerRating  # noqa: E402,F401
from faculty_reporting.models.report import Report  # noqa: E402,F401
from faculty_reporting.models.user import Role, Student, User  # noqa: E402

ROUTE_MODULES = (
    'faculty_reporting.routes.auth_routes',
    'faculty_reporting.routes.directory_routes',
    'faculty_reporting.routes.report_routes',
    'faculty_reporting.routes.assignment_routes',
    'faculty_reporting.routes.rating_routes',
)


@pytest.fixture(autouse=True)
def skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    for module in ROUTE_MODULES:
        monkeypatch.setattr(f'{module}.ensure_database_ready', lambda: None)


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def reporting_db(db_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def directory(reporting_db):
    faculty = Faculty(faculty_name='Faculty of Information and Communication Technology')
    other_faculty = Faculty(faculty_name='Faculty of Design Innovation')
    reporting_db.add_all([faculty, other_faculty])
    reporting_db.flush()

    school_class = SchoolClass(class_name='BSCSM Year 2', year=2, faculty_id=faculty.faculty_id)
    course = Course(course_name='Web Application Development', course_code='BIWA2110', faculty_id=faculty.faculty_id)
    other_course = Course(course_name='Digital Imaging', course_code='DIDI1110', faculty_id=other_faculty.faculty_id)
    reporting_db.add_all([school_class, course, other_course])
    reporting_db.commit()

    return {
        'faculty': faculty,
        'other_faculty': other_faculty,
        'class': school_class,
        'course': course,
        'other_course': other_course,
    }


@pytest.fixture
def make_user(reporting_db, directory):
    def _make_user(
        name: str,
        role: Role,
        email: str | None = None,
        password: str = 'correct-horse',
        faculty_id: int | None = None,
    ) -> User:
        user = User(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@example.edu",
            password=hash_password(password),
            role=role,
            faculty_id=faculty_id if faculty_id is not None else directory['faculty'].faculty_id,
        )
        reporting_db.add(user)
        reporting_db.flush()
        if role == Role.STUDENT:
            reporting_db.add(Student(user_id=user.user_id, class_id=directory['class'].class_id))
        reporting_db.commit()
        reporting_db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def principal_for():
    def _principal_for(user: User) -> Principal:
        return Principal(
            user_id=user.user_id,
            role=Role(user.role),
            name=user.name,
            email=user.email,
            faculty_id=user.faculty_id,
        )

    return _principal_for
