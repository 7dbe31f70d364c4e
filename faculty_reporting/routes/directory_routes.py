from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from faculty_reporting.auth.dependencies import ANY_ROLE, PL_ONLY, Principal, authorize, get_current_principal
from faculty_reporting.core.exceptions import ConflictError, NotFoundError, ValidationError
from faculty_reporting.database import ensure_database_ready, get_db, store_failure
from faculty_reporting.models.assignment import CourseAssignment
from faculty_reporting.models.directory import Course, Faculty, SchoolClass
from faculty_reporting.models.user import Role, User

router = APIRouter(tags=['directory'])


class FacultyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    faculty_id: int
    faculty_name: str


class ClassResponse(BaseModel):
    class_id: int
    class_name: str
    year: int | None = None
    faculty_id: int | None = None
    faculty_name: str = ''


class CourseResponse(BaseModel):
    course_id: int
    course_name: str
    course_code: str
    faculty_id: int | None = None
    faculty_name: str = ''


class LecturerResponse(BaseModel):
    lecturer_id: int
    lecturer_name: str
    email: str
    faculty_id: int | None = None
    faculty_name: str = ''


class CourseRequest(BaseModel):
    course_name: str
    course_code: str
    faculty_id: int

    @field_validator('course_name', 'course_code')
    @classmethod
    def validate_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Course name and code are required.')
        return normalized


class CourseUpdateRequest(BaseModel):
    course_name: str | None = None
    course_code: str | None = None
    faculty_id: int | None = None

    @field_validator('course_name', 'course_code')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Course name and code cannot be blank.')
        return normalized


def to_course_response(course: Course, faculty_name: str | None) -> CourseResponse:
    return CourseResponse(
        course_id=course.course_id,
        course_name=course.course_name or '',
        course_code=course.course_code or '',
        faculty_id=course.faculty_id,
        faculty_name=faculty_name or '',
    )


def load_course(course_id: int, db: Session) -> CourseResponse:
    row = db.query(Course, Faculty.faculty_name).outerjoin(
        Faculty, Faculty.faculty_id == Course.faculty_id
    ).filter(Course.course_id == course_id).first()
    if row is None:
        raise NotFoundError('Course not found.')
    course, faculty_name = row
    return to_course_response(course, faculty_name)


def require_faculty(faculty_id: int, db: Session) -> None:
    if db.query(Faculty.faculty_id).filter(Faculty.faculty_id == faculty_id).first() is None:
        raise ValidationError('Faculty not found.')


@router.get('/faculties', response_model=list[FacultyResponse])
def list_faculties(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(Faculty).order_by(Faculty.faculty_name.asc()).all()
    except SQLAlchemyError as exc:
        raise store_failure(None, 'listing faculties') from exc


@router.get('/classes', response_model=list[ClassResponse])
def list_classes(
    faculty_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(SchoolClass, Faculty.faculty_name).outerjoin(
            Faculty, Faculty.faculty_id == SchoolClass.faculty_id
        )
        if faculty_id is not None:
            query = query.filter(SchoolClass.faculty_id == faculty_id)

        return [
            ClassResponse(
                class_id=school_class.class_id,
                class_name=school_class.class_name or '',
                year=school_class.year,
                faculty_id=school_class.faculty_id,
                faculty_name=faculty_name or '',
            )
            for school_class, faculty_name in query.order_by(SchoolClass.class_name.asc()).all()
        ]
    except SQLAlchemyError as exc:
        raise store_failure(None, 'listing classes') from exc


@router.get('/courses', response_model=list[CourseResponse])
def list_courses(
    faculty_id: int | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, ANY_ROLE)
    ensure_database_ready()

    try:
        query = db.query(Course, Faculty.faculty_name).outerjoin(
            Faculty, Faculty.faculty_id == Course.faculty_id
        )
        if faculty_id is not None:
            query = query.filter(Course.faculty_id == faculty_id)

        return [
            to_course_response(course, faculty_name)
            for course, faculty_name in query.order_by(Course.course_name.asc()).all()
        ]
    except SQLAlchemyError as exc:
        raise store_failure(None, 'listing courses') from exc


@router.post('/courses', response_model=CourseResponse, status_code=status.HTTP_201_CREATED)
def create_course(
    data: CourseRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, PL_ONLY)
    ensure_database_ready()

    try:
        require_faculty(data.faculty_id, db)

        course = Course(
            course_name=data.course_name,
            course_code=data.course_code,
            faculty_id=data.faculty_id,
        )
        db.add(course)
        db.commit()
        db.refresh(course)

        return load_course(course.course_id, db)
    except SQLAlchemyError as exc:
        raise store_failure(db, 'creating course') from exc


@router.put('/courses/{course_id}', response_model=CourseResponse)
def update_course(
    course_id: int,
    data: CourseUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Rename or move a course. Reports keep the name they were filed under."""
    authorize(principal, PL_ONLY)

    values = data.model_dump(exclude_unset=True, exclude_none=True)
    if not values:
        raise ValidationError('No course fields supplied.')

    ensure_database_ready()

    try:
        if 'faculty_id' in values:
            require_faculty(values['faculty_id'], db)

        updated = db.query(Course).filter(Course.course_id == course_id).update(
            values, synchronize_session=False
        )
        if not updated:
            db.rollback()
            raise NotFoundError('Course not found.')
        db.commit()

        return load_course(course_id, db)
    except SQLAlchemyError as exc:
        raise store_failure(db, 'updating course') from exc


@router.delete('/courses/{course_id}')
def delete_course(
    course_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, PL_ONLY)
    ensure_database_ready()

    try:
        assigned = db.query(CourseAssignment.assignment_id).filter(
            CourseAssignment.course_id == course_id
        ).first()
        if assigned:
            raise ConflictError('Course is still assigned to a lecturer.')

        deleted = db.query(Course).filter(Course.course_id == course_id).delete(synchronize_session=False)
        if not deleted:
            db.rollback()
            raise NotFoundError('Course not found.')
        db.commit()

        return {'message': 'Course deleted'}
    except SQLAlchemyError as exc:
        raise store_failure(db, 'deleting course') from exc


@router.get('/lecturers', response_model=list[LecturerResponse])
def list_lecturers(
    faculty_id: int | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, ANY_ROLE)
    ensure_database_ready()

    try:
        query = db.query(User, Faculty.faculty_name).outerjoin(
            Faculty, Faculty.faculty_id == User.faculty_id
        ).filter(User.role == Role.LECTURER)
        if faculty_id is not None:
            query = query.filter(User.faculty_id == faculty_id)

        return [
            LecturerResponse(
                lecturer_id=user.user_id,
                lecturer_name=user.name or '',
                email=user.email or '',
                faculty_id=user.faculty_id,
                faculty_name=faculty_name or '',
            )
            for user, faculty_name in query.order_by(User.name.asc()).all()
        ]
    except SQLAlchemyError as exc:
        raise store_failure(None, 'listing lecturers') from exc
