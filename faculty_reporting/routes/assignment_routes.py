from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from faculty_reporting.auth.dependencies import (
    ASSIGNMENT_VIEWERS,
    PL_ONLY,
    Principal,
    authorize,
    get_current_principal,
)
from faculty_reporting.core.exceptions import NotFoundOrUnauthorizedError, ValidationError
from faculty_reporting.database import ensure_database_ready, get_db, store_failure
from faculty_reporting.models.assignment import CourseAssignment
from faculty_reporting.models.directory import Course
from faculty_reporting.models.user import Role, User

router = APIRouter(tags=['assignments'])

AssignedLecturer = aliased(User)
Assigner = aliased(User)


class AssignCourseRequest(BaseModel):
    course_id: int
    lecturer_id: int


class AssignmentResponse(BaseModel):
    assignment_id: int
    course_id: int
    course_name: str = ''
    course_code: str = ''
    lecturer_id: int
    lecturer_name: str = ''
    assigned_by: int
    assigned_by_name: str = ''
    assigned_at: datetime | None = None


class AssignmentEnvelope(BaseModel):
    message: str
    assignment: AssignmentResponse


def assignment_rows_query(db: Session):
    """Assignments joined with the names they are displayed under."""
    return db.query(
        CourseAssignment,
        Course.course_name,
        Course.course_code,
        AssignedLecturer.name,
        Assigner.name,
    ).outerjoin(
        Course, Course.course_id == CourseAssignment.course_id
    ).outerjoin(
        AssignedLecturer, AssignedLecturer.user_id == CourseAssignment.lecturer_id
    ).outerjoin(
        Assigner, Assigner.user_id == CourseAssignment.assigned_by
    )


def to_assignment_response(row) -> AssignmentResponse:
    assignment, course_name, course_code, lecturer_name, assigner_name = row
    return AssignmentResponse(
        assignment_id=assignment.assignment_id,
        course_id=assignment.course_id,
        course_name=course_name or '',
        course_code=course_code or '',
        lecturer_id=assignment.lecturer_id,
        lecturer_name=lecturer_name or '',
        assigned_by=assignment.assigned_by,
        assigned_by_name=assigner_name or '',
        assigned_at=assignment.assigned_at,
    )


@router.post('/assign-course', response_model=AssignmentEnvelope, status_code=status.HTTP_201_CREATED)
def assign_course(
    data: AssignCourseRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, PL_ONLY)
    ensure_database_ready()

    try:
        if db.query(Course.course_id).filter(Course.course_id == data.course_id).first() is None:
            raise ValidationError('Course not found.')

        lecturer = db.query(User.user_id).filter(
            User.user_id == data.lecturer_id,
            User.role == Role.LECTURER,
        ).first()
        if lecturer is None:
            raise ValidationError('Lecturer not found.')

        assignment = CourseAssignment(
            course_id=data.course_id,
            lecturer_id=data.lecturer_id,
            assigned_by=principal.user_id,
        )
        db.add(assignment)
        db.commit()
        db.refresh(assignment)

        row = assignment_rows_query(db).filter(
            CourseAssignment.assignment_id == assignment.assignment_id
        ).one()
        return AssignmentEnvelope(message='Course assigned', assignment=to_assignment_response(row))
    except SQLAlchemyError as exc:
        raise store_failure(db, 'assigning course') from exc


@router.get('/assignments', response_model=list[AssignmentResponse])
def list_assignments(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, ASSIGNMENT_VIEWERS)
    ensure_database_ready()

    try:
        query = assignment_rows_query(db)
        if principal.role == Role.LECTURER:
            query = query.filter(CourseAssignment.lecturer_id == principal.user_id)

        rows = query.order_by(
            CourseAssignment.assigned_at.desc(),
            CourseAssignment.assignment_id.desc(),
        ).all()
        return [to_assignment_response(row) for row in rows]
    except SQLAlchemyError as exc:
        raise store_failure(None, 'listing assignments') from exc


@router.delete('/assignments/{assignment_id}')
def delete_assignment(
    assignment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, PL_ONLY)
    ensure_database_ready()

    try:
        deleted = db.query(CourseAssignment).filter(
            CourseAssignment.assignment_id == assignment_id,
            CourseAssignment.assigned_by == principal.user_id,
        ).delete(synchronize_session=False)

        if not deleted:
            db.rollback()
            raise NotFoundOrUnauthorizedError('Assignment not found or not created by you.')

        db.commit()
        return {'message': 'Assignment deleted'}
    except SQLAlchemyError as exc:
        raise store_failure(db, 'deleting assignment') from exc
