import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from faculty_reporting.auth.dependencies import (
    ANY_ROLE,
    LECTURER_ONLY,
    PRL_ONLY,
    Principal,
    authorize,
    get_current_principal,
)
from faculty_reporting.core.exceptions import NotFoundError, NotFoundOrUnauthorizedError, ValidationError
from faculty_reporting.database import ensure_database_ready, get_db, store_failure
from faculty_reporting.models.directory import Course, SchoolClass
from faculty_reporting.models.report import Report
from faculty_reporting.models.user import Role, Student
from faculty_reporting.routes.rating_routes import RatingResponse, ratings_for_lecturer

router = APIRouter(tags=['reports'])

logger = logging.getLogger(__name__)

STATUS_SUBMITTED = 'Submitted'
STATUS_REVIEWED = 'Reviewed'

# Only these columns may change after a report is filed; snapshots never do
MUTABLE_REPORT_FIELDS = (
    'week_of_reporting',
    'date_of_lecture',
    'students_present',
    'total_students',
    'venue',
    'lecture_time',
    'topic',
    'learning_outcomes',
    'recommendations',
)


class ReportFields(BaseModel):
    week_of_reporting: str | None = None
    date_of_lecture: str | None = None
    students_present: int | None = Field(default=None, ge=0)
    total_students: int | None = Field(default=None, ge=0)
    venue: str | None = None
    lecture_time: str | None = None
    topic: str | None = None
    learning_outcomes: str | None = None
    recommendations: str | None = None

    @field_validator(
        'week_of_reporting',
        'date_of_lecture',
        'venue',
        'lecture_time',
        'topic',
        'learning_outcomes',
        'recommendations',
    )
    @classmethod
    def strip_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip()

    @model_validator(mode='after')
    def validate_attendance(self):
        if (
            self.students_present is not None
            and self.total_students is not None
            and self.students_present > self.total_students
        ):
            raise ValueError('Students present cannot exceed total students.')
        return self


class CreateReportRequest(ReportFields):
    class_id: int | None = None
    course_id: int | None = None


class UpdateReportRequest(ReportFields):
    """Patch body. Fields outside the mutable set are ignored."""


class FeedbackRequest(BaseModel):
    feedback: str = ''


class ReportResponse(BaseModel):
    report_id: int
    lecturer_id: int
    lecturer_name: str = ''
    faculty_id: int | None = None
    class_id: int | None = None
    class_name: str = ''
    course_id: int | None = None
    course_name: str = ''
    course_code: str = ''
    week_of_reporting: str = ''
    date_of_lecture: str = ''
    students_present: int = 0
    total_students: int = 0
    venue: str = ''
    lecture_time: str = ''
    topic: str = ''
    learning_outcomes: str = ''
    recommendations: str = ''
    prl_feedback: str | None = None
    status: str = STATUS_SUBMITTED
    created_at: datetime | None = None


class ReportEnvelope(BaseModel):
    message: str
    report: ReportResponse


class LecturerDashboardResponse(BaseModel):
    reports: list[ReportResponse]
    ratings: list[RatingResponse]


def to_report_response(report: Report) -> ReportResponse:
    return ReportResponse(
        report_id=report.report_id,
        lecturer_id=report.lecturer_id,
        lecturer_name=report.lecturer_name or '',
        faculty_id=report.faculty_id,
        class_id=report.class_id,
        class_name=report.class_name or '',
        course_id=report.course_id,
        course_name=report.course_name or '',
        course_code=report.course_code or '',
        week_of_reporting=report.week_of_reporting or '',
        date_of_lecture=report.date_of_lecture or '',
        students_present=report.students_present or 0,
        total_students=report.total_students or 0,
        venue=report.venue or '',
        lecture_time=report.lecture_time or '',
        topic=report.topic or '',
        learning_outcomes=report.learning_outcomes or '',
        recommendations=report.recommendations or '',
        prl_feedback=report.prl_feedback,
        status=STATUS_REVIEWED if report.prl_feedback else STATUS_SUBMITTED,
        created_at=report.created_at,
    )


def load_report(report_id: int, db: Session) -> Report:
    report = db.query(Report).filter(Report.report_id == report_id).first()
    if report is None:
        raise NotFoundError('Report not found.')
    return report


def attendance_guard(values: dict) -> list:
    """Conditions keeping a one-sided attendance patch consistent with the stored row."""
    present = values.get('students_present')
    total = values.get('total_students')

    if present is not None and 'total_students' not in values:
        return [or_(Report.total_students.is_(None), Report.total_students >= present)]
    if total is not None and 'students_present' not in values:
        return [or_(Report.students_present.is_(None), Report.students_present <= total)]
    return []


def newest_first(query):
    return query.order_by(Report.created_at.desc(), Report.report_id.desc())


@router.post('/reports', response_model=ReportEnvelope, status_code=status.HTTP_201_CREATED)
def create_report(
    data: CreateReportRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, LECTURER_ONLY)

    if data.class_id is None or data.course_id is None:
        raise ValidationError('class_id and course_id are required.')
    if not data.topic:
        raise ValidationError('Topic is required.')

    ensure_database_ready()

    try:
        school_class = db.query(SchoolClass).filter(SchoolClass.class_id == data.class_id).first()
        if school_class is None:
            raise ValidationError('Class not found.')

        course = db.query(Course).filter(Course.course_id == data.course_id).first()
        if course is None:
            raise ValidationError('Course not found.')

        report = Report(
            lecturer_id=principal.user_id,
            lecturer_name=principal.name,
            faculty_id=principal.faculty_id if principal.faculty_id is not None else course.faculty_id,
            class_id=school_class.class_id,
            class_name=school_class.class_name,
            course_id=course.course_id,
            course_name=course.course_name,
            course_code=course.course_code,
            **data.model_dump(include=set(MUTABLE_REPORT_FIELDS)),
        )
        db.add(report)
        db.commit()
        db.refresh(report)

        return ReportEnvelope(message='Report added', report=to_report_response(report))
    except SQLAlchemyError as exc:
        raise store_failure(db, 'creating report') from exc


@router.get('/reports', response_model=list[ReportResponse])
def list_reports(
    faculty_id: int | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Reports visible to the caller, newest first.

    Lecturers see their own reports, students see the reports filed for their
    class, and reviewers and program leaders see everything.
    """
    authorize(principal, ANY_ROLE)
    ensure_database_ready()

    try:
        query = db.query(Report)

        if principal.role == Role.LECTURER:
            query = query.filter(Report.lecturer_id == principal.user_id)
        elif principal.role == Role.STUDENT:
            class_id = db.query(Student.class_id).filter(Student.user_id == principal.user_id).scalar()
            if class_id is None:
                return []
            query = query.filter(Report.class_id == class_id)

        if faculty_id is not None:
            query = query.filter(Report.faculty_id == faculty_id)

        return [to_report_response(report) for report in newest_first(query).all()]
    except SQLAlchemyError as exc:
        raise store_failure(None, 'listing reports') from exc


@router.put('/reports/{report_id}', response_model=ReportEnvelope)
def update_report(
    report_id: int,
    data: UpdateReportRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, LECTURER_ONLY)

    values = data.model_dump(include=set(MUTABLE_REPORT_FIELDS), exclude_unset=True)
    if not values:
        raise ValidationError('No report fields supplied.')

    ensure_database_ready()

    owned = (Report.report_id == report_id, Report.lecturer_id == principal.user_id)

    try:
        updated = db.query(Report).filter(*owned, *attendance_guard(values)).update(
            values, synchronize_session=False
        )

        if not updated:
            db.rollback()
            if db.query(Report.report_id).filter(*owned).first() is not None:
                raise ValidationError('Students present cannot exceed total students.')
            raise NotFoundOrUnauthorizedError('Report not found or not yours to edit.')

        db.commit()
        return ReportEnvelope(message='Report updated', report=to_report_response(load_report(report_id, db)))
    except SQLAlchemyError as exc:
        raise store_failure(db, 'updating report') from exc


@router.delete('/reports/{report_id}')
def delete_report(
    report_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, LECTURER_ONLY)
    ensure_database_ready()

    try:
        deleted = db.query(Report).filter(
            Report.report_id == report_id,
            Report.lecturer_id == principal.user_id,
        ).delete(synchronize_session=False)

        if not deleted:
            db.rollback()
            raise NotFoundOrUnauthorizedError('Report not found or not yours to delete.')

        db.commit()
        return {'message': 'Report deleted'}
    except SQLAlchemyError as exc:
        raise store_failure(db, 'deleting report') from exc


@router.put('/reports/{report_id}/feedback', response_model=ReportEnvelope)
def attach_feedback(
    report_id: int,
    data: FeedbackRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Set the reviewer feedback on any report. No other column is written."""
    authorize(principal, PRL_ONLY)

    feedback = data.feedback.strip()
    if not feedback:
        raise ValidationError('Feedback is required.')

    ensure_database_ready()

    try:
        updated = db.query(Report).filter(Report.report_id == report_id).update(
            {Report.prl_feedback: feedback}, synchronize_session=False
        )
        if not updated:
            db.rollback()
            raise NotFoundError('Report not found.')

        db.commit()
        logger.info('Reviewer %s left feedback on report %s.', principal.user_id, report_id)

        return ReportEnvelope(message='Feedback added', report=to_report_response(load_report(report_id, db)))
    except SQLAlchemyError as exc:
        raise store_failure(db, 'attaching feedback') from exc


@router.get('/lecturer-dashboard', response_model=LecturerDashboardResponse)
def lecturer_dashboard(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, LECTURER_ONLY)
    ensure_database_ready()

    try:
        reports = newest_first(db.query(Report).filter(Report.lecturer_id == principal.user_id)).all()

        return LecturerDashboardResponse(
            reports=[to_report_response(report) for report in reports],
            ratings=ratings_for_lecturer(principal.user_id, db),
        )
    except SQLAlchemyError as exc:
        raise store_failure(None, 'loading lecturer dashboard') from exc
