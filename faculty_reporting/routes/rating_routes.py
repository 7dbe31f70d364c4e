from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from faculty_reporting.auth.dependencies import (
    ANY_ROLE,
    PRL_ONLY,
    STUDENT_ONLY,
    Principal,
    authorize,
    get_current_principal,
)
from faculty_reporting.core.exceptions import NotFoundOrUnauthorizedError, ValidationError
from faculty_reporting.database import ensure_database_ready, get_db, store_failure
from faculty_reporting.models.rating import LecturerRating
from faculty_reporting.models.user import Role, User

router = APIRouter(tags=['ratings'])

MIN_RATING = 1
MAX_RATING = 5
MAX_COMMENT_LENGTH = 1000

RatedLecturer = aliased(User)
RatingStudent = aliased(User)


class SubmitRatingRequest(BaseModel):
    lecturer_id: int
    rating: int
    comment: str | None = None

    @field_validator('rating', mode='before')
    @classmethod
    def reject_boolean_rating(cls, value):
        if isinstance(value, bool):
            raise ValueError('Rating must be a whole number.')
        return value

    @field_validator('comment')
    @classmethod
    def validate_comment(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_COMMENT_LENGTH:
            raise ValueError(f'Comment must be {MAX_COMMENT_LENGTH} characters or fewer.')

        return normalized


class RatingResponse(BaseModel):
    rating_id: int
    lecturer_id: int
    lecturer_name: str = ''
    student_id: int
    student_name: str = ''
    rating: int
    comment: str | None = None
    created_at: datetime | None = None


class SubmitRatingResponse(BaseModel):
    message: str
    rating: RatingResponse


class LecturerRatingSummary(BaseModel):
    lecturer_id: int
    lecturer_name: str
    total_ratings: int
    average_rating: str


def format_average(average: float | None) -> str:
    """Mean rating to one decimal place, halves rounded up; "0.0" when there are no ratings."""
    return str(Decimal(str(average or 0)).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def rating_rows_query(db: Session):
    return db.query(LecturerRating, RatedLecturer.name, RatingStudent.name).outerjoin(
        RatedLecturer, RatedLecturer.user_id == LecturerRating.lecturer_id
    ).outerjoin(
        RatingStudent, RatingStudent.user_id == LecturerRating.student_id
    )


def to_rating_response(rating: LecturerRating, lecturer_name: str | None, student_name: str | None) -> RatingResponse:
    return RatingResponse(
        rating_id=rating.rating_id,
        lecturer_id=rating.lecturer_id,
        lecturer_name=lecturer_name or '',
        student_id=rating.student_id,
        student_name=student_name or '',
        rating=rating.rating,
        comment=rating.comment,
        created_at=rating.created_at,
    )


def ratings_for_lecturer(lecturer_id: int, db: Session) -> list[RatingResponse]:
    rows = rating_rows_query(db).filter(
        LecturerRating.lecturer_id == lecturer_id,
    ).order_by(LecturerRating.created_at.desc(), LecturerRating.rating_id.desc()).all()
    return [to_rating_response(*row) for row in rows]


@router.post('/rate', response_model=SubmitRatingResponse)
def submit_rating(
    data: SubmitRatingRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, STUDENT_ONLY)

    if not MIN_RATING <= data.rating <= MAX_RATING:
        raise ValidationError(f'Rating must be a whole number from {MIN_RATING} to {MAX_RATING}.')

    ensure_database_ready()

    try:
        lecturer = db.query(User).filter(
            User.user_id == data.lecturer_id,
            User.role == Role.LECTURER,
        ).first()
        if lecturer is None:
            raise ValidationError('Lecturer not found.')

        rating = LecturerRating(
            lecturer_id=lecturer.user_id,
            student_id=principal.user_id,
            rating=data.rating,
            comment=data.comment,
        )
        db.add(rating)
        db.commit()
        db.refresh(rating)

        return SubmitRatingResponse(
            message='Rating submitted',
            rating=to_rating_response(rating, lecturer.name, principal.name),
        )
    except SQLAlchemyError as exc:
        raise store_failure(db, 'submitting rating') from exc


@router.delete('/rate/{rating_id}')
def delete_rating(
    rating_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, STUDENT_ONLY)
    ensure_database_ready()

    try:
        deleted = db.query(LecturerRating).filter(
            LecturerRating.rating_id == rating_id,
            LecturerRating.student_id == principal.user_id,
        ).delete(synchronize_session=False)

        if not deleted:
            db.rollback()
            raise NotFoundOrUnauthorizedError('Rating not found or not yours to delete.')

        db.commit()
        return {'message': 'Rating deleted'}
    except SQLAlchemyError as exc:
        raise store_failure(db, 'deleting rating') from exc


@router.get('/ratings', response_model=list[RatingResponse])
def list_ratings(
    faculty_id: int | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, ANY_ROLE)
    ensure_database_ready()

    try:
        query = rating_rows_query(db)

        if principal.role == Role.STUDENT:
            query = query.filter(LecturerRating.student_id == principal.user_id)
        elif principal.role == Role.LECTURER:
            query = query.filter(LecturerRating.lecturer_id == principal.user_id)

        if faculty_id is not None:
            query = query.filter(RatedLecturer.faculty_id == faculty_id)

        rows = query.order_by(LecturerRating.created_at.desc(), LecturerRating.rating_id.desc()).all()
        return [to_rating_response(*row) for row in rows]
    except SQLAlchemyError as exc:
        raise store_failure(None, 'listing ratings') from exc


@router.get('/ratings-summary', response_model=list[LecturerRatingSummary])
def average_ratings_by_lecturer(
    faculty_id: int | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    authorize(principal, PRL_ONLY)
    ensure_database_ready()

    target_faculty_id = faculty_id if faculty_id is not None else principal.faculty_id

    try:
        query = db.query(
            User.user_id,
            User.name,
            func.count(LecturerRating.rating_id),
            func.avg(LecturerRating.rating),
        ).outerjoin(
            LecturerRating, LecturerRating.lecturer_id == User.user_id
        ).filter(User.role == Role.LECTURER)

        if target_faculty_id is not None:
            query = query.filter(User.faculty_id == target_faculty_id)

        rows = query.group_by(User.user_id, User.name).order_by(User.name.asc()).all()

        return [
            LecturerRatingSummary(
                lecturer_id=lecturer_id,
                lecturer_name=lecturer_name or '',
                total_ratings=total or 0,
                average_rating=format_average(average),
            )
            for lecturer_id, lecturer_name, total, average in rows
        ]
    except SQLAlchemyError as exc:
        raise store_failure(None, 'summarizing ratings') from exc
