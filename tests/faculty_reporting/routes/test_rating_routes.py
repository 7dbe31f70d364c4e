import pytest
from pydantic import ValidationError as PydanticValidationError

from faculty_reporting.core.exceptions import ForbiddenError, NotFoundOrUnauthorizedError, ValidationError
from faculty_reporting.models.rating import LecturerRating
from faculty_reporting.models.user import Role
from faculty_reporting.routes.rating_routes import (
    SubmitRatingRequest,
    average_ratings_by_lecturer,
    delete_rating,
    format_average,
    list_ratings,
    submit_rating,
)


@pytest.fixture
def people(make_user, principal_for, directory):
    return {
        'student_one': principal_for(make_user('Lerato Student', Role.STUDENT)),
        'student_two': principal_for(make_user('Neo Student', Role.STUDENT)),
        'lecturer_a': principal_for(make_user('Thabo Mokoena', Role.LECTURER)),
        'lecturer_b': principal_for(make_user('Palesa Nthati', Role.LECTURER)),
        'lecturer_elsewhere': principal_for(
            make_user('Zanele Designer', Role.LECTURER, faculty_id=directory['other_faculty'].faculty_id)
        ),
        'reviewer': principal_for(make_user('Mpho Reviewer', Role.PRL)),
    }


def _rate(db, student, lecturer, rating, comment=None):
    return submit_rating(
        data=SubmitRatingRequest(lecturer_id=lecturer.user_id, rating=rating, comment=comment),
        principal=student,
        db=db,
    ).rating


def test_submit_rating_stamps_student_owner(reporting_db, people) -> None:
    rating = _rate(reporting_db, people['student_one'], people['lecturer_a'], 5, 'great')

    assert rating.student_id == people['student_one'].user_id
    assert rating.lecturer_name == 'Thabo Mokoena'
    assert rating.comment == 'great'


def test_submit_rating_is_student_only(reporting_db, people) -> None:
    with pytest.raises(ForbiddenError):
        _rate(reporting_db, people['lecturer_b'], people['lecturer_a'], 5)


@pytest.mark.parametrize('value', [0, 6, -1])
def test_submit_rating_enforces_one_to_five(reporting_db, people, value: int) -> None:
    with pytest.raises(ValidationError):
        _rate(reporting_db, people['student_one'], people['lecturer_a'], value)

    assert reporting_db.query(LecturerRating).count() == 0


@pytest.mark.parametrize('value', [4.5, '4.5', 'abc', True])
def test_rating_request_requires_an_integer(value) -> None:
    with pytest.raises(PydanticValidationError):
        SubmitRatingRequest(lecturer_id=1, rating=value)


def test_rating_request_accepts_numeric_string_from_select() -> None:
    request = SubmitRatingRequest.model_validate({'lecturer_id': 1, 'rating': '4'})

    assert request.rating == 4


def test_submit_rating_requires_a_lecturer(reporting_db, people) -> None:
    with pytest.raises(ValidationError):
        _rate(reporting_db, people['student_one'], people['reviewer'], 4)


def test_blank_comment_is_stored_as_null(reporting_db, people) -> None:
    rating = _rate(reporting_db, people['student_one'], people['lecturer_a'], 3, '   ')

    assert rating.comment is None


def test_student_deletes_own_rating(reporting_db, people) -> None:
    rating = _rate(reporting_db, people['student_one'], people['lecturer_a'], 5, 'great')

    delete_rating(rating_id=rating.rating_id, principal=people['student_one'], db=reporting_db)

    remaining = list_ratings(faculty_id=None, principal=people['student_one'], db=reporting_db)
    assert rating.rating_id not in [r.rating_id for r in remaining]


def test_other_student_cannot_delete_rating(reporting_db, people) -> None:
    rating = _rate(reporting_db, people['student_one'], people['lecturer_a'], 5)

    with pytest.raises(NotFoundOrUnauthorizedError):
        delete_rating(rating_id=rating.rating_id, principal=people['student_two'], db=reporting_db)

    assert reporting_db.query(LecturerRating).filter(LecturerRating.rating_id == rating.rating_id).count() == 1


def test_list_ratings_scopes_rows_by_role(reporting_db, people) -> None:
    own = _rate(reporting_db, people['student_one'], people['lecturer_a'], 5)
    _rate(reporting_db, people['student_two'], people['lecturer_b'], 2)

    student_view = list_ratings(faculty_id=None, principal=people['student_one'], db=reporting_db)
    lecturer_view = list_ratings(faculty_id=None, principal=people['lecturer_b'], db=reporting_db)
    reviewer_view = list_ratings(faculty_id=None, principal=people['reviewer'], db=reporting_db)

    assert [r.rating_id for r in student_view] == [own.rating_id]
    assert [r.rating for r in lecturer_view] == [2]
    assert len(reviewer_view) == 2
    assert {r.student_name for r in reviewer_view} == {'Lerato Student', 'Neo Student'}


def test_average_ratings_by_lecturer(reporting_db, people) -> None:
    for value in (5, 3, 4):
        _rate(reporting_db, people['student_one'], people['lecturer_a'], value)
    _rate(reporting_db, people['student_two'], people['lecturer_elsewhere'], 1)

    summary = average_ratings_by_lecturer(faculty_id=None, principal=people['reviewer'], db=reporting_db)
    by_name = {row.lecturer_name: row for row in summary}

    assert set(by_name) == {'Thabo Mokoena', 'Palesa Nthati'}
    assert by_name['Thabo Mokoena'].total_ratings == 3
    assert by_name['Thabo Mokoena'].average_rating == '4.0'
    assert by_name['Palesa Nthati'].total_ratings == 0
    assert by_name['Palesa Nthati'].average_rating == '0.0'


def test_average_ratings_round_half_up(reporting_db, people) -> None:
    for value in (4, 4, 4, 5):
        _rate(reporting_db, people['student_one'], people['lecturer_a'], value)

    summary = average_ratings_by_lecturer(faculty_id=None, principal=people['reviewer'], db=reporting_db)
    by_name = {row.lecturer_name: row.average_rating for row in summary}

    assert by_name['Thabo Mokoena'] == '4.3'


def test_average_ratings_for_requested_faculty(reporting_db, directory, people) -> None:
    _rate(reporting_db, people['student_two'], people['lecturer_elsewhere'], 1)

    summary = average_ratings_by_lecturer(
        faculty_id=directory['other_faculty'].faculty_id,
        principal=people['reviewer'],
        db=reporting_db,
    )

    assert [(row.lecturer_name, row.average_rating) for row in summary] == [('Zanele Designer', '1.0')]


def test_ratings_summary_is_reviewer_only(reporting_db, people) -> None:
    with pytest.raises(ForbiddenError):
        average_ratings_by_lecturer(faculty_id=None, principal=people['student_one'], db=reporting_db)


@pytest.mark.parametrize(
    ('average', 'expected'),
    [(None, '0.0'), (4, '4.0'), (3.6666666, '3.7'), (4.44, '4.4'), (4.25, '4.3'), (1.25, '1.3')],
)
def test_format_average(average, expected: str) -> None:
    assert format_average(average) == expected
