import pytest
from pydantic import ValidationError as PydanticValidationError

from faculty_reporting.auth import jwt_handler
from faculty_reporting.core.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    ValidationError,
)
from faculty_reporting.models.user import Lecturer, Role, Student, User
from faculty_reporting.routes.auth_routes import LoginRequest, RegisterRequest, login, me, register


def _register_request(directory, **overrides) -> RegisterRequest:
    fields = {
        'name': 'Thabo Mokoena',
        'email': 'thabo@example.edu',
        'password': 'correct-horse',
        'role': 'Lecturer',
        'faculty_id': directory['faculty'].faculty_id,
    }
    fields.update(overrides)
    return RegisterRequest(**fields)


def test_register_request_normalizes_email(directory) -> None:
    request = _register_request(directory, email='  Thabo@Example.EDU ')

    assert request.email == 'thabo@example.edu'
    assert request.role == Role.LECTURER


@pytest.mark.parametrize('field', ['name', 'email'])
def test_register_request_rejects_blank_fields(directory, field: str) -> None:
    with pytest.raises(PydanticValidationError):
        _register_request(directory, **{field: '   '})


def test_register_request_rejects_unknown_role(directory) -> None:
    with pytest.raises(PydanticValidationError):
        _register_request(directory, role='Admin')


def test_register_creates_user_profile_and_token(reporting_db, directory) -> None:
    response = register(data=_register_request(directory), db=reporting_db)

    assert response.user.email == 'thabo@example.edu'
    assert response.user.faculty_name == directory['faculty'].faculty_name
    assert 'password' not in response.user.model_dump()

    stored = reporting_db.query(User).filter(User.email == 'thabo@example.edu').one()
    assert stored.password != 'correct-horse'
    assert reporting_db.query(Lecturer).filter(Lecturer.user_id == stored.user_id).count() == 1

    claims = jwt_handler.decode_access_token(response.token)
    assert claims['user_id'] == stored.user_id
    assert claims['role'] == 'Lecturer'


def test_register_student_requires_class(reporting_db, directory) -> None:
    with pytest.raises(ValidationError) as exception_info:
        register(data=_register_request(directory, role='Student'), db=reporting_db)

    assert exception_info.value.status_code == 400
    assert reporting_db.query(User).count() == 0


def test_register_student_writes_class_profile(reporting_db, directory) -> None:
    response = register(
        data=_register_request(directory, role='Student', class_id=directory['class'].class_id),
        db=reporting_db,
    )

    assert response.user.class_id == directory['class'].class_id
    assert reporting_db.query(Student).filter(Student.user_id == response.user.user_id).count() == 1


def test_register_rejects_unknown_faculty(reporting_db, directory) -> None:
    with pytest.raises(ValidationError):
        register(data=_register_request(directory, faculty_id=999), db=reporting_db)


def test_register_duplicate_email_is_conflict_without_new_row(reporting_db, directory) -> None:
    register(data=_register_request(directory), db=reporting_db)

    with pytest.raises(DuplicateEmailError) as exception_info:
        register(
            data=_register_request(directory, name='Someone Else', email='THABO@example.edu'),
            db=reporting_db,
        )

    assert exception_info.value.status_code == 409
    assert reporting_db.query(User).count() == 1


def test_login_by_email_returns_token_with_stored_role(reporting_db, make_user) -> None:
    user = make_user('Mpho Reviewer', Role.PRL, email='mpho@example.edu')

    response = login(data=LoginRequest(identifier='mpho@example.edu', password='correct-horse'), db=reporting_db)

    claims = jwt_handler.decode_access_token(response.token)
    assert response.role == Role.PRL
    assert claims['role'] == user.role.value
    assert claims['user_id'] == user.user_id
    assert claims['faculty_id'] == user.faculty_id


def test_login_accepts_email_key(reporting_db, make_user) -> None:
    make_user('Mpho Reviewer', Role.PRL, email='mpho@example.edu')

    request = LoginRequest.model_validate({'email': 'mpho@example.edu', 'password': 'correct-horse'})
    response = login(data=request, db=reporting_db)

    assert response.user.email == 'mpho@example.edu'


def test_login_accepts_email_or_name_key(reporting_db, make_user) -> None:
    make_user('Lerato Student', Role.STUDENT)

    request = LoginRequest.model_validate({'emailOrName': 'Lerato Student', 'password': 'correct-horse'})
    response = login(data=request, db=reporting_db)

    assert response.role == Role.STUDENT


def test_login_by_display_name(reporting_db, make_user) -> None:
    make_user('Lerato Student', Role.STUDENT)

    response = login(data=LoginRequest(identifier='Lerato Student', password='correct-horse'), db=reporting_db)

    assert response.role == Role.STUDENT


def test_login_refuses_ambiguous_display_name(reporting_db, make_user) -> None:
    make_user('Sam', Role.LECTURER, email='sam.one@example.edu')
    make_user('Sam', Role.STUDENT, email='sam.two@example.edu')

    with pytest.raises(InvalidCredentialsError):
        login(data=LoginRequest(identifier='Sam', password='correct-horse'), db=reporting_db)


def test_login_wrong_password_and_unknown_user_look_the_same(reporting_db, make_user) -> None:
    make_user('Mpho Reviewer', Role.PRL, email='mpho@example.edu')

    with pytest.raises(InvalidCredentialsError) as wrong_password:
        login(data=LoginRequest(identifier='mpho@example.edu', password='nope'), db=reporting_db)
    with pytest.raises(InvalidCredentialsError) as unknown_user:
        login(data=LoginRequest(identifier='ghost@example.edu', password='nope'), db=reporting_db)

    assert wrong_password.value.status_code == 401
    assert wrong_password.value.message == unknown_user.value.message


def test_me_returns_safe_projection(reporting_db, make_user, principal_for) -> None:
    user = make_user('Lerato Student', Role.STUDENT)

    response = me(principal=principal_for(user), db=reporting_db)

    assert response.user_id == user.user_id
    assert response.role == Role.STUDENT
    assert response.class_id is not None
    assert 'password' not in response.model_dump()
