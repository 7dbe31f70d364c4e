import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from faculty_reporting.auth import jwt_handler
from faculty_reporting.auth.dependencies import ANY_ROLE, Principal, authorize, get_current_principal
from faculty_reporting.auth.passwords import hash_password, verify_password
from faculty_reporting.core.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from faculty_reporting.database import ensure_database_ready, get_db, store_failure
from faculty_reporting.models.directory import Faculty, SchoolClass
from faculty_reporting.models.user import Lecturer, ProgramLeader, ProgramReviewer, Role, Student, User

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

STAFF_PROFILE_MODELS = {
    Role.LECTURER: Lecturer,
    Role.PRL: ProgramReviewer,
    Role.PL: ProgramLeader,
}


def _require_text(value: str, field_name: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'{field_name} is required.')
    return normalized


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    role: Role
    faculty_id: int
    class_id: int | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _require_text(value, 'Name')

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = _require_text(value, 'Email').lower()
        if '@' not in normalized:
            raise ValueError('Email address is not valid.')
        return normalized

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if not value:
            raise ValueError('Password is required.')
        return value


class LoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    identifier: str = Field(validation_alias=AliasChoices('identifier', 'email', 'emailOrName'))
    password: str

    @field_validator('identifier')
    @classmethod
    def validate_identifier(cls, value: str) -> str:
        return _require_text(value, 'Email or name')

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if not value:
            raise ValueError('Password is required.')
        return value


class UserResponse(BaseModel):
    user_id: int
    name: str
    email: str
    role: Role
    faculty_id: int | None = None
    faculty_name: str = ''
    class_id: int | None = None
    created_at: datetime | None = None


class RegisterResponse(BaseModel):
    message: str
    token: str
    user: UserResponse


class LoginResponse(BaseModel):
    message: str
    token: str
    role: Role
    user: UserResponse


def build_role_profile(user: User, class_id: int | None):
    if user.role == Role.STUDENT:
        return Student(user_id=user.user_id, class_id=class_id)
    return STAFF_PROFILE_MODELS[user.role](user_id=user.user_id, faculty_id=user.faculty_id)


def issue_token(user: User) -> str:
    principal = Principal(
        user_id=user.user_id,
        role=Role(user.role),
        name=user.name,
        email=user.email,
        faculty_id=user.faculty_id,
    )
    return jwt_handler.create_access_token(principal.claims())


def load_user_projection(user: User, db: Session) -> UserResponse:
    """Password-free view of a user with the faculty name resolved."""
    faculty_name = None
    if user.faculty_id is not None:
        faculty_name = db.query(Faculty.faculty_name).filter(Faculty.faculty_id == user.faculty_id).scalar()

    class_id = None
    if user.role == Role.STUDENT:
        class_id = db.query(Student.class_id).filter(Student.user_id == user.user_id).scalar()

    return UserResponse(
        user_id=user.user_id,
        name=user.name or '',
        email=user.email or '',
        role=user.role,
        faculty_id=user.faculty_id,
        faculty_name=faculty_name or '',
        class_id=class_id,
        created_at=user.created_at,
    )


def find_login_candidate(identifier: str, db: Session) -> User | None:
    user = db.query(User).filter(func.lower(User.email) == identifier.lower()).first()
    if user is not None:
        return user

    matches = db.query(User).filter(User.name == identifier).limit(2).all()
    if len(matches) > 1:
        logger.info('Login refused: display name %r is shared by more than one user.', identifier)
        return None
    return matches[0] if matches else None


@router.post('/register', response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    if data.role == Role.STUDENT and data.class_id is None:
        raise ValidationError('class_id is required for the Student role.')

    ensure_database_ready()

    try:
        faculty = db.query(Faculty).filter(Faculty.faculty_id == data.faculty_id).first()
        if faculty is None:
            raise ValidationError('Faculty not found.')

        if data.role == Role.STUDENT:
            school_class = db.query(SchoolClass).filter(SchoolClass.class_id == data.class_id).first()
            if school_class is None:
                raise ValidationError('Class not found.')

        existing = db.query(User.user_id).filter(func.lower(User.email) == data.email).first()
        if existing:
            raise DuplicateEmailError()

        user = User(
            name=data.name,
            email=data.email,
            password=hash_password(data.password),
            role=data.role,
            faculty_id=data.faculty_id,
        )
        db.add(user)
        db.flush()
        db.add(build_role_profile(user, data.class_id))
        db.commit()
        db.refresh(user)
    except IntegrityError as exc:
        db.rollback()
        # A concurrent registration may have won the unique email index
        taken = db.query(User.user_id).filter(func.lower(User.email) == data.email).first()
        if taken:
            raise DuplicateEmailError() from exc
        raise store_failure(db, 'registering user') from exc
    except SQLAlchemyError as exc:
        raise store_failure(db, 'registering user') from exc

    logger.info('Registered user %s with role %s.', user.user_id, user.role.value)

    return RegisterResponse(
        message='User registered',
        token=issue_token(user),
        user=load_user_projection(user, db),
    )


@router.post('/login', response_model=LoginResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        user = find_login_candidate(data.identifier, db)
        if user is None or not verify_password(data.password, user.password):
            raise InvalidCredentialsError()

        return LoginResponse(
            message='Login successful',
            token=issue_token(user),
            role=user.role,
            user=load_user_projection(user, db),
        )
    except SQLAlchemyError as exc:
        raise store_failure(db, 'logging in') from exc


@router.get('/me', response_model=UserResponse)
def me(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    authorize(principal, ANY_ROLE)
    ensure_database_ready()

    try:
        user = db.query(User).filter(User.user_id == principal.user_id).first()
        if user is None:
            raise NotFoundError('User not found.')
        return load_user_projection(user, db)
    except SQLAlchemyError as exc:
        raise store_failure(db, 'loading current user') from exc
