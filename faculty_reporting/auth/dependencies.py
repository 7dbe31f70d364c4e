from dataclasses import dataclass

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from faculty_reporting.auth import jwt_handler
from faculty_reporting.core.exceptions import ForbiddenError, InvalidTokenError, MissingTokenError
from faculty_reporting.models.user import Role

security = HTTPBearer(auto_error=False)

LECTURER_ONLY = frozenset({Role.LECTURER})
PRL_ONLY = frozenset({Role.PRL})
PL_ONLY = frozenset({Role.PL})
STUDENT_ONLY = frozenset({Role.STUDENT})
ASSIGNMENT_VIEWERS = frozenset({Role.PL, Role.PRL, Role.LECTURER})
ANY_ROLE = frozenset(Role)


@dataclass(frozen=True)
class Principal:
    """Identity decoded from a verified access token."""

    user_id: int
    role: Role
    name: str
    email: str | None = None
    faculty_id: int | None = None

    def claims(self) -> dict:
        return {
            "user_id": self.user_id,
            "role": self.role.value,
            "name": self.name,
            "email": self.email,
            "faculty_id": self.faculty_id,
        }


def principal_from_token(token: str) -> Principal:
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise InvalidTokenError() from exc

    try:
        faculty_id = payload.get("faculty_id")
        return Principal(
            user_id=int(payload["user_id"]),
            role=Role(payload["role"]),
            name=str(payload.get("name") or ""),
            email=payload.get("email"),
            faculty_id=int(faculty_id) if faculty_id is not None else None,
        )
    except (KeyError, TypeError, ValueError) as exc:
        # Unknown role strings land here and never authorize
        raise InvalidTokenError() from exc


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise MissingTokenError()
    return principal_from_token(credentials.credentials)


def authorize(principal: Principal, allowed_roles: frozenset[Role]) -> Principal:
    if not isinstance(principal.role, Role) or principal.role not in allowed_roles:
        raise ForbiddenError()
    return principal
