from datetime import datetime, timedelta, timezone

import jwt

from faculty_reporting.core import config


def _secret_key() -> str:
    if not config.JWT_SECRET_KEY:
        raise RuntimeError("JWT_SECRET_KEY is not configured.")
    return config.JWT_SECRET_KEY


def create_access_token(
    claims: dict,
    expires_minutes: int | None = None,
    issued_at: datetime | None = None,
) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    issued = issued_at or datetime.now(timezone.utc)
    payload = {
        **claims,
        "iat": issued,
        "exp": issued + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, _secret_key(), algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, _secret_key(), algorithms=[config.JWT_ALGORITHM])
