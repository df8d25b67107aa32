"""JWT handling for bearer tokens issued by the identity provider."""
from datetime import datetime, timedelta
from typing import Optional

import jwt

from ncp_portal.config import settings


def create_access_token(
    subject: int,
    username: str,
    role: str,
    full_name: str = "",
) -> str:
    now = datetime.utcnow()
    expire = now + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": str(subject),
        "username": username,
        "role": role,
        "name": full_name,
        "exp": expire,
        "iat": now,
    }
    return jwt.encode(
        payload,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.PyJWTError:
        return None
