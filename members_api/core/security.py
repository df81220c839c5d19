import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
from members_api.core.config import SECRET_KEY, ALGORITHM

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


def create_access_token(data: dict, expires_delta: timedelta = None, secret_key: str = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret_key or SECRET_KEY, algorithm=ALGORITHM)


def create_admin_token(subject: str, expires_delta: timedelta = None, secret_key: str = None) -> str:
    """Issue a bearer token for the admin members API."""
    return create_access_token(
        {"sub": subject, "role": ADMIN_ROLE},
        expires_delta=expires_delta,
        secret_key=secret_key,
    )


def decode_admin_token(token: str, secret_key: str = None) -> Optional[str]:
    """
    Decode an admin bearer token.

    Returns:
        Token subject if the token is valid and carries the admin role, None otherwise
    """
    try:
        payload = jwt.decode(token, secret_key or SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected admin token: {e}")
        return None

    if payload.get("role") != ADMIN_ROLE:
        return None
    return payload.get("sub")
