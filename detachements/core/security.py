"""Security utilities for hashing admin passwords and handling JWT bearer tokens."""

import logging
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from detachements.core.database import aget_db
from detachements.core.errors import Unauthorized
from detachements.models.admin import AdminUser

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return (password or "").encode("utf-8")[:72]


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a bcrypt hash; malformed hashes never match."""
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_jwt_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Creates a JWT (JSON Web Token) with the provided data and expiration time.

    Args:
        data (dict): The payload data to be encoded in the JWT.
        expires_delta (timedelta, optional): The time until the token expires.
            Defaults to ``ACCESS_TOKEN_EXPIRE_MINUTES``.

    Returns:
        str: The encoded JWT string.

    Note:
        The token includes standard JWT claims:
        - exp (expiration time)
        - iat (issued at time)
    """
    to_encode = data.copy()
    expires_delta = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    now = datetime.utcnow()
    to_encode.update({
        "exp": now + expires_delta,
        "iat": now
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_jwt_token(token: str) -> dict:
    """Decodes and validates a JWT token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or improperly formatted.
    """
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.ALGORITHM]
    )


async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(aget_db)
) -> AdminUser:
    """
    Dependency to get the authenticated admin from the ``Authorization: Bearer`` header.
    Raises 401 if not authenticated.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Not authenticated")

    try:
        payload = decode_jwt_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"⚠️ Rejected token: {e}")
        raise Unauthorized("Invalid token")

    admin_id = payload.get("sub")
    if not admin_id:
        raise Unauthorized("Invalid token")

    result = await db.execute(
        select(AdminUser).where(AdminUser.admin_id == admin_id)
    )
    admin = result.scalar_one_or_none()
    if not admin or not admin.is_active:
        raise Unauthorized("Admin not found")

    return admin
