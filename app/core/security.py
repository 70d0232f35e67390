"""
Authentication utilities for JWT tokens and password hashing.

This module provides bcrypt password hashing and JWT bearer authentication.
The authenticated principal handed to the services is the ``User`` row,
whose ``id`` and ``role`` drive ownership and coach/admin rules.
"""

from datetime import UTC, datetime, timedelta

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt  # type: ignore
from passlib.context import CryptContext  # type: ignore
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Unauthorized
from app.db.models import User
from app.db.session import get_db

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plaintext password against its hash.

    Args:
        plain_password: The plaintext password to verify
        hashed_password: The hashed password from database

    Returns:
        True if password matches, False otherwise
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Malformed hash in the database
        return False


def get_password_hash(password: str) -> str:
    """Hash a plaintext password."""
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: The data to encode in the token; ``sub`` holds the user id
        expires_delta: Optional custom expiration time

    Returns:
        JWT access token string
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.jwt_expiration_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


# Security scheme for JWT Bearer tokens
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency to get the current authenticated user from the JWT token.

    Raises:
        Unauthorized: If the token is missing, invalid, or the user is gone
    """
    if credentials is None:
        raise Unauthorized("Authentication required")

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise Unauthorized("Could not validate credentials") from None

    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise Unauthorized("Could not validate credentials") from None

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise Unauthorized("Could not validate credentials")

    return user
