"""
JWT session management
"""
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from config import get_settings

settings = get_settings()

PASSWORD_RESET_PURPOSE = "password_reset"


def create_access_token(user) -> str:
    """
    Create JWT access token for user

    Args:
        user: User model with user_id, email, username, role

    Returns:
        JWT token string
    """
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.jwt_expire_minutes)

    payload = {
        "sub": str(user.user_id),
        "email": user.email,
        "name": user.username,
        "role": user.role.value,
        "exp": expire,
        "iat": now
    }

    token = jwt.encode(
        payload,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )

    return token


def decode_access_token(token: str) -> dict:
    """
    Decode and validate JWT token

    Returns:
        Decoded payload dict

    Raises:
        jose.JWTError if token invalid/expired
    """
    payload = jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm]
    )

    if payload.get("purpose"):
        # Reset tokens must not open a session
        raise JWTError("Not an access token")

    return payload


def create_password_reset_token(user) -> str:
    """Short-lived token authorizing one password change"""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.user_id),
        "email": user.email,
        "purpose": PASSWORD_RESET_PURPOSE,
        "exp": now + timedelta(minutes=settings.password_reset_expire_minutes),
        "iat": now
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_password_reset_token(token: str) -> dict:
    """
    Raises:
        jose.JWTError if the token is invalid, expired or not a reset token
    """
    payload = jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm]
    )
    if payload.get("purpose") != PASSWORD_RESET_PURPOSE:
        raise JWTError("Not a password reset token")
    return payload
