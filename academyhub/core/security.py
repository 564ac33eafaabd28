"""Security utilities for password hashing and purpose-scoped JWT tokens.

Three kinds of token are issued, each signed with its own secret so that a
token minted for one purpose never verifies under another:

- access tokens (login), ``settings.jwt_secret``
- invitation tokens, ``settings.jwt_invitation_secret``
- password reset tokens, ``settings.jwt_reset_secret``
"""

import re
import secrets
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import UUID

import bcrypt
import jwt
from jwt import exceptions as jwt_exceptions

from academyhub.core.config import get_settings

settings = get_settings()

# Load common passwords list at module initialization
_COMMON_PASSWORDS_FILE = Path(__file__).parent / "common_passwords.txt"
_COMMON_PASSWORDS = set()

if _COMMON_PASSWORDS_FILE.exists():
    with open(_COMMON_PASSWORDS_FILE, encoding="utf-8") as f:
        _COMMON_PASSWORDS = {line.strip().lower() for line in f if line.strip()}


class PasswordValidationError(ValueError):
    """Raised when password validation fails."""

    pass


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpiredError(TokenError):
    """The token signature is valid but its ``exp`` claim has passed."""


class TokenInvalidError(TokenError):
    """The token is malformed or was not signed with the expected secret."""


def validate_password(password: str) -> None:
    """Validate password meets security requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    - Not in common passwords list

    Args:
        password: Plain text password to validate

    Raises:
        PasswordValidationError: If password does not meet requirements
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r'[!@#$%^&*(),.?":{}|<>]', password):
        raise PasswordValidationError("Password must contain at least one special character")

    if password.lower() in _COMMON_PASSWORDS:
        raise PasswordValidationError(
            "Password is too common. Please choose a more unique password"
        )


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    password_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Hashed password to verify against

    Returns:
        True if password matches, False otherwise
    """
    password_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(password_bytes, hashed_bytes)


def generate_temporary_password() -> str:
    """Generate the one-off credential mailed with an invitation (16 hex chars)."""
    return secrets.token_hex(8)


def create_token(data: dict, secret: str, expires_delta: timedelta) -> str:
    """Sign a JWT carrying ``data`` that expires after ``expires_delta``.

    Args:
        data: Dictionary of claims to encode in the token
        secret: Purpose-specific signing secret
        expires_delta: Lifetime of the token

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(UTC)
    to_encode = data.copy()
    to_encode.update({"iat": now, "exp": now + expires_delta})
    return jwt.encode(to_encode, secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, secret: str) -> dict:
    """Decode a JWT, telling expiry apart from any other failure.

    Args:
        token: JWT token string
        secret: Purpose-specific signing secret

    Returns:
        Decoded token payload

    Raises:
        TokenExpiredError: If the token has expired
        TokenInvalidError: If the token is malformed or badly signed
    """
    try:
        return jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except jwt_exceptions.ExpiredSignatureError as e:
        raise TokenExpiredError("Token has expired") from e
    except jwt_exceptions.PyJWTError as e:
        raise TokenInvalidError("Token is invalid") from e


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token.

    Args:
        data: Dictionary of claims to encode in the token
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return create_token({**data, "type": "access"}, settings.jwt_secret, expires_delta)


def decode_token(token: str) -> dict | None:
    """Decode and validate an access token.

    Args:
        token: JWT token string to decode

    Returns:
        Decoded token payload if valid, None otherwise
    """
    try:
        payload = verify_token(token, settings.jwt_secret)
    except TokenError:
        return None
    if payload.get("type") != "access":
        return None
    return payload


def create_invitation_token(invitation_id: UUID, version: int) -> str:
    """Create the token embedded in an invitation's activation link."""
    return create_token(
        {"id": str(invitation_id), "version": version, "type": "invitation"},
        settings.jwt_invitation_secret,
        timedelta(hours=settings.invitation_ttl_hours),
    )


def verify_invitation_token(token: str) -> dict:
    """Verify an invitation token. Raises ``TokenError`` subclasses."""
    payload = verify_token(token, settings.jwt_invitation_secret)
    if payload.get("type") != "invitation" or "id" not in payload:
        raise TokenInvalidError("Token is not an invitation token")
    return payload


def create_reset_token(user_id: UUID) -> str:
    """Create a password reset token for a user."""
    return create_token(
        {"sub": str(user_id), "type": "reset"},
        settings.jwt_reset_secret,
        timedelta(minutes=settings.reset_token_expire_minutes),
    )


def verify_reset_token(token: str) -> dict:
    """Verify a password reset token. Raises ``TokenError`` subclasses."""
    payload = verify_token(token, settings.jwt_reset_secret)
    if payload.get("type") != "reset" or "sub" not in payload:
        raise TokenInvalidError("Token is not a password reset token")
    return payload
