"""
JWT authentication for the StockDash API.

Provides:
- Password hashing (passlib)
- JWT token creation and validation (python-jose)
- Admin role resolution at signup
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from stockdash.api.schemas import TokenData
from stockdash.config import Settings
from stockdash.core.users import Role


logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# pbkdf2_sha256 is pure Python in passlib; no bcrypt backend needed
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


# =============================================================================
# Password Hashing
# =============================================================================


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash; malformed hashes never verify."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        logger.warning("Stored password hash is not recognised")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


# =============================================================================
# JWT Token Management
# =============================================================================


def create_access_token(
    subject: str,
    settings: Settings,
    role: Role = Role.USER,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        subject: User ID stored in the ``sub`` claim
        settings: Supplies the signing key and default lifetime
        role: Role claim (informational; authorization re-reads the user)
        expires_delta: Token lifetime override

    Returns:
        Encoded JWT token
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.token_expire_minutes)

    to_encode = {
        "sub": subject,
        "role": role.value,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> TokenData | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token string
        settings: Supplies the signing key

    Returns:
        TokenData if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None

    user_id: str | None = payload.get("sub")
    if user_id is None:
        return None
    return TokenData(user_id=user_id, role=payload.get("role", Role.USER.value))


# =============================================================================
# Roles
# =============================================================================


def resolve_role(email: str, password: str, settings: Settings) -> Role:
    """
    Role granted at signup.

    Admin when both email and password match the configured admin
    credentials; otherwise a regular user.
    """
    if not settings.admin_configured:
        return Role.USER

    email_matches = secrets.compare_digest(
        email.strip().lower().encode(),
        (settings.admin_email or "").strip().lower().encode(),
    )
    password_matches = secrets.compare_digest(
        password.encode(), (settings.admin_password or "").encode()
    )
    return Role.ADMIN if email_matches and password_matches else Role.USER
