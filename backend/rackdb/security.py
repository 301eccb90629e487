# backend/rackdb/security.py

"""
Security helpers for RackDB.

Responsibilities:
- Admin password hashing and verification (Argon2id)
- JWT access token creation and decoding
- FastAPI dependency guarding destructive admin endpoints

There are no user accounts: a single administrator identity is configured
through the environment and receives a short-lived signed token on login.
"""

from __future__ import annotations

import hmac
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

# ---------------------------------------------------------------------------
# CONFIG
# ---------------------------------------------------------------------------

# In production, ALWAYS override these via environment variables.
SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME_IN_PRODUCTION")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

try:
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
        os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60")
    )
except ValueError:
    ACCESS_TOKEN_EXPIRE_MINUTES = 60

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_ROLE = "admin"

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# PASSWORD HASHING
# ---------------------------------------------------------------------------

_pwd_hasher = PasswordHasher(
    time_cost=int(os.getenv("ARGON2_TIME_COST", "3")),
    memory_cost=int(os.getenv("ARGON2_MEMORY_COST", "65536")),  # KiB (64MB)
    parallelism=int(os.getenv("ARGON2_PARALLELISM", "2")),
    hash_len=int(os.getenv("ARGON2_HASH_LEN", "32")),
    salt_len=int(os.getenv("ARGON2_SALT_LEN", "16")),
)


def get_password_hash(password: str) -> str:
    """Hash a password for storing in configuration (Argon2id)."""
    return _pwd_hasher.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Return True if the plain password matches the hash."""
    if not plain_password or not hashed_password:
        return False
    try:
        return _pwd_hasher.verify(hashed_password, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


_admin_password_hash: Optional[str] = os.getenv("ADMIN_PASSWORD_HASH") or None


def admin_password_hash() -> Optional[str]:
    """
    The configured admin hash.

    ADMIN_PASSWORD_HASH wins; otherwise a plain ADMIN_PASSWORD is hashed once
    on first use. With neither set, admin login is disabled.
    """
    global _admin_password_hash
    if _admin_password_hash is None:
        plain = os.getenv("ADMIN_PASSWORD")
        if plain:
            _admin_password_hash = get_password_hash(plain)
    return _admin_password_hash


def authenticate_admin(username: str, password: str) -> bool:
    hashed = admin_password_hash()
    if not hashed:
        return False
    username_ok = hmac.compare_digest(
        (username or "").strip().encode("utf-8"),
        ADMIN_USERNAME.encode("utf-8"),
    )
    # Always verify so a wrong username costs the same as a wrong password.
    password_ok = verify_password(password, hashed)
    return username_ok and password_ok


# ---------------------------------------------------------------------------
# JWT TOKENS
# ---------------------------------------------------------------------------


def create_access_token(
    *,
    data: dict,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed JWT.

    The `data` dict should already include the subject, e.g.:
        {"sub": "admin", "role": "admin"}
    """
    to_encode = data.copy()

    expire = datetime.now(timezone.utc) + (
        expires_delta
        if expires_delta is not None
        else timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])


# ---------------------------------------------------------------------------
# FASTAPI DEPENDENCIES
# ---------------------------------------------------------------------------


def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"message": detail, "field": None},
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """
    Dependency for destructive admin endpoints.

    Returns the admin subject from a valid bearer token.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _credentials_exception("Admin token required. Send header: Authorization: Bearer <JWT>")
    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError:
        raise _credentials_exception()

    subject = payload.get("sub")
    if not subject or payload.get("role") != ADMIN_ROLE:
        raise _credentials_exception()
    return subject
