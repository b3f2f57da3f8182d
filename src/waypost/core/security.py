"""Password hashing and bearer token helpers used by the identity gateway."""
from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Any

from jose import JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from waypost.db.time import utcnow


def hash_password(password: str) -> str:
    """Hash a password for storage on an identity row."""
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check ``password`` against a hash produced by :func:`hash_password`."""
    return check_password_hash(password_hash, password)


def create_access_token(
    subject: str,
    secret_key: str,
    *,
    algorithm: str = "HS256",
    expires_minutes: int = 60,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """Create a signed JWT access token for an identity."""
    to_encode: dict[str, Any] = {
        "sub": subject,
        "role": "authenticated",
        "jti": uuid.uuid4().hex,
    }
    if extra_claims:
        to_encode.update(extra_claims)
    to_encode["exp"] = utcnow() + timedelta(minutes=expires_minutes)
    encoded_jwt: str = jwt.encode(to_encode, secret_key, algorithm=algorithm)
    return encoded_jwt


def decode_access_token(token: str, secret_key: str, *, algorithm: str = "HS256") -> dict[str, Any]:
    """Decode and verify a JWT; raises ``jose.JWTError`` when invalid or expired."""
    payload: dict[str, Any] = jwt.decode(token, secret_key, algorithms=[algorithm])
    if not payload.get("sub"):
        raise JWTError("Token has no subject")
    return payload
