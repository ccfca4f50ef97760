"""
guildhall.api.deps — FastAPI dependency injection
==================================================

Members authenticate with a signed JWT bearer token issued at login.
Every authenticated request re-reads the member row, so role changes and
deleted accounts take effect without waiting for the token to expire.
Each token carries a ``jti``; disconnecting records it in
``revoked_tokens`` so the token stops working at once.
"""

from __future__ import annotations

import os
import uuid
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from guildhall.config import GuildhallConfig, load_config
from guildhall.database.engine import create_db_engine
from guildhall.database.models import Member, RevokedToken, Role
from guildhall.services.errors import ConflictError

_WEAK_SECRETS = frozenset({
    "guildhall-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Read JWT_SECRET from the environment and refuse weak values.

    Raises RuntimeError at import time if the secret is missing, shorter
    than 32 characters, or one of the well-known placeholder values.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> GuildhallConfig:
    return load_config()


def get_session(engine: Annotated[Engine, Depends(get_engine)]):
    with Session(engine) as session:
        yield session


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------
def issue_token(member: Member, ttl_hours: int) -> str:
    payload = {
        "sub": member.id,
        "username": member.username,
        "role": member.role,
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(UTC) + timedelta(hours=ttl_hours),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def get_token_claims(
    authorization: Annotated[str | None, Header()] = None,
    engine: Engine = Depends(get_engine),
) -> dict:
    """Validate the bearer token and return its claims. Raises 401 if invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")

    jti = payload.get("jti")
    if jti:
        with Session(engine) as session:
            if session.get(RevokedToken, jti) is not None:
                raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Session ended")
    return payload


def get_current_member(
    payload: dict = Depends(get_token_claims),
    engine: Engine = Depends(get_engine),
) -> Member:
    """Return the member behind a valid token. Raises 401 if there is none."""
    with Session(engine, expire_on_commit=False) as session:
        member = session.get(Member, payload.get("sub"))
    if member is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unknown member")
    return member


def require_admin(member: Member = Depends(get_current_member)) -> Member:
    """Like :func:`get_current_member`, but 403 unless the member is an admin."""
    if member.role != Role.ADMIN:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return member


# ---------------------------------------------------------------------------
# Service errors → HTTP
# ---------------------------------------------------------------------------
def http_error(exc: ValueError) -> HTTPException:
    """Map a service-layer ``ValueError`` to the matching HTTP status."""
    if isinstance(exc, ConflictError):
        return HTTPException(status.HTTP_409_CONFLICT, str(exc))
    return HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))
