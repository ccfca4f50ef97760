"""
guildhall.api.auth — Signup, login, wallet connect and session
===============================================================

Two ways in: email + password (``/signup``, ``/login``) or a wallet address
(``/connect``, which creates the member on first use).  Both hand back the
same bearer-token session payload.  ``/disconnect`` revokes the token that
made the request.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import delete

from guildhall.api.deps import (
    get_config,
    get_current_member,
    get_engine,
    get_token_claims,
    http_error,
    issue_token,
)
from guildhall.api.serializers import member_dict
from guildhall.config import GuildhallConfig
from guildhall.database.engine import get_session, run_db
from guildhall.database.models import Member, RevokedToken
from guildhall.services import member_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


class SignupBody(BaseModel):
    email: str
    password: str
    username: str


class LoginBody(BaseModel):
    email: str
    password: str


class ConnectBody(BaseModel):
    wallet_address: str


def _session_payload(member: Member, cfg: GuildhallConfig) -> dict:
    return {
        "token": issue_token(member, cfg.session_ttl_hours),
        "token_type": "bearer",
        "expires_in": cfg.session_ttl_hours * 3600,
        "user": member_dict(member, private=True),
    }


@router.post("/signup", status_code=201)
async def signup(
    body: SignupBody,
    cfg: GuildhallConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    """Create an account and log it straight in."""
    try:
        member = await run_db(
            member_service.signup,
            engine,
            email=body.email,
            password=body.password,
            username=body.username,
        )
    except ValueError as exc:
        raise http_error(exc)
    return _session_payload(member, cfg)


@router.post("/login")
async def login(
    body: LoginBody,
    cfg: GuildhallConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    member = await run_db(member_service.authenticate, engine, body.email, body.password)
    if member is None:
        raise HTTPException(401, "Invalid email or password")
    logger.info("Member %s logged in", member.username)
    return _session_payload(member, cfg)


@router.get("/session")
async def session(member: Member = Depends(get_current_member)):
    """Return the logged-in member's own profile."""
    return {"user": member_dict(member, private=True)}


# ---------------------------------------------------------------------------
# Wallet sign-in
# ---------------------------------------------------------------------------
def _revoke_token(engine, jti: str, expires_at: datetime) -> None:
    """Persist a revoked token ID and prune entries past their expiry."""
    with get_session(engine) as session:
        session.execute(delete(RevokedToken).where(RevokedToken.expires_at < datetime.now(UTC)))
        if session.get(RevokedToken, jti) is None:
            session.add(RevokedToken(jti=jti, expires_at=expires_at))


@router.post("/connect")
async def connect(
    body: ConnectBody,
    cfg: GuildhallConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    """Log in with a wallet address, creating the member on first use."""
    try:
        member, created = await run_db(member_service.connect_wallet, engine, body.wallet_address)
    except ValueError as exc:
        raise http_error(exc)
    logger.info("Wallet member %s connected", member.username)
    return {**_session_payload(member, cfg), "is_new": created}


@router.post("/disconnect")
async def disconnect(claims: dict = Depends(get_token_claims), engine=Depends(get_engine)):
    """End the current session by revoking its token."""
    jti = claims.get("jti")
    if jti:
        expires_at = datetime.fromtimestamp(claims["exp"], UTC)
        await run_db(_revoke_token, engine, jti, expires_at)
    logger.info("Session ended for %s", claims.get("username"))
    return {"ok": True}
