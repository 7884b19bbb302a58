from functools import lru_cache

from fastapi import Depends, HTTPException, Request, status

from kisaan_auth.core.config import settings
from kisaan_auth.core.db import SessionLocal
from kisaan_auth.core.security import InvalidCredential, Principal, TokenIssuer
from kisaan_auth.domains.identity.store import InMemorySessionStore, SessionStore
from kisaan_auth.utils.sms import SmsGateway


_session_store = InMemorySessionStore()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_store() -> SessionStore:
    return _session_store


@lru_cache
def get_sms_gateway() -> SmsGateway:
    return SmsGateway.from_settings(settings)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer.from_settings(settings)


def get_principal(request: Request, issuer: TokenIssuer = Depends(get_token_issuer)) -> Principal:
    auth = request.headers.get("authorization") or ""
    prefix = "bearer "
    if not auth.lower().startswith(prefix):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = auth[len(prefix) :].strip()
    try:
        return issuer.verify(token)
    except InvalidCredential:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
