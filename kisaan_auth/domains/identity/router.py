from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from kisaan_auth.core.config import settings
from kisaan_auth.core.deps import get_db, get_principal, get_session_store, get_sms_gateway, get_token_issuer
from kisaan_auth.core.security import Principal, TokenIssuer
from kisaan_auth.domains.identity.schemas import OTPSendIn, OTPSendOut, OTPVerifyIn, OTPVerifyOut, VerifiedUserOut
from kisaan_auth.domains.identity.service import request_otp, verify_otp
from kisaan_auth.domains.identity.store import SessionStore
from kisaan_auth.domains.users.schemas import MeOut, UserOut
from kisaan_auth.domains.users.service import get_user_by_phone
from kisaan_auth.utils.sms import SmsGateway


router = APIRouter(prefix="/api/auth")


@router.post("/otp/send", response_model=OTPSendOut, response_model_exclude_none=True)
def otp_send(
    payload: OTPSendIn,
    store: SessionStore = Depends(get_session_store),
    gateway: SmsGateway = Depends(get_sms_gateway),
) -> OTPSendOut:
    session, result = request_otp(store, gateway, payload.mobile)
    # The code is echoed outside production, and whenever it only reached the console.
    echo = (not settings.is_production) or settings.otp_dev_mode or result.degraded
    return OTPSendOut(
        message=result.message,
        mobile=session.phone,
        session_id=session.session_id,
        provider=result.provider,
        expires_in=settings.otp_ttl_label,
        otp=session.code if echo else None,
    )


@router.post("/otp/verify", response_model=OTPVerifyOut)
def otp_verify(
    payload: OTPVerifyIn,
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> OTPVerifyOut:
    login = verify_otp(db, store, issuer, mobile=payload.mobile, otp=payload.otp, name=payload.name)
    return OTPVerifyOut(
        token=login.token,
        user=VerifiedUserOut(**login.user.to_public_dict(), is_new_user=login.is_new_user),
    )


@router.get("/me", response_model=MeOut)
def me(principal: Principal = Depends(get_principal), db: Session = Depends(get_db)) -> MeOut:
    user = get_user_by_phone(db, principal.phone)
    if user is None or user.id != principal.sub:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return MeOut(user=UserOut(**user.to_public_dict()))
