import enum
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from kisaan_auth.core.config import settings
from kisaan_auth.core.security import TokenIssuer, generate_otp
from kisaan_auth.domains.identity.errors import (
    NameRequired,
    OTPAttemptsExhausted,
    OTPDeliveryFailed,
    OTPExpired,
    OTPMismatch,
    OTPSessionNotFound,
    OTPValidationError,
)
from kisaan_auth.domains.identity.models import OTPSession
from kisaan_auth.domains.identity.store import SessionStore
from kisaan_auth.domains.users.models import User
from kisaan_auth.domains.users.service import get_user_by_phone, upsert_user
from kisaan_auth.utils.sms import DeliveryResult, SmsGateway

logger = logging.getLogger(__name__)

MOBILE_RE = re.compile(r"[6-9][0-9]{9}")


def validate_mobile(mobile: str | None) -> str:
    if not mobile:
        raise OTPValidationError("Mobile number is required")
    if not MOBILE_RE.fullmatch(mobile):
        raise OTPValidationError("Invalid mobile number format. Use 10-digit Indian mobile number.")
    return mobile


def validate_code(otp: str | None) -> str:
    if not otp or not re.fullmatch(rf"[0-9]{{{settings.otp_len}}}", otp):
        raise OTPValidationError(f"OTP must be exactly {settings.otp_len} digits")
    return otp


def request_otp(store: SessionStore, gateway: SmsGateway, mobile: str | None) -> tuple[OTPSession, DeliveryResult]:
    phone = validate_mobile(mobile)
    code = generate_otp()

    result = gateway.send(phone, code)
    if not result.delivered:
        logger.error("OTP delivery failed for %s: %s", phone, result.cause)
        raise OTPDeliveryFailed()

    session = OTPSession.open(
        phone=phone,
        code=code,
        ttl_seconds=settings.otp_ttl_seconds,
        max_attempts=settings.otp_max_attempts,
        provider=result.provider,
        provider_request_id=result.request_id,
    )
    with store.locked(phone):
        # Supersedes any pending session for this phone.
        store.put(phone, session)
    store.purge_expired(session.created_at)

    logger.info("OTP session %s opened for %s via %s", session.session_id, phone, result.provider)
    return session, result


class Verdict(str, enum.Enum):
    VERIFIED = "VERIFIED"
    EXPIRED = "EXPIRED"
    EXHAUSTED = "EXHAUSTED"
    MISMATCH = "MISMATCH"


def check_otp(session: OTPSession, code: str, now: datetime) -> Verdict:
    # Expiry and exhaustion win over a matching code.
    if session.is_expired(now):
        return Verdict.EXPIRED
    if session.is_exhausted():
        return Verdict.EXHAUSTED
    if not secrets.compare_digest(session.code, code):
        return Verdict.MISMATCH
    return Verdict.VERIFIED


@dataclass(frozen=True)
class VerifiedLogin:
    token: str
    user: User
    is_new_user: bool


def verify_otp(
    db: Session,
    store: SessionStore,
    issuer: TokenIssuer,
    *,
    mobile: str | None,
    otp: str | None,
    name: str | None = None,
    now: datetime | None = None,
) -> VerifiedLogin:
    if not mobile or not otp:
        raise OTPValidationError("Mobile number and OTP are required")
    phone = validate_mobile(mobile)
    code = validate_code(otp)
    now = now or datetime.now(timezone.utc)

    with store.locked(phone):
        session = store.get(phone)
        if session is None:
            raise OTPSessionNotFound()

        verdict = check_otp(session, code, now)
        if verdict is Verdict.EXPIRED:
            store.delete(phone)
            raise OTPExpired()
        if verdict is Verdict.EXHAUSTED:
            store.delete(phone)
            raise OTPAttemptsExhausted()
        if verdict is Verdict.MISMATCH:
            session.attempts += 1
            if session.is_exhausted():
                store.delete(phone)
                logger.warning("OTP attempts exhausted for %s", phone)
                raise OTPAttemptsExhausted()
            store.put(phone, session)
            raise OTPMismatch(attempts_left=session.attempts_left)

        # A new phone without a name keeps its session so the client can resubmit.
        if get_user_by_phone(db, phone) is None and not (name or "").strip():
            raise NameRequired()

        session.verified = True
        store.delete(phone)

    user, created = upsert_user(db, phone=phone, name=name, now=now)
    token = issuer.issue(user_id=user.id, phone=user.phone, role=user.role)
    logger.info("OTP verified for %s (session %s, new_user=%s)", phone, session.session_id, created)
    return VerifiedLogin(token=token, user=user, is_new_user=created)
