import secrets
import time
from dataclasses import dataclass

import jwt

from kisaan_auth.core.config import Settings, settings


def _now_s() -> int:
    return int(time.time())


def generate_otp(length: int | None = None) -> str:
    # Always `length` digits: the lower bound keeps a leading zero out.
    length = length or settings.otp_len
    upper = 10**length
    lower = 10 ** (length - 1)
    return str(secrets.randbelow(upper - lower) + lower)


class InvalidCredential(Exception):
    """Raised when a bearer token fails signature, expiry or claim checks."""


@dataclass(frozen=True)
class Principal:
    sub: str
    phone: str
    role: str
    issued_at: int
    expires_at: int


class TokenIssuer:
    """
    Mints and checks HS256 access tokens for verified phone identities.
    """

    algorithm = "HS256"

    def __init__(self, *, secret: str, issuer: str, audience: str, ttl_seconds: int):
        if not secret:
            raise ValueError("token signing secret is not configured")
        self._secret = secret
        self.issuer = issuer
        self.audience = audience
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_settings(cls, cfg: Settings) -> "TokenIssuer":
        return cls(
            secret=cfg.jwt_secret,
            issuer=cfg.jwt_issuer,
            audience=cfg.jwt_audience,
            ttl_seconds=cfg.access_token_ttl_seconds,
        )

    def issue(self, *, user_id: str, phone: str, role: str, now: int | None = None) -> str:
        iat = _now_s() if now is None else now
        payload = {
            "iss": self.issuer,
            "aud": self.audience,
            "iat": iat,
            "exp": iat + self.ttl_seconds,
            "sub": user_id,
            "userId": user_id,
            "mobile": phone,
            "role": role,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Principal:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.PyJWTError as e:
            raise InvalidCredential(str(e)) from e
        return Principal(
            sub=str(payload["sub"]),
            phone=str(payload.get("mobile") or ""),
            role=str(payload.get("role") or ""),
            issued_at=int(payload["iat"]),
            expires_at=int(payload["exp"]),
        )
