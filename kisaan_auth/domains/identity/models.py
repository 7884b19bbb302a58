import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OTPSession:
    """Pending verification for one phone number. At most one lives per phone."""

    phone: str
    code: str
    expires_at: datetime
    max_attempts: int = 3
    attempts: int = 0
    verified: bool = False
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    provider: str | None = None
    provider_request_id: str | None = None
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def open(
        cls,
        *,
        phone: str,
        code: str,
        ttl_seconds: int,
        max_attempts: int,
        provider: str | None = None,
        provider_request_id: str | None = None,
        now: datetime | None = None,
    ) -> "OTPSession":
        now = now or _utcnow()
        return cls(
            phone=phone,
            code=code,
            expires_at=now + timedelta(seconds=ttl_seconds),
            max_attempts=max_attempts,
            provider=provider,
            provider_request_id=provider_request_id,
            created_at=now,
        )

    @property
    def attempts_left(self) -> int:
        return max(self.max_attempts - self.attempts, 0)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def is_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts
