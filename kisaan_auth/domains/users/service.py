import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kisaan_auth.core.config import settings
from kisaan_auth.domains.identity.errors import NameRequired
from kisaan_auth.domains.users.models import User

logger = logging.getLogger(__name__)


def get_user_by_phone(db: Session, phone: str) -> User | None:
    return db.query(User).filter(User.phone == phone).one_or_none()


def derived_email(phone: str) -> str:
    return f"{phone}@{settings.user_email_domain}"


def _clean_name(name: str | None) -> str | None:
    name = (name or "").strip()
    return name or None


def upsert_user(db: Session, *, phone: str, name: str | None = None, now: datetime | None = None) -> tuple[User, bool]:
    """
    Create the identity for `phone` on first verification, otherwise record the login.

    Returns ``(user, created)``. A first-time phone needs a display name.
    """
    now = now or datetime.now(timezone.utc)
    name = _clean_name(name)

    user = get_user_by_phone(db, phone)
    if user is not None:
        user.last_login_at = now
        if name:
            user.name = name
        db.commit()
        db.refresh(user)
        return user, False

    if not name:
        raise NameRequired()

    user = User(
        phone=phone,
        name=name,
        email=derived_email(phone),
        role=settings.default_user_role,
        verified=True,
        created_at=now,
        last_login_at=now,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Another request created the same phone first; fall back to the login path.
        db.rollback()
        return upsert_user(db, phone=phone, name=name, now=now)
    db.refresh(user)
    logger.info("New user created: id=%s phone=%s", user.id, phone)
    return user, True
