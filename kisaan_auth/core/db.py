from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from kisaan_auth.core.config import settings


class Base(DeclarativeBase):
    pass


def build_engine(url: str):
    if url.startswith("sqlite") and ":memory:" in url:
        # One shared connection, otherwise every pooled connection sees its own empty database.
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, pool_pre_ping=True)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
