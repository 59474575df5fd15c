"""Database base configuration."""
import os
import ssl
import sys
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


def normalize_async_pg_url(url: str) -> str:
    """Ensure URL uses asyncpg driver; cloud often gives postgresql:// (sync)."""
    u = (url or "").strip()
    if u.startswith("postgresql://") and "postgresql+asyncpg" not in u[:22]:
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _ssl_context_no_verify() -> ssl.SSLContext:
    """SSL context that skips certificate verification (for local/one-off use only)."""
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def async_pg_connect_args(url: str) -> dict:
    """connect_args for asyncpg: asyncpg does not accept sslmode, so sslmode=require becomes ssl=...
    Set DATABASE_SSL_VERIFY=true for strict certificate verification."""
    parsed = urlparse(url)
    qs = parse_qs(parsed.query, keep_blank_values=True)
    if qs.get("sslmode") != ["require"]:
        return {}
    verify = os.environ.get("DATABASE_SSL_VERIFY", "false").strip().lower()
    if verify in ("true", "1"):
        return {"ssl": True}
    return {"ssl": _ssl_context_no_verify()}


def async_pg_url_without_sslmode(url: str) -> str:
    """Return URL with sslmode removed so asyncpg does not get unknown kwarg sslmode."""
    parsed = urlparse(url)
    qs = parse_qs(parsed.query, keep_blank_values=True)
    qs.pop("sslmode", None)
    new_query = urlencode(qs, doseq=True)
    return urlunparse(parsed._replace(query=new_query))


def build_session_factory(engine) -> async_sessionmaker[AsyncSession]:
    """Session factory shared by the app, Alembic-free scripts and tests."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


# Tests build their own in-memory engine; skip the production engine under pytest.
_is_pytest = "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ

if not _is_pytest:
    from app.settings import settings

    _db_url = normalize_async_pg_url(settings.database_url)
    engine = create_async_engine(
        async_pg_url_without_sslmode(_db_url),
        connect_args=async_pg_connect_args(_db_url),
        echo=settings.database_echo,
        pool_pre_ping=True,
    )
    AsyncSessionLocal = build_session_factory(engine)
else:
    engine = None
    AsyncSessionLocal = None


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# Note: Models are imported in app/main.py to avoid circular imports
# (base.py -> models/__init__.py -> device.py -> base.py)
