"""Readiness checks: config, packages, database."""
import asyncio
import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from app.infra.db.base import (
    async_pg_connect_args,
    async_pg_url_without_sslmode,
    normalize_async_pg_url,
)

logger = logging.getLogger(__name__)

# Result: (passed: bool, message: str)
CheckResult = tuple[bool, str]
ChecksDict = dict[str, CheckResult]


def check_config() -> CheckResult:
    """Load settings and read the values the service cannot start without."""
    try:
        from app.settings import get_settings
        s = get_settings()
        _ = s.app_name
        _ = s.database_url
        if s.device_liveness_seconds <= 0:
            return False, "device_liveness_seconds must be positive"
        if s.poll_page_size <= 0:
            return False, "poll_page_size must be positive"
        return True, "ok"
    except ValueError as e:
        return False, str(e)


def check_packages() -> CheckResult:
    """Import critical modules: uvicorn, sqlalchemy, asyncpg, app.main."""
    missing = []
    try:
        import uvicorn  # noqa: F401
    except ImportError:
        missing.append("uvicorn")
    try:
        import sqlalchemy  # noqa: F401
    except ImportError:
        missing.append("sqlalchemy")
    try:
        import asyncpg  # noqa: F401
    except ImportError:
        missing.append("asyncpg")
    try:
        import app.main  # noqa: F401
    except ImportError as e:
        missing.append(f"app.main ({e})")
    if missing:
        return False, f"missing: {', '.join(missing)}"
    return True, "ok"


async def _check_database_async(database_url: str) -> CheckResult:
    """Run a trivial query against the database."""
    url = normalize_async_pg_url(database_url)
    try:
        engine = create_async_engine(
            async_pg_url_without_sslmode(url),
            connect_args=async_pg_connect_args(url),
            pool_pre_ping=True,
        )
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        await engine.dispose()
        return True, "ok"
    except (SQLAlchemyError, OSError, ImportError) as e:
        logger.debug("Database readiness check failed: %s", e)
        return False, str(e)


def check_database() -> CheckResult:
    """Check database connectivity using settings.database_url."""
    from app.settings import get_settings
    url = get_settings().database_url
    return asyncio.run(_check_database_async(url))


def run_all_checks() -> ChecksDict:
    """Run all readiness checks (sync). Returns dict of check_name -> (passed, message)."""
    return {
        "config": check_config(),
        "packages": check_packages(),
        "database": check_database(),
    }


async def run_all_checks_async() -> ChecksDict:
    """Run all readiness checks (async). Use from async context (e.g. GET /ready) to avoid nested event loop."""
    from app.settings import get_settings
    db_result = await _check_database_async(get_settings().database_url)
    return {
        "config": check_config(),
        "packages": check_packages(),
        "database": db_result,
    }


def is_ready(checks: ChecksDict | None = None) -> tuple[bool, dict[str, str]]:
    """
    True if all required checks pass.
    Returns (ready: bool, checks_summary: dict of name -> "ok" | error message).
    """
    if checks is None:
        checks = run_all_checks()
    required = {"config", "packages", "database"}
    summary: dict[str, str] = {}
    for name, (passed, msg) in checks.items():
        summary[name] = msg
    all_required = all(checks[n][0] for n in required if n in checks)
    return all_required, summary
