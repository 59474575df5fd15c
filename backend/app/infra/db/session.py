"""Request-scoped database sessions."""
import logging
from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.errors import StoreUnavailableError
from app.infra.db import base

logger = logging.getLogger(__name__)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one session per request, closed afterwards."""
    if base.AsyncSessionLocal is None:
        logger.error("No database engine configured; rejecting request")
        raise StoreUnavailableError("Database engine is not configured")
    async with base.AsyncSessionLocal() as session:
        yield session
