"""Map driver-level failures onto the domain error taxonomy."""
import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    # Raw connect failures (refused, DNS, timeouts) surface as OSError.
    return isinstance(exc, OSError)


@asynccontextmanager
async def store_errors(session: AsyncSession, operation: str):
    """Wrap a repository call: transient store failures become StoreUnavailableError."""
    try:
        yield
    except Exception as e:
        if not _is_transient(e):
            raise
        logger.warning("Store unavailable during %s: %s", operation, e)
        try:
            await session.rollback()
        except Exception as rollback_error:
            logger.debug("Rollback after store failure also failed: %s", rollback_error)
        raise StoreUnavailableError(f"Store unavailable during {operation}") from e
