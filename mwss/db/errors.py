import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from mwss.core.exceptions import TransientInfraError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def transient_db_errors(action: str) -> AsyncIterator[None]:
    """Re-raise connection, lock and timeout failures as TransientInfraError."""
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError, asyncio.TimeoutError) as exc:
        logger.warning("Database unavailable during %s: %s", action, exc)
        raise TransientInfraError(f"Database unavailable during {action}, please retry") from exc
