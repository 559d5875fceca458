import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@asynccontextmanager
async def atomic(session: AsyncSession, label: str = "transaction") -> AsyncIterator[AsyncSession]:
    """Run a multi-step mutation as one unit.

    Everything flushed inside the block is committed together when it exits
    cleanly. Any exception rolls the whole unit back, including work the
    session had pending before the block started, and is re-raised.
    """
    try:
        yield session
        await session.commit()
    except Exception:
        logger.warning(f"Rolling back {label}")
        await session.rollback()
        raise
