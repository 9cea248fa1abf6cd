"""
Explicit transaction boundary for inventory workflows.

Callers create a UnitOfWork around a session and hand it to the services.
Each workflow operation runs inside ``uow.atomic()``: the outermost block
commits when it exits cleanly and rolls back on any exception, so a
multi-line receipt or transfer never leaves a partial effect behind.
Nested ``atomic()`` blocks join the enclosing one.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings

logger = logging.getLogger(__name__)

# SQLSTATE lock_not_available
PG_LOCK_NOT_AVAILABLE = "55P03"


def is_lock_not_available(error: DBAPIError) -> bool:
    """True when the driver reports that a row lock could not be acquired in time"""
    orig = getattr(error, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == PG_LOCK_NOT_AVAILABLE:
        return True
    message = str(orig or error).lower()
    return "lock timeout" in message or "database is locked" in message


class UnitOfWork:
    def __init__(self, session: AsyncSession, lock_timeout_ms: Optional[int] = None):
        self.session = session
        self.lock_timeout_ms = settings.LOCK_TIMEOUT_MS if lock_timeout_ms is None else lock_timeout_ms
        self._depth = 0

    @property
    def in_atomic(self) -> bool:
        return self._depth > 0

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[AsyncSession]:
        outermost = self._depth == 0
        self._depth += 1
        try:
            if outermost:
                await self._apply_lock_timeout()
            yield self.session
            if outermost:
                await self.session.commit()
        except BaseException:
            if outermost:
                logger.debug("Rolling back unit of work")
                await self.session.rollback()
            raise
        finally:
            self._depth -= 1

    async def _apply_lock_timeout(self) -> None:
        dialect = self.session.get_bind().dialect.name
        if dialect != "postgresql" or not self.lock_timeout_ms:
            return
        # SET LOCAL lasts until the end of the transaction it runs in
        await self.session.execute(text(f"SET LOCAL lock_timeout = {int(self.lock_timeout_ms)}"))

    async def close(self) -> None:
        await self.session.close()
