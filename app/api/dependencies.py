from typing import AsyncIterator
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.database import get_async_session
from app.core.unit_of_work import UnitOfWork
import logging

logger = logging.getLogger(__name__)

async def get_actor_id(x_actor_id: int = Header(..., alias="X-Actor-Id")) -> int:
    """Acting user, forwarded by the gateway that authenticated the request"""
    if x_actor_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid actor id",
        )
    return x_actor_id

async def get_unit_of_work(
    session: AsyncSession = Depends(get_async_session)
) -> AsyncIterator[UnitOfWork]:
    """One unit of work per request"""
    uow = UnitOfWork(session)
    try:
        yield uow
    finally:
        if session.in_transaction():
            await session.rollback()
