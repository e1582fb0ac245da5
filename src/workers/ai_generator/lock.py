"""
Generator run lock, stored in the database so every API replica and ARQ
worker sees the same state. A holder owns the lock until it releases it
or until expires_at passes; an expired lock can be taken over.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import GeneratorAlreadyRunningError
from core.models import GeneratorLock

logger = logging.getLogger(__name__)

LOCK_NAME = "ai_generator"


@dataclass(frozen=True, slots=True)
class GeneratorStatus:
    is_running: bool
    current_log_id: int | None = None

    def to_dict(self) -> dict:
        return {"isRunning": self.is_running, "currentLogId": self.current_log_id}


async def _ensure_lock_row(session: AsyncSession) -> None:
    result = await session.execute(select(GeneratorLock.name).where(GeneratorLock.name == LOCK_NAME))
    if result.first() is not None:
        return
    try:
        async with session.begin_nested():
            session.add(GeneratorLock(name=LOCK_NAME))
    except IntegrityError:
        pass  # another process created it first


async def acquire_lock(session: AsyncSession, holder: str, ttl: timedelta) -> None:
    """
    Atomically take the lock for `holder` and commit.
    Raises GeneratorAlreadyRunningError if a live holder exists.
    """
    await _ensure_lock_row(session)

    now = datetime.now(timezone.utc)
    result = await session.execute(
        update(GeneratorLock)
        .where(
            GeneratorLock.name == LOCK_NAME,
            or_(GeneratorLock.holder.is_(None), GeneratorLock.expires_at < now),
        )
        .values(holder=holder, log_id=None, acquired_at=now, expires_at=now + ttl)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        status = await read_status(session)
        raise GeneratorAlreadyRunningError(status.current_log_id)

    await session.commit()
    logger.debug("Generator lock acquired by %s", holder)


async def attach_log(session: AsyncSession, holder: str, log_id: int) -> None:
    await session.execute(
        update(GeneratorLock)
        .where(GeneratorLock.name == LOCK_NAME, GeneratorLock.holder == holder)
        .values(log_id=log_id)
        .execution_options(synchronize_session=False)
    )
    await session.commit()


async def release_lock(session: AsyncSession, holder: str) -> None:
    """Only the current holder can release; a lock taken over after expiry is left alone."""
    result = await session.execute(
        update(GeneratorLock)
        .where(GeneratorLock.name == LOCK_NAME, GeneratorLock.holder == holder)
        .values(holder=None, log_id=None, acquired_at=None, expires_at=None)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    if result.rowcount != 1:
        logger.warning("Generator lock was no longer held by %s at release", holder)


async def read_status(session: AsyncSession) -> GeneratorStatus:
    result = await session.execute(
        select(GeneratorLock.log_id).where(
            GeneratorLock.name == LOCK_NAME,
            GeneratorLock.holder.is_not(None),
            GeneratorLock.expires_at > datetime.now(timezone.utc),
        )
    )
    row = result.first()
    if row is None:
        return GeneratorStatus(is_running=False)
    return GeneratorStatus(is_running=True, current_log_id=row.log_id)
