"""User lookups used by the approval services."""

import uuid
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.exceptions import NotFoundError
from erp.models.user import User


async def get_users_by_ids(
    session: AsyncSession, user_ids: Iterable[Optional[uuid.UUID]]
) -> dict[uuid.UUID, User]:
    """Batch-load users in one query, keyed by id. None ids are skipped."""
    ids = list({uid for uid in user_ids if uid is not None})
    if not ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in result.scalars().all()}


async def ensure_users_exist(
    session: AsyncSession, user_ids: Iterable[uuid.UUID]
) -> None:
    """Raise NotFoundError naming the first id (in input order) with no user row."""
    wanted = list(user_ids)
    found = await get_users_by_ids(session, wanted)
    for uid in wanted:
        if uid not in found:
            raise NotFoundError("User", uid)
