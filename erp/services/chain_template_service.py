"""
Chain template service: admin configuration of approval levels.

Level lists are always replaced wholesale. Requests already created keep
their own snapshot, so nothing here touches approval_requests.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from erp.exceptions import BusinessError, ConflictError, NotFoundError
from erp.models.approval import ApprovalChainLevel, ApprovalChainTemplate
from erp.services.user_directory import ensure_users_exist

logger = structlog.get_logger()


@dataclass
class ChainLevelInput:
    level_order: int
    level_name: str
    approver_user_id: uuid.UUID
    is_required: bool = True


def validate_level_orders(levels: Sequence[ChainLevelInput]) -> None:
    """level_order values must be exactly 1..N: no gaps, no duplicates."""
    orders = sorted(level.level_order for level in levels)
    if orders != list(range(1, len(orders) + 1)):
        raise BusinessError("Level orders must be sequential starting from 1")


def _build_levels(levels: Sequence[ChainLevelInput]) -> list[ApprovalChainLevel]:
    return [
        ApprovalChainLevel(
            level_order=level.level_order,
            level_name=level.level_name,
            approver_user_id=level.approver_user_id,
            is_required=level.is_required,
        )
        for level in sorted(levels, key=lambda lv: lv.level_order)
    ]


async def list_chain_templates(session: AsyncSession) -> list[ApprovalChainTemplate]:
    result = await session.execute(
        select(ApprovalChainTemplate).order_by(ApprovalChainTemplate.entity_type)
    )
    return list(result.scalars().all())


async def get_chain_template(
    session: AsyncSession, template_id: uuid.UUID
) -> ApprovalChainTemplate:
    result = await session.execute(
        select(ApprovalChainTemplate).where(ApprovalChainTemplate.id == template_id)
    )
    template = result.scalar_one_or_none()
    if not template:
        raise NotFoundError("ApprovalChainTemplate", template_id)
    return template


async def create_chain_template(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    entity_type: str,
    name: str,
    description: Optional[str],
    levels: Sequence[ChainLevelInput],
) -> ApprovalChainTemplate:
    validate_level_orders(levels)

    existing = await session.execute(
        select(ApprovalChainTemplate.id).where(
            ApprovalChainTemplate.tenant_id == tenant_id,
            ApprovalChainTemplate.entity_type == entity_type,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(
            f"Approval chain template for {entity_type} already exists",
            code="DUPLICATE_RESOURCE",
        )

    await ensure_users_exist(session, [level.approver_user_id for level in levels])

    template = ApprovalChainTemplate(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        entity_type=entity_type,
        name=name,
        description=description,
        is_active=True,
    )
    template.levels = _build_levels(levels)
    session.add(template)
    await session.flush()

    logger.info(
        "chain_template_created",
        chain_template_id=str(template.id),
        entity_type=entity_type,
        levels=len(levels),
    )
    return template


async def update_chain_levels(
    session: AsyncSession,
    template_id: uuid.UUID,
    levels: Sequence[ChainLevelInput],
) -> ApprovalChainTemplate:
    """Validate, then delete every existing level and insert the new list."""
    template = await get_chain_template(session, template_id)

    validate_level_orders(levels)
    await ensure_users_exist(session, [level.approver_user_id for level in levels])

    # Old rows must be gone before the new ones insert: (template, level_order) is unique.
    template.levels.clear()
    await session.flush()
    template.levels.extend(_build_levels(levels))
    template.updated_at = datetime.utcnow()
    await session.flush()

    logger.info(
        "chain_levels_updated",
        chain_template_id=str(template.id),
        entity_type=template.entity_type,
        levels=len(levels),
    )
    return template
