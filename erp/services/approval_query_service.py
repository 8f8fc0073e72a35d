"""
Approval read models: detail, history, comments and paged listings.

User display names are resolved with one batched query per call rather
than one lookup per row.
"""

import uuid
from typing import Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import noload

from erp.exceptions import NotFoundError
from erp.models.approval import (
    ApprovalChainTemplate,
    ApprovalComment,
    ApprovalHistory,
    ApprovalLevelDecision,
    ApprovalRequest,
)
from erp.models.user import User
from erp.schemas.approval import (
    ApprovalCommentResponse,
    ApprovalDetailResponse,
    ApprovalHistoryResponse,
    ApprovalSummaryResponse,
    ChainLevelResponse,
    ChainTemplateResponse,
    LevelDecisionResponse,
)
from erp.schemas.common import iso, page_offset
from erp.services.user_directory import get_users_by_ids


def _name(users: dict[uuid.UUID, User], user_id: Optional[uuid.UUID]) -> Optional[str]:
    user = users.get(user_id) if user_id else None
    return user.full_name if user else None


def _summary_fields(r: ApprovalRequest, users: dict[uuid.UUID, User]) -> dict:
    return {
        "id": str(r.id),
        "entity_type": r.entity_type,
        "entity_id": str(r.entity_id),
        "entity_description": r.entity_description,
        "current_level": r.current_level,
        "total_levels": r.total_levels,
        "status": r.status,
        "submitted_by_id": str(r.submitted_by_id),
        "submitted_by_name": _name(users, r.submitted_by_id),
        "submitted_at": iso(r.submitted_at) or "",
        "completed_at": iso(r.completed_at),
    }


async def exists(session: AsyncSession, request_id: uuid.UUID) -> bool:
    result = await session.execute(
        select(ApprovalRequest.id).where(ApprovalRequest.id == request_id)
    )
    return result.scalar_one_or_none() is not None


async def _require_exists(session: AsyncSession, request_id: uuid.UUID) -> None:
    if not await exists(session, request_id):
        raise NotFoundError("ApprovalRequest", request_id)


async def get_approval_details(
    session: AsyncSession, request_id: uuid.UUID
) -> ApprovalDetailResponse:
    result = await session.execute(
        select(ApprovalRequest).where(ApprovalRequest.id == request_id)
    )
    request = result.scalar_one_or_none()
    if not request:
        raise NotFoundError("ApprovalRequest", request_id)

    user_ids = [request.submitted_by_id]
    for d in request.decisions:
        user_ids.extend([d.expected_approver_id, d.decided_by_id])
    users = await get_users_by_ids(session, user_ids)

    levels = [
        LevelDecisionResponse(
            level_order=d.level_order,
            level_name=d.level_name,
            expected_approver_id=str(d.expected_approver_id),
            expected_approver_name=_name(users, d.expected_approver_id),
            decision=d.decision,
            decided_by_id=str(d.decided_by_id) if d.decided_by_id else None,
            decided_by_name=_name(users, d.decided_by_id),
            decided_at=iso(d.decided_at),
            comments=d.comments,
        )
        for d in request.decisions
    ]
    return ApprovalDetailResponse(**_summary_fields(request, users), levels=levels)


async def get_approval_history(
    session: AsyncSession, request_id: uuid.UUID
) -> list[ApprovalHistoryResponse]:
    """Oldest first. NotFound distinguishes 'no such request' from 'no history'."""
    await _require_exists(session, request_id)

    result = await session.execute(
        select(ApprovalHistory)
        .where(ApprovalHistory.approval_request_id == request_id)
        .order_by(ApprovalHistory.created_at.asc())
    )
    entries = list(result.scalars().all())
    users = await get_users_by_ids(session, [e.actor_id for e in entries])

    return [
        ApprovalHistoryResponse(
            id=str(e.id),
            level_order=e.level_order,
            action=e.action,
            actor_id=str(e.actor_id),
            actor_name=_name(users, e.actor_id),
            comment=e.comment,
            created_at=iso(e.created_at) or "",
        )
        for e in entries
    ]


async def list_comments(
    session: AsyncSession, request_id: uuid.UUID
) -> list[ApprovalCommentResponse]:
    await _require_exists(session, request_id)

    result = await session.execute(
        select(ApprovalComment)
        .where(ApprovalComment.approval_request_id == request_id)
        .order_by(ApprovalComment.created_at.asc())
    )
    comments = list(result.scalars().all())
    users = await get_users_by_ids(session, [c.author_id for c in comments])

    return [
        ApprovalCommentResponse(
            id=str(c.id),
            author_id=str(c.author_id),
            author_name=_name(users, c.author_id),
            comment_type=c.comment_type,
            content=c.content,
            created_at=iso(c.created_at) or "",
        )
        for c in comments
    ]


async def _page_of_summaries(
    session: AsyncSession, q, count_q, page: int, limit: int
) -> tuple[list[ApprovalSummaryResponse], int]:
    total = (await session.execute(count_q)).scalar() or 0
    result = await session.execute(
        q.options(noload(ApprovalRequest.decisions))
        .order_by(ApprovalRequest.submitted_at.desc())
        .offset(page_offset(page, limit))
        .limit(limit)
    )
    requests = list(result.scalars().all())
    users = await get_users_by_ids(session, [r.submitted_by_id for r in requests])
    items = [ApprovalSummaryResponse(**_summary_fields(r, users)) for r in requests]
    return items, total


async def list_pending_approvals(
    session: AsyncSession, user_id: uuid.UUID, page: int = 1, limit: int = 20
) -> tuple[list[ApprovalSummaryResponse], int]:
    """Requests where it is this user's turn now, not merely where they appear in the chain."""
    on_current_level = and_(
        ApprovalLevelDecision.approval_request_id == ApprovalRequest.id,
        ApprovalLevelDecision.level_order == ApprovalRequest.current_level,
    )
    conditions = (
        ApprovalRequest.status == "PENDING",
        ApprovalLevelDecision.expected_approver_id == user_id,
    )
    q = select(ApprovalRequest).join(ApprovalLevelDecision, on_current_level).where(*conditions)
    count_q = (
        select(func.count(ApprovalRequest.id))
        .join(ApprovalLevelDecision, on_current_level)
        .where(*conditions)
    )
    return await _page_of_summaries(session, q, count_q, page, limit)


async def list_all_approvals(
    session: AsyncSession,
    entity_type: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[ApprovalSummaryResponse], int]:
    q = select(ApprovalRequest)
    count_q = select(func.count(ApprovalRequest.id))
    if entity_type:
        q = q.where(ApprovalRequest.entity_type == entity_type)
        count_q = count_q.where(ApprovalRequest.entity_type == entity_type)
    if status:
        q = q.where(ApprovalRequest.status == status)
        count_q = count_q.where(ApprovalRequest.status == status)
    return await _page_of_summaries(session, q, count_q, page, limit)


async def build_chain_template_views(
    session: AsyncSession, templates: list[ApprovalChainTemplate]
) -> list[ChainTemplateResponse]:
    users = await get_users_by_ids(
        session,
        [level.approver_user_id for t in templates for level in t.levels],
    )
    return [
        ChainTemplateResponse(
            id=str(t.id),
            tenant_id=str(t.tenant_id),
            entity_type=t.entity_type,
            name=t.name,
            description=t.description,
            is_active=t.is_active,
            levels=[
                ChainLevelResponse(
                    level_order=level.level_order,
                    level_name=level.level_name,
                    approver_user_id=str(level.approver_user_id),
                    approver_name=_name(users, level.approver_user_id),
                    is_required=level.is_required,
                )
                for level in t.levels
            ],
            created_at=iso(t.created_at) or "",
            updated_at=iso(t.updated_at),
        )
        for t in templates
    ]
