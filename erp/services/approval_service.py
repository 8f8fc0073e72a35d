"""
Approval service: multi-level sequential approval state machine.

States per request:
  PENDING(level=k), k in 1..N
  APPROVED  (terminal)
  REJECTED  (terminal)

Only the approver bound to the current level may act. Approve advances to
k+1 or, at the final level, completes the request and fires the entity's
on_approved handler. Reject at any level completes the request as REJECTED
and fires on_rejected; later levels stay PENDING and are never visited.

All functions use the caller's session (no commit). get_db() commits or
rolls back the whole transition, entity handler included.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
import structlog

from erp.exceptions import AccessDeniedError, BusinessError, ConflictError, NotFoundError
from erp.models.approval import (
    ApprovalChainTemplate,
    ApprovalComment,
    ApprovalHistory,
    ApprovalLevelDecision,
    ApprovalRequest,
)
from erp.services.approval_callbacks import get_entity_handler
from erp.services.user_directory import ensure_users_exist

logger = structlog.get_logger()


async def _find_active_template(
    session: AsyncSession, tenant_id: uuid.UUID, entity_type: str
) -> Optional[ApprovalChainTemplate]:
    result = await session.execute(
        select(ApprovalChainTemplate).where(
            ApprovalChainTemplate.tenant_id == tenant_id,
            ApprovalChainTemplate.entity_type == entity_type,
            ApprovalChainTemplate.is_active == True,  # noqa: E712
        )
    )
    return result.scalar_one_or_none()


async def _load_request_for_update(
    session: AsyncSession, request_id: uuid.UUID
) -> ApprovalRequest:
    """SELECT FOR UPDATE on the request row; decisions come along via selectin."""
    result = await session.execute(
        select(ApprovalRequest)
        .where(ApprovalRequest.id == request_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    request = result.scalar_one_or_none()
    if not request:
        raise NotFoundError("ApprovalRequest", request_id)
    return request


def _ensure_pending(request: ApprovalRequest) -> None:
    if request.is_completed:
        raise BusinessError(
            f"Approval request is already {request.status.lower()}"
        )
    if not request.is_pending:
        raise BusinessError("Approval request is not in PENDING status")


def _current_decision_for(
    request: ApprovalRequest, acting_user_id: uuid.UUID
) -> ApprovalLevelDecision:
    """
    Return the decision awaiting action at current_level, or raise 403 when
    the caller is not its expected approver. Approvers of other levels get
    the same 403: acting out of order is an authorization failure.
    """
    decision = request.current_decision
    if decision is None or decision.decision != "PENDING":
        raise BusinessError(
            f"No pending decision found for current level {request.current_level}"
        )

    if str(decision.expected_approver_id) != str(acting_user_id):
        other_level = any(
            str(d.expected_approver_id) == str(acting_user_id)
            for d in request.decisions
        )
        if other_level:
            message = (
                "Cannot act out of order - you are not the approver "
                f"for the current level ({request.current_level})"
            )
        else:
            message = "You are not the approver for the current level of this request"
        raise AccessDeniedError(message)

    return decision


async def _flush_transition(session: AsyncSession, request: ApprovalRequest) -> None:
    try:
        await session.flush()
    except StaleDataError:
        logger.warning(
            "approval_conflict",
            approval_request_id=str(request.id),
            current_level=request.current_level,
        )
        raise ConflictError(
            "Approval request was already decided by a concurrent action"
        )


async def create_approval_request(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    entity_type: str,
    entity_id: uuid.UUID,
    entity_description: Optional[str],
    submitted_by_id: uuid.UUID,
) -> ApprovalRequest:
    """Snapshot the tenant's active chain for entity_type into a new PENDING request."""
    template = await _find_active_template(session, tenant_id, entity_type)
    if not template:
        raise NotFoundError("ApprovalChainTemplate", entity_type)
    if not template.levels:
        raise BusinessError("Approval chain template has no levels configured")

    await ensure_users_exist(
        session,
        [submitted_by_id] + [level.approver_user_id for level in template.levels],
    )

    now = datetime.utcnow()
    request = ApprovalRequest(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_description=entity_description,
        current_level=1,
        total_levels=len(template.levels),
        status="PENDING",
        submitted_by_id=submitted_by_id,
        submitted_at=now,
    )
    request.decisions = [
        ApprovalLevelDecision(
            level_order=level.level_order,
            level_name=level.level_name,
            expected_approver_id=level.approver_user_id,
            decision="PENDING",
        )
        for level in template.levels
    ]
    session.add(request)
    await session.flush()

    session.add(ApprovalHistory(
        approval_request_id=request.id,
        action="SUBMITTED",
        actor_id=submitted_by_id,
        created_at=now,
    ))
    await session.flush()

    logger.info(
        "approval_request_created",
        approval_request_id=str(request.id),
        entity_type=entity_type,
        entity_id=str(entity_id),
        total_levels=request.total_levels,
    )
    return request


async def submit_for_approval(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    entity_type: str,
    entity_id: uuid.UUID,
    submitted_by_id: uuid.UUID,
) -> ApprovalRequest:
    """Move a DRAFT entity to pending and open an approval request for it."""
    handler = get_entity_handler(entity_type)
    description = await handler.submit(session, entity_id)
    return await create_approval_request(
        session,
        tenant_id=tenant_id,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_description=description,
        submitted_by_id=submitted_by_id,
    )


async def approve(
    session: AsyncSession,
    request_id: uuid.UUID,
    acting_user_id: uuid.UUID,
    comment: Optional[str] = None,
) -> ApprovalRequest:
    """
    Approve at the current level.

    The request row is written (and its version checked) before the entity
    handler runs, so a losing concurrent approver never reaches the entity.
    """
    request = await _load_request_for_update(session, request_id)
    _ensure_pending(request)
    decision = _current_decision_for(request, acting_user_id)

    now = datetime.utcnow()
    level = request.current_level
    decision.decision = "APPROVED"
    decision.decided_by_id = acting_user_id
    decision.decided_at = now
    decision.comments = comment

    final = request.is_at_final_level
    if final:
        request.status = "APPROVED"
        request.completed_at = now
    else:
        request.current_level = level + 1

    session.add(ApprovalHistory(
        approval_request_id=request.id,
        level_order=level,
        action="APPROVED",
        actor_id=acting_user_id,
        comment=comment,
        created_at=now,
    ))
    await _flush_transition(session, request)

    if final:
        handler = get_entity_handler(request.entity_type)
        await handler.on_approved(session, request.entity_id, acting_user_id)
        logger.info(
            "approval_request_approved",
            approval_request_id=str(request.id),
            entity_type=request.entity_type,
            entity_id=str(request.entity_id),
        )
    else:
        logger.info(
            "approval_level_approved",
            approval_request_id=str(request.id),
            level=level,
            next_level=request.current_level,
        )
    return request


async def reject(
    session: AsyncSession,
    request_id: uuid.UUID,
    acting_user_id: uuid.UUID,
    reason: Optional[str],
    comment: Optional[str] = None,
) -> ApprovalRequest:
    """Reject at the current level. The chain stops here regardless of remaining levels."""
    if reason is None or not reason.strip():
        raise BusinessError("Rejection reason is required")
    reason = reason.strip()

    request = await _load_request_for_update(session, request_id)
    _ensure_pending(request)
    decision = _current_decision_for(request, acting_user_id)

    now = datetime.utcnow()
    level = request.current_level
    decision.decision = "REJECTED"
    decision.decided_by_id = acting_user_id
    decision.decided_at = now
    decision.comments = comment

    request.status = "REJECTED"
    request.completed_at = now

    session.add(ApprovalComment(
        approval_request_id=request.id,
        author_id=acting_user_id,
        comment_type="REJECTION_REASON",
        content=reason,
        created_at=now,
    ))
    session.add(ApprovalHistory(
        approval_request_id=request.id,
        level_order=level,
        action="REJECTED",
        actor_id=acting_user_id,
        comment=reason,
        created_at=now,
    ))
    await _flush_transition(session, request)

    handler = get_entity_handler(request.entity_type)
    await handler.on_rejected(session, request.entity_id, reason)

    logger.info(
        "approval_request_rejected",
        approval_request_id=str(request.id),
        entity_type=request.entity_type,
        entity_id=str(request.entity_id),
        level=level,
    )
    return request


async def add_comment(
    session: AsyncSession,
    request_id: uuid.UUID,
    user_id: uuid.UUID,
    text: Optional[str],
) -> ApprovalComment:
    """Attach a discussion comment. Allowed in any status."""
    if text is None or not text.strip():
        raise BusinessError("Comment text cannot be blank")

    result = await session.execute(
        select(ApprovalRequest.id).where(ApprovalRequest.id == request_id)
    )
    if result.scalar_one_or_none() is None:
        raise NotFoundError("ApprovalRequest", request_id)

    comment = ApprovalComment(
        approval_request_id=request_id,
        author_id=user_id,
        comment_type="DISCUSSION",
        content=text.strip(),
        created_at=datetime.utcnow(),
    )
    session.add(comment)
    await session.flush()

    logger.info(
        "approval_comment_added",
        approval_request_id=str(request_id),
        author_id=str(user_id),
    )
    return comment
