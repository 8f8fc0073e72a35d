"""
Approvals API routes: submit an entity for approval, act on the current
level, and read requests, history and comments.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from erp.config import settings
from erp.middleware.auth import get_current_user
from erp.middleware.authorization import ensure_approval_auditor
from erp.middleware.tenant import get_db_with_tenant, tenant_uuid, user_uuid
from erp.schemas.approval import (
    ApprovalActionRequest,
    ApprovalCommandResponse,
    ApprovalCommentCreate,
    ApprovalCommentResponse,
    ApprovalDetailResponse,
    ApprovalHistoryResponse,
    ApprovalRejectRequest,
    ApprovalSubmitRequest,
    ApprovalSummaryResponse,
)
from erp.schemas.common import PaginatedResponse, build_pagination
from erp.services import approval_query_service as queries
from erp.services import approval_service

logger = structlog.get_logger()
router = APIRouter()


@router.post("", response_model=ApprovalCommandResponse, status_code=status.HTTP_201_CREATED)
async def submit_approval(
    body: ApprovalSubmitRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_with_tenant),
):
    """Submit a DRAFT quotation or purchase order into its approval chain."""
    request = await approval_service.submit_for_approval(
        db,
        tenant_id=tenant_uuid(current_user),
        entity_type=body.entity_type,
        entity_id=body.entity_id,
        submitted_by_id=user_uuid(current_user),
    )
    return ApprovalCommandResponse(id=str(request.id), message="Approval request submitted")


@router.get("", response_model=PaginatedResponse[ApprovalSummaryResponse])
async def list_approvals(
    my_pending: bool = Query(False, alias="myPending"),
    status_filter: str = Query(None, alias="status"),
    entity_type_filter: str = Query(None, alias="entity_type"),
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(
        settings.APPROVAL_LIST_DEFAULT_LIMIT, ge=1, le=settings.APPROVAL_LIST_MAX_LIMIT
    ),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_with_tenant),
):
    """myPending=true lists requests waiting on the caller now; otherwise the audit view."""
    if my_pending:
        items, total = await queries.list_pending_approvals(
            db, user_uuid(current_user), page=page, limit=limit
        )
    else:
        ensure_approval_auditor(current_user)
        items, total = await queries.list_all_approvals(
            db,
            entity_type=entity_type_filter,
            status=status_filter,
            page=page,
            limit=limit,
        )

    return PaginatedResponse(data=items, pagination=build_pagination(page, limit, total))


@router.get("/{approval_id}", response_model=ApprovalDetailResponse)
async def get_approval(
    approval_id: uuid.UUID,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_with_tenant),
):
    return await queries.get_approval_details(db, approval_id)


@router.get("/{approval_id}/history", response_model=list[ApprovalHistoryResponse])
async def get_approval_history(
    approval_id: uuid.UUID,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_with_tenant),
):
    return await queries.get_approval_history(db, approval_id)


@router.get("/{approval_id}/comments", response_model=list[ApprovalCommentResponse])
async def list_approval_comments(
    approval_id: uuid.UUID,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_with_tenant),
):
    return await queries.list_comments(db, approval_id)


@router.post(
    "/{approval_id}/comments",
    response_model=ApprovalCommandResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_approval_comment(
    approval_id: uuid.UUID,
    body: ApprovalCommentCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_with_tenant),
):
    comment = await approval_service.add_comment(
        db, approval_id, user_uuid(current_user), body.content
    )
    return ApprovalCommandResponse(id=str(comment.id), message="Comment added")


@router.post("/{approval_id}/approve", response_model=ApprovalCommandResponse)
async def approve_step(
    approval_id: uuid.UUID,
    body: ApprovalActionRequest = ApprovalActionRequest(),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_with_tenant),
):
    """Approve the current level."""
    request = await approval_service.approve(
        db, approval_id, user_uuid(current_user), body.comments
    )
    return ApprovalCommandResponse(
        id=str(request.id), message="Approval request approved at current level"
    )


@router.post("/{approval_id}/reject", response_model=ApprovalCommandResponse)
async def reject_step(
    approval_id: uuid.UUID,
    body: ApprovalRejectRequest = ApprovalRejectRequest(),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_with_tenant),
):
    """Reject the current level. A reason is required."""
    request = await approval_service.reject(
        db, approval_id, user_uuid(current_user), body.reason, body.comments
    )
    return ApprovalCommandResponse(id=str(request.id), message="Approval request rejected")
