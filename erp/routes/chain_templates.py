import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from erp.middleware.auth import get_current_user
from erp.middleware.authorization import require_chain_admin
from erp.middleware.tenant import get_db_with_tenant, tenant_uuid
from erp.schemas.approval import (
    ChainLevelIn,
    ChainLevelsUpdate,
    ChainTemplateCreate,
    ChainTemplateResponse,
)
from erp.services import chain_template_service as templates
from erp.services.approval_query_service import build_chain_template_views

logger = structlog.get_logger()
router = APIRouter()


def _to_inputs(levels: list[ChainLevelIn]) -> list[templates.ChainLevelInput]:
    return [
        templates.ChainLevelInput(
            level_order=lv.level_order,
            level_name=lv.level_name,
            approver_user_id=lv.approver_user_id,
            is_required=lv.is_required,
        )
        for lv in levels
    ]


@router.get("", response_model=list[ChainTemplateResponse])
async def list_chain_templates(
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_chain_admin()),
    db: AsyncSession = Depends(get_db_with_tenant),
):
    return await build_chain_template_views(db, await templates.list_chain_templates(db))


@router.get("/{template_id}", response_model=ChainTemplateResponse)
async def get_chain_template(
    template_id: uuid.UUID,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_chain_admin()),
    db: AsyncSession = Depends(get_db_with_tenant),
):
    template = await templates.get_chain_template(db, template_id)
    return (await build_chain_template_views(db, [template]))[0]


@router.post("", response_model=ChainTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_chain_template(
    body: ChainTemplateCreate,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_chain_admin()),
    db: AsyncSession = Depends(get_db_with_tenant),
):
    template = await templates.create_chain_template(
        db,
        tenant_id=tenant_uuid(current_user),
        entity_type=body.entity_type,
        name=body.name,
        description=body.description,
        levels=_to_inputs(body.levels),
    )
    return (await build_chain_template_views(db, [template]))[0]


@router.put("/{template_id}/levels", response_model=ChainTemplateResponse)
async def update_chain_levels(
    template_id: uuid.UUID,
    body: ChainLevelsUpdate,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_chain_admin()),
    db: AsyncSession = Depends(get_db_with_tenant),
):
    """Replace the template's whole level list. In-flight requests keep their snapshot."""
    template = await templates.update_chain_levels(db, template_id, _to_inputs(body.levels))
    return (await build_chain_template_views(db, [template]))[0]
