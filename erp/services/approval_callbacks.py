"""
Entity handlers invoked by the approval engine.

Each business entity type that can be routed through an approval chain
registers one handler. The engine only knows the entity type tag on the
request and looks the handler up in ENTITY_HANDLERS; it never imports the
quotation or purchase-order logic directly.

Handlers run inside the caller's transaction and only flush.
"""

import uuid
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from erp.exceptions import BusinessError, NotFoundError
from erp.models.purchase_order import PurchaseOrder
from erp.models.quotation import Quotation

logger = structlog.get_logger()


class EntityApprovalHandler(Protocol):
    async def submit(self, session: AsyncSession, entity_id: uuid.UUID) -> str:
        """Move the entity into its pending state and return a display label."""
        ...

    async def on_approved(
        self, session: AsyncSession, entity_id: uuid.UUID, approver_id: uuid.UUID
    ) -> None:
        ...

    async def on_rejected(
        self, session: AsyncSession, entity_id: uuid.UUID, reason: str
    ) -> None:
        ...


class QuotationApprovalHandler:
    async def _load(self, session: AsyncSession, entity_id: uuid.UUID) -> Quotation:
        result = await session.execute(
            select(Quotation).where(Quotation.id == entity_id).with_for_update()
        )
        quotation = result.scalar_one_or_none()
        if not quotation:
            raise NotFoundError("Quotation", entity_id)
        return quotation

    async def submit(self, session: AsyncSession, entity_id: uuid.UUID) -> str:
        quotation = await self._load(session, entity_id)
        if quotation.status != "DRAFT":
            raise BusinessError(
                "Quotation must be in DRAFT status to submit for approval"
            )
        quotation.status = "PENDING"
        quotation.submitted_at = datetime.utcnow()
        await session.flush()

        label = f"Quotation {quotation.quotation_number} v{quotation.revision}"
        if quotation.job_code:
            label = f"{label} ({quotation.job_code})"
        return label

    async def on_approved(
        self, session: AsyncSession, entity_id: uuid.UUID, approver_id: uuid.UUID
    ) -> None:
        quotation = await self._load(session, entity_id)
        if quotation.status != "PENDING":
            raise BusinessError("Only PENDING quotations can be approved")
        quotation.status = "APPROVED"
        quotation.approved_at = datetime.utcnow()
        quotation.approved_by_id = approver_id
        await session.flush()
        logger.info("quotation_approved", quotation_id=str(entity_id))

    async def on_rejected(
        self, session: AsyncSession, entity_id: uuid.UUID, reason: str
    ) -> None:
        quotation = await self._load(session, entity_id)
        if quotation.status != "PENDING":
            raise BusinessError("Only PENDING quotations can be rejected")
        quotation.status = "REJECTED"
        quotation.rejection_reason = reason
        await session.flush()
        logger.info("quotation_rejected", quotation_id=str(entity_id))


class PurchaseOrderApprovalHandler:
    async def _load(self, session: AsyncSession, entity_id: uuid.UUID) -> PurchaseOrder:
        result = await session.execute(
            select(PurchaseOrder).where(PurchaseOrder.id == entity_id).with_for_update()
        )
        po = result.scalar_one_or_none()
        if not po:
            raise NotFoundError("PurchaseOrder", entity_id)
        return po

    async def submit(self, session: AsyncSession, entity_id: uuid.UUID) -> str:
        po = await self._load(session, entity_id)
        if po.status != "DRAFT":
            raise BusinessError(
                "Purchase order must be in DRAFT status to submit for approval"
            )
        po.status = "PENDING_APPROVAL"
        await session.flush()
        return f"Purchase order {po.po_number} - {po.vendor_name}"

    async def on_approved(
        self, session: AsyncSession, entity_id: uuid.UUID, approver_id: uuid.UUID
    ) -> None:
        po = await self._load(session, entity_id)
        if po.status != "PENDING_APPROVAL":
            raise BusinessError("Only PENDING_APPROVAL purchase orders can be approved")
        # Final approval releases the order to the vendor.
        po.status = "ISSUED"
        po.issued_at = datetime.utcnow()
        po.approved_by_id = approver_id
        await session.flush()
        logger.info("purchase_order_issued", po_id=str(entity_id))

    async def on_rejected(
        self, session: AsyncSession, entity_id: uuid.UUID, reason: str
    ) -> None:
        po = await self._load(session, entity_id)
        if po.status != "PENDING_APPROVAL":
            raise BusinessError("Only PENDING_APPROVAL purchase orders can be rejected")
        po.status = "REJECTED"
        po.rejection_reason = reason
        await session.flush()
        logger.info("purchase_order_rejected", po_id=str(entity_id))


ENTITY_HANDLERS: dict[str, EntityApprovalHandler] = {
    "QUOTATION": QuotationApprovalHandler(),
    "PURCHASE_ORDER": PurchaseOrderApprovalHandler(),
}


def get_entity_handler(entity_type: str) -> EntityApprovalHandler:
    handler = ENTITY_HANDLERS.get(entity_type)
    if handler is None:
        raise BusinessError(f"No approval handler registered for entity type {entity_type}")
    return handler
