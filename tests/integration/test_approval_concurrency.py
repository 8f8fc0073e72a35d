"""
Two approvers (or two clicks) racing on the same request.

Each case interleaves two sessions by hand so the outcome does not depend
on scheduling: exactly one transition wins, the loser gets a 4xx-class
domain error, and the entity handler fires once.
"""

import uuid

import pytest
from sqlalchemy import func, select

from erp.exceptions import BusinessError, ConflictError
from erp.models.approval import ApprovalHistory, ApprovalRequest
from erp.models.quotation import Quotation
from erp.services import approval_service
from erp.services.chain_template_service import ChainLevelInput, create_chain_template
from tests.conftest import TENANT_ID


async def _open_request(session_factory, users, approver_keys) -> tuple[uuid.UUID, uuid.UUID]:
    async with session_factory() as session:
        await create_chain_template(
            session,
            tenant_id=TENANT_ID,
            entity_type="QUOTATION",
            name="Quotation approval",
            description=None,
            levels=[
                ChainLevelInput(i, key.title(), users[key].id)
                for i, key in enumerate(approver_keys, start=1)
            ],
        )
        quotation = Quotation(
            id=uuid.uuid4(), tenant_id=TENANT_ID, quotation_number="Q-RACE",
            revision=1, status="DRAFT", total_cents=1_000, currency="KRW",
        )
        session.add(quotation)
        await session.flush()
        request = await approval_service.submit_for_approval(
            session, TENANT_ID, "QUOTATION", quotation.id, users["sales"].id
        )
        await session.commit()
        return request.id, quotation.id


async def _count_history(session_factory, request_id, action) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count(ApprovalHistory.id)).where(
                ApprovalHistory.approval_request_id == request_id,
                ApprovalHistory.action == action,
            )
        )
        return result.scalar()


@pytest.mark.asyncio
async def test_double_final_approval_applies_once(users, session_factory):
    request_id, quotation_id = await _open_request(session_factory, users, ["lead"])
    lead = users["lead"].id

    async with session_factory() as first, session_factory() as second:
        # The second session already holds the request as PENDING.
        assert (await second.get(ApprovalRequest, request_id)).status == "PENDING"

        await approval_service.approve(first, request_id, lead)
        await first.commit()

        with pytest.raises(BusinessError) as exc_info:
            await approval_service.approve(second, request_id, lead)
        await second.rollback()

    assert "already approved" in exc_info.value.message
    assert await _count_history(session_factory, request_id, "APPROVED") == 1
    async with session_factory() as session:
        assert (await session.get(Quotation, quotation_id)).status == "APPROVED"


@pytest.mark.asyncio
async def test_reject_after_concurrent_approval_is_refused(users, session_factory):
    request_id, quotation_id = await _open_request(session_factory, users, ["lead"])
    lead = users["lead"].id

    async with session_factory() as first, session_factory() as second:
        await second.get(ApprovalRequest, request_id)

        await approval_service.approve(first, request_id, lead)
        await first.commit()

        with pytest.raises(BusinessError):
            await approval_service.reject(second, request_id, lead, "changed my mind")
        await second.rollback()

    assert await _count_history(session_factory, request_id, "REJECTED") == 0
    async with session_factory() as session:
        quotation = await session.get(Quotation, quotation_id)
        assert quotation.status == "APPROVED"
        assert quotation.rejection_reason is None


@pytest.mark.asyncio
async def test_stale_write_is_a_conflict(users, session_factory):
    """A write based on an outdated row version never lands."""
    request_id, _ = await _open_request(session_factory, users, ["lead", "head"])

    async with session_factory() as first, session_factory() as second:
        stale = await second.get(ApprovalRequest, request_id)
        assert stale.version == 1

        await approval_service.approve(first, request_id, users["lead"].id)
        await first.commit()

        stale.current_level = 2
        with pytest.raises(ConflictError) as exc_info:
            await approval_service._flush_transition(second, stale)
        await second.rollback()

    assert exc_info.value.status_code == 409
    async with session_factory() as session:
        request = await session.get(ApprovalRequest, request_id)
        assert request.current_level == 2
        assert request.version == 2
