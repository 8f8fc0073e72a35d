"""
End-to-end approval flows through the HTTP API.

Admin configures a chain, a submitter sends a DRAFT entity into it, and
the approvers act in turn.
"""

import uuid

import pytest
from sqlalchemy import select

from erp.models.approval import ApprovalRequest
from erp.models.purchase_order import PurchaseOrder
from erp.models.quotation import Quotation
from tests.conftest import TENANT_ID, auth_headers

TEMPLATES = "/api/v1/approval-chain-templates"
APPROVALS = "/api/v1/approvals"


async def _create_template(client, users, entity_type, approver_keys):
    body = {
        "entity_type": entity_type,
        "name": f"{entity_type.title()} approval",
        "levels": [
            {
                "level_order": i,
                "level_name": key.title(),
                "approver_user_id": str(users[key].id),
            }
            for i, key in enumerate(approver_keys, start=1)
        ],
    }
    resp = await client.post(TEMPLATES, json=body, headers=auth_headers(users["admin"]))
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _draft_quotation(session_factory, users) -> uuid.UUID:
    async with session_factory() as session:
        q = Quotation(
            id=uuid.uuid4(), tenant_id=TENANT_ID, quotation_number="Q-2026-0001",
            job_code="JOB-1", revision=1, status="DRAFT", total_cents=500_000,
            currency="KRW", created_by_id=users["sales"].id,
        )
        session.add(q)
        await session.commit()
        return q.id


async def _draft_po(session_factory) -> uuid.UUID:
    async with session_factory() as session:
        po = PurchaseOrder(
            id=uuid.uuid4(), tenant_id=TENANT_ID, po_number="PO-2026-0001",
            vendor_name="Hanbit Steel", status="DRAFT", total_cents=90_000, currency="KRW",
        )
        session.add(po)
        await session.commit()
        return po.id


async def _submit(client, users, entity_type, entity_id) -> str:
    resp = await client.post(
        APPROVALS,
        json={"entity_type": entity_type, "entity_id": str(entity_id)},
        headers=auth_headers(users["sales"]),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


async def _pending_ids(client, user) -> list[str]:
    resp = await client.get(APPROVALS, params={"myPending": "true"}, headers=auth_headers(user))
    assert resp.status_code == 200, resp.text
    return [item["id"] for item in resp.json()["data"]]


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_three_level_quotation_approval(client, users, session_factory):
    await _create_template(client, users, "QUOTATION", ["lead", "head", "ceo"])
    quotation_id = await _draft_quotation(session_factory, users)
    request_id = await _submit(client, users, "QUOTATION", quotation_id)

    detail = (await client.get(f"{APPROVALS}/{request_id}", headers=auth_headers(users["sales"]))).json()
    assert detail["status"] == "PENDING"
    assert detail["current_level"] == 1
    assert detail["total_levels"] == 3
    assert detail["entity_description"] == "Quotation Q-2026-0001 v1 (JOB-1)"
    assert detail["submitted_by_name"] == "Sam Seller"

    # Only the level-1 approver sees it in their queue.
    assert await _pending_ids(client, users["lead"]) == [request_id]
    assert await _pending_ids(client, users["head"]) == []

    for key, expected_level in (("lead", 2), ("head", 3)):
        resp = await client.post(
            f"{APPROVALS}/{request_id}/approve",
            json={"comments": f"ok from {key}"},
            headers=auth_headers(users[key]),
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["message"] == "Approval request approved at current level"
        detail = (await client.get(f"{APPROVALS}/{request_id}", headers=auth_headers(users["sales"]))).json()
        assert detail["status"] == "PENDING"
        assert detail["current_level"] == expected_level

    assert await _pending_ids(client, users["ceo"]) == [request_id]

    resp = await client.post(f"{APPROVALS}/{request_id}/approve", headers=auth_headers(users["ceo"]))
    assert resp.status_code == 200, resp.text

    detail = (await client.get(f"{APPROVALS}/{request_id}", headers=auth_headers(users["sales"]))).json()
    assert detail["status"] == "APPROVED"
    assert detail["completed_at"] is not None
    assert [lv["decision"] for lv in detail["levels"]] == ["APPROVED"] * 3
    assert detail["levels"][0]["comments"] == "ok from lead"
    assert detail["levels"][2]["decided_by_name"] == "Chris Chief"

    history = (await client.get(f"{APPROVALS}/{request_id}/history", headers=auth_headers(users["sales"]))).json()
    assert [(h["action"], h["level_order"]) for h in history] == [
        ("SUBMITTED", None), ("APPROVED", 1), ("APPROVED", 2), ("APPROVED", 3),
    ]

    async with session_factory() as session:
        quotation = await session.get(Quotation, quotation_id)
        assert quotation.status == "APPROVED"
        assert quotation.approved_by_id == users["ceo"].id

    # A terminal request accepts no further decisions.
    resp = await client.post(f"{APPROVALS}/{request_id}/approve", headers=auth_headers(users["ceo"]))
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "BUSINESS_RULE_VIOLATION"
    assert "already approved" in resp.json()["error"]["message"]


@pytest.mark.asyncio
async def test_out_of_order_and_outsider_are_forbidden(client, users, session_factory):
    await _create_template(client, users, "QUOTATION", ["lead", "head"])
    request_id = await _submit(client, users, "QUOTATION", await _draft_quotation(session_factory, users))

    for key in ("head", "finance"):
        resp = await client.post(f"{APPROVALS}/{request_id}/approve", headers=auth_headers(users[key]))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "APPROVAL_NOT_YOUR_TURN"
        assert "current level" in resp.json()["error"]["message"]

    detail = (await client.get(f"{APPROVALS}/{request_id}", headers=auth_headers(users["lead"]))).json()
    assert detail["current_level"] == 1
    assert [lv["decision"] for lv in detail["levels"]] == ["PENDING", "PENDING"]


# ---------------------------------------------------------------------------
# Rejection
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_rejection_stops_purchase_order_chain(client, users, session_factory):
    await _create_template(client, users, "PURCHASE_ORDER", ["finance", "ceo"])
    po_id = await _draft_po(session_factory)
    request_id = await _submit(client, users, "PURCHASE_ORDER", po_id)

    async with session_factory() as session:
        assert (await session.get(PurchaseOrder, po_id)).status == "PENDING_APPROVAL"

    resp = await client.post(
        f"{APPROVALS}/{request_id}/reject", json={"reason": "   "}, headers=auth_headers(users["finance"])
    )
    assert resp.status_code == 400
    assert "reason" in resp.json()["error"]["message"].lower()

    resp = await client.post(
        f"{APPROVALS}/{request_id}/reject",
        json={"reason": "Vendor not on approved list"},
        headers=auth_headers(users["finance"]),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["message"] == "Approval request rejected"

    detail = (await client.get(f"{APPROVALS}/{request_id}", headers=auth_headers(users["sales"]))).json()
    assert detail["status"] == "REJECTED"
    assert detail["current_level"] == 1
    assert [lv["decision"] for lv in detail["levels"]] == ["REJECTED", "PENDING"]

    comments = (await client.get(f"{APPROVALS}/{request_id}/comments", headers=auth_headers(users["sales"]))).json()
    assert [(c["comment_type"], c["content"]) for c in comments] == [
        ("REJECTION_REASON", "Vendor not on approved list")
    ]

    async with session_factory() as session:
        po = await session.get(PurchaseOrder, po_id)
        assert po.status == "REJECTED"
        assert po.rejection_reason == "Vendor not on approved list"

    # Level 2 is never reached.
    assert await _pending_ids(client, users["ceo"]) == []
    resp = await client.post(f"{APPROVALS}/{request_id}/approve", headers=auth_headers(users["ceo"]))
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_template_edit_does_not_touch_in_flight_request(client, users, session_factory):
    template = await _create_template(client, users, "QUOTATION", ["lead", "head"])
    request_id = await _submit(client, users, "QUOTATION", await _draft_quotation(session_factory, users))

    resp = await client.put(
        f"{TEMPLATES}/{template['id']}/levels",
        json={"levels": [{"level_order": 1, "level_name": "CEO", "approver_user_id": str(users["ceo"].id)}]},
        headers=auth_headers(users["admin"]),
    )
    assert resp.status_code == 200, resp.text
    assert [lv["approver_name"] for lv in resp.json()["levels"]] == ["Chris Chief"]

    detail = (await client.get(f"{APPROVALS}/{request_id}", headers=auth_headers(users["lead"]))).json()
    assert detail["total_levels"] == 2
    assert [lv["level_name"] for lv in detail["levels"]] == ["Lead", "Head"]

    resp = await client.post(f"{APPROVALS}/{request_id}/approve", headers=auth_headers(users["ceo"]))
    assert resp.status_code == 403
    resp = await client.post(f"{APPROVALS}/{request_id}/approve", headers=auth_headers(users["lead"]))
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_template_validation_errors(client, users):
    admin = auth_headers(users["admin"])
    gap = {
        "entity_type": "QUOTATION",
        "name": "Broken",
        "levels": [
            {"level_order": 1, "level_name": "A", "approver_user_id": str(users["lead"].id)},
            {"level_order": 3, "level_name": "B", "approver_user_id": str(users["head"].id)},
        ],
    }
    resp = await client.post(TEMPLATES, json=gap, headers=admin)
    assert resp.status_code == 400
    assert "sequential" in resp.json()["error"]["message"]

    unknown = {
        "entity_type": "QUOTATION",
        "name": "Ghost",
        "levels": [{"level_order": 1, "level_name": "A", "approver_user_id": str(uuid.uuid4())}],
    }
    resp = await client.post(TEMPLATES, json=unknown, headers=admin)
    assert resp.status_code == 404
    assert "User" in resp.json()["error"]["message"]

    await _create_template(client, users, "QUOTATION", ["lead"])
    resp = await client.post(
        TEMPLATES,
        json={"entity_type": "QUOTATION", "name": "Again", "levels": []},
        headers=admin,
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "DUPLICATE_RESOURCE"

    resp = await client.get(TEMPLATES, headers=auth_headers(users["lead"]))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"


@pytest.mark.asyncio
async def test_submit_without_template_is_not_found(client, users, session_factory):
    quotation_id = await _draft_quotation(session_factory, users)
    resp = await client.post(
        APPROVALS,
        json={"entity_type": "QUOTATION", "entity_id": str(quotation_id)},
        headers=auth_headers(users["sales"]),
    )
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    # The whole submission rolled back, entity included.
    async with session_factory() as session:
        assert (await session.get(Quotation, quotation_id)).status == "DRAFT"
        assert (await session.execute(select(ApprovalRequest))).first() is None


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unknown_request_reads_are_not_found(client, users):
    missing = uuid.uuid4()
    for path in (f"{APPROVALS}/{missing}", f"{APPROVALS}/{missing}/history", f"{APPROVALS}/{missing}/comments"):
        resp = await client.get(path, headers=auth_headers(users["lead"]))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


@pytest.mark.asyncio
async def test_listing_all_requires_audit_role(client, users, session_factory):
    await _create_template(client, users, "QUOTATION", ["lead"])
    await _create_template(client, users, "PURCHASE_ORDER", ["finance"])
    await _submit(client, users, "QUOTATION", await _draft_quotation(session_factory, users))
    await _submit(client, users, "PURCHASE_ORDER", await _draft_po(session_factory))

    resp = await client.get(APPROVALS, headers=auth_headers(users["lead"]))
    assert resp.status_code == 403

    resp = await client.get(APPROVALS, headers=auth_headers(users["finance"]))
    assert resp.status_code == 200
    body = resp.json()
    assert body["pagination"]["total"] == 2
    assert len(body["data"]) == 2

    resp = await client.get(
        APPROVALS, params={"entity_type": "PURCHASE_ORDER", "status": "PENDING"},
        headers=auth_headers(users["admin"]),
    )
    assert [item["entity_type"] for item in resp.json()["data"]] == ["PURCHASE_ORDER"]

    resp = await client.get(APPROVALS, params={"page": 2, "limit": 1}, headers=auth_headers(users["admin"]))
    page = resp.json()
    assert len(page["data"]) == 1
    assert page["pagination"]["has_prev"] is True
    assert page["pagination"]["has_next"] is False


@pytest.mark.asyncio
async def test_discussion_comments(client, users, session_factory):
    await _create_template(client, users, "QUOTATION", ["lead"])
    request_id = await _submit(client, users, "QUOTATION", await _draft_quotation(session_factory, users))

    resp = await client.post(
        f"{APPROVALS}/{request_id}/comments", json={"content": "Please attach the drawing"},
        headers=auth_headers(users["lead"]),
    )
    assert resp.status_code == 201
    assert resp.json()["message"] == "Comment added"

    resp = await client.post(
        f"{APPROVALS}/{request_id}/comments", json={"content": ""}, headers=auth_headers(users["lead"])
    )
    assert resp.status_code == 400

    comments = (await client.get(f"{APPROVALS}/{request_id}/comments", headers=auth_headers(users["sales"]))).json()
    assert [(c["comment_type"], c["author_name"]) for c in comments] == [("DISCUSSION", "Lee Lead")]
