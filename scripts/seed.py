"""
Seed script: one tenant, the approver users, a chain template per entity
type and one DRAFT quotation and purchase order ready to submit.
Run from the project root: python -m scripts.seed
"""
import asyncio
import sys
import os
import uuid
from datetime import date

# Ensure the project root is on sys.path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select
from erp.database import AsyncSessionLocal
from erp.models.tenant import Tenant
from erp.models.user import User
from erp.models.quotation import Quotation
from erp.models.purchase_order import PurchaseOrder
from erp.services.chain_template_service import ChainLevelInput, create_chain_template

# ---------- Fixed UUIDs ----------

TENANT_ACME_ID = uuid.UUID("a0000000-0000-0000-0000-000000000001")

USER_ADMIN_ID = uuid.UUID("a0000000-0000-0000-0000-000000000101")
USER_SALES_ID = uuid.UUID("a0000000-0000-0000-0000-000000000102")
USER_TEAM_LEAD_ID = uuid.UUID("a0000000-0000-0000-0000-000000000103")
USER_DEPT_HEAD_ID = uuid.UUID("a0000000-0000-0000-0000-000000000104")
USER_CEO_ID = uuid.UUID("a0000000-0000-0000-0000-000000000105")
USER_FINANCE_ID = uuid.UUID("a0000000-0000-0000-0000-000000000106")
USER_PROCUREMENT_ID = uuid.UUID("a0000000-0000-0000-0000-000000000107")

QUOTATION_ID = uuid.UUID("c0000000-0000-0000-0000-000000000001")
PO_ID = uuid.UUID("f0000000-0000-0000-0000-000000000001")


async def seed():
    async with AsyncSessionLocal() as db:
        # Table owner bypasses RLS, so no tenant context is set here.
        result = await db.execute(select(Tenant).where(Tenant.id == TENANT_ACME_ID))
        if result.scalar_one_or_none():
            print("Seed data already exists. Skipping.")
            return

        db.add(Tenant(
            id=TENANT_ACME_ID,
            name="Acme Engineering",
            slug="acme-eng",
            status="ACTIVE",
            settings={"currency": "KRW"},
        ))
        await db.flush()

        users = [
            User(id=USER_ADMIN_ID, tenant_id=TENANT_ACME_ID, email="admin@acme.com",
                 first_name="Ada", last_name="Admin", role="admin"),
            User(id=USER_SALES_ID, tenant_id=TENANT_ACME_ID, email="sales@acme.com",
                 first_name="Sam", last_name="Seller", role="sales"),
            User(id=USER_TEAM_LEAD_ID, tenant_id=TENANT_ACME_ID, email="lead@acme.com",
                 first_name="Lee", last_name="Lead", role="manager"),
            User(id=USER_DEPT_HEAD_ID, tenant_id=TENANT_ACME_ID, email="head@acme.com",
                 first_name="Hana", last_name="Head", role="manager"),
            User(id=USER_CEO_ID, tenant_id=TENANT_ACME_ID, email="ceo@acme.com",
                 first_name="Chris", last_name="Chief", role="executive"),
            User(id=USER_FINANCE_ID, tenant_id=TENANT_ACME_ID, email="finance@acme.com",
                 first_name="Fran", last_name="Finance", role="finance"),
            User(id=USER_PROCUREMENT_ID, tenant_id=TENANT_ACME_ID, email="procurement@acme.com",
                 first_name="Pat", last_name="Buyer", role="procurement"),
        ]
        db.add_all(users)
        await db.flush()

        # --- Chain templates ---
        await create_chain_template(
            db,
            tenant_id=TENANT_ACME_ID,
            entity_type="QUOTATION",
            name="Quotation approval",
            description="Team lead, department head, then CEO",
            levels=[
                ChainLevelInput(1, "Team Lead", USER_TEAM_LEAD_ID),
                ChainLevelInput(2, "Department Head", USER_DEPT_HEAD_ID),
                ChainLevelInput(3, "CEO", USER_CEO_ID),
            ],
        )
        await create_chain_template(
            db,
            tenant_id=TENANT_ACME_ID,
            entity_type="PURCHASE_ORDER",
            name="Purchase order approval",
            description="Finance review, then CEO",
            levels=[
                ChainLevelInput(1, "Finance", USER_FINANCE_ID),
                ChainLevelInput(2, "CEO", USER_CEO_ID),
            ],
        )

        # --- Draft entities ---
        db.add(Quotation(
            id=QUOTATION_ID, tenant_id=TENANT_ACME_ID, quotation_number="Q-2026-0001",
            job_code="JOB-0042", revision=1, status="DRAFT", total_cents=12_500_000_00,
            currency="KRW", created_by_id=USER_SALES_ID,
        ))
        db.add(PurchaseOrder(
            id=PO_ID, tenant_id=TENANT_ACME_ID, po_number="PO-2026-0001",
            vendor_name="Hanbit Steel Co.", status="DRAFT", total_cents=3_200_000_00,
            currency="KRW", expected_delivery_date=date(2026, 12, 1),
        ))

        await db.commit()
        print("Seed data inserted successfully!")
        print("  Tenants: 1")
        print(f"  Users: {len(users)}")
        print("  Chain templates: 2")
        print("  Draft entities: 1 quotation, 1 purchase order")


if __name__ == "__main__":
    asyncio.run(seed())
