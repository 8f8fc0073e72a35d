"""enable_rls_policies

Revision ID: 8c3d5e0a6f21
Revises: 4f1a2c7e9b10
Create Date: 2026-10-19 09:20:03.000000+00:00

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '8c3d5e0a6f21'
down_revision: Union[str, None] = '4f1a2c7e9b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Tables with tenant_id that get RLS. Level, decision, history and comment
# rows are only reachable through their tenant-scoped parent.
RLS_TABLES = [
    "users", "quotations", "purchase_orders",
    "approval_chain_templates", "approval_requests",
]


def upgrade() -> None:
    for table in RLS_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(
            f"CREATE POLICY tenant_isolation ON {table} "
            f"USING (tenant_id = current_setting('app.current_tenant_id')::uuid)"
        )

    # "Whose turn is it" lookup for the pending-approvals queue
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_decisions_pending_turn "
        "ON approval_level_decisions(expected_approver_id, approval_request_id, level_order) "
        "WHERE decision = 'PENDING'"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_approval_requests_tenant_status_date "
        "ON approval_requests(tenant_id, status, submitted_at DESC)"
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_approval_requests_tenant_status_date")
    op.execute("DROP INDEX IF EXISTS idx_decisions_pending_turn")
    for table in reversed(RLS_TABLES):
        op.execute(f"DROP POLICY IF EXISTS tenant_isolation ON {table}")
        op.execute(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY")
