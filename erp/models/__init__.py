"""Central model registry: import all models so Alembic autodiscover works."""

from erp.database import Base  # noqa: F401

from erp.models.tenant import Tenant  # noqa: F401
from erp.models.user import User  # noqa: F401
from erp.models.quotation import Quotation  # noqa: F401
from erp.models.purchase_order import PurchaseOrder  # noqa: F401
from erp.models.approval import (  # noqa: F401
    ApprovalChainTemplate,
    ApprovalChainLevel,
    ApprovalRequest,
    ApprovalLevelDecision,
    ApprovalHistory,
    ApprovalComment,
)
