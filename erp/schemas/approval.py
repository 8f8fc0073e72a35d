import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

EntityTypeLiteral = Literal["QUOTATION", "PURCHASE_ORDER"]


# ---------- chain templates ----------

class ChainLevelIn(BaseModel):
    level_order: int = Field(..., ge=1)
    level_name: str = Field(..., min_length=1, max_length=100)
    approver_user_id: uuid.UUID
    is_required: bool = True


class ChainTemplateCreate(BaseModel):
    entity_type: EntityTypeLiteral
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    levels: List[ChainLevelIn] = Field(default_factory=list)


class ChainLevelsUpdate(BaseModel):
    levels: List[ChainLevelIn] = Field(..., min_length=1)


class ChainLevelResponse(BaseModel):
    level_order: int
    level_name: str
    approver_user_id: str
    approver_name: Optional[str] = None
    is_required: bool


class ChainTemplateResponse(BaseModel):
    id: str
    tenant_id: str
    entity_type: str
    name: str
    description: Optional[str] = None
    is_active: bool
    levels: List[ChainLevelResponse] = Field(default_factory=list)
    created_at: str
    updated_at: Optional[str] = None


# ---------- approval requests ----------

class ApprovalSubmitRequest(BaseModel):
    entity_type: EntityTypeLiteral
    entity_id: uuid.UUID


class ApprovalActionRequest(BaseModel):
    comments: Optional[str] = Field(None, max_length=500)


class ApprovalRejectRequest(BaseModel):
    # Blank/missing reason is a business rule (400), checked by the service.
    reason: Optional[str] = Field(None, max_length=1000)
    comments: Optional[str] = Field(None, max_length=500)


class ApprovalCommentCreate(BaseModel):
    content: Optional[str] = Field(None, max_length=2000)


class ApprovalCommandResponse(BaseModel):
    id: str
    message: str


class LevelDecisionResponse(BaseModel):
    level_order: int
    level_name: str
    expected_approver_id: str
    expected_approver_name: Optional[str] = None
    decision: str
    decided_by_id: Optional[str] = None
    decided_by_name: Optional[str] = None
    decided_at: Optional[str] = None
    comments: Optional[str] = None


class ApprovalSummaryResponse(BaseModel):
    id: str
    entity_type: str
    entity_id: str
    entity_description: Optional[str] = None
    current_level: int
    total_levels: int
    status: str
    submitted_by_id: str
    submitted_by_name: Optional[str] = None
    submitted_at: str
    completed_at: Optional[str] = None


class ApprovalDetailResponse(ApprovalSummaryResponse):
    levels: List[LevelDecisionResponse] = Field(default_factory=list)


class ApprovalHistoryResponse(BaseModel):
    id: str
    level_order: Optional[int] = None
    action: str
    actor_id: str
    actor_name: Optional[str] = None
    comment: Optional[str] = None
    created_at: str


class ApprovalCommentResponse(BaseModel):
    id: str
    author_id: str
    author_name: Optional[str] = None
    comment_type: str
    content: str
    created_at: str
