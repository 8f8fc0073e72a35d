import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    DateTime,
    Text,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp.database import Base


class ApprovalChainTemplate(Base):
    """Configured chain of approval levels for one entity type in a tenant."""

    __tablename__ = "approval_chain_templates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    levels: Mapped[list["ApprovalChainLevel"]] = relationship(
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="ApprovalChainLevel.level_order",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "entity_type", name="uq_chain_template_tenant_entity"),
    )


class ApprovalChainLevel(Base):
    __tablename__ = "approval_chain_levels"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    chain_template_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("approval_chain_templates.id", ondelete="CASCADE"),
        nullable=False,
    )
    level_order: Mapped[int] = mapped_column(Integer, nullable=False)
    level_name: Mapped[str] = mapped_column(String(100), nullable=False)
    approver_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    is_required: Mapped[bool] = mapped_column(Boolean, default=True)

    template: Mapped[ApprovalChainTemplate] = relationship(back_populates="levels")

    __table_args__ = (
        UniqueConstraint("chain_template_id", "level_order", name="uq_chain_level_order"),
        CheckConstraint("level_order > 0", name="chk_chain_level_order_positive"),
    )


class ApprovalRequest(Base):
    """
    One walk of a chain for one business entity.

    Level names and approvers are copied onto the decisions at creation, so
    template edits never reach requests already in flight. ``version`` is the
    optimistic lock counter; every status/current_level change bumps it.
    """

    __tablename__ = "approval_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False
    )
    entity_description: Mapped[Optional[str]] = mapped_column(String(500))
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_levels: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="PENDING")
    submitted_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    decisions: Mapped[list["ApprovalLevelDecision"]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="ApprovalLevelDecision.level_order",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("current_level > 0", name="chk_approval_current_level_positive"),
        Index("idx_approval_requests_entity", "entity_type", "entity_id"),
        Index("idx_approval_requests_status", "status"),
        Index("idx_approval_requests_tenant", "tenant_id"),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == "PENDING"

    @property
    def is_completed(self) -> bool:
        return self.status in ("APPROVED", "REJECTED")

    @property
    def is_at_final_level(self) -> bool:
        return self.current_level == self.total_levels

    def decision_at(self, level_order: int) -> Optional["ApprovalLevelDecision"]:
        for d in self.decisions:
            if d.level_order == level_order:
                return d
        return None

    @property
    def current_decision(self) -> Optional["ApprovalLevelDecision"]:
        return self.decision_at(self.current_level)


class ApprovalLevelDecision(Base):
    __tablename__ = "approval_level_decisions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    approval_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("approval_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    level_order: Mapped[int] = mapped_column(Integer, nullable=False)
    level_name: Mapped[str] = mapped_column(String(100), nullable=False)
    expected_approver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    decision: Mapped[str] = mapped_column(String(20), default="PENDING")
    decided_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    comments: Mapped[Optional[str]] = mapped_column(Text)

    request: Mapped[ApprovalRequest] = relationship(back_populates="decisions")

    __table_args__ = (
        UniqueConstraint("approval_request_id", "level_order", name="uq_decision_level_order"),
        Index("idx_decisions_approver", "expected_approver_id", "decision"),
    )


class ApprovalHistory(Base):
    """Append-only action log for a request."""

    __tablename__ = "approval_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    approval_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("approval_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    level_order: Mapped[Optional[int]] = mapped_column(Integer)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    comment: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_approval_history_request", "approval_request_id", "created_at"),
    )


class ApprovalComment(Base):
    __tablename__ = "approval_comments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    approval_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("approval_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    comment_type: Mapped[str] = mapped_column(String(30), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_approval_comments_request", "approval_request_id"),
    )
