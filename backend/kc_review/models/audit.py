"""ORM model for the coefficient audit log — immutable append-only."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    func,
    inspect,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from kc_review.errors import AuditLogImmutable
from kc_review.models.base import Base, utcnow


class AuditAction(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    APPROVE = "approve"
    REJECT = "reject"
    DELETE = "delete"
    REVERT = "revert"


class AuditLogEntry(Base):
    __tablename__ = "coefficient_audit_log"
    __table_args__ = (
        UniqueConstraint("proposal_id", "proposal_version", name="uq_audit_proposal_version"),
        Index("ix_audit_proposal_id", "proposal_id"),
        Index("ix_audit_created_at", "created_at"),
        Index("ix_audit_action_type", "action_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # No cascade: deleting a proposal must never erase its history.
    proposal_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("crop_coefficient_proposals.id", ondelete="RESTRICT"),
        nullable=False,
    )
    proposal_version: Mapped[int] = mapped_column(Integer, nullable=False)
    action_type: Mapped[AuditAction] = mapped_column(
        SAEnum(AuditAction, name="audit_action", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    before_snapshot: Mapped[str | None] = mapped_column(Text, nullable=True)
    after_snapshot: Mapped[str | None] = mapped_column(Text, nullable=True)
    actor: Mapped[str] = mapped_column(String(200), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_entry_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


@event.listens_for(AuditLogEntry, "before_update", propagate=True)
def _audit_entry_prevent_updates(mapper, connection, target) -> None:
    state = inspect(target)
    changed = [a.key for a in state.attrs if a.history.has_changes()]
    if changed:
        raise AuditLogImmutable(
            "Audit entries are append-only; update rejected (changed: "
            + ", ".join(sorted(changed))
            + ")"
        )


@event.listens_for(AuditLogEntry, "before_delete", propagate=True)
def _audit_entry_prevent_delete(mapper, connection, target) -> None:
    raise AuditLogImmutable("Audit entries are append-only; delete rejected")
