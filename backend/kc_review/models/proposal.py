"""ORM model for crop-coefficient proposals under review."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Enum as SAEnum,
    Float,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from kc_review.models.base import Base, TimestampMixin


class ProposalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


MULTIPLIER_FIELDS = ("kc_initial", "kc_development", "kc_mid", "kc_late")
DURATION_FIELDS = (
    "initial_stage_days",
    "development_stage_days",
    "mid_stage_days",
    "late_stage_days",
)
COEFFICIENT_FIELDS = MULTIPLIER_FIELDS + DURATION_FIELDS
PROVENANCE_FIELDS = ("source", "submitted_by_name", "submitted_by_email", "notes")


class CoefficientProposal(TimestampMixin, Base):
    __tablename__ = "crop_coefficient_proposals"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subject_id: Mapped[str] = mapped_column(String(200), nullable=False, index=True)

    # Growth-stage multipliers
    kc_initial: Mapped[float] = mapped_column(Float, nullable=False)
    kc_development: Mapped[float] = mapped_column(Float, nullable=False)
    kc_mid: Mapped[float] = mapped_column(Float, nullable=False)
    kc_late: Mapped[float] = mapped_column(Float, nullable=False)

    # Stage durations in days
    initial_stage_days: Mapped[int] = mapped_column(Integer, nullable=False)
    development_stage_days: Mapped[int] = mapped_column(Integer, nullable=False)
    mid_stage_days: Mapped[int] = mapped_column(Integer, nullable=False)
    late_stage_days: Mapped[int] = mapped_column(Integer, nullable=False)

    # Provenance
    source: Mapped[str | None] = mapped_column(String(500), nullable=True)
    submitted_by_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    submitted_by_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[ProposalStatus] = mapped_column(
        SAEnum(ProposalStatus, name="proposal_status", values_callable=lambda e: [m.value for m in e]),
        default=ProposalStatus.PENDING,
        nullable=False,
        index=True,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # UPDATEs carry "WHERE version = :old" and bump it; zero matched rows raises StaleDataError.
    __mapper_args__ = {"version_id_col": version}

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def coefficients(self) -> dict:
        return {name: getattr(self, name) for name in COEFFICIENT_FIELDS}

    def provenance(self) -> dict:
        return {name: getattr(self, name) for name in PROVENANCE_FIELDS}
