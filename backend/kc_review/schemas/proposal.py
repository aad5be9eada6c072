"""Pydantic schemas for coefficient proposals."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from kc_review.review_workflow.coefficients import CoefficientSet, Provenance


class ProposalResponse(BaseModel):
    id: uuid.UUID
    subject_id: str
    status: str
    version: int
    coefficients: CoefficientSet
    provenance: Provenance
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


class ProposalMutationResponse(BaseModel):
    """Mutated proposal plus the id of the audit entry recorded for it."""
    proposal: ProposalResponse
    audit_entry_id: uuid.UUID


class ProposalListResponse(BaseModel):
    items: list[ProposalResponse]
    total: int
    page: int
    per_page: int


class ProposalStats(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


# ── Requests ──


class SubmitProposalRequest(BaseModel):
    subject_id: str = Field(..., description="Opaque reference to the crop variety")
    coefficients: dict
    provenance: dict | None = None
    season_length: int | None = Field(default=None, description="Stage durations must sum to this")
    actor: str
    reason: str | None = None


class EditProposalRequest(BaseModel):
    expected_version: int
    coefficients: dict | None = None
    provenance: dict | None = None
    season_length: int | None = None
    actor: str
    reason: str | None = None


class DecisionRequest(BaseModel):
    """Body for approve, reject and delete."""
    expected_version: int
    actor: str
    reason: str | None = None


class RevertRequest(BaseModel):
    expected_version: int
    target_entry_id: uuid.UUID
    actor: str
    reason: str | None = None
