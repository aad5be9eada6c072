"""Pydantic schemas for proposal audit history."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class AuditEntryResponse(BaseModel):
    id: uuid.UUID
    proposal_id: uuid.UUID
    proposal_version: int
    action_type: str
    before_snapshot: str | None = None
    after_snapshot: str | None = None
    actor: str
    reason: str | None = None
    source_entry_id: uuid.UUID | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ProposalHistoryResponse(BaseModel):
    proposal_id: uuid.UUID
    entries: list[AuditEntryResponse] = Field(default_factory=list)


class HistoryVerificationResponse(BaseModel):
    proposal_id: uuid.UUID
    consistent: bool
    problems: list[str] = Field(default_factory=list)
