"""Crop-coefficient review workflow: proposal state machine plus audit trail."""

from kc_review.review_workflow.audit_recorder import AuditRecorder
from kc_review.review_workflow.history import HistoryReader
from kc_review.review_workflow.proposal_store import ProposalStore, StoreChange
from kc_review.review_workflow.service import ReviewResult, ReviewService

__all__ = [
    "AuditRecorder",
    "HistoryReader",
    "ProposalStore",
    "ReviewResult",
    "ReviewService",
    "StoreChange",
]
