from kc_review.models.base import Base, TimestampMixin
from kc_review.models.audit import AuditAction, AuditLogEntry
from kc_review.models.proposal import CoefficientProposal, ProposalStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "AuditAction",
    "AuditLogEntry",
    "CoefficientProposal",
    "ProposalStatus",
]
