from kc_review.schemas.audit import AuditEntryResponse, ProposalHistoryResponse
from kc_review.schemas.health import HealthResponse
from kc_review.schemas.proposal import ProposalListResponse, ProposalResponse

__all__ = [
    "AuditEntryResponse",
    "HealthResponse",
    "ProposalHistoryResponse",
    "ProposalListResponse",
    "ProposalResponse",
]
