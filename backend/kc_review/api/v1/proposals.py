"""Coefficient proposal endpoints — submit, review, revert, and read history.

A thin transport over ReviewService. The actor comes from the request body;
deciding whether that actor may act is the caller's job, not this service's.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query

from kc_review.dependencies import get_review_service
from kc_review.errors import (
    EntryNotFound,
    InvalidTransition,
    ProposalNotFound,
    ReviewError,
    StorageUnavailable,
    ValidationError,
    VersionConflict,
)
from kc_review.models.proposal import CoefficientProposal
from kc_review.review_workflow.coefficients import CoefficientSet, Provenance
from kc_review.review_workflow.service import ReviewResult, ReviewService
from kc_review.schemas.audit import (
    AuditEntryResponse,
    HistoryVerificationResponse,
    ProposalHistoryResponse,
)
from kc_review.schemas.proposal import (
    DecisionRequest,
    EditProposalRequest,
    ProposalListResponse,
    ProposalMutationResponse,
    ProposalResponse,
    ProposalStats,
    RevertRequest,
    SubmitProposalRequest,
)

router = APIRouter()


@router.post("", response_model=ProposalMutationResponse, status_code=201)
async def submit_proposal(
    request: SubmitProposalRequest,
    review: ReviewService = Depends(get_review_service),
) -> ProposalMutationResponse:
    """Submit a new proposal; it always starts pending at version 1."""
    try:
        result = await review.submit(
            actor=request.actor,
            subject_id=request.subject_id,
            coefficients=request.coefficients,
            provenance=request.provenance,
            season_length=request.season_length,
            reason=request.reason,
        )
    except ReviewError as e:
        raise _http_error(e)
    return _mutation_response(result)


@router.get("", response_model=ProposalListResponse)
async def list_proposals(
    status: str | None = None,
    subject_id: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    review: ReviewService = Depends(get_review_service),
) -> ProposalListResponse:
    try:
        items, total = await review.list_proposals(
            status=status, subject_id=subject_id, page=page, per_page=per_page,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ReviewError as e:
        raise _http_error(e)
    return ProposalListResponse(
        items=[_proposal_to_response(p) for p in items],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/stats", response_model=ProposalStats)
async def get_stats(review: ReviewService = Depends(get_review_service)) -> ProposalStats:
    try:
        stats = await review.get_stats()
    except ReviewError as e:
        raise _http_error(e)
    return ProposalStats(**stats)


@router.get("/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(
    proposal_id: uuid.UUID,
    review: ReviewService = Depends(get_review_service),
) -> ProposalResponse:
    try:
        proposal = await review.get_proposal(proposal_id)
    except ReviewError as e:
        raise _http_error(e)
    return _proposal_to_response(proposal)


@router.patch("/{proposal_id}", response_model=ProposalMutationResponse)
async def edit_proposal(
    proposal_id: uuid.UUID,
    request: EditProposalRequest,
    review: ReviewService = Depends(get_review_service),
) -> ProposalMutationResponse:
    try:
        result = await review.edit(
            proposal_id,
            expected_version=request.expected_version,
            actor=request.actor,
            coefficients=request.coefficients,
            provenance=request.provenance,
            season_length=request.season_length,
            reason=request.reason,
        )
    except ReviewError as e:
        raise _http_error(e)
    return _mutation_response(result)


@router.post("/{proposal_id}/approve", response_model=ProposalMutationResponse)
async def approve_proposal(
    proposal_id: uuid.UUID,
    request: DecisionRequest,
    review: ReviewService = Depends(get_review_service),
) -> ProposalMutationResponse:
    try:
        result = await review.approve(
            proposal_id, expected_version=request.expected_version, actor=request.actor, reason=request.reason,
        )
    except ReviewError as e:
        raise _http_error(e)
    return _mutation_response(result)


@router.post("/{proposal_id}/reject", response_model=ProposalMutationResponse)
async def reject_proposal(
    proposal_id: uuid.UUID,
    request: DecisionRequest,
    review: ReviewService = Depends(get_review_service),
) -> ProposalMutationResponse:
    try:
        result = await review.reject(
            proposal_id, expected_version=request.expected_version, actor=request.actor, reason=request.reason,
        )
    except ReviewError as e:
        raise _http_error(e)
    return _mutation_response(result)


@router.post("/{proposal_id}/revert", response_model=ProposalMutationResponse)
async def revert_proposal(
    proposal_id: uuid.UUID,
    request: RevertRequest,
    review: ReviewService = Depends(get_review_service),
) -> ProposalMutationResponse:
    try:
        result = await review.revert(
            proposal_id,
            expected_version=request.expected_version,
            target_entry_id=request.target_entry_id,
            actor=request.actor,
            reason=request.reason,
        )
    except ReviewError as e:
        raise _http_error(e)
    return _mutation_response(result)


@router.post("/{proposal_id}/delete", response_model=ProposalMutationResponse)
async def delete_proposal(
    proposal_id: uuid.UUID,
    request: DecisionRequest,
    review: ReviewService = Depends(get_review_service),
) -> ProposalMutationResponse:
    """Tombstone a proposal. Its history stays readable."""
    try:
        result = await review.delete(
            proposal_id, expected_version=request.expected_version, actor=request.actor, reason=request.reason,
        )
    except ReviewError as e:
        raise _http_error(e)
    return _mutation_response(result)


@router.get("/{proposal_id}/history", response_model=ProposalHistoryResponse)
async def get_history(
    proposal_id: uuid.UUID,
    review: ReviewService = Depends(get_review_service),
) -> ProposalHistoryResponse:
    try:
        entries = await review.history(proposal_id)
    except ReviewError as e:
        raise _http_error(e)
    return ProposalHistoryResponse(
        proposal_id=proposal_id,
        entries=[_entry_to_response(e) for e in entries],
    )


@router.get("/{proposal_id}/history/verify", response_model=HistoryVerificationResponse)
async def verify_history(
    proposal_id: uuid.UUID,
    review: ReviewService = Depends(get_review_service),
) -> HistoryVerificationResponse:
    try:
        problems = await review.verify_history(proposal_id)
    except ReviewError as e:
        raise _http_error(e)
    return HistoryVerificationResponse(
        proposal_id=proposal_id, consistent=not problems, problems=problems,
    )


@router.get("/{proposal_id}/history/{entry_id}/state")
async def get_state_at(
    proposal_id: uuid.UUID,
    entry_id: uuid.UUID,
    review: ReviewService = Depends(get_review_service),
) -> dict:
    """Decoded proposal state right after the given audit entry."""
    try:
        state = await review.state_at(proposal_id, entry_id)
    except ReviewError as e:
        raise _http_error(e)
    return {
        "proposal_id": str(proposal_id),
        "entry_id": str(entry_id),
        "state": state.model_dump(mode="json") if state is not None else None,
    }


# ── Error mapping ──

def _http_error(error: ReviewError) -> HTTPException:
    """Translate a workflow error into the matching HTTP status."""
    if isinstance(error, ValidationError):
        return HTTPException(status_code=422, detail={"message": str(error), "errors": error.errors})
    if isinstance(error, VersionConflict):
        return HTTPException(
            status_code=409,
            detail={
                "message": str(error),
                "expected_version": error.expected_version,
                "current_version": error.current_version,
            },
        )
    if isinstance(error, InvalidTransition):
        return HTTPException(status_code=409, detail={"message": str(error), "status": error.status})
    if isinstance(error, (ProposalNotFound, EntryNotFound)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, StorageUnavailable):
        return HTTPException(status_code=503, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


# ── Response converters ──

def _proposal_to_response(proposal: CoefficientProposal) -> ProposalResponse:
    return ProposalResponse(
        id=proposal.id,
        subject_id=proposal.subject_id,
        status=proposal.status.value,
        version=proposal.version,
        coefficients=CoefficientSet(**proposal.coefficients()),
        provenance=Provenance(**proposal.provenance()),
        created_at=proposal.created_at,
        updated_at=proposal.updated_at,
        deleted_at=proposal.deleted_at,
    )


def _mutation_response(result: ReviewResult) -> ProposalMutationResponse:
    return ProposalMutationResponse(
        proposal=_proposal_to_response(result.proposal),
        audit_entry_id=result.audit_entry_id,
    )


def _entry_to_response(entry) -> AuditEntryResponse:
    return AuditEntryResponse(
        id=entry.id,
        proposal_id=entry.proposal_id,
        proposal_version=entry.proposal_version,
        action_type=entry.action_type.value,
        before_snapshot=entry.before_snapshot,
        after_snapshot=entry.after_snapshot,
        actor=entry.actor,
        reason=entry.reason,
        source_entry_id=entry.source_entry_id,
        created_at=entry.created_at,
    )
