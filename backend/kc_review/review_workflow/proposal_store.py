"""ProposalStore — owns proposal rows and the review state machine.

Every mutation locks the row, checks the caller's expected version, checks
that the transition is legal, then writes. The flush is itself a
compare-and-swap on the mapper's version column, so a writer that slipped
past the lock still cannot overwrite newer state.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from kc_review.errors import (
    InvalidTransition,
    ProposalNotFound,
    ValidationError,
    VersionConflict,
)
from kc_review.models.base import utcnow
from kc_review.models.proposal import CoefficientProposal, ProposalStatus
from kc_review.review_workflow import snapshot
from kc_review.review_workflow.coefficients import (
    DEFAULT_MAX_MULTIPLIER,
    CoefficientSet,
    Provenance,
    validate_coefficients,
    validate_provenance,
)

logger = logging.getLogger("kc_review.store")

# Statuses each operation may start from.
ALLOWED_TRANSITIONS: dict[str, frozenset[ProposalStatus]] = {
    "edit": frozenset({ProposalStatus.PENDING}),
    "approve": frozenset({ProposalStatus.PENDING}),
    "reject": frozenset({ProposalStatus.PENDING}),
    "revert": frozenset(ProposalStatus),
    "delete": frozenset(ProposalStatus),
}


def check_transition(action: str, status: ProposalStatus | str) -> None:
    """Raise InvalidTransition unless ``action`` is legal from ``status``."""
    status = ProposalStatus(status)
    allowed = ALLOWED_TRANSITIONS.get(action)
    if allowed is None:
        raise ValueError(f"Unknown action: {action}")
    if status not in allowed:
        raise InvalidTransition(action, status.value)


@dataclass
class StoreChange:
    """A committed-in-transaction proposal mutation and its snapshots."""

    proposal: CoefficientProposal
    before: str | None
    after: str | None


class ProposalStore:
    def __init__(self, max_multiplier: float = DEFAULT_MAX_MULTIPLIER):
        self.max_multiplier = max_multiplier

    # ── Reads ──

    async def get(
        self,
        db: AsyncSession,
        proposal_id: uuid.UUID,
        *,
        include_deleted: bool = False,
    ) -> CoefficientProposal:
        result = await db.execute(
            select(CoefficientProposal)
            .where(CoefficientProposal.id == proposal_id)
            .execution_options(populate_existing=True)
        )
        proposal = result.scalar_one_or_none()
        if proposal is None or (proposal.is_deleted and not include_deleted):
            raise ProposalNotFound(proposal_id)
        return proposal

    async def list_proposals(
        self,
        db: AsyncSession,
        *,
        status: ProposalStatus | str | None = None,
        subject_id: str | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[CoefficientProposal], int]:
        """Paginated live proposals, newest first."""
        query = select(CoefficientProposal).where(CoefficientProposal.deleted_at.is_(None))
        count_query = select(func.count(CoefficientProposal.id)).where(
            CoefficientProposal.deleted_at.is_(None)
        )

        if status:
            status = ProposalStatus(status)
            query = query.where(CoefficientProposal.status == status)
            count_query = count_query.where(CoefficientProposal.status == status)
        if subject_id:
            query = query.where(CoefficientProposal.subject_id == subject_id)
            count_query = count_query.where(CoefficientProposal.subject_id == subject_id)

        total = (await db.execute(count_query)).scalar_one()

        offset = (page - 1) * per_page
        query = query.order_by(CoefficientProposal.created_at.desc()).offset(offset).limit(per_page)
        result = await db.execute(query)
        return list(result.scalars().all()), total

    async def count_by_status(self, db: AsyncSession) -> dict[str, int]:
        rows = (await db.execute(
            select(CoefficientProposal.status, func.count(CoefficientProposal.id))
            .where(CoefficientProposal.deleted_at.is_(None))
            .group_by(CoefficientProposal.status)
        )).all()
        counts = {status.value: 0 for status in ProposalStatus}
        for status, count in rows:
            counts[ProposalStatus(status).value] = count
        return counts

    # ── Mutations ──

    async def create(
        self,
        db: AsyncSession,
        *,
        subject_id: str,
        coefficients: dict | CoefficientSet,
        provenance: dict | Provenance | None = None,
        season_length: int | None = None,
    ) -> StoreChange:
        if not isinstance(subject_id, str) or not subject_id.strip() or len(subject_id) > 200:
            raise ValidationError(
                "Invalid subject_id",
                [{"field": "subject_id", "message": "must be a non-empty string of at most 200 characters"}],
            )
        values = validate_coefficients(
            coefficients, season_length=season_length, max_multiplier=self.max_multiplier
        )
        origin = validate_provenance(provenance)

        now = utcnow()
        proposal = CoefficientProposal(
            id=uuid.uuid4(),
            subject_id=subject_id,
            status=ProposalStatus.PENDING,
            created_at=now,
            updated_at=now,
            **values.model_dump(),
            **origin.model_dump(),
        )
        db.add(proposal)
        await db.flush()

        logger.debug("Inserted proposal %s for subject %s", proposal.id, subject_id)
        return StoreChange(proposal=proposal, before=None, after=snapshot.encode(proposal))

    async def edit(
        self,
        db: AsyncSession,
        proposal_id: uuid.UUID,
        *,
        expected_version: int,
        coefficients: dict | CoefficientSet | None = None,
        provenance: dict | Provenance | None = None,
        season_length: int | None = None,
    ) -> StoreChange:
        """Replace coefficients and/or provenance of a pending proposal."""
        if coefficients is None and provenance is None:
            raise ValidationError(
                "Nothing to edit",
                [{"field": "coefficients", "message": "coefficients or provenance is required"}],
            )

        proposal = await self._lock(db, proposal_id, expected_version)
        check_transition("edit", proposal.status)

        if coefficients is not None:
            values = validate_coefficients(
                coefficients, season_length=season_length, max_multiplier=self.max_multiplier
            )
        else:
            values = validate_coefficients(
                proposal.coefficients(), season_length=season_length, max_multiplier=self.max_multiplier
            )
        origin = validate_provenance(provenance) if provenance is not None else None

        before = snapshot.encode(proposal)
        self._assign(proposal, values, origin)
        return await self._write(db, proposal, before, expected_version)

    async def approve(self, db: AsyncSession, proposal_id: uuid.UUID, *, expected_version: int) -> StoreChange:
        return await self._decide(db, proposal_id, expected_version, "approve", ProposalStatus.APPROVED)

    async def reject(self, db: AsyncSession, proposal_id: uuid.UUID, *, expected_version: int) -> StoreChange:
        return await self._decide(db, proposal_id, expected_version, "reject", ProposalStatus.REJECTED)

    async def revert(
        self,
        db: AsyncSession,
        proposal_id: uuid.UUID,
        *,
        expected_version: int,
        target: str | snapshot.ProposalSnapshot,
    ) -> StoreChange:
        """Restore fields from ``target`` and force status back to pending."""
        if isinstance(target, str):
            target = snapshot.decode(target)

        proposal = await self._lock(db, proposal_id, expected_version)
        check_transition("revert", proposal.status)

        before = snapshot.encode(proposal)
        self._assign(proposal, target.coefficients, target.provenance)
        proposal.status = ProposalStatus.PENDING
        return await self._write(db, proposal, before, expected_version)

    async def delete(self, db: AsyncSession, proposal_id: uuid.UUID, *, expected_version: int) -> StoreChange:
        """Tombstone the proposal. The row stays so its audit history still resolves."""
        proposal = await self._lock(db, proposal_id, expected_version)
        check_transition("delete", proposal.status)

        before = snapshot.encode(proposal)
        proposal.deleted_at = utcnow()
        change = await self._write(db, proposal, before, expected_version)
        change.after = None
        return change

    # ── Internals ──

    async def _decide(
        self,
        db: AsyncSession,
        proposal_id: uuid.UUID,
        expected_version: int,
        action: str,
        new_status: ProposalStatus,
    ) -> StoreChange:
        proposal = await self._lock(db, proposal_id, expected_version)
        check_transition(action, proposal.status)

        before = snapshot.encode(proposal)
        proposal.status = new_status
        return await self._write(db, proposal, before, expected_version)

    async def _lock(
        self,
        db: AsyncSession,
        proposal_id: uuid.UUID,
        expected_version: int,
    ) -> CoefficientProposal:
        """Lock the row and verify the caller's version before any decision."""
        result = await db.execute(
            select(CoefficientProposal)
            .where(CoefficientProposal.id == proposal_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        proposal = result.scalar_one_or_none()
        if proposal is None:
            raise ProposalNotFound(proposal_id)
        # A tombstone still carries a version, so a retried delete sees the bump
        if proposal.version != expected_version:
            raise VersionConflict(proposal_id, expected_version, proposal.version)
        if proposal.is_deleted:
            raise ProposalNotFound(proposal_id)
        return proposal

    @staticmethod
    def _assign(
        proposal: CoefficientProposal,
        values: CoefficientSet,
        origin: Provenance | None,
    ) -> None:
        for name, value in values.model_dump().items():
            setattr(proposal, name, value)
        if origin is not None:
            for name, value in origin.model_dump().items():
                setattr(proposal, name, value)

    async def _write(
        self,
        db: AsyncSession,
        proposal: CoefficientProposal,
        before: str,
        expected_version: int,
    ) -> StoreChange:
        # updated_at always changes, so an UPDATE (and a version bump) is always emitted.
        proposal_id = proposal.id
        proposal.updated_at = utcnow()
        try:
            await db.flush()
        except StaleDataError as e:
            # The failed flush expires the instance; do not touch its attributes
            raise VersionConflict(proposal_id, expected_version, None) from e
        return StoreChange(proposal=proposal, before=before, after=snapshot.encode(proposal))
