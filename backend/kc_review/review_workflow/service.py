"""ReviewService — the public face of the coefficient review workflow.

Each mutating call runs in exactly one transaction: the ProposalStore applies
the transition and the AuditRecorder appends the matching entry, then the
transaction commits. Any failure rolls both back, so a caller never sees a
mutation without its audit entry or an audit entry without its mutation.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kc_review.config import Settings
from kc_review.errors import (
    InvalidTransition,
    OperationTimeout,
    ReviewError,
    StorageUnavailable,
    ValidationError,
)
from kc_review.models.audit import AuditAction, AuditLogEntry
from kc_review.models.proposal import CoefficientProposal, ProposalStatus
from kc_review.review_workflow import snapshot
from kc_review.review_workflow.audit_recorder import AuditRecorder
from kc_review.review_workflow.coefficients import CoefficientSet, Provenance
from kc_review.review_workflow.history import HistoryReader
from kc_review.review_workflow.proposal_store import ProposalStore, StoreChange

logger = logging.getLogger("kc_review.review")

MAX_ACTOR_LENGTH = 200

T = TypeVar("T")


@dataclass
class ReviewResult:
    proposal: CoefficientProposal
    audit_entry_id: uuid.UUID


class ReviewService:
    """Orchestrates ProposalStore + AuditRecorder inside one transaction per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], settings: Settings):
        self._session_factory = session_factory
        self.default_timeout = settings.review_operation_timeout_seconds
        self.store = ProposalStore(max_multiplier=settings.max_multiplier)
        self.recorder = AuditRecorder()
        self.history_reader = HistoryReader()

    # ── Mutations ──

    async def submit(
        self,
        *,
        actor: str,
        subject_id: str,
        coefficients: dict | CoefficientSet,
        provenance: dict | Provenance | None = None,
        season_length: int | None = None,
        reason: str | None = None,
        timeout: float | None = None,
    ) -> ReviewResult:
        """Create a pending proposal (version 1) with its create entry."""
        _require_actor(actor)

        async def work(db: AsyncSession) -> ReviewResult:
            change = await self.store.create(
                db,
                subject_id=subject_id,
                coefficients=coefficients,
                provenance=provenance,
                season_length=season_length,
            )
            return await self._record(db, change, AuditAction.CREATE, actor, reason)

        return await self._run("submit", work, timeout)

    async def edit(
        self,
        proposal_id: uuid.UUID,
        *,
        expected_version: int,
        actor: str,
        coefficients: dict | CoefficientSet | None = None,
        provenance: dict | Provenance | None = None,
        season_length: int | None = None,
        reason: str | None = None,
        timeout: float | None = None,
    ) -> ReviewResult:
        _require_actor(actor)

        async def work(db: AsyncSession) -> ReviewResult:
            change = await self.store.edit(
                db,
                proposal_id,
                expected_version=expected_version,
                coefficients=coefficients,
                provenance=provenance,
                season_length=season_length,
            )
            return await self._record(db, change, AuditAction.UPDATE, actor, reason)

        return await self._run("edit", work, timeout)

    async def approve(
        self,
        proposal_id: uuid.UUID,
        *,
        expected_version: int,
        actor: str,
        reason: str | None = None,
        timeout: float | None = None,
    ) -> ReviewResult:
        _require_actor(actor)

        async def work(db: AsyncSession) -> ReviewResult:
            change = await self.store.approve(db, proposal_id, expected_version=expected_version)
            return await self._record(db, change, AuditAction.APPROVE, actor, reason)

        return await self._run("approve", work, timeout)

    async def reject(
        self,
        proposal_id: uuid.UUID,
        *,
        expected_version: int,
        actor: str,
        reason: str | None = None,
        timeout: float | None = None,
    ) -> ReviewResult:
        _require_actor(actor)

        async def work(db: AsyncSession) -> ReviewResult:
            change = await self.store.reject(db, proposal_id, expected_version=expected_version)
            return await self._record(db, change, AuditAction.REJECT, actor, reason)

        return await self._run("reject", work, timeout)

    async def revert(
        self,
        proposal_id: uuid.UUID,
        *,
        expected_version: int,
        target_entry_id: uuid.UUID,
        actor: str,
        reason: str | None = None,
        timeout: float | None = None,
    ) -> ReviewResult:
        """Restore the state recorded by ``target_entry_id`` as a new forward mutation."""
        _require_actor(actor)

        async def work(db: AsyncSession) -> ReviewResult:
            target = await self.history_reader.state_at(db, proposal_id, target_entry_id)
            if target is None:
                raise InvalidTransition(
                    "revert",
                    "deleted",
                    f"Audit entry {target_entry_id} records a deletion and has no state to revert to",
                )
            change = await self.store.revert(
                db, proposal_id, expected_version=expected_version, target=target
            )
            note = f"Reverted to audit entry {target_entry_id}"
            if reason:
                note = f"{note}: {reason}"
            return await self._record(
                db, change, AuditAction.REVERT, actor, note, source_entry_id=target_entry_id
            )

        return await self._run("revert", work, timeout)

    async def delete(
        self,
        proposal_id: uuid.UUID,
        *,
        expected_version: int,
        actor: str,
        reason: str | None = None,
        timeout: float | None = None,
    ) -> ReviewResult:
        _require_actor(actor)

        async def work(db: AsyncSession) -> ReviewResult:
            change = await self.store.delete(db, proposal_id, expected_version=expected_version)
            return await self._record(db, change, AuditAction.DELETE, actor, reason)

        return await self._run("delete", work, timeout)

    # ── Reads ──

    async def get_proposal(
        self, proposal_id: uuid.UUID, *, include_deleted: bool = False
    ) -> CoefficientProposal:
        async def work(db: AsyncSession) -> CoefficientProposal:
            return await self.store.get(db, proposal_id, include_deleted=include_deleted)

        return await self._read(work)

    async def list_proposals(
        self,
        *,
        status: ProposalStatus | str | None = None,
        subject_id: str | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[CoefficientProposal], int]:
        async def work(db: AsyncSession) -> tuple[list[CoefficientProposal], int]:
            return await self.store.list_proposals(
                db, status=status, subject_id=subject_id, page=page, per_page=per_page
            )

        return await self._read(work)

    async def get_stats(self) -> dict:
        async def work(db: AsyncSession) -> dict:
            counts = await self.store.count_by_status(db)
            return {"total": sum(counts.values()), **counts}

        return await self._read(work)

    async def history(self, proposal_id: uuid.UUID) -> list[AuditLogEntry]:
        """Audit entries oldest first. Deleted proposals keep their history."""
        async def work(db: AsyncSession) -> list[AuditLogEntry]:
            await self.store.get(db, proposal_id, include_deleted=True)
            return await self.history_reader.entries_for(db, proposal_id)

        return await self._read(work)

    async def state_at(
        self, proposal_id: uuid.UUID, entry_id: uuid.UUID
    ) -> snapshot.ProposalSnapshot | None:
        async def work(db: AsyncSession) -> str | None:
            return await self.history_reader.state_at(db, proposal_id, entry_id)

        raw = await self._read(work)
        return snapshot.decode(raw) if raw is not None else None

    async def verify_history(self, proposal_id: uuid.UUID) -> list[str]:
        async def work(db: AsyncSession) -> list[str]:
            await self.store.get(db, proposal_id, include_deleted=True)
            return await self.history_reader.verify_chain(db, proposal_id)

        return await self._read(work)

    # ── Internals ──

    async def _record(
        self,
        db: AsyncSession,
        change: StoreChange,
        action: AuditAction,
        actor: str,
        reason: str | None,
        source_entry_id: uuid.UUID | None = None,
    ) -> ReviewResult:
        entry = await self.recorder.append(
            db,
            proposal_id=change.proposal.id,
            proposal_version=change.proposal.version,
            action=action,
            before=change.before,
            after=change.after,
            actor=actor,
            reason=reason,
            source_entry_id=source_entry_id,
        )
        return ReviewResult(proposal=change.proposal, audit_entry_id=entry.id)

    async def _run(
        self,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[ReviewResult]],
        timeout: float | None,
    ) -> ReviewResult:
        deadline = self.default_timeout if timeout is None else timeout
        try:
            result = await asyncio.wait_for(self._transaction(work), timeout=deadline)
        except asyncio.TimeoutError as e:
            logger.warning("%s timed out after %ss; transaction rolled back", operation, deadline)
            raise OperationTimeout(f"{operation} exceeded its {deadline}s deadline") from e
        except ReviewError as e:
            logger.warning("%s rejected: %s: %s", operation, type(e).__name__, e)
            raise

        logger.info(
            "%s committed: proposal=%s version=%s status=%s audit_entry=%s",
            operation,
            result.proposal.id,
            result.proposal.version,
            result.proposal.status.value,
            result.audit_entry_id,
        )
        return result

    async def _transaction(self, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    return await work(db)
        except DBAPIError as e:
            raise StorageUnavailable(f"Storage failure: {e.orig or e}") from e

    async def _read(self, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            async with self._session_factory() as db:
                return await work(db)
        except DBAPIError as e:
            raise StorageUnavailable(f"Storage failure: {e.orig or e}") from e


def _require_actor(actor: str) -> None:
    if not isinstance(actor, str) or not actor.strip() or len(actor) > MAX_ACTOR_LENGTH:
        raise ValidationError(
            "Invalid actor",
            [{"field": "actor", "message": f"must be a non-empty string of at most {MAX_ACTOR_LENGTH} characters"}],
        )
