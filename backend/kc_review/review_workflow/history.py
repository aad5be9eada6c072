"""HistoryReader — read-only reconstruction of a proposal's history."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kc_review.errors import EntryNotFound
from kc_review.models.audit import AuditAction, AuditLogEntry


class HistoryReader:
    """Point lookups over coefficient_audit_log by proposal id. Never writes."""

    async def entries_for(self, db: AsyncSession, proposal_id: uuid.UUID) -> list[AuditLogEntry]:
        """All entries for a proposal, oldest first."""
        result = await db.execute(
            select(AuditLogEntry)
            .where(AuditLogEntry.proposal_id == proposal_id)
            .order_by(AuditLogEntry.proposal_version.asc())
        )
        return list(result.scalars().all())

    async def get_entry(
        self,
        db: AsyncSession,
        proposal_id: uuid.UUID,
        entry_id: uuid.UUID,
    ) -> AuditLogEntry:
        result = await db.execute(
            select(AuditLogEntry).where(
                AuditLogEntry.id == entry_id,
                AuditLogEntry.proposal_id == proposal_id,
            )
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise EntryNotFound(proposal_id, entry_id)
        return entry

    async def state_at(
        self,
        db: AsyncSession,
        proposal_id: uuid.UUID,
        entry_id: uuid.UUID,
    ) -> str | None:
        """The proposal's snapshot right after ``entry_id`` (None for a delete entry)."""
        entry = await self.get_entry(db, proposal_id, entry_id)
        return entry.after_snapshot

    async def verify_chain(self, db: AsyncSession, proposal_id: uuid.UUID) -> list[str]:
        """Check the history is gap-free and each entry continues the previous one.

        Returns a list of problems; empty means the chain is consistent.
        """
        problems: list[str] = []
        previous: AuditLogEntry | None = None

        for expected_version, entry in enumerate(await self.entries_for(db, proposal_id), start=1):
            if entry.proposal_version != expected_version:
                problems.append(
                    f"entry {entry.id}: version {entry.proposal_version}, expected {expected_version}"
                )
            if previous is None:
                if entry.action_type != AuditAction.CREATE:
                    problems.append(f"entry {entry.id}: history does not start with create")
            else:
                if previous.action_type == AuditAction.DELETE:
                    problems.append(f"entry {entry.id}: recorded after delete")
                if entry.before_snapshot != previous.after_snapshot:
                    problems.append(
                        f"entry {entry.id}: before-state does not match entry {previous.id} after-state"
                    )
            previous = entry

        return problems
