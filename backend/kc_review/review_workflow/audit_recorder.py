"""AuditRecorder — appends one immutable audit entry per proposal mutation.

Runs inside the caller's transaction and never begins or commits one, so the
entry and the mutation it describes commit or roll back together.
"""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from kc_review.models.audit import AuditAction, AuditLogEntry


class AuditRecorder:
    """Append-only writer for coefficient_audit_log."""

    async def append(
        self,
        db: AsyncSession,
        *,
        proposal_id: uuid.UUID,
        proposal_version: int,
        action: AuditAction,
        before: str | None,
        after: str | None,
        actor: str,
        reason: str | None = None,
        source_entry_id: uuid.UUID | None = None,
    ) -> AuditLogEntry:
        """Append an audit entry for a mutation that produced ``proposal_version``.

        Shape rules: create has no before-state, delete has no after-state,
        every other action carries both.
        """
        if not db.in_transaction():
            raise RuntimeError("AuditRecorder.append requires an open transaction")

        action = AuditAction(action)
        if action == AuditAction.CREATE:
            if before is not None or after is None:
                raise ValueError("create entries need an after-state and no before-state")
        elif action == AuditAction.DELETE:
            if before is None or after is not None:
                raise ValueError("delete entries need a before-state and no after-state")
        elif before is None or after is None:
            raise ValueError(f"{action.value} entries need both before- and after-state")

        if not actor:
            raise ValueError("actor is required")

        entry = AuditLogEntry(
            id=uuid.uuid4(),
            proposal_id=proposal_id,
            proposal_version=proposal_version,
            action_type=action,
            before_snapshot=before,
            after_snapshot=after,
            actor=actor,
            reason=reason,
            source_entry_id=source_entry_id,
        )
        db.add(entry)
        await db.flush()
        return entry
