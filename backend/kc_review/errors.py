"""Error taxonomy for the coefficient review workflow.

Every error is returned to the immediate caller. Nothing in the core retries
or swallows them; the caller decides whether to fix input, re-read, or retry.
"""

import uuid


class ReviewError(Exception):
    """Base class for all review workflow errors."""


class ValidationError(ReviewError):
    """Coefficient or provenance input is malformed and was not written."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []


class InvalidTransition(ReviewError):
    """The requested action is illegal from the proposal's current status."""

    def __init__(self, action: str, status: str, detail: str | None = None):
        message = detail or f"Cannot {action} a proposal with status '{status}'"
        super().__init__(message)
        self.action = action
        self.status = status


class VersionConflict(ReviewError):
    """Caller's expected version does not match the stored version."""

    def __init__(self, proposal_id: uuid.UUID, expected: int, current: int | None):
        if current is None:
            message = f"Proposal {proposal_id} changed concurrently (expected version {expected})"
        else:
            message = f"Proposal {proposal_id} is at version {current}, not {expected}"
        super().__init__(message)
        self.proposal_id = proposal_id
        self.expected_version = expected
        self.current_version = current


class ProposalNotFound(ReviewError):
    def __init__(self, proposal_id: uuid.UUID):
        super().__init__(f"Proposal {proposal_id} not found")
        self.proposal_id = proposal_id


class EntryNotFound(ReviewError):
    """Audit entry does not exist or belongs to a different proposal."""

    def __init__(self, proposal_id: uuid.UUID, entry_id: uuid.UUID):
        super().__init__(f"Audit entry {entry_id} not found for proposal {proposal_id}")
        self.proposal_id = proposal_id
        self.entry_id = entry_id


class SnapshotCorrupt(ReviewError):
    """A stored snapshot could not be decoded. Surfaced, never auto-repaired."""


class StorageUnavailable(ReviewError):
    """Transport or transaction failure; the whole operation may be retried."""


class OperationTimeout(StorageUnavailable):
    """The caller's deadline expired and the transaction was rolled back."""


class AuditLogImmutable(ReviewError):
    """An update or delete of an audit row was attempted."""
