"""Snapshot codec — canonical serialized form of a proposal's mutable fields.

Covers coefficients, provenance and status. id, version and timestamps are
not part of a snapshot. Two logically equal proposals always encode to the
same string, so snapshots can be compared directly.
"""

import json

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from kc_review.errors import SnapshotCorrupt
from kc_review.models.proposal import (
    COEFFICIENT_FIELDS,
    MULTIPLIER_FIELDS,
    PROVENANCE_FIELDS,
    ProposalStatus,
)
from kc_review.review_workflow.coefficients import CoefficientSet, Provenance


class ProposalSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    coefficients: CoefficientSet
    provenance: Provenance
    status: ProposalStatus


def _normalize_coefficients(values: dict) -> dict:
    return {
        name: float(values[name]) if name in MULTIPLIER_FIELDS else int(values[name])
        for name in COEFFICIENT_FIELDS
    }


def _canonical(payload: dict) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def encode(proposal) -> str:
    """Encode a CoefficientProposal (or a ProposalSnapshot) canonically."""
    if isinstance(proposal, ProposalSnapshot):
        coefficients = proposal.coefficients.model_dump()
        provenance = proposal.provenance.model_dump()
        status = proposal.status
    else:
        coefficients = {name: getattr(proposal, name) for name in COEFFICIENT_FIELDS}
        provenance = {name: getattr(proposal, name) for name in PROVENANCE_FIELDS}
        status = proposal.status

    return _canonical({
        "coefficients": _normalize_coefficients(coefficients),
        "provenance": {name: provenance.get(name) for name in PROVENANCE_FIELDS},
        "status": ProposalStatus(status).value,
    })


def decode(snapshot: str) -> ProposalSnapshot:
    """Inverse of encode(). Raises SnapshotCorrupt on malformed input."""
    if not isinstance(snapshot, str) or not snapshot:
        raise SnapshotCorrupt("Snapshot is empty or not text")
    try:
        payload = json.loads(snapshot)
    except ValueError as e:
        raise SnapshotCorrupt(f"Snapshot is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise SnapshotCorrupt("Snapshot must be a JSON object")
    try:
        return ProposalSnapshot.model_validate(payload)
    except PydanticValidationError as e:
        raise SnapshotCorrupt(f"Snapshot has invalid shape: {e.error_count()} error(s)") from e
