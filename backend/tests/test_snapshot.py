"""Tests for the snapshot codec."""

import json
from types import SimpleNamespace

import pytest

from kc_review.errors import SnapshotCorrupt
from kc_review.models.proposal import ProposalStatus
from kc_review.review_workflow import snapshot


def make_proposal(coefficients: dict, provenance: dict | None = None, status=ProposalStatus.PENDING):
    provenance = provenance or {}
    return SimpleNamespace(
        **coefficients,
        source=provenance.get("source"),
        submitted_by_name=provenance.get("submitted_by_name"),
        submitted_by_email=provenance.get("submitted_by_email"),
        notes=provenance.get("notes"),
        status=status,
    )


class TestEncode:

    def test_encode_is_canonical_json(self, coefficients, provenance):
        encoded = snapshot.encode(make_proposal(coefficients, provenance))
        payload = json.loads(encoded)

        assert set(payload) == {"coefficients", "provenance", "status"}
        assert payload["status"] == "pending"
        assert payload["coefficients"]["kc_mid"] == 1.15
        assert encoded == json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    def test_encode_ignores_field_order(self, coefficients):
        reordered = dict(reversed(list(coefficients.items())))
        assert snapshot.encode(make_proposal(coefficients)) == snapshot.encode(make_proposal(reordered))

    def test_encode_normalizes_numeric_types(self, coefficients):
        as_ints = dict(coefficients, kc_late=1, initial_stage_days=25.0)
        as_floats = dict(coefficients, kc_late=1.0, initial_stage_days=25)
        assert snapshot.encode(make_proposal(as_ints)) == snapshot.encode(make_proposal(as_floats))

    def test_encode_excludes_identity_and_version(self, coefficients):
        proposal = make_proposal(coefficients)
        proposal.id = "abc"
        proposal.version = 7
        payload = json.loads(snapshot.encode(proposal))
        assert "id" not in payload
        assert "version" not in payload

    def test_status_changes_snapshot(self, coefficients):
        pending = snapshot.encode(make_proposal(coefficients))
        approved = snapshot.encode(make_proposal(coefficients, status=ProposalStatus.APPROVED))
        assert pending != approved


class TestRoundTrip:

    @pytest.mark.parametrize(
        "overrides",
        [
            {},
            {"kc_initial": 0.0, "kc_development": 0.0, "kc_mid": 0.0, "kc_late": 0.0},
            {"kc_initial": 2.0, "kc_development": 2.0, "kc_mid": 2.0, "kc_late": 2.0},
            {"initial_stage_days": 0, "development_stage_days": 0, "mid_stage_days": 0, "late_stage_days": 0},
        ],
        ids=["typical", "zero-multipliers", "max-multipliers", "zero-durations"],
    )
    def test_decode_reproduces_mutable_fields(self, coefficients, provenance, overrides):
        values = dict(coefficients, **overrides)
        proposal = make_proposal(values, provenance, status=ProposalStatus.REJECTED)

        decoded = snapshot.decode(snapshot.encode(proposal))

        assert decoded.coefficients.model_dump() == values
        assert decoded.provenance.model_dump() == provenance
        assert decoded.status == ProposalStatus.REJECTED
        assert snapshot.encode(decoded) == snapshot.encode(proposal)

    def test_empty_provenance_round_trips(self, coefficients):
        decoded = snapshot.decode(snapshot.encode(make_proposal(coefficients)))
        assert decoded.provenance.source is None
        assert decoded.provenance.notes is None


class TestDecodeErrors:

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "not json",
            "[1, 2, 3]",
            '{"coefficients": {}, "provenance": {}, "status": "pending"}',
            '{"coefficients": {"kc_initial": 0.4}, "provenance": {}, "status": "archived"}',
        ],
    )
    def test_malformed_snapshot_raises(self, raw):
        with pytest.raises(SnapshotCorrupt):
            snapshot.decode(raw)

    def test_unknown_status_raises(self, coefficients):
        payload = json.loads(snapshot.encode(make_proposal(coefficients)))
        payload["status"] = "archived"
        with pytest.raises(SnapshotCorrupt):
            snapshot.decode(json.dumps(payload))

    def test_extra_field_raises(self, coefficients):
        payload = json.loads(snapshot.encode(make_proposal(coefficients)))
        payload["version"] = 3
        with pytest.raises(SnapshotCorrupt):
            snapshot.decode(json.dumps(payload))
