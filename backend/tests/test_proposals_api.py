"""Tests for the /api/v1/proposals endpoints."""

import json
import logging
import uuid

import pytest

SAMPLE_COEFFICIENTS = {
    "kc_initial": 0.4,
    "kc_development": 0.7,
    "kc_mid": 1.15,
    "kc_late": 0.8,
    "initial_stage_days": 25,
    "development_stage_days": 35,
    "mid_stage_days": 40,
    "late_stage_days": 30,
}


def _submit_body(**overrides) -> dict:
    body = {
        "subject_id": "corn-hybrid-a",
        "coefficients": dict(SAMPLE_COEFFICIENTS),
        "provenance": {"source": "Field trial 2024", "submitted_by_name": "Test User"},
        "actor": "grower@example.com",
    }
    body.update(overrides)
    return body


async def _submit(client, **overrides) -> dict:
    response = await client.post("/api/v1/proposals", json=_submit_body(**overrides))
    assert response.status_code == 201
    return response.json()


class TestSubmitAndDecide:

    @pytest.mark.asyncio
    async def test_submit(self, client):
        data = await _submit(client)
        proposal = data["proposal"]
        assert proposal["status"] == "pending"
        assert proposal["version"] == 1
        assert proposal["coefficients"]["kc_mid"] == 1.15
        assert proposal["provenance"]["source"] == "Field trial 2024"
        assert uuid.UUID(data["audit_entry_id"])

    @pytest.mark.asyncio
    async def test_submit_invalid_coefficients(self, client):
        coefficients = dict(SAMPLE_COEFFICIENTS, kc_mid=3.0)
        response = await client.post("/api/v1/proposals", json=_submit_body(coefficients=coefficients))
        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["errors"][0]["field"] == "kc_mid"

    @pytest.mark.asyncio
    async def test_submit_season_length_mismatch(self, client):
        response = await client.post("/api/v1/proposals", json=_submit_body(season_length=200))
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_approve(self, client):
        submitted = await _submit(client)
        pid = submitted["proposal"]["id"]

        response = await client.post(
            f"/api/v1/proposals/{pid}/approve",
            json={"expected_version": 1, "actor": "reviewer", "reason": "matches FAO-56"},
        )
        assert response.status_code == 200
        proposal = response.json()["proposal"]
        assert proposal["status"] == "approved"
        assert proposal["version"] == 2

    @pytest.mark.asyncio
    async def test_stale_version_conflict(self, client):
        submitted = await _submit(client)
        pid = submitted["proposal"]["id"]
        await client.post(f"/api/v1/proposals/{pid}/approve", json={"expected_version": 1, "actor": "r"})

        response = await client.post(
            f"/api/v1/proposals/{pid}/approve", json={"expected_version": 1, "actor": "r"},
        )
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["expected_version"] == 1
        assert detail["current_version"] == 2

    @pytest.mark.asyncio
    async def test_conflict_flagged_in_access_log(self, client, caplog):
        submitted = await _submit(client)
        pid = submitted["proposal"]["id"]
        await client.post(f"/api/v1/proposals/{pid}/approve", json={"expected_version": 1, "actor": "r"})

        with caplog.at_level(logging.INFO, logger="kc_review.access"):
            await client.post(
                f"/api/v1/proposals/{pid}/approve",
                json={"expected_version": 1, "actor": "r"},
                headers={"X-Request-ID": "race-1"},
            )

        records = [json.loads(r.getMessage()) for r in caplog.records if r.name == "kc_review.access"]
        assert records[-1]["request_id"] == "race-1"
        assert records[-1]["status"] == 409
        assert records[-1]["conflict"] is True

    @pytest.mark.asyncio
    async def test_invalid_transition(self, client):
        submitted = await _submit(client)
        pid = submitted["proposal"]["id"]
        await client.post(f"/api/v1/proposals/{pid}/reject", json={"expected_version": 1, "actor": "r"})

        response = await client.post(
            f"/api/v1/proposals/{pid}/approve", json={"expected_version": 2, "actor": "r"},
        )
        assert response.status_code == 409
        assert response.json()["detail"]["status"] == "rejected"

    @pytest.mark.asyncio
    async def test_edit(self, client):
        submitted = await _submit(client)
        pid = submitted["proposal"]["id"]

        response = await client.patch(
            f"/api/v1/proposals/{pid}",
            json={"expected_version": 1, "actor": "grower", "provenance": {"notes": "corrected source"}},
        )
        assert response.status_code == 200
        proposal = response.json()["proposal"]
        assert proposal["version"] == 2
        assert proposal["provenance"]["notes"] == "corrected source"

    @pytest.mark.asyncio
    async def test_unknown_proposal(self, client):
        pid = uuid.uuid4()
        assert (await client.get(f"/api/v1/proposals/{pid}")).status_code == 404
        response = await client.post(
            f"/api/v1/proposals/{pid}/approve", json={"expected_version": 1, "actor": "r"},
        )
        assert response.status_code == 404


class TestRevertAndHistory:

    @pytest.mark.asyncio
    async def test_revert_and_history(self, client):
        submitted = await _submit(client)
        pid = submitted["proposal"]["id"]
        create_entry = submitted["audit_entry_id"]
        await client.post(f"/api/v1/proposals/{pid}/approve", json={"expected_version": 1, "actor": "r"})

        response = await client.post(
            f"/api/v1/proposals/{pid}/revert",
            json={"expected_version": 2, "target_entry_id": create_entry, "actor": "r"},
        )
        assert response.status_code == 200
        assert response.json()["proposal"]["status"] == "pending"

        history = (await client.get(f"/api/v1/proposals/{pid}/history")).json()
        actions = [e["action_type"] for e in history["entries"]]
        assert actions == ["create", "approve", "revert"]
        assert history["entries"][2]["source_entry_id"] == create_entry

        verification = (await client.get(f"/api/v1/proposals/{pid}/history/verify")).json()
        assert verification["consistent"] is True
        assert verification["problems"] == []

    @pytest.mark.asyncio
    async def test_state_at_entry(self, client):
        submitted = await _submit(client)
        pid = submitted["proposal"]["id"]

        response = await client.get(f"/api/v1/proposals/{pid}/history/{submitted['audit_entry_id']}/state")
        assert response.status_code == 200
        state = response.json()["state"]
        assert state["status"] == "pending"
        assert state["coefficients"]["initial_stage_days"] == 25

    @pytest.mark.asyncio
    async def test_state_at_unknown_entry(self, client):
        submitted = await _submit(client)
        pid = submitted["proposal"]["id"]

        response = await client.get(f"/api/v1/proposals/{pid}/history/{uuid.uuid4()}/state")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_keeps_history(self, client):
        submitted = await _submit(client)
        pid = submitted["proposal"]["id"]

        response = await client.post(
            f"/api/v1/proposals/{pid}/delete", json={"expected_version": 1, "actor": "admin"},
        )
        assert response.status_code == 200
        assert response.json()["proposal"]["deleted_at"] is not None

        assert (await client.get(f"/api/v1/proposals/{pid}")).status_code == 404
        history = (await client.get(f"/api/v1/proposals/{pid}/history")).json()
        assert [e["action_type"] for e in history["entries"]] == ["create", "delete"]


class TestListing:

    @pytest.mark.asyncio
    async def test_list_and_stats(self, client):
        first = await _submit(client, subject_id="v1")
        await _submit(client, subject_id="v2")
        await client.post(
            f"/api/v1/proposals/{first['proposal']['id']}/approve", json={"expected_version": 1, "actor": "r"},
        )

        response = await client.get("/api/v1/proposals", params={"status": "pending"})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["subject_id"] == "v2"

        stats = (await client.get("/api/v1/proposals/stats")).json()
        assert stats == {"total": 2, "pending": 1, "approved": 1, "rejected": 0}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [{"page": 0}, {"per_page": 0}, {"per_page": -1}, {"per_page": 101}])
    async def test_list_rejects_bad_pagination(self, client, params):
        response = await client.get("/api/v1/proposals", params=params)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_unknown_status(self, client):
        response = await client.get("/api/v1/proposals", params={"status": "archived"})
        assert response.status_code == 400
