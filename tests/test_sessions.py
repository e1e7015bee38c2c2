"""
Tests for the session workflow API

Session upload, impressions, AI analysis, risk flags, comparison and summary.
"""

import pytest
from httpx import AsyncClient
from unittest.mock import AsyncMock, patch
from uuid import uuid4

from therapy_copilot.models import Client, User

from tests.conftest import auth


TRANSCRIPT = (
    "Therapist: How has your week been?\n"
    "Client: Honestly I've felt down for weeks and I can't sleep through the night.\n"
    "Client: Work is a lot and I don't see my friends anymore."
)

RISK_TRANSCRIPT = TRANSCRIPT + "\nClient: Some nights I think about how to end my life."

IMPRESSIONS = {
    "concerns": [{"text": "Difficulty sleeping through the night", "severity": "Moderate"}],
    "themes": ["work stress"],
    "goals": [{"text": "Improve sleep routine", "timeline": "4 weeks"}],
    "risk_observations": {"level": "none"},
    "strengths": [{"text": "Strong family support"}],
}


async def _create_session(client: AsyncClient, headers: dict, client_id, transcript: str = TRANSCRIPT) -> dict:
    response = await client.post(
        "/api/v1/sessions",
        json={
            "client_id": str(client_id),
            "session_date": "2026-10-01T10:00:00",
            "transcript": transcript,
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


class TestSessionUpload:
    @pytest.mark.asyncio
    async def test_create_session(self, client: AsyncClient, therapist_headers, client_profile):
        data = await _create_session(client, therapist_headers, client_profile.id)

        assert data["status"] == "TRANSCRIPT_UPLOADED"
        assert data["client_id"] == str(client_profile.id)

        response = await client.get("/api/v1/sessions", headers=therapist_headers)
        assert response.status_code == 200
        assert [s["id"] for s in response.json()] == [data["id"]]

    @pytest.mark.asyncio
    async def test_filter_by_status(self, client: AsyncClient, therapist_headers, client_profile):
        await _create_session(client, therapist_headers, client_profile.id)

        response = await client.get(
            "/api/v1/sessions", params={"status": "PLAN_MERGED"}, headers=therapist_headers
        )
        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_create_session_for_other_therapists_client(
        self, client: AsyncClient, other_therapist_headers, client_profile
    ):
        response = await client.post(
            "/api/v1/sessions",
            json={"client_id": str(client_profile.id), "session_date": "2026-10-01T10:00:00"},
            headers=other_therapist_headers,
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_get_session_other_therapist(
        self, client: AsyncClient, therapist_headers, other_therapist_headers, client_profile
    ):
        session = await _create_session(client, therapist_headers, client_profile.id)

        response = await client.get(f"/api/v1/sessions/{session['id']}", headers=other_therapist_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_get_session_not_found(self, client: AsyncClient, therapist_headers):
        response = await client.get(f"/api/v1/sessions/{uuid4()}", headers=therapist_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_requires_authorization(self, client: AsyncClient):
        response = await client.get("/api/v1/sessions")
        assert response.status_code == 401

        response = await client.get("/api/v1/sessions", headers={"Authorization": "Bearer not-a-uuid"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_client_cannot_use_therapist_routes(self, client: AsyncClient, client_headers):
        response = await client.get("/api/v1/sessions", headers=client_headers)
        assert response.status_code == 403


class TestImpressions:
    @pytest.mark.asyncio
    async def test_create_impressions(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)

        response = await client.post(
            f"/api/v1/sessions/{session['id']}/impressions", json=IMPRESSIONS, headers=therapist_headers
        )
        assert response.status_code == 201
        data = response.json()
        assert data["session_status"] == "IMPRESSIONS_COMPLETE"
        # Mixed-case severity is stored lowercase
        assert data["impressions"]["concerns"][0]["severity"] == "moderate"

    @pytest.mark.asyncio
    async def test_duplicate_impressions_conflict(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)
        url = f"/api/v1/sessions/{session['id']}/impressions"

        first = await client.post(url, json=IMPRESSIONS, headers=therapist_headers)
        assert first.status_code == 201

        second = await client.post(url, json={**IMPRESSIONS, "themes": ["grief"]}, headers=therapist_headers)
        assert second.status_code == 409

        stored = await client.get(url, headers=therapist_headers)
        assert stored.json()["themes"] == ["work stress"]

    @pytest.mark.asyncio
    async def test_concurrent_impressions_conflict(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)
        url = f"/api/v1/sessions/{session['id']}/impressions"
        assert (await client.post(url, json=IMPRESSIONS, headers=therapist_headers)).status_code == 201

        # Second writer passed the existence check before the first committed
        with patch(
            "therapy_copilot.services.impressions_service.ImpressionsService.get",
            new_callable=AsyncMock,
            return_value=None,
        ):
            response = await client.post(url, json={**IMPRESSIONS, "themes": ["grief"]}, headers=therapist_headers)

        assert response.status_code == 409
        stored = await client.get(url, headers=therapist_headers)
        assert stored.json()["themes"] == ["work stress"]

    @pytest.mark.asyncio
    async def test_update_impressions(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)
        url = f"/api/v1/sessions/{session['id']}/impressions"

        missing = await client.put(url, json=IMPRESSIONS, headers=therapist_headers)
        assert missing.status_code == 404

        await client.post(url, json=IMPRESSIONS, headers=therapist_headers)
        response = await client.put(url, json={**IMPRESSIONS, "themes": ["grief"]}, headers=therapist_headers)
        assert response.status_code == 200
        assert response.json()["impressions"]["themes"] == ["grief"]

    @pytest.mark.asyncio
    async def test_invalid_severity_rejected(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)
        body = {**IMPRESSIONS, "concerns": [{"text": "Low mood", "severity": "extreme"}]}

        response = await client.post(
            f"/api/v1/sessions/{session['id']}/impressions", json=body, headers=therapist_headers
        )
        assert response.status_code == 422


class TestAnalysis:
    @pytest.mark.asyncio
    async def test_analyze_session(self, client: AsyncClient, therapist_headers, client_profile, fake_llm):
        session = await _create_session(client, therapist_headers, client_profile.id)

        response = await client.post(f"/api/v1/sessions/{session['id']}/analyze", headers=therapist_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["session_status"] == "AI_ANALYZED"
        assert data["analysis"]["model_version"] == "fake/model"
        assert data["analysis"]["risk_detection_degraded"] is False
        assert data["risk_flags"] == []
        assert fake_llm.calls == ["analysis", "risk"]

        stored = await client.get(f"/api/v1/sessions/{session['id']}/analysis", headers=therapist_headers)
        assert stored.status_code == 200
        assert stored.json()["analysis"]["themes"] == ["work stress", "isolation"]

    @pytest.mark.asyncio
    async def test_analyze_after_impressions(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)
        await client.post(
            f"/api/v1/sessions/{session['id']}/impressions", json=IMPRESSIONS, headers=therapist_headers
        )

        response = await client.post(f"/api/v1/sessions/{session['id']}/analyze", headers=therapist_headers)
        assert response.json()["session_status"] == "COMPARISON_READY"

    @pytest.mark.asyncio
    async def test_impressions_after_analysis(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)
        await client.post(f"/api/v1/sessions/{session['id']}/analyze", headers=therapist_headers)

        response = await client.post(
            f"/api/v1/sessions/{session['id']}/impressions", json=IMPRESSIONS, headers=therapist_headers
        )
        assert response.json()["session_status"] == "COMPARISON_READY"

    @pytest.mark.asyncio
    async def test_analyze_empty_transcript(self, client: AsyncClient, therapist_headers, client_profile, fake_llm):
        session = await _create_session(client, therapist_headers, client_profile.id, transcript="   ")

        response = await client.post(f"/api/v1/sessions/{session['id']}/analyze", headers=therapist_headers)

        assert response.status_code == 400
        assert fake_llm.calls == []

    @pytest.mark.asyncio
    async def test_analyze_twice_conflict(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)
        url = f"/api/v1/sessions/{session['id']}/analyze"

        assert (await client.post(url, headers=therapist_headers)).status_code == 201
        assert (await client.post(url, headers=therapist_headers)).status_code == 409

    @pytest.mark.asyncio
    async def test_concurrent_analysis_conflict(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)
        url = f"/api/v1/sessions/{session['id']}/analyze"
        first = await client.post(url, headers=therapist_headers)
        assert first.status_code == 201

        with patch(
            "therapy_copilot.services.analysis_service.AnalysisService.get_analysis",
            new_callable=AsyncMock,
            return_value=None,
        ):
            response = await client.post(url, headers=therapist_headers)

        assert response.status_code == 409
        stored = await client.get(f"/api/v1/sessions/{session['id']}/analysis", headers=therapist_headers)
        assert stored.json()["analysis"]["id"] == first.json()["analysis"]["id"]

    @pytest.mark.asyncio
    async def test_analyze_other_therapist(
        self, client: AsyncClient, therapist_headers, other_therapist_headers, client_profile
    ):
        session = await _create_session(client, therapist_headers, client_profile.id)

        response = await client.post(
            f"/api/v1/sessions/{session['id']}/analyze", headers=other_therapist_headers
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_analysis_failure_writes_nothing(
        self, client: AsyncClient, therapist_headers, client_profile, fake_llm
    ):
        session = await _create_session(client, therapist_headers, client_profile.id)
        fake_llm.failures.add("analysis")

        response = await client.post(f"/api/v1/sessions/{session['id']}/analyze", headers=therapist_headers)

        assert response.status_code == 502
        assert fake_llm.calls == ["analysis"] * 3

        stored = await client.get(f"/api/v1/sessions/{session['id']}", headers=therapist_headers)
        assert stored.json()["status"] == "TRANSCRIPT_UPLOADED"
        missing = await client.get(f"/api/v1/sessions/{session['id']}/analysis", headers=therapist_headers)
        assert missing.status_code == 404


class TestRiskFlags:
    @pytest.mark.asyncio
    async def test_keyword_flag_and_notification(
        self, client: AsyncClient, therapist_headers, client_profile
    ):
        session = await _create_session(client, therapist_headers, client_profile.id, transcript=RISK_TRANSCRIPT)

        response = await client.post(f"/api/v1/sessions/{session['id']}/analyze", headers=therapist_headers)

        flags = response.json()["risk_flags"]
        assert len(flags) == 1
        assert flags[0]["risk_type"] == "suicidal_ideation"
        assert flags[0]["severity"] == "MODERATE"
        assert flags[0]["keyword"] == "end my life"
        assert flags[0]["acknowledged"] is False

        notifications = await client.get("/api/v1/notifications", headers=therapist_headers)
        assert [n["type"] for n in notifications.json()] == ["RISK_FLAG_DETECTED"]
        assert "Alex" in notifications.json()[0]["message"]

    @pytest.mark.asyncio
    async def test_contextual_failure_keeps_keyword_flags(
        self, client: AsyncClient, therapist_headers, client_profile, fake_llm
    ):
        session = await _create_session(client, therapist_headers, client_profile.id, transcript=RISK_TRANSCRIPT)
        fake_llm.failures.add("risk")

        response = await client.post(f"/api/v1/sessions/{session['id']}/analyze", headers=therapist_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["analysis"]["risk_detection_degraded"] is True
        assert [f["keyword"] for f in data["risk_flags"]] == ["end my life"]

    @pytest.mark.asyncio
    async def test_flags_sorted_by_severity(self, client: AsyncClient, therapist_headers, client_profile, fake_llm):
        fake_llm.responses["risk"] = {
            "risks": [
                {"type": "self_harm", "severity": "LOW", "excerpt": "Old scars from years ago"},
                {"type": "suicidal_ideation", "severity": "HIGH", "excerpt": "I have a plan for Friday"},
            ]
        }
        session = await _create_session(client, therapist_headers, client_profile.id)
        await client.post(f"/api/v1/sessions/{session['id']}/analyze", headers=therapist_headers)

        response = await client.get(f"/api/v1/sessions/{session['id']}/risk-flags", headers=therapist_headers)

        assert [f["severity"] for f in response.json()] == ["HIGH", "LOW"]

    @pytest.mark.asyncio
    async def test_acknowledge_flag(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id, transcript=RISK_TRANSCRIPT)
        analyzed = await client.post(f"/api/v1/sessions/{session['id']}/analyze", headers=therapist_headers)
        flag_id = analyzed.json()["risk_flags"][0]["id"]

        response = await client.post(
            f"/api/v1/sessions/{session['id']}/risk-flags/{flag_id}/acknowledge", headers=therapist_headers
        )

        assert response.status_code == 200
        assert response.json()["acknowledged"] is True
        assert response.json()["acknowledged_at"] is not None

    @pytest.mark.asyncio
    async def test_acknowledge_unknown_flag(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)

        response = await client.post(
            f"/api/v1/sessions/{session['id']}/risk-flags/{uuid4()}/acknowledge", headers=therapist_headers
        )
        assert response.status_code == 404


class TestComparison:
    @pytest.mark.asyncio
    async def test_compare_requires_both_sides(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)
        url = f"/api/v1/sessions/{session['id']}/compare"

        assert (await client.get(url, headers=therapist_headers)).status_code == 404

        await client.post(f"/api/v1/sessions/{session['id']}/analyze", headers=therapist_headers)
        assert (await client.get(url, headers=therapist_headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_compare_session(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)
        await client.post(
            f"/api/v1/sessions/{session['id']}/impressions", json=IMPRESSIONS, headers=therapist_headers
        )
        await client.post(f"/api/v1/sessions/{session['id']}/analyze", headers=therapist_headers)

        response = await client.get(f"/api/v1/sessions/{session['id']}/compare", headers=therapist_headers)

        assert response.status_code == 200
        data = response.json()
        stats = data["stats"]
        # sleep concern, work stress theme, sleep goal and family strength all match
        assert stats["concerns"] == {"aligned": 1, "ai_only": 1, "therapist_only": 0}
        assert stats["themes"] == {"aligned": 1, "ai_only": 1, "therapist_only": 0}
        assert stats["goals"]["aligned"] == 1
        assert stats["strengths"]["aligned"] == 1
        assert stats["overall_alignment"] == 67
        assert data["thresholds"]["themes"] == 0.6
        assert data["comparison"]["risk_assessment"]["alignment"] == "aligned"
        assert data["selection"]["interventions"][0]["text"] == "CBT"

    @pytest.mark.asyncio
    async def test_compare_does_not_change_status(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)
        await client.post(
            f"/api/v1/sessions/{session['id']}/impressions", json=IMPRESSIONS, headers=therapist_headers
        )
        await client.post(f"/api/v1/sessions/{session['id']}/analyze", headers=therapist_headers)

        await client.get(f"/api/v1/sessions/{session['id']}/compare", headers=therapist_headers)

        stored = await client.get(f"/api/v1/sessions/{session['id']}", headers=therapist_headers)
        assert stored.json()["status"] == "COMPARISON_READY"


class TestSummary:
    @pytest.mark.asyncio
    async def test_summarize_session(self, client: AsyncClient, therapist_headers, client_profile):
        session = await _create_session(client, therapist_headers, client_profile.id)

        response = await client.post(f"/api/v1/sessions/{session['id']}/summary", headers=therapist_headers)

        assert response.status_code == 200
        assert response.json()["client_summary"] == "Today we talked about your mood and sleep."

        stored = await client.get(f"/api/v1/sessions/{session['id']}", headers=therapist_headers)
        assert stored.json()["therapist_summary"].startswith("Client presented")

    @pytest.mark.asyncio
    async def test_summary_failure(self, client: AsyncClient, therapist_headers, client_profile, fake_llm):
        session = await _create_session(client, therapist_headers, client_profile.id)
        fake_llm.failures.add("summary")

        response = await client.post(f"/api/v1/sessions/{session['id']}/summary", headers=therapist_headers)
        assert response.status_code == 502


class TestClientSessions:
    @pytest.mark.asyncio
    async def test_client_lists_own_sessions(
        self, client: AsyncClient, therapist_headers, client_headers, client_profile
    ):
        session = await _create_session(client, therapist_headers, client_profile.id)

        response = await client.get("/api/v1/client/sessions", headers=client_headers)

        assert response.status_code == 200
        listed = response.json()
        assert [s["id"] for s in listed] == [session["id"]]
        assert set(listed[0]) == {"id", "session_date", "status", "client_summary"}
        assert listed[0]["client_summary"] is None

    @pytest.mark.asyncio
    async def test_client_sees_summary_only(
        self, client: AsyncClient, therapist_headers, client_headers, client_profile
    ):
        session = await _create_session(client, therapist_headers, client_profile.id)
        await client.post(f"/api/v1/sessions/{session['id']}/summary", headers=therapist_headers)

        response = await client.get(f"/api/v1/client/sessions/{session['id']}", headers=client_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["client_summary"] == "Today we talked about your mood and sleep."
        assert "transcript" not in data
        assert "therapist_summary" not in data

    @pytest.mark.asyncio
    async def test_other_client_forbidden(
        self, client: AsyncClient, db_session, therapist, therapist_headers, client_profile
    ):
        session = await _create_session(client, therapist_headers, client_profile.id)

        user = User(email="someone@example.com", role="CLIENT")
        db_session.add(user)
        await db_session.flush()
        other = Client(user_id=user.id, therapist_id=therapist.id, display_name="Robin")
        db_session.add(other)
        await db_session.commit()

        response = await client.get(f"/api/v1/client/sessions/{session['id']}", headers=auth(other))
        assert response.status_code == 403

        listed = await client.get("/api/v1/client/sessions", headers=auth(other))
        assert listed.json() == []

    @pytest.mark.asyncio
    async def test_session_not_found(self, client: AsyncClient, client_headers):
        response = await client.get(f"/api/v1/client/sessions/{uuid4()}", headers=client_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_therapist_cannot_use_client_routes(self, client: AsyncClient, therapist_headers):
        response = await client.get("/api/v1/client/sessions", headers=therapist_headers)
        assert response.status_code == 403


class TestClients:
    @pytest.mark.asyncio
    async def test_create_client(self, client: AsyncClient, therapist, therapist_headers):
        response = await client.post(
            "/api/v1/clients",
            json={"email": "New.Client@Example.com", "display_name": "Sam"},
            headers=therapist_headers,
        )
        assert response.status_code == 201
        assert response.json()["therapist_id"] == str(therapist.id)

        duplicate = await client.post(
            "/api/v1/clients",
            json={"email": "new.client@example.com", "display_name": "Sam"},
            headers=therapist_headers,
        )
        assert duplicate.status_code == 409

        notifications = await client.get("/api/v1/notifications", headers=therapist_headers)
        assert [n["type"] for n in notifications.json()] == ["NEW_CLIENT"]

    @pytest.mark.asyncio
    async def test_list_clients(self, client: AsyncClient, therapist_headers, other_therapist_headers, client_profile):
        mine = await client.get("/api/v1/clients", headers=therapist_headers)
        assert [c["display_name"] for c in mine.json()] == ["Alex"]

        theirs = await client.get("/api/v1/clients", headers=other_therapist_headers)
        assert theirs.json() == []


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_health_db(self, client: AsyncClient):
        response = await client.get("/health/db")
        assert response.json()["database"] == "connected"
