"""
Integration Tests for the Practice and Progress API

Drives the HTTP surface end to end: session start/complete, error
responses, progress, course, stats and settings.

Run with: pytest tests/integration/test_practice_api.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import Depends

pytestmark = pytest.mark.integration


async def start(client, headers, category="essentials", **extra):
    response = await client.post(
        "/api/session/start",
        json={"language": "spanish", "category": category, **extra},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def payload(make_attempts):
    """Return a helper building a completion body for a started session."""

    def _payload(started, correct=True):
        return {
            "session_id": started["session_id"],
            "language": started["language"],
            "category": started["category"],
            "attempts": make_attempts(started["questions"], correct),
        }

    return _payload


class TestLearnerIdentity:
    """Tests for the X-Learner-Id header."""

    @pytest.mark.asyncio
    async def test_missing_header_is_rejected(self, async_test_client):
        response = await async_test_client.get("/api/progress")

        assert response.status_code == 400
        assert "X-Learner-Id" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_overlong_id_is_rejected(self, async_test_client):
        response = await async_test_client.get(
            "/api/progress", headers={"X-Learner-Id": "x" * 65}
        )

        assert response.status_code == 400


class TestSessionEndpoints:
    """Tests for POST /api/session/start and /api/session/complete."""

    @pytest.mark.asyncio
    async def test_start_returns_questions(self, async_test_client, learner_headers):
        started = await start(async_test_client, learner_headers)

        assert len(started["questions"]) == 10
        assert started["recommended_level"] == "a1"
        assert started["difficulty_multiplier"] == 1.0
        assert all("type" in q for q in started["questions"])

    @pytest.mark.asyncio
    async def test_start_clamps_count(self, async_test_client, learner_headers):
        started = await start(async_test_client, learner_headers, count=2)

        assert len(started["questions"]) == 6

    @pytest.mark.asyncio
    async def test_unknown_category_is_not_found(self, async_test_client, learner_headers):
        response = await async_test_client.post(
            "/api/session/start",
            json={"language": "spanish", "category": "cooking"},
            headers=learner_headers,
        )

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert "error_id" in body
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_invalid_body_is_422(self, async_test_client, learner_headers):
        response = await async_test_client.post(
            "/api/session/start", json={"language": "spanish"}, headers=learner_headers
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_complete_then_repeat(self, async_test_client, learner_headers, payload):
        """A session credits XP once; the retry is a 409."""
        started = await start(async_test_client, learner_headers)

        first = await async_test_client.post(
            "/api/session/complete", json=payload(started), headers=learner_headers
        )
        second = await async_test_client.post(
            "/api/session/complete", json=payload(started), headers=learner_headers
        )

        assert first.status_code == 200
        body = first.json()
        assert body["evaluated"] == {
            "score": 10,
            "max_score": 10,
            "mistakes": 0,
            "accuracy_percent": 100.0,
        }
        assert body["xp_gained"] == 44
        assert body["streak_days"] == 1
        assert body["hearts"] == 5
        assert body["mastery"] == 11.2

        assert second.status_code == 409
        assert second.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_unknown_session_and_other_learner(
        self, async_test_client, learner_headers, payload
    ):
        started = await start(async_test_client, learner_headers)

        missing = await async_test_client.post(
            "/api/session/complete",
            json={**payload(started), "session_id": "does-not-exist"},
            headers=learner_headers,
        )
        foreign = await async_test_client.post(
            "/api/session/complete",
            json=payload(started),
            headers={"X-Learner-Id": "mallory"},
        )

        assert missing.status_code == 404
        assert foreign.status_code == 404

    @pytest.mark.asyncio
    async def test_bad_requests(self, async_test_client, learner_headers, payload):
        started = await start(async_test_client, learner_headers)

        empty = await async_test_client.post(
            "/api/session/complete",
            json={**payload(started), "attempts": []},
            headers=learner_headers,
        )
        mismatch = await async_test_client.post(
            "/api/session/complete",
            json={**payload(started), "category": "travel"},
            headers=learner_headers,
        )
        bogus = payload(started)
        bogus["attempts"].append({"question_id": "bogus", "selected_option": "x"})
        unknown = await async_test_client.post(
            "/api/session/complete", json=bogus, headers=learner_headers
        )

        assert empty.status_code == 400
        assert mismatch.status_code == 400
        assert unknown.status_code == 400
        assert unknown.json()["error"] == "unknown_question"

        # None of the rejected requests consumed the session
        ok = await async_test_client.post(
            "/api/session/complete", json=payload(started), headers=learner_headers
        )
        assert ok.status_code == 200

    @pytest.mark.asyncio
    async def test_expired_session_is_gone(self, async_test_client, learner_headers, payload):
        from app.dependencies import get_catalog, get_repository, get_session_service
        from app.main import app
        from app.services.learning import PracticeSessionService

        started = await start(async_test_client, learner_headers)

        def later():
            return datetime.now(timezone.utc) + timedelta(days=3)

        async def service_in_three_days(
            repo=Depends(get_repository), catalog=Depends(get_catalog)
        ):
            return PracticeSessionService(repo, catalog, clock=later)

        app.dependency_overrides[get_session_service] = service_in_three_days
        try:
            response = await async_test_client.post(
                "/api/session/complete", json=payload(started), headers=learner_headers
            )
        finally:
            app.dependency_overrides.pop(get_session_service, None)

        assert response.status_code == 410
        assert response.json()["error"] == "gone"


class TestProgressEndpoints:
    """Tests for the read endpoints and settings."""

    @pytest.mark.asyncio
    async def test_languages(self, async_test_client):
        response = await async_test_client.get("/api/languages")

        assert response.status_code == 200
        assert [entry["id"] for entry in response.json()] == ["spanish", "english"]

    @pytest.mark.asyncio
    async def test_progress_defaults_to_target_language(
        self, async_test_client, learner_headers, payload
    ):
        started = await start(async_test_client, learner_headers)
        await async_test_client.post(
            "/api/session/complete", json=payload(started), headers=learner_headers
        )

        response = await async_test_client.get("/api/progress", headers=learner_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["today_xp"] == 44
        assert body["daily_goal_percent"] == 100
        assert body["categories"][0]["category"] == "essentials"

    @pytest.mark.asyncio
    async def test_course_and_stats(self, async_test_client, learner_headers):
        course = await async_test_client.get(
            "/api/course", params={"language": "spanish"}, headers=learner_headers
        )
        stats = await async_test_client.get(
            "/api/stats", params={"language": "spanish"}, headers=learner_headers
        )
        unknown = await async_test_client.get(
            "/api/course", params={"language": "klingon"}, headers=learner_headers
        )

        assert course.status_code == 200
        assert [c["unlocked"] for c in course.json()] == [True, False, False]
        assert stats.status_code == 200
        assert stats.json()["sessions_completed"] == 0
        assert unknown.status_code == 404

    @pytest.mark.asyncio
    async def test_settings_round_trip(self, async_test_client, learner_headers):
        defaults = await async_test_client.get("/api/settings", headers=learner_headers)
        assert defaults.json()["daily_goal"] == 30

        updated = await async_test_client.put(
            "/api/settings",
            json={
                "daily_minutes": 1,
                "self_rated_level": "c2",
                "target_language": "English",
                "focus_area": " ordering food ",
            },
            headers=learner_headers,
        )
        assert updated.status_code == 200
        assert updated.json()["daily_minutes"] == 5
        assert updated.json()["self_rated_level"] == "a1"

        stored = await async_test_client.get("/api/settings", headers=learner_headers)
        assert stored.json()["target_language"] == "english"
        assert stored.json()["learner_id"] == "learner-1"
        assert stored.json()["focus_area"] == "ordering food"
        assert stored.json()["learner_bio"] == ""
