"""
Tests for fasting endpoints:
- POST /api/v1/fasting (declare)
- POST /api/v1/fasting/break
- GET /api/v1/fasting/{day}
"""

from httpx import AsyncClient

from factories import DAY

FASTING_URL = "/api/v1/fasting"
BREAK_URL = "/api/v1/fasting/break"


class TestSetFasting:
    """POST /api/v1/fasting tests."""

    async def test_declare_fasting(self, async_client: AsyncClient, test_user, auth_headers, notifier):
        """Fasting earns the 20 point bonus."""
        response = await async_client.post(
            FASTING_URL,
            json={"date": DAY.isoformat(), "is_fasting": True},
            headers=auth_headers(test_user["api_key"]),
        )

        assert response.status_code == 200
        assert response.json() == {
            "date": "2026-03-01",
            "is_fasting": True,
            "points": 20,
            "message": "Fasting today! +20 hasanat.",
        }
        assert notifier.activities[0].category == "friend_fasting"

    async def test_declare_not_fasting(self, async_client: AsyncClient, test_user, auth_headers):
        response = await async_client.post(
            FASTING_URL,
            json={"date": DAY.isoformat(), "is_fasting": False},
            headers=auth_headers(test_user["api_key"]),
        )

        assert response.status_code == 200
        assert response.json()["points"] == 0
        assert response.json()["message"] == "Not fasting today."

    async def test_declare_twice(self, async_client: AsyncClient, test_user, auth_headers):
        """The declaration is final; a second one returns 409 ALREADY_SET."""
        headers = auth_headers(test_user["api_key"])
        await async_client.post(
            FASTING_URL, json={"date": DAY.isoformat(), "is_fasting": False}, headers=headers
        )

        response = await async_client.post(
            FASTING_URL, json={"date": DAY.isoformat(), "is_fasting": True}, headers=headers
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_SET"

    async def test_declare_requires_is_fasting(self, async_client: AsyncClient, test_user, auth_headers):
        response = await async_client.post(
            FASTING_URL, json={"date": DAY.isoformat()}, headers=auth_headers(test_user["api_key"])
        )
        assert response.status_code == 422

    async def test_declare_rate_limit(self, async_client: AsyncClient, test_user, auth_headers):
        """The 11th fasting request within an hour returns 429."""
        headers = auth_headers(test_user["api_key"])
        for offset in range(10):
            response = await async_client.post(
                FASTING_URL,
                json={"date": f"2026-03-{offset + 1:02d}", "is_fasting": False},
                headers=headers,
            )
            assert response.status_code == 200

        response = await async_client.post(
            FASTING_URL, json={"date": "2026-03-20", "is_fasting": False}, headers=headers
        )
        assert response.status_code == 429


class TestBreakFast:
    """POST /api/v1/fasting/break tests."""

    async def test_break_revokes_bonus(self, async_client: AsyncClient, test_user, auth_headers, clock):
        headers = auth_headers(test_user["api_key"])
        await async_client.post(
            FASTING_URL, json={"date": DAY.isoformat(), "is_fasting": True}, headers=headers
        )
        clock.set(13)

        response = await async_client.post(BREAK_URL, json={"date": DAY.isoformat()}, headers=headers)

        assert response.status_code == 200
        assert response.json() == {
            "date": "2026-03-01",
            "points": -20,
            "message": "Fast broken. -20 hasanat.",
        }

        totals = await async_client.get("/api/v1/hasanat/totals", headers=headers)
        assert totals.json()["all_time_total"] == 0

    async def test_break_without_log(self, async_client: AsyncClient, test_user, auth_headers):
        response = await async_client.post(
            BREAK_URL, json={"date": DAY.isoformat()}, headers=auth_headers(test_user["api_key"])
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NO_FASTING_LOG"

    async def test_break_when_not_fasting(self, async_client: AsyncClient, test_user, auth_headers):
        headers = auth_headers(test_user["api_key"])
        await async_client.post(
            FASTING_URL, json={"date": DAY.isoformat(), "is_fasting": False}, headers=headers
        )

        response = await async_client.post(BREAK_URL, json={"date": DAY.isoformat()}, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NOT_FASTING"

    async def test_break_twice(self, async_client: AsyncClient, test_user, auth_headers):
        headers = auth_headers(test_user["api_key"])
        await async_client.post(
            FASTING_URL, json={"date": DAY.isoformat(), "is_fasting": True}, headers=headers
        )
        await async_client.post(BREAK_URL, json={"date": DAY.isoformat()}, headers=headers)

        response = await async_client.post(BREAK_URL, json={"date": DAY.isoformat()}, headers=headers)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_BROKEN"


class TestGetFastingDay:
    """GET /api/v1/fasting/{day} tests."""

    async def test_get_broken_fast(self, async_client: AsyncClient, test_user, auth_headers, clock):
        headers = auth_headers(test_user["api_key"])
        await async_client.post(
            FASTING_URL, json={"date": DAY.isoformat(), "is_fasting": True}, headers=headers
        )
        clock.set(13)
        await async_client.post(BREAK_URL, json={"date": DAY.isoformat()}, headers=headers)

        response = await async_client.get(f"{FASTING_URL}/{DAY.isoformat()}", headers=headers)

        assert response.status_code == 200
        assert response.json() == {
            "date": "2026-03-01",
            "is_fasting": True,
            "broken": True,
            "broken_at": "2026-03-01T13:00:00+00:00",
            "points_awarded": 0,
        }

    async def test_get_missing_day(self, async_client: AsyncClient, test_user, auth_headers):
        response = await async_client.get(
            f"{FASTING_URL}/2026-03-05", headers=auth_headers(test_user["api_key"])
        )
        assert response.status_code == 404
        assert response.json()["detail"]["error"]["code"] == "NOT_FOUND"
