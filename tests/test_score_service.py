"""Tests for savings, score, badges and the leaderboard."""

import pytest

from app.models.user import UserStats
from app.services.score_service import (
    ScoreService, calculate_savings, calculate_score, derive_stats, get_badges, get_user_level,
)


class TestScoreFormulas:

    def test_savings(self):
        savings = calculate_savings(14)
        assert savings["fuel_saved"] == pytest.approx(1.0)
        assert savings["co2_saved"] == pytest.approx(2.31)
        assert savings["money_saved"] == pytest.approx(0.2)

    def test_score_is_capped(self):
        assert calculate_score(rides_created=6) == 8
        assert calculate_score(rides_joined=1000) == 100

    @pytest.mark.parametrize("score,level", [(0, "New"), (30, "Active"), (60, "Experienced"), (90, "Veteran")])
    def test_levels(self, score, level):
        assert get_user_level(score) == level

    def test_badges_depend_on_role(self):
        stats = UserStats(rides_created=5, rides_joined=3)
        assert get_badges("driver", stats) == ["trusted_driver"]
        assert get_badges("rider", stats) == ["fast_booker"]

    def test_derive_stats(self):
        stats = derive_stats("rider", UserStats(rides_joined=1, total_distance_km=28))
        assert stats.fuel_saved == 2.0
        assert stats.co2_saved == 4.6
        assert stats.badges == ["green_student"]
        assert stats.last_updated is not None


class TestLeaderboard:

    @pytest.mark.asyncio
    async def test_ranked_by_score(self, make_user):
        await make_user("low", stats=UserStats(score=10, weekly_score=30))
        await make_user("high", stats=UserStats(score=50, weekly_score=5))

        service = ScoreService()
        overall = await service.get_leaderboard("all", 10)
        weekly = await service.get_leaderboard("weekly", 10)

        assert [e["user_id"] for e in overall.data] == ["high", "low"]
        assert [e["user_id"] for e in weekly.data] == ["low", "high"]
        assert overall.data[0]["rank"] == 1

    @pytest.mark.asyncio
    async def test_invalid_period(self, db):
        result = await ScoreService().get_leaderboard("monthly")
        assert result.error.field == "period"

    @pytest.mark.asyncio
    async def test_weekly_reset(self, make_user, db):
        await make_user("u1", stats=UserStats(score=40, weekly_score=20, weekly_rides_joined=3))

        await ScoreService().reset_weekly_scores()

        doc = await db.users.find_one({"user_id": "u1"})
        assert doc["stats"]["weekly_score"] == 0
        assert doc["stats"]["weekly_rides_joined"] == 0
        assert doc["stats"]["score"] == 40
