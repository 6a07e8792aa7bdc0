"""HTTP tests against the FastAPI app with in-memory storage and no AI."""
import asyncio
from datetime import date

import pytest
from fastapi.testclient import TestClient

from leveling_os.achievements import seed_achievements
from leveling_os.main import app, get_ai, get_storage
from leveling_os.models import ProgressionLedger
from leveling_os.storage import MemoryStorage


@pytest.fixture
def client():
    store = MemoryStorage()
    asyncio.run(seed_achievements(store))
    app.dependency_overrides[get_storage] = lambda: store
    app.dependency_overrides[get_ai] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["storage"] == "memory"
        assert body["ai"] == "disabled"


class TestHabitRoutes:

    def test_create_and_toggle(self, client):
        resp = client.post("/api/habits", json={"name": "Run", "category": "fitness"})
        assert resp.status_code == 201
        habit = resp.json()
        assert habit["xpReward"] == 200
        assert habit["difficulty"] == 2

        resp = client.post(f"/api/habits/{habit['id']}/toggle", json={"date": "2026-10-14", "completed": True})
        assert resp.status_code == 200
        result = resp.json()
        assert result["xpGained"] == 200
        assert result["goldGained"] == 25
        assert result["leveledUp"] is False
        assert result["unlockedAchievement"]["key"] == "first_habit"

        stats = client.get("/api/stats").json()
        assert stats["currentXp"] == 200
        assert stats["currentGold"] == 25
        assert stats["strength"] == 2
        assert stats["xpForNextLevel"] == 1000
        assert stats["rank"] == "Beginner"

    def test_list_marks_completion_for_local_today(self, client, monkeypatch):
        monkeypatch.setattr("leveling_os.main.today", lambda: date(2026, 10, 14))
        habit = client.post("/api/habits", json={"name": "Run"}).json()
        client.post(f"/api/habits/{habit['id']}/toggle", json={"date": "2026-10-14", "completed": True})

        listed = client.get("/api/habits").json()
        assert listed[0]["completedToday"] is True
        assert listed[0]["streak"] == 1

    def test_difficulty_cannot_be_edited(self, client):
        habit = client.post("/api/habits", json={"name": "Run"}).json()
        resp = client.put(f"/api/habits/{habit['id']}", json={"difficulty": 3})
        assert resp.status_code == 422

    def test_update_and_delete(self, client):
        habit = client.post("/api/habits", json={"name": "Run"}).json()
        resp = client.put(f"/api/habits/{habit['id']}", json={"name": "Sprint", "frequencyDays": [1, 3]})
        assert resp.status_code == 200
        assert resp.json()["name"] == "Sprint"
        assert resp.json()["frequencyDays"] == [1, 3]

        assert client.delete(f"/api/habits/{habit['id']}").status_code == 204
        assert client.get("/api/habits").json() == []
        assert len(client.get("/api/habits", params={"include_inactive": True}).json()) == 1

    def test_unknown_habit_is_404(self, client):
        resp = client.post("/api/habits/999/toggle", json={"date": "2026-10-14", "completed": True})
        assert resp.status_code == 404
        assert resp.json()["message"] == "Habit not found"


class TestGoalRoutes:

    def test_goal_flow(self, client):
        goal = client.post("/api/goals", json={"title": "Learn Spanish"}).json()
        assert goal["xpReward"] == 2000

        step = client.post(f"/api/goals/{goal['id']}/steps", json={"title": "Unit 1"}).json()["step"]
        assert step["suggestedHabit"] is None

        done = client.post(f"/api/goals/{goal['id']}/steps/{step['id']}/toggle").json()
        assert done["progress"] == 100
        assert done["completed"] is True
        assert client.get("/api/stats").json()["totalXp"] == 2000

        resp = client.put(f"/api/goals/{goal['id']}", json={"progress": 100})
        assert resp.status_code == 200
        assert client.get("/api/stats").json()["totalXp"] == 2000

    def test_progress_out_of_range(self, client):
        goal = client.post("/api/goals", json={"title": "Ship"}).json()
        assert client.put(f"/api/goals/{goal['id']}", json={"progress": 150}).status_code == 422

    def test_delete(self, client):
        goal = client.post("/api/goals", json={"title": "Ship"}).json()
        assert client.delete(f"/api/goals/{goal['id']}").status_code == 204
        assert client.delete(f"/api/goals/{goal['id']}").status_code == 404


class TestAchievementRoutes:

    def test_list_and_unlock(self, client):
        assert len(client.get("/api/achievements").json()) == 10
        assert client.get("/api/achievements/unlocked").json() == []

        first = client.post("/api/achievements/first_goal/unlock").json()
        second = client.post("/api/achievements/first_goal/unlock").json()
        assert first["unlockedAt"] is not None
        assert second["unlockedAt"] == first["unlockedAt"]
        assert [a["key"] for a in client.get("/api/achievements/unlocked").json()] == ["first_goal"]
        assert client.get("/api/stats").json()["totalXp"] == 0

    def test_unknown_key(self, client):
        assert client.post("/api/achievements/nope/unlock").status_code == 404


class TestShopRoutes:

    def test_purchase_without_gold(self, client):
        resp = client.post("/api/shop/purchase", json={"itemId": "xp_scroll_minor"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["required"] == 300
        assert body["available"] == 0
        assert client.get("/api/shop/inventory").json() == []

    def test_items(self, client):
        items = client.get("/api/shop/items").json()
        assert {"id", "name", "price", "effect", "value"} <= set(items[0])

    def test_use_missing_item(self, client):
        assert client.post("/api/shop/use", json={"itemId": "xp_scroll_minor"}).status_code == 400

    def test_use_choosable_elixir_with_stat(self, client):
        store = app.dependency_overrides[get_storage]()

        async def fund():
            async with store.transaction():
                await store.save_ledger(ProgressionLedger(current_gold=50000, lifetime_gold=50000))

        asyncio.run(fund())
        assert client.post("/api/shop/purchase", json={"itemId": "stat_boost_perm"}).status_code == 200

        resp = client.post("/api/shop/use", json={"itemId": "stat_boost_perm"})
        assert resp.status_code == 400
        assert resp.json()["field"] == "stat"

        resp = client.post("/api/shop/use", json={"itemId": "stat_boost_perm", "stat": "sense"})
        assert resp.status_code == 200
        assert resp.json()["stats"]["sense"] == 5


class TestAnalyticsRoute:

    def test_shape(self, client):
        client.post("/api/habits", json={"name": "Read"})
        body = client.get("/api/analytics").json()
        assert len(body["dailyData"]) == 7
        assert len(body["weeklyData"]) == 4
        assert set(body["habitStatsByTimeframe"]) == {"daily", "weekly", "monthly", "yearly"}
        assert body["streakData"]["currentStreak"] == 0
        assert body["categoryBreakdown"][0]["category"] == "personal"
