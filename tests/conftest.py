"""Shared fixtures: an in-memory store, a fixed clock and a scripted AI."""
import pytest
from datetime import date, datetime

from leveling_os.achievements import seed_achievements
from leveling_os.ai_client import DifficultyAssessment
from leveling_os.storage import MemoryStorage

# Wednesday
NOW = datetime(2026, 10, 14, 9, 30)
TODAY = date(2026, 10, 14)


class ScriptedAI:
    """Stands in for AIClient; answers every call with fixed values."""

    def __init__(self, difficulty=2, rationale="scripted", suggestion="Practice 15 minutes"):
        self.difficulty = difficulty
        self.rationale = rationale
        self.suggestion = suggestion
        self.calls = []

    def assess_habit_difficulty(self, name, category, description=None):
        self.calls.append(("habit", name))
        return DifficultyAssessment(difficulty=self.difficulty, rationale=self.rationale)

    def assess_goal_difficulty(self, title, description=None, deadline=None):
        self.calls.append(("goal", title))
        return DifficultyAssessment(difficulty=self.difficulty, rationale=self.rationale)

    def suggest_habit_for_step(self, goal_title, step_title, level, habits):
        self.calls.append(("step", step_title))
        return self.suggestion


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
async def storage():
    store = MemoryStorage()
    await seed_achievements(store)
    return store
