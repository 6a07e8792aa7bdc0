"""Tests for the SQL helpers used by the PostgreSQL backend (no server needed)."""
import json

from leveling_os.database import GOAL_COLUMNS, HABIT_COLUMNS, _build_update, _db_value, _goal
from leveling_os.models import GoalStep, HabitFrequency


class TestBuildUpdate:

    def test_numbered_placeholders(self):
        query, values = _build_update("habits", {"name": "Read", "priority": True}, HABIT_COLUMNS, 7)
        assert query == "UPDATE habits SET name = $1, priority = $2 WHERE id = $3 RETURNING *"
        assert values == ["Read", True, 7]

    def test_unknown_columns_are_dropped(self):
        query, values = _build_update("habits", {"name": "Read", "id": 99}, HABIT_COLUMNS, 1)
        assert "id = $1" not in query
        assert values == ["Read", 1]

    def test_steps_cast_to_jsonb(self):
        steps = [GoalStep(id="s1", title="Design", completed=True)]
        query, values = _build_update("goals", {"steps": steps, "progress": 100}, GOAL_COLUMNS, 3)
        assert "steps = $1::jsonb" in query
        assert json.loads(values[0])[0]["id"] == "s1"
        assert values[1:] == [100, 3]


class TestConversion:

    def test_enum_stored_as_value(self):
        assert _db_value("frequency", HabitFrequency.WEEKENDS) == "weekends"

    def test_goal_row_with_json_steps(self):
        row = {
            "id": 1,
            "title": "Ship",
            "steps": json.dumps([{"id": "s1", "title": "Design", "completed": False, "suggested_habit": None}]),
        }
        goal = _goal(row)
        assert goal.steps[0].id == "s1"
        assert goal.steps[0].completed is False
