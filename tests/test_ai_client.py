"""Tests for parsing AI replies and falling back to medium difficulty."""
import pytest
from types import SimpleNamespace

from leveling_os.ai_client import AIClient, rate_habit
from leveling_os.config import AIConfig
from leveling_os.errors import ExternalDependencyError
from leveling_os.goals import GoalService
from leveling_os.habits import HabitService
from leveling_os.models import GoalCreate, HabitCreate


def client_replying(content):
    """A real AIClient whose HTTP client answers every completion with `content`."""
    ai = AIClient(AIConfig(enabled=True, api_key="test", max_retries=1))
    reply = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
    ai._client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=lambda **kwargs: reply))
    )
    return ai


class TestAssess:

    def test_parses_rating(self):
        ai = client_replying('{"difficulty": 3, "rationale": "Needs an early alarm"}')
        rating = ai.assess_habit_difficulty("Wake at 5am", "health")
        assert rating.difficulty == 3
        assert rating.rationale == "Needs an early alarm"

    def test_out_of_range_is_clamped(self):
        assert client_replying('{"difficulty": 9}').assess_goal_difficulty("Run a marathon").difficulty == 3

    @pytest.mark.parametrize("content", ["[3]", '"hard"', "3", "null", "not json"])
    def test_non_object_reply_is_an_external_error(self, content):
        with pytest.raises(ExternalDependencyError):
            client_replying(content).assess_habit_difficulty("Read", "learning")

    def test_disabled_client_refuses(self):
        ai = AIClient(AIConfig(enabled=False, api_key="test"))
        with pytest.raises(ExternalDependencyError):
            ai.assess_habit_difficulty("Read", "learning")


class TestFallback:

    async def test_rate_habit_defaults_to_medium(self):
        rating = await rate_habit(client_replying("[3]"), "Read", "learning")
        assert rating.difficulty == 2
        assert rating.rationale == ""

    @pytest.mark.parametrize("content", ["[3]", '"hard"'])
    async def test_create_habit_survives_malformed_reply(self, storage, content):
        habit = await HabitService(storage, client_replying(content)).create_habit(HabitCreate(name="Read"))
        assert habit.difficulty == 2
        assert habit.xp_reward == 200

    @pytest.mark.parametrize("content", ["[3]", '"hard"'])
    async def test_create_goal_survives_malformed_reply(self, storage, content):
        goal = await GoalService(storage, client_replying(content)).create_goal(GoalCreate(title="Learn Spanish"))
        assert goal.difficulty == 2
        assert goal.xp_reward == 2000
