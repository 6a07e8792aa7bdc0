"""Tests for goals, step roll-up and the one-time completion reward."""
import pytest

from leveling_os.errors import NotFoundError
from leveling_os.goals import GoalService, progress_from_steps
from leveling_os.models import GoalCreate, GoalStep, GoalUpdate

from tests.conftest import ScriptedAI


@pytest.fixture
def service(storage):
    return GoalService(storage)


class TestProgressFromSteps:

    def test_empty(self):
        assert progress_from_steps([]) == 0

    def test_rounds_half_up(self):
        steps = [GoalStep(id="a", title="a", completed=True), GoalStep(id="b", title="b")]
        assert progress_from_steps(steps) == 50
        steps.append(GoalStep(id="c", title="c"))
        assert progress_from_steps(steps) == 33


class TestCreateGoal:

    async def test_defaults_without_ai(self, service):
        goal = await service.create_goal(GoalCreate(title="Learn Spanish"))
        assert goal.difficulty == 2
        assert goal.xp_reward == 2000
        assert goal.progress == 0
        assert not goal.completed

    async def test_ai_difficulty(self, storage):
        goal = await GoalService(storage, ScriptedAI(difficulty=1)).create_goal(GoalCreate(title="Clean desk"))
        assert goal.difficulty == 1
        assert goal.xp_reward == 1000


class TestCompletionReward:

    async def test_reaching_100_pays_once(self, storage, now):
        service = GoalService(storage, ScriptedAI(difficulty=3))
        goal = await service.create_goal(GoalCreate(title="Run a marathon"))
        await service.update_goal(goal.id, GoalUpdate(progress=60), now=now)
        assert (await storage.get_ledger()).total_xp == 0

        updated = await service.update_goal(goal.id, GoalUpdate(progress=100), now=now)
        assert updated.progress == 100
        ledger = await storage.get_ledger()
        assert ledger.total_xp == 3000
        assert ledger.level == 3
        assert ledger.current_xp == 3000 - 1000 - 1050

        # Saving a finished goal again pays nothing
        await service.update_goal(goal.id, GoalUpdate(completed=True), now=now)
        await service.update_goal(goal.id, GoalUpdate(progress=100), now=now)
        assert (await storage.get_ledger()).total_xp == 3000

        unlocked = await storage.list_achievements(unlocked_only=True)
        assert [a.key for a in unlocked] == ["first_goal"]

    async def test_marking_completed_pays(self, service, storage, now):
        goal = await service.create_goal(GoalCreate(title="Read 12 books"))
        await service.update_goal(goal.id, GoalUpdate(completed=True), now=now)
        assert (await storage.get_ledger()).total_xp == 2000

    async def test_no_gold_or_stats(self, service, storage, now):
        goal = await service.create_goal(GoalCreate(title="Read 12 books"))
        await service.update_goal(goal.id, GoalUpdate(progress=100), now=now)
        ledger = await storage.get_ledger()
        assert ledger.current_gold == 0
        assert ledger.willpower == 0

    async def test_missing_goal(self, service, now):
        with pytest.raises(NotFoundError):
            await service.update_goal(5, GoalUpdate(progress=100), now=now)


class TestSteps:

    async def test_add_step_with_suggestion(self, storage, now):
        service = GoalService(storage, ScriptedAI(suggestion="Study vocab daily"))
        goal = await service.create_goal(GoalCreate(title="Learn Spanish"))
        result = await service.add_step(goal.id, "Finish unit 1", now=now)

        assert result.step.title == "Finish unit 1"
        assert result.step.id.startswith("step-")
        assert result.step.suggested_habit == "Study vocab daily"
        assert result.goal.steps == [result.step]
        assert result.goal.progress == 0

    async def test_add_step_without_ai(self, service, now):
        goal = await service.create_goal(GoalCreate(title="Learn Spanish"))
        result = await service.add_step(goal.id, "Finish unit 1", now=now)
        assert result.step.suggested_habit is None

    async def test_toggle_steps_rolls_up_and_completes(self, service, storage, now):
        goal = await service.create_goal(GoalCreate(
            title="Ship side project",
            steps=[GoalStep(id="s1", title="Design"), GoalStep(id="s2", title="Build")],
        ))

        half = await service.toggle_step(goal.id, "s1", now=now)
        assert half.progress == 50
        assert (await storage.get_ledger()).total_xp == 0

        full = await service.toggle_step(goal.id, "s2", now=now)
        assert full.progress == 100
        assert (await storage.get_ledger()).total_xp == 2000

        # Unchecking and re-checking a step does not pay twice
        await service.toggle_step(goal.id, "s2", now=now)
        await service.toggle_step(goal.id, "s2", now=now)
        assert (await storage.get_ledger()).total_xp == 2000

    async def test_steps_update_recomputes_progress(self, service, now):
        goal = await service.create_goal(GoalCreate(title="Ship", steps=[GoalStep(id="s1", title="a")]))
        updated = await service.update_goal(
            goal.id,
            GoalUpdate(steps=[GoalStep(id="s1", title="a", completed=True), GoalStep(id="s2", title="b")]),
            now=now,
        )
        assert updated.progress == 50

    async def test_unknown_step(self, service, now):
        goal = await service.create_goal(GoalCreate(title="Ship"))
        with pytest.raises(NotFoundError):
            await service.toggle_step(goal.id, "nope", now=now)


class TestDeleteGoal:

    async def test_delete(self, service):
        goal = await service.create_goal(GoalCreate(title="Ship"))
        await service.delete_goal(goal.id)
        assert await service.list_goals() == []
        with pytest.raises(NotFoundError):
            await service.delete_goal(goal.id)
