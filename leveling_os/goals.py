"""
Personal Leveling OS - Goal Operations
Track goals with ordered steps; goal XP is paid exactly once on completion.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from leveling_os.achievements import AchievementEvaluator
from leveling_os.ai_client import AIClient, rate_goal, suggest_step_habit
from leveling_os.analytics import round_half_up
from leveling_os.errors import NotFoundError
from leveling_os.gameplay import GOAL_XP_BY_DIFFICULTY
from leveling_os.models import Goal, GoalCreate, GoalStep, GoalUpdate, StepResult
from leveling_os.rewards import apply_delta, goal_completion_reward, is_goal_completion_transition
from leveling_os.storage import Storage

logger = logging.getLogger(__name__)

# Fields a client may clear by sending null
NULLABLE_GOAL_FIELDS = ("description", "deadline")


def progress_from_steps(steps: List[GoalStep]) -> int:
    """Share of completed steps, as a whole percentage."""
    if not steps:
        return 0
    done = sum(1 for step in steps if step.completed)
    return round_half_up(done / len(steps) * 100)


class GoalService:
    def __init__(self, storage: Storage, ai: Optional[AIClient] = None):
        self.storage = storage
        self.ai = ai
        self.achievements = AchievementEvaluator(storage)

    async def list_goals(self) -> List[Goal]:
        return await self.storage.list_goals()

    async def get_goal(self, goal_id: int) -> Goal:
        goal = await self.storage.get_goal(goal_id)
        if goal is None:
            raise NotFoundError("Goal not found")
        return goal

    async def create_goal(self, data: GoalCreate) -> Goal:
        """Difficulty is assessed once here and never changes afterwards."""
        rating = await rate_goal(
            self.ai,
            data.title,
            data.description,
            data.deadline.isoformat() if data.deadline else None,
        )
        fields = {name: getattr(data, name) for name in GoalCreate.model_fields}
        fields.update(
            difficulty=rating.difficulty,
            xp_reward=GOAL_XP_BY_DIFFICULTY[rating.difficulty],
            difficulty_rationale=rating.rationale or None,
            progress=progress_from_steps(data.steps),
        )
        async with self.storage.transaction():
            goal = await self.storage.create_goal(fields)
        logger.info(f"Goal created: {goal.title} (difficulty {goal.difficulty}, {goal.xp_reward} XP)")
        return goal

    async def update_goal(self, goal_id: int, data: GoalUpdate, now: Optional[datetime] = None) -> Goal:
        updates = {
            name: getattr(data, name) for name in data.model_fields_set
            if getattr(data, name) is not None or name in NULLABLE_GOAL_FIELDS
        }
        if "steps" in updates and "progress" not in updates:
            updates["progress"] = progress_from_steps(updates["steps"])
        async with self.storage.transaction():
            existing = await self.get_goal(goal_id)
            return await self._apply_update(existing, updates, now)

    async def _apply_update(self, existing: Goal, updates: Dict[str, Any], now: Optional[datetime]) -> Goal:
        """Write the update and award goal XP if this moves the goal into completion."""
        completing = is_goal_completion_transition(existing, updates.get("progress"), updates.get("completed"))
        if completing:
            # Marked completed so dropping back below 100 and returning cannot pay twice
            updates = {**updates, "completed": True}
        goal = await self.storage.update_goal(existing.id, updates)

        if completing:
            now = now or datetime.now()
            ledger = await self.storage.get_ledger(for_update=True)
            outcome = apply_delta(ledger, goal_completion_reward(existing), now=now)
            ledger = await self.storage.save_ledger(outcome.ledger)
            await self.achievements.after_goal_completed(ledger, now)
            logger.info(f"Goal {existing.id} completed: +{existing.xp_reward} XP")

        return goal

    async def add_step(self, goal_id: int, title: str, now: Optional[datetime] = None) -> StepResult:
        goal = await self.get_goal(goal_id)

        # Ask for a suggestion before taking the transaction; it may be slow
        habits = await self.storage.list_habits()
        ledger = await self.storage.get_ledger()
        suggestion = await suggest_step_habit(
            self.ai, goal.title, title, ledger.level, [h.name for h in habits if h.active]
        )

        step = GoalStep(id=f"step-{uuid.uuid4().hex[:12]}", title=title, suggested_habit=suggestion or None)
        async with self.storage.transaction():
            existing = await self.get_goal(goal_id)
            steps = existing.steps + [step]
            goal = await self._apply_update(existing, {"steps": steps, "progress": progress_from_steps(steps)}, now)
        return StepResult(step=step, goal=goal)

    async def toggle_step(
        self,
        goal_id: int,
        step_id: str,
        completed: Optional[bool] = None,
        now: Optional[datetime] = None
    ) -> Goal:
        """Flip (or set) a step and roll the parent goal's progress up from its steps."""
        async with self.storage.transaction():
            existing = await self.get_goal(goal_id)
            steps = []
            found = False
            for step in existing.steps:
                if step.id == step_id:
                    found = True
                    done = (not step.completed) if completed is None else completed
                    step = step.model_copy(update={"completed": done})
                steps.append(step)
            if not found:
                raise NotFoundError("Step not found")

            return await self._apply_update(existing, {"steps": steps, "progress": progress_from_steps(steps)}, now)

    async def delete_goal(self, goal_id: int) -> None:
        async with self.storage.transaction():
            if not await self.storage.delete_goal(goal_id):
                raise NotFoundError("Goal not found")
