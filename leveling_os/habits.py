"""
Personal Leveling OS - Habit Operations
Create/update/soft-delete habits and toggle daily completions.
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from leveling_os.achievements import AchievementEvaluator
from leveling_os.ai_client import AIClient, rate_habit
from leveling_os.analytics import CompletionIndex, compute_streaks, habit_streak
from leveling_os.errors import NotFoundError
from leveling_os.gameplay import HABIT_XP_BY_DIFFICULTY, is_habit_due
from leveling_os.models import (
    Habit,
    HabitCreate,
    HabitUpdate,
    HabitWithStatus,
    ToggleResult,
)
from leveling_os.rewards import apply_delta, habit_completion_reward
from leveling_os.storage import Storage

logger = logging.getLogger(__name__)


class HabitService:
    """Habit CRUD plus the completion toggle that drives rewards."""

    def __init__(self, storage: Storage, ai: Optional[AIClient] = None):
        self.storage = storage
        self.ai = ai
        self.achievements = AchievementEvaluator(storage)

    async def get_habit(self, habit_id: int) -> Habit:
        habit = await self.storage.get_habit(habit_id)
        if habit is None:
            raise NotFoundError("Habit not found")
        return habit

    async def list_habits(self, today: date, include_inactive: bool = False) -> List[HabitWithStatus]:
        """Habits with today's status and per-habit streak; unfinished and priority first."""
        habits = await self.storage.list_habits()
        index = CompletionIndex(await self.storage.list_completions())

        enriched = []
        for habit in habits:
            if not include_inactive and not habit.active:
                continue
            days = index.days_by_habit.get(habit.id, set())
            past = [d for d in days if d < today]
            enriched.append(HabitWithStatus(
                **habit.model_dump(),
                completed_today=today in days,
                streak=habit_streak(days, today),
                due_today=is_habit_due(
                    habit.frequency.value,
                    habit.frequency_days,
                    today,
                    custom_interval=habit.custom_interval,
                    last_completion=max(past) if past else None,
                ),
            ))

        enriched.sort(key=lambda h: (h.completed_today, not h.priority))
        return enriched

    async def create_habit(self, data: HabitCreate) -> Habit:
        """Rate difficulty once (medium if the AI is unavailable) and freeze the XP reward."""
        rating = await rate_habit(self.ai, data.name, data.category, data.description)
        fields = {name: getattr(data, name) for name in HabitCreate.model_fields}
        fields.update(
            difficulty=rating.difficulty,
            xp_reward=HABIT_XP_BY_DIFFICULTY[rating.difficulty],
            difficulty_rationale=rating.rationale or None,
        )
        async with self.storage.transaction():
            habit = await self.storage.create_habit(fields)
        logger.info(f"Habit created: {habit.name} (difficulty {habit.difficulty}, {habit.xp_reward} XP)")
        return habit

    async def update_habit(self, habit_id: int, data: HabitUpdate) -> Habit:
        updates = {
            name: getattr(data, name) for name in data.model_fields_set
            if getattr(data, name) is not None or name in ("description", "custom_interval")
        }
        async with self.storage.transaction():
            await self.get_habit(habit_id)
            return await self.storage.update_habit(habit_id, updates)

    async def delete_habit(self, habit_id: int) -> Habit:
        """Soft delete: the habit stops counting as active, its history stays."""
        async with self.storage.transaction():
            await self.get_habit(habit_id)
            return await self.storage.update_habit(habit_id, {"active": False})

    async def toggle_completion(
        self,
        habit_id: int,
        day: date,
        completed: bool,
        now: Optional[datetime] = None
    ) -> ToggleResult:
        """
        Record (habit, day, completed) and pay the reward when completing.

        Un-completing only overwrites the record; XP, gold and stats already
        granted are kept. The whole operation is one transaction.
        """
        now = now or datetime.now()

        async with self.storage.transaction():
            habit = await self.get_habit(habit_id)
            await self.storage.upsert_completion(habit_id, day, completed)
            ledger = await self.storage.get_ledger(for_update=True)

            if not completed:
                return ToggleResult(new_level=ledger.level)

            delta = habit_completion_reward(habit)
            outcome = apply_delta(ledger, delta, now=now)
            ledger = await self.storage.save_ledger(outcome.ledger)

            streaks = compute_streaks(
                await self.storage.list_habits(),
                await self.storage.list_completions(),
                now,
            )
            unlocked = await self.achievements.after_habit_completed(ledger, streaks.longest_streak, now)

        logger.info(
            f"Habit {habit_id} completed on {day}: +{delta.xp} XP, +{delta.gold} gold"
            + (f", level {outcome.old_level} -> {outcome.new_level}" if outcome.leveled_up else "")
        )
        return ToggleResult(
            xp_gained=delta.xp,
            gold_gained=delta.gold,
            new_level=outcome.new_level,
            leveled_up=outcome.leveled_up,
            unlocked_achievement=unlocked[0] if unlocked else None,
            unlocked_achievements=unlocked,
        )
