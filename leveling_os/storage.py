"""
Personal Leveling OS - Persistence Interface

`Storage` is what the services talk to. Two backends implement it:
`MemoryStorage` below (development and tests) and `DatabaseStorage` in
database.py (PostgreSQL via asyncpg).

Every mutating service call wraps its reads and writes in
`storage.transaction()`. Inside it, either everything is written or nothing is.
"""

import asyncio
import copy
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import date, datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from leveling_os.errors import NotFoundError
from leveling_os.models import (
    Achievement,
    Completion,
    Goal,
    Habit,
    InventoryItem,
    ProgressionLedger,
)


class Storage(ABC):
    """Persistence collaborator used by the progression core."""

    name = "abstract"

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    @abstractmethod
    def transaction(self) -> Any:
        """Async context manager; nested use joins the outer transaction."""

    # Habits
    @abstractmethod
    async def list_habits(self) -> List[Habit]: ...

    @abstractmethod
    async def get_habit(self, habit_id: int) -> Optional[Habit]: ...

    @abstractmethod
    async def create_habit(self, data: Dict[str, Any]) -> Habit: ...

    @abstractmethod
    async def update_habit(self, habit_id: int, updates: Dict[str, Any]) -> Habit: ...

    # Goals
    @abstractmethod
    async def list_goals(self) -> List[Goal]: ...

    @abstractmethod
    async def get_goal(self, goal_id: int) -> Optional[Goal]: ...

    @abstractmethod
    async def create_goal(self, data: Dict[str, Any]) -> Goal: ...

    @abstractmethod
    async def update_goal(self, goal_id: int, updates: Dict[str, Any]) -> Goal: ...

    @abstractmethod
    async def delete_goal(self, goal_id: int) -> bool: ...

    # Completions
    @abstractmethod
    async def list_completions(self) -> List[Completion]: ...

    @abstractmethod
    async def get_completion(self, habit_id: int, day: date) -> Optional[Completion]: ...

    @abstractmethod
    async def upsert_completion(self, habit_id: int, day: date, completed: bool) -> Completion: ...

    # Ledger
    @abstractmethod
    async def get_ledger(self, for_update: bool = False) -> ProgressionLedger:
        """Return the singleton ledger, creating it on first read."""

    @abstractmethod
    async def save_ledger(self, ledger: ProgressionLedger) -> ProgressionLedger: ...

    # Achievements
    @abstractmethod
    async def list_achievements(self, unlocked_only: bool = False) -> List[Achievement]: ...

    @abstractmethod
    async def get_achievement(self, key: str) -> Optional[Achievement]: ...

    @abstractmethod
    async def insert_achievement(self, achievement: Achievement) -> bool:
        """Insert a definition if its key is new. Returns True when inserted."""

    @abstractmethod
    async def unlock_achievement(self, key: str, unlocked_at: datetime) -> Optional[Achievement]:
        """Set unlocked_at if still null. None when missing or already unlocked."""

    # Inventory
    @abstractmethod
    async def list_inventory(self) -> List[InventoryItem]: ...

    @abstractmethod
    async def get_inventory_item(self, item_id: str) -> Optional[InventoryItem]: ...

    @abstractmethod
    async def save_inventory_item(self, item: InventoryItem) -> InventoryItem: ...

    @abstractmethod
    async def delete_inventory_item(self, item_id: str) -> None: ...


# ============================================
# IN-MEMORY BACKEND
# ============================================

_in_memory_tx: ContextVar[bool] = ContextVar("leveling_os_memory_tx", default=False)


class MemoryStorage(Storage):
    """Process-local storage. Transactions are serialized and roll back on error."""

    name = "memory"

    def __init__(self):
        self._lock = asyncio.Lock()
        self._state: Dict[str, Any] = {
            "habits": {},
            "goals": {},
            "completions": {},
            "ledger": None,
            "achievements": {},
            "inventory": {},
            "next_habit_id": 1,
            "next_goal_id": 1,
        }

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if _in_memory_tx.get():
            yield
            return

        async with self._lock:
            snapshot = copy.deepcopy(self._state)
            token = _in_memory_tx.set(True)
            try:
                yield
            except BaseException:
                self._state = snapshot
                raise
            finally:
                _in_memory_tx.reset(token)

    # ---------- habits ----------

    async def list_habits(self) -> List[Habit]:
        habits = list(self._state["habits"].values())
        habits.sort(key=lambda h: (not h.priority, h.id))
        return habits

    async def get_habit(self, habit_id: int) -> Optional[Habit]:
        return self._state["habits"].get(habit_id)

    async def create_habit(self, data: Dict[str, Any]) -> Habit:
        habit_id = self._state["next_habit_id"]
        self._state["next_habit_id"] += 1
        habit = Habit(id=habit_id, created_at=datetime.now(), **data)
        self._state["habits"][habit_id] = habit
        return habit

    async def update_habit(self, habit_id: int, updates: Dict[str, Any]) -> Habit:
        habit = self._state["habits"].get(habit_id)
        if habit is None:
            raise NotFoundError("Habit not found")
        updated = habit.model_copy(update=updates)
        self._state["habits"][habit_id] = updated
        return updated

    # ---------- goals ----------

    async def list_goals(self) -> List[Goal]:
        goals = list(self._state["goals"].values())
        goals.sort(key=lambda g: (g.deadline is None, g.deadline or date.max, g.id))
        return goals

    async def get_goal(self, goal_id: int) -> Optional[Goal]:
        return self._state["goals"].get(goal_id)

    async def create_goal(self, data: Dict[str, Any]) -> Goal:
        goal_id = self._state["next_goal_id"]
        self._state["next_goal_id"] += 1
        goal = Goal(id=goal_id, created_at=datetime.now(), **data)
        self._state["goals"][goal_id] = goal
        return goal

    async def update_goal(self, goal_id: int, updates: Dict[str, Any]) -> Goal:
        goal = self._state["goals"].get(goal_id)
        if goal is None:
            raise NotFoundError("Goal not found")
        updated = goal.model_copy(update=updates)
        self._state["goals"][goal_id] = updated
        return updated

    async def delete_goal(self, goal_id: int) -> bool:
        return self._state["goals"].pop(goal_id, None) is not None

    # ---------- completions ----------

    async def list_completions(self) -> List[Completion]:
        return list(self._state["completions"].values())

    async def get_completion(self, habit_id: int, day: date) -> Optional[Completion]:
        return self._state["completions"].get((habit_id, day))

    async def upsert_completion(self, habit_id: int, day: date, completed: bool) -> Completion:
        completion = Completion(habit_id=habit_id, day=day, completed=completed)
        self._state["completions"][(habit_id, day)] = completion
        return completion

    # ---------- ledger ----------

    async def get_ledger(self, for_update: bool = False) -> ProgressionLedger:
        if self._state["ledger"] is None:
            self._state["ledger"] = ProgressionLedger()
        return self._state["ledger"]

    async def save_ledger(self, ledger: ProgressionLedger) -> ProgressionLedger:
        self._state["ledger"] = ledger
        return ledger

    # ---------- achievements ----------

    async def list_achievements(self, unlocked_only: bool = False) -> List[Achievement]:
        achievements = list(self._state["achievements"].values())
        if unlocked_only:
            achievements = [a for a in achievements if a.unlocked_at is not None]
        return achievements

    async def get_achievement(self, key: str) -> Optional[Achievement]:
        return self._state["achievements"].get(key)

    async def insert_achievement(self, achievement: Achievement) -> bool:
        if achievement.key in self._state["achievements"]:
            return False
        self._state["achievements"][achievement.key] = achievement
        return True

    async def unlock_achievement(self, key: str, unlocked_at: datetime) -> Optional[Achievement]:
        existing = self._state["achievements"].get(key)
        if existing is None or existing.unlocked_at is not None:
            return None
        unlocked = existing.model_copy(update={"unlocked_at": unlocked_at})
        self._state["achievements"][key] = unlocked
        return unlocked

    # ---------- inventory ----------

    async def list_inventory(self) -> List[InventoryItem]:
        return list(self._state["inventory"].values())

    async def get_inventory_item(self, item_id: str) -> Optional[InventoryItem]:
        return self._state["inventory"].get(item_id)

    async def save_inventory_item(self, item: InventoryItem) -> InventoryItem:
        self._state["inventory"][item.item_id] = item
        return item

    async def delete_inventory_item(self, item_id: str) -> None:
        self._state["inventory"].pop(item_id, None)
