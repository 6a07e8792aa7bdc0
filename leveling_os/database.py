"""
Personal Leveling OS - Database Connection
Async PostgreSQL with asyncpg
"""

import json
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import date, datetime
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg

from leveling_os.config import get_database_config
from leveling_os.errors import NotFoundError
from leveling_os.models import (
    Achievement,
    Completion,
    Goal,
    Habit,
    InventoryItem,
    ProgressionLedger,
)
from leveling_os.storage import Storage

logger = logging.getLogger(__name__)

# Connection bound to the running transaction, if any
_current_conn: ContextVar[Optional[asyncpg.Connection]] = ContextVar("leveling_os_conn", default=None)


SCHEMA = """
CREATE TABLE IF NOT EXISTS habits (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    category TEXT NOT NULL DEFAULT 'personal',
    difficulty INTEGER NOT NULL DEFAULT 2 CHECK (difficulty BETWEEN 1 AND 3),
    xp_reward INTEGER NOT NULL DEFAULT 200,
    difficulty_rationale TEXT,
    priority BOOLEAN NOT NULL DEFAULT FALSE,
    color TEXT NOT NULL DEFAULT 'bg-blue-500',
    frequency TEXT NOT NULL DEFAULT 'daily',
    frequency_days INTEGER[] NOT NULL DEFAULT '{}',
    custom_interval INTEGER,
    active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMP NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS goals (
    id SERIAL PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT,
    category TEXT NOT NULL DEFAULT 'personal',
    deadline DATE,
    difficulty INTEGER NOT NULL DEFAULT 2 CHECK (difficulty BETWEEN 1 AND 3),
    xp_reward INTEGER NOT NULL DEFAULT 2000,
    difficulty_rationale TEXT,
    progress INTEGER NOT NULL DEFAULT 0 CHECK (progress BETWEEN 0 AND 100),
    completed BOOLEAN NOT NULL DEFAULT FALSE,
    priority BOOLEAN NOT NULL DEFAULT FALSE,
    steps JSONB NOT NULL DEFAULT '[]',
    created_at TIMESTAMP NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS completions (
    id SERIAL PRIMARY KEY,
    habit_id INTEGER NOT NULL REFERENCES habits(id),
    date DATE NOT NULL,
    completed BOOLEAN NOT NULL DEFAULT TRUE,
    UNIQUE (habit_id, date)
);

CREATE TABLE IF NOT EXISTS user_stats (
    id SERIAL PRIMARY KEY,
    level INTEGER NOT NULL DEFAULT 1,
    current_xp INTEGER NOT NULL DEFAULT 0,
    total_xp INTEGER NOT NULL DEFAULT 0,
    current_gold INTEGER NOT NULL DEFAULT 0 CHECK (current_gold >= 0),
    lifetime_gold INTEGER NOT NULL DEFAULT 0,
    strength INTEGER NOT NULL DEFAULT 0,
    intelligence INTEGER NOT NULL DEFAULT 0,
    vitality INTEGER NOT NULL DEFAULT 0,
    agility INTEGER NOT NULL DEFAULT 0,
    sense INTEGER NOT NULL DEFAULT 0,
    willpower INTEGER NOT NULL DEFAULT 0,
    last_level_up TIMESTAMP
);

CREATE TABLE IF NOT EXISTS achievements (
    id SERIAL PRIMARY KEY,
    key TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    icon TEXT NOT NULL DEFAULT 'Trophy',
    category TEXT NOT NULL DEFAULT 'general',
    tier TEXT NOT NULL DEFAULT 'bronze',
    xp_reward INTEGER NOT NULL DEFAULT 50,
    gold_reward INTEGER NOT NULL DEFAULT 0,
    stat_bonus JSONB,
    special_power TEXT,
    unlocked_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS inventory (
    id SERIAL PRIMARY KEY,
    item_id TEXT NOT NULL UNIQUE,
    quantity INTEGER NOT NULL DEFAULT 1,
    purchased_at TIMESTAMP NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_completions_date ON completions(date);
"""

LEDGER_COLUMNS = (
    "level", "current_xp", "total_xp", "current_gold", "lifetime_gold",
    "strength", "intelligence", "vitality", "agility", "sense", "willpower",
    "last_level_up",
)

HABIT_COLUMNS = (
    "name", "description", "category", "difficulty", "xp_reward", "difficulty_rationale",
    "priority", "color", "frequency", "frequency_days", "custom_interval", "active",
)

GOAL_COLUMNS = (
    "title", "description", "category", "deadline", "difficulty", "xp_reward",
    "difficulty_rationale", "progress", "completed", "priority", "steps",
)


class Database:
    """Async database connection manager."""

    def __init__(self, dsn: Optional[str] = None):
        self._dsn = dsn
        self._pool = None

    async def connect(self):
        """Create connection pool."""
        cfg = get_database_config()
        self._pool = await asyncpg.create_pool(
            self._dsn or cfg.database_url,
            min_size=cfg.pool_min_size,
            max_size=cfg.pool_max_size,
        )
        logger.info("Database connected")

    async def disconnect(self):
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database disconnected")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[asyncpg.Connection]:
        """The transaction's connection if one is open, else a pooled one."""
        conn = _current_conn.get()
        if conn is not None:
            yield conn
            return
        async with self._pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        conn = _current_conn.get()
        if conn is not None:
            # Nested: savepoint on the same connection
            async with conn.transaction():
                yield conn
            return

        async with self._pool.acquire() as conn:
            async with conn.transaction():
                token = _current_conn.set(conn)
                try:
                    yield conn
                finally:
                    _current_conn.reset(token)

    async def fetch(self, query: str, *args) -> List[dict]:
        """Fetch multiple rows."""
        async with self.connection() as conn:
            rows = await conn.fetch(query, *args)
            return [dict(row) for row in rows]

    async def fetch_one(self, query: str, *args) -> Optional[dict]:
        """Fetch single row."""
        async with self.connection() as conn:
            row = await conn.fetchrow(query, *args)
            return dict(row) if row else None

    async def execute(self, query: str, *args) -> str:
        """Execute query (INSERT, UPDATE, DELETE)."""
        async with self.connection() as conn:
            return await conn.execute(query, *args)

    async def execute_returning(self, query: str, *args) -> Optional[dict]:
        """Execute and return the affected row."""
        async with self.connection() as conn:
            row = await conn.fetchrow(query, *args)
            return dict(row) if row else None


# ============================================
# ROW CONVERSION
# ============================================

def _loads(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def _habit(row: dict) -> Habit:
    return Habit.model_validate(row)


def _goal(row: dict) -> Goal:
    row["steps"] = _loads(row.get("steps")) or []
    return Goal.model_validate(row)


def _achievement(row: dict) -> Achievement:
    row["stat_bonus"] = _loads(row.get("stat_bonus"))
    return Achievement.model_validate(row)


def _db_value(column: str, value: Any) -> Any:
    if column == "steps":
        return json.dumps([step if isinstance(step, dict) else step.model_dump() for step in value])
    if hasattr(value, "value"):
        # str Enums
        return value.value
    return value


def _placeholder(column: str, index: int) -> str:
    return f"${index}::jsonb" if column == "steps" else f"${index}"


def _build_update(table: str, updates: Dict[str, Any], allowed: tuple, row_id: int):
    set_parts = []
    values = []
    for column, value in updates.items():
        if column not in allowed:
            continue
        values.append(_db_value(column, value))
        set_parts.append(f"{column} = {_placeholder(column, len(values))}")
    values.append(row_id)
    set_clause = ", ".join(set_parts)
    return f"UPDATE {table} SET {set_clause} WHERE id = ${len(values)} RETURNING *", values


# ============================================
# POSTGRES STORAGE
# ============================================

class DatabaseStorage(Storage):
    """Storage backed by PostgreSQL."""

    name = "postgres"

    def __init__(self, database: Optional[Database] = None):
        self.db = database or Database()

    async def connect(self) -> None:
        await self.db.connect()
        await self.ensure_schema()

    async def disconnect(self) -> None:
        await self.db.disconnect()

    async def ensure_schema(self) -> None:
        await self.db.execute(SCHEMA)

    def transaction(self):
        return self.db.transaction()

    # ---------- habits ----------

    async def list_habits(self) -> List[Habit]:
        rows = await self.db.fetch("SELECT * FROM habits ORDER BY priority DESC, id")
        return [_habit(r) for r in rows]

    async def get_habit(self, habit_id: int) -> Optional[Habit]:
        row = await self.db.fetch_one("SELECT * FROM habits WHERE id = $1", habit_id)
        return _habit(row) if row else None

    async def create_habit(self, data: Dict[str, Any]) -> Habit:
        columns = [c for c in HABIT_COLUMNS if c in data]
        values = [_db_value(c, data[c]) for c in columns]
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        row = await self.db.execute_returning(
            f"INSERT INTO habits ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *",
            *values
        )
        return _habit(row)

    async def update_habit(self, habit_id: int, updates: Dict[str, Any]) -> Habit:
        if not updates:
            habit = await self.get_habit(habit_id)
            if habit is None:
                raise NotFoundError("Habit not found")
            return habit
        query, values = _build_update("habits", updates, HABIT_COLUMNS, habit_id)
        row = await self.db.execute_returning(query, *values)
        if not row:
            raise NotFoundError("Habit not found")
        return _habit(row)

    # ---------- goals ----------

    async def list_goals(self) -> List[Goal]:
        rows = await self.db.fetch("SELECT * FROM goals ORDER BY deadline NULLS LAST, id")
        return [_goal(r) for r in rows]

    async def get_goal(self, goal_id: int) -> Optional[Goal]:
        row = await self.db.fetch_one("SELECT * FROM goals WHERE id = $1", goal_id)
        return _goal(row) if row else None

    async def create_goal(self, data: Dict[str, Any]) -> Goal:
        columns = [c for c in GOAL_COLUMNS if c in data]
        values = [_db_value(c, data[c]) for c in columns]
        placeholders = ", ".join(_placeholder(c, i) for i, c in enumerate(columns, 1))
        row = await self.db.execute_returning(
            f"INSERT INTO goals ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *",
            *values
        )
        return _goal(row)

    async def update_goal(self, goal_id: int, updates: Dict[str, Any]) -> Goal:
        if not updates:
            goal = await self.get_goal(goal_id)
            if goal is None:
                raise NotFoundError("Goal not found")
            return goal
        query, values = _build_update("goals", updates, GOAL_COLUMNS, goal_id)
        row = await self.db.execute_returning(query, *values)
        if not row:
            raise NotFoundError("Goal not found")
        return _goal(row)

    async def delete_goal(self, goal_id: int) -> bool:
        result = await self.db.execute("DELETE FROM goals WHERE id = $1", goal_id)
        return "DELETE 1" in result

    # ---------- completions ----------

    async def list_completions(self) -> List[Completion]:
        rows = await self.db.fetch("SELECT habit_id, date, completed FROM completions")
        return [Completion.model_validate(r) for r in rows]

    async def get_completion(self, habit_id: int, day: date) -> Optional[Completion]:
        row = await self.db.fetch_one(
            "SELECT habit_id, date, completed FROM completions WHERE habit_id = $1 AND date = $2",
            habit_id, day
        )
        return Completion.model_validate(row) if row else None

    async def upsert_completion(self, habit_id: int, day: date, completed: bool) -> Completion:
        row = await self.db.execute_returning("""
            INSERT INTO completions (habit_id, date, completed)
            VALUES ($1, $2, $3)
            ON CONFLICT (habit_id, date) DO UPDATE SET completed = EXCLUDED.completed
            RETURNING habit_id, date, completed
        """, habit_id, day, completed)
        return Completion.model_validate(row)

    # ---------- ledger ----------

    async def get_ledger(self, for_update: bool = False) -> ProgressionLedger:
        lock = " FOR UPDATE" if for_update else ""
        row = await self.db.fetch_one(f"SELECT * FROM user_stats ORDER BY id LIMIT 1{lock}")
        if not row:
            row = await self.db.execute_returning(
                "INSERT INTO user_stats (level, current_xp, total_xp) VALUES (1, 0, 0) RETURNING *"
            )
        return ProgressionLedger.model_validate(row)

    async def save_ledger(self, ledger: ProgressionLedger) -> ProgressionLedger:
        values = [getattr(ledger, c) for c in LEDGER_COLUMNS]
        set_clause = ", ".join(f"{c} = ${i}" for i, c in enumerate(LEDGER_COLUMNS, 1))
        row = await self.db.execute_returning(
            f"UPDATE user_stats SET {set_clause} "
            f"WHERE id = (SELECT id FROM user_stats ORDER BY id LIMIT 1) RETURNING *",
            *values
        )
        return ProgressionLedger.model_validate(row)

    # ---------- achievements ----------

    async def list_achievements(self, unlocked_only: bool = False) -> List[Achievement]:
        if unlocked_only:
            rows = await self.db.fetch(
                "SELECT * FROM achievements WHERE unlocked_at IS NOT NULL ORDER BY unlocked_at"
            )
        else:
            rows = await self.db.fetch("SELECT * FROM achievements ORDER BY id")
        return [_achievement(r) for r in rows]

    async def get_achievement(self, key: str) -> Optional[Achievement]:
        row = await self.db.fetch_one("SELECT * FROM achievements WHERE key = $1", key)
        return _achievement(row) if row else None

    async def insert_achievement(self, achievement: Achievement) -> bool:
        stat_bonus = json.dumps(achievement.stat_bonus.model_dump(mode="json")) if achievement.stat_bonus else None
        result = await self.db.execute("""
            INSERT INTO achievements
                (key, title, description, icon, category, tier, xp_reward, gold_reward, stat_bonus, special_power)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb, $10)
            ON CONFLICT (key) DO NOTHING
        """, achievement.key, achievement.title, achievement.description, achievement.icon,
            achievement.category, achievement.tier.value, achievement.xp_reward,
            achievement.gold_reward, stat_bonus, achievement.special_power)
        return result.endswith(" 1")

    async def unlock_achievement(self, key: str, unlocked_at: datetime) -> Optional[Achievement]:
        # The IS NULL guard makes the flip happen at most once even under races
        row = await self.db.execute_returning("""
            UPDATE achievements SET unlocked_at = $1
            WHERE key = $2 AND unlocked_at IS NULL
            RETURNING *
        """, unlocked_at, key)
        return _achievement(row) if row else None

    # ---------- inventory ----------

    async def list_inventory(self) -> List[InventoryItem]:
        rows = await self.db.fetch(
            "SELECT item_id, quantity, purchased_at FROM inventory ORDER BY purchased_at DESC"
        )
        return [InventoryItem.model_validate(r) for r in rows]

    async def get_inventory_item(self, item_id: str) -> Optional[InventoryItem]:
        row = await self.db.fetch_one(
            "SELECT item_id, quantity, purchased_at FROM inventory WHERE item_id = $1", item_id
        )
        return InventoryItem.model_validate(row) if row else None

    async def save_inventory_item(self, item: InventoryItem) -> InventoryItem:
        row = await self.db.execute_returning("""
            INSERT INTO inventory (item_id, quantity, purchased_at)
            VALUES ($1, $2, COALESCE($3, NOW()))
            ON CONFLICT (item_id) DO UPDATE SET quantity = EXCLUDED.quantity
            RETURNING item_id, quantity, purchased_at
        """, item.item_id, item.quantity, item.purchased_at)
        return InventoryItem.model_validate(row)

    async def delete_inventory_item(self, item_id: str) -> None:
        await self.db.execute("DELETE FROM inventory WHERE item_id = $1", item_id)
