"""
Personal Leveling OS - FastAPI Backend
Habits, goals, progression, achievements and the item shop over HTTP.
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from leveling_os.achievements import AchievementEvaluator, seed_achievements
from leveling_os.ai_client import AIClient
from leveling_os.analytics import compute_analytics
from leveling_os.clock import now_local, today
from leveling_os.config import get_ai_config, get_app_config
from leveling_os.database import DatabaseStorage
from leveling_os.errors import LevelingError, NotFoundError
from leveling_os.goals import GoalService
from leveling_os.habits import HabitService
from leveling_os.logger import setup_logger
from leveling_os.models import (
    Achievement,
    AnalyticsReport,
    Goal,
    GoalCreate,
    GoalUpdate,
    Habit,
    HabitCreate,
    HabitUpdate,
    HabitWithStatus,
    HealthStatus,
    InventoryItem,
    ProgressionLedger,
    PurchaseRequest,
    PurchaseResult,
    ShopItem,
    StepCreate,
    StepResult,
    ToggleRequest,
    ToggleResult,
    UseItemRequest,
    UseItemResult,
)
from leveling_os.shop import ShopService
from leveling_os.storage import MemoryStorage, Storage

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

_storage: Optional[Storage] = None
_ai: Optional[AIClient] = None


def build_storage() -> Storage:
    backend = get_app_config().storage_backend
    if backend == "memory":
        return MemoryStorage()
    return DatabaseStorage()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    global _storage, _ai
    cfg = get_app_config()
    setup_logger(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        logs_dir=cfg.logs_dir or None,
        log_to_file=cfg.log_to_file,
    )

    # Startup
    _storage = build_storage()
    await _storage.connect()
    await seed_achievements(_storage)
    _ai = AIClient() if get_ai_config().enabled else None
    logger.info(f"Server started (storage={_storage.name}, ai={'on' if _ai else 'off'})")
    yield
    # Shutdown
    logger.info("Server shutting down")
    await _storage.disconnect()


app = FastAPI(
    title="Personal Leveling OS",
    description="Gamified habit and goal tracker",
    version=VERSION,
    lifespan=lifespan
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_app_config().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LevelingError)
async def leveling_error_handler(request: Request, exc: LevelingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ============================================
# DEPENDENCIES
# ============================================

def get_storage() -> Storage:
    if _storage is None:
        raise RuntimeError("Storage is not initialized")
    return _storage


def get_ai() -> Optional[AIClient]:
    return _ai


def get_habit_service(storage: Storage = Depends(get_storage), ai: Optional[AIClient] = Depends(get_ai)) -> HabitService:
    return HabitService(storage, ai)


def get_goal_service(storage: Storage = Depends(get_storage), ai: Optional[AIClient] = Depends(get_ai)) -> GoalService:
    return GoalService(storage, ai)


def get_shop_service(storage: Storage = Depends(get_storage)) -> ShopService:
    return ShopService(storage)


# ============================================
# HEALTH & STATS
# ============================================

@app.get("/health", response_model=HealthStatus)
@app.get("/api/health", response_model=HealthStatus)
async def health_check(storage: Storage = Depends(get_storage), ai: Optional[AIClient] = Depends(get_ai)):
    """Check API and AI endpoint health."""
    ai_status = "disabled"
    if ai is not None:
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.get(
                    f"{ai.config.api_base_url.rstrip('/')}/models",
                    headers={"Authorization": f"Bearer {ai.config.api_key}"} if ai.config.api_key else None,
                    timeout=5
                )
                ai_status = "connected" if resp.status_code == 200 else "error"
        except httpx.HTTPError:
            ai_status = "disconnected"

    return HealthStatus(
        status="healthy",
        version=VERSION,
        storage=storage.name,
        ai=ai_status,
        timestamp=now_local()
    )


@app.get("/api/stats", response_model=ProgressionLedger)
async def get_stats(storage: Storage = Depends(get_storage)):
    """Current level, XP, gold and stats."""
    async with storage.transaction():
        return await storage.get_ledger()


@app.get("/api/analytics", response_model=AnalyticsReport)
async def get_analytics(storage: Storage = Depends(get_storage)):
    habits = await storage.list_habits()
    completions = await storage.list_completions()
    return compute_analytics(habits, completions, now_local())


# ============================================
# HABITS
# ============================================

@app.get("/api/habits", response_model=List[HabitWithStatus])
async def list_habits(include_inactive: bool = False, service: HabitService = Depends(get_habit_service)):
    return await service.list_habits(today(), include_inactive=include_inactive)


@app.post("/api/habits", response_model=Habit, status_code=201)
async def create_habit(habit: HabitCreate, service: HabitService = Depends(get_habit_service)):
    return await service.create_habit(habit)


@app.put("/api/habits/{habit_id}", response_model=Habit)
async def update_habit(habit_id: int, habit: HabitUpdate, service: HabitService = Depends(get_habit_service)):
    return await service.update_habit(habit_id, habit)


@app.delete("/api/habits/{habit_id}", status_code=204)
async def delete_habit(habit_id: int, service: HabitService = Depends(get_habit_service)):
    await service.delete_habit(habit_id)


@app.post("/api/habits/{habit_id}/toggle", response_model=ToggleResult)
async def toggle_habit(habit_id: int, request: ToggleRequest, service: HabitService = Depends(get_habit_service)):
    """Mark a habit done (or not done) for a day. Completing pays XP, gold and a stat."""
    return await service.toggle_completion(habit_id, request.day, request.completed, now=now_local())


# ============================================
# GOALS
# ============================================

@app.get("/api/goals", response_model=List[Goal])
async def list_goals(service: GoalService = Depends(get_goal_service)):
    return await service.list_goals()


@app.post("/api/goals", response_model=Goal, status_code=201)
async def create_goal(goal: GoalCreate, service: GoalService = Depends(get_goal_service)):
    return await service.create_goal(goal)


@app.put("/api/goals/{goal_id}", response_model=Goal)
async def update_goal(goal_id: int, goal: GoalUpdate, service: GoalService = Depends(get_goal_service)):
    return await service.update_goal(goal_id, goal, now=now_local())


@app.delete("/api/goals/{goal_id}", status_code=204)
async def delete_goal(goal_id: int, service: GoalService = Depends(get_goal_service)):
    await service.delete_goal(goal_id)


@app.post("/api/goals/{goal_id}/steps", response_model=StepResult, status_code=201)
async def add_goal_step(goal_id: int, step: StepCreate, service: GoalService = Depends(get_goal_service)):
    return await service.add_step(goal_id, step.title, now=now_local())


@app.post("/api/goals/{goal_id}/steps/{step_id}/toggle", response_model=Goal)
async def toggle_goal_step(goal_id: int, step_id: str, service: GoalService = Depends(get_goal_service)):
    return await service.toggle_step(goal_id, step_id, now=now_local())


# ============================================
# ACHIEVEMENTS
# ============================================

@app.get("/api/achievements", response_model=List[Achievement])
async def list_achievements(storage: Storage = Depends(get_storage)):
    return await storage.list_achievements()


@app.get("/api/achievements/unlocked", response_model=List[Achievement])
async def list_unlocked_achievements(storage: Storage = Depends(get_storage)):
    return await storage.list_achievements(unlocked_only=True)


@app.post("/api/achievements/{key}/unlock", response_model=Achievement)
async def unlock_achievement(key: str, storage: Storage = Depends(get_storage)):
    """Unlock by key. Unlocking an already unlocked achievement is a no-op."""
    async with storage.transaction():
        existing = await storage.get_achievement(key)
        if existing is None:
            raise NotFoundError(f"Achievement '{key}' not found")
        unlocked = await AchievementEvaluator(storage).unlock(key, now_local())
    return unlocked or existing


# ============================================
# SHOP
# ============================================

@app.get("/api/shop/items", response_model=List[ShopItem])
async def list_shop_items(service: ShopService = Depends(get_shop_service)):
    return service.list_items()


@app.get("/api/shop/inventory", response_model=List[InventoryItem])
async def list_inventory(service: ShopService = Depends(get_shop_service)):
    return await service.list_inventory()


@app.post("/api/shop/purchase", response_model=PurchaseResult)
async def purchase_item(request: PurchaseRequest, service: ShopService = Depends(get_shop_service)):
    return await service.purchase(request.item_id, request.quantity, now=now_local())


@app.post("/api/shop/use", response_model=UseItemResult)
async def use_item(request: UseItemRequest, service: ShopService = Depends(get_shop_service)):
    return await service.use_item(request.item_id, stat=request.stat, now=now_local())


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
