"""
Personal Leveling OS - Pydantic Models (v2 syntax)

Attributes are snake_case in Python; JSON payloads use camelCase aliases.
"""

from datetime import datetime, date
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from leveling_os.gameplay import xp_for_level, rank_for_level


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================
# ENUMS
# ============================================

class HabitFrequency(str, Enum):
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    WEEKENDS = "weekends"
    SPECIFIC = "specific"
    CUSTOM = "custom"


class StatType(str, Enum):
    STRENGTH = "strength"
    INTELLIGENCE = "intelligence"
    VITALITY = "vitality"
    AGILITY = "agility"
    SENSE = "sense"
    WILLPOWER = "willpower"


class AchievementTier(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"
    LEGENDARY = "legendary"


class PerformanceTier(str, Enum):
    CRITICAL = "critical"
    NEEDS_WORK = "needs-work"
    GOOD = "good"
    EXCELLENT = "excellent"


class ShopEffect(str, Enum):
    INSTANT_XP = "instant_xp"
    STAT_BOOST = "stat_boost"


# ============================================
# HABIT MODELS
# ============================================

class HabitBase(CamelModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    category: str = "personal"
    priority: bool = False
    color: str = "bg-blue-500"
    frequency: HabitFrequency = HabitFrequency.DAILY
    frequency_days: List[int] = Field(default_factory=list)
    custom_interval: Optional[int] = Field(default=None, ge=1)
    active: bool = True


class HabitCreate(HabitBase):
    pass


class HabitUpdate(CamelModel):
    """Difficulty and XP reward are frozen at creation, so they are not accepted here."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[bool] = None
    color: Optional[str] = None
    frequency: Optional[HabitFrequency] = None
    frequency_days: Optional[List[int]] = None
    custom_interval: Optional[int] = Field(default=None, ge=1)
    active: Optional[bool] = None


class Habit(HabitBase):
    id: int
    difficulty: int = Field(default=2, ge=1, le=3)
    xp_reward: int = 200
    difficulty_rationale: Optional[str] = None
    created_at: Optional[datetime] = None


class HabitWithStatus(Habit):
    completed_today: bool = False
    streak: int = 0
    due_today: bool = True


# ============================================
# GOAL MODELS
# ============================================

class GoalStep(CamelModel):
    id: str
    title: str
    completed: bool = False
    suggested_habit: Optional[str] = None


class GoalBase(CamelModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    category: str = "personal"
    deadline: Optional[date] = None
    priority: bool = False


class GoalCreate(GoalBase):
    steps: List[GoalStep] = Field(default_factory=list)


class GoalUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    deadline: Optional[date] = None
    priority: Optional[bool] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    completed: Optional[bool] = None
    steps: Optional[List[GoalStep]] = None


class Goal(GoalBase):
    id: int
    difficulty: int = Field(default=2, ge=1, le=3)
    xp_reward: int = 2000
    difficulty_rationale: Optional[str] = None
    progress: int = Field(default=0, ge=0, le=100)
    completed: bool = False
    steps: List[GoalStep] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class StepCreate(CamelModel):
    title: str = Field(min_length=1)


class StepResult(CamelModel):
    step: GoalStep
    goal: Goal


# ============================================
# COMPLETION MODELS
# ============================================

class Completion(CamelModel):
    habit_id: int
    day: date = Field(alias="date")
    completed: bool = True


class ToggleRequest(CamelModel):
    day: date = Field(alias="date")
    completed: bool


# ============================================
# PROGRESSION LEDGER
# ============================================

class ProgressionLedger(CamelModel):
    level: int = Field(default=1, ge=1)
    current_xp: int = Field(default=0, ge=0)
    total_xp: int = Field(default=0, ge=0)
    current_gold: int = Field(default=0, ge=0)
    lifetime_gold: int = Field(default=0, ge=0)
    strength: int = Field(default=0, ge=0)
    intelligence: int = Field(default=0, ge=0)
    vitality: int = Field(default=0, ge=0)
    agility: int = Field(default=0, ge=0)
    sense: int = Field(default=0, ge=0)
    willpower: int = Field(default=0, ge=0)
    last_level_up: Optional[datetime] = None

    @computed_field
    @property
    def xp_for_next_level(self) -> int:
        return xp_for_level(self.level)

    @computed_field
    @property
    def rank(self) -> str:
        return rank_for_level(self.level)


# ============================================
# ACHIEVEMENT MODELS
# ============================================

class StatBonus(CamelModel):
    stat: StatType
    amount: int = Field(ge=0)


class Achievement(CamelModel):
    key: str
    title: str
    description: str
    icon: str = "Trophy"
    category: str = "general"
    tier: AchievementTier = AchievementTier.BRONZE
    xp_reward: int = 50
    gold_reward: int = 0
    stat_bonus: Optional[StatBonus] = None
    special_power: Optional[str] = None
    unlocked_at: Optional[datetime] = None


class ToggleResult(CamelModel):
    xp_gained: int = 0
    gold_gained: int = 0
    new_level: int = 1
    leveled_up: bool = False
    unlocked_achievement: Optional[Achievement] = None
    unlocked_achievements: List[Achievement] = Field(default_factory=list)


# ============================================
# SHOP MODELS
# ============================================

class ShopItem(CamelModel):
    id: str
    name: str
    description: str
    icon: str = "Package"
    price: int = Field(ge=0)
    effect: ShopEffect
    value: int = Field(ge=0)
    stat: Optional[StatType] = None
    choosable: bool = False


class InventoryItem(CamelModel):
    item_id: str
    quantity: int = Field(default=1, ge=0)
    purchased_at: Optional[datetime] = None


class PurchaseRequest(CamelModel):
    item_id: str
    quantity: int = Field(default=1, ge=1, le=99)


class PurchaseResult(CamelModel):
    success: bool = True
    item: InventoryItem
    gold_spent: int
    remaining_gold: int


class UseItemRequest(CamelModel):
    item_id: str
    stat: Optional[StatType] = None


class UseItemResult(CamelModel):
    success: bool = True
    item_id: str
    remaining_quantity: int
    leveled_up: bool = False
    stats: ProgressionLedger
    unlocked_achievements: List[Achievement] = Field(default_factory=list)


# ============================================
# ANALYTICS MODELS
# ============================================

class SeriesPoint(CamelModel):
    name: str
    percentage: int
    completions: int
    total: int


class HabitPerformance(CamelModel):
    id: int
    name: str
    completion_rate: int
    tier: PerformanceTier
    tier_label: str
    suggestion: Optional[str] = None


class HabitStatsByTimeframe(CamelModel):
    daily: List[HabitPerformance]
    weekly: List[HabitPerformance]
    monthly: List[HabitPerformance]
    yearly: List[HabitPerformance]


class StreakData(CamelModel):
    current_streak: int = 0
    longest_streak: int = 0
    total_completions: int = 0


class CategoryStat(CamelModel):
    category: str
    completion_rate: int
    count: int


class AnalyticsReport(CamelModel):
    daily_data: List[SeriesPoint]
    weekly_data: List[SeriesPoint]
    monthly_data: List[SeriesPoint]
    yearly_data: List[SeriesPoint]
    overall_growth: str
    weekly_progress: str
    overall_completion: str
    habit_stats: List[HabitPerformance]
    habit_stats_by_timeframe: HabitStatsByTimeframe
    streak_data: StreakData
    category_breakdown: List[CategoryStat]


# ============================================
# API RESPONSE MODELS
# ============================================

class HealthStatus(CamelModel):
    status: str = "ok"
    version: str = "1.0.0"
    storage: str = "memory"
    ai: str = "disabled"
    timestamp: datetime
