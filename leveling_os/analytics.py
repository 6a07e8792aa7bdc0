"""
Personal Leveling OS - Streak & Analytics Aggregator

Everything here is recomputed from the full completion log on every call.
Percentages are rounded half-up to whole numbers (0.5 -> 1), except
overall_growth / overall_completion which keep one decimal place. With no
active habits every percentage is 0.
"""

import calendar
import math
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from leveling_os.gameplay import DAY_NAMES, MONTH_NAMES, js_weekday
from leveling_os.models import (
    AnalyticsReport,
    CategoryStat,
    Completion,
    Habit,
    HabitPerformance,
    HabitStatsByTimeframe,
    PerformanceTier,
    SeriesPoint,
    StreakData,
)

# Rolling windows (in days) for per-habit tiering
TIMEFRAME_DAYS = {
    "daily": 1,
    "weekly": 7,
    "monthly": 30,
    "yearly": 365,
}
STREAK_WINDOW_DAYS = 365
STREAK_THRESHOLD = 0.5
CATEGORY_WINDOW_DAYS = 30

TIER_INFO = {
    PerformanceTier.CRITICAL: (
        "Critical",
        "This habit needs immediate attention. Try setting reminders or linking it to an existing routine.",
    ),
    PerformanceTier.NEEDS_WORK: (
        "Needs Work",
        "Below 50% completion is a problem. Consider simplifying this habit or breaking it into smaller steps.",
    ),
    PerformanceTier.GOOD: (
        "Good Progress",
        "You're on track! Focus on consistency to reach the next level.",
    ),
    PerformanceTier.EXCELLENT: ("Excellent", None),
}

Moment = Union[date, datetime]


# ============================================
# HELPERS
# ============================================

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(part: float, whole: float) -> int:
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def _to_day(now: Moment) -> date:
    return now.date() if isinstance(now, datetime) else now


def tier_for_rate(rate: int) -> PerformanceTier:
    if rate < 25:
        return PerformanceTier.CRITICAL
    if rate < 50:
        return PerformanceTier.NEEDS_WORK
    if rate < 75:
        return PerformanceTier.GOOD
    return PerformanceTier.EXCELLENT


class CompletionIndex:
    """Completed records grouped by day and by habit. Built once per report."""

    def __init__(self, completions: Iterable[Completion]):
        self.habits_by_day: Dict[date, Set[int]] = defaultdict(set)
        self.days_by_habit: Dict[int, Set[date]] = defaultdict(set)
        self.total_completions = 0

        for completion in completions:
            if not completion.completed:
                continue
            self.total_completions += 1
            self.habits_by_day[completion.day].add(completion.habit_id)
            self.days_by_habit[completion.habit_id].add(completion.day)

    def done_on(self, day: date) -> int:
        """Distinct habits completed on `day`."""
        return len(self.habits_by_day.get(day, ()))

    def days_for(self, habit_id: int, start: date, end: date) -> int:
        """Distinct days in [start, end] on which the habit was completed."""
        return sum(1 for d in self.days_by_habit.get(habit_id, ()) if start <= d <= end)

    def completions_in_year(self, year: int) -> int:
        return sum(len(ids) for d, ids in self.habits_by_day.items() if d.year == year)


# ============================================
# CHART SERIES
# ============================================

def daily_series(index: CompletionIndex, active_count: int, today: date) -> List[SeriesPoint]:
    """Last 7 calendar days, oldest first."""
    points = []
    for i in range(7):
        day = today - timedelta(days=6 - i)
        done = index.done_on(day)
        points.append(SeriesPoint(
            name=DAY_NAMES[js_weekday(day)],
            percentage=percentage(done, active_count),
            completions=done,
            total=active_count,
        ))
    return points


def weekly_series(index: CompletionIndex, active_count: int, today: date) -> List[SeriesPoint]:
    """Last 4 weeks. Each bucket is 7 days starting on the Sunday-based week start."""
    offset = js_weekday(today)
    points = []
    for i in range(4):
        week_start = today - timedelta(days=(3 - i) * 7 + offset)
        done = sum(index.done_on(week_start + timedelta(days=d)) for d in range(7))
        total = active_count * 7
        points.append(SeriesPoint(
            name=f"Week {i + 1}",
            percentage=percentage(done, total),
            completions=done,
            total=total,
        ))
    return points


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    zero_based = year * 12 + (month - 1) + delta
    return zero_based // 12, zero_based % 12 + 1


def monthly_series(index: CompletionIndex, active_count: int, today: date) -> List[SeriesPoint]:
    """Last 12 calendar months; the current month only counts days up to today."""
    points = []
    for i in range(12):
        year, month = _shift_month(today.year, today.month, -(11 - i))
        days_in_month = calendar.monthrange(year, month)[1]
        done = 0
        total = 0
        for d in range(1, days_in_month + 1):
            day = date(year, month, d)
            if day > today:
                break
            done += index.done_on(day)
            total += active_count
        points.append(SeriesPoint(
            name=MONTH_NAMES[month - 1],
            percentage=percentage(done, total),
            completions=done,
            total=total,
        ))
    return points


def _elapsed_days_this_year(now: Moment) -> int:
    if isinstance(now, datetime):
        start = datetime(now.year, 1, 1, tzinfo=now.tzinfo)
        return math.ceil((now - start).total_seconds() / 86400)
    return (now - date(now.year, 1, 1)).days + 1


def yearly_series(index: CompletionIndex, active_count: int, now: Moment) -> List[SeriesPoint]:
    """Last 5 calendar years. The current year's denominator only covers elapsed days."""
    today = _to_day(now)
    points = []
    for i in range(5):
        year = today.year - (4 - i)
        done = index.completions_in_year(year)
        days = _elapsed_days_this_year(now) if year == today.year else 365
        total = days * active_count
        points.append(SeriesPoint(
            name=str(year),
            percentage=percentage(done, total),
            completions=done,
            total=total,
        ))
    return points


# ============================================
# PER-HABIT TIERS
# ============================================

def habit_stats_for_period(
    habits: List[Habit],
    index: CompletionIndex,
    today: date,
    days: int
) -> List[HabitPerformance]:
    start = today - timedelta(days=days - 1)
    stats = []
    for habit in habits:
        unique_days = index.days_for(habit.id, start, today)
        rate = min(100, percentage(unique_days, days))
        tier = tier_for_rate(rate)
        label, suggestion = TIER_INFO[tier]
        stats.append(HabitPerformance(
            id=habit.id,
            name=habit.name,
            completion_rate=rate,
            tier=tier,
            tier_label=label,
            suggestion=suggestion,
        ))
    return stats


# ============================================
# STREAKS
# ============================================

def streak_data(index: CompletionIndex, active_count: int, today: date) -> StreakData:
    """
    A day counts when at least half of the active habits were completed.
    The current streak starts today and stops at the first miss; a miss today
    means 0. The longest streak is the best run anywhere in the last 365 days.
    """
    current = 0
    longest = 0
    run = 0
    current_open = True

    for i in range(STREAK_WINDOW_DAYS):
        day = today - timedelta(days=i)
        ratio = index.done_on(day) / active_count if active_count > 0 else 0
        if ratio >= STREAK_THRESHOLD:
            run += 1
            if current_open:
                current = run
            longest = max(longest, run)
        else:
            current_open = False
            run = 0

    return StreakData(
        current_streak=current,
        longest_streak=longest,
        total_completions=index.total_completions,
    )


def habit_streak(days_completed: Set[date], today: date) -> int:
    """Consecutive completed days for one habit. An unfinished today does not break it."""
    streak = 0
    day = today
    if day not in days_completed:
        day -= timedelta(days=1)
    while day in days_completed:
        streak += 1
        day -= timedelta(days=1)
    return streak


# ============================================
# CATEGORIES
# ============================================

def category_breakdown(habits: List[Habit], index: CompletionIndex, today: date) -> List[CategoryStat]:
    start = today - timedelta(days=CATEGORY_WINDOW_DAYS)
    categories: Dict[str, List[Habit]] = {}
    for habit in habits:
        categories.setdefault(habit.category, []).append(habit)

    breakdown = []
    for category, members in categories.items():
        pairs = sum(index.days_for(h.id, start, today) for h in members)
        expected = CATEGORY_WINDOW_DAYS * len(members)
        breakdown.append(CategoryStat(
            category=category,
            completion_rate=min(100, percentage(pairs, expected)),
            count=len(members),
        ))
    return breakdown


# ============================================
# REPORT
# ============================================

def active_habits_of(habits: Iterable[Habit]) -> List[Habit]:
    return [h for h in habits if h.active is not False]


def compute_streaks(habits: Iterable[Habit], completions: Iterable[Completion], now: Moment) -> StreakData:
    active = active_habits_of(habits)
    return streak_data(CompletionIndex(completions), len(active), _to_day(now))


def compute_analytics(
    habits: Iterable[Habit],
    completions: Iterable[Completion],
    now: Optional[Moment] = None
) -> AnalyticsReport:
    """Build the full analytics snapshot from the raw completion log."""
    now = now or datetime.now()
    today = _to_day(now)
    active = active_habits_of(habits)
    active_count = len(active)
    index = CompletionIndex(completions)

    daily = daily_series(index, active_count, today)
    weekly = weekly_series(index, active_count, today)

    by_timeframe = HabitStatsByTimeframe(**{
        name: habit_stats_for_period(active, index, today, days)
        for name, days in TIMEFRAME_DAYS.items()
    })

    this_week = weekly[3].percentage
    last_week = weekly[2].percentage
    overall_completion = sum(p.percentage for p in daily) / len(daily)

    return AnalyticsReport(
        daily_data=daily,
        weekly_data=weekly,
        monthly_data=monthly_series(index, active_count, today),
        yearly_data=yearly_series(index, active_count, now),
        overall_growth=f"{this_week - last_week:.1f}",
        weekly_progress=str(this_week),
        overall_completion=f"{overall_completion:.1f}",
        habit_stats=by_timeframe.monthly,
        habit_stats_by_timeframe=by_timeframe,
        streak_data=streak_data(index, active_count, today),
        category_breakdown=category_breakdown(active, index, today),
    )
