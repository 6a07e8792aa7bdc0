"""
Personal Leveling OS - OpenAI-Compatible AI Client
Rates habit/goal difficulty and suggests habits for goal steps. Any failure is
reported as ExternalDependencyError and callers fall back to defaults.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from functools import wraps
from typing import Callable, List, Optional

from openai import OpenAI, APIError, APIConnectionError, RateLimitError

from leveling_os.config import get_ai_config, AIConfig
from leveling_os.errors import ExternalDependencyError
from leveling_os.gameplay import DEFAULT_DIFFICULTY, clamp_difficulty

logger = logging.getLogger(__name__)


# ============================================
# RETRY DECORATOR
# ============================================

def retry_on_error(max_retries: int = 3, delay: float = 1.0):
    """
    Decorator to retry API calls on transient errors.

    Args:
        max_retries: Maximum number of attempts
        delay: Initial delay between retries (exponential backoff)
    """
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_error = None
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except RateLimitError as e:
                    last_error = e
                    wait_time = delay * (2 ** attempt)
                    logger.warning(f"Rate limited, waiting {wait_time}s before retry {attempt + 1}/{max_retries}")
                    time.sleep(wait_time)
                except APIConnectionError as e:
                    last_error = e
                    wait_time = delay * (2 ** attempt)
                    logger.warning(f"Connection error, waiting {wait_time}s before retry {attempt + 1}/{max_retries}")
                    time.sleep(wait_time)
            raise last_error
        return wrapper
    return decorator


@dataclass
class DifficultyAssessment:
    difficulty: int = DEFAULT_DIFFICULTY
    rationale: str = ""


HABIT_PROMPT = """You are assessing the difficulty of a daily habit for an average person.

Habit: "{title}"
Category: {category}
{description}
Rate the difficulty on a scale of 1-3:
- 1 (Easy): Simple tasks most people can do without much effort (e.g., drink 8 glasses of water, take vitamins)
- 2 (Medium): Requires some discipline or time commitment (e.g., exercise 30 min, read 1 hour)
- 3 (Hard): Requires significant effort, skill, or time (e.g., wake up at 5am, cold showers, intense workout)

Consider: time required, physical/mental effort, consistency challenge, skill level needed.

Return JSON format:
{{"difficulty": 1|2|3, "rationale": "Brief explanation (1-2 sentences) of why this difficulty was chosen"}}"""

GOAL_PROMPT = """You are assessing the difficulty of achieving a goal for an average person.

Goal: "{title}"
{description}{deadline}
Rate the difficulty on a scale of 1-3:
- 1 (Easy): Simple goals achievable with minimal effort (e.g., organize desk, create a schedule)
- 2 (Medium): Requires sustained effort over weeks/months (e.g., learn a new skill, save $1000)
- 3 (Hard): Requires significant long-term commitment (e.g., start a business, learn a language fluently)

Consider: time required, complexity, resources needed, skill development required.

Return JSON format:
{{"difficulty": 1|2|3, "rationale": "Brief explanation (1-2 sentences) of why this difficulty was chosen"}}"""

STEP_PROMPT = """You are a habit coach. A user is working on the goal: "{goal}"
They just added this step: "{step}"

Current user level: {level}
Existing habits: {habits}

Suggest ONE short, specific daily habit (max 5 words) that would help accomplish this step.
Return only the habit name, nothing else. Example: "Practice for 15 minutes daily\""""


# ============================================
# AI CLIENT
# ============================================

class AIClient:
    """
    OpenAI-compatible AI client.

    Usage:
        client = AIClient()  # Uses config from .env
        rating = client.assess_habit_difficulty("Cold shower", "health")
    """

    def __init__(self, config: Optional[AIConfig] = None):
        cfg = config or get_ai_config()
        self.config = cfg
        self.model = cfg.model_name
        self._client = OpenAI(
            base_url=cfg.api_base_url,
            api_key=cfg.api_key or "dummy-key"  # Some local LLMs don't require keys
        )
        logger.info(f"AIClient initialized: base_url={cfg.api_base_url}, model={self.model}")

    def _complete(self, prompt: str, json_mode: bool = False, max_tokens: Optional[int] = None) -> str:
        if not self.config.enabled:
            raise ExternalDependencyError("AI suggestions are disabled")

        @retry_on_error(max_retries=self.config.max_retries, delay=1.0)
        def call():
            kwargs = {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": self.config.temperature,
                "max_tokens": max_tokens or self.config.max_tokens,
            }
            if json_mode:
                kwargs["response_format"] = {"type": "json_object"}
            return self._client.chat.completions.create(**kwargs)

        try:
            response = call()
        except (APIError, APIConnectionError, RateLimitError) as e:
            raise ExternalDependencyError(f"AI request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ExternalDependencyError("AI returned an empty response")
        return content.strip()

    def _assess(self, prompt: str) -> DifficultyAssessment:
        content = self._complete(prompt, json_mode=True)
        try:
            result = json.loads(content)
        except json.JSONDecodeError as e:
            raise ExternalDependencyError("AI returned malformed JSON") from e
        if not isinstance(result, dict):
            raise ExternalDependencyError("AI returned malformed JSON")
        return DifficultyAssessment(
            difficulty=clamp_difficulty(result.get("difficulty", DEFAULT_DIFFICULTY)),
            rationale=str(result.get("rationale") or ""),
        )

    def assess_habit_difficulty(self, name: str, category: str, description: Optional[str] = None) -> DifficultyAssessment:
        return self._assess(HABIT_PROMPT.format(
            title=name,
            category=category,
            description=f"Description: {description}\n" if description else "",
        ))

    def assess_goal_difficulty(self, title: str, description: Optional[str] = None, deadline: Optional[str] = None) -> DifficultyAssessment:
        return self._assess(GOAL_PROMPT.format(
            title=title,
            description=f"Description: {description}\n" if description else "",
            deadline=f"Deadline: {deadline}\n" if deadline else "",
        ))

    def suggest_habit_for_step(self, goal_title: str, step_title: str, level: int, habits: List[str]) -> str:
        content = self._complete(
            STEP_PROMPT.format(goal=goal_title, step=step_title, level=level, habits=", ".join(habits) or "None"),
            max_tokens=50,
        )
        return content.strip().strip('"')


# ============================================
# FALLBACK WRAPPERS
# ============================================

async def rate_habit(ai: Optional[AIClient], name: str, category: str, description: Optional[str] = None) -> DifficultyAssessment:
    """Difficulty for a new habit; medium when the AI is missing or fails."""
    if ai is None:
        return DifficultyAssessment()
    try:
        return await asyncio.to_thread(ai.assess_habit_difficulty, name, category, description)
    except ExternalDependencyError as e:
        logger.warning(f"AI difficulty assessment failed, defaulting to medium: {e.message}")
        return DifficultyAssessment()


async def rate_goal(ai: Optional[AIClient], title: str, description: Optional[str] = None, deadline: Optional[str] = None) -> DifficultyAssessment:
    if ai is None:
        return DifficultyAssessment()
    try:
        return await asyncio.to_thread(ai.assess_goal_difficulty, title, description, deadline)
    except ExternalDependencyError as e:
        logger.warning(f"AI goal difficulty assessment failed, defaulting to medium: {e.message}")
        return DifficultyAssessment()


async def suggest_step_habit(ai: Optional[AIClient], goal_title: str, step_title: str, level: int, habits: List[str]) -> Optional[str]:
    if ai is None:
        return None
    try:
        return await asyncio.to_thread(ai.suggest_habit_for_step, goal_title, step_title, level, habits)
    except ExternalDependencyError as e:
        logger.warning(f"AI habit suggestion failed: {e.message}")
        return None
