"""
Personal Leveling OS - Error Taxonomy
Raised by the core; main.py maps them onto HTTP responses.
"""

from typing import Optional


class LevelingError(Exception):
    """Base class for all errors raised by the progression core."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"message": self.message}


class ValidationError(LevelingError):
    """Malformed input: negative XP grant, out-of-range difficulty, bad stat name."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class NotFoundError(LevelingError):
    """Referenced habit, goal, step, achievement or item does not exist."""

    status_code = 404


class InsufficientResourceError(LevelingError):
    """A gold deduction would drive the balance negative."""

    status_code = 400

    def __init__(self, message: str, required: int, available: int):
        super().__init__(message)
        self.required = required
        self.available = available

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "required": self.required,
            "available": self.available,
        }


class ExternalDependencyError(LevelingError):
    """The AI collaborator is unavailable. Callers degrade instead of failing."""

    status_code = 503
