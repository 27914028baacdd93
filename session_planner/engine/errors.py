"""Errors raised by the scheduling engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class SchedulingError(ValueError):
    """Base class for configuration errors detected before or during splitting."""

    def __init__(self, message: str, *, field: str | None = None, value: Any = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": str(self),
            "field": self.field,
        }


class InvalidTimeFormat(SchedulingError):
    """A time value is not a valid ``HH:MM`` string or its window is empty."""


class NoValidTimeBlocks(SchedulingError):
    """No usable time block remains for the active scheduling preference."""


class OverlappingTimeBlocks(SchedulingError):
    """Two adjacent time blocks overlap."""


class NoSchedulingDays(SchedulingError):
    """No permitted weekday is configured, or none can ever match."""


class InvalidDuration(SchedulingError):
    """A course duration is missing, non numeric or not strictly positive."""


class MissingRequiredCriteriaField(SchedulingError):
    """A required criteria field is absent."""


class InvalidFieldValue(SchedulingError):
    """A criteria or course field is present but unusable."""


@dataclass
class ValidationReport:
    """Errors and advisory warnings gathered by a validation pass."""

    errors: list[SchedulingError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def messages(self) -> list[str]:
        return [str(error) for error in self.errors]

    def raise_for_errors(self) -> None:
        if self.errors:
            raise self.errors[0]

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": [error.to_dict() for error in self.errors],
            "warnings": list(self.warnings),
        }


__all__ = [
    "SchedulingError",
    "InvalidTimeFormat",
    "NoValidTimeBlocks",
    "OverlappingTimeBlocks",
    "NoSchedulingDays",
    "InvalidDuration",
    "MissingRequiredCriteriaField",
    "InvalidFieldValue",
    "ValidationReport",
]
