"""Daily time blocks derived from the scheduling criteria."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Mapping, Sequence

from .errors import (
    InvalidDuration,
    InvalidFieldValue,
    InvalidTimeFormat,
    MissingRequiredCriteriaField,
    NoSchedulingDays,
    NoValidTimeBlocks,
    OverlappingTimeBlocks,
    ValidationReport,
)

logger = logging.getLogger(__name__)

WEEKDAY_NAMES: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)
SCHEDULING_PREFERENCES: tuple[str, ...] = ("both", "am_only", "pm_only")
SHORT_BLOCK_HOURS = 1.0

# (block id, start field, end field, preferences enabling the block)
BLOCK_FIELDS: tuple[tuple[int, str, str, frozenset[str]], ...] = (
    (1, "start_time_am", "end_time_am", frozenset({"both", "am_only"})),
    (2, "start_time_pm", "end_time_pm", frozenset({"both", "pm_only"})),
)


def _time_to_minutes(value: Any, *, field: str | None = None) -> int:
    if not isinstance(value, str) or not value.strip():
        raise InvalidTimeFormat(f"Invalid time string: {value!r}", field=field, value=value)
    pieces = [piece.strip() for piece in value.strip().split(":")]
    # str.isdigit() also accepts superscripts and other non-ASCII digits.
    if len(pieces) not in (2, 3) or not all(
        piece.isascii() and piece.isdigit() for piece in pieces
    ):
        raise InvalidTimeFormat(
            f"Invalid time format: {value}. Expected HH:MM format", field=field, value=value
        )
    hours, minutes = int(pieces[0]), int(pieces[1])
    if not 0 <= hours <= 23 or not 0 <= minutes <= 59:
        raise InvalidTimeFormat(
            f"Invalid time format: {value}. Expected HH:MM format", field=field, value=value
        )
    return hours * 60 + minutes


def time_to_hours(value: Any) -> float:
    """Convert ``"HH:MM"`` to decimal hours (``"13:30"`` -> ``13.5``)."""
    return _time_to_minutes(value) / 60


def _window_minutes(
    start: Any,
    end: Any,
    *,
    start_field: str | None = None,
    end_field: str | None = None,
) -> tuple[int, int]:
    start_minutes = _time_to_minutes(start, field=start_field)
    end_minutes = _time_to_minutes(end, field=end_field)
    if end_minutes <= start_minutes:
        raise InvalidTimeFormat(
            f"End time ({end}) must be after start time ({start})",
            field=end_field,
            value=end,
        )
    return start_minutes, end_minutes


def block_duration(start: str, end: str) -> float:
    start_minutes, end_minutes = _window_minutes(start, end)
    return (end_minutes - start_minutes) / 60


def _as_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    raise InvalidFieldValue(f"Expected a date, got {value!r}", field="start_date", value=value)


@dataclass(frozen=True)
class TimeBlock:
    """A named daily window sessions can be placed in."""

    id: int
    name: str
    start: str
    end: str
    start_hours: float
    end_hours: float
    duration: float

    @classmethod
    def from_times(
        cls,
        block_id: int,
        start: Any,
        end: Any,
        *,
        start_field: str | None = None,
        end_field: str | None = None,
    ) -> TimeBlock:
        start_minutes, end_minutes = _window_minutes(
            start, end, start_field=start_field, end_field=end_field
        )
        return cls(
            id=block_id,
            name=f"Block {block_id}",
            start="%02d:%02d" % divmod(start_minutes, 60),
            end="%02d:%02d" % divmod(end_minutes, 60),
            start_hours=start_minutes / 60,
            end_hours=end_minutes / 60,
            duration=(end_minutes - start_minutes) / 60,
        )

    @property
    def start_time(self) -> time:
        hours, minutes = divmod(round(self.start_hours * 60), 60)
        return time(hours, minutes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "start": self.start,
            "end": self.end,
            "start_hours": self.start_hours,
            "end_hours": self.end_hours,
            "duration": self.duration,
        }


def parse_time_blocks(
    preference: str, criteria: Mapping[str, Any]
) -> tuple[tuple[TimeBlock, ...], tuple[str, ...]]:
    """Return the usable blocks for ``preference`` and notices for skipped ones."""
    blocks: list[TimeBlock] = []
    notices: list[str] = []
    for block_id, start_field, end_field, preferences in BLOCK_FIELDS:
        if preference not in preferences:
            continue
        start = criteria.get(start_field)
        end = criteria.get(end_field)
        if not start or not end:
            continue
        try:
            blocks.append(
                TimeBlock.from_times(
                    block_id, start, end, start_field=start_field, end_field=end_field
                )
            )
        except InvalidTimeFormat as exc:
            notice = f"Invalid Block {block_id} time configuration: {exc}"
            logger.warning(notice)
            notices.append(notice)
    return tuple(blocks), tuple(notices)


def normalise_scheduling_days(raw: Any) -> tuple[str, ...]:
    if not raw:
        return ()
    if isinstance(raw, str):
        raw = raw.split(",")
    return tuple(str(day).strip() for day in raw if str(day).strip())


@dataclass(frozen=True)
class TimeBlockConfiguration:
    """Ordered time blocks plus the weekdays sessions may be placed on.

    Built once per scheduling run with :meth:`from_criteria`. Build a new
    instance rather than altering one when the criteria change.
    """

    scheduling_preference: str
    blocks: tuple[TimeBlock, ...]
    scheduling_days: tuple[str, ...]
    notices: tuple[str, ...] = ()

    @classmethod
    def from_criteria(cls, criteria: Mapping[str, Any]) -> TimeBlockConfiguration:
        preference = criteria.get("scheduling_preference")
        if not preference:
            raise MissingRequiredCriteriaField(
                "Missing required criteria field: scheduling_preference",
                field="scheduling_preference",
            )
        if preference not in SCHEDULING_PREFERENCES:
            raise InvalidFieldValue(
                f"Unknown scheduling preference {preference!r}; expected one of "
                + ", ".join(SCHEDULING_PREFERENCES),
                field="scheduling_preference",
                value=preference,
            )
        blocks, notices = parse_time_blocks(preference, criteria)
        if not blocks:
            raise NoValidTimeBlocks(
                "No valid time blocks found in criteria. Please check time configuration.",
                field="scheduling_preference",
                value=preference,
            )
        configuration = cls(
            scheduling_preference=preference,
            blocks=blocks,
            scheduling_days=normalise_scheduling_days(criteria.get("scheduling_days")),
            notices=notices,
        )
        logger.debug(
            "Time blocks configured: preference=%s blocks=%s max_daily_hours=%s days=%s",
            configuration.scheduling_preference,
            [f"{block.name} {block.start}-{block.end}" for block in blocks],
            configuration.max_daily_hours,
            list(configuration.scheduling_days),
        )
        return configuration

    @property
    def max_daily_hours(self) -> float:
        return sum(block.duration for block in self.blocks)

    def block_by_id(self, block_id: int) -> TimeBlock:
        for block in self.blocks:
            if block.id == block_id:
                return block
        raise NoValidTimeBlocks(
            f"Time block {block_id} not found", field="block_id", value=block_id
        )

    def find_single_block_fit(self, duration: float) -> TimeBlock | None:
        for block in self.blocks:
            if block.duration >= duration:
                return block
        return None

    def can_fit_in_one_day(self, duration: float) -> bool:
        return duration <= self.max_daily_hours

    def days_needed(self, duration: float) -> int:
        if self.max_daily_hours <= 0:
            raise InvalidDuration(
                "No schedulable hours per day", field="max_daily_hours", value=self.max_daily_hours
            )
        if duration <= 0:
            raise InvalidDuration(
                f"Invalid course duration: {duration} hours", field="duration", value=duration
            )
        return math.ceil(duration / self.max_daily_hours)

    def next_valid_date(
        self, from_date: date | datetime, day_names: Sequence[str] = WEEKDAY_NAMES
    ) -> datetime:
        """First day on or after ``from_date`` whose weekday name is allowed.

        ``day_names`` is indexed by :meth:`datetime.weekday` (Monday first).
        The time of day is left untouched.
        """
        current = _as_datetime(from_date)
        allowed = set(self.scheduling_days)
        for _ in range(len(WEEKDAY_NAMES)):
            if day_names[current.weekday()] in allowed:
                return current
            current += timedelta(days=1)
        raise NoSchedulingDays(
            "No configured scheduling day matches a calendar weekday",
            field="scheduling_days",
            value=list(self.scheduling_days),
        )

    def block_start(self, day: date | datetime, block_id: int = 1) -> datetime:
        start = self.block_by_id(block_id).start_time
        return _as_datetime(day).replace(
            hour=start.hour, minute=start.minute, second=0, microsecond=0
        )

    def block_containing_time(self, hours: float) -> TimeBlock | None:
        for block in self.blocks:
            if block.start_hours <= hours < block.end_hours:
                return block
        return None

    def validate(self) -> ValidationReport:
        report = ValidationReport(warnings=list(self.notices))
        if not self.blocks:
            report.errors.append(
                NoValidTimeBlocks("No time blocks configured", field="scheduling_preference")
            )
        if not self.scheduling_days:
            report.errors.append(
                NoSchedulingDays("No scheduling days configured", field="scheduling_days")
            )
        # Only neighbours in definition order are compared.
        for current, following in zip(self.blocks, self.blocks[1:]):
            if current.end_hours > following.start_hours:
                report.errors.append(
                    OverlappingTimeBlocks(
                        f"Time blocks overlap: {current.name} ends at {current.end}, "
                        f"{following.name} starts at {following.start}",
                        field="blocks",
                        value=(current.id, following.id),
                    )
                )
        for block in self.blocks:
            if block.duration < SHORT_BLOCK_HOURS:
                report.warnings.append(
                    f"Time block {block.name} is very short ({block.duration:g} hours)"
                )
        return report

    def to_dict(self) -> dict[str, Any]:
        return {
            "scheduling_preference": self.scheduling_preference,
            "blocks": [block.to_dict() for block in self.blocks],
            "scheduling_days": list(self.scheduling_days),
            "max_daily_hours": self.max_daily_hours,
        }


__all__ = [
    "WEEKDAY_NAMES",
    "SCHEDULING_PREFERENCES",
    "TimeBlock",
    "TimeBlockConfiguration",
    "block_duration",
    "normalise_scheduling_days",
    "parse_time_blocks",
    "time_to_hours",
]
