"""Split a course duration into dated session parts."""
from __future__ import annotations

import enum
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Sequence

from .errors import InvalidDuration
from .time_blocks import WEEKDAY_NAMES, TimeBlock, TimeBlockConfiguration

logger = logging.getLogger(__name__)

MAX_COURSE_HOURS = 24.0
MAX_COURSE_DAYS = 3
SHORT_PART_HOURS = 0.5
# Residues below this are float noise left by repeated subtraction.
EPSILON = 1e-9


class StrategyKind(str, enum.Enum):
    SINGLE_BLOCK = "SINGLE_BLOCK"
    SAME_DAY_SPLIT = "SAME_DAY_SPLIT"
    MULTI_DAY_SPLIT = "MULTI_DAY_SPLIT"


@dataclass(frozen=True)
class SplittingStrategy:
    kind: StrategyKind
    total_parts: int
    total_days: int
    block: TimeBlock | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "total_parts": self.total_parts,
            "total_days": self.total_days,
            "block_id": self.block.id if self.block else None,
        }


@dataclass(frozen=True)
class SessionPart:
    part: int
    total_parts: int
    day: int
    total_days: int
    start: datetime
    end: datetime
    duration: float
    block_id: int
    block_name: str
    title: str
    session_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "part": self.part,
            "total_parts": self.total_parts,
            "day": self.day,
            "total_days": self.total_days,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration": self.duration,
            "block_id": self.block_id,
            "block_name": self.block_name,
            "title": self.title,
            "session_id": self.session_id,
        }


@dataclass
class PartsValidation:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    total_duration: float = 0.0
    total_parts: int = 0
    total_days: int = 0

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "total_duration": self.total_duration,
            "total_parts": self.total_parts,
            "total_days": self.total_days,
        }


@dataclass(frozen=True)
class _Allocation:
    day: int
    day_date: datetime
    block: TimeBlock
    duration: float


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip()).lower()


def part_title(course_name: str, session_number: int, part: int, total_parts: int) -> str:
    title = f"{course_name} - Group {session_number}"
    if total_parts > 1:
        title += f" Part {part}"
    return title


def part_session_id(course_name: str, session_number: int, part: int, start: datetime) -> str:
    return f"{slugify(course_name)}-{session_number}-part{part}-{start:%Y%m%dT%H%M}"


def _coerce_duration(duration: Any) -> float:
    try:
        value = float(duration)
    except (TypeError, ValueError):
        raise InvalidDuration(
            f"Invalid course duration: {duration!r} hours", field="duration", value=duration
        ) from None
    if math.isnan(value) or value <= 0:
        raise InvalidDuration(
            f"Invalid course duration: {duration} hours", field="duration", value=duration
        )
    return value


class SessionSplitter:
    """Turn a course duration into session parts laid over the time blocks."""

    def __init__(self, configuration: TimeBlockConfiguration) -> None:
        if not isinstance(configuration, TimeBlockConfiguration):
            raise TypeError("SessionSplitter requires a TimeBlockConfiguration instance")
        self.configuration = configuration
        self.blocks = configuration.blocks
        self.max_daily_hours = configuration.max_daily_hours

    # Strategy -------------------------------------------------------
    def determine_strategy(self, duration: float) -> SplittingStrategy:
        block = self.configuration.find_single_block_fit(duration)
        if block is not None:
            return SplittingStrategy(StrategyKind.SINGLE_BLOCK, 1, 1, block)
        if self.configuration.can_fit_in_one_day(duration):
            return SplittingStrategy(
                StrategyKind.SAME_DAY_SPLIT, self.estimate_same_day_parts(duration), 1
            )
        return SplittingStrategy(
            StrategyKind.MULTI_DAY_SPLIT,
            self.estimate_multi_day_parts(duration),
            self.configuration.days_needed(duration),
        )

    def estimate_same_day_parts(self, duration: float) -> int:
        remaining = duration
        parts = 0
        for block in self.blocks:
            if remaining <= EPSILON:
                break
            parts += 1
            remaining -= min(remaining, block.duration)
        return parts

    def estimate_multi_day_parts(self, duration: float) -> int:
        full_days = math.floor(duration / self.max_daily_hours)
        remainder = duration - full_days * self.max_daily_hours
        total = full_days * len(self.blocks)
        if remainder > EPSILON:
            total += self.estimate_same_day_parts(remainder)
        return total

    # Generation -----------------------------------------------------
    def normalise_duration(self, duration: Any) -> float:
        """Validate ``duration`` and clamp it to :data:`MAX_COURSE_HOURS`."""
        hours = _coerce_duration(duration)
        if hours > MAX_COURSE_HOURS:
            logger.warning(
                "Course duration %s hours exceeds maximum %s hours, truncating",
                hours,
                MAX_COURSE_HOURS,
            )
            hours = MAX_COURSE_HOURS
        return hours

    def split(
        self,
        duration: Any,
        *,
        course_name: str,
        start_date: date | datetime,
        session_number: int = 1,
        day_names: Sequence[str] = WEEKDAY_NAMES,
    ) -> list[SessionPart]:
        hours = self.normalise_duration(duration)
        strategy = self.determine_strategy(hours)
        logger.debug(
            "Splitting %s-hour course %r with strategy %s", hours, course_name, strategy.kind.value
        )
        if strategy.kind is StrategyKind.SINGLE_BLOCK:
            allocations = self._single_block(hours, strategy.block, start_date, day_names)
        elif strategy.kind is StrategyKind.SAME_DAY_SPLIT:
            day_date = self.configuration.next_valid_date(start_date, day_names)
            allocations = self._carve_day(hours, 1, day_date)
        else:
            allocations = self._multi_day(hours, start_date, day_names)
        return self._materialise(allocations, strategy, course_name, session_number)

    def _single_block(
        self,
        hours: float,
        block: TimeBlock,
        start_date: date | datetime,
        day_names: Sequence[str],
    ) -> list[_Allocation]:
        day_date = self.configuration.next_valid_date(start_date, day_names)
        return [_Allocation(1, day_date, block, hours)]

    def _carve_day(self, hours: float, day: int, day_date: datetime) -> list[_Allocation]:
        allocations: list[_Allocation] = []
        remaining = hours
        for block in self.blocks:
            if remaining <= EPSILON:
                break
            part_hours = min(remaining, block.duration)
            allocations.append(_Allocation(day, day_date, block, part_hours))
            remaining -= part_hours
        return allocations

    def _multi_day(
        self, hours: float, start_date: date | datetime, day_names: Sequence[str]
    ) -> list[_Allocation]:
        allocations: list[_Allocation] = []
        remaining = hours
        day = 1
        current = start_date
        while remaining > EPSILON:
            day_date = self.configuration.next_valid_date(current, day_names)
            day_hours = min(remaining, self.max_daily_hours)
            allocations.extend(self._carve_day(day_hours, day, day_date))
            remaining -= day_hours
            day += 1
            current = day_date + timedelta(days=1)
        return allocations

    def _materialise(
        self,
        allocations: list[_Allocation],
        strategy: SplittingStrategy,
        course_name: str,
        session_number: int,
    ) -> list[SessionPart]:
        total_parts = len(allocations)
        total_days = allocations[-1].day if allocations else 0
        if (total_parts, total_days) != (strategy.total_parts, strategy.total_days):
            logger.warning(
                "Estimated %s part(s) over %s day(s) for %r but generated %s over %s",
                strategy.total_parts,
                strategy.total_days,
                course_name,
                total_parts,
                total_days,
            )

        parts: list[SessionPart] = []
        for number, allocation in enumerate(allocations, start=1):
            start = self.configuration.block_start(allocation.day_date, allocation.block.id)
            parts.append(
                SessionPart(
                    part=number,
                    total_parts=total_parts,
                    day=allocation.day,
                    total_days=total_days,
                    start=start,
                    end=start + timedelta(hours=allocation.duration),
                    duration=allocation.duration,
                    block_id=allocation.block.id,
                    block_name=allocation.block.name,
                    title=part_title(course_name, session_number, number, total_parts),
                    session_id=part_session_id(course_name, session_number, number, start),
                )
            )
        return parts

    # Validation -----------------------------------------------------
    def validate_parts(self, parts: Iterable[SessionPart]) -> PartsValidation:
        return validate_parts(parts)


def validate_parts(parts: Iterable[SessionPart]) -> PartsValidation:
    parts = list(parts)
    result = PartsValidation()
    if not parts:
        result.errors.append("No session parts provided")
        return result

    result.total_duration = sum(part.duration for part in parts)
    result.total_parts = len(parts)
    result.total_days = max(part.day for part in parts)

    if result.total_duration > MAX_COURSE_HOURS + EPSILON:
        result.errors.append(
            f"Total duration {result.total_duration:g} hours exceeds maximum "
            f"{MAX_COURSE_HOURS:g} hours"
        )
    if result.total_days > MAX_COURSE_DAYS:
        result.errors.append(
            f"Course spans {result.total_days} days, maximum allowed is {MAX_COURSE_DAYS} days"
        )
    for expected, found in enumerate(sorted(part.part for part in parts), start=1):
        if found != expected:
            result.errors.append(
                f"Part numbering is not sequential: expected {expected}, found {found}"
            )
            break
    for part in parts:
        if part.duration < SHORT_PART_HOURS:
            result.warnings.append(f"Part {part.part} is very short ({part.duration:g} hours)")
    return result


__all__ = [
    "MAX_COURSE_DAYS",
    "MAX_COURSE_HOURS",
    "PartsValidation",
    "SessionPart",
    "SessionSplitter",
    "SplittingStrategy",
    "StrategyKind",
    "part_session_id",
    "part_title",
    "slugify",
    "validate_parts",
]
