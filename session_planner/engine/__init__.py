"""Training session scheduling engine (time blocks, splitting, assembly)."""
from __future__ import annotations

from .core import (
    Conflict,
    Course,
    ScheduleValidation,
    ScheduleWarning,
    SchedulingEngines,
    Session,
    SessionGroup,
    build_engines,
    build_session,
    create_enhanced_group_name,
    format_session_title,
    group_learners_by_keys,
    group_learners_into_cohorts,
    log_course_priority_order,
    parse_start_date,
    sessions_needed,
    sort_courses_by_priority,
    validate_criteria,
    validate_schedule,
)
from .errors import (
    InvalidDuration,
    InvalidFieldValue,
    InvalidTimeFormat,
    MissingRequiredCriteriaField,
    NoSchedulingDays,
    NoValidTimeBlocks,
    OverlappingTimeBlocks,
    SchedulingError,
    ValidationReport,
)
from .splitter import (
    PartsValidation,
    SessionPart,
    SessionSplitter,
    SplittingStrategy,
    StrategyKind,
    validate_parts,
)
from .time_blocks import WEEKDAY_NAMES, TimeBlock, TimeBlockConfiguration, time_to_hours

__all__ = [
    "WEEKDAY_NAMES",
    "Conflict",
    "Course",
    "InvalidDuration",
    "InvalidFieldValue",
    "InvalidTimeFormat",
    "MissingRequiredCriteriaField",
    "NoSchedulingDays",
    "NoValidTimeBlocks",
    "OverlappingTimeBlocks",
    "PartsValidation",
    "ScheduleValidation",
    "ScheduleWarning",
    "SchedulingEngines",
    "SchedulingError",
    "Session",
    "SessionGroup",
    "SessionPart",
    "SessionSplitter",
    "SplittingStrategy",
    "StrategyKind",
    "TimeBlock",
    "TimeBlockConfiguration",
    "ValidationReport",
    "build_engines",
    "build_session",
    "create_enhanced_group_name",
    "format_session_title",
    "group_learners_by_keys",
    "group_learners_into_cohorts",
    "log_course_priority_order",
    "parse_start_date",
    "sessions_needed",
    "sort_courses_by_priority",
    "time_to_hours",
    "validate_criteria",
    "validate_parts",
    "validate_schedule",
]
