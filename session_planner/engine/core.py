"""Session assembly, learner cohorts, criteria checks and conflict detection."""
from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Iterable, Mapping, Sequence

from .errors import (
    InvalidDuration,
    InvalidFieldValue,
    MissingRequiredCriteriaField,
    NoSchedulingDays,
    ValidationReport,
)
from .splitter import SHORT_PART_HOURS, SessionPart, SessionSplitter
from .time_blocks import (
    BLOCK_FIELDS,
    SCHEDULING_PREFERENCES,
    WEEKDAY_NAMES,
    TimeBlockConfiguration,
    normalise_scheduling_days,
    parse_time_blocks,
)

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 999
REQUIRED_CRITERIA_FIELDS: tuple[str, ...] = (
    "start_date",
    "max_attendees",
    "scheduling_preference",
    "scheduling_days",
)
TIME_OVERLAP = "TIME_OVERLAP"
SHORT_SESSION = "SHORT_SESSION"


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


@dataclass(frozen=True)
class Course:
    course_id: Any
    course_name: str
    duration_hrs: float
    priority: int | None = None

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any]) -> Course:
        for key in ("course_id", "course_name", "duration_hrs"):
            if _is_blank(record.get(key)):
                raise InvalidFieldValue(f"Course record is missing {key}", field=key)
        try:
            duration = float(record["duration_hrs"])
        except (TypeError, ValueError):
            raise InvalidDuration(
                f"Invalid duration for course {record['course_name']}: {record['duration_hrs']!r}",
                field="duration_hrs",
                value=record["duration_hrs"],
            ) from None
        priority = record.get("priority")
        if not _is_blank(priority):
            try:
                priority = int(priority)
            except (TypeError, ValueError):
                raise InvalidFieldValue(
                    f"Invalid priority for course {record['course_name']}: {priority!r}",
                    field="priority",
                    value=priority,
                ) from None
        else:
            priority = None
        return cls(
            course_id=record["course_id"],
            course_name=str(record["course_name"]),
            duration_hrs=duration,
            priority=priority,
        )

    @property
    def effective_priority(self) -> int:
        return DEFAULT_PRIORITY if self.priority is None else self.priority

    def to_dict(self) -> dict[str, Any]:
        return {
            "course_id": self.course_id,
            "course_name": self.course_name,
            "duration_hrs": self.duration_hrs,
            "priority": self.effective_priority,
        }


@dataclass(frozen=True)
class Session:
    """A session part bound to its course, cohort, classroom and capacity."""

    session_id: str
    title: str
    start: datetime
    end: datetime
    duration: float
    course: Course
    session_number: int
    session_part_number: int
    part_suffix: str
    total_parts: int
    total_days: int
    day_sequence: int
    is_multi_day: bool
    group_type: tuple[str, ...]
    group_name: str
    functional_area: str
    location: str
    classroom_number: int
    max_attendees: int
    user_count: int
    user_range: str
    block_id: int
    block_name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration": self.duration,
            "course": self.course.to_dict(),
            "session_number": self.session_number,
            "session_part_number": self.session_part_number,
            "part_suffix": self.part_suffix,
            "total_parts": self.total_parts,
            "total_days": self.total_days,
            "day_sequence": self.day_sequence,
            "is_multi_day": self.is_multi_day,
            "group_type": list(self.group_type),
            "group_name": self.group_name,
            "functional_area": self.functional_area,
            "location": self.location,
            "classroom_number": self.classroom_number,
            "max_attendees": self.max_attendees,
            "user_count": self.user_count,
            "user_range": self.user_range,
            "block_id": self.block_id,
            "block_name": self.block_name,
        }


@dataclass(frozen=True)
class SessionGroup:
    session_number: int
    users: tuple[Any, ...]
    user_count: int
    user_range: str


@dataclass(frozen=True)
class SchedulingEngines:
    configuration: TimeBlockConfiguration
    splitter: SessionSplitter
    validation: ValidationReport


def build_session(
    part: SessionPart,
    course: Course,
    *,
    session_number: int,
    group_name: str,
    location: str,
    classroom_number: int,
    max_attendees: int,
    user_count: int,
    user_range: str,
    functional_area: str,
    group_type: Sequence[str] = ("training_location",),
) -> Session:
    return Session(
        session_id=part.session_id,
        title=part.title,
        start=part.start,
        end=part.end,
        duration=part.duration,
        course=Course(
            course_id=course.course_id,
            course_name=course.course_name,
            duration_hrs=course.duration_hrs,
            priority=course.effective_priority,
        ),
        session_number=session_number,
        session_part_number=part.part,
        part_suffix=f"Part {part.part}" if part.part > 1 else "",
        total_parts=part.total_parts,
        total_days=part.total_days,
        day_sequence=part.day,
        is_multi_day=part.total_days > 1,
        group_type=tuple(group_type),
        group_name=group_name,
        functional_area=functional_area,
        location=location,
        classroom_number=classroom_number,
        max_attendees=max_attendees,
        user_count=user_count,
        user_range=user_range,
        block_id=part.block_id,
        block_name=part.block_name,
    )


def parse_start_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            pass
    raise InvalidFieldValue(
        f"Invalid start date format: {value!r}", field="start_date", value=value
    )


def validate_criteria(criteria: Mapping[str, Any]) -> ValidationReport:
    """Run every criteria check and report all failures together."""
    report = ValidationReport()

    for name in REQUIRED_CRITERIA_FIELDS:
        if _is_blank(criteria.get(name)):
            report.errors.append(
                MissingRequiredCriteriaField(f"Missing required criteria field: {name}", field=name)
            )

    preference = criteria.get("scheduling_preference")
    if not _is_blank(preference):
        if preference not in SCHEDULING_PREFERENCES:
            report.errors.append(
                InvalidFieldValue(
                    f"Unknown scheduling preference {preference!r}",
                    field="scheduling_preference",
                    value=preference,
                )
            )
        for block_id, start_field, end_field, preferences in BLOCK_FIELDS:
            if preference not in preferences:
                continue
            missing = [
                key for key in (start_field, end_field) if _is_blank(criteria.get(key))
            ]
            if missing:
                report.errors.append(
                    MissingRequiredCriteriaField(
                        f"Block {block_id} times required for current scheduling preference",
                        field=missing[0],
                    )
                )
        if preference in SCHEDULING_PREFERENCES:
            _, notices = parse_time_blocks(preference, criteria)
            report.warnings.extend(notices)

    days = criteria.get("scheduling_days")
    if not _is_blank(days):
        names = normalise_scheduling_days(days)
        if not names:
            report.errors.append(
                NoSchedulingDays(
                    "At least one scheduling day must be selected", field="scheduling_days"
                )
            )
        for name in names:
            if name not in WEEKDAY_NAMES:
                report.warnings.append(f"Unknown scheduling day {name!r} will never match")

    max_attendees = criteria.get("max_attendees")
    if not _is_blank(max_attendees):
        try:
            capacity = int(max_attendees)
        except (TypeError, ValueError):
            capacity = None
        if capacity is None or capacity < 1:
            report.errors.append(
                InvalidFieldValue(
                    "Maximum attendees must be at least 1",
                    field="max_attendees",
                    value=max_attendees,
                )
            )

    start_date = criteria.get("start_date")
    if not _is_blank(start_date):
        try:
            parse_start_date(start_date)
        except InvalidFieldValue as exc:
            report.errors.append(exc)

    return report


def sort_courses_by_priority(courses: Iterable[Course]) -> list[Course]:
    return sorted(courses, key=lambda course: course.effective_priority)


def log_course_priority_order(
    courses: Iterable[Course], prefix: str = "Courses ordered by priority"
) -> None:
    logger.info("%s:", prefix)
    for course in courses:
        label = course.priority if course.priority is not None else "default"
        logger.info("  %s (Priority: %s)", course.course_name, label)


def _key_part(value: Any) -> str:
    text = "" if value is None else str(value).strip()
    return text or "Unknown"


def group_learners_by_keys(
    learners: Iterable[Mapping[str, Any]], keys: Sequence[str]
) -> dict[str, list[Mapping[str, Any]]]:
    groups: dict[str, list[Mapping[str, Any]]] = {}
    for learner in learners:
        key = "|".join(_key_part(learner.get(name)) for name in keys)
        groups.setdefault(key, []).append(learner)
    return groups


def sessions_needed(learners: Sequence[Any], max_attendees: int) -> int:
    if not learners or max_attendees < 1:
        return 0
    return math.ceil(len(learners) / max_attendees)


def group_learners_into_cohorts(
    learners: Iterable[Any], max_attendees: int
) -> list[SessionGroup]:
    """Slice ``learners`` in input order into groups of at most ``max_attendees``."""
    if max_attendees < 1:
        raise InvalidFieldValue(
            "Maximum attendees must be at least 1", field="max_attendees", value=max_attendees
        )
    learners = list(learners)
    groups: list[SessionGroup] = []
    for index in range(sessions_needed(learners, max_attendees)):
        start = index * max_attendees
        end = min(start + max_attendees, len(learners))
        users = tuple(learners[start:end])
        groups.append(
            SessionGroup(
                session_number=index + 1,
                users=users,
                user_count=len(users),
                user_range=f"{start + 1}-{end}",
            )
        )
    return groups


def create_enhanced_group_name(
    base_group_name: str,
    *,
    user_range: str = "",
    classroom_number: int = 1,
    total_groups: int = 1,
) -> str:
    if total_groups > 1 and user_range:
        return f"{base_group_name} Group {user_range} Classroom {classroom_number}"
    if classroom_number > 1:
        return f"{base_group_name} Classroom {classroom_number}"
    return base_group_name


def format_session_title(
    course_name: str,
    session_number: int,
    part: SessionPart,
    group_name: str | None = None,
) -> str:
    title = f"{course_name} - Group {session_number}"
    if part.total_parts > 1:
        title += f" Part {part.part}"
    if group_name:
        title += f" ({group_name})"
    return title


def build_engines(criteria: Mapping[str, Any]) -> SchedulingEngines:
    """Parse the time blocks and refuse configurations that fail validation."""
    configuration = TimeBlockConfiguration.from_criteria(criteria)
    validation = configuration.validate()
    if not validation.is_valid:
        logger.error("Time block configuration invalid: %s", ", ".join(validation.messages))
        validation.raise_for_errors()
    for warning in validation.warnings:
        logger.warning(warning)
    return SchedulingEngines(configuration, SessionSplitter(configuration), validation)


@dataclass(frozen=True)
class SessionSummary:
    title: str
    start: datetime
    end: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class Conflict:
    classroom_key: tuple[str, int]
    session1: SessionSummary
    session2: SessionSummary
    type: str = TIME_OVERLAP

    def to_dict(self) -> dict[str, Any]:
        location, classroom_number = self.classroom_key
        return {
            "type": self.type,
            "location": location,
            "classroom_number": classroom_number,
            "session1": self.session1.to_dict(),
            "session2": self.session2.to_dict(),
        }


@dataclass(frozen=True)
class ScheduleWarning:
    session_title: str
    duration: float
    type: str = SHORT_SESSION

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "session_title": self.session_title, "duration": self.duration}


@dataclass
class ScheduleValidation:
    conflicts: list[Conflict] = field(default_factory=list)
    warnings: list[ScheduleWarning] = field(default_factory=list)
    total_sessions: int = 0
    total_classrooms: int = 0

    @property
    def is_valid(self) -> bool:
        return not self.conflicts

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
            "warnings": [warning.to_dict() for warning in self.warnings],
            "total_sessions": self.total_sessions,
            "total_classrooms": self.total_classrooms,
        }


def _summary(session: Any) -> SessionSummary:
    return SessionSummary(session.title, session.start, session.end)


def _has_offset(moment: datetime) -> bool:
    return moment.tzinfo is not None and moment.utcoffset() is not None


def validate_schedule(sessions: Iterable[Any]) -> ScheduleValidation:
    """Report double-booked classrooms and very short sessions.

    Sessions need ``title``, ``start``, ``end``, ``duration``, ``location`` and
    ``classroom_number`` attributes. Only neighbours in start order are
    compared inside each classroom; back-to-back sessions do not conflict.
    Mixing naive and offset-aware times raises :class:`InvalidFieldValue`.
    """
    sessions = list(sessions)
    offsets = {
        _has_offset(moment) for session in sessions for moment in (session.start, session.end)
    }
    if len(offsets) > 1:
        raise InvalidFieldValue(
            "Session times must all carry a UTC offset or none of them", field="start"
        )
    by_classroom: dict[tuple[str, int], list[Any]] = defaultdict(list)
    for session in sessions:
        by_classroom[(session.location, session.classroom_number)].append(session)

    result = ScheduleValidation(
        total_sessions=len(sessions), total_classrooms=len(by_classroom)
    )
    for classroom_key, classroom_sessions in by_classroom.items():
        ordered = sorted(classroom_sessions, key=lambda session: session.start)
        for current, following in zip(ordered, ordered[1:]):
            if current.end > following.start:
                result.conflicts.append(
                    Conflict(classroom_key, _summary(current), _summary(following))
                )

    for session in sessions:
        if session.duration < SHORT_PART_HOURS:
            result.warnings.append(ScheduleWarning(session.title, session.duration))
    return result


__all__ = [
    "DEFAULT_PRIORITY",
    "Conflict",
    "Course",
    "ScheduleValidation",
    "ScheduleWarning",
    "SchedulingEngines",
    "Session",
    "SessionGroup",
    "SessionSummary",
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
    "validate_criteria",
    "validate_schedule",
]
