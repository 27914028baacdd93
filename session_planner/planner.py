"""Course-complete planning pass: every cohort of a course, location by location."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, Sequence

from .engine import (
    WEEKDAY_NAMES,
    Course,
    ScheduleValidation,
    SchedulingError,
    Session,
    build_engines,
    build_session,
    create_enhanced_group_name,
    group_learners_by_keys,
    group_learners_into_cohorts,
    log_course_priority_order,
    parse_start_date,
    sort_courses_by_priority,
    validate_criteria,
    validate_parts,
    validate_schedule,
)
from .engine.splitter import MAX_COURSE_HOURS

logger = logging.getLogger(__name__)

DEFAULT_GROUPING_KEYS: tuple[str, ...] = ("training_location",)
DEFAULT_CLASSROOM = 1


class ScheduleReporter:
    MAX_DETAILED_ENTRIES = 50
    MAX_TOTAL_ENTRIES = 120
    LEVELS = {
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    def __init__(self, label: str = "schedule") -> None:
        self.label = label
        self.entries: list[dict[str, object]] = []
        self.status = "success"
        self.summary: str | None = None

    def info(self, message: str, *, course: str | None = None) -> None:
        self._add_entry("info", message, course=course)

    def warning(self, message: str, *, course: str | None = None) -> None:
        self._add_entry("warning", message, course=course)
        if self.status != "error":
            self.status = "warning"

    def error(self, message: str, *, course: str | None = None) -> None:
        self._add_entry("error", message, course=course)
        self.status = "error"

    def session_created(self, session: Session) -> None:
        start_label = session.start.strftime("%d/%m/%Y %H:%M")
        end_label = session.end.strftime("%H:%M")
        self.info(
            f"Session planned on {start_label} -> {end_label} ({session.duration:g} h)"
            f" for {session.group_name}, learners {session.user_range}",
            course=session.course.course_name,
        )

    def finalise(self, created_count: int) -> str:
        if self.summary is None:
            if created_count:
                if self.status == "success":
                    self.summary = f"{created_count} session(s) generated"
                else:
                    self.summary = f"{created_count} session(s) generated with warnings"
            elif self.status == "success":
                self.summary = "No session generated"
            else:
                self.summary = "No session generated, check the warnings"
        return self.summary

    def serialise(self) -> list[dict[str, object]]:
        if len(self.entries) <= self.MAX_DETAILED_ENTRIES:
            return [dict(entry) for entry in self.entries]

        detailed = [dict(entry) for entry in self.entries[: self.MAX_DETAILED_ENTRIES]]
        summary_counts: dict[tuple[object, object], int] = {}
        for entry in self.entries[self.MAX_DETAILED_ENTRIES :]:
            key = (entry["level"], entry["message"])
            summary_counts[key] = summary_counts.get(key, 0) + 1

        for (level, message), count in summary_counts.items():
            label = f"{message} (x{count})" if count > 1 else str(message)
            detailed.append({"level": level, "message": label})
            if len(detailed) >= self.MAX_TOTAL_ENTRIES:
                break
        return detailed

    def _add_entry(self, level: str, message: str, *, course: str | None = None) -> None:
        text = message.strip()
        if not text:
            return
        entry: dict[str, object] = {"level": level, "message": text}
        if course:
            entry["course"] = course
        self.entries.append(entry)
        logger.log(self.LEVELS.get(level, logging.INFO), "[%s] %s", course or self.label, text)


@dataclass
class ScheduleResult:
    sessions: list[Session]
    validation: ScheduleValidation
    status: str
    summary: str
    messages: list[dict[str, object]] = field(default_factory=list)
    unscheduled: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "summary": self.summary,
            "sessions": [session.to_dict() for session in self.sessions],
            "validation": self.validation.to_dict(),
            "messages": list(self.messages),
            "unscheduled": list(self.unscheduled),
        }


def _as_course(record: Course | Mapping[str, Any]) -> Course:
    if isinstance(record, Course):
        return record
    return Course.from_mapping(record)


def _day_after(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)


def generate_schedule(
    criteria: Mapping[str, Any],
    courses: Iterable[Course | Mapping[str, Any]],
    learners: Iterable[Mapping[str, Any]],
    *,
    grouping_keys: Sequence[str] = DEFAULT_GROUPING_KEYS,
    functional_area: str = "General",
    day_names: Sequence[str] = WEEKDAY_NAMES,
) -> ScheduleResult:
    """Schedule each course for every location before moving to the next one.

    Learners are grouped by ``grouping_keys``; each group is a location with a
    single classroom. Every cohort of a course starts on the next free day of
    its location so a location never holds two cohorts on the same day.
    """
    reporter = ScheduleReporter()

    criteria_report = validate_criteria(criteria)
    for warning in criteria_report.warnings:
        reporter.warning(warning)
    if not criteria_report.is_valid:
        for message in criteria_report.messages:
            reporter.error(message)
        criteria_report.raise_for_errors()

    engines = build_engines(criteria)
    configuration = engines.configuration
    splitter = engines.splitter
    start = configuration.next_valid_date(parse_start_date(criteria["start_date"]), day_names)
    max_attendees = int(criteria["max_attendees"])

    ordered = sort_courses_by_priority(_as_course(record) for record in courses)
    log_course_priority_order(ordered)
    locations = group_learners_by_keys(learners, grouping_keys)

    cursors: dict[str, datetime] = {}
    sessions: list[Session] = []
    unscheduled: list[str] = []

    for course in ordered:
        attendees_by_location: dict[str, list[Mapping[str, Any]]] = {}
        for location, members in locations.items():
            attendees = [
                learner for learner in members if learner.get("course_id") == course.course_id
            ]
            if attendees:
                attendees_by_location[location] = attendees
        if not attendees_by_location:
            reporter.info("No attendees for this course, skipping", course=course.course_name)
            continue

        if course.duration_hrs > MAX_COURSE_HOURS:
            reporter.warning(
                f"Duration {course.duration_hrs:g} h exceeds {MAX_COURSE_HOURS:g} h and is truncated",
                course=course.course_name,
            )
        try:
            probe = splitter.split(
                course.duration_hrs,
                course_name=course.course_name,
                start_date=start,
                day_names=day_names,
            )
        except SchedulingError as exc:
            reporter.error(str(exc), course=course.course_name)
            unscheduled.append(course.course_name)
            continue
        check = validate_parts(probe)
        for warning in check.warnings:
            reporter.warning(warning, course=course.course_name)
        if not check.is_valid:
            for message in check.errors:
                reporter.error(message, course=course.course_name)
            unscheduled.append(course.course_name)
            continue

        for location, attendees in attendees_by_location.items():
            cohorts = group_learners_into_cohorts(attendees, max_attendees)
            reporter.info(
                f"{location}: {len(attendees)} attendee(s) in {len(cohorts)} group(s)",
                course=course.course_name,
            )
            for cohort in cohorts:
                parts = splitter.split(
                    course.duration_hrs,
                    course_name=course.course_name,
                    start_date=cursors.get(location, start),
                    session_number=cohort.session_number,
                    day_names=day_names,
                )
                group_name = create_enhanced_group_name(
                    location,
                    user_range=cohort.user_range,
                    classroom_number=DEFAULT_CLASSROOM,
                    total_groups=len(cohorts),
                )
                for part in parts:
                    session = build_session(
                        part,
                        course,
                        session_number=cohort.session_number,
                        group_name=group_name,
                        location=location,
                        classroom_number=DEFAULT_CLASSROOM,
                        max_attendees=max_attendees,
                        user_count=cohort.user_count,
                        user_range=cohort.user_range,
                        functional_area=functional_area,
                        group_type=grouping_keys,
                    )
                    sessions.append(session)
                    reporter.session_created(session)
                cursors[location] = _day_after(parts[-1].start)

    validation = validate_schedule(sessions)
    for conflict in validation.conflicts:
        location, classroom_number = conflict.classroom_key
        reporter.error(
            f"{location} classroom {classroom_number} is double-booked: "
            f"{conflict.session1.title} overlaps {conflict.session2.title}"
        )

    summary = reporter.finalise(len(sessions))
    return ScheduleResult(
        sessions=sessions,
        validation=validation,
        status=reporter.status,
        summary=summary,
        messages=reporter.serialise(),
        unscheduled=unscheduled,
    )


__all__ = ["ScheduleReporter", "ScheduleResult", "generate_schedule"]
