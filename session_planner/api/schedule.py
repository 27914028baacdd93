"""Endpoints exposing the session scheduling engine."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from flask import current_app, request
from flask_restx import Namespace, Resource, fields

from ..engine import (
    TimeBlockConfiguration,
    build_engines,
    parse_start_date,
    validate_criteria,
    validate_parts,
    validate_schedule,
)
from ..planner import generate_schedule


ns = Namespace("schedule", description="Training session scheduling")


class AnyValue(fields.Raw):
    """Untyped JSON value (identifiers may be numbers or strings)."""

    __schema_type__ = None


criteria_model = ns.model(
    "Criteria",
    {
        "start_date": fields.String(description="YYYY-MM-DD or ISO 8601 datetime"),
        "max_attendees": fields.Integer(description="Learners per session group"),
        "scheduling_preference": fields.String(enum=["both", "am_only", "pm_only"]),
        "start_time_am": fields.String(description="Block 1 start, HH:MM"),
        "end_time_am": fields.String(description="Block 1 end, HH:MM"),
        "start_time_pm": fields.String(description="Block 2 start, HH:MM"),
        "end_time_pm": fields.String(description="Block 2 end, HH:MM"),
        "scheduling_days": fields.List(fields.String, description="Weekday names"),
    },
)

error_model = ns.model(
    "EngineError",
    {
        "type": fields.String,
        "message": fields.String,
        "field": fields.String,
    },
)

report_model = ns.model(
    "ValidationReport",
    {
        "is_valid": fields.Boolean,
        "errors": fields.List(fields.Nested(error_model)),
        "warnings": fields.List(fields.String),
    },
)

time_block_model = ns.model(
    "TimeBlock",
    {
        "id": fields.Integer,
        "name": fields.String,
        "start": fields.String,
        "end": fields.String,
        "start_hours": fields.Float,
        "end_hours": fields.Float,
        "duration": fields.Float,
    },
)

configuration_model = ns.model(
    "TimeBlockConfiguration",
    {
        "scheduling_preference": fields.String,
        "blocks": fields.List(fields.Nested(time_block_model)),
        "scheduling_days": fields.List(fields.String),
        "max_daily_hours": fields.Float,
        "validation": fields.Nested(report_model),
    },
)

split_request = ns.model(
    "SplitRequest",
    {
        "criteria": fields.Nested(criteria_model, required=True),
        "duration": fields.Float(required=True, description="Course duration in hours"),
        "course_name": fields.String(required=True),
        "session_number": fields.Integer(default=1),
        "start_date": fields.String(description="Defaults to the criteria start_date"),
    },
)

part_model = ns.model(
    "SessionPart",
    {
        "part": fields.Integer,
        "total_parts": fields.Integer,
        "day": fields.Integer,
        "total_days": fields.Integer,
        "start": fields.String,
        "end": fields.String,
        "duration": fields.Float,
        "block_id": fields.Integer,
        "block_name": fields.String,
        "title": fields.String,
        "session_id": fields.String,
    },
)

strategy_model = ns.model(
    "SplittingStrategy",
    {
        "type": fields.String,
        "total_parts": fields.Integer,
        "total_days": fields.Integer,
        "block_id": fields.Integer,
    },
)

parts_validation_model = ns.model(
    "PartsValidation",
    {
        "is_valid": fields.Boolean,
        "errors": fields.List(fields.String),
        "warnings": fields.List(fields.String),
        "total_duration": fields.Float,
        "total_parts": fields.Integer,
        "total_days": fields.Integer,
    },
)

split_response = ns.model(
    "SplitResponse",
    {
        "strategy": fields.Nested(strategy_model),
        "parts": fields.List(fields.Nested(part_model)),
        "validation": fields.Nested(parts_validation_model),
    },
)

course_model = ns.model(
    "Course",
    {
        "course_id": AnyValue(required=True),
        "course_name": fields.String(required=True),
        "duration_hrs": fields.Float(required=True),
        "priority": AnyValue(description="Lower runs first; missing means 999"),
    },
)

generate_request = ns.model(
    "GenerateRequest",
    {
        "criteria": fields.Nested(criteria_model, required=True),
        "courses": fields.List(fields.Nested(course_model), required=True),
        "learners": fields.List(
            fields.Raw,
            required=True,
            description="Learner records carrying course_id and the grouping keys",
        ),
        "grouping_keys": fields.List(fields.String),
        "functional_area": fields.String,
    },
)

session_model = ns.model(
    "Session",
    {
        "session_id": fields.String,
        "title": fields.String,
        "start": fields.String,
        "end": fields.String,
        "duration": fields.Float,
        "course": fields.Nested(course_model),
        "session_number": fields.Integer,
        "session_part_number": fields.Integer,
        "part_suffix": fields.String,
        "total_parts": fields.Integer,
        "total_days": fields.Integer,
        "day_sequence": fields.Integer,
        "is_multi_day": fields.Boolean,
        "group_type": fields.List(fields.String),
        "group_name": fields.String,
        "functional_area": fields.String,
        "location": fields.String,
        "classroom_number": fields.Integer,
        "max_attendees": fields.Integer,
        "user_count": fields.Integer,
        "user_range": fields.String,
        "block_id": fields.Integer,
        "block_name": fields.String,
    },
)

summary_model = ns.model(
    "SessionSummary",
    {
        "title": fields.String,
        "start": fields.String,
        "end": fields.String,
    },
)

conflict_model = ns.model(
    "Conflict",
    {
        "type": fields.String,
        "location": fields.String,
        "classroom_number": fields.Integer,
        "session1": fields.Nested(summary_model),
        "session2": fields.Nested(summary_model),
    },
)

schedule_warning_model = ns.model(
    "ScheduleWarning",
    {
        "type": fields.String,
        "session_title": fields.String,
        "duration": fields.Float,
    },
)

schedule_validation_model = ns.model(
    "ScheduleValidation",
    {
        "is_valid": fields.Boolean,
        "conflicts": fields.List(fields.Nested(conflict_model)),
        "warnings": fields.List(fields.Nested(schedule_warning_model)),
        "total_sessions": fields.Integer,
        "total_classrooms": fields.Integer,
    },
)

message_model = ns.model(
    "ScheduleMessage",
    {
        "level": fields.String,
        "message": fields.String,
        "course": fields.String,
    },
)

generate_response = ns.model(
    "GenerateResponse",
    {
        "status": fields.String,
        "summary": fields.String,
        "sessions": fields.List(fields.Nested(session_model)),
        "validation": fields.Nested(schedule_validation_model),
        "messages": fields.List(fields.Nested(message_model)),
        "unscheduled": fields.List(fields.String),
    },
)

slot_model = ns.model(
    "ScheduledSlot",
    {
        "title": fields.String(required=True),
        "start": fields.String(required=True, description="ISO 8601 datetime"),
        "end": fields.String(required=True, description="ISO 8601 datetime"),
        "duration": fields.Float(description="Hours; derived from start and end when absent"),
        "location": fields.String(required=True),
        "classroom_number": fields.Integer(required=True),
    },
)

validate_request = ns.model(
    "ValidateRequest",
    {"sessions": fields.List(fields.Nested(slot_model), required=True)},
)


@dataclass(frozen=True)
class ScheduledSlot:
    title: str
    start: datetime
    end: datetime
    duration: float
    location: str
    classroom_number: int


def _parse_datetime(value: Any, field_name: str) -> datetime:
    try:
        return datetime.fromisoformat(str(value).strip())
    except ValueError:
        ns.abort(400, f"{field_name} must be an ISO 8601 datetime, got {value!r}")


def _is_aware(moment: datetime) -> bool:
    return moment.tzinfo is not None and moment.utcoffset() is not None


def _parse_slot(payload: dict[str, Any]) -> ScheduledSlot:
    start = _parse_datetime(payload["start"], "start")
    end = _parse_datetime(payload["end"], "end")
    if _is_aware(start) != _is_aware(end):
        ns.abort(400, f"{payload['title']}: start and end must both carry a UTC offset or neither")
    duration = payload.get("duration")
    if duration is None:
        duration = (end - start).total_seconds() / 3600
    return ScheduledSlot(
        title=payload["title"],
        start=start,
        end=end,
        duration=float(duration),
        location=payload["location"],
        classroom_number=int(payload["classroom_number"]),
    )


@ns.route("/criteria/validate")
class CriteriaValidationResource(Resource):
    @ns.expect(criteria_model)
    @ns.marshal_with(report_model)
    def post(self) -> dict[str, Any]:
        return validate_criteria(request.json or {}).to_dict()


@ns.route("/time-blocks")
class TimeBlockResource(Resource):
    @ns.expect(criteria_model)
    @ns.marshal_with(configuration_model)
    def post(self) -> dict[str, Any]:
        try:
            configuration = TimeBlockConfiguration.from_criteria(request.json or {})
        except ValueError as exc:
            ns.abort(400, str(exc))

        payload = configuration.to_dict()
        payload["validation"] = configuration.validate().to_dict()
        return payload


@ns.route("/split")
class SplitResource(Resource):
    @ns.expect(split_request, validate=True)
    @ns.marshal_with(split_response)
    def post(self) -> dict[str, Any]:
        payload = request.json or {}
        criteria = payload["criteria"]
        try:
            splitter = build_engines(criteria).splitter
            start_date = parse_start_date(payload.get("start_date") or criteria.get("start_date"))
            hours = splitter.normalise_duration(payload["duration"])
            parts = splitter.split(
                hours,
                course_name=payload["course_name"],
                start_date=start_date,
                session_number=payload.get("session_number") or 1,
            )
        except ValueError as exc:
            ns.abort(400, str(exc))

        return {
            "strategy": splitter.determine_strategy(hours).to_dict(),
            "parts": [part.to_dict() for part in parts],
            "validation": validate_parts(parts).to_dict(),
        }


@ns.route("/generate")
class GenerateResource(Resource):
    @ns.expect(generate_request, validate=True)
    @ns.marshal_with(generate_response)
    def post(self) -> dict[str, Any]:
        payload = request.json or {}
        criteria = payload["criteria"]
        report = validate_criteria(criteria)
        if not report.is_valid:
            ns.abort(
                400,
                "Invalid scheduling criteria",
                errors=[error.to_dict() for error in report.errors],
            )

        try:
            result = generate_schedule(
                criteria,
                payload["courses"],
                payload["learners"],
                grouping_keys=payload.get("grouping_keys")
                or current_app.config["DEFAULT_GROUPING_KEYS"],
                functional_area=payload.get("functional_area")
                or current_app.config["DEFAULT_FUNCTIONAL_AREA"],
            )
        except ValueError as exc:
            ns.abort(400, str(exc))

        current_app.logger.info("Schedule generated: %s", result.summary)
        return result.to_dict()


@ns.route("/validate")
class ScheduleValidationResource(Resource):
    @ns.expect(validate_request, validate=True)
    @ns.marshal_with(schedule_validation_model)
    def post(self) -> dict[str, Any]:
        payload = request.json or {}
        slots = [_parse_slot(entry) for entry in payload["sessions"]]
        try:
            return validate_schedule(slots).to_dict()
        except ValueError as exc:
            ns.abort(400, str(exc))
