from __future__ import annotations

import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from session_planner import create_app
from session_planner.config import Config


PAYLOAD = {
    "criteria": {
        "start_date": "2024-01-01",
        "max_attendees": 5,
        "scheduling_preference": "am_only",
        "start_time_am": "09:00",
        "end_time_am": "12:00",
        "scheduling_days": "Monday,Tuesday",
    },
    "courses": [{"course_id": "C1", "course_name": "Induction", "duration_hrs": 2}],
    "learners": [{"course_id": "C1", "training_location": "Paris"}],
}


def _make_app():
    cfg = Config(SECRET_KEY="test", LOG_LEVEL="ERROR")
    app = create_app(cfg)
    app.config.update({"TESTING": True})
    return app


def test_plan_command_writes_schedule(tmp_path):
    payload_path = tmp_path / "payload.json"
    payload_path.write_text(json.dumps(PAYLOAD), encoding="utf-8")
    output_path = tmp_path / "schedule.json"

    runner = _make_app().test_cli_runner()
    result = runner.invoke(args=["plan", str(payload_path), "--output", str(output_path)])

    assert result.exit_code == 0
    assert "1 session(s) generated" in result.output
    schedule = json.loads(output_path.read_text(encoding="utf-8"))
    assert schedule["sessions"][0]["start"] == "2024-01-01T09:00:00"
    assert schedule["sessions"][0]["functional_area"] == "General"


def test_plan_command_requires_criteria(tmp_path):
    payload_path = tmp_path / "payload.json"
    payload_path.write_text(json.dumps({"courses": []}), encoding="utf-8")

    result = _make_app().test_cli_runner().invoke(args=["plan", str(payload_path)])

    assert result.exit_code == 1
    assert "Payload is missing 'criteria'" in result.output
