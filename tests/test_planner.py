import unittest
from datetime import datetime

from session_planner.engine import MissingRequiredCriteriaField
from session_planner.planner import ScheduleReporter, generate_schedule


CRITERIA = {
    "start_date": "2024-01-06",
    "max_attendees": 2,
    "scheduling_preference": "both",
    "start_time_am": "08:00",
    "end_time_am": "12:00",
    "start_time_pm": "13:00",
    "end_time_pm": "17:00",
    "scheduling_days": ["Monday", "Wednesday", "Friday"],
}


def learner(identifier, course_id, location="Paris"):
    return {"learner_id": identifier, "course_id": course_id, "training_location": location}


class GenerateScheduleTestCase(unittest.TestCase):
    def test_cohorts_are_placed_on_successive_days(self) -> None:
        courses = [{"course_id": "C1", "course_name": "Forklift", "duration_hrs": 6}]
        learners = [learner(index, "C1") for index in range(3)]

        result = generate_schedule(CRITERIA, courses, learners)

        self.assertEqual(result.status, "success")
        self.assertEqual(result.summary, "4 session(s) generated")
        self.assertTrue(result.validation.is_valid)
        starts = [session.start for session in result.sessions]
        self.assertEqual(
            starts,
            [
                datetime(2024, 1, 8, 8),
                datetime(2024, 1, 8, 13),
                datetime(2024, 1, 10, 8),
                datetime(2024, 1, 10, 13),
            ],
        )
        first, last = result.sessions[0], result.sessions[-1]
        self.assertEqual(first.group_name, "Paris Group 1-2 Classroom 1")
        self.assertEqual((first.user_count, last.user_count), (2, 1))
        self.assertEqual(last.session_number, 2)
        self.assertEqual(last.title, "Forklift - Group 2 Part 2")

    def test_courses_follow_priority_and_locations_are_independent(self) -> None:
        courses = [
            {"course_id": "C1", "course_name": "Later", "duration_hrs": 2},
            {"course_id": "C2", "course_name": "Urgent", "duration_hrs": 2, "priority": 1},
        ]
        learners = [
            learner(1, "C1", "Paris"),
            learner(2, "C2", "Paris"),
            learner(3, "C2", "Lyon"),
        ]

        result = generate_schedule(CRITERIA, courses, learners)
        placed = [
            (session.course.course_name, session.location, session.start)
            for session in result.sessions
        ]

        self.assertEqual(
            placed,
            [
                ("Urgent", "Paris", datetime(2024, 1, 8, 8)),
                ("Urgent", "Lyon", datetime(2024, 1, 8, 8)),
                ("Later", "Paris", datetime(2024, 1, 10, 8)),
            ],
        )
        self.assertEqual(result.validation.total_classrooms, 2)

    def test_course_without_attendees_is_skipped(self) -> None:
        courses = [{"course_id": "C9", "course_name": "Empty", "duration_hrs": 2}]

        result = generate_schedule(CRITERIA, courses, [learner(1, "C1")])

        self.assertEqual(result.sessions, [])
        self.assertEqual(result.summary, "No session generated")
        self.assertEqual(result.messages[0]["course"], "Empty")

    def test_overlong_course_is_truncated_with_warning(self) -> None:
        courses = [{"course_id": "C1", "course_name": "Marathon", "duration_hrs": 30}]

        result = generate_schedule(CRITERIA, courses, [learner(1, "C1")])

        self.assertEqual(result.status, "warning")
        self.assertAlmostEqual(sum(session.duration for session in result.sessions), 24)
        self.assertTrue(result.summary.endswith("with warnings"))

    def test_course_spanning_too_many_days_is_unscheduled(self) -> None:
        criteria = dict(CRITERIA, scheduling_preference="am_only", end_time_am="10:00")
        courses = [{"course_id": "C1", "course_name": "Deep Dive", "duration_hrs": 8}]

        result = generate_schedule(criteria, courses, [learner(1, "C1")])

        self.assertEqual(result.sessions, [])
        self.assertEqual(result.unscheduled, ["Deep Dive"])
        self.assertEqual(result.status, "error")

    def test_zero_duration_course_is_unscheduled(self) -> None:
        courses = [
            {"course_id": "C1", "course_name": "Broken", "duration_hrs": 0},
            {"course_id": "C2", "course_name": "Fine", "duration_hrs": 1},
        ]
        learners = [learner(1, "C1"), learner(2, "C2")]

        result = generate_schedule(CRITERIA, courses, learners)

        self.assertEqual(result.unscheduled, ["Broken"])
        self.assertEqual([session.course.course_name for session in result.sessions], ["Fine"])

    def test_invalid_criteria_raise(self) -> None:
        criteria = dict(CRITERIA)
        del criteria["max_attendees"]
        with self.assertRaises(MissingRequiredCriteriaField):
            generate_schedule(criteria, [], [])

    def test_custom_grouping_keys(self) -> None:
        learners = [
            {"course_id": "C1", "site": "North", "team": "Ops"},
            {"course_id": "C1", "site": "North", "team": "HR"},
        ]
        courses = [{"course_id": "C1", "course_name": "Forklift", "duration_hrs": 1}]

        result = generate_schedule(
            CRITERIA, courses, learners, grouping_keys=("site", "team"), functional_area="Ops"
        )

        self.assertEqual(
            [session.location for session in result.sessions], ["North|Ops", "North|HR"]
        )
        self.assertEqual(result.sessions[0].group_type, ("site", "team"))
        self.assertEqual(result.to_dict()["sessions"][0]["functional_area"], "Ops")


class ScheduleReporterTestCase(unittest.TestCase):
    def test_status_escalates(self) -> None:
        reporter = ScheduleReporter()
        reporter.info("started")
        self.assertEqual(reporter.status, "success")
        reporter.warning("careful")
        self.assertEqual(reporter.status, "warning")
        reporter.error("failed")
        reporter.warning("again")
        self.assertEqual(reporter.status, "error")
        self.assertEqual(reporter.finalise(0), "No session generated, check the warnings")

    def test_blank_messages_are_ignored(self) -> None:
        reporter = ScheduleReporter()
        reporter.info("   ")
        self.assertEqual(reporter.entries, [])

    def test_serialise_collapses_repeated_entries(self) -> None:
        reporter = ScheduleReporter()
        for index in range(ScheduleReporter.MAX_DETAILED_ENTRIES):
            reporter.info(f"entry {index}")
        for _ in range(3):
            reporter.warning("same problem")

        entries = reporter.serialise()

        self.assertEqual(len(entries), ScheduleReporter.MAX_DETAILED_ENTRIES + 1)
        self.assertEqual(entries[-1], {"level": "warning", "message": "same problem (x3)"})


if __name__ == "__main__":
    unittest.main()
