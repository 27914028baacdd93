import unittest
from datetime import date, datetime

from session_planner.engine import (
    InvalidDuration,
    InvalidFieldValue,
    InvalidTimeFormat,
    MissingRequiredCriteriaField,
    NoSchedulingDays,
    NoValidTimeBlocks,
    OverlappingTimeBlocks,
    TimeBlockConfiguration,
    time_to_hours,
)
from session_planner.engine.time_blocks import block_duration


def make_criteria(**overrides):
    criteria = {
        "scheduling_preference": "both",
        "start_time_am": "08:00",
        "end_time_am": "12:00",
        "start_time_pm": "13:00",
        "end_time_pm": "17:00",
        "scheduling_days": ["Monday", "Wednesday", "Friday"],
    }
    criteria.update(overrides)
    return criteria


class TimeConversionTestCase(unittest.TestCase):
    def test_time_to_hours_handles_minutes(self) -> None:
        self.assertEqual(time_to_hours("13:30"), 13.5)
        self.assertEqual(time_to_hours("08:00"), 8.0)
        self.assertEqual(time_to_hours("8:15"), 8.25)

    def test_time_to_hours_tolerates_seconds(self) -> None:
        self.assertEqual(time_to_hours("09:45:00"), 9.75)

    def test_invalid_time_strings_are_rejected(self) -> None:
        for value in ("", None, "noon", "25:00", "10:75", "10-30", 830, "13:0²", "１３:00"):
            with self.subTest(value=value):
                with self.assertRaises(InvalidTimeFormat):
                    time_to_hours(value)

    def test_block_duration_requires_end_after_start(self) -> None:
        self.assertEqual(block_duration("08:00", "12:30"), 4.5)
        with self.assertRaises(InvalidTimeFormat):
            block_duration("12:00", "12:00")
        with self.assertRaises(InvalidTimeFormat):
            block_duration("13:00", "09:00")


class TimeBlockConfigurationTestCase(unittest.TestCase):
    def test_both_preference_builds_two_blocks(self) -> None:
        configuration = TimeBlockConfiguration.from_criteria(make_criteria())

        self.assertEqual([block.id for block in configuration.blocks], [1, 2])
        self.assertEqual(configuration.blocks[0].name, "Block 1")
        self.assertEqual(configuration.blocks[1].start, "13:00")
        self.assertEqual(configuration.max_daily_hours, 8.0)
        self.assertEqual(configuration.scheduling_days, ("Monday", "Wednesday", "Friday"))

    def test_preference_selects_blocks(self) -> None:
        am_only = TimeBlockConfiguration.from_criteria(make_criteria(scheduling_preference="am_only"))
        pm_only = TimeBlockConfiguration.from_criteria(make_criteria(scheduling_preference="pm_only"))

        self.assertEqual([block.id for block in am_only.blocks], [1])
        self.assertEqual([block.id for block in pm_only.blocks], [2])
        self.assertEqual(pm_only.max_daily_hours, 4.0)

    def test_malformed_block_is_skipped_with_notice(self) -> None:
        configuration = TimeBlockConfiguration.from_criteria(make_criteria(end_time_pm="11:00"))

        self.assertEqual([block.id for block in configuration.blocks], [1])
        self.assertEqual(len(configuration.notices), 1)
        self.assertIn("Block 2", configuration.notices[0])
        self.assertIn("Block 2", configuration.validate().warnings[0])

    def test_non_ascii_digits_skip_the_block(self) -> None:
        configuration = TimeBlockConfiguration.from_criteria(make_criteria(start_time_pm="13:0²"))

        self.assertEqual([block.id for block in configuration.blocks], [1])
        self.assertIn("Block 2", configuration.notices[0])

    def test_no_usable_block_raises(self) -> None:
        with self.assertRaises(NoValidTimeBlocks):
            TimeBlockConfiguration.from_criteria(
                make_criteria(scheduling_preference="am_only", start_time_am="", end_time_am="")
            )

    def test_missing_or_unknown_preference(self) -> None:
        criteria = make_criteria()
        del criteria["scheduling_preference"]
        with self.assertRaises(MissingRequiredCriteriaField):
            TimeBlockConfiguration.from_criteria(criteria)
        with self.assertRaises(InvalidFieldValue):
            TimeBlockConfiguration.from_criteria(make_criteria(scheduling_preference="evening"))

    def test_scheduling_days_accept_comma_separated_string(self) -> None:
        configuration = TimeBlockConfiguration.from_criteria(
            make_criteria(scheduling_days="Monday, Tuesday")
        )
        self.assertEqual(configuration.scheduling_days, ("Monday", "Tuesday"))

    def test_single_block_fit_and_daily_capacity(self) -> None:
        configuration = TimeBlockConfiguration.from_criteria(make_criteria(end_time_pm="18:00"))

        self.assertEqual(configuration.find_single_block_fit(3).id, 1)
        self.assertEqual(configuration.find_single_block_fit(4.5).id, 2)
        self.assertIsNone(configuration.find_single_block_fit(6))
        self.assertTrue(configuration.can_fit_in_one_day(9))
        self.assertFalse(configuration.can_fit_in_one_day(9.5))

    def test_days_needed(self) -> None:
        configuration = TimeBlockConfiguration.from_criteria(make_criteria())

        self.assertEqual(configuration.days_needed(8), 1)
        self.assertEqual(configuration.days_needed(10), 2)
        self.assertEqual(configuration.days_needed(24), 3)
        with self.assertRaises(InvalidDuration):
            configuration.days_needed(0)

    def test_next_valid_date_skips_weekend(self) -> None:
        configuration = TimeBlockConfiguration.from_criteria(make_criteria())

        saturday = datetime(2024, 1, 6, 9, 30)
        self.assertEqual(configuration.next_valid_date(saturday), datetime(2024, 1, 8, 9, 30))
        self.assertEqual(configuration.next_valid_date(date(2024, 1, 3)), datetime(2024, 1, 3))

    def test_next_valid_date_without_matching_day_raises(self) -> None:
        configuration = TimeBlockConfiguration.from_criteria(make_criteria(scheduling_days=["Funday"]))
        with self.assertRaises(NoSchedulingDays):
            configuration.next_valid_date(date(2024, 1, 1))

    def test_block_start_and_lookup(self) -> None:
        configuration = TimeBlockConfiguration.from_criteria(make_criteria(start_time_pm="13:30"))

        self.assertEqual(
            configuration.block_start(date(2024, 1, 1), 2), datetime(2024, 1, 1, 13, 30)
        )
        self.assertEqual(configuration.block_containing_time(9).id, 1)
        self.assertIsNone(configuration.block_containing_time(12.5))
        with self.assertRaises(NoValidTimeBlocks):
            configuration.block_by_id(3)

    def test_validate_reports_overlap_and_short_blocks(self) -> None:
        configuration = TimeBlockConfiguration.from_criteria(
            make_criteria(end_time_am="13:30", start_time_pm="13:00", end_time_pm="13:45")
        )
        report = configuration.validate()

        self.assertFalse(report.is_valid)
        self.assertIsInstance(report.errors[0], OverlappingTimeBlocks)
        self.assertTrue(any("very short" in warning for warning in report.warnings))
        with self.assertRaises(OverlappingTimeBlocks):
            report.raise_for_errors()

    def test_validate_requires_scheduling_days(self) -> None:
        configuration = TimeBlockConfiguration.from_criteria(make_criteria(scheduling_days=[]))
        report = configuration.validate()

        self.assertEqual([type(error) for error in report.errors], [NoSchedulingDays])

    def test_to_dict(self) -> None:
        payload = TimeBlockConfiguration.from_criteria(make_criteria()).to_dict()

        self.assertEqual(payload["scheduling_preference"], "both")
        self.assertEqual(payload["max_daily_hours"], 8.0)
        self.assertEqual(payload["blocks"][0]["end"], "12:00")


if __name__ == "__main__":
    unittest.main()
