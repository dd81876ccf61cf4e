"""Tests for recurring template scheduling."""

from datetime import date

import pytest

from couple_finance.models import RecurringTemplate
from couple_finance.recurring import (
    days_in_month,
    due_templates,
    first_run,
    is_due,
    next_run,
)


def make_template(
    name: str, next_run: date, active: bool = True, day_of_month: int = 1
) -> RecurringTemplate:
    """Create a RecurringTemplate for testing."""
    return RecurringTemplate(
        name=name,
        amount=1000,
        day_of_month=day_of_month,
        payer_id="ana",
        category_id="cat-1",
        active=active,
        next_run=next_run,
    )


class TestDaysInMonth:
    """Test month lengths."""

    @pytest.mark.parametrize(
        "year, month, expected",
        [
            (2024, 2, 29),
            (2023, 2, 28),
            (1900, 2, 28),
            (2000, 2, 29),
            (2024, 4, 30),
            (2024, 12, 31),
        ],
    )
    def test_month_lengths(self, year, month, expected):
        """Leap years follow the Gregorian rules."""
        assert days_in_month(year, month) == expected


class TestNextRun:
    """Test advancing a template by one month."""

    def test_same_day_next_month(self):
        """A day that exists in the next month is kept."""
        assert next_run(date(2024, 3, 15), 15) == date(2024, 4, 15)

    def test_clamped_to_leap_february(self):
        """The 31st advances to Feb 29 in a leap year."""
        assert next_run(date(2024, 1, 31), 31) == date(2024, 2, 29)

    def test_clamped_to_common_february(self):
        """The 31st advances to Feb 28 in a common year."""
        assert next_run(date(2023, 1, 31), 31) == date(2023, 2, 28)

    def test_day_restored_after_short_month(self):
        """After a clamped month the template returns to its own day."""
        assert next_run(date(2024, 2, 29), 31) == date(2024, 3, 31)

    def test_year_rollover(self):
        """December advances into January of the next year."""
        assert next_run(date(2024, 12, 20), 20) == date(2025, 1, 20)

    def test_clamped_to_thirty_day_month(self):
        """The 31st in a 30-day month lands on the 30th."""
        assert next_run(date(2024, 3, 31), 31) == date(2024, 4, 30)

    @pytest.mark.parametrize("day_of_month", [1, 15, 28, 29, 30, 31])
    def test_always_advances(self, day_of_month):
        """A year of advancing never stalls or skips a month."""
        current = first_run(day_of_month, date(2023, 1, 1))

        for _ in range(24):
            following = next_run(current, day_of_month)
            assert following > current
            assert (following.year * 12 + following.month) - (
                current.year * 12 + current.month
            ) == 1
            assert following.day == min(
                day_of_month, days_in_month(following.year, following.month)
            )
            current = following


class TestFirstRun:
    """Test the initial due date of a new template."""

    def test_day_already_passed_goes_to_next_month(self):
        """Created on the 7th for day 5: first run is next month."""
        assert first_run(5, date(2024, 3, 7)) == date(2024, 4, 5)

    def test_day_still_ahead_stays_this_month(self):
        """Created on the 7th for day 10: first run is this month."""
        assert first_run(10, date(2024, 3, 7)) == date(2024, 3, 10)

    def test_same_day_is_today(self):
        """Created on the target day: due today."""
        assert first_run(7, date(2024, 3, 7)) == date(2024, 3, 7)

    def test_clamped_in_current_month(self):
        """Day 31 in April becomes April 30."""
        assert first_run(31, date(2024, 4, 10)) == date(2024, 4, 30)

    def test_clamped_in_next_month(self):
        """Day 30 created on Jan 31 falls on Feb 29 of a leap year."""
        assert first_run(30, date(2024, 1, 31)) == date(2024, 2, 29)

    def test_december_rolls_into_next_year(self):
        """A passed day in December moves to January."""
        assert first_run(1, date(2024, 12, 15)) == date(2025, 1, 1)


class TestDueTemplates:
    """Test due-template selection."""

    def test_is_due_on_and_after_next_run(self):
        """A template is due on its next run date and after it."""
        template = make_template("Rent", date(2024, 4, 5))

        assert not is_due(template, date(2024, 4, 4))
        assert is_due(template, date(2024, 4, 5))
        assert is_due(template, date(2024, 5, 1))

    def test_inactive_never_due(self):
        """Paused templates are skipped."""
        template = make_template("Gym", date(2024, 1, 1), active=False)

        assert not is_due(template, date(2024, 6, 1))

    def test_due_templates_oldest_first(self):
        """Only due templates are returned, oldest next run first."""
        templates = [
            make_template("Internet", date(2024, 4, 3)),
            make_template("Future", date(2024, 5, 1)),
            make_template("Rent", date(2024, 4, 1)),
            make_template("Paused", date(2024, 3, 1), active=False),
        ]

        due = due_templates(templates, date(2024, 4, 10))

        assert [t.name for t in due] == ["Rent", "Internet"]
