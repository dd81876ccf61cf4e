"""Monthly scheduling for recurring templates."""

import calendar
from collections.abc import Iterable
from datetime import date

from .models import RecurringTemplate


def days_in_month(year: int, month: int) -> int:
    """Get the last calendar day of a month (leap years included)."""
    return calendar.monthrange(year, month)[1]


def _clamped_date(year: int, month: int, day_of_month: int) -> date:
    return date(year, month, min(day_of_month, days_in_month(year, month)))


def _add_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def next_run(current_run: date, day_of_month: int) -> date:
    """
    Compute the next due date of a monthly template.

    The result always falls in the month right after ``current_run``. When
    ``day_of_month`` does not exist in that month (e.g. the 31st in April),
    the last day of the month is used instead.

    Args:
        current_run: The due date being advanced from
        day_of_month: The template's target day (1-31)

    Returns:
        The next due date
    """
    year, month = _add_month(current_run.year, current_run.month)
    return _clamped_date(year, month, day_of_month)


def first_run(day_of_month: int, today: date) -> date:
    """
    Compute the first due date for a newly created template.

    If the day has already passed this month, the first run is next month;
    otherwise it is this month, today included.

    Args:
        day_of_month: The template's target day (1-31)
        today: The creation date

    Returns:
        The first due date
    """
    if day_of_month < today.day:
        year, month = _add_month(today.year, today.month)
    else:
        year, month = today.year, today.month
    return _clamped_date(year, month, day_of_month)


def is_due(template: RecurringTemplate, today: date) -> bool:
    """Check whether an active template's next run has arrived."""
    return template.active and template.next_run <= today


def due_templates(
    templates: Iterable[RecurringTemplate], today: date
) -> list[RecurringTemplate]:
    """Select the templates due on or before today, oldest first."""
    return sorted(
        (t for t in templates if is_due(t, today)), key=lambda t: t.next_run
    )
