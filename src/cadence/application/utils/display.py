"""Human-readable renderings of intervals and due dates."""

from datetime import datetime

from cadence.domain.constants import MINUTES_PER_DAY


def format_interval(days: float) -> str:
    """
    Convert an interval in days to a short label.

    Returns one of "<1m", "10m", "6h", "4d", "2w", "3mo", "1.2y".
    """
    if days < 1 / MINUTES_PER_DAY:
        return "<1m"

    minutes = days * MINUTES_PER_DAY
    if round(minutes) < 60:
        return f"{round(minutes)}m"

    hours = minutes / 60
    if round(hours) < 24:
        return f"{round(hours)}h"

    if days < 7:
        return f"{round(days)}d"

    weeks = days / 7
    if weeks < 4:
        return f"{round(weeks)}w"

    months = days / 30
    if months < 12:
        return f"{round(months)}mo"

    return f"{days / 365:.1f}y"


def relative_due(due_at: datetime | None, now: datetime) -> str:
    """
    Describe when a card is due relative to `now`, by calendar day.

    "new" for unscheduled cards, "due" for past days, then "today",
    "tomorrow", "in 3 days", "in 2 weeks", "in 1 month", "in 1 year".
    """
    if due_at is None:
        return "new"

    if due_at.tzinfo is not None and now.tzinfo is not None:
        due_at = due_at.astimezone(now.tzinfo)

    diff_days = (due_at.date() - now.date()).days

    if diff_days < 0:
        return "due"
    if diff_days == 0:
        return "today"
    if diff_days == 1:
        return "tomorrow"
    if diff_days < 7:
        return f"in {diff_days} days"

    weeks = round(diff_days / 7)
    if weeks < 4:
        return "in 1 week" if weeks == 1 else f"in {weeks} weeks"

    months = round(diff_days / 30)
    if months < 12:
        return "in 1 month" if months == 1 else f"in {months} months"

    years = round(diff_days / 365)
    return "in 1 year" if years == 1 else f"in {years} years"
