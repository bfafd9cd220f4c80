"""
Calendar helpers for fee chart bucketing.

All datetimes handled here are naive and interpreted in the host's local
time zone, which is how lightningd operators read their charts.

Week numbers use Sunday-first weeks where week 1 is the week containing
January 1. A late-December date whose week already contains the next
January 1 therefore reports week 1 while keeping its own calendar year.
"""

from datetime import date, datetime, timedelta

DAYS_PER_WEEK = 7
SECONDS_PER_DAY = 86400

_TIME_FORMAT = "%I:%M %p"


def day_of_year(moment: datetime) -> int:
    """Day of the year, 1-based."""
    return moment.timetuple().tm_yday


def _week_start(day: date) -> date:
    """The Sunday on or before the given day."""
    return day - timedelta(days=(day.weekday() + 1) % DAYS_PER_WEEK)


def week_of_year(moment: datetime) -> int:
    """
    Sunday-first week number of the year.

    Week 1 is the week containing January 1. Days at the end of December
    that share a week with the next January 1 belong to week 1.
    """
    day = moment.date()
    start = _week_start(day)

    next_new_year = date(day.year + 1, 1, 1)
    if start + timedelta(days=DAYS_PER_WEEK - 1) >= next_new_year:
        return 1

    first_week_start = _week_start(date(day.year, 1, 1))
    return (start - first_week_start).days // DAYS_PER_WEEK + 1


def subtract_days(moment: datetime, days: int) -> datetime:
    """
    Move a local wall-clock time back by whole calendar days.

    Naive arithmetic keeps the hour and minute even across DST changes.
    """
    return moment - timedelta(days=days)


def subtract_hours(moment: datetime, hours: int) -> datetime:
    """Move a local time back by elapsed hours (absolute time)."""
    return datetime.fromtimestamp(moment.timestamp() - hours * 3600)


def _format_time(moment: datetime) -> str:
    # "03:00 PM" -> "3:00 PM"
    return moment.strftime(_TIME_FORMAT).lstrip("0")


def calendar_phrase(moment: datetime, now: datetime) -> str:
    """
    Humanize a datetime relative to the start of today.

    Examples: "Today at 3:00 PM", "Yesterday at 9:15 AM",
    "Last Monday at 3:00 PM", "10/12/2026".
    """
    start_of_today = datetime(now.year, now.month, now.day)
    diff = (moment - start_of_today).total_seconds() / SECONDS_PER_DAY
    at_time = _format_time(moment)
    weekday = moment.strftime("%A")

    if diff < -6:
        return moment.strftime("%m/%d/%Y")
    if diff < -1:
        return f"Last {weekday} at {at_time}"
    if diff < 0:
        return f"Yesterday at {at_time}"
    if diff < 1:
        return f"Today at {at_time}"
    if diff < 2:
        return f"Tomorrow at {at_time}"
    if diff < 7:
        return f"{weekday} at {at_time}"
    return moment.strftime("%m/%d/%Y")
