"""
Natural-language date/time normalisation.

Turns the free-text answers a patient gives ("tomorrow", "next Monday",
"afternoon", "14:30") into a concrete calendar day and a 24-hour clock time.
Everything here is a pure function of the phrase and the current instant.

Recognised vocabulary:

    Dates:  today, tomorrow, day after tomorrow, next week (+7 days),
            next month (same day, clamped to the month's last day),
            weekday names (optionally "next"/"this"/"on"), resolved to the
            first occurrence strictly after today.
            Anything else goes through GENERIC_DATE_FORMATS; if nothing
            matches, the date is today.

    Times:  morning 09:00, afternoon 14:00, evening 17:00.
            Anything else is parsed as H:MM / HH:MM or "H[:MM] am|pm";
            if nothing matches, the time is 09:00.

Past values are clamped rather than rejected: a date before today becomes
today, and a time already passed on today's date becomes the next whole hour.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional, Tuple

from core.domain import DomainService, format_date, format_time


# =============================================================================
# VOCABULARY
# =============================================================================

class DatePhrase(Enum):
    """Relative-date keywords, checked in declaration order."""
    DAY_AFTER_TOMORROW = "day after tomorrow"
    TOMORROW = "tomorrow"
    TODAY = "today"
    NEXT_WEEK = "next week"
    NEXT_MONTH = "next month"


DAY_OFFSETS = {
    DatePhrase.TODAY: 0,
    DatePhrase.TOMORROW: 1,
    DatePhrase.DAY_AFTER_TOMORROW: 2,
    DatePhrase.NEXT_WEEK: 7,
}

# Index matches date.weekday()
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_WEEKDAY_PATTERN = re.compile(r"\b(?:(?:next|this|on)\s+)?(" + "|".join(WEEKDAYS) + r")\b")


class TimeOfDay(Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


TIME_OF_DAY_CLOCK = {
    TimeOfDay.MORNING: time(9, 0),
    TimeOfDay.AFTERNOON: time(14, 0),
    TimeOfDay.EVENING: time(17, 0),
}

DEFAULT_TIME = time(9, 0)

# Month-first numeric dates, matching how the booking forms have always been read
GENERIC_DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d",
    "%b %d",
    "%d %B",
    "%d %b",
)

_ORDINAL_SUFFIX = re.compile(r"\b(\d{1,2})(st|nd|rd|th)\b")
_CLOCK_24H = re.compile(r"^(\d{1,2}):(\d{2})$")
_CLOCK_12H = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm)$")


# =============================================================================
# RESULT
# =============================================================================

@dataclass(frozen=True)
class ResolvedSlot:
    """A concrete booking slot produced from free text."""
    date: date
    time: time
    clamped: bool = False

    @property
    def date_str(self) -> str:
        return format_date(self.date)

    @property
    def time_str(self) -> str:
        return format_time(self.time)

    def as_datetime(self) -> datetime:
        return datetime.combine(self.date, self.time)


# =============================================================================
# PARSING
# =============================================================================

def _add_one_month(day: date) -> date:
    if day.month == 12:
        year, month = day.year + 1, 1
    else:
        year, month = day.year, day.month + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def _parse_generic_date(text: str, today: date) -> Optional[date]:
    cleaned = _ORDINAL_SUFFIX.sub(r"\1", text.replace(",", " "))
    cleaned = " ".join(cleaned.split())
    for fmt in GENERIC_DATE_FORMATS:
        candidate = cleaned
        if "%Y" not in fmt:
            # year-less formats are read in the current year
            candidate, fmt = f"{cleaned} {today.year}", f"{fmt} %Y"
        try:
            return datetime.strptime(candidate, fmt).date()
        except ValueError:
            continue
    return None


def parse_date_phrase(phrase: str, today: date) -> Optional[date]:
    """
    Resolve a date phrase relative to ``today`` without clamping.

    Returns None when the phrase is not recognised.
    """
    text = (phrase or "").strip().lower()
    if not text:
        return None

    for keyword in DatePhrase:
        if keyword.value in text:
            if keyword == DatePhrase.NEXT_MONTH:
                return _add_one_month(today)
            return today + timedelta(days=DAY_OFFSETS[keyword])

    match = _WEEKDAY_PATTERN.search(text)
    if match:
        target = WEEKDAYS.index(match.group(1))
        days_ahead = target - today.weekday()
        if days_ahead <= 0:
            days_ahead += 7
        return today + timedelta(days=days_ahead)

    return _parse_generic_date(text, today)


def parse_time_phrase(phrase: str) -> Optional[time]:
    """Resolve a time phrase to a clock time, or None if unrecognised."""
    text = (phrase or "").strip().lower()
    if not text:
        return None

    for period in TimeOfDay:
        if period.value in text:
            return TIME_OF_DAY_CLOCK[period]

    match = _CLOCK_24H.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour < 24 and minute < 60:
            return time(hour, minute)
        return None

    match = _CLOCK_12H.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2) or 0)
        if not (1 <= hour <= 12 and minute < 60):
            return None
        hour = hour % 12
        if match.group(3) == "pm":
            hour += 12
        return time(hour, minute)

    return None


def clamp_to_now(day: date, clock: time, now: datetime) -> Tuple[date, time, bool]:
    """
    Move a slot that lies in the past forward.

    Past days become today; a passed time on today becomes the next whole
    hour, which rolls over to 00:00 tomorrow during the 23:00 hour.
    """
    clamped = False
    today = now.date()
    if day < today:
        day = today
        clamped = True
    if day == today and datetime.combine(day, clock) < now:
        next_hour = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
        return next_hour.date(), next_hour.time(), True
    return day, clock, clamped


class DateTimeNormalizer(DomainService):
    """
    Resolves a (date phrase, time phrase) pair into a bookable slot.

    Unrecognised input falls back to today / 09:00 and the result is
    always clamped so it never lies before ``now``.
    """

    def execute(self, date_phrase: str, time_phrase: str, now: datetime) -> ResolvedSlot:
        return self.resolve(date_phrase, time_phrase, now)

    def resolve(self, date_phrase: str, time_phrase: str, now: datetime) -> ResolvedSlot:
        if now.tzinfo is not None:
            # Slots are wall-clock values
            now = now.replace(tzinfo=None)

        day = parse_date_phrase(date_phrase, now.date())
        if day is None:
            day = now.date()
        clock = parse_time_phrase(time_phrase)
        if clock is None:
            clock = DEFAULT_TIME
        day, clock, clamped = clamp_to_now(day, clock, now)
        return ResolvedSlot(date=day, time=clock, clamped=clamped)
