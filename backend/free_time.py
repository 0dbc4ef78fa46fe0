"""
Free-time search for "findTime" commands ("find an hour tomorrow afternoon
to review the deck"). Calendar events are supplied by the caller.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional

from models import CalendarEvent
from temporal import local_now, resolve_clock_time, resolve_weekday

# Preference windows as (start hour, end hour) on the slot's day
PREFERENCE_WINDOWS = {
    "morning": (6, 12),
    "afternoon": (12, 17),
    "evening": (17, 23),
}
DEFAULT_DURATION = 60

HOUR_RE = re.compile(r"(\d+)\s*hour", re.I)
MINUTE_RE = re.compile(r"(\d+)\s*minute", re.I)
WINDOW_RE = re.compile(
    r"between\s+(\d{1,2}(?::?\d{2})?\s*(?:[ap]\.?\s?m\.?)?)\s+and\s+(\d{1,2}(?::?\d{2})?\s*(?:[ap]\.?\s?m\.?)?)",
    re.I,
)


@dataclass
class TimeSlot:
    start: datetime
    end: datetime

    @property
    def duration(self) -> int:
        """Length in whole minutes."""
        return int((self.end - self.start).total_seconds() // 60)


@dataclass
class TimePreference:
    duration: int = DEFAULT_DURATION
    preference: Optional[str] = None
    day: Optional[date] = None
    window_start: Optional[time] = None
    window_end: Optional[time] = None


def parse_time_preference(text: str, now: Optional[datetime] = None) -> TimePreference:
    now = now or local_now()
    lowered = text.lower()
    result = TimePreference()

    if "morning" in lowered:
        result.preference = "morning"
    elif "afternoon" in lowered:
        result.preference = "afternoon"
    elif "evening" in lowered or "tonight" in lowered:
        result.preference = "evening"

    # Minutes win over hours when both are spoken
    match = HOUR_RE.search(lowered)
    if match:
        result.duration = int(match.group(1)) * 60
    match = MINUTE_RE.search(lowered)
    if match:
        result.duration = int(match.group(1))

    match = WINDOW_RE.search(text)
    if match:
        result.window_start = resolve_clock_time(f"at {match.group(1)}")
        result.window_end = resolve_clock_time(f"at {match.group(2)}")

    if "tomorrow" in lowered:
        result.day = now.date() + timedelta(days=1)
    elif "today" in lowered or "tonight" in lowered:
        result.day = now.date()
    else:
        result.day = resolve_weekday(text, now)
    return result


def _align(value: datetime, tz: Optional[tzinfo]) -> datetime:
    """Bring an event time into the zone (or naive local time) of the day being searched."""
    if tz is None:
        return value.astimezone().replace(tzinfo=None) if value.tzinfo else value
    return value.astimezone(tz) if value.tzinfo else value.replace(tzinfo=tz)


def find_free_time_slots(events: list[CalendarEvent], day: date, min_duration: int = 30,
                         working_hours: tuple[int, int] = (0, 24),
                         tz: Optional[tzinfo] = None) -> list[TimeSlot]:
    """Gaps of at least min_duration minutes between events within working hours."""
    day_start = datetime.combine(day, time(0), tzinfo=tz) + timedelta(hours=working_hours[0])
    day_end = datetime.combine(day, time(0), tzinfo=tz) + timedelta(hours=working_hours[1])

    busy = sorted(
        (_align(event.start, tz), _align(event.end, tz)) for event in events
    )

    slots = []
    current = day_start
    for start, end in busy:
        if start > current:
            gap_end = min(start, day_end)
            if (gap_end - current) >= timedelta(minutes=min_duration):
                slots.append(TimeSlot(start=current, end=gap_end))
        if end > current:
            current = end
        if current >= day_end:
            break

    if current < day_end and (day_end - current) >= timedelta(minutes=min_duration):
        slots.append(TimeSlot(start=current, end=day_end))
    return slots


def find_best_time_slot(slots: list[TimeSlot], preference: Optional[str] = None,
                        duration: int = DEFAULT_DURATION) -> Optional[TimeSlot]:
    """
    Place a block of `duration` minutes, inside the preferred window when one
    fits, otherwise at the start of the earliest slot that is long enough.
    """
    suitable = [slot for slot in slots if slot.duration >= duration]
    if not suitable:
        return None
    length = timedelta(minutes=duration)

    if preference in PREFERENCE_WINDOWS:
        window_start_hour, window_end_hour = PREFERENCE_WINDOWS[preference]
        for slot in suitable:
            midnight = slot.start.replace(hour=0, minute=0, second=0, microsecond=0)
            window_start = midnight + timedelta(hours=window_start_hour)
            window_end = midnight + timedelta(hours=window_end_hour)
            candidate = max(slot.start, window_start)
            if candidate + length <= min(slot.end, window_end):
                return TimeSlot(start=candidate, end=candidate + length)

    first = suitable[0]
    return TimeSlot(start=first.start, end=first.start + length)


def format_time_slot(slot: TimeSlot) -> str:
    def clock(value: datetime) -> str:
        return value.strftime("%I:%M %p").lstrip("0")
    return f"{clock(slot.start)} - {clock(slot.end)}"


def suggest_time_slot(text: str, events: list[CalendarEvent], now: Optional[datetime] = None,
                      tz: Optional[tzinfo] = None) -> Optional[TimeSlot]:
    """Best slot for a findTime command, honoring "between X and Y" when spoken."""
    now = now or local_now(tz)
    wanted = parse_time_preference(text, now)
    day = wanted.day or now.date()

    slots = find_free_time_slots(events, day, wanted.duration, tz=tz)
    if wanted.window_start and wanted.window_end and wanted.window_start < wanted.window_end:
        window_start = datetime.combine(day, wanted.window_start, tzinfo=tz)
        window_end = datetime.combine(day, wanted.window_end, tzinfo=tz)
        slots = [
            TimeSlot(start=max(slot.start, window_start), end=min(slot.end, window_end))
            for slot in slots
            if slot.start < window_end and slot.end > window_start
        ]
    return find_best_time_slot(slots, wanted.preference, wanted.duration)
