"""
Temporal resolution for spoken scheduling phrases.

Each temporal form has its own matcher returning a typed value or None;
resolve_temporal() combines them in a fixed precedence order:

    explicit calendar date > weekday > today/tomorrow > relative offset
    explicit clock time > relative offset time > morning/afternoon/evening

All values are calendar-local to the user. When the transcript carries a
timezone marker ([UserTimeZone:...] or [UserOffsetMinutes:...]) the caller
extracts it with extract_timezone_hint() and computes "now" with local_now().
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Index matches date.weekday(): Monday=0
WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

NUMBER_WORDS = {
    "a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10, "twelve": 12,
    "fifteen": 15, "twenty": 20, "thirty": 30, "forty": 40, "forty-five": 45,
    "fifty": 50, "sixty": 60, "ninety": 90,
}
QUANTITY = r"(\d+|" + "|".join(sorted(NUMBER_WORDS, key=len, reverse=True)) + r")"

TIME_OF_DAY_DEFAULTS = {
    "morning": time(9, 0),
    "afternoon": time(14, 0),
    "evening": time(18, 0),
    "tonight": time(18, 0),
}

_MONTH = (
    r"(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)
_NOT_A_DAY = r"(?!\s*(?:[ap]\.?\s?m\b|:\d|o'?clock|minutes?\b|mins?\b|hours?\b|hrs?\b))"

MONTH_DAY_RE = re.compile(rf"\b{_MONTH}\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?\b{_NOT_A_DAY}", re.I)
DAY_MONTH_RE = re.compile(rf"\b(\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?{_MONTH}\b", re.I)

AMPM_TIME_RE = re.compile(r"\b(\d{1,2})(?::?(\d{2}))?\s*([ap])\.?\s?m\b\.?", re.I)
AT_TIME_RE = re.compile(
    r"\b(?:at|@|by|around)\s+(\d{1,2})(?::?(\d{2}))?(?:\s*o'?clock)?\b"
    r"(?!\s*(?:minutes?|mins?|hours?|hrs?|days?|weeks?|people|percent|%))",
    re.I,
)
COLON_TIME_RE = re.compile(r"\b(\d{1,2}):(\d{2})\b")
OCLOCK_RE = re.compile(r"\b(\d{1,2})\s*o'?clock\b", re.I)
NOON_RE = re.compile(r"\b(noon|midday|midnight)\b", re.I)

RELATIVE_DAY_RE = re.compile(r"\b(day after tomorrow|tomorrow|today|tonight|next week)\b", re.I)
RELATIVE_OFFSET_RE = re.compile(rf"\b(?:in|after)\s+{QUANTITY}\s+(minute|min|hour|hr|day|week)s?\b", re.I)
TIME_OF_DAY_RE = re.compile(r"\b(morning|afternoon|evening|tonight)\b", re.I)

TZ_HINT_RE = re.compile(r"\s*\[(UserTimeZone|UserOffsetMinutes):\s*([^\]]*)\]", re.I)

# Used by the heuristic resolver to strip time phrases from titles
TEMPORAL_PHRASE_PATTERNS = [
    re.compile(r"\b(?:on\s+)?(?:the\s+)?" + _MONTH + r"\.?\s+\d{1,2}(?:st|nd|rd|th)?\b", re.I),
    re.compile(r"\b(?:on\s+)?(?:the\s+)?\d{1,2}(?:st|nd|rd|th)?\s+(?:of\s+)?" + _MONTH + r"\b", re.I),
    re.compile(r"\b(?:at|@|by|around)?\s*\d{1,2}(?::?\d{2})?\s*(?:[ap]\.?\s?m\b\.?|o'?clock)", re.I),
    re.compile(r"\b(?:at|@|by|around)\s+\d{1,2}(?::?\d{2})?\b", re.I),
    re.compile(r"\b\d{1,2}:\d{2}\b"),
    re.compile(r"\b(?:at\s+)?(?:noon|midday|midnight)\b", re.I),
    re.compile(r"\b(?:on\s+|this\s+|next\s+)?(?:" + "|".join(WEEKDAYS) + r")s?\b", re.I),
    re.compile(r"\b(?:the\s+)?day after tomorrow\b|\btomorrow\b|\btoday\b|\btonight\b", re.I),
    re.compile(r"\b(?:this|next|in the)\s+(?:morning|afternoon|evening|week|month)\b", re.I),
    re.compile(r"\b(?:in|after)\s+" + QUANTITY + r"\s+(?:minute|min|hour|hr|day|week)s?\b", re.I),
]


class TemporalKind(str, Enum):
    CALENDAR_DATE = "calendar_date"
    WEEKDAY = "weekday"
    RELATIVE_DAY = "relative_day"
    RELATIVE_OFFSET = "relative_offset"
    CLOCK_TIME = "clock_time"
    TIME_OF_DAY = "time_of_day"


@dataclass
class RelativeOffset:
    amount: int
    unit: str  # minute | hour | day | week
    target: datetime

    @property
    def has_clock(self) -> bool:
        return self.unit in ("minute", "hour")


@dataclass
class TemporalResult:
    date: Optional[date] = None
    time: Optional[time] = None
    date_source: Optional[TemporalKind] = None
    time_source: Optional[TemporalKind] = None

    @property
    def date_str(self) -> Optional[str]:
        return self.date.strftime("%Y-%m-%d") if self.date else None

    @property
    def time_str(self) -> Optional[str]:
        return self.time.strftime("%H:%M") if self.time else None

    @property
    def is_empty(self) -> bool:
        return self.date is None and self.time is None


def parse_quantity(token: str) -> Optional[int]:
    token = token.strip().lower()
    if token.isdigit():
        return int(token)
    return NUMBER_WORDS.get(token)


def _month_number(token: str) -> int:
    return MONTHS[token.lower()[:3]]


def _as_date(now) -> date:
    return now.date() if isinstance(now, datetime) else now


def resolve_calendar_date(text: str, now: datetime) -> Optional[date]:
    """Resolve "<Month> <Day>" or "<Day> <Month>" in the current year."""
    candidates = []
    for match in MONTH_DAY_RE.finditer(text):
        candidates.append((match.start(), _month_number(match.group(1)), int(match.group(2))))
        break
    for match in DAY_MONTH_RE.finditer(text):
        candidates.append((match.start(), _month_number(match.group(2)), int(match.group(1))))
        break

    for _, month, day in sorted(candidates):
        try:
            return date(_as_date(now).year, month, day)
        except ValueError:
            continue
    return None


def resolve_weekday(text: str, now: datetime) -> Optional[date]:
    """
    Resolve the first weekday name in text to its nearest occurrence.
    Today counts: saying "Monday" on a Monday means today, not next week.
    """
    lowered = text.lower()
    found = [(lowered.find(name), index) for index, name in enumerate(WEEKDAYS) if name in lowered]
    if not found:
        return None
    _, target = min(found)
    today = _as_date(now)
    days_until = (target - today.weekday() + 7) % 7
    return today + timedelta(days=days_until)


def resolve_relative_day(text: str, now: datetime) -> Optional[date]:
    match = RELATIVE_DAY_RE.search(text)
    if not match:
        return None
    word = match.group(1).lower()
    today = _as_date(now)
    if word == "day after tomorrow":
        return today + timedelta(days=2)
    if word == "tomorrow":
        return today + timedelta(days=1)
    if word == "next week":
        return today + timedelta(days=7)
    return today


def _to_24h(hours: int, minutes: int, meridiem: Optional[str]) -> Optional[time]:
    if minutes > 59:
        return None
    if meridiem:
        if hours < 1 or hours > 12:
            return None
        if meridiem == "p" and hours != 12:
            hours += 12
        if meridiem == "a" and hours == 12:
            hours = 0
    if hours > 23:
        return None
    return time(hours, minutes)


def _ambiguous_hour(hours: int, minutes: int, policy: str) -> Optional[time]:
    """Apply the configured policy to a clock value with no am/pm marker."""
    if hours == 0 or hours >= 13:
        return _to_24h(hours, minutes, None)
    if policy == "strict":
        return None
    if 1 <= hours <= 7:
        hours += 12
    return _to_24h(hours, minutes, None)


def resolve_clock_time(text: str, policy: str = "pm_bias") -> Optional[time]:
    """
    Resolve an explicit clock time.

    Times with am/pm convert directly. Times without a marker are a
    heuristic: under "pm_bias" hours 1-7 become PM and 8-12 stay as spoken;
    under "strict" they are not resolved unless written as 24-hour values.
    """
    match = AMPM_TIME_RE.search(text)
    if match:
        resolved = _to_24h(int(match.group(1)), int(match.group(2) or 0), match.group(3).lower())
        if resolved:
            return resolved

    match = NOON_RE.search(text)
    if match:
        return time(0, 0) if match.group(1).lower() == "midnight" else time(12, 0)

    for pattern in (AT_TIME_RE, COLON_TIME_RE, OCLOCK_RE):
        match = pattern.search(text)
        if match:
            minutes = int(match.group(2)) if pattern is not OCLOCK_RE and match.group(2) else 0
            return _ambiguous_hour(int(match.group(1)), minutes, policy)
    return None


def resolve_relative_offset(text: str, now: datetime) -> Optional[RelativeOffset]:
    match = RELATIVE_OFFSET_RE.search(text)
    if not match:
        return None
    amount = parse_quantity(match.group(1))
    if amount is None:
        return None
    unit = {"min": "minute", "hr": "hour"}.get(match.group(2).lower(), match.group(2).lower())
    try:
        target = now + timedelta(**{f"{unit}s": amount})
    except (OverflowError, ValueError):
        # Past datetime.max ("in 1000000 weeks")
        return None
    return RelativeOffset(amount=amount, unit=unit, target=target)


def resolve_time_of_day(text: str) -> Optional[time]:
    match = TIME_OF_DAY_RE.search(text)
    if not match:
        return None
    return TIME_OF_DAY_DEFAULTS[match.group(1).lower()]


def resolve_temporal(text: str, now: datetime, policy: str = "pm_bias") -> TemporalResult:
    result = TemporalResult()

    clock = resolve_clock_time(text, policy)
    if clock is not None:
        result.time, result.time_source = clock, TemporalKind.CLOCK_TIME

    for kind, matcher in (
        (TemporalKind.CALENDAR_DATE, resolve_calendar_date),
        (TemporalKind.WEEKDAY, resolve_weekday),
        (TemporalKind.RELATIVE_DAY, resolve_relative_day),
    ):
        day = matcher(text, now)
        if day is not None:
            result.date, result.date_source = day, kind
            break

    if result.date is None:
        offset = resolve_relative_offset(text, now)
        if offset is not None:
            result.date, result.date_source = offset.target.date(), TemporalKind.RELATIVE_OFFSET
            if result.time is None and offset.has_clock:
                result.time = offset.target.time().replace(second=0, microsecond=0)
                result.time_source = TemporalKind.RELATIVE_OFFSET

    if result.time is None:
        default = resolve_time_of_day(text)
        if default is not None:
            result.time, result.time_source = default, TemporalKind.TIME_OF_DAY

    return result


def extract_timezone_hint(text: str) -> tuple[str, Optional[tzinfo]]:
    """
    Remove a [UserTimeZone:<IANA>] or [UserOffsetMinutes:<N>] marker from text.
    UserOffsetMinutes uses the browser getTimezoneOffset() sign (UTC minus local).
    """
    match = TZ_HINT_RE.search(text)
    if not match:
        return text, None
    cleaned = (text[:match.start()] + text[match.end():]).strip()
    kind, value = match.group(1).lower(), match.group(2).strip()

    if kind == "usertimezone":
        try:
            return cleaned, ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            return cleaned, None
    try:
        return cleaned, timezone(-timedelta(minutes=int(float(value))))
    except (OverflowError, ValueError):
        return cleaned, None


def format_timezone_hint(tz: Optional[tzinfo]) -> str:
    """Inverse of extract_timezone_hint, for re-attaching a hint to a fragment."""
    if tz is None:
        return ""
    if isinstance(tz, ZoneInfo):
        return f" [UserTimeZone:{tz.key}]"
    offset = tz.utcoffset(None)
    if offset is None:
        return ""
    return f" [UserOffsetMinutes:{-int(offset.total_seconds() // 60)}]"


def local_now(tz: Optional[tzinfo] = None) -> datetime:
    return datetime.now(tz) if tz else datetime.now()


def compose_due_date(date_str: Optional[str], time_str: Optional[str],
                     tz: Optional[tzinfo] = None) -> Optional[str]:
    """Compose a local ISO instant from YYYY-MM-DD and HH:mm."""
    if not date_str or not time_str:
        return None
    try:
        naive = datetime.strptime(f"{date_str}T{time_str}", "%Y-%m-%dT%H:%M")
    except ValueError:
        return None
    local = naive.replace(tzinfo=tz) if tz else naive.astimezone()
    return local.isoformat(timespec="seconds")


def split_due_date(due_date: Optional[str],
                   tz: Optional[tzinfo] = None) -> tuple[Optional[str], Optional[str]]:
    """Inverse of compose_due_date: local (YYYY-MM-DD, HH:mm) of an ISO instant."""
    if not isinstance(due_date, str):
        return None, None
    try:
        parsed = datetime.fromisoformat(due_date.strip().replace("Z", "+00:00"))
    except ValueError:
        return None, None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tz)
    return parsed.strftime("%Y-%m-%d"), parsed.strftime("%H:%M")
