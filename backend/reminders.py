"""
Reminder offset extraction ("30 minutes before", "an hour beforehand").

Offsets are minutes before the due time, always sorted ascending without
duplicates. Numbers only count as reminders when the text carries a cue:
"before"/"beforehand", "remind me", or a back-reference such as
"this appointment". Quantities introduced by in/after/for/within are
relative times or durations ("meeting for 30 minutes") and never reminders.
"""
import re
from typing import Iterable

from temporal import QUANTITY, parse_quantity

UNIT_MINUTES = {"m": 1, "min": 1, "minute": 1, "h": 60, "hr": 60, "hour": 60, "d": 1440, "day": 1440}

BACK_REFERENCE_RE = re.compile(
    r"\b(?:this|that|the same)\s+(?:appointment|meeting|event|call|task|reminder|one)\b"
    r"|\b(?:for|about|of|before)\s+it\b",
    re.I,
)
REMINDER_CUE_RE = re.compile(r"\bbefore(?:hand)?\b|\bremind me\b", re.I)

NOT_A_REMINDER_RE = re.compile(
    rf"\b(?:in|after|for|within|lasting)\s+(?:about\s+)?"
    rf"(?:half\s+an?\s+hour|(?:a\s+)?quarter\s+(?:of\s+)?(?:an\s+)?hour|(?:\d+\.\d+|{QUANTITY})[\s-]+(?:minute|min|hour|hr|day|week)s?)\b",
    re.I,
)
HALF_HOUR_RE = re.compile(r"\bhalf\s+(?:an\s+)?hour\b", re.I)
QUARTER_HOUR_RE = re.compile(r"\b(?:a\s+)?quarter\s+(?:of\s+)?(?:an\s+)?hour\b", re.I)
QUANTITY_UNIT_RE = re.compile(rf"\b{QUANTITY}[\s-]+(minute|min|hour|hr|day)s?\b", re.I)
DECIMAL_UNIT_RE = re.compile(r"(?<![\d.])(\d+\.\d+)\s*(minute|min|hour|hr|day|m|h|d)s?\b", re.I)
SHORTHAND_RE = re.compile(r"(?<![\d.])\b(\d+)\s*(m|h|d)\b", re.I)


def normalize_reminders(value) -> list[int]:
    """Coerce any iterable of offsets into a sorted, de-duplicated list of non-negative ints."""
    if value is None or isinstance(value, (str, bytes, dict)):
        return []
    offsets = set()
    for item in value:
        if isinstance(item, bool):
            continue
        try:
            minutes = int(item)
        except (TypeError, ValueError):
            continue
        if minutes >= 0:
            offsets.add(minutes)
    return sorted(offsets)


def merge_reminders(*groups: Iterable[int]) -> list[int]:
    merged = []
    for group in groups:
        merged.extend(group or [])
    return normalize_reminders(merged)


def has_reminder_cue(text: str) -> bool:
    return bool(REMINDER_CUE_RE.search(text) or BACK_REFERENCE_RE.search(text))


def refers_to_last_scheduled(text: str) -> bool:
    """True for explicit back-references like "this appointment" or "that meeting"."""
    return bool(BACK_REFERENCE_RE.search(text))


def _blank(text: str, match: re.Match) -> str:
    return text[:match.start()] + " " * (match.end() - match.start()) + text[match.end():]


def extract_reminder_offsets(text: str) -> list[int]:
    if not text or not has_reminder_cue(text):
        return []

    remaining = NOT_A_REMINDER_RE.sub(lambda m: " " * len(m.group(0)), text)
    offsets = []

    for pattern, minutes in ((HALF_HOUR_RE, 30), (QUARTER_HOUR_RE, 15)):
        for match in list(pattern.finditer(remaining)):
            offsets.append(minutes)
            remaining = _blank(remaining, match)

    # "1.5 hours" before QUANTITY_UNIT_RE can read it as "5 hours"
    for match in list(DECIMAL_UNIT_RE.finditer(remaining)):
        offsets.append(round(float(match.group(1)) * UNIT_MINUTES[match.group(2).lower()]))
        remaining = _blank(remaining, match)

    for match in list(QUANTITY_UNIT_RE.finditer(remaining)):
        amount = parse_quantity(match.group(1))
        if amount is not None:
            offsets.append(amount * UNIT_MINUTES[match.group(2).lower()])
        remaining = _blank(remaining, match)

    for match in SHORTHAND_RE.finditer(remaining):
        offsets.append(int(match.group(1)) * UNIT_MINUTES[match.group(2).lower()])

    return normalize_reminders(offsets)


def format_reminder_offsets(offsets: Iterable[int]) -> str:
    """Canonical short form, e.g. [30, 60] -> "30m, 1h before"."""
    parts = []
    for minutes in normalize_reminders(list(offsets)):
        if minutes and minutes % 1440 == 0:
            parts.append(f"{minutes // 1440}d")
        elif minutes and minutes % 60 == 0:
            parts.append(f"{minutes // 60}h")
        else:
            parts.append(f"{minutes}m")
    return f"{', '.join(parts)} before" if parts else ""
