"""
Deterministic command resolution, used when the LLM is disabled,
unreachable, or returns something unusable.
"""
import re
from datetime import datetime, tzinfo
from typing import Optional

from models import ExtractedData, VoiceCommand
from reminders import BACK_REFERENCE_RE, extract_reminder_offsets, refers_to_last_scheduled
from temporal import (
    QUANTITY,
    TEMPORAL_PHRASE_PATTERNS,
    TIME_OF_DAY_RE,
    compose_due_date,
    extract_timezone_hint,
    local_now,
    parse_quantity,
    resolve_temporal,
)

# Checked in order; the first intent whose pattern matches wins
INTENT_PATTERNS = [
    ("findTime", re.compile(
        r"\bfind\b.*\b(?:time|slot|hours?|minutes)\b|\bwhen can i\b|\bfree time\b|\bavailable time\b|\bgood time\b",
        re.I)),
    ("delete", re.compile(r"\b(?:delete|remove|cancel|clear|erase)\b", re.I)),
    ("complete", re.compile(
        r"^(?:please\s+)?(?:complete|finish)\b|\bmark\b.*\b(?:done|complete|completed|finished)\b"
        r"|\bcheck off\b|\b(?:is|are)\s+(?:done|finished|completed)\b", re.I)),
    ("reminder", re.compile(r"\bremind\b|\breminder\b|\balert\b|\bnotify\b|\bwake me up\b|\bdon'?t (?:let me )?forget\b", re.I)),
    ("note", re.compile(r"^(?:please\s+)?(?:note|write down|jot down|record)\b|\b(?:take|make) a note\b", re.I)),
    ("schedule", re.compile(r"\b(?:schedule|meeting|appointment|book|arrange|event)\b", re.I)),
    ("task", re.compile(r"\b(?:add|create|new|make|need to|todo|to-do|task)\b", re.I)),
]

HIGH_PRIORITY_RE = re.compile(r"\b(?:urgent|urgently|important|asap|critical|high priority)\b", re.I)
LOW_PRIORITY_RE = re.compile(r"\b(?:low priority|minor|whenever|sometime|no rush)\b", re.I)

# Only a fragment that opens with the rename counts; "call that plumber" is a task
RENAME_RE = re.compile(
    r"^(?:(?:and|then|also)\s+)?(?:please\s+)?"
    r"(?:(?:call|name)\s+(?:it|this)|(?:rename|title)\s+(?:it|this|that))(?:\s+(?:to|as))?\s+(?P<title>.+)$",
    re.I,
)
DURATION_RE = re.compile(rf"\bfor\s+(?:about\s+)?(?:(half an? hour)|{QUANTITY}\s+(minute|min|hour|hr)s?)\b", re.I)
EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")

LEADING_COMMAND_RE = re.compile(
    r"^(?:please\s+)?(?:add|create|make|schedule|book|set up|set|put|plan|remind me(?:\s+to)?|remind"
    r"|note(?:\s+that)?|write down|jot down|record|delete|remove|cancel|complete|finish|mark)\b\s*"
    r"(?:(?:a|an|the|new|my)\s+)?(?:(?:task|reminder|note|to-?do)\s+(?:to|for|about)\s+)?",
    re.I,
)
CALENDAR_PHRASE_RE = re.compile(r"\b(?:to|on|in|into)\s+(?:my\s+|the\s+)?calendar\b", re.I)
REMINDER_PHRASE_RE = re.compile(
    r"\b(?:(?:with\s+)?an?\s+reminder\s+|remind me\s+)?"
    r"(?:\d+|half|quarter|an?(?=\s+(?:hour|hr|day|minute))|one|two|three|four|five|ten|fifteen|twenty|thirty"
    r"|forty-five|sixty|ninety)\b[^,.;]{0,40}?\bbefore(?:hand)?\b",
    re.I,
)
STATUS_PHRASE_RE = re.compile(r"\s+as\s+(?:done|complete|completed|finished)\b", re.I)
PRIORITY_PHRASE_RE = re.compile(r"\b(?:urgent|urgently|asap|high priority|low priority|no rush)\b", re.I)
DANGLING_RE = re.compile(r"(?:^\s*(?:to|and)\s+)|(?:\s+(?:on|at|for|by|in|to|from|with|and)\s*$)", re.I)


def detect_intent(text: str) -> Optional[str]:
    for intent, pattern in INTENT_PATTERNS:
        if pattern.search(text):
            return intent
    return None


def detect_priority(text: str) -> str:
    if HIGH_PRIORITY_RE.search(text):
        return "high"
    if LOW_PRIORITY_RE.search(text):
        return "low"
    return "medium"


def detect_time_preference(text: str) -> Optional[str]:
    match = TIME_OF_DAY_RE.search(text)
    if not match:
        return None
    word = match.group(1).lower()
    return "evening" if word == "tonight" else word


def detect_duration(text: str) -> Optional[int]:
    match = DURATION_RE.search(text)
    if not match:
        return None
    if match.group(1):
        return 30
    amount = parse_quantity(match.group(2))
    if amount is None:
        return None
    return amount * 60 if match.group(3).lower() in ("hour", "hr") else amount


def extract_attendees(text: str) -> list[dict]:
    return [{"email": email} for email in dict.fromkeys(EMAIL_RE.findall(text))]


def clean_title(text: str, strip_reminders: bool = False) -> str:
    """Strip command words, calendar phrases and time phrases from a command."""
    title = EMAIL_RE.sub(" ", text)
    title = LEADING_COMMAND_RE.sub("", title.strip())
    title = CALENDAR_PHRASE_RE.sub(" ", title)
    title = STATUS_PHRASE_RE.sub(" ", title)
    title = PRIORITY_PHRASE_RE.sub(" ", title)
    if strip_reminders:
        title = REMINDER_PHRASE_RE.sub(" ", title)
        title = BACK_REFERENCE_RE.sub(" ", title)
    for pattern in TEMPORAL_PHRASE_PATTERNS:
        title = pattern.sub(" ", title)

    title = re.sub(r"\s+", " ", title).strip(" ,.;!?-")
    previous = None
    while previous != title:
        previous = title
        title = DANGLING_RE.sub("", title).strip(" ,.;!?-")
    return title


def heuristic_command(text: str, now: Optional[datetime] = None, tz: Optional[tzinfo] = None,
                      policy: str = "pm_bias", error: Optional[str] = None) -> VoiceCommand:
    """
    Resolve one command with the temporal resolver and reminder extractor only.
    Never raises; unrecognised input becomes a low-confidence "unknown".
    """
    cleaned, hinted_tz = extract_timezone_hint(text)
    tz = tz or hinted_tz
    if now is None:
        now = local_now(tz)

    temporal = resolve_temporal(cleaned, now, policy)
    reminders = extract_reminder_offsets(cleaned)
    rename = RENAME_RE.match(cleaned.strip())
    apply_to_last = bool(rename) or (
        bool(reminders) and (refers_to_last_scheduled(cleaned) or temporal.is_empty))

    intent = detect_intent(cleaned)
    if apply_to_last:
        intent = "reminder" if reminders else (intent or "task")
    elif intent in (None, "task") and not temporal.is_empty:
        intent = "schedule"

    if apply_to_last:
        title = rename.group("title").strip(" .,!?") if rename else None
    else:
        title = clean_title(cleaned, strip_reminders=bool(reminders)) or None

    data = ExtractedData(
        title=title,
        date=temporal.date_str,
        time=temporal.time_str,
        due_date=compose_due_date(temporal.date_str, temporal.time_str, tz),
        priority=detect_priority(cleaned),
        time_preference=detect_time_preference(cleaned),
        duration=detect_duration(cleaned),
        reminders=reminders,
        apply_to_last_scheduled=apply_to_last,
        attendees=extract_attendees(cleaned) or None,
    )

    if intent is None:
        return VoiceCommand(text=text, intent="unknown", confidence=0.3,
                            extracted_data=data, error=error)
    return VoiceCommand(text=text, intent=intent, confidence=0.5, extracted_data=data, error=error)
