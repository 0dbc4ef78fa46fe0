"""
Splits one spoken transcript into independently resolvable command fragments.

Splitting is staged and conservative: connector phrases, then sentence
boundaries, then repeated-noun cues ("another meeting"), then a cleanup
pass that drops connector residue. Time expressions contain separator-like
tokens ("30 minutes and an hour before"), so a connector split is undone
when the right-hand side starts with a quantity or a month-day date.
"""
import logging
import re

from models import CommandFragment
from temporal import QUANTITY, TEMPORAL_PHRASE_PATTERNS, WEEKDAYS

logger = logging.getLogger(__name__)

# Order matters: longer connectors are tried before their substrings
SEPARATORS = [", and ", " and then ", " also ", " plus ", " and ", ", ", " & ", " then "]

SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z])")
REPEATED_NOUN_RE = re.compile(r"\s+(?=another\s+(?:appointment|meeting|event)\b)", re.I)

JOINED_RIGHT_RE = re.compile(
    rf"^\s*(?:\d|half\b|(?:a\s+)?quarter\b|{QUANTITY}\s+(?:minute|min|hour|hr|day)s?\b"
    r"|(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+\d)",
    re.I,
)
LEADING_CONNECTOR_RE = re.compile(r"^(?:(?:and|then|also|plus|&)\s+)+", re.I)
TRAILING_CONNECTOR_RE = re.compile(r"(?:\s+(?:and|then|also|plus|&))+$", re.I)
RESIDUE_RE = re.compile(
    r"^(?:(?:and|then|also|plus)\s*)?(?:(?:schedule|add|create|do|make)\s*)?(?:it|that|this|one)?$",
    re.I,
)

COMMAND_VERB_RE = re.compile(
    r"^(?:please\s+)?(?:add|create|make|schedule|book|set|put|plan|remind|note|write|jot|record"
    r"|delete|remove|cancel|clear|complete|finish|mark|check|find|rename|call\s+(?:it|this|that))\b",
    re.I,
)
CONTEXTUAL_START_RE = re.compile(
    r"^(?:another\b|on\s+\w+|at\s+\d|tomorrow\b|today\b|tonight\b|next\s+\w+|(?:"
    + "|".join(WEEKDAYS) + r")\b)",
    re.I,
)
BASE_NOUN_RE = re.compile(r"\b(appointment|meeting|event|reminder|note|task)\b", re.I)
CALENDAR_NOUNS = ("appointment", "meeting", "event")


def _split_on(part: str, separator: str) -> list[str]:
    pieces = re.split(f"({re.escape(separator)})", part, flags=re.I)
    merged = [pieces[0]]
    for index in range(1, len(pieces), 2):
        found, right = pieces[index], pieces[index + 1]
        if JOINED_RIGHT_RE.match(right):
            merged[-1] = f"{merged[-1]}{found}{right}"
        else:
            merged.append(right)
    return merged


def _clean(fragment: str) -> str:
    text = fragment.strip().strip(".,;!? ")
    text = LEADING_CONNECTOR_RE.sub("", text)
    text = TRAILING_CONNECTOR_RE.sub("", text)
    return text.strip().strip(".,;!? ")


def split_utterance(transcript: str) -> list[str]:
    """Split a transcript into ordered raw command segments."""
    parts = [transcript]

    for separator in SEPARATORS:
        next_parts = []
        for part in parts:
            if separator.lower() in part.lower():
                next_parts.extend(_split_on(part, separator))
            else:
                next_parts.append(part)
        parts = next_parts

    parts = [piece for part in parts for piece in SENTENCE_BOUNDARY_RE.split(part)]
    parts = [piece for part in parts for piece in REPEATED_NOUN_RE.split(part)]

    fragments = []
    for part in parts:
        cleaned = _clean(part)
        if cleaned and not RESIDUE_RE.match(cleaned):
            fragments.append(cleaned)
    return fragments


def has_temporal_expression(text: str) -> bool:
    return any(pattern.search(text) for pattern in TEMPORAL_PHRASE_PATTERNS)


def base_noun(transcript: str) -> str | None:
    match = BASE_NOUN_RE.search(transcript)
    return match.group(1).lower() if match else None


def normalize_fragment(fragment: str, transcript: str) -> str:
    """
    Rewrite a fragment into a self-contained imperative command.

    Fragments like "another one Friday at 3" borrow the noun of the parent
    utterance ("appointment") and get a verb: "schedule" for calendar nouns
    with a time expression, "add" otherwise.
    """
    text = fragment.strip()
    if COMMAND_VERB_RE.match(text):
        return text

    noun = base_noun(transcript)
    verb = "add"
    if noun and CONTEXTUAL_START_RE.match(text):
        text = re.sub(r"^another\s+(?:one\s+)?", "", text, flags=re.I)
        if not re.search(rf"\b{noun}\b", text, re.I):
            text = f"{noun} {text}"
        if noun in CALENDAR_NOUNS and has_temporal_expression(text):
            verb = "schedule"
    return f"{verb} {text}"


def split_into_fragments(transcript: str) -> list[CommandFragment]:
    """Split and normalize; a single-command transcript is passed through as is."""
    parts = split_utterance(transcript)
    if len(parts) <= 1:
        text = parts[0] if parts else transcript.strip()
        return [CommandFragment(text=text, source_index=0)] if text else []

    fragments = [
        CommandFragment(text=normalize_fragment(part, transcript), source_index=index)
        for index, part in enumerate(parts)
    ]
    logger.debug("Split transcript into %d fragments: %s", len(fragments), [f.text for f in fragments])
    return fragments
