"""
Merges per-fragment commands of one transcript into the final ordered list.

Fragments flagged applyToLastScheduled (and bare "remind me N minutes
before" reminders) never become tasks of their own: their title/reminders
are merged into the most recent scheduled command of the batch, or into the
caller's last scheduled task as a ScheduledUpdate, or held until the next
command when neither exists yet. The last scheduled id is state owned by
the caller; it goes in as an argument and comes back in the result.
"""
import logging
import re
import uuid
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

from models import ReconcileResult, ScheduledUpdate, VoiceCommand
from reminders import merge_reminders
from temporal import compose_due_date, local_now

logger = logging.getLogger(__name__)

MATERIALIZABLE_INTENTS = ("task", "reminder", "note", "schedule")

BASE_DATE_RE = re.compile(r"\b(today|tonight|(?<!after )tomorrow)\b", re.I)
PM_CUE_RE = re.compile(r"\b\d{1,2}(?::?\d{2})?\s*p\.?\s?m\b|\bp\.m\.", re.I)
AM_CUE_RE = re.compile(r"\b\d{1,2}(?::?\d{2})?\s*a\.?\s?m\b|\ba\.m\.|\bmorning\b", re.I)


def infer_base_date(transcript: str, now: datetime) -> Optional[date]:
    """Transcript-wide date from "today"/"tonight"/"tomorrow"; the earliest mention wins."""
    match = BASE_DATE_RE.search(transcript)
    if not match:
        return None
    today = now.date()
    return today + timedelta(days=1) if match.group(1).lower() == "tomorrow" else today


def is_bare_reminder(command: VoiceCommand) -> bool:
    """A reminder-intent fragment carrying offsets but no scheduling data of its own."""
    data = command.extracted_data
    return (
        command.intent == "reminder"
        and data is not None
        and bool(data.reminders)
        and not (data.date or data.time or data.due_date)
    )


def _shift_to_pm(clock: str) -> str:
    hours, minutes = (int(part) for part in clock.split(":"))
    if 1 <= hours <= 11:
        hours += 12
    return f"{hours:02d}:{minutes:02d}"


def reconcile(commands: list[VoiceCommand], transcript: str,
              last_scheduled_id: Optional[str] = None,
              now: Optional[datetime] = None,
              tz: Optional[tzinfo] = None) -> ReconcileResult:
    """
    Process commands in textual order and return the materializable ones,
    the updated last scheduled id, and updates for tasks from earlier batches.
    """
    now = now or local_now(tz)
    base_date = infer_base_date(transcript, now)
    pm_cue = bool(PM_CUE_RE.search(transcript))

    emitted: list[VoiceCommand] = []
    scheduled: dict[str, VoiceCommand] = {}
    updates: dict[str, ScheduledUpdate] = {}
    pending_reminders: Optional[list[int]] = None
    batch_last_id = last_scheduled_id
    last_date: Optional[str] = None

    for command in commands:
        data = command.data

        if data.apply_to_last_scheduled or is_bare_reminder(command):
            target = scheduled.get(batch_last_id) if batch_last_id else None
            if target is not None:
                if data.title:
                    target.data.title = data.title
                target.data.reminders = merge_reminders(target.data.reminders, data.reminders)
                logger.debug("Merged %r into command %s", command.text, target.id)
            elif batch_last_id is not None:
                update = updates.setdefault(batch_last_id, ScheduledUpdate(target_id=batch_last_id))
                if data.title:
                    update.title = data.title
                update.reminders = merge_reminders(update.reminders, data.reminders)
            elif data.reminders:
                pending_reminders = merge_reminders(pending_reminders or [], data.reminders)
            continue

        command.id = command.id or str(uuid.uuid4())
        materializable = command.intent in MATERIALIZABLE_INTENTS

        if materializable and pending_reminders:
            data.reminders = merge_reminders(data.reminders, pending_reminders)
            pending_reminders = None

        if not data.date and data.time:
            fallback_date = last_date or (base_date.strftime("%Y-%m-%d") if base_date else None)
            if fallback_date:
                data.date = fallback_date
                if pm_cue and not AM_CUE_RE.search(command.text):
                    data.time = _shift_to_pm(data.time)

        if data.date and data.time:
            data.due_date = compose_due_date(data.date, data.time, tz)
        if data.date:
            last_date = data.date

        if materializable and data.due_date:
            batch_last_id = command.id
            scheduled[command.id] = command
        emitted.append(command)

    if pending_reminders:
        logger.info("Reminders %s had no scheduled command to attach to", pending_reminders)

    return ReconcileResult(
        commands=emitted,
        last_scheduled_id=batch_last_id,
        updates=list(updates.values()),
    )
