import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from reminders import normalize_reminders

INTENTS = ("task", "reminder", "note", "schedule", "findTime", "delete", "complete", "unknown")
PRIORITIES = ("low", "medium", "high")
TIME_PREFERENCES = ("morning", "afternoon", "evening")

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")


class Attendee(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    display_name: Optional[str] = Field(default=None, alias="displayName")


class ExtractedData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    date: Optional[str] = None  # YYYY-MM-DD, user local
    time: Optional[str] = None  # HH:mm (24h), user local
    due_date: Optional[str] = Field(default=None, alias="dueDate")  # advisory, date/time win
    priority: str = "medium"
    time_preference: Optional[str] = Field(default=None, alias="timePreference")
    duration: Optional[int] = None  # minutes
    description: Optional[str] = None
    reminders: list[int] = Field(default_factory=list)  # minutes before dueDate
    apply_to_last_scheduled: bool = Field(default=False, alias="applyToLastScheduled")
    attendees: Optional[list[Attendee]] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    @field_validator("date", mode="before")
    @classmethod
    def _check_date(cls, value):
        if not isinstance(value, str):
            return None
        value = value.strip()[:10]
        try:
            datetime.strptime(value, "%Y-%m-%d")
        except ValueError:
            return None
        return value if ISO_DATE_RE.match(value) else None

    @field_validator("time", mode="before")
    @classmethod
    def _check_time(cls, value):
        if not isinstance(value, str):
            return None
        match = CLOCK_RE.match(value.strip())
        if not match:
            return None
        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours > 23 or minutes > 59:
            return None
        return f"{hours:02d}:{minutes:02d}"

    @field_validator("due_date", mode="before")
    @classmethod
    def _check_due_date(cls, value):
        if not isinstance(value, str) or not value.strip():
            return None
        try:
            datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return value.strip()

    @field_validator("priority", mode="before")
    @classmethod
    def _check_priority(cls, value):
        if not isinstance(value, str):
            return "medium"
        value = value.strip().lower()
        if value in ("urgent", "critical"):
            return "high"
        return value if value in PRIORITIES else "medium"

    @field_validator("time_preference", mode="before")
    @classmethod
    def _check_time_preference(cls, value):
        if isinstance(value, str) and value.strip().lower() in TIME_PREFERENCES:
            return value.strip().lower()
        return None

    @field_validator("duration", mode="before")
    @classmethod
    def _check_duration(cls, value):
        try:
            minutes = int(value)
        except (TypeError, ValueError):
            return None
        return minutes if minutes > 0 else None

    @field_validator("reminders", mode="before")
    @classmethod
    def _check_reminders(cls, value):
        return normalize_reminders(value)

    @field_validator("apply_to_last_scheduled", mode="before")
    @classmethod
    def _check_apply_flag(cls, value):
        return value is True or (isinstance(value, str) and value.lower() == "true")

    @field_validator("attendees", mode="before")
    @classmethod
    def _check_attendees(cls, value):
        if not isinstance(value, list):
            return None
        attendees = []
        for item in value:
            if isinstance(item, str) and "@" in item:
                attendees.append({"email": item.strip()})
            elif isinstance(item, dict) and isinstance(item.get("email"), str):
                attendees.append(item)
        return attendees or None


class VoiceCommand(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None  # assigned by the reconciler
    text: str
    intent: str = "unknown"
    confidence: float = 0.0
    extracted_data: Optional[ExtractedData] = Field(default=None, alias="extractedData")
    timestamp: datetime = Field(default_factory=datetime.now)
    error: Optional[str] = None  # diagnostic note when a fallback was used

    @field_validator("intent", mode="before")
    @classmethod
    def _check_intent(cls, value):
        if not isinstance(value, str):
            return "unknown"
        key = value.strip().replace("_", "").replace(" ", "").lower()
        for intent in INTENTS:
            if intent.lower() == key:
                return intent
        return "unknown"

    @field_validator("confidence", mode="before")
    @classmethod
    def _check_confidence(cls, value):
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            return 0.0
        return min(1.0, max(0.0, confidence))

    @property
    def data(self) -> ExtractedData:
        """Extracted data, created empty on first access."""
        if self.extracted_data is None:
            self.extracted_data = ExtractedData()
        return self.extracted_data

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CommandFragment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    source_index: int = Field(alias="sourceIndex")


class ScheduledUpdate(BaseModel):
    """Mutation for a task created by an earlier batch."""
    model_config = ConfigDict(populate_by_name=True)

    target_id: str = Field(alias="targetId")
    title: Optional[str] = None
    reminders: list[int] = Field(default_factory=list)


class ReconcileResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    commands: list[VoiceCommand] = Field(default_factory=list)
    last_scheduled_id: Optional[str] = Field(default=None, alias="lastScheduledId")
    updates: list[ScheduledUpdate] = Field(default_factory=list)


class ParseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transcript: str
    multiple_commands: bool = Field(default=True, alias="multipleCommands")
    time_zone: Optional[str] = Field(default=None, alias="timeZone")
    offset_minutes: Optional[int] = Field(default=None, alias="offsetMinutes")
    last_scheduled_id: Optional[str] = Field(default=None, alias="lastScheduledId")


class CalendarEvent(BaseModel):
    id: Optional[str] = None
    summary: Optional[str] = None
    start: datetime
    end: datetime


class FindTimeRequest(BaseModel):
    text: str
    events: list[CalendarEvent] = Field(default_factory=list)
