"""
Tests for the deterministic fallback resolver.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from heuristics import clean_title, detect_duration, detect_intent, detect_priority, heuristic_command


class TestDetectIntent:
    """Tests for keyword intent detection"""

    @pytest.mark.parametrize("text,intent", [
        ("find an hour tomorrow afternoon to review the deck", "findTime"),
        ("delete the grocery list", "delete"),
        ("mark laundry as done", "complete"),
        ("remind me to water the plants", "reminder"),
        ("note that the wifi password changed", "note"),
        ("book a haircut", "schedule"),
        ("add eggs to my list", "task"),
    ])
    def test_intents(self, text, intent):
        assert detect_intent(text) == intent

    def test_no_intent(self):
        assert detect_intent("purple elephants") is None


class TestDetectors:
    """Tests for priority, duration and title cleanup"""

    def test_priority(self):
        assert detect_priority("urgent: send the invoice") == "high"
        assert detect_priority("clean the garage whenever") == "low"
        assert detect_priority("buy milk") == "medium"

    def test_duration(self):
        assert detect_duration("meeting for 45 minutes") == 45
        assert detect_duration("block for two hours") == 120
        assert detect_duration("call for half an hour") == 30
        assert detect_duration("call mom") is None

    def test_clean_title(self):
        assert clean_title("schedule a dentist appointment Friday at 2pm") == "dentist appointment"
        assert clean_title("add a task to call the bank tomorrow") == "call the bank"
        assert clean_title("add lunch to my calendar on March 5") == "lunch"
        assert clean_title("schedule review at 230pm") == "review"

    def test_clean_title_strips_reminder_phrase(self):
        title = clean_title("schedule team sync tomorrow at 10 and remind me 15 minutes before",
                            strip_reminders=True)
        assert title == "team sync"


class TestHeuristicCommand:
    """Tests for heuristic_command"""

    def test_task_with_date_becomes_schedule(self, now):
        command = heuristic_command("add call mom tomorrow", now)
        assert command.intent == "schedule"
        assert command.confidence == 0.5
        assert command.data.title == "call mom"
        assert command.data.date == "2025-01-16"
        assert command.data.time is None
        assert command.data.due_date is None

    def test_schedule_with_due_date(self, now):
        command = heuristic_command("schedule dentist appointment Friday at 2pm [UserTimeZone:America/New_York]", now)
        assert command.intent == "schedule"
        assert command.data.title == "dentist appointment"
        assert command.data.date == "2025-01-17"
        assert command.data.time == "14:00"
        assert command.data.due_date == "2025-01-17T14:00:00-05:00"

    def test_bare_reminder_targets_last_scheduled(self, now):
        command = heuristic_command("remind me 30 minutes before", now)
        assert command.intent == "reminder"
        assert command.data.apply_to_last_scheduled is True
        assert command.data.reminders == [30]
        assert command.data.title is None

    def test_back_reference(self, now):
        command = heuristic_command("remind me 30 minutes and an hour before this meeting", now)
        assert command.data.apply_to_last_scheduled is True
        assert command.data.reminders == [30, 60]

    def test_reminder_with_own_schedule(self, now):
        command = heuristic_command("schedule standup tomorrow at 9am, remind me 10 minutes before", now)
        assert command.intent == "reminder"
        assert command.data.date == "2025-01-16"
        assert command.data.apply_to_last_scheduled is False
        assert command.data.reminders == [10]
        assert command.data.title == "standup"

    def test_rename(self, now):
        command = heuristic_command("call it the dentist visit", now)
        assert command.data.apply_to_last_scheduled is True
        assert command.data.title == "the dentist visit"

    def test_call_inside_a_task_is_not_a_rename(self, now):
        """Only a fragment that starts with "call it" renames the previous item."""
        command = heuristic_command("remind me to call that plumber tomorrow at 9", now)
        assert command.data.apply_to_last_scheduled is False
        assert command.data.title == "call that plumber"
        assert command.data.date == "2025-01-16"
        assert command.data.time == "09:00"

    def test_rename_after_conjunction(self, now):
        command = heuristic_command("and rename it to quarterly review", now)
        assert command.data.apply_to_last_scheduled is True
        assert command.data.title == "quarterly review"

    def test_colonless_clock_time(self, now):
        command = heuristic_command("schedule review tomorrow at 230pm", now)
        assert command.intent == "schedule"
        assert command.data.title == "review"
        assert command.data.time == "14:30"

    def test_unknown(self, now):
        command = heuristic_command("purple elephants", now)
        assert command.intent == "unknown"
        assert command.confidence == 0.3

    def test_attendees_and_priority(self, now):
        command = heuristic_command("schedule urgent sync with bob@example.com tomorrow at 10", now)
        assert command.data.priority == "high"
        assert [a.email for a in command.data.attendees] == ["bob@example.com"]
        assert command.data.time == "10:00"

    def test_error_note_kept(self, now):
        command = heuristic_command("buy milk", now, error="LLM unavailable")
        assert command.error == "LLM unavailable"
