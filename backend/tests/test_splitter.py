"""
Tests for utterance splitting and fragment normalization.
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from splitter import (
    COMMAND_VERB_RE,
    normalize_fragment,
    split_into_fragments,
    split_utterance,
)


class TestSplitUtterance:
    """Tests for split_utterance"""

    def test_two_commands_joined_by_and(self):
        parts = split_utterance("add call mom tomorrow and schedule dentist appointment Friday at 2pm")
        assert parts == ["add call mom tomorrow", "schedule dentist appointment Friday at 2pm"]

    def test_comma_and(self):
        parts = split_utterance("schedule a dentist appointment tomorrow at 2, and remind me 30 minutes before")
        assert parts == ["schedule a dentist appointment tomorrow at 2", "remind me 30 minutes before"]

    def test_reminder_quantities_stay_together(self):
        parts = split_utterance("remind me 30 minutes and an hour before this meeting")
        assert parts == ["remind me 30 minutes and an hour before this meeting"]

    def test_month_day_after_comma_stays_together(self):
        parts = split_utterance("schedule review Friday, March 7 at 3pm")
        assert parts == ["schedule review Friday, March 7 at 3pm"]

    def test_sentence_boundaries(self):
        assert split_utterance("Buy milk. Call the bank tomorrow.") == ["Buy milk", "Call the bank tomorrow"]

    def test_abbreviated_meridiem_is_not_a_sentence(self):
        parts = split_utterance("schedule a meeting at 2:00 p.m. with Sam")
        assert parts == ["schedule a meeting at 2:00 p.m. with Sam"]

    def test_repeated_noun(self):
        parts = split_utterance("schedule a meeting Monday at 10 another meeting Tuesday at 3")
        assert parts == ["schedule a meeting Monday at 10", "another meeting Tuesday at 3"]

    def test_connector_residue_dropped(self):
        assert split_utterance("add eggs and schedule it") == ["add eggs"]

    def test_then_connector(self):
        parts = split_utterance("email the landlord and then pay rent")
        assert parts == ["email the landlord", "pay rent"]

    def test_order_preserved(self):
        parts = split_utterance("first thing, second thing, third thing")
        assert parts == ["first thing", "second thing", "third thing"]


class TestNormalizeFragment:
    """Tests for normalize_fragment"""

    def test_verb_fragment_untouched(self):
        assert normalize_fragment("schedule dentist Friday", "whatever") == "schedule dentist Friday"

    def test_contextual_fragment_borrows_noun(self):
        transcript = "schedule an appointment today at 1 and tomorrow at 3"
        assert normalize_fragment("tomorrow at 3", transcript) == "schedule appointment tomorrow at 3"

    def test_another_one(self):
        transcript = "book a meeting Monday at 10 and another one Friday at 3"
        assert normalize_fragment("another one Friday at 3", transcript) == "schedule meeting Friday at 3"

    def test_non_calendar_noun_gets_add(self):
        transcript = "add a task to clean the garage and tomorrow too"
        assert normalize_fragment("tomorrow too", transcript) == "add task tomorrow too"

    def test_plain_fragment_gets_add(self):
        assert normalize_fragment("buy milk", "call mom, buy milk") == "add buy milk"


class TestSplitIntoFragments:
    """Tests for split_into_fragments"""

    def test_single_command_passes_through(self):
        fragments = split_into_fragments("buy milk tomorrow")
        assert len(fragments) == 1
        assert fragments[0].text == "buy milk tomorrow"
        assert fragments[0].source_index == 0

    def test_each_fragment_is_a_command(self):
        fragments = split_into_fragments("add call mom tomorrow and schedule dentist appointment Friday at 2pm")
        assert len(fragments) == 2
        assert [f.source_index for f in fragments] == [0, 1]
        for fragment in fragments:
            assert COMMAND_VERB_RE.match(fragment.text)

    def test_fragments_normalized(self):
        fragments = split_into_fragments("schedule an appointment today at 1 and tomorrow at 3")
        assert [f.text for f in fragments] == [
            "schedule an appointment today at 1",
            "schedule appointment tomorrow at 3",
        ]

    def test_empty_transcript(self):
        assert split_into_fragments("   ") == []
