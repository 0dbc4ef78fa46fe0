"""
Tests for FastAPI endpoints in main.py.
The resolver is swapped for an offline one, so no Claude API calls are made.
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class TestParseEndpoint:
    """Tests for /ai/parse."""

    def test_parse_two_commands(self, app_client):
        """POST /ai/parse splits and resolves a multi-command transcript."""
        response = app_client.post("/ai/parse", json={
            "transcript": "add call mom tomorrow and schedule dentist appointment Friday at 2pm"
        })
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert len(body["data"]) == 2
        assert body["data"][1]["intent"] == "schedule"
        assert body["data"][1]["extractedData"]["time"] == "14:00"
        assert body["lastScheduledId"] == body["data"][1]["id"]
        assert body["updates"] == []

    def test_wire_format_is_camel_case(self, app_client):
        """Extracted data uses camelCase keys and omits empty values."""
        response = app_client.post("/ai/parse", json={
            "transcript": "schedule a dentist appointment tomorrow at 2, and remind me 30 minutes before"
        })
        command = response.json()["data"][0]
        data = command["extractedData"]
        assert data["reminders"] == [30]
        assert "dueDate" in data
        assert data["applyToLastScheduled"] is False
        assert "due_date" not in data
        assert "error" not in command

    def test_empty_transcript(self, app_client):
        """POST /ai/parse rejects a blank transcript."""
        response = app_client.post("/ai/parse", json={"transcript": "   "})
        assert response.status_code == 400

    def test_missing_transcript(self, app_client):
        """POST /ai/parse validates the request body."""
        response = app_client.post("/ai/parse", json={})
        assert response.status_code == 422

    def test_last_scheduled_id_round_trip(self, app_client):
        """A follow-up reminder targets the task from the previous request."""
        first = app_client.post("/ai/parse", json={
            "transcript": "schedule haircut tomorrow at 11am"
        }).json()
        task_id = first["lastScheduledId"]
        assert task_id

        second = app_client.post("/ai/parse", json={
            "transcript": "remind me 15 minutes before this appointment",
            "lastScheduledId": task_id,
        }).json()
        assert second["data"] == []
        assert second["lastScheduledId"] == task_id
        assert second["updates"] == [{"targetId": task_id, "reminders": [15]}]

    def test_offset_minutes(self, app_client):
        """offsetMinutes uses the browser sign: -120 is UTC+2."""
        response = app_client.post("/ai/parse", json={
            "transcript": "schedule call tomorrow at 9am",
            "offsetMinutes": -120,
        })
        data = response.json()["data"][0]["extractedData"]
        assert data["dueDate"].endswith("+02:00")
        assert data["time"] == "09:00"

    def test_time_zone(self, app_client):
        """timeZone is applied to the composed dueDate."""
        response = app_client.post("/ai/parse", json={
            "transcript": "schedule call tomorrow at 9am",
            "timeZone": "Asia/Tokyo",
        })
        data = response.json()["data"][0]["extractedData"]
        assert data["dueDate"].endswith("+09:00")

    def test_single_command_mode(self, app_client):
        """multipleCommands=false keeps the transcript whole."""
        response = app_client.post("/ai/parse", json={
            "transcript": "add salt and pepper",
            "multipleCommands": False,
        })
        assert len(response.json()["data"]) == 1


class TestStatusEndpoint:
    """Tests for /ai/status."""

    def test_status_disabled(self, app_client):
        """GET /ai/status reports the offline parser."""
        response = app_client.get("/ai/status")
        assert response.status_code == 200
        body = response.json()
        assert body["available"] is False
        assert body["status"] == "disabled"


class TestFindTimeEndpoint:
    """Tests for /ai/find-time."""

    def test_find_time(self, app_client):
        """POST /ai/find-time suggests a slot around existing events."""
        response = app_client.post("/ai/find-time", json={
            "text": "find an hour tomorrow afternoon",
            "events": [],
        })
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["slot"]["duration"] == 60
        assert body["message"] == "Suggested: 12:00 PM - 1:00 PM"

    def test_no_slot(self, app_client):
        """POST /ai/find-time reports when the day is full."""
        response = app_client.post("/ai/find-time", json={
            "text": "find 2 hours today",
            "events": [{
                "summary": "Offsite",
                "start": "2000-01-01T00:00:00",
                "end": "2100-01-01T00:00:00",
            }],
        })
        body = response.json()
        assert body["success"] is False
        assert body["slot"] is None
