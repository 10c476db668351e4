from datetime import date, datetime, time, timedelta

import pytest
from fastapi.testclient import TestClient

from api.api_server import create_app
from main import AttendanceStation
from notifications import AudioCue
from utils.config import config

from conftest import FakeFrameSource, RecordingNotifier

class CannedSummary:
    def __init__(self):
        self.calls = 0

    def generate(self, event_log, directory):
        self.calls += 1
        return f"{len(event_log)} events recorded"

@pytest.fixture
def station():
    return AttendanceStation(
        gui_mode=False,
        frame_source=FakeFrameSource(),
        notifier=RecordingNotifier(),
        audio_cue=AudioCue(enabled=False),
        summary_generator=CannedSummary()
    )

@pytest.fixture
def client(station):
    return TestClient(create_app(station))

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

def test_manual_scan_flow(client, station):
    first = client.post("/api/scan", json={"token": "STU-001"}).json()
    second = client.post("/api/scan", json={"token": "STU-001"}).json()
    unknown = client.post("/api/scan", json={"token": "XYZ"}).json()

    assert first["outcome"] == "NEW_EVENT"
    assert first["event"]["type"] == "ARRIVAL"
    assert first["student_name"] == "Emma Thompson"
    assert first["type"] == "success"
    assert second["outcome"] == "SUPPRESSED_TOO_SOON"
    assert unknown["outcome"] == "UNKNOWN_TOKEN"
    assert unknown["message"] == "Invalid QR Code: XYZ"
    assert len(station.event_log) == 1
    assert len(station.notifier.messages) == 1

def test_blank_token_is_rejected(client):
    assert client.post("/api/scan", json={"token": "   "}).status_code == 400

def test_today_lists_events_with_names(client):
    client.post("/api/scan", json={"token": "STU-002"})
    client.post("/api/scan", json={"token": "STU-003"})

    body = client.get("/api/attendance/today").json()

    assert [e["student_name"] for e in body["events"]] == ["Olivia Martinez", "Liam Wilson"]
    assert body["events"][0]["grade"] == "11-B"

def test_notices_most_recent_first(client):
    client.post("/api/scan", json={"token": "STU-004"})
    client.post("/api/scan", json={"token": "nope"})

    notices = client.get("/api/notices", params={"limit": 5}).json()

    assert [n["outcome"] for n in notices] == ["UNKNOWN_TOKEN", "NEW_EVENT"]

def test_student_search(client):
    students = client.get("/api/students", params={"search": "brown"}).json()
    assert [s["id"] for s in students] == ["STU-005"]
    assert len(client.get("/api/students").json()) == 5

def test_summary_requires_activity(client, station):
    assert client.get("/api/summary").status_code == 409

    client.post("/api/scan", json={"token": "STU-001"})
    response = client.get("/api/summary")

    assert response.status_code == 200
    assert response.json() == {"summary": "1 events recorded"}

def test_scanner_control(client, station):
    assert client.post("/api/scanner", params={"action": "stop"}).json()["success"] is False

    started = client.post("/api/scanner", params={"action": "start"}).json()
    assert started == {"success": True, "message": "Scanner started"}
    assert client.get("/api/status").json()["scanner"]["state"] == "active"

    assert client.post("/api/scanner", params={"action": "start"}).json()["success"] is False
    assert client.post("/api/scanner", params={"action": "stop"}).json()["success"] is True
    assert station.camera_stream.release_calls == 1

    assert client.post("/api/scanner", params={"action": "reboot"}).status_code == 400

def test_scanner_start_reports_acquisition_error():
    station = AttendanceStation(
        gui_mode=False,
        frame_source=FakeFrameSource(fail_with="Could not access camera. Please ensure permissions are granted."),
        notifier=RecordingNotifier(),
        audio_cue=AudioCue(enabled=False),
        summary_generator=CannedSummary()
    )
    client = TestClient(create_app(station))

    body = client.post("/api/scanner", params={"action": "start"}).json()

    assert body["success"] is False
    assert "permissions" in body["message"]
    status = client.get("/api/status").json()
    assert status["scanner"]["state"] == "error"

    assert client.post("/api/scanner", params={"action": "stop"}).json()["success"] is True
    assert client.get("/api/status").json()["scanner"]["state"] == "inactive"
    assert station.camera_stream.release_calls == 0

def test_late_arrivals_use_class_start(client, station):
    morning = datetime.combine(date.today(), time(8, 0))
    station.scan("STU-001", morning + timedelta(minutes=10))
    station.scan("STU-002", morning + timedelta(minutes=50))

    body = client.get("/api/attendance/late", params={"class_start": "08:30"}).json()

    assert body["class_start"] == "08:30"
    assert [(s["id"], s["minutes_late"]) for s in body["late"]] == [("STU-002", 20)]
    assert client.get("/api/attendance/late", params={"class_start": "noon"}).status_code == 400

def test_register_student_then_scan(client, station):
    response = client.post("/api/students", json={
        "name": "Noah Davis", "grade": "9-C", "parent_name": "Mia Davis"
    })

    assert response.status_code == 201
    student = response.json()
    assert student["id"].startswith("STU-")
    assert student["parent_phone"] == "+1 (555) 000-0000"
    assert student["id"] in station.directory

    scan = client.post("/api/scan", json={"token": student["id"]}).json()
    assert scan["outcome"] == "NEW_EVENT"
    assert scan["student_name"] == "Noah Davis"

def test_register_student_requires_names(client, station):
    before = len(station.directory)
    response = client.post("/api/students", json={"name": "  ", "grade": "9-C", "parent_name": "Mia Davis"})

    assert response.status_code == 400
    assert len(station.directory) == before

def test_effective_config_is_served(client):
    body = client.get("/api/config").json()

    assert body["scanner"]["cooldown_seconds"] >= 0
    assert "min_rescan_seconds" in body["attendance"]
    assert "api_key" not in body["summary"]

def test_attendance_settings_apply_to_running_station(client, station, monkeypatch):
    monkeypatch.setattr(config.attendance, "min_rescan_seconds", config.attendance.min_rescan_seconds)
    monkeypatch.setattr(config.attendance, "school_name", config.attendance.school_name)

    settings = client.put("/api/config/attendance", json={
        "min_rescan_seconds": 0, "school_name": "Oak Ridge High"
    }).json()

    assert settings["min_rescan_seconds"] == 0
    client.post("/api/scan", json={"token": "STU-001"})
    second = client.post("/api/scan", json={"token": "STU-001"}).json()
    assert second["event"]["type"] == "DEPARTURE"
    assert "this is Oak Ridge High." in station.notifier.messages[-1][1]
    assert client.put("/api/config/attendance", json={}).status_code == 400
