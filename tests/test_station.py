import signal
import threading
import time
import sys

import pytest
from fastapi.testclient import TestClient

import main as station_main
from api.api_server import create_app
from attendance import Outcome
from main import AttendanceStation
from notifications import AudioCue

from conftest import FakeFrameSource, RecordingNotifier

@pytest.fixture
def no_signal_handlers(monkeypatch):
    monkeypatch.setattr(signal, "signal", lambda *args: None)

def make_station(frame_source=None):
    return AttendanceStation(
        gui_mode=False,
        frame_source=frame_source or FakeFrameSource(),
        notifier=RecordingNotifier(),
        audio_cue=AudioCue(enabled=False)
    )

def test_simulate_processes_tokens_in_order():
    station = make_station()
    results = station.simulate(["STU-001", "STU-001", "XYZ"])

    assert [r.outcome for r in results] == [
        Outcome.NEW_EVENT, Outcome.SUPPRESSED_TOO_SOON, Outcome.UNKNOWN_TOKEN
    ]
    assert station.get_system_status()["events_logged"] == 1

def test_headless_start_with_unavailable_camera_stops_cleanly(no_signal_handlers):
    source = FakeFrameSource(fail_with="denied")
    station = make_station(source)

    station.start()

    assert station.running is False
    assert station.decode_loop.state.value == "inactive"
    assert source.acquire_calls == 1
    assert source.release_calls == 0

def test_status_reports_counts():
    station = make_station()
    station.scan("STU-002")

    status = station.get_system_status()

    assert status["status"] == "stopped"
    assert status["counts"] == {"present": 1, "departed": 0, "on_campus": 1}
    assert status["scanner"]["state"] == "inactive"
    assert status["pipeline"]["processed"] == 1

def test_cli_simulate_prints_outcomes(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["main.py", "--no-sms", "--simulate", "STU-003", "XYZ"])

    assert station_main.main() == 0

    out = capsys.readouterr().out
    assert "STU-003: NEW_EVENT - Olivia Martinez: Arrived at school at" in out
    assert "XYZ: UNKNOWN_TOKEN - Unknown: Invalid QR Code: XYZ" in out

def test_cli_export_writes_report(monkeypatch, capsys, tmp_path):
    target = tmp_path / "today.xlsx"
    monkeypatch.setattr(sys, "argv", ["main.py", "--no-sms", "--simulate", "STU-001", "--export", str(target)])

    assert station_main.main() == 0
    assert target.exists()

def wait_until(predicate, timeout=3.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()

def start_in_background(station):
    runner = threading.Thread(target=station.start, daemon=True)
    runner.start()
    assert wait_until(lambda: station.running)
    return runner

def test_headless_station_with_api_survives_scanner_restart():
    station = AttendanceStation(
        gui_mode=False,
        frame_source=FakeFrameSource(),
        notifier=RecordingNotifier(),
        audio_cue=AudioCue(enabled=False),
        serve_api=True
    )
    client = TestClient(create_app(station))
    runner = start_in_background(station)

    try:
        assert wait_until(lambda: station.decode_loop.is_active)
        assert client.post("/api/scanner", params={"action": "stop"}).json()["success"] is True

        # Give the headless loop a few iterations to notice the inactive scanner
        time.sleep(1.2)
        assert station.running is True
        assert runner.is_alive()

        restarted = client.post("/api/scanner", params={"action": "start"}).json()
        assert restarted == {"success": True, "message": "Scanner started"}
        assert station.decode_loop.is_active
    finally:
        station.stop()
        runner.join(timeout=3.0)

    assert not runner.is_alive()
    assert station.camera_stream.release_calls == 2

def test_headless_station_with_api_waits_after_failed_acquisition():
    source = FakeFrameSource(fail_with="denied")
    station = AttendanceStation(
        gui_mode=False,
        frame_source=source,
        notifier=RecordingNotifier(),
        audio_cue=AudioCue(enabled=False),
        serve_api=True
    )
    client = TestClient(create_app(station))
    runner = start_in_background(station)

    try:
        assert wait_until(lambda: station.decode_loop.state.value == "error")
        time.sleep(0.7)
        assert runner.is_alive()

        source.fail_with = None
        assert client.post("/api/scanner", params={"action": "start"}).json()["success"] is True
        assert source.acquire_calls == 2
    finally:
        station.stop()
        runner.join(timeout=3.0)

    assert station.running is False
