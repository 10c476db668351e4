#!/usr/bin/env python3
"""
Attendance station controller.
Wires the camera, QR decode loop and attendance state machine together.
"""
import cv2
import numpy as np
import time
import argparse
import signal
import sys
import threading
from datetime import datetime
from typing import Optional, Dict, Any, List

from attendance import (
    AttendancePipeline, AttendanceStateMachine, CandidateReading, EventLog,
    ScanResult, default_directory
)
from camera.stream_handler import CameraStream
from notifications import AudioCue, NullNotifier, SmsNotifier
from reports import SummaryGenerator, daily_counts, export_daily_report
from scanner import DecodeLoop
from utils.config import config
from utils.logger import logger

class AttendanceStation:
    """Main attendance station controller."""

    def __init__(self, camera_id: Optional[int] = None, gui_mode: bool = True,
                 roster_file: Optional[str] = None, frame_source=None, notifier=None,
                 audio_cue=None, summary_generator=None, serve_api: bool = False):
        self.gui_mode = gui_mode
        # With the API serving, the scanner can be stopped and restarted remotely,
        # so the station outlives any single activation
        self.serve_api = serve_api
        self.running = False
        self._stop_lock = threading.Lock()
        self.start_time = time.time()

        self.directory = default_directory(roster_file or config.attendance.roster_file)
        self.event_log = EventLog()

        if notifier is None:
            if config.notifications.sms_enabled:
                notifier = SmsNotifier(
                    gateway_url=config.notifications.sms_gateway_url,
                    timeout=config.notifications.sms_timeout
                )
            else:
                notifier = NullNotifier()
        self.notifier = notifier
        self.audio_cue = audio_cue or AudioCue(enabled=config.notifications.audio_cue_enabled)

        self.state_machine = AttendanceStateMachine(
            self.directory,
            self.event_log,
            notifier=self.notifier,
            audio_cue=self.audio_cue,
            min_rescan_seconds=config.attendance.min_rescan_seconds,
            school_name=config.attendance.school_name
        )
        self.pipeline = AttendancePipeline(
            self.state_machine,
            max_recent_results=config.attendance.max_recent_results,
            event_sink=logger.log_attendance_event
        )

        self.camera_stream = frame_source or CameraStream(camera_id)
        self.decode_loop = DecodeLoop(self.camera_stream, self.pipeline)

        self.summary_generator = summary_generator or SummaryGenerator(
            api_key=config.summary.api_key,
            model=config.summary.model,
            class_start=config.summary.class_start
        )

        logger.info(f"Attendance station initialized with {len(self.directory)} students")

    def scan(self, token: str, timestamp: Optional[datetime] = None) -> ScanResult:
        """Process a token typed in or simulated without the camera."""
        return self.pipeline.submit(CandidateReading(token=token, timestamp=timestamp or datetime.now()))

    def simulate(self, tokens: List[str]) -> List[ScanResult]:
        return [self.scan(token) for token in tokens]

    def generate_summary(self) -> str:
        return self.summary_generator.generate(self.event_log, self.directory)

    def start(self):
        """Start scanning until stopped."""
        if self.running:
            logger.warning("Station is already running")
            return

        # Signal handlers can only be installed from the main thread
        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

        logger.info("Starting attendance station.")
        self.running = True
        self.start_time = time.time()

        try:
            if not self.decode_loop.activate():
                logger.error(f"Scanner unavailable: {self.decode_loop.error_message}")
                if not self.gui_mode and not self.serve_api:
                    return

            if self.gui_mode:
                self._run_with_gui()
            else:
                self._run_headless()

        except KeyboardInterrupt:
            logger.info("Received interrupt signal")
        finally:
            self.stop()

    def _run_with_gui(self):
        """Show the camera feed with scan notices."""
        cv2.namedWindow('SmartAttend Scanner', cv2.WINDOW_NORMAL)

        try:
            while self.running:
                frame = self.decode_loop.last_frame
                if frame is None:
                    frame = np.zeros((config.camera.resolution[1], config.camera.resolution[0], 3),
                                     dtype=np.uint8)
                display_frame = frame.copy()
                self._add_status_overlay(display_frame)
                cv2.imshow('SmartAttend Scanner', display_frame)

                key = cv2.waitKey(30) & 0xFF
                if key == ord('q'):
                    logger.info("Quit key pressed")
                    break
                elif key == ord('s'):
                    self.decode_loop.set_active(not self.decode_loop.is_active)
                    logger.info(f"Scanner {'resumed' if self.decode_loop.is_active else 'paused'}")
        finally:
            cv2.destroyAllWindows()

    def _run_headless(self):
        logger.info("Scanning in headless mode.")
        last_status = time.time()

        while self.running and (self.serve_api or self.decode_loop.is_active):
            time.sleep(0.5)
            if time.time() - last_status >= 60:
                self._print_status()
                last_status = time.time()

    def _add_status_overlay(self, frame):
        """Counts, scanner state and the latest notice."""
        height, width = frame.shape[:2]
        counts = daily_counts(self.event_log)

        status_lines = [
            f"Scanner: {self.decode_loop.state.value.upper()}",
            f"On campus: {counts['on_campus']}",
            f"Arrivals: {counts['present']}  Departures: {counts['departed']}"
        ]
        if self.decode_loop.error_message:
            status_lines.append(self.decode_loop.error_message[:40])

        overlay_height = len(status_lines) * 25 + 20
        cv2.rectangle(frame, (10, 10), (330, overlay_height), (0, 0, 0), -1)
        for i, line in enumerate(status_lines):
            cv2.putText(frame, line, (20, 35 + i * 25), cv2.FONT_HERSHEY_SIMPLEX,
                        0.6, (255, 255, 255), 1, cv2.LINE_AA)

        recent = self.pipeline.get_recent_results(1)
        if recent:
            result = recent[0]
            name = result.entity.name if result.entity else "Unknown"
            color = (0, 200, 0) if result.notice_type == "success" else (0, 165, 255)
            text = f"{name}: {result.message}"
            cv2.rectangle(frame, (10, height - 45), (width - 10, height - 10), (0, 0, 0), -1)
            cv2.putText(frame, text[:70], (20, height - 20), cv2.FONT_HERSHEY_SIMPLEX,
                        0.55, color, 1, cv2.LINE_AA)

        help_text = "Q - Quit  S - Pause/Resume"
        cv2.putText(frame, help_text, (width - 260, 30), cv2.FONT_HERSHEY_SIMPLEX,
                    0.5, (255, 255, 255), 1, cv2.LINE_AA)

    def _print_status(self):
        counts = daily_counts(self.event_log)
        stats = self.decode_loop.get_statistics()
        print(f"\n--- Station Status ---")
        print(f"Runtime: {self._get_runtime_str()} | Scanner: {stats['state']}")
        print(f"Readings: {stats['readings_emitted']} | Duplicates skipped: {stats['duplicates_suppressed']}")
        print(f"On campus: {counts['on_campus']} | Arrivals: {counts['present']} | Departures: {counts['departed']}")
        print("-" * 50)

    def _get_runtime_str(self) -> str:
        runtime = time.time() - self.start_time
        hours = int(runtime // 3600)
        minutes = int((runtime % 3600) // 60)
        seconds = int(runtime % 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

    def stop(self):
        """Stop scanning and release the camera."""
        with self._stop_lock:
            if not self.running:
                return
            self.running = False

        logger.info("Stopping attendance station.")
        self.decode_loop.deactivate()

        logger.log_event("SESSION_COMPLETE", {
            'runtime_seconds': time.time() - self.start_time,
            'scanner': self.decode_loop.get_statistics(),
            'pipeline': self.pipeline.get_statistics(),
            'counts': daily_counts(self.event_log)
        })
        logger.info("Attendance station stopped")

    def _signal_handler(self, signum, frame):
        logger.info(f"Received signal {signum}")
        self.stop()
        sys.exit(0)

    def apply_attendance_config(self, **kwargs) -> Dict[str, Any]:
        """Update attendance settings and push them into the running state machine."""
        config.update_attendance_config(**kwargs)
        self.state_machine.set_rescan_window(config.attendance.min_rescan_seconds)
        self.state_machine.school_name = config.attendance.school_name
        self.pipeline.resize_recent_results(config.attendance.max_recent_results)
        return config.get_attendance_config_dict()

    def get_system_status(self) -> Dict[str, Any]:
        status = {
            'status': 'running' if self.running else 'stopped',
            'scanner': self.decode_loop.get_statistics(),
            'camera_info': self.camera_stream.get_camera_info() if hasattr(self.camera_stream, 'get_camera_info') else {},
            'counts': daily_counts(self.event_log),
            'students': len(self.directory),
            'events_logged': len(self.event_log),
            'pipeline': self.pipeline.get_statistics()
        }
        if hasattr(logger, 'get_attendance_summary'):
            status['scan_log'] = logger.get_attendance_summary()
            status['logging'] = logger.get_log_statistics()
        return status

def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="SmartAttend QR attendance station",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                          # Scan with the default camera and GUI
  python main.py --camera 1 --headless    # Use camera 1 without a window
  python main.py --api                    # Also serve the REST API
  python main.py --simulate STU-001 XYZ   # Process tokens without a camera
        """
    )
    parser.add_argument("--camera", "-c", type=int, default=None,
                        help="Camera device ID (default: chosen by facing mode)")
    parser.add_argument("--headless", "-hl", action="store_true",
                        help="Run without GUI")
    parser.add_argument("--api", action="store_true",
                        help="Serve the REST API alongside the scanner")
    parser.add_argument("--roster", "-r", type=str,
                        help="Roster CSV/Excel file")
    parser.add_argument("--output-dir", "-o", type=str,
                        help="Output directory for logs and reports")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose logging")
    parser.add_argument("--no-sms", action="store_true",
                        help="Disable guardian SMS dispatch")
    parser.add_argument("--simulate", nargs="+", metavar="TOKEN",
                        help="Process the given tokens and exit")
    parser.add_argument("--export", type=str, metavar="PATH",
                        help="Export today's report to an Excel file on exit")

    args = parser.parse_args()

    if args.output_dir:
        config.logging.output_dir = args.output_dir
        config.logging.reports_dir = f"{args.output_dir}/reports"
        config._create_directories()

    if args.verbose:
        config.logging.log_level = "DEBUG"
        logger.set_level("DEBUG")

    if args.no_sms:
        config.notifications.sms_enabled = False

    try:
        station = AttendanceStation(
            camera_id=args.camera,
            gui_mode=not args.headless,
            roster_file=args.roster,
            serve_api=args.api and not args.simulate
        )

        if args.simulate:
            for result in station.simulate(args.simulate):
                name = result.entity.name if result.entity else "Unknown"
                print(f"{result.reading.token}: {result.outcome.value} - {name}: {result.message}")
        else:
            if args.api:
                from api.api_server import create_app, run_api_server
                run_api_server(create_app(station), host=config.api.host, port=config.api.port)

            print("=" * 60)
            print("SmartAttend QR Attendance Station")
            print("=" * 60)
            print(f"Students: {len(station.directory)}")
            print(f"Display: {'Headless' if args.headless else 'GUI'}")
            print(f"API: {'Enabled on port ' + str(config.api.port) if args.api else 'Disabled'}")
            print("=" * 60)

            station.start()

        if args.export:
            path = export_daily_report(station.event_log, station.directory, args.export)
            print(f"Report written to {path}")

    except KeyboardInterrupt:
        logger.info("Attendance station interrupted by user")
    except Exception as e:
        print(f"\nFatal error: {e}")
        logger.error(f"Fatal error: {e}")
        return 1

    logger.info("Attendance station shutdown complete")
    return 0

if __name__ == "__main__":
    exit_code = main()
    if hasattr(logger, 'shutdown'):
        logger.shutdown()
    sys.exit(exit_code)
