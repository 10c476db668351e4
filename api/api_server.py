"""
REST API for the attendance station.
Manual scan entry, today's log, notices, summary and scanner control.
"""
import time
import threading
from datetime import date
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from reports import late_arrivals
from scanner import ScannerState
from utils.config import config
from utils.logger import logger

class ScanRequest(BaseModel):
    token: str

class StudentRequest(BaseModel):
    name: str
    grade: str
    parent_name: str
    parent_phone: str = ""
    photo_url: str = ""

class AttendanceSettingsRequest(BaseModel):
    min_rescan_seconds: Optional[float] = None
    school_name: Optional[str] = None
    max_recent_results: Optional[int] = None

def create_app(station) -> FastAPI:
    """Build the FastAPI app around a running AttendanceStation."""
    app = FastAPI(
        title="SmartAttend Station API",
        description="REST API for the QR attendance station",
        version="1.0.0"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "timestamp": time.time()}

    @app.get("/api/status")
    async def get_status():
        try:
            return station.get_system_status()
        except Exception as e:
            logger.error(f"Error getting station status: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    @app.post("/api/scan")
    def scan_token(request: ScanRequest):
        token = request.token.strip()
        if not token:
            raise HTTPException(status_code=400, detail="Token must not be empty")
        try:
            return station.scan(token).to_dict()
        except Exception as e:
            logger.error(f"Error processing manual scan: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/api/attendance/today")
    async def get_today():
        today = date.today()
        events = station.event_log.events_on(today)
        entries = []
        for event in reversed(events):
            student = station.directory.lookup(event.entity_id)
            entry = event.to_dict()
            entry['student_name'] = student.name if student else 'Unknown'
            entry['grade'] = student.group if student else ''
            entries.append(entry)
        return {"date": today.isoformat(), "events": entries}

    @app.get("/api/attendance/late")
    async def get_late(class_start: Optional[str] = None):
        class_start = class_start or config.summary.class_start
        try:
            late = late_arrivals(station.event_log, station.directory, class_start)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid class start: {class_start}")
        return {"class_start": class_start, "late": late}

    @app.get("/api/notices")
    async def get_notices(limit: int = 10):
        return [result.to_dict() for result in station.pipeline.get_recent_results(limit)]

    @app.get("/api/students")
    async def get_students(search: str = ""):
        students = station.directory.search(search) if search else station.directory.all()
        return [student.to_dict() for student in students]

    @app.post("/api/students", status_code=201)
    def register_student(request: StudentRequest):
        try:
            student = station.directory.register(
                name=request.name.strip(),
                group=request.grade.strip(),
                guardian_name=request.parent_name.strip(),
                guardian_phone=request.parent_phone.strip(),
                photo_url=request.photo_url.strip()
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return student.to_dict()

    @app.get("/api/config")
    async def get_config():
        return config.get_effective_config()

    @app.put("/api/config/attendance")
    def update_attendance_settings(request: AttendanceSettingsRequest):
        updates = {key: value for key, value in request.model_dump().items() if value is not None}
        if not updates:
            raise HTTPException(status_code=400, detail="No settings given")
        return station.apply_attendance_config(**updates)

    @app.get("/api/summary")
    def get_summary():
        if len(station.event_log) == 0:
            raise HTTPException(status_code=409, detail="No attendance recorded yet")
        return {"summary": station.generate_summary()}

    @app.post("/api/scanner")
    def control_scanner(action: str):
        if action == "start":
            if station.decode_loop.is_active:
                return {"success": False, "message": "Scanner is already running"}
            started = station.decode_loop.activate()
            return {
                "success": started,
                "message": "Scanner started" if started else station.decode_loop.error_message
            }
        elif action == "stop":
            if station.decode_loop.state is ScannerState.INACTIVE:
                return {"success": False, "message": "Scanner is already stopped"}
            station.decode_loop.deactivate()
            return {"success": True, "message": "Scanner stopped"}
        raise HTTPException(status_code=400, detail=f"Unknown action: {action}")

    return app

def run_api_server(app: FastAPI, host: str = "0.0.0.0", port: int = 8080) -> threading.Thread:
    """Start the API server in a daemon thread."""
    def run_server():
        try:
            logger.info(f"Starting API server on port {port}")
            uvicorn.run(app, host=host, port=port, log_level="info")
        except Exception as e:
            logger.error(f"API server error: {e}")

    api_thread = threading.Thread(target=run_server, daemon=True)
    api_thread.start()
    logger.info("API server thread started")
    return api_thread
