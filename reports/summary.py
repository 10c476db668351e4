"""
Daily attendance reporting: status table, counts, Excel export and the
narrative summary written by Gemini.
"""
import json
import logging
from datetime import date, datetime, time as dtime
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from attendance.directory import Directory
from attendance.event_log import EventLog
from attendance.models import AttendanceType

logger = logging.getLogger(__name__)

SUMMARY_UNAVAILABLE = "Unable to generate summary at this time."
SUMMARY_ERROR = ("Error generating attendance summary. "
                 "Please ensure your API key is configured correctly.")

STATUS_ABSENT = "Absent"
STATUS_PRESENT = "Present (On Campus)"
STATUS_COMPLETED = "Completed Day"

def _format_time(timestamp: datetime) -> str:
    return timestamp.strftime('%H:%M:%S')

def _parse_clock(value: str) -> dtime:
    hours, minutes = map(int, value.split(':'))
    return dtime(hours, minutes)

def build_summary_rows(event_log: EventLog, directory: Directory,
                       day: Optional[date] = None) -> List[Dict]:
    """One row per registered student with the day's status and times."""
    day = day or date.today()
    todays_events = event_log.events_on(day)

    rows = []
    for student in directory.all():
        student_events = [e for e in todays_events if e.entity_id == student.entity_id]
        arrival = next((e for e in student_events if e.event_type is AttendanceType.ARRIVAL), None)
        departure = next((e for e in student_events if e.event_type is AttendanceType.DEPARTURE), None)

        if arrival is None:
            status = STATUS_ABSENT
        elif departure is None:
            status = STATUS_PRESENT
        else:
            status = STATUS_COMPLETED

        rows.append({
            'name': student.name,
            'grade': student.group,
            'status': status,
            'arrivalTime': _format_time(arrival.timestamp) if arrival else 'N/A',
            'departureTime': _format_time(departure.timestamp) if departure else 'N/A'
        })

    return rows

def daily_counts(event_log: EventLog, day: Optional[date] = None) -> Dict[str, int]:
    """Arrivals, departures and students still on campus for the day."""
    day = day or date.today()
    todays_events = event_log.events_on(day)

    arrived = {e.entity_id for e in todays_events if e.event_type is AttendanceType.ARRIVAL}
    departed = {e.entity_id for e in todays_events if e.event_type is AttendanceType.DEPARTURE}

    return {
        'present': len(arrived),
        'departed': len(departed),
        'on_campus': len(arrived) - len(departed)
    }

def late_arrivals(event_log: EventLog, directory: Directory, class_start: str = "08:30",
                  day: Optional[date] = None) -> List[Dict]:
    """Students whose arrival is after class start."""
    day = day or date.today()
    start = datetime.combine(day, _parse_clock(class_start))

    late = []
    for event in event_log.events_on(day):
        if event.event_type is AttendanceType.ARRIVAL and event.timestamp > start:
            student = directory.lookup(event.entity_id)
            late.append({
                'id': event.entity_id,
                'name': student.name if student else 'Unknown',
                'arrivalTime': _format_time(event.timestamp),
                'minutes_late': int((event.timestamp - start).total_seconds() // 60)
            })
    return late

def export_daily_report(event_log: EventLog, directory: Directory, output_file: str,
                        day: Optional[date] = None) -> str:
    """Write the day's attendance table and counts to an Excel workbook."""
    day = day or date.today()
    path = Path(output_file)
    if path.suffix.lower() not in ('.xlsx', '.xls'):
        path = path.with_suffix('.xlsx')
    path.parent.mkdir(parents=True, exist_ok=True)

    attendance_df = pd.DataFrame(
        build_summary_rows(event_log, directory, day),
        columns=['name', 'grade', 'status', 'arrivalTime', 'departureTime']
    )
    attendance_df.columns = ['Name', 'Grade', 'Status', 'Arrival', 'Departure']

    counts = daily_counts(event_log, day)
    total = len(directory)
    summary_stats = {
        'Date': day.isoformat(),
        'Registered Students': total,
        'Arrivals': counts['present'],
        'Departures': counts['departed'],
        'On Campus': counts['on_campus'],
        'Attendance Rate (%)': round(100.0 * counts['present'] / total, 1) if total else 0.0
    }

    with pd.ExcelWriter(path, engine='openpyxl') as writer:
        attendance_df.to_excel(writer, sheet_name='Attendance', index=False)
        summary_df = pd.DataFrame(list(summary_stats.items()), columns=['Metric', 'Value'])
        summary_df.to_excel(writer, sheet_name='Summary', index=False)

    logger.info(f"Daily attendance report exported to {path}")
    return str(path)

class SummaryGenerator:
    """Executive attendance summary via the Gemini API.

    ``generate`` never raises: failures become a fixed error message.
    """

    def __init__(self, api_key: Optional[str] = None, model: str = "gemini-2.5-flash",
                 class_start: str = "08:30", client=None):
        self.api_key = api_key
        self.model = model
        self.class_start = class_start
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise RuntimeError("No Gemini API key configured")
            from google import genai
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def build_prompt(self, event_log: EventLog, directory: Directory,
                     day: Optional[date] = None) -> str:
        day = day or date.today()
        summary_data = build_summary_rows(event_log, directory, day)
        late = late_arrivals(event_log, directory, self.class_start, day)

        return f"""
Analyze the following school attendance data for today ({day.strftime('%m/%d/%Y')}).

Data:
{json.dumps(summary_data, indent=2)}

Late arrivals:
{json.dumps(late, indent=2)}

Please provide a professional, concise executive summary for the school principal.
Include:
1. Overall attendance rate (percentage).
2. List of late arrivals (assume classes start at {self.class_start}).
3. Notable patterns or absent students.
4. A brief status of who is currently on campus versus who has left.

Keep the tone formal and informative. Use Markdown for formatting.
"""

    def generate(self, event_log: EventLog, directory: Directory,
                 day: Optional[date] = None) -> str:
        try:
            prompt = self.build_prompt(event_log, directory, day)
            response = self._get_client().models.generate_content(
                model=self.model,
                contents=prompt
            )
            return getattr(response, "text", None) or SUMMARY_UNAVAILABLE
        except Exception as e:
            logger.error(f"Gemini API Error: {e}")
            return SUMMARY_ERROR
