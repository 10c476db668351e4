"""Attendance reporting module."""
from .summary import (
    SummaryGenerator, build_summary_rows, daily_counts, late_arrivals, export_daily_report,
    SUMMARY_ERROR, SUMMARY_UNAVAILABLE
)
__all__ = [
    'SummaryGenerator', 'build_summary_rows', 'daily_counts', 'late_arrivals',
    'export_daily_report', 'SUMMARY_ERROR', 'SUMMARY_UNAVAILABLE'
]
