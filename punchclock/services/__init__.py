"""
Service layer for punchclock business logic.
"""

from .clock_service import ClockService, ClockResult, AdminResult, PunchRequest
from .report_service import ReportService, WorkingTimeReport, generate_wt_report
from .sync_service import SyncService

__all__ = [
    'ClockService', 'ClockResult', 'AdminResult', 'PunchRequest',
    'ReportService', 'WorkingTimeReport', 'generate_wt_report',
    'SyncService',
]
