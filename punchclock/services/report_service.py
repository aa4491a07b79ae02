"""
Attendance analytics and report projections.

Everything here is derived from the local store at call time; nothing is
persisted. Rendering (spreadsheets, PDFs) is left to the consumer of
``get_report_data`` and ``get_daily_summary``.
"""
import calendar
import datetime
import logging
from typing import Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from ..config import DEFAULT_TIMEZONE
from ..data.database import (
    TimeRecord, get_employees, get_open_shifts, get_records_on, get_records_touching,
    search_records, get_employee_records, get_all_time_records,
)
from ..utils.errors import ValidationError
from ..utils.lateness import is_late, late_minutes, format_late
from ..utils.timeparse import parse_timestamp, display_time, date_prefixes
from .clock_service import AUTO_CHECKOUT_NOTE

logger = logging.getLogger(__name__)

REPORT_TYPES = ('daily', 'monthly', 'range')
REPORT_PARAMS = {
    'daily': ('date',),
    'monthly': ('month', 'year'),
    'range': ('start_date', 'end_date'),
}
BUDDHIST_ERA_OFFSET = 543


def _format_hms(total_seconds: int) -> str:
    """Format seconds to HH:MM:SS."""
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def is_weekend(day: datetime.date) -> bool:
    return day.weekday() >= 5


def _as_date(value) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}")


def normalize_year(year) -> int:
    """Accept Buddhist-era years (e.g. 2568) as well as AD years"""
    year = int(year)
    if year > 2500:
        logger.info(f"Converting Buddhist-era year {year} to {year - BUDDHIST_ERA_OFFSET}")
        year -= BUDDHIST_ERA_OFFSET
    return year


def dedup_first_arrival(entries: Iterable[Tuple[TimeRecord, datetime.datetime]]):
    """
    Keep only the earliest clock-in per (date, employee).

    Args:
        entries: (record, parsed clock-in) pairs

    Returns:
        Surviving pairs sorted by date, then employee name
    """
    earliest: Dict[Tuple[datetime.date, str], Tuple[TimeRecord, datetime.datetime]] = {}
    for record, clock_in in entries:
        key = (clock_in.date(), record.employee_name or '')
        current = earliest.get(key)
        if current is None or clock_in < current[1]:
            earliest[key] = (record, clock_in)
    return [earliest[key] for key in sorted(earliest)]


def _missed_checkout(record: TimeRecord) -> bool:
    return AUTO_CHECKOUT_NOTE in (record.note or '')


class ReportService:
    """Read-only attendance statistics over the local store"""

    def __init__(self, tz=None, now=None):
        self.tz = tz or ZoneInfo(DEFAULT_TIMEZONE)
        self._now = now or (lambda: datetime.datetime.now(self.tz))

    def now(self) -> datetime.datetime:
        return self._now()

    def today(self) -> datetime.date:
        return self.now().date()

    def _parse(self, value) -> Optional[datetime.datetime]:
        return parse_timestamp(value, self.tz).value

    def _parsed(self, records) -> List[Tuple[TimeRecord, datetime.datetime]]:
        """Pair records with their parsed clock-in, dropping unparseable ones"""
        pairs = []
        for record in records:
            clock_in = self._parse(record.clock_in)
            if clock_in is None:
                logger.warning(f"Skipping record {record.id}: unparseable clock-in {record.clock_in!r}")
                continue
            pairs.append((record, clock_in))
        return pairs

    def _first_arrivals(self, day: datetime.date) -> Dict[str, datetime.datetime]:
        """Earliest clock-in per employee on ``day``"""
        pairs = [(r, t) for r, t in self._parsed(get_records_on(day)) if t.date() == day]
        return {record.employee_name: clock_in for record, clock_in in dedup_first_arrival(pairs)}

    def _absent(self, day: datetime.date, present) -> List[str]:
        if is_weekend(day):
            return []
        return [name for name in get_employees() if name not in present]

    def _working_employees(self):
        now = self.now()
        working = []
        for marker in get_open_shifts():
            clock_in = self._parse(marker.clock_in)
            hours = max(0.0, (now - clock_in).total_seconds() / 3600.0) if clock_in else 0.0
            working.append({
                'name': marker.employee_name,
                'clock_in': display_time(marker.clock_in, self.tz),
                'working_hours': f"{hours:.1f} h",
            })
        return working

    # --- Today ---

    def get_today_summary(self, day: Optional[datetime.date] = None):
        day = day or self.today()
        first = self._first_arrivals(day)
        clocked_out = {
            record.employee_name for record in get_records_on(day) if not record.is_open
        }
        return {
            'date': day,
            'total': len(get_employees()),
            'present': len(first),
            'absent': len(self._absent(day, first)),
            'working': len(get_open_shifts()),
            'clocked_out': len(clocked_out),
            'late': sum(1 for clock_in in first.values() if is_late(clock_in)),
        }

    def get_admin_stats(self):
        day = self.today()
        first = self._first_arrivals(day)
        working = self._working_employees()
        return {
            'total_employees': len(get_employees()),
            'present_today': len(first),
            'working_now': len(working),
            'absent_today': len(self._absent(day, first)),
            'working_employees': working,
        }

    def get_detailed_stats(self, stat_type: str):
        """Employee lists behind the dashboard counters"""
        day = self.today()
        if stat_type == 'present':
            return [
                {
                    'name': name,
                    'clock_in': clock_in.strftime('%H:%M:%S'),
                    'status': 'late' if is_late(clock_in) else 'on time',
                }
                for name, clock_in in sorted(self._first_arrivals(day).items(), key=lambda i: i[1])
            ]
        if stat_type == 'late':
            return [
                {
                    'name': name,
                    'clock_in': clock_in.strftime('%H:%M:%S'),
                    'late_by': format_late(late_minutes(clock_in)),
                }
                for name, clock_in in sorted(self._first_arrivals(day).items(), key=lambda i: i[1])
                if is_late(clock_in)
            ]
        if stat_type == 'absent':
            return [{'name': name} for name in self._absent(day, self._first_arrivals(day))]
        if stat_type == 'working':
            return self._working_employees()
        return []

    # --- Date ranges ---

    def get_range_stats(self, start_date, end_date):
        """Per-day present/late/absent counts; weekends never count as absent"""
        start, end = _as_date(start_date), _as_date(end_date)
        days = []
        totals = {'present': 0, 'late': 0, 'absent': 0}
        day = start
        while day <= end:
            first = self._first_arrivals(day)
            stats = {
                'date': day,
                'weekend': is_weekend(day),
                'present': len(first),
                'late': sum(1 for clock_in in first.values() if is_late(clock_in)),
                'absent': len(self._absent(day, first)),
            }
            for key in totals:
                totals[key] += stats[key]
            days.append(stats)
            day += datetime.timedelta(days=1)
        return {'start_date': start, 'end_date': end, 'days': days, 'totals': totals}

    def get_employee_lateness(self, employee, start_date, end_date):
        """Lateness in minutes of the first arrival on each day worked"""
        start, end = _as_date(start_date), _as_date(end_date)
        pairs = [(r, t) for r, t in self._parsed(get_employee_records(employee)) if start <= t.date() <= end]
        return [
            {
                'date': clock_in.date(),
                'clock_in': clock_in.strftime('%H:%M:%S'),
                'is_late': is_late(clock_in),
                'late_minutes': late_minutes(clock_in),
            }
            for _, clock_in in dedup_first_arrival(pairs)
        ]

    # --- Report projection ---

    def get_report_data(self, report_type: str, params: dict):
        """
        Flat rows for the report renderer.

        Args:
            report_type: 'daily' (params: date), 'monthly' (params: month, year,
                optional format='detailed') or 'range' (params: start_date, end_date)

        Returns:
            Ordered list of dicts with no, employee, clock_in, clock_out, note,
            working_hours, location_in, location_out

        Raises:
            ValidationError: Unknown report type, or a missing or invalid parameter
        """
        if report_type not in REPORT_TYPES:
            raise ValidationError(f"Unsupported report type: {report_type}")
        params = params or {}
        missing = [key for key in REPORT_PARAMS[report_type] if params.get(key) in (None, '')]
        if missing:
            raise ValidationError(f"Missing {report_type} report parameter(s): {', '.join(missing)}")

        pairs = self._parsed(get_all_time_records())

        if report_type == 'daily':
            target = _as_date(params['date'])
            selected = [(r, t) for r, t in pairs if t.date() == target]
        elif report_type == 'monthly':
            try:
                month = int(params['month'])
                year = normalize_year(params['year'])
            except ValueError:
                raise ValidationError(f"Invalid month/year: {params['month']!r}/{params['year']!r}")
            selected = [(r, t) for r, t in pairs if t.month == month and t.year == year]
            if params.get('format') == 'detailed':
                selected = dedup_first_arrival(selected)
        else:
            start, end = _as_date(params['start_date']), _as_date(params['end_date'])
            selected = [(r, t) for r, t in pairs if start <= t.date() <= end]

        return [
            {
                'no': index,
                'employee': record.employee_name or '',
                'source_display_name': record.source_display_name or '',
                'clock_in': record.clock_in or '',
                'clock_out': record.clock_out or '',
                'note': record.note or '',
                'working_hours': record.working_hours if record.clock_out else '',
                'location_in': record.location_in_name or record.location_in or '',
                'location_out': record.location_out_name or record.location_out or '',
            }
            for index, (record, _) in enumerate(selected, start=1)
        ]

    def get_daily_summary(self, month, year):
        """
        Day-by-day breakdown of a month up to today.

        Returns:
            dict with 'days' (one entry per elapsed day) and 'totals'
        """
        month = int(month)
        year = normalize_year(year)
        today = self.today()
        employees = get_employees()

        pairs = [(r, t) for r, t in self._parsed(get_all_time_records())
                 if t.month == month and t.year == year]
        by_day: Dict[datetime.date, list] = {}
        for record, clock_in in dedup_first_arrival(pairs):
            by_day.setdefault(clock_in.date(), []).append((record, clock_in))

        days = []
        totals = {'present': 0, 'late': 0, 'absent': 0, 'missed_checkout': 0}
        for day_number in range(1, calendar.monthrange(year, month)[1] + 1):
            day = datetime.date(year, month, day_number)
            if day > today:
                break
            entries = sorted(by_day.get(day, []), key=lambda e: e[0].employee_name)
            present = [record.employee_name for record, _ in entries]
            late = [
                {'name': record.employee_name, 'late_by': late_minutes(clock_in)}
                for record, clock_in in entries if is_late(clock_in)
            ]
            missed = [record.employee_name for record, _ in entries if _missed_checkout(record)]
            absent = [] if is_weekend(day) else [n for n in employees if n not in present]

            totals['present'] += len(present)
            totals['late'] += len(late)
            totals['absent'] += len(absent)
            totals['missed_checkout'] += len(missed)
            days.append({
                'date': day,
                'weekend': is_weekend(day),
                'present': present,
                'late': late,
                'missed_checkout': missed,
                'absent': absent,
            })
        return {'month': month, 'year': year, 'days': days, 'totals': totals}

    # --- Live feed ---

    def get_recent_activity(self, limit=30, day: Optional[datetime.date] = None):
        """Clock-in and clock-out events of one day, newest first"""
        day = day or self.today()
        prefixes = date_prefixes(day)
        events = []
        for record in get_records_touching(day):
            for kind, value in (('in', record.clock_in), ('out', record.clock_out)):
                if not value or not value.startswith(prefixes):
                    continue
                at = self._parse(value)
                if at is None:
                    continue
                events.append({
                    'id': record.id,
                    'employee': record.employee_name,
                    'type': kind,
                    'time': value,
                    'time_only': at.strftime('%H:%M:%S'),
                    'avatar': record.source_avatar or '',
                    '_at': at,
                })
        events.sort(key=lambda e: e['_at'], reverse=True)
        for event in events:
            del event['_at']
        return events[:limit]

    def get_activity_by_name(self, name, day: Optional[datetime.date] = None, limit=50):
        day = day or self.today()
        return [
            {
                'id': record.id,
                'employee': record.employee_name,
                'clock_in': record.clock_in,
                'clock_out': record.clock_out,
                'working_hours': record.working_hours,
                'clock_in_time': display_time(record.clock_in, self.tz),
                'clock_out_time': display_time(record.clock_out, self.tz),
            }
            for record in search_records(name, day, limit)
        ]


class WorkingTimeReport:
    """Working time of one employee over a date range"""

    def __init__(self, employee: str, start_date: Optional[datetime.date] = None,
                 end_date: Optional[datetime.date] = None, tz=None):
        """
        Args:
            employee: Employee name
            start_date: Start date (defaults to first record)
            end_date: End date (defaults to today)
        """
        self.employee = employee
        self.tz = tz or ZoneInfo(DEFAULT_TIMEZONE)
        self.start_date = start_date
        self.end_date = end_date or datetime.datetime.now(self.tz).date()
        self.daily_sessions = []
        self.total_seconds = 0

    def generate(self) -> Dict:
        # Repeated calls start from scratch
        self.daily_sessions = []
        self.total_seconds = 0

        sessions = self._closed_sessions()
        if not sessions:
            logger.info(f"No closed sessions found for {self.employee}")
        elif not self.start_date:
            self.start_date = sessions[0]['date']

        self.daily_sessions = sessions
        self.total_seconds = sum(s['total_seconds'] for s in sessions)

        return {
            'employee': self.employee,
            'start_date': self.start_date or self.end_date,
            'end_date': self.end_date,
            'daily_sessions': self.daily_sessions,
            'total_hours': self.total_seconds / 3600.0,
            'total_days': len({s['date'] for s in sessions}),
            'summary': self._generate_summary(),
        }

    def _closed_sessions(self) -> List[Dict]:
        sessions = []
        for record in get_employee_records(self.employee):
            clock_in = parse_timestamp(record.clock_in, self.tz).value
            clock_out = parse_timestamp(record.clock_out, self.tz).value
            if clock_in is None or clock_out is None:
                continue
            day = clock_in.date()
            if (self.start_date and day < self.start_date) or day > self.end_date:
                continue
            total_seconds = max(0, int((clock_out - clock_in).total_seconds()))
            sessions.append({
                'date': day,
                'clock_in': clock_in,
                'clock_out': clock_out,
                'total_seconds': total_seconds,
                'formatted_time': _format_hms(total_seconds),
            })
        sessions.sort(key=lambda s: s['clock_in'])
        return sessions

    def _generate_summary(self) -> Dict:
        days_worked = len({s['date'] for s in self.daily_sessions})
        average_seconds = int(round(self.total_seconds / days_worked)) if days_worked else 0
        return {
            'total_hours': self.total_seconds / 3600.0,
            'total_seconds': self.total_seconds,
            'formatted_total': _format_hms(self.total_seconds),
            'average_hours_per_day': average_seconds / 3600.0,
            'formatted_average_per_day': _format_hms(average_seconds),
            'days_worked': days_worked,
        }


def generate_wt_report(employee: str, start_date: Optional[datetime.date] = None,
                       end_date: Optional[datetime.date] = None, tz=None) -> WorkingTimeReport:
    """
    Convenience function to create and generate a WT report.

    Returns:
        WorkingTimeReport object with generated report
    """
    report = WorkingTimeReport(employee, start_date, end_date, tz=tz)
    report.generate()
    return report
