#!/usr/bin/env python3
"""
Helper script to punch an employee in or out as administrator.

The action (in/out) is determined by whether the employee currently has an
open shift. You only need to provide the employee name and, optionally, a time.

Usage:
    python scripts/insert_entry.py --employee "Somchai" --time "15/01/2025 08:05:00"
    python scripts/insert_entry.py --employee "Somchai" --note "badge forgotten"
    python scripts/insert_entry.py --employee "Somchai"  # Uses current time
"""

import argparse
import sys

from punchclock.config import Settings
from punchclock.data.database import initialize_db, close_db, get_employees, get_open_shift
from punchclock.services.clock_service import ClockService


def find_employee(name):
    """Exact match first, then a unique partial match"""
    employees = get_employees()
    for employee in employees:
        if employee.lower() == name.lower():
            return employee

    matches = [e for e in employees if name.lower() in e.lower()]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        print(f"❌ Multiple employees match '{name}':")
        for employee in matches:
            print(f"   - {employee}")
        return None
    print(f"❌ No employee found with name: {name}")
    return None


def main():
    parser = argparse.ArgumentParser(
        description='Punch an employee in or out with auto-determined action',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --employee "Somchai"
  %(prog)s --employee "Somchai" --time "15/01/2025 17:30:00"
  %(prog)s --employee "Somchai" --time "2025-01-15 17:30:00" --note "left early"
        """
    )
    parser.add_argument('--employee', '-e', required=True, help='Employee name (partial match supported)')
    parser.add_argument(
        '--time', '-T',
        help='Punch time (default: now). Formats: DD/MM/YYYY HH:MM:SS, YYYY-MM-DD HH:MM:SS, ISO 8601'
    )
    parser.add_argument('--note', '-n', help='Administrator note')
    args = parser.parse_args()

    settings = Settings.from_env()
    try:
        initialize_db(settings.db_path)
    except Exception as e:
        print(f"ERROR: Failed to initialize database: {e}")
        sys.exit(1)

    try:
        employee = find_employee(args.employee)
        if not employee:
            sys.exit(1)

        service = ClockService(tz=settings.tz, admin_name=settings.admin_name,
                               admin_location=settings.admin_location)
        when = args.time or service.now()

        if get_open_shift(employee) is None:
            print(f"🔍 {employee} is not clocked in, clocking IN")
            result = service.manual_clock_in(employee, when, args.note)
        else:
            print(f"🔍 {employee} is clocked in, clocking OUT")
            result = service.manual_clock_out(employee, when, args.note)

        if result.success:
            print(f"✅ {result.message}")
            sys.exit(0)
        print(f"❌ {result.error}")
        sys.exit(1)
    finally:
        close_db()


if __name__ == '__main__':
    main()
