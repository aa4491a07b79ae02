#!/usr/bin/env python3
"""
Manage the night-shift roster. Employees on it are skipped by auto checkout.

Usage:
    python night_shift.py --list
    python night_shift.py --add "Somchai"
    python night_shift.py --remove "Somchai"
    python night_shift.py --auto-checkout  # Close every other open shift now
"""
import argparse
import sys

from punchclock.config import Settings
from punchclock.data.database import initialize_db, close_db, get_night_shift_exemptions
from punchclock.services.clock_service import ClockService


def main():
    parser = argparse.ArgumentParser(description="Manage the night-shift roster")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument('--list', '-l', action='store_true', help='Show the roster')
    group.add_argument('--add', '-a', metavar='NAME', help='Add an employee to the roster')
    group.add_argument('--remove', '-r', metavar='NAME', help='Remove an employee from the roster')
    group.add_argument('--auto-checkout', action='store_true',
                       help='Clock out everyone not on the roster')
    args = parser.parse_args()

    settings = Settings.from_env()
    try:
        initialize_db(settings.db_path)
    except Exception as e:
        print(f"ERROR: Failed to initialize database: {e}")
        sys.exit(1)

    try:
        service = ClockService(tz=settings.tz, admin_name=settings.admin_name,
                               admin_location=settings.admin_location)

        if args.list:
            names = get_night_shift_exemptions()
            if not names:
                print("Night-shift roster is empty.")
            for name in names:
                print(f"  - {name}")
            return

        if args.auto_checkout:
            result = service.auto_checkout()
            print(f"✓ Closed {len(result['closed'])} shift(s): {', '.join(result['closed']) or '-'}")
            print(f"  Night shift kept open: {', '.join(result['skipped']) or '-'}")
            return

        if args.add:
            result = service.add_night_shift_employee(args.add.strip())
        else:
            result = service.remove_night_shift_employee(args.remove.strip())

        if not result.success:
            print(f"ERROR: {result.error}")
            sys.exit(1)
        print(f"✓ {result.message}")
    finally:
        close_db()


if __name__ == '__main__':
    main()
