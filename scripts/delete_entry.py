#!/usr/bin/env python3
"""
Delete a time record by ID.

An open-shift marker pointing at the record is removed with it, so the
employee can clock in again.

Usage:
    python delete_entry.py --id RECORD_ID [--name NAME] [--force]

Examples:
    python delete_entry.py --id 431 --name "Somchai"
"""
import argparse
import sys

from punchclock.config import Settings
from punchclock.data.database import initialize_db, close_db, get_time_record
from punchclock.services.clock_service import ClockService
from punchclock.utils.errors import NotFoundError


def main():
    parser = argparse.ArgumentParser(description="Delete a time record by ID")
    parser.add_argument('--id', '-i', type=int, required=True, help='Record ID to delete')
    parser.add_argument('--name', '-n', help='Employee name (for verification)')
    parser.add_argument('--force', '-f', action='store_true',
                        help='Skip verification and confirmation (use with caution)')
    args = parser.parse_args()

    settings = Settings.from_env()
    try:
        initialize_db(settings.db_path)
    except Exception as e:
        print(f"ERROR: Failed to initialize database: {e}")
        sys.exit(1)

    try:
        try:
            record = get_time_record(args.id)
        except NotFoundError:
            print(f"ERROR: Record with ID {args.id} not found.")
            sys.exit(1)

        if not args.force and args.name and args.name.lower() not in record.employee_name.lower():
            print(f"ERROR: Record ID {args.id} belongs to '{record.employee_name}', not '{args.name}'")
            print("       Use --force to delete anyway, or provide the correct employee name.")
            sys.exit(1)

        print(f"\n{'='*80}")
        print("Record to delete:")
        print(f"  ID:        {record.id}")
        print(f"  Employee:  {record.employee_name}")
        print(f"  Clock in:  {record.clock_in}")
        print(f"  Clock out: {record.clock_out or 'OPEN'}")
        print(f"{'='*80}")

        if not args.force:
            response = input("\nDelete this record? (yes/no): ").strip().lower()
            if response not in ('yes', 'y'):
                print("Cancelled.")
                sys.exit(0)

        result = ClockService(tz=settings.tz).delete_time_record(args.id)
        if not result.success:
            print(f"ERROR: {result.error}")
            sys.exit(1)
        print(f"✓ {result.message}")

    except KeyboardInterrupt:
        print("\n\nCancelled by user.")
        sys.exit(0)
    finally:
        close_db()


if __name__ == '__main__':
    main()
