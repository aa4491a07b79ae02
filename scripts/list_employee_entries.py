#!/usr/bin/env python3
"""
List all time records for an employee.

Usage:
    python list_employee_entries.py --name NAME
    python list_employee_entries.py --all  # List all employees first, then select

Examples:
    python list_employee_entries.py --name "Somchai"
"""
import argparse
import sys

from punchclock.config import Settings
from punchclock.data.database import (
    initialize_db, close_db, get_employees_with_details, get_employee_records
)


def list_entries_for_employee(name):
    records = list(reversed(get_employee_records(name)))

    if not records:
        print(f"\nNo time records found for {name}")
        return

    print(f"\n{'='*96}")
    print(f"Time records for: {name}")
    print(f"Total records: {len(records)}")
    print(f"{'='*96}")
    print(f"{'ID':<6} {'Clock in':<20} {'Clock out':<20} {'Hours':>6}  {'Synced':<7} Note")
    print(f"{'-'*96}")

    for record in records:
        hours = f"{record.working_hours:.2f}" if record.clock_out else ''
        synced = "yes" if record.synced else "no"
        print(f"{record.id:<6} {record.clock_in:<20} {record.clock_out or 'OPEN':<20} "
              f"{hours:>6}  {synced:<7} {record.note or ''}")

    print(f"{'='*96}\n")


def main():
    parser = argparse.ArgumentParser(description="List all time records for an employee")
    parser.add_argument('--name', '-n', help='Employee name (partial match supported)')
    parser.add_argument('--all', '-a', action='store_true',
                        help='List all employees first, then interactively select one')
    args = parser.parse_args()

    try:
        initialize_db(Settings.from_env().db_path)
    except Exception as e:
        print(f"ERROR: Failed to initialize database: {e}")
        sys.exit(1)

    try:
        employees = get_employees_with_details()
        name = None

        if args.name:
            matches = [e['name'] for e in employees if args.name.lower() in e['name'].lower()]
            if not matches:
                print(f"ERROR: No employee found with name containing: {args.name}")
                sys.exit(1)
            elif len(matches) > 1 and args.name not in matches:
                print(f"\nMultiple employees found matching '{args.name}':")
                for i, match in enumerate(matches, 1):
                    print(f"  {i}. {match}")
                sys.exit(1)
            name = args.name if args.name in matches else matches[0]

        elif args.all:
            if not employees:
                print("No employees found in database.")
                sys.exit(1)

            print("\nAvailable employees:")
            for i, employee in enumerate(employees, 1):
                status = " (working)" if employee['is_working'] else ''
                print(f"  {i}. {employee['name']}{status}")

            try:
                idx = int(input("\nEnter employee number: ").strip()) - 1
            except (ValueError, KeyboardInterrupt):
                print("\nCancelled.")
                sys.exit(0)
            if not 0 <= idx < len(employees):
                print("ERROR: Invalid selection")
                sys.exit(1)
            name = employees[idx]['name']

        else:
            parser.print_help()
            sys.exit(1)

        list_entries_for_employee(name)

    except KeyboardInterrupt:
        print("\n\nCancelled by user.")
        sys.exit(0)
    finally:
        close_db()


if __name__ == '__main__':
    main()
