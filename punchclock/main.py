"""
Entry point for the punchclock attendance service.
"""
import argparse
import logging
import signal
import threading

from .config import Settings
from .data.database import initialize_db, close_db, seed_night_shift_exemptions
from .services.clock_service import ClockService
from .services.report_service import ReportService
from .services.sync_service import SyncService

logger = logging.getLogger(__name__)


class PunchClockApp:
    """Wires the store, services and background sync together"""

    def __init__(self, settings=None, remote=None, now=None):
        self.settings = settings or Settings.from_env()
        tz = self.settings.tz
        self.clock = ClockService(
            tz=tz,
            now=now,
            admin_name=self.settings.admin_name,
            admin_location=self.settings.admin_location,
        )
        self.reports = ReportService(tz=tz, now=now)
        self.sync = SyncService(remote=remote, tz=tz, now=now, interval=self.settings.sync_interval)
        self.running = False

    def start(self, periodic_sync=True):
        logger.info("Starting punchclock...")
        initialize_db(self.settings.db_path)
        seed_night_shift_exemptions(self.settings.night_shift_employees)

        self.sync.load_from_remote()
        self.sync.repair_open_shifts()
        if periodic_sync:
            self.sync.start_periodic_sync()
        self.running = True
        logger.info("Punchclock ready")

    def stop(self):
        if not self.running:
            return
        logger.info("Shutting down...")
        self.sync.close()
        close_db()
        self.running = False


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the punchclock attendance service")
    parser.add_argument('--db', help='SQLite database path (overrides PUNCHCLOCK_DB_PATH)')
    parser.add_argument('--interval', type=int, help='Seconds between sync cycles')
    parser.add_argument('--no-sync', action='store_true', help='Do not start the periodic sync')
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.db:
        settings.db_path = args.db
    if args.interval:
        settings.sync_interval = args.interval

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    app = PunchClockApp(settings)
    stop_event = threading.Event()

    def _shutdown(signum, frame):
        logger.info(f"Received signal {signum}")
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    try:
        app.start(periodic_sync=not args.no_sync)
        stop_event.wait()
    finally:
        app.stop()


if __name__ == '__main__':
    main()
