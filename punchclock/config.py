"""
Runtime configuration for punchclock.
Values come from PUNCHCLOCK_* environment variables.
"""
import logging
import os
from dataclasses import dataclass, field
from typing import Tuple
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

ENV_PREFIX = "PUNCHCLOCK_"

DEFAULT_DB_PATH = "./data/timetracker.db"
DEFAULT_TIMEZONE = "Asia/Bangkok"
DEFAULT_SYNC_INTERVAL = 5 * 60
DEFAULT_ADMIN_NAME = "Admin"


def _env(name, default=None):
    return os.getenv(ENV_PREFIX + name, default)


def _split_names(value):
    if not value:
        return ()
    return tuple(name.strip() for name in value.split(",") if name.strip())


@dataclass
class Settings:
    db_path: str = DEFAULT_DB_PATH
    timezone: str = DEFAULT_TIMEZONE
    sync_interval: int = DEFAULT_SYNC_INTERVAL
    night_shift_employees: Tuple[str, ...] = field(default_factory=tuple)
    admin_name: str = DEFAULT_ADMIN_NAME
    admin_location: str = ""
    log_level: str = "INFO"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls) -> "Settings":
        interval = _env("SYNC_INTERVAL")
        try:
            sync_interval = int(interval) if interval else DEFAULT_SYNC_INTERVAL
        except ValueError:
            logger.warning(f"Invalid {ENV_PREFIX}SYNC_INTERVAL {interval!r}, using {DEFAULT_SYNC_INTERVAL}s")
            sync_interval = DEFAULT_SYNC_INTERVAL

        return cls(
            db_path=_env("DB_PATH", DEFAULT_DB_PATH),
            timezone=_env("TIMEZONE", DEFAULT_TIMEZONE),
            sync_interval=sync_interval,
            night_shift_employees=_split_names(_env("NIGHT_SHIFT_EMPLOYEES")),
            admin_name=_env("ADMIN_NAME", DEFAULT_ADMIN_NAME),
            admin_location=_env("ADMIN_LOCATION", ""),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
        )
