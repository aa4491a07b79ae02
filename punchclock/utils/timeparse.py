"""
Timestamp parsing for punch times.

Punch times are stored as text in the configured local timezone. Records
written by this application use ``DD/MM/YYYY HH:MM:SS``; records that came
from the remote sheet or older imports may use ``YYYY-MM-DD HH:MM:SS`` or an
ISO-8601 variant. ``parse_timestamp`` tries each accepted format in order and
returns a ``ParseResult`` instead of raising.
"""
import datetime
import logging
from dataclasses import dataclass
from typing import Optional, Union

from .errors import ParseError

logger = logging.getLogger(__name__)

STORAGE_FORMAT = "%d/%m/%Y %H:%M:%S"
STORAGE_DATE_FORMAT = "%d/%m/%Y"
ISO_FORMAT = "%Y-%m-%d %H:%M:%S"
ISO_DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"

# Tried in order, first match wins. fromisoformat is the generic fallback.
ACCEPTED_FORMATS = (STORAGE_FORMAT, ISO_FORMAT)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of a timestamp parse attempt"""
    raw: object
    value: Optional[datetime.datetime] = None
    error: Optional[ParseError] = None

    @property
    def ok(self) -> bool:
        return self.value is not None

    @property
    def is_empty(self) -> bool:
        """True when there was nothing to parse (None or blank text)"""
        return self.raw is None or (isinstance(self.raw, str) and not self.raw.strip())


def _localize(value: datetime.datetime, tz: Optional[datetime.tzinfo]) -> datetime.datetime:
    if tz is None:
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def parse_timestamp(value: Union[str, datetime.datetime, None],
                    tz: Optional[datetime.tzinfo] = None) -> ParseResult:
    """
    Parse a punch timestamp.

    Args:
        value: Text in one of the accepted formats, or a datetime
        tz: Timezone naive values are interpreted in (and aware values converted to)

    Returns:
        ParseResult; ``value`` is None when parsing failed or there was no input
    """
    if isinstance(value, datetime.datetime):
        return ParseResult(raw=value, value=_localize(value, tz))

    if value is None or not isinstance(value, str) or not value.strip():
        return ParseResult(raw=value, error=ParseError("empty timestamp"))

    text = value.strip()
    for fmt in ACCEPTED_FORMATS:
        try:
            return ParseResult(raw=value, value=_localize(datetime.datetime.strptime(text, fmt), tz))
        except ValueError:
            continue

    try:
        parsed = datetime.datetime.fromisoformat(text)
    except ValueError:
        return ParseResult(raw=value, error=ParseError(f"Unrecognized timestamp format: {value!r}"))
    return ParseResult(raw=value, value=_localize(parsed, tz))


def format_timestamp(value: datetime.datetime) -> str:
    """Format a datetime in the storage format (DD/MM/YYYY HH:MM:SS)"""
    return value.strftime(STORAGE_FORMAT)


def date_prefixes(day: datetime.date):
    """Text prefixes a stored clock-in on ``day`` can start with"""
    return (day.strftime(STORAGE_DATE_FORMAT), day.strftime(ISO_DATE_FORMAT))


def display_time(value, tz: Optional[datetime.tzinfo] = None) -> str:
    """
    Time-of-day part of a stored timestamp for display.

    Unparseable input degrades to an empty string with a logged warning.
    """
    result = parse_timestamp(value, tz)
    if result.ok:
        return result.value.strftime(TIME_FORMAT)
    if not result.is_empty:
        logger.warning(f"Could not parse timestamp for display: {result.error}")
    return ""
