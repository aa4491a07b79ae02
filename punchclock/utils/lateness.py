"""
Lateness rule.

A clock-in is late when its local time is strictly after 08:30, except inside
the 18:00-06:00 night window, which is never late. This is purely a function
of time of day; the night-shift roster in the database governs automatic
checkout and is not consulted here.
"""
import datetime

LATE_THRESHOLD_MINUTES = 8 * 60 + 30
NIGHT_WINDOW_START_HOUR = 18
NIGHT_WINDOW_END_HOUR = 6


def is_night_window(clock_in: datetime.datetime) -> bool:
    return clock_in.hour >= NIGHT_WINDOW_START_HOUR or clock_in.hour < NIGHT_WINDOW_END_HOUR


def late_minutes(clock_in: datetime.datetime) -> int:
    """Minutes after 08:30, zero-floored and zero inside the night window"""
    if clock_in is None or is_night_window(clock_in):
        return 0
    minutes_of_day = clock_in.hour * 60 + clock_in.minute
    return max(0, minutes_of_day - LATE_THRESHOLD_MINUTES)


def is_late(clock_in: datetime.datetime) -> bool:
    return late_minutes(clock_in) > 0


def format_late(minutes: int) -> str:
    if minutes >= 60:
        return f"{minutes // 60} h {minutes % 60} min"
    return f"{minutes} min"
