from __future__ import annotations

from datetime import date


def today_serial(today: date | None = None) -> int:
    """Serial for the start of ``today`` (YYYYMMDD00)."""
    today = today or date.today()
    return int(today.strftime("%Y%m%d") + "00")


def next_serial(current: int | None, today: date | None = None) -> int:
    """Advance a YYYYMMDDnn serial.

    A serial dated before today restarts at today's ``01``; anything else is
    incremented, so repeated same-day changes keep increasing.
    """
    base = today_serial(today)
    if current is None or int(current) < base:
        return base + 1
    return int(current) + 1


def initial_serial(today: date | None = None) -> int:
    return today_serial(today) + 1
