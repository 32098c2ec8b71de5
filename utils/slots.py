"""
Pickup slot rules.

A reservation occupies one hourly slot. Permitted starts are 08:00 through
17:00 inclusive; each slot lasts SLOT_DURATION.
"""

from datetime import date, datetime, time, timedelta

SLOT_DURATION = timedelta(hours=1)

PERMITTED_SLOTS = tuple(f'{hour:02d}:00:00' for hour in range(8, 18))


def normalize_slot(value) -> str | None:
    """
    Normalize a slot start to HH:MM:SS and check it is permitted.

    Accepts 'HH:MM', 'HH:MM:SS' or a datetime.time.

    Args:
        value: Slot start as supplied by the caller

    Returns:
        Canonical 'HH:MM:SS' string, or None if the value is not a permitted slot
    """
    if isinstance(value, time):
        value = value.strftime('%H:%M:%S')

    if not isinstance(value, str):
        return None

    value = value.strip()
    for fmt in ('%H:%M:%S', '%H:%M'):
        try:
            parsed = datetime.strptime(value, fmt).time()
        except ValueError:
            continue
        canonical = parsed.strftime('%H:%M:%S')
        return canonical if canonical in PERMITTED_SLOTS else None

    return None


def slot_end(slot_start: str) -> str:
    """
    Compute the end of a slot.

    Args:
        slot_start: Canonical 'HH:MM:SS' start

    Returns:
        'HH:MM:SS' end, start + SLOT_DURATION

    Example:
        slot_end('17:00:00') -> '18:00:00'
    """
    start = datetime.strptime(slot_start, '%H:%M:%S')
    return (start + SLOT_DURATION).strftime('%H:%M:%S')


def window_end(reservation_date, end_time: str) -> datetime:
    """
    Combine a reservation date and end time into a naive local datetime.

    Args:
        reservation_date: date or 'YYYY-MM-DD' string
        end_time: 'HH:MM:SS'

    Returns:
        Naive datetime at which the reservation window closes
    """
    if isinstance(reservation_date, str):
        reservation_date = date.fromisoformat(reservation_date)
    return datetime.combine(reservation_date, datetime.strptime(end_time, '%H:%M:%S').time())


def has_elapsed(reservation_date, end_time: str, now: datetime) -> bool:
    """
    Tell whether a reservation window has closed.

    Args:
        reservation_date: date or 'YYYY-MM-DD' string
        end_time: 'HH:MM:SS'
        now: Local wall-clock datetime (naive or aware)

    Returns:
        True once now is at or past the end of the window
    """
    return now.replace(tzinfo=None) >= window_end(reservation_date, end_time)
