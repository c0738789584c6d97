"""
Time and slot-key helpers.

Slot records are addressed by ``{owner}_{date}_{HH-MM}``.  The time part
goes through :func:`normalize_time` first so that ``9:00``, ``09-00`` and
``9:00 AM`` all land on the same record.
"""
from __future__ import annotations

import datetime
import re
from typing import Iterable, Optional, Sequence, Tuple, Union

from booking.exceptions import BookingValidationError

PENDING_OWNER = 'PENDING'

_KEY_UNSAFE = re.compile(r'[:\s]')
_TWELVE_HOUR = re.compile(r'^(\d{1,2})(?:[:.\-]?(\d{2}))?(AM|PM)$')
_TWENTY_FOUR_HOUR = re.compile(r'^(\d{1,2})[:.\-](\d{1,2})(?::\d{2})?$')

DateLike = Union[datetime.date, str]

# weekday() -> list of (start, end) visiting windows
DEFAULT_VISITING_HOURS: dict[int, list[Tuple[str, str]]] = {
    0: [('09:00', '13:00'), ('14:00', '17:00')],
    1: [('09:00', '13:00'), ('14:00', '17:00')],
    2: [('09:00', '13:00'), ('14:00', '17:00')],
    3: [('09:00', '13:00'), ('14:00', '17:00')],
    4: [('09:00', '13:00'), ('14:00', '17:00')],
    5: [('09:00', '13:00')],
    6: [],
}


def normalize_time(value: str) -> str:
    """Return ``value`` as a zero-padded 24-hour ``HH:MM`` string.

    Accepts ``H:MM``/``HH:MM`` with ``:``, ``-`` or ``.`` as separator,
    an optional seconds part, and 12-hour forms such as ``9 am``,
    ``9:30PM`` or ``0930 pm``.  Already-normalized input comes back
    unchanged.

    Raises :class:`BookingValidationError` for anything else.
    """
    if not isinstance(value, str) or not value.strip():
        raise BookingValidationError('Time is required.')
    compact = re.sub(r'\s+', '', value).upper().replace('.M.', 'M').replace('A.M', 'AM').replace('P.M', 'PM')

    m = _TWELVE_HOUR.match(compact)
    if m:
        hours, minutes = int(m.group(1)), int(m.group(2) or 0)
        if not 1 <= hours <= 12:
            raise BookingValidationError(f'Invalid time: {value!r}')
        if m.group(3) == 'PM' and hours != 12:
            hours += 12
        elif m.group(3) == 'AM' and hours == 12:
            hours = 0
    else:
        m = _TWENTY_FOUR_HOUR.match(compact)
        if m:
            hours, minutes = int(m.group(1)), int(m.group(2))
        elif compact.isdigit() and len(compact) == 4:
            hours, minutes = int(compact[:2]), int(compact[2:])
        else:
            raise BookingValidationError(f'Invalid time: {value!r}')

    if hours > 23 or minutes > 59:
        raise BookingValidationError(f'Invalid time: {value!r}')
    return f'{hours:02d}:{minutes:02d}'


def parse_date(value: DateLike) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value).strip())
    except ValueError:
        raise BookingValidationError(f'Invalid date: {value!r}, expected YYYY-MM-DD') from None


def slot_key(owner: str, date: DateLike, time: str) -> str:
    """Build the slot record id for ``owner`` at ``date``/``time``.

    ``owner`` is a doctor id or :data:`PENDING_OWNER`.
    """
    owner = str(owner or '').strip()
    if not owner:
        raise BookingValidationError('Slot owner is required.')
    raw = f'{owner}_{parse_date(date).isoformat()}_{normalize_time(time)}'
    return _KEY_UNSAFE.sub('-', raw)


def same_time(a: Optional[str], b: Optional[str]) -> bool:
    """True when both times normalize to the same value."""
    if not a or not b:
        return a == b
    try:
        return normalize_time(a) == normalize_time(b)
    except BookingValidationError:
        return a == b


def time_to_minutes(value: str) -> int:
    hours, minutes = normalize_time(value).split(':')
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def generate_time_slots(windows: Iterable[Sequence[str]], step: int = 15) -> list[str]:
    """Start times every ``step`` minutes inside each ``(start, end)`` window."""
    slots = set()
    for start, end in windows:
        for minute in range(time_to_minutes(start), time_to_minutes(end), step):
            slots.add(minutes_to_time(minute))
    return sorted(slots)


def visiting_windows(date: DateLike) -> list[Tuple[str, str]]:
    return DEFAULT_VISITING_HOURS.get(parse_date(date).weekday(), [])
