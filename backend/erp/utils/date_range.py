"""Date helpers shared by the report screens.

Dates travel as ``dd-mm-yyyy`` strings. Ranges are interpreted as whole days in the
report time zone (``REPORT_TIMEZONE``) and converted to UTC bounds for querying.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
import math

import pytz
from flask import abort, current_app

DAY_FORMAT = '%d-%m-%Y'


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive values read back from the database."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def report_tz(tz_name: Optional[str] = None):
    return pytz.timezone(tz_name or current_app.config.get('REPORT_TIMEZONE', 'America/Asuncion'))


def to_local(dt: Optional[datetime], tz_name: Optional[str] = None) -> Optional[datetime]:
    if dt is None:
        return None
    return as_utc(dt).astimezone(report_tz(tz_name))


def parse_day(value: str) -> Optional[date]:
    """Parse ``dd-mm-yyyy``; returns None when malformed."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), DAY_FORMAT).date()
    except ValueError:
        return None


def format_day(value: date) -> str:
    return value.strftime(DAY_FORMAT)


def day_key(value: date) -> str:
    """Snapshot key ``YYYYMMDD``."""
    return value.strftime('%Y%m%d')


def local_today(tz_name: Optional[str] = None) -> date:
    return utcnow().astimezone(report_tz(tz_name)).date()


def day_bounds(value: date, tz_name: Optional[str] = None) -> Tuple[datetime, datetime]:
    """UTC bounds of a local day: [00:00:00, 23:59:59.999]."""
    tz = report_tz(tz_name)
    start = tz.localize(datetime.combine(value, time.min))
    end = tz.localize(datetime.combine(value, time(23, 59, 59, 999000)))
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def diff_days(start: date, end: date) -> int:
    """Whole days between two dates, rounded up."""
    seconds = abs((end - start).total_seconds())
    return math.ceil(seconds / 86400)


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    @property
    def days(self) -> int:
        return diff_days(self.start, self.end)

    @property
    def is_single_day(self) -> bool:
        return self.start == self.end

    def utc_bounds(self, tz_name: Optional[str] = None) -> Tuple[datetime, datetime]:
        return day_bounds(self.start, tz_name)[0], day_bounds(self.end, tz_name)[1]

    def iter_days(self):
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def label(self) -> str:
        if self.is_single_day:
            return format_day(self.start)
        return f"{format_day(self.start)} al {format_day(self.end)}"


class DateRangeError(ValueError):
    pass


def build_date_range(start_raw: str, end_raw: Optional[str], max_days: int) -> DateRange:
    """Build a validated range; reversed bounds are swapped.

    A missing end selects the single start day. Raises DateRangeError with the
    user-facing message when malformed or longer than ``max_days``.
    """
    start = parse_day(start_raw)
    end = parse_day(end_raw) if end_raw else start
    if start is None or end is None:
        raise DateRangeError('Fecha inválida, use el formato dd-mm-aaaa')
    if diff_days(start, end) > max_days:
        raise DateRangeError(f'El rango no puede exceder {max_days} días')
    if end < start:
        start, end = end, start
    return DateRange(start, end)


def date_range_from_args(args, max_days: int) -> DateRange:
    """Read ``start``/``end`` query args; aborts 400 with the validation message."""
    start_raw = args.get('start')
    if not start_raw:
        abort(400, description='start required (dd-mm-aaaa)')
    try:
        return build_date_range(start_raw, args.get('end'), max_days)
    except DateRangeError as e:
        abort(400, description=str(e))


__all__ = [
    'DAY_FORMAT', 'utcnow', 'as_utc', 'report_tz', 'to_local', 'parse_day', 'format_day', 'day_key',
    'local_today', 'day_bounds', 'diff_days', 'DateRange', 'DateRangeError', 'build_date_range',
    'date_range_from_args',
]
