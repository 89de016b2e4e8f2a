"""
Ledger primitives: money, local calendar days and input parsing.

Money is kept as Decimal with two places everywhere and only turned into a
string at the API boundary. Timestamps are stored as naive UTC; a "day" is
always a local midnight-to-midnight window in the hotel timezone.
"""

from datetime import datetime, date, time, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

import pytz
from flask import current_app, has_app_context

from errors import ValidationError

TWO_PLACES = Decimal('0.01')
ZERO = Decimal('0.00')
DEFAULT_TIMEZONE = 'Asia/Kolkata'
DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100
# Largest value a Numeric(10, 2) column holds
MAX_AMOUNT = Decimal('99999999.99')


def to_decimal(value):
    """Convert a stored or computed numeric value to a 2-place Decimal, 0 if unusable"""
    if value is None or value == '':
        return ZERO
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        return ZERO


def parse_amount(value, field='amount'):
    """Strict variant of to_decimal for request input"""
    if value is None or value == '' or isinstance(value, bool):
        raise ValidationError(f'{field} is required')
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise ValidationError(f'{field} must be a valid number')
        amount = amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f'{field} must be a valid number')
    if amount < 0:
        raise ValidationError(f'{field} must not be negative')
    if amount > MAX_AMOUNT:
        raise ValidationError(f'{field} must not exceed {MAX_AMOUNT}')
    return amount


def money(value):
    return str(to_decimal(value))


def like_pattern(text):
    """Substring pattern for ilike(..., escape='\\'), with LIKE wildcards taken literally"""
    text = text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{text}%'


def hotel_timezone():
    name = DEFAULT_TIMEZONE
    if has_app_context():
        name = current_app.config.get('HOTEL_TIMEZONE', DEFAULT_TIMEZONE)
    return pytz.timezone(name)


def utc_now():
    return datetime.now(pytz.utc).replace(tzinfo=None)


def to_local(moment):
    """Naive UTC datetime -> aware datetime in the hotel timezone"""
    return pytz.utc.localize(moment).astimezone(hotel_timezone())


def local_date(moment=None):
    return to_local(moment or utc_now()).date()


def day_window(first_day, last_day=None):
    """Naive UTC [start, end) covering local days first_day..last_day inclusive"""
    last_day = last_day or first_day
    tz = hotel_timezone()
    start = tz.localize(datetime.combine(first_day, time.min))
    end = tz.localize(datetime.combine(last_day + timedelta(days=1), time.min))
    return (start.astimezone(pytz.utc).replace(tzinfo=None),
            end.astimezone(pytz.utc).replace(tzinfo=None))


def month_bounds(day):
    first = day.replace(day=1)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    return first, next_first - timedelta(days=1)


def nights_between(start, end):
    """Inclusive day count: same-day check-in and target counts as one night"""
    if start is None or end is None or end < start:
        return 0
    return (end - start).days + 1


def parse_date(value, field='date', required=True):
    if value is None or value == '':
        if required:
            raise ValidationError(f'{field} is required')
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f'{field} must be in YYYY-MM-DD format')


def parse_time(value, field='time', required=True):
    if value is None or value == '':
        if required:
            raise ValidationError(f'{field} is required')
        return None
    if isinstance(value, time):
        return value
    for fmt in ('%H:%M:%S', '%H:%M'):
        try:
            return datetime.strptime(str(value), fmt).time()
        except ValueError:
            continue
    raise ValidationError(f'{field} must be in HH:MM or HH:MM:SS format')


def parse_pagination(page=None, limit=None):
    try:
        page = int(page) if page not in (None, '') else 1
        limit = int(limit) if limit not in (None, '') else DEFAULT_PAGE_LIMIT
    except (TypeError, ValueError):
        raise ValidationError('page and limit must be integers')
    if page < 1:
        raise ValidationError('Page must be a positive integer')
    if limit < 1 or limit > MAX_PAGE_LIMIT:
        raise ValidationError(f'Limit must be a positive integer between 1 and {MAX_PAGE_LIMIT}')
    return page, limit


def pagination_meta(page, limit, total):
    total_pages = (total + limit - 1) // limit
    return {
        'currentPage': page,
        'totalPages': total_pages,
        'totalRecords': total,
        'recordsPerPage': limit,
        'hasNextPage': page < total_pages,
        'hasPrevPage': page > 1,
    }
