"""
Shared helpers for money arithmetic and hotel-local time.
"""
import math
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

import pytz
from flask import current_app

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def money(value):
    """Coerce a number to a Decimal rounded half-up to cents"""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def count_nights(check_in, check_out):
    """Whole nights between two timestamps, partial days rounded up, minimum 1"""
    seconds = (check_out - check_in).total_seconds()
    return max(1, math.ceil(seconds / 86400))


def hotel_timezone():
    return pytz.timezone(current_app.config.get('HOTEL_TIMEZONE', 'UTC'))


def hotel_now():
    """Current wall-clock time at the hotel, as a naive datetime"""
    return datetime.now(hotel_timezone()).replace(tzinfo=None)


def to_hotel_time(dt):
    """Convert an aware datetime to naive hotel-local time; naive values are assumed local already"""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(hotel_timezone()).replace(tzinfo=None)
