# services/utils.py

from flask import current_app
from datetime import datetime, time
from pytz import timezone

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


def validate_json(data, required_fields):
    """Return the required fields missing (or empty) in the JSON payload."""
    return [field for field in required_fields if data.get(field) in (None, '')]


def parse_date(value, field_name='date'):
    """Parse an ISO ``yyyy-MM-dd`` string into a date."""
    if not value or not isinstance(value, str):
        raise ValueError(f"{field_name} must be in 'YYYY-MM-DD' format")
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        raise ValueError(f"{field_name} must be in 'YYYY-MM-DD' format")


def parse_optional_date(value, field_name='date'):
    if value in (None, ''):
        return None
    return parse_date(value, field_name)


def parse_hhmm(value):
    return datetime.strptime(value, TIME_FORMAT).time()


def format_hhmm(value):
    return value.strftime(TIME_FORMAT)


def minutes_of(value):
    """Minutes since midnight for a ``time`` or ``HH:mm`` string."""
    if isinstance(value, str):
        value = parse_hhmm(value)
    return value.hour * 60 + value.minute


def time_from_minutes(total_minutes):
    return time(total_minutes // 60, total_minutes % 60)


def span_hours(start, end):
    return (minutes_of(end) - minutes_of(start)) / 60


def derive_status(reserved_count, capacity, is_cancelled=False):
    """Slot status is a projection of occupancy; ``cancelled`` is terminal."""
    if is_cancelled:
        return 'cancelled'
    if reserved_count >= capacity:
        return 'full'
    return 'available'


def string_to_color(value):
    """Deterministic ``#RRGGBB`` colour for an identifier."""
    hash_value = 0
    for char in value:
        hash_value = (ord(char) + ((hash_value << 5) - hash_value)) & 0xFFFFFFFF
    return '#' + format(hash_value & 0x00FFFFFF, '06X')


def facility_today():
    """Today's date in the facility's operating time zone."""
    tz = timezone(current_app.config.get('FACILITY_TIMEZONE', 'UTC'))
    return datetime.now(tz).date()
