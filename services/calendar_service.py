# services/calendar_service.py

import calendar
from collections import defaultdict
from datetime import timedelta

from services.aggregation import as_date, is_occupied, remaining_spots

# Weeks start on Sunday, matching the console's month and week views
SUNDAY_FIRST = calendar.Calendar(firstweekday=6)


def shift_month(month, delta):
    """First day of the month ``delta`` months away from ``month``."""
    month = as_date(month)
    index = month.year * 12 + (month.month - 1) + delta
    return month.replace(year=index // 12, month=index % 12 + 1, day=1)


def _day_counts(slots):
    counts = defaultdict(lambda: {'reserved': 0, 'open': 0, 'total': 0})
    for slot in slots:
        day = slot.get('date')
        if not day:
            continue
        entry = counts[day]
        entry['total'] += 1
        if is_occupied(slot):
            entry['reserved'] += 1
        if remaining_spots(slot) > 0:
            entry['open'] += 1
    return counts


def _day_cell(day, counts, selected, month, today):
    key = day.isoformat()
    entry = counts.get(key, {'reserved': 0, 'open': 0, 'total': 0})
    return {
        'date': key,
        'day': day.day,
        'weekday': day.strftime('%a'),
        'inMonth': day.month == month.month and day.year == month.year,
        'isSelected': day == selected,
        'isToday': today is not None and day == today,
        'isPast': today is not None and day < today,
        'reserved': entry['reserved'],
        'open': entry['open'],
        'total': entry['total'],
    }


def month_grid(selected_date, slots, month=None, today=None):
    """
    Sunday-aligned weeks covering ``month`` with per-day slot badges.

    ``month`` defaults to the selected date's month; the selected day keeps
    ``isSelected`` in whichever month is displayed.
    """
    selected = as_date(selected_date)
    month = as_date(month).replace(day=1) if month else selected.replace(day=1)
    today = as_date(today) if today else None
    counts = _day_counts(slots)

    weeks = [
        [_day_cell(day, counts, selected, month, today) for day in week]
        for week in SUNDAY_FIRST.monthdatescalendar(month.year, month.month)
    ]
    return {
        'month': month.strftime('%Y-%m'),
        'label': month.strftime('%B %Y'),
        'selectedDate': selected.isoformat(),
        'previousMonth': shift_month(month, -1).strftime('%Y-%m'),
        'nextMonth': shift_month(month, 1).strftime('%Y-%m'),
        'weeks': weeks,
    }


def week_bounds(selected_date):
    """Sunday and Saturday of the week containing ``selected_date``."""
    selected = as_date(selected_date)
    start = selected - timedelta(days=(selected.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def week_strip(selected_date, slots, today=None):
    """The seven days of the selected date's week with slot badges."""
    selected = as_date(selected_date)
    start, _ = week_bounds(selected)
    today = as_date(today) if today else None
    counts = _day_counts(slots)
    return [
        _day_cell(start + timedelta(days=offset), counts, selected, selected, today)
        for offset in range(7)
    ]
