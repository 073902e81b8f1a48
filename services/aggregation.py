# services/aggregation.py
"""
Read-only rollups over slot / reservation snapshots.

Every function here takes plain dicts in the wire shape returned by the
``/api/slots`` endpoints (``gigId``, ``startTime``, ``reservedCount``,
``reservations`` ...) and returns new dicts. Nothing is mutated, so the same
snapshot always yields the same totals and the functions can run on either
side of the HTTP boundary.
"""

from collections import defaultdict
from datetime import date as date_cls

from services.utils import parse_date, span_hours

NO_ONE_SCHEDULED = "No REPs scheduled for this date"


def as_date(value):
    if isinstance(value, date_cls):
        return value
    return parse_date(value)


def agent_key(agent):
    """Agent reference as an id string; accepts an embedded object or a bare id."""
    if agent is None:
        return None
    if isinstance(agent, dict):
        agent = agent.get('id') or agent.get('_id')
        if isinstance(agent, dict):
            agent = agent.get('$oid')
    return str(agent) if agent not in (None, '') else None


def slot_duration(slot):
    duration = slot.get('duration')
    if duration:
        return float(duration)
    if slot.get('startTime') and slot.get('endTime'):
        return span_hours(slot['startTime'], slot['endTime'])
    return 1.0


def is_cancelled(slot):
    return slot.get('status') == 'cancelled'


def is_occupied(slot):
    if is_cancelled(slot):
        return False
    return slot.get('status') == 'reserved' or (slot.get('reservedCount') or 0) > 0


def remaining_spots(slot):
    if is_cancelled(slot):
        return 0
    capacity = slot.get('capacity') or 1
    return max(capacity - (slot.get('reservedCount') or 0), 0)


def normalize_assignments(slot):
    """
    Effective ``(agentId, duration, notes)`` entries for one slot.

    Uses the embedded ``reservations`` list when it has entries and falls back
    to the single ``repId`` owner otherwise. Cancelled reservations are dropped
    and a reservation note wins over the slot note.
    """
    duration = slot_duration(slot)
    reservations = slot.get('reservations') or []
    if reservations:
        assignments = []
        for reservation in reservations:
            if reservation.get('status') == 'cancelled':
                continue
            agent_id = agent_key(reservation.get('agentId'))
            if agent_id is None:
                continue
            assignments.append({
                'agentId': agent_id,
                'duration': duration,
                'notes': reservation.get('notes') or slot.get('notes'),
            })
        return assignments

    rep_id = agent_key(slot.get('repId'))
    if rep_id and is_occupied(slot):
        return [{'agentId': rep_id, 'duration': duration, 'notes': slot.get('notes')}]
    return []


def _index(items, key='id'):
    return {item.get(key): item for item in items if item.get(key) is not None}


def _gig_matches_company(gig, company):
    return company in (gig.get('companyId'), gig.get('company'))


def company_schedule(company, slots, gigs, reps, selected_date):
    """
    Hours and slot detail per rep for one company on one date.

    ``company`` matches either a gig's ``companyId`` or its ``company`` name.
    Reps with no attributed slot are left out; an empty schedule carries the
    "no one scheduled" message instead of an empty table.
    """
    day = as_date(selected_date).isoformat()
    gigs_by_id = _index(gigs)
    reps_by_id = _index(reps)

    hours = defaultdict(float)
    detail = defaultdict(list)
    for slot in slots:
        gig = gigs_by_id.get(agent_key(slot.get('gigId')))
        if gig is None or not _gig_matches_company(gig, company):
            continue
        if slot.get('date') != day or not is_occupied(slot):
            continue

        for assignment in normalize_assignments(slot):
            agent_id = assignment['agentId']
            hours[agent_id] += assignment['duration']
            detail[agent_id].append({
                'slotId': slot.get('id'),
                'gigId': gig.get('id'),
                'gigName': gig.get('name'),
                'color': gig.get('color'),
                'startTime': slot.get('startTime'),
                'endTime': slot.get('endTime'),
                'duration': assignment['duration'],
                'notes': assignment['notes'],
            })

    rows = []
    for agent_id, agent_hours in hours.items():
        agent_slots = sorted(detail[agent_id], key=lambda s: (s['startTime'] or '', s['gigId'] or ''))
        rows.append({
            'agentId': agent_id,
            'rep': reps_by_id.get(agent_id),
            'hours': round(agent_hours, 2),
            'slotCount': len(agent_slots),
            'slots': agent_slots,
        })
    rows.sort(key=lambda row: (-row['hours'], row['agentId']))

    return {
        'company': company,
        'date': day,
        'totalHours': round(sum(hours.values()), 2),
        'reps': rows,
        'empty': not rows,
        'message': NO_ONE_SCHEDULED if not rows else None,
    }


def rep_overview(reps, slots):
    """Scheduled hours and slot count for every rep across the snapshot."""
    hours = defaultdict(float)
    counts = defaultdict(int)
    for slot in slots:
        if is_cancelled(slot):
            continue
        for assignment in normalize_assignments(slot):
            hours[assignment['agentId']] += assignment['duration']
            counts[assignment['agentId']] += 1

    return [
        {
            'repId': rep['id'],
            'name': rep.get('name'),
            'email': rep.get('email'),
            'hours': round(hours[rep['id']], 2),
            'slotCount': counts[rep['id']],
            'performanceScore': rep.get('performanceScore'),
            'attendanceScore': rep.get('attendanceScore'),
        }
        for rep in reps
    ]


def company_overview(companies, gigs, slots):
    """Scheduled hours and distinct reps per company."""
    gig_company = {}
    for gig in gigs:
        gig_company[gig.get('id')] = (gig.get('companyId'), gig.get('company'))

    summary = []
    for company in companies:
        keys = (company.get('id'), company.get('name'))
        total = 0.0
        agents = set()
        slot_count = 0
        for slot in slots:
            owner = gig_company.get(agent_key(slot.get('gigId')))
            if owner is None or not (owner[0] == keys[0] or owner[1] == keys[1]):
                continue
            if is_cancelled(slot):
                continue
            assignments = normalize_assignments(slot)
            if assignments:
                slot_count += 1
            for assignment in assignments:
                total += assignment['duration']
                agents.add(assignment['agentId'])
        summary.append({
            'companyId': company.get('id'),
            'name': company.get('name'),
            'totalHours': round(total, 2),
            'uniqueReps': len(agents),
            'slotCount': slot_count,
        })
    return summary


def weekly_stats(slots, start_date=None, end_date=None, agent_id=None):
    """
    Reserved hours, per-gig breakdown and open / reserved counts.

    With ``agent_id`` only that agent's reservations count toward hours and
    reserved slots; open capacity is always reported for the whole snapshot.
    """
    start = as_date(start_date) if start_date else None
    end = as_date(end_date) if end_date else None

    stats = {
        'totalHours': 0.0,
        'projectBreakdown': {},
        'availableSlots': 0,
        'reservedSlots': 0,
    }
    for slot in slots:
        if is_cancelled(slot):
            continue
        slot_day = as_date(slot['date'])
        if (start and slot_day < start) or (end and slot_day > end):
            continue

        assignments = normalize_assignments(slot)
        if agent_id is not None:
            assignments = [a for a in assignments if a['agentId'] == agent_id]
        booked_hours = sum(a['duration'] for a in assignments)

        stats['totalHours'] += booked_hours
        stats['reservedSlots'] += len(assignments)
        stats['availableSlots'] += remaining_spots(slot)

        gig_id = agent_key(slot.get('gigId'))
        if gig_id and assignments:
            breakdown = stats['projectBreakdown']
            breakdown[gig_id] = round(breakdown.get(gig_id, 0.0) + booked_hours, 2)

    stats['totalHours'] = round(stats['totalHours'], 2)
    return stats


def available_pool(slots, selected_date, gig_id=None):
    """Open slots on a date, optionally for one gig, with remaining spots."""
    day = as_date(selected_date).isoformat()
    pool = []
    for slot in slots:
        if slot.get('date') != day:
            continue
        if gig_id and agent_key(slot.get('gigId')) != gig_id:
            continue
        remaining = remaining_spots(slot)
        if remaining <= 0:
            continue
        pool.append(dict(slot, remaining=remaining))
    pool.sort(key=lambda s: (s.get('startTime') or '', s.get('gigId') or ''))
    return pool


WEEKDAY_LABELS = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')


def availability_heatmap(slots, gig_id=None):
    """Open and reserved spots per weekday x start hour."""
    open_spots = defaultdict(int)
    reserved = defaultdict(int)
    for slot in slots:
        if is_cancelled(slot):
            continue
        if gig_id and agent_key(slot.get('gigId')) != gig_id:
            continue
        weekday = as_date(slot['date']).weekday()
        hour = int(slot['startTime'].split(':')[0])
        open_spots[(weekday, hour)] += remaining_spots(slot)
        reserved[(weekday, hour)] += slot.get('reservedCount') or 0

    cells = [
        {
            'weekday': WEEKDAY_LABELS[weekday],
            'hour': hour,
            'openSpots': open_spots[(weekday, hour)],
            'reservedCount': reserved[(weekday, hour)],
        }
        for weekday, hour in sorted(set(open_spots) | set(reserved))
    ]
    peak = max(cells, key=lambda c: (c['openSpots'], -c['hour']), default=None)
    return {'cells': cells, 'peak': peak}


def recommend_hours(rep, slots, selected_date, gig_id=None, limit=3):
    """
    Rank start hours on a date by open capacity for a rep.

    Hours inside the rep's preferred window come first, then hours with more
    open spots, then earlier hours. Slots the rep already holds are skipped.
    """
    day = as_date(selected_date).isoformat()
    preferred = (rep or {}).get('preferredHours') or {}
    rep_id = (rep or {}).get('id')

    by_hour = defaultdict(lambda: {'openSpots': 0, 'slotIds': []})
    for slot in available_pool(slots, day, gig_id):
        if rep_id and any(a['agentId'] == rep_id for a in normalize_assignments(slot)):
            continue
        hour = int(slot['startTime'].split(':')[0])
        by_hour[hour]['openSpots'] += slot['remaining']
        by_hour[hour]['slotIds'].append(slot.get('id'))

    def in_window(hour):
        if preferred.get('start') is None or preferred.get('end') is None:
            return False
        return preferred['start'] <= hour < preferred['end']

    ranked = sorted(
        by_hour.items(),
        key=lambda item: (not in_window(item[0]), -item[1]['openSpots'], item[0])
    )
    return [
        {
            'hour': hour,
            'startTime': f"{hour:02d}:00",
            'openSpots': info['openSpots'],
            'slotIds': info['slotIds'],
            'inPreferredHours': in_window(hour),
        }
        for hour, info in ranked[:limit]
    ]


def attendance_score(history):
    """Percentage of attended sessions, rounded half up; 0 with no history."""
    if not history:
        return 0
    attended = sum(1 for record in history if record.get('attended'))
    return int(attended * 100 / len(history) + 0.5)
