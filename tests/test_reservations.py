"""Reservation engine: capacity, cancellation and slot removal."""

import pytest
from sqlalchemy import update

from models.reservation import Reservation
from models.timeSlot import TimeSlot
from services.errors import CapacityConflictError, NotFoundError
from services.reservation_service import ReservationService


@pytest.fixture
def slot_ids(generate_slots):
    body = generate_slots(startDate='2024-01-01', endDate='2024-01-01',
                          startHour=9, endHour=10, capacity=2).get_json()
    return [s['id'] for s in body['slots']]


@pytest.fixture
def single_seat(generate_slots):
    body = generate_slots(gigId='gig-sales', startDate='2024-01-03', endDate='2024-01-03',
                          startHour=14, endHour=15, capacity=1).get_json()
    return body['slots'][0]['id']


def _slot(client, slot_id):
    slots = client.get('/api/slots').get_json()
    return next(s for s in slots if s['id'] == slot_id)


def test_reserve_returns_reservation_copied_from_slot(client, slot_ids):
    resp = client.post(f'/api/slots/{slot_ids[0]}/reserve',
                       json={'agentId': 'rep-alice', 'notes': 'first shift'})
    assert resp.status_code == 201
    reservation = resp.get_json()['reservation']
    assert reservation['agentId'] == 'rep-alice'
    assert reservation['slotId'] == slot_ids[0]
    assert reservation['gigId'] == 'gig-support'
    assert (reservation['date'], reservation['startTime'], reservation['endTime']) == \
        ('2024-01-01', '09:00', '10:00')
    assert reservation['duration'] == 1
    assert reservation['status'] == 'reserved'
    assert reservation['notes'] == 'first shift'


def test_capacity_plus_one_reservation_fails(client, slot_ids):
    slot_id = slot_ids[0]
    assert client.post(f'/api/slots/{slot_id}/reserve', json={'agentId': 'a1'}).status_code == 201
    assert client.post(f'/api/slots/{slot_id}/reserve', json={'agentId': 'a2'}).status_code == 201

    resp = client.post(f'/api/slots/{slot_id}/reserve', json={'agentId': 'a3'})
    assert resp.status_code == 409
    assert resp.get_json()['message'] == 'Slot is full'

    slot = _slot(client, slot_id)
    assert slot['reservedCount'] == 2
    assert slot['status'] == 'full'


def test_conditional_update_refuses_stale_capacity(app, db, single_seat):
    """A second writer that read the slot before the first commit still loses."""
    ReservationService.reserve_slot(single_seat, 'rep-alice')

    result = db.session.execute(
        update(TimeSlot)
        .where(TimeSlot.id == single_seat, TimeSlot.reserved_count < TimeSlot.capacity)
        .values(reserved_count=TimeSlot.reserved_count + 1)
    )
    db.session.commit()
    assert result.rowcount == 0
    assert db.session.get(TimeSlot, single_seat).reserved_count == 1

    with pytest.raises(CapacityConflictError):
        ReservationService.reserve_slot(single_seat, 'rep-bob')


def test_status_follows_single_seat_occupancy(client, single_seat):
    assert _slot(client, single_seat)['status'] == 'available'

    reservation = client.post(f'/api/slots/{single_seat}/reserve',
                              json={'agentId': 'rep-bob'}).get_json()['reservation']
    slot = _slot(client, single_seat)
    assert (slot['reservedCount'], slot['status']) == (1, 'full')

    client.delete(f"/api/slots/reservations/{reservation['id']}")
    slot = _slot(client, single_seat)
    assert (slot['reservedCount'], slot['status']) == (0, 'available')


def test_partial_occupancy_is_never_full(client, slot_ids):
    client.post(f'/api/slots/{slot_ids[0]}/reserve', json={'agentId': 'a1'})
    slot = _slot(client, slot_ids[0])
    assert slot['reservedCount'] == 1
    assert slot['status'] == 'available'


def test_cancel_restores_previous_occupancy(client, slot_ids):
    slot_id = slot_ids[0]
    client.post(f'/api/slots/{slot_id}/reserve', json={'agentId': 'a1'})
    before = _slot(client, slot_id)

    reservation = client.post(f'/api/slots/{slot_id}/reserve',
                              json={'agentId': 'a2'}).get_json()['reservation']
    resp = client.delete(f"/api/slots/reservations/{reservation['id']}")
    assert resp.status_code == 200
    assert resp.get_json()['reservation']['status'] == 'cancelled'

    after = _slot(client, slot_id)
    assert (after['reservedCount'], after['status']) == (before['reservedCount'], before['status'])


def test_cancel_twice_is_a_conflict(client, single_seat):
    reservation = client.post(f'/api/slots/{single_seat}/reserve',
                              json={'agentId': 'a1'}).get_json()['reservation']
    client.delete(f"/api/slots/reservations/{reservation['id']}")

    resp = client.delete(f"/api/slots/reservations/{reservation['id']}")
    assert resp.status_code == 409
    assert resp.get_json()['message'] == 'Reservation is already cancelled'
    assert _slot(client, single_seat)['reservedCount'] == 0


def test_unknown_ids_are_not_found(client, acme):
    resp = client.post('/api/slots/nope/reserve', json={'agentId': 'a1'})
    assert resp.status_code == 404
    assert resp.get_json()['message'] == 'Slot not found'

    resp = client.delete('/api/slots/reservations/nope')
    assert resp.status_code == 404
    assert resp.get_json()['message'] == 'Reservation not found'


def test_agent_is_required(client, single_seat):
    resp = client.post(f'/api/slots/{single_seat}/reserve', json={})
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'agentId is required'


def test_same_agent_cannot_hold_two_seats(client, slot_ids):
    client.post(f'/api/slots/{slot_ids[0]}/reserve', json={'agentId': 'a1'})
    resp = client.post(f'/api/slots/{slot_ids[0]}/reserve', json={'agentId': 'a1'})
    assert resp.status_code == 409
    assert _slot(client, slot_ids[0])['reservedCount'] == 1


def test_cancelled_slot_refuses_reservations(client, single_seat):
    resp = client.post(f'/api/slots/{single_seat}/cancel')
    assert resp.status_code == 200
    assert resp.get_json()['slot']['status'] == 'cancelled'

    resp = client.post(f'/api/slots/{single_seat}/reserve', json={'agentId': 'a1'})
    assert resp.status_code == 409
    assert resp.get_json()['message'] == 'Slot is cancelled'


def test_cancelling_reservation_keeps_cancelled_slot_cancelled(client, slot_ids):
    reservation = client.post(f'/api/slots/{slot_ids[0]}/reserve',
                              json={'agentId': 'a1'}).get_json()['reservation']
    client.post(f'/api/slots/{slot_ids[0]}/cancel')
    client.delete(f"/api/slots/reservations/{reservation['id']}")

    slot = _slot(client, slot_ids[0])
    assert (slot['reservedCount'], slot['status']) == (0, 'cancelled')


def test_delete_refuses_slot_with_active_reservations(client, db, single_seat):
    client.post(f'/api/slots/{single_seat}/reserve', json={'agentId': 'a1'})

    resp = client.delete(f'/api/slots/{single_seat}')
    assert resp.status_code == 409
    assert 'cancel the slot' in resp.get_json()['message']
    assert db.session.get(TimeSlot, single_seat) is not None
    assert len(client.get('/api/slots/reservations?agentId=a1').get_json()) == 1


def test_delete_unreserved_slot_keeps_reservation_history(client, db, single_seat):
    reservation = client.post(f'/api/slots/{single_seat}/reserve',
                              json={'agentId': 'a1'}).get_json()['reservation']
    client.delete(f"/api/slots/reservations/{reservation['id']}")

    resp = client.delete(f'/api/slots/{single_seat}')
    assert resp.status_code == 200
    assert db.session.get(TimeSlot, single_seat) is None

    [history] = client.get('/api/slots/reservations?agentId=a1').get_json()
    assert history['id'] == reservation['id']
    assert history['status'] == 'cancelled'
    assert history['slotId'] is None
    assert (history['date'], history['startTime']) == ('2024-01-03', '14:00')

    assert client.delete(f'/api/slots/{single_seat}').status_code == 404


def test_listing_filters(client, slot_ids, single_seat):
    client.post(f'/api/slots/{slot_ids[0]}/reserve', json={'agentId': 'a1'})
    client.post(f'/api/slots/{single_seat}/reserve', json={'agentId': 'a1'})
    client.post(f'/api/slots/{single_seat}/cancel')

    assert len(client.get('/api/slots?gigId=gig-sales').get_json()) == 1
    assert len(client.get('/api/slots?date=2024-01-01').get_json()) == 1
    assert client.get('/api/slots?date=bad').status_code == 400

    mine = client.get('/api/slots/reservations?agentId=a1').get_json()
    assert len(mine) == 2
    support = client.get('/api/slots/reservations?agentId=a1&gigId=gig-support').get_json()
    assert [r['slotId'] for r in support] == [slot_ids[0]]


def test_embedded_reservations_on_slot(client, slot_ids):
    client.post(f'/api/slots/{slot_ids[0]}/reserve', json={'agentId': 'a1', 'notes': 'x'})
    embedded = _slot(client, slot_ids[0])['reservations']
    assert len(embedded) == 1
    assert embedded[0]['agentId'] == 'a1'
    assert embedded[0]['notes'] == 'x'
    assert embedded[0]['status'] == 'reserved'


def test_service_errors_are_typed(app, acme):
    with pytest.raises(NotFoundError):
        ReservationService.cancel_reservation('missing')
    with pytest.raises(NotFoundError):
        ReservationService.delete_slot('missing')


class RecordingThread:
    started = []

    def __init__(self, target, args):
        self.target = target
        self.args = args

    def start(self):
        RecordingThread.started.append(self.args[1])


def test_confirmation_email_sent_when_enabled(app, client, reps, single_seat, monkeypatch):
    RecordingThread.started = []
    monkeypatch.setattr('services.reservation_service.Thread', RecordingThread)

    client.post(f'/api/slots/{single_seat}/reserve', json={'agentId': 'rep-bob'})
    assert RecordingThread.started == []

    app.config['RESERVATION_EMAILS_ENABLED'] = True
    other = client.post('/api/slots/generate', json={
        'gigId': 'gig-sales', 'startDate': '2024-01-04', 'endDate': '2024-01-04',
        'startHour': 9, 'endHour': 10, 'slotDuration': 1, 'capacity': 1,
    }).get_json()['slots'][0]['id']
    client.post(f'/api/slots/{other}/reserve', json={'agentId': 'rep-alice', 'notes': 'bring badge'})

    [msg] = RecordingThread.started
    assert msg.recipients == ['alice@example.com']
    assert '09:00 to 10:00' in msg.body
    assert 'bring badge' in msg.body


def test_agent_can_reserve_again_after_cancelling(client, slot_ids):
    first = client.post(f'/api/slots/{slot_ids[0]}/reserve', json={'agentId': 'a1'}).get_json()
    client.delete(f"/api/slots/reservations/{first['reservation']['id']}")

    resp = client.post(f'/api/slots/{slot_ids[0]}/reserve', json={'agentId': 'a1'})
    assert resp.status_code == 201
    assert _slot(client, slot_ids[0])['reservedCount'] == 1


def test_unique_index_backs_the_duplicate_check(app, slot_ids, monkeypatch):
    # Both requests pass the read check, as two concurrent ones can
    monkeypatch.setattr(ReservationService, 'holds_active_reservation',
                        staticmethod(lambda slot_id, agent_id: False))
    ReservationService.reserve_slot(slot_ids[0], 'a1')

    with pytest.raises(CapacityConflictError) as excinfo:
        ReservationService.reserve_slot(slot_ids[0], 'a1')
    assert excinfo.value.message == 'Agent already holds a reservation on this slot'

    slot = ReservationService.get_slots(gig_id='gig-support', date='2024-01-01')[0]
    assert slot.reserved_count == 1
    assert Reservation.query.filter_by(slot_id=slot_ids[0], status='reserved').count() == 1
