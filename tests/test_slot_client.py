"""HTTP client error mapping, exercised against a recorded fake session."""

import pytest
import requests

from services.slot_client import GENERIC_RETRY_MESSAGE, SlotApiClient, SlotApiError


class FakeResponse:
    def __init__(self, status_code, payload=None, reason=''):
        self.status_code = status_code
        self._payload = payload
        self.reason = reason
        self.content = b'' if payload is None else b'{}'

    def json(self):
        if self._payload is None:
            raise ValueError('No JSON body')
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response


def _client(**kwargs):
    session = FakeSession(**kwargs)
    return SlotApiClient('http://scheduling.test/api/', session=session), session


def test_invalid_generation_never_sends_a_request():
    client, session = _client(response=FakeResponse(201, {}))
    with pytest.raises(SlotApiError) as excinfo:
        client.generate_slots('g1', '2024-01-05', '2024-01-01', 1, 2)
    assert excinfo.value.message == 'end date must be after start date'
    assert excinfo.value.kind == 'validation'
    assert session.calls == []


def test_valid_generation_posts_payload():
    client, session = _client(response=FakeResponse(201, {'message': '2 slots generated', 'slots': []}))
    body = client.generate_slots('g1', '2024-01-01', '2024-01-01', 1, 2, start_hour=9, end_hour=11)
    assert body['message'] == '2 slots generated'

    [(method, url, kwargs)] = session.calls
    assert (method, url) == ('POST', 'http://scheduling.test/api/slots/generate')
    assert kwargs['json']['startHour'] == 9
    assert 'notes' not in kwargs['json']


def test_conflict_message_is_shown_verbatim():
    client, _ = _client(response=FakeResponse(409, {'message': 'Slot is full'}))
    with pytest.raises(SlotApiError) as excinfo:
        client.reserve_slot('s1', 'r1')
    assert excinfo.value.message == 'Slot is full'
    assert excinfo.value.kind == 'capacity'
    assert excinfo.value.status_code == 409
    assert excinfo.value.stale is False


def test_missing_slot_marks_listing_stale():
    client, _ = _client(response=FakeResponse(404, {'message': 'Slot not found'}))
    with pytest.raises(SlotApiError) as excinfo:
        client.reserve_slot('gone', 'r1')
    assert excinfo.value.kind == 'not_found'
    assert excinfo.value.stale is True


def test_bad_request_without_body_uses_reason():
    client, _ = _client(response=FakeResponse(400, reason='Bad Request'))
    with pytest.raises(SlotApiError) as excinfo:
        client.get_slots(date='nope')
    assert excinfo.value.message == 'Bad Request'
    assert excinfo.value.kind == 'validation'


def test_server_error_gets_generic_retry_message():
    client, _ = _client(response=FakeResponse(500, {'message': 'Traceback (most recent call last)'}))
    with pytest.raises(SlotApiError) as excinfo:
        client.cancel_reservation('res-1')
    assert excinfo.value.message == GENERIC_RETRY_MESSAGE
    assert excinfo.value.status_code == 500


def test_transport_failure_gets_generic_retry_message():
    client, _ = _client(error=requests.ConnectionError('connection refused'))
    with pytest.raises(SlotApiError) as excinfo:
        client.get_reservations(agent_id='r1')
    assert excinfo.value.message == GENERIC_RETRY_MESSAGE
    assert excinfo.value.kind == 'transport'


def test_delete_requires_confirmation():
    client, session = _client(response=FakeResponse(200, {'message': 'Slot deleted'}))
    with pytest.raises(SlotApiError):
        client.delete_slot('s1')
    assert session.calls == []

    assert client.delete_slot('s1', confirmed=True) == {'message': 'Slot deleted'}
    assert session.calls[0][:2] == ('DELETE', 'http://scheduling.test/api/slots/s1')


def test_query_filters_are_passed_as_params():
    client, session = _client(response=FakeResponse(200, []))
    client.get_slots(gig_id='g1', date='2024-01-15')
    assert session.calls[0][2]['params'] == {'gigId': 'g1', 'date': '2024-01-15'}


@pytest.mark.parametrize('slot_duration, capacity', [
    (float('nan'), 2),
    (1, float('inf')),
    ('inf', 2),
])
def test_non_finite_numbers_fail_locally(slot_duration, capacity):
    client, session = _client(response=FakeResponse(201, {}))
    with pytest.raises(SlotApiError) as excinfo:
        client.generate_slots('g1', '2024-01-01', '2024-01-01', slot_duration, capacity)
    assert excinfo.value.kind == 'validation'
    assert session.calls == []


@pytest.mark.parametrize('payload', [['Slot is full'], 'Slot is full'])
def test_error_body_that_is_not_an_object_falls_back_to_reason(payload):
    client, _ = _client(response=FakeResponse(409, payload, reason='Conflict'))
    with pytest.raises(SlotApiError) as excinfo:
        client.reserve_slot('s1', 'r1')
    assert excinfo.value.message == 'Conflict'
    assert excinfo.value.kind == 'capacity'
