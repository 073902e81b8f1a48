# services/slot_client.py

import logging
import os

import requests

from services.errors import SlotValidationError
from services.slot_generator import SlotGeneratorService

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = os.getenv('SCHEDULING_API_URL', 'http://localhost:5000/api')
GENERIC_RETRY_MESSAGE = "Could not reach the scheduling service. Please try again."


class SlotApiError(Exception):
    """
    A failed scheduling call.

    ``kind`` is one of ``validation``, ``capacity``, ``not_found`` or
    ``transport``. ``stale`` is set for not-found errors: the caller's slot
    listing is out of date and should be refetched.
    """

    def __init__(self, message, status_code=None, kind='transport'):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.kind = kind

    @property
    def stale(self):
        return self.kind == 'not_found'


def _kind_for(status_code):
    if status_code == 404:
        return 'not_found'
    if status_code == 409:
        return 'capacity'
    return 'validation'


class SlotApiClient:
    """Thin wrapper over the ``/slots`` REST surface. No automatic retries."""

    def __init__(self, base_url=DEFAULT_BASE_URL, session=None, timeout=10):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"❌ {method} {url} failed: {e}")
            raise SlotApiError(GENERIC_RETRY_MESSAGE)

        if response.status_code >= 500:
            logger.error(f"❌ {method} {url} returned {response.status_code}")
            raise SlotApiError(GENERIC_RETRY_MESSAGE, status_code=response.status_code)

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            message = body.get('message') if isinstance(body, dict) else None
            raise SlotApiError(
                message or response.reason or f"Request failed with status {response.status_code}",
                status_code=response.status_code,
                kind=_kind_for(response.status_code),
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def generate_slots(self, gig_id, start_date, end_date, slot_duration, capacity,
                       start_hour=None, end_hour=None, notes=None):
        """Validate locally, then ask the store to create the grid. Returns {message, slots}."""
        payload = {
            'gigId': gig_id,
            'startDate': start_date,
            'endDate': end_date,
            'slotDuration': slot_duration,
            'capacity': capacity,
        }
        if start_hour is not None:
            payload['startHour'] = start_hour
        if end_hour is not None:
            payload['endHour'] = end_hour
        if notes:
            payload['notes'] = notes

        try:
            SlotGeneratorService.validate_params(payload)
        except SlotValidationError as e:
            raise SlotApiError(e.message, kind='validation')

        return self._request('POST', '/slots/generate', json=payload)

    def get_slots(self, gig_id=None, date=None):
        params = {}
        if gig_id:
            params['gigId'] = gig_id
        if date:
            params['date'] = date
        return self._request('GET', '/slots', params=params)

    def reserve_slot(self, slot_id, agent_id, notes=None):
        payload = {'agentId': agent_id}
        if notes:
            payload['notes'] = notes
        return self._request('POST', f'/slots/{slot_id}/reserve', json=payload)

    def cancel_reservation(self, reservation_id):
        return self._request('DELETE', f'/slots/reservations/{reservation_id}')

    def get_reservations(self, agent_id=None, gig_id=None):
        params = {}
        if agent_id:
            params['agentId'] = agent_id
        if gig_id:
            params['gigId'] = gig_id
        return self._request('GET', '/slots/reservations', params=params)

    def delete_slot(self, slot_id, confirmed=False):
        """Destructive; the caller must pass ``confirmed=True`` after asking the user."""
        if not confirmed:
            raise SlotApiError("Slot deletion must be confirmed", kind='validation')
        return self._request('DELETE', f'/slots/{slot_id}')
