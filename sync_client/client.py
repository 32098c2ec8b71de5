"""HTTP client for the facility reservation API."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from models.reservation_errors import ERRORS_BY_CODE, AlreadyReserved, NotFound
from utils.messages import MESSAGES
from utils.slots import normalize_slot

logger = logging.getLogger(__name__)


class SyncClientError(Exception):
    """API call failed for a reason other than a reservation rule."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class OutcomeUnknown(SyncClientError):
    """A reserve/release timed out and its result could not be confirmed."""


class FacilityApiClient:
    """
    Client for one user session against the reservation API.

    Reservation rule failures come back as the same ReservationError
    subclasses the engine raises (AlreadyReserved, FacilityUnavailable, ...).
    Anything else raises SyncClientError; transport failures raise httpx errors.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_retries: int = 2,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root, e.g. 'http://localhost:8000'
            timeout: Per-request timeout in seconds
            max_retries: Extra attempts for a reserve/release whose outcome is unknown
            transport: Optional httpx transport (WSGI app or mock in tests)
        """
        self.base_url = base_url.rstrip('/')
        self.max_retries = max_retries
        self._csrf_token = None
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _fetch_csrf_token(self) -> str:
        if self._csrf_token is None:
            payload = self._parse(self._client.get('/api/csrf-token'))
            self._csrf_token = payload['data']['csrf_token']
        return self._csrf_token

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """Send a request and return the decoded success payload."""
        if method == 'GET':
            return self._parse(self._client.request(method, path, **kwargs))

        for attempt in range(2):
            headers = {'X-CSRFToken': self._fetch_csrf_token()}
            response = self._client.request(method, path, headers=headers, **kwargs)
            try:
                return self._parse(response)
            except SyncClientError as e:
                # Stale token (expired, or the session changed): fetch a new one once
                if getattr(e, 'error_code', None) != 'csrf_failed' or attempt:
                    raise
                self._csrf_token = None

        raise SyncClientError(MESSAGES['server_error'])

    @staticmethod
    def _parse(response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            raise SyncClientError(
                f'Unexpected {response.status_code} response from {response.request.url}',
                status_code=response.status_code,
            )

        if response.is_success and payload.get('success', True):
            return payload

        error_code = payload.get('error_code')
        error_class = ERRORS_BY_CODE.get(error_code)
        if error_class is not None:
            raise error_class(payload.get('error'))

        error = SyncClientError(payload.get('error') or f'HTTP {response.status_code}',
                                status_code=response.status_code)
        error.error_code = error_code
        raise error

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def login(self, username: str, password: str) -> Dict[str, Any]:
        """Log in; the session cookie is kept on the client."""
        payload = self._request('POST', '/login', json={'username': username, 'password': password})
        self._csrf_token = None
        return payload['data']

    def logout(self) -> None:
        self._request('POST', '/logout')
        self._csrf_token = None

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list_available(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {'category': category} if category else None
        return self._request('GET', '/api/facilities/available', params=params)['data']

    def get_active_reservation(self) -> Optional[Dict[str, Any]]:
        return self._request('GET', '/api/reservations/active').get('data')

    def snapshot(self, category: Optional[str] = None) -> Dict[str, Any]:
        """Available facilities, counts, active reservation and server time in one call."""
        params = {'category': category} if category else None
        return self._request('GET', '/api/sync', params=params)['data']

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def _reconcile_reserve(
        self,
        facility_id: int,
        slot_start: str,
        reservation_date: Optional[str],
    ) -> Optional[Dict[str, Any]]:
        """
        Return the active reservation if it is the one we tried to create.

        Facility, date and slot must all match. Without an explicit date the
        server defaults to its own today, which the snapshot's server_time
        carries.
        """
        try:
            snapshot = self.snapshot()
        except httpx.TimeoutException:
            logger.warning('Timed out re-reading the active reservation')
            return None

        active = snapshot.get('active_reservation')
        if not active:
            return None

        expected_date = reservation_date or snapshot['server_time'][:10]
        if (active['facility_id'] == facility_id
                and active['reservation_date'] == expected_date
                and active['start_time'] == normalize_slot(slot_start)):
            return active
        return None

    def reserve(
        self,
        facility_id: int,
        slot_start: str,
        reservation_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Reserve a facility.

        When the request times out the server may or may not have committed.
        The active reservation is re-read: if it is this facility, date and
        slot the reservation went through. Otherwise the request is retried,
        up to max_retries times.

        Returns:
            The reservation dict

        Raises:
            ReservationError subclass for rule failures
            OutcomeUnknown if every attempt timed out unresolved
        """
        body = {'facility_id': facility_id, 'slot_start': slot_start}
        if reservation_date:
            body['reservation_date'] = reservation_date

        timed_out = False
        for attempt in range(self.max_retries + 1):
            try:
                return self._request('POST', '/api/reservations', json=body)['data']
            except httpx.TimeoutException as e:
                timed_out = True
                logger.warning('Reserve of facility %s timed out (attempt %s/%s): %s',
                               facility_id, attempt + 1, self.max_retries + 1, e)
            except AlreadyReserved:
                if not timed_out:
                    raise
                # An earlier timed-out attempt may be the reservation we now hold
                resolved = self._reconcile_reserve(facility_id, slot_start, reservation_date)
                if resolved:
                    return resolved
                raise

            resolved = self._reconcile_reserve(facility_id, slot_start, reservation_date)
            if resolved:
                logger.info('Reserve of facility %s committed despite timeout', facility_id)
                return resolved

        raise OutcomeUnknown(MESSAGES['outcome_unknown'])

    def get_reservation(self, reservation_id: int) -> Dict[str, Any]:
        """One reservation by id, open or released."""
        return self._request('GET', f'/api/reservations/{reservation_id}')['data']

    def _reconcile_release(self, reservation_id: int) -> Optional[Dict[str, Any]]:
        """Return the reservation if the server shows it released, else None."""
        try:
            reservation = self.get_reservation(reservation_id)
        except (httpx.TimeoutException, NotFound):
            logger.warning('Could not re-read reservation %s', reservation_id)
            return None

        if reservation['is_open']:
            return None
        return reservation

    def release(self, reservation_id: int) -> Dict[str, Any]:
        """
        Release a reservation.

        Timeouts are resolved like reserve(), except that the reservation
        itself is re-read: if the server shows it released the release went
        through.

        Returns:
            The released reservation dict

        Raises:
            ReservationError subclass for rule failures
            OutcomeUnknown if every attempt timed out unresolved
        """
        path = f'/api/reservations/{reservation_id}/release'

        timed_out = False
        for attempt in range(self.max_retries + 1):
            try:
                return self._request('POST', path)['data']
            except httpx.TimeoutException as e:
                timed_out = True
                logger.warning('Release of reservation %s timed out (attempt %s/%s): %s',
                               reservation_id, attempt + 1, self.max_retries + 1, e)
            except NotFound:
                if not timed_out:
                    raise
                # Already released: by the timed-out attempt, or it never existed
                resolved = self._reconcile_release(reservation_id)
                if resolved:
                    return resolved
                raise

            resolved = self._reconcile_release(reservation_id)
            if resolved:
                logger.info('Release of reservation %s committed despite timeout', reservation_id)
                return resolved

        raise OutcomeUnknown(MESSAGES['outcome_unknown'])
