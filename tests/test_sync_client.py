"""
Tests for the HTTP sync client and the snapshot poller.
"""

import threading

import httpx
import pytest

from conftest import FUTURE_DATE, TEST_PASSWORD
from models.reservation_errors import AlreadyReserved, FacilityUnavailable, NotFound
from sync_client import FacilityApiClient, OutcomeUnknown, PollingSync, SyncClientError

ACTIVE = {
    'id': 7,
    'facility_id': 3,
    'reservation_date': '2099-06-01',
    'start_time': '10:00:00',
    'end_time': '11:00:00',
    'is_open': True,
}

RELEASED = dict(ACTIVE, is_open=False, release_reason='cancelled')


@pytest.fixture
def api_client(app):
    """Client talking to the test app in-process."""
    transport = httpx.WSGITransport(app=app)
    with FacilityApiClient('http://testserver', transport=transport) as client:
        yield client


def _mock_client(handler, max_retries=2):
    """Client whose POSTs go to `handler`; the CSRF token endpoint always answers."""

    def dispatch(request):
        if request.url.path == '/api/csrf-token':
            return httpx.Response(200, json={'success': True, 'data': {'csrf_token': 'tok'}})
        return handler(request)

    return FacilityApiClient('http://testserver', max_retries=max_retries,
                             transport=httpx.MockTransport(dispatch))


def _ok(data):
    return httpx.Response(200, json={'success': True, 'data': data})


def _sync(active, server_time='2099-06-01T07:00:00+08:00'):
    """A /api/sync answer carrying `active` as the user's reservation."""
    return _ok({
        'available': [],
        'available_counts': {},
        'active_reservation': active,
        'server_time': server_time,
    })


def _error(status, error_code):
    return httpx.Response(status, json={
        'success': False, 'error': error_code, 'error_code': error_code, 'refresh': True
    })


def _timeout(request):
    raise httpx.ReadTimeout('timed out', request=request)


class TestAgainstApp:

    def test_reserve_and_release_flow(self, api_client, make_user, make_facility):
        make_user('traveler')
        facility_id = make_facility()

        user = api_client.login('traveler', TEST_PASSWORD)
        assert user['username'] == 'traveler'

        assert [f['id'] for f in api_client.list_available()] == [facility_id]
        assert api_client.get_active_reservation() is None

        reservation = api_client.reserve(facility_id, '10:00', FUTURE_DATE)
        assert reservation['facility_id'] == facility_id
        assert api_client.get_active_reservation()['id'] == reservation['id']
        assert api_client.list_available() == []

        released = api_client.release(reservation['id'])
        assert released['release_reason'] == 'cancelled'
        assert api_client.get_active_reservation() is None

    def test_snapshot(self, api_client, make_user, make_facility):
        make_user('traveler')
        vip = make_facility(category='VIP')
        standard = make_facility(category='Standard')
        api_client.login('traveler', TEST_PASSWORD)

        snapshot = api_client.snapshot()
        assert [f['id'] for f in snapshot['available']] == [vip, standard]
        assert snapshot['active_reservation'] is None

        snapshot = api_client.snapshot('Standard')
        assert [f['id'] for f in snapshot['available']] == [standard]

    def test_rule_failures_raise_engine_errors(self, app, api_client, make_user, make_facility):
        make_user('traveler')
        make_user('other')
        first = make_facility()
        second = make_facility()

        api_client.login('traveler', TEST_PASSWORD)
        api_client.reserve(first, '10:00', FUTURE_DATE)
        with pytest.raises(AlreadyReserved):
            api_client.reserve(second, '11:00', FUTURE_DATE)

        transport = httpx.WSGITransport(app=app)
        with FacilityApiClient('http://testserver', transport=transport) as other:
            other.login('other', TEST_PASSWORD)
            with pytest.raises(FacilityUnavailable):
                other.reserve(first, '11:00', FUTURE_DATE)
            with pytest.raises(NotFound):
                other.release(9999)

    def test_login_failure(self, api_client, make_user):
        make_user('traveler')
        with pytest.raises(SyncClientError) as exc_info:
            api_client.login('traveler', 'wrong-password')
        assert exc_info.value.status_code == 401

    def test_requires_login(self, api_client):
        with pytest.raises(SyncClientError) as exc_info:
            api_client.list_available()
        assert exc_info.value.status_code == 401

    def test_get_reservation(self, api_client, make_user, make_facility):
        make_user('traveler')
        facility_id = make_facility()
        api_client.login('traveler', TEST_PASSWORD)

        reservation = api_client.reserve(facility_id, '10:00', FUTURE_DATE)
        api_client.release(reservation['id'])

        fetched = api_client.get_reservation(reservation['id'])
        assert fetched['is_open'] is False
        assert fetched['reservation_date'] == FUTURE_DATE

        with pytest.raises(NotFound):
            api_client.get_reservation(9999)


class TestReserveTimeout:

    def test_committed_despite_timeout(self):
        calls = {'reserve': 0}

        def handler(request):
            if request.method == 'POST':
                calls['reserve'] += 1
                _timeout(request)
            return _sync(ACTIVE)

        with _mock_client(handler) as client:
            assert client.reserve(3, '10:00', '2099-06-01') == ACTIVE
        assert calls['reserve'] == 1

    def test_default_date_matches_server_today(self):
        def handler(request):
            if request.method == 'POST':
                _timeout(request)
            return _sync(ACTIVE)

        with _mock_client(handler) as client:
            assert client.reserve(3, '10:00') == ACTIVE

    def test_timeout_then_already_reserved(self):
        responses = iter(['timeout', 'conflict'])
        reads = iter([None, ACTIVE])

        def handler(request):
            if request.method == 'POST':
                if next(responses) == 'timeout':
                    _timeout(request)
                return _error(409, 'already_reserved')
            # First re-read sees nothing yet, the second sees the committed row
            return _sync(next(reads))

        with _mock_client(handler) as client:
            assert client.reserve(3, '10:00:00', '2099-06-01') == ACTIVE

    def test_unresolved(self):
        calls = {'reserve': 0}

        def handler(request):
            if request.method == 'POST':
                calls['reserve'] += 1
                _timeout(request)
            return _sync(None)

        with _mock_client(handler, max_retries=2) as client:
            with pytest.raises(OutcomeUnknown):
                client.reserve(3, '10:00', '2099-06-01')
        assert calls['reserve'] == 3

    def test_other_facility_is_not_a_match(self):
        def handler(request):
            if request.method == 'POST':
                _timeout(request)
            return _sync(dict(ACTIVE, facility_id=99))

        with _mock_client(handler, max_retries=0) as client:
            with pytest.raises(OutcomeUnknown):
                client.reserve(3, '10:00', '2099-06-01')

    def test_same_slot_on_another_date_is_not_a_match(self):
        """Holding F3 10:00 on June 1st does not confirm a reserve for June 2nd."""
        def handler(request):
            if request.method == 'POST':
                _timeout(request)
            return _sync(ACTIVE)

        with _mock_client(handler, max_retries=0) as client:
            with pytest.raises(OutcomeUnknown):
                client.reserve(3, '10:00', reservation_date='2099-06-02')

    def test_existing_reservation_on_another_date_stays_already_reserved(self):
        responses = iter(['timeout', 'conflict'])

        def handler(request):
            if request.method == 'POST':
                if next(responses) == 'timeout':
                    _timeout(request)
                return _error(409, 'already_reserved')
            return _sync(ACTIVE)

        with _mock_client(handler) as client:
            with pytest.raises(AlreadyReserved):
                client.reserve(3, '10:00', reservation_date='2099-06-02')

    def test_default_date_on_another_day_is_not_a_match(self):
        def handler(request):
            if request.method == 'POST':
                _timeout(request)
            return _sync(ACTIVE, server_time='2099-06-02T07:00:00+08:00')

        with _mock_client(handler, max_retries=0) as client:
            with pytest.raises(OutcomeUnknown):
                client.reserve(3, '10:00')


class TestReleaseTimeout:

    def test_confirmed_by_reading_the_reservation(self):
        def handler(request):
            if request.method == 'POST':
                _timeout(request)
            assert request.url.path == '/api/reservations/7'
            return _ok(RELEASED)

        with _mock_client(handler) as client:
            assert client.release(7) == RELEASED

    def test_still_open_is_unresolved(self):
        """An admin releasing another user's reservation: the caller has no
        active reservation of their own, yet nothing was released."""
        calls = {'release': 0}

        def handler(request):
            if request.method == 'POST':
                calls['release'] += 1
                _timeout(request)
            if request.url.path == '/api/reservations/active':
                return _ok(None)
            return _ok(ACTIVE)

        with _mock_client(handler, max_retries=2) as client:
            with pytest.raises(OutcomeUnknown):
                client.release(7)
        assert calls['release'] == 3

    def test_timeout_then_not_found(self):
        responses = iter(['timeout', 'gone'])
        reads = iter([ACTIVE, RELEASED])

        def handler(request):
            if request.method == 'POST':
                if next(responses) == 'timeout':
                    _timeout(request)
                return _error(404, 'not_found')
            return _ok(next(reads))

        with _mock_client(handler) as client:
            assert client.release(7) == RELEASED

    def test_missing_reservation_stays_not_found(self):
        responses = iter(['timeout', 'gone'])

        def handler(request):
            if request.method == 'POST':
                if next(responses) == 'timeout':
                    _timeout(request)
            return _error(404, 'not_found')

        with _mock_client(handler) as client:
            with pytest.raises(NotFound):
                client.release(7)


class TestTransport:

    def test_timeout_is_set_by_the_caller(self):
        with FacilityApiClient('http://testserver', timeout=3.0) as client:
            assert client._client.timeout == httpx.Timeout(3.0)

    def test_stale_csrf_token_is_refetched(self):
        tokens = []

        def dispatch(request):
            if request.url.path == '/api/csrf-token':
                tokens.append(f'tok{len(tokens)}')
                return httpx.Response(200, json={'success': True, 'data': {'csrf_token': tokens[-1]}})
            if request.headers['X-CSRFToken'] == 'tok0':
                return httpx.Response(400, json={
                    'success': False, 'error': 'expired', 'error_code': 'csrf_failed'
                })
            return _ok(ACTIVE)

        client = FacilityApiClient('http://testserver', transport=httpx.MockTransport(dispatch))
        with client:
            assert client.reserve(3, '10:00') == ACTIVE
        assert tokens == ['tok0', 'tok1']

    def test_non_json_response(self):
        def handler(request):
            return httpx.Response(502, text='Bad Gateway')

        with _mock_client(handler) as client:
            with pytest.raises(SyncClientError) as exc_info:
                client.get_active_reservation()
        assert exc_info.value.status_code == 502


class FakeClient:
    """Stands in for FacilityApiClient.snapshot()."""

    def __init__(self, snapshots):
        self.snapshots = list(snapshots)
        self.calls = 0

    def snapshot(self, category=None):
        self.calls += 1
        item = self.snapshots[min(self.calls, len(self.snapshots)) - 1]
        if isinstance(item, Exception):
            raise item
        return item


def _snapshot(available_ids, active_id=None):
    return {
        'available': [{'id': i} for i in available_ids],
        'active_reservation': {'id': active_id} if active_id else None,
        'available_counts': {},
        'server_time': '2099-06-01T08:00:00',
    }


class TestPollingSync:

    def test_refresh_calls_on_change_only_when_changed(self):
        first = _snapshot([1, 2])
        same = _snapshot([1, 2])
        reserved = _snapshot([2], active_id=5)
        changes = []
        poller = PollingSync(FakeClient([first, same, reserved]), on_change=changes.append)

        assert poller.snapshot is None
        poller.refresh_now()
        poller.refresh_now()
        poller.refresh_now()

        assert changes == [first, reserved]
        assert poller.snapshot == reserved

    def test_failed_poll_keeps_previous_snapshot(self):
        first = _snapshot([1])
        client = FakeClient([first, SyncClientError('boom', status_code=500)])
        poller = PollingSync(client)

        poller.refresh_now()
        assert poller.refresh_now() == first
        assert poller.snapshot == first

    def test_transport_error_keeps_previous_snapshot(self):
        first = _snapshot([1])
        request = httpx.Request('GET', 'http://testserver/api/sync')
        client = FakeClient([first, httpx.ConnectError('refused', request=request)])
        poller = PollingSync(client)

        poller.refresh_now()
        assert poller.refresh_now() == first

    def test_callback_error_does_not_stop_polling(self):
        def broken(snapshot):
            raise RuntimeError('ui gone')

        poller = PollingSync(FakeClient([_snapshot([1])]), on_change=broken)
        assert poller.refresh_now() == _snapshot([1])

    def test_start_and_stop(self):
        client = FakeClient([_snapshot([1]), _snapshot([])])
        changed = threading.Event()
        seen = []

        def on_change(snapshot):
            seen.append(snapshot)
            if len(seen) == 2:
                changed.set()

        with PollingSync(client, interval=0.01, on_change=on_change) as poller:
            assert poller.running
            assert changed.wait(5)

        assert not poller.running
        assert poller.snapshot == _snapshot([])
