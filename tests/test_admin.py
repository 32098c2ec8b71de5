"""
Admin API tests: facility roster, user approval, reservation oversight, audit.
"""

from conftest import FUTURE_DATE

FACILITY_PAYLOAD = {
    'category': 'Premium',
    'car_unit': 'Toyota Innova',
    'plate_number': 'ADM 1001',
    'capacity': 7,
    'pickup_location': 'BGC',
    'driver_name': 'Carlo Diaz',
    'driver_number': '09175550000',
    'description': 'Family MPV',
}


class TestAdminAccess:

    def test_requires_login(self, client):
        assert client.get('/admin/facilities').status_code == 401

    def test_end_user_is_forbidden(self, user_client):
        for route in ('/admin/facilities', '/admin/facilities/stats', '/admin/users', '/admin/audit'):
            response = user_client.get(route)
            assert response.status_code == 403, f'{route} should be admin-only'

    def test_staff_admin_allowed_but_not_audit(self, login):
        staff = login('staff', 'staff123')
        assert staff.get('/admin/facilities').status_code == 200
        assert staff.get('/admin/audit').status_code == 403


class TestFacilityAdmin:

    def test_create_facility(self, authenticated_client):
        response = authenticated_client.post('/admin/facilities', json=FACILITY_PAYLOAD)
        assert response.status_code == 201
        facility = response.get_json()['data']
        assert facility['status'] == 'Available'
        assert facility['plate_number'] == 'ADM 1001'

    def test_create_validation_error(self, authenticated_client):
        payload = dict(FACILITY_PAYLOAD, driver_number='call me')
        response = authenticated_client.post('/admin/facilities', json=payload)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Valid driver number is required.'

    def test_create_duplicate_plate(self, authenticated_client):
        authenticated_client.post('/admin/facilities', json=FACILITY_PAYLOAD)
        payload = dict(FACILITY_PAYLOAD, plate_number='adm 1001')
        response = authenticated_client.post('/admin/facilities', json=payload)
        assert response.status_code == 400
        assert 'Carlo Diaz' in response.get_json()['error']

    def test_update_facility(self, authenticated_client, make_facility):
        facility_id = make_facility()
        response = authenticated_client.put(f'/admin/facilities/{facility_id}',
                                            json={'pickup_location': 'Pasay', 'capacity': 5})
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['pickup_location'] == 'Pasay'
        assert data['capacity'] == 5

    def test_update_rejects_status(self, authenticated_client, make_facility):
        facility_id = make_facility()
        response = authenticated_client.put(f'/admin/facilities/{facility_id}',
                                            json={'status': 'Maintenance'})
        assert response.status_code == 400

    def test_update_unknown_facility(self, authenticated_client):
        response = authenticated_client.put('/admin/facilities/9999', json={'capacity': 3})
        assert response.status_code == 404

    def test_roster_shows_reserving_user(self, authenticated_client, user_client, make_facility):
        reserved = make_facility(category='VIP')
        make_facility(category='Standard')
        user_client.post('/api/reservations', json={
            'facility_id': reserved, 'slot_start': '15:00', 'reservation_date': FUTURE_DATE
        })

        roster = authenticated_client.get('/admin/facilities').get_json()['data']
        assert roster[0]['id'] == reserved
        assert roster[0]['status'] == 'Reserved'
        assert roster[0]['reservation']['username'] == 'traveler'
        assert roster[1]['reservation'] is None

        reserved_only = authenticated_client.get('/admin/facilities?status=Reserved').get_json()
        assert reserved_only['count'] == 1

        found = authenticated_client.get('/admin/facilities?search=driver 2').get_json()
        assert found['count'] == 1

    def test_roster_bad_filter(self, authenticated_client):
        assert authenticated_client.get('/admin/facilities?status=Broken').status_code == 400

    def test_stats(self, authenticated_client, make_facility):
        make_facility(category='VIP')
        make_facility(category='Standard', status='Maintenance')

        data = authenticated_client.get('/admin/facilities/stats').get_json()['data']
        assert data['by_status'] == {'Available': 1, 'Reserved': 0, 'Maintenance': 1}
        assert data['by_category'] == {'VIP': 1, 'Premium': 0, 'Standard': 1}
        assert data['open_reservations'] == 0

    def test_facility_ledger(self, authenticated_client, user_client, make_facility):
        facility_id = make_facility()
        reservation = user_client.post('/api/reservations', json={
            'facility_id': facility_id, 'slot_start': '09:00', 'reservation_date': FUTURE_DATE
        }).get_json()['data']
        user_client.post(f"/api/reservations/{reservation['id']}/release")

        ledger = authenticated_client.get(f'/admin/facilities/{facility_id}/reservations').get_json()
        assert ledger['count'] == 1
        assert ledger['data'][0]['release_reason'] == 'cancelled'

        open_only = authenticated_client.get(
            f'/admin/facilities/{facility_id}/reservations?open_only=true').get_json()
        assert open_only['count'] == 0


class TestReservationAdmin:

    def test_admin_release(self, authenticated_client, user_client, make_facility):
        facility_id = make_facility()
        reservation = user_client.post('/api/reservations', json={
            'facility_id': facility_id, 'slot_start': '09:00', 'reservation_date': FUTURE_DATE
        }).get_json()['data']

        open_list = authenticated_client.get('/admin/reservations/open').get_json()
        assert open_list['count'] == 1

        response = authenticated_client.post(f"/admin/reservations/{reservation['id']}/release")
        assert response.status_code == 200
        assert response.get_json()['data']['release_reason'] == 'admin'

        assert user_client.get('/api/reservations/active').get_json()['data'] is None
        available = user_client.get('/api/facilities/available').get_json()['data']
        assert [f['id'] for f in available] == [facility_id]

    def test_admin_release_unknown(self, authenticated_client):
        response = authenticated_client.post('/admin/reservations/9999/release')
        assert response.status_code == 404
        assert response.get_json()['refresh'] is True

    def test_consistency_report(self, authenticated_client):
        data = authenticated_client.get('/admin/consistency').get_json()['data']
        assert data == {'consistent': True, 'violations': []}


class TestUserApproval:

    def test_list_pending(self, authenticated_client, make_user):
        make_user('waiting', approval_status='pending')
        make_user('ready')

        data = authenticated_client.get('/admin/users?approval_status=pending').get_json()
        assert [u['username'] for u in data['data']] == ['waiting']
        assert 'password_hash' not in data['data'][0]

    def test_list_bad_status(self, authenticated_client):
        assert authenticated_client.get('/admin/users?approval_status=maybe').status_code == 400

    def test_approve_lets_user_reserve(self, authenticated_client, make_user, login, make_facility):
        user_id = make_user('waiting', approval_status='pending')
        facility_id = make_facility()
        client = login('waiting')

        body = {'facility_id': facility_id, 'slot_start': '10:00', 'reservation_date': FUTURE_DATE}
        assert client.post('/api/reservations', json=body).status_code == 403

        response = authenticated_client.post(f'/admin/users/{user_id}/approval',
                                             json={'approval_status': 'approved'})
        assert response.status_code == 200
        assert response.get_json()['data']['approval_status'] == 'approved'
        assert 'password_hash' not in response.get_json()['data']

        assert client.post('/api/reservations', json=body).status_code == 201

    def test_reject(self, authenticated_client, make_user):
        user_id = make_user('waiting', approval_status='pending')
        response = authenticated_client.post(f'/admin/users/{user_id}/approval',
                                             json={'approval_status': 'rejected'})
        assert response.status_code == 200
        assert response.get_json()['message'] == 'User rejected'

    def test_invalid_status(self, authenticated_client, make_user):
        user_id = make_user('waiting', approval_status='pending')
        response = authenticated_client.post(f'/admin/users/{user_id}/approval',
                                             json={'approval_status': 'maybe'})
        assert response.status_code == 400

    def test_admin_accounts_stay_approved(self, authenticated_client):
        response = authenticated_client.post('/admin/users/2/approval',
                                             json={'approval_status': 'rejected'})
        assert response.status_code == 400

    def test_unknown_user(self, authenticated_client):
        response = authenticated_client.post('/admin/users/9999/approval',
                                             json={'approval_status': 'approved'})
        assert response.status_code == 404


class TestAudit:

    def test_audit_lists_actions(self, authenticated_client, user_client, make_facility, make_user):
        facility_id = make_facility()
        user_client.post('/api/reservations', json={
            'facility_id': facility_id, 'slot_start': '10:00', 'reservation_date': FUTURE_DATE
        })
        user_id = make_user('waiting', approval_status='pending')
        authenticated_client.post(f'/admin/users/{user_id}/approval', json={'approval_status': 'approved'})

        entries = authenticated_client.get('/admin/audit').get_json()['data']
        actions = {e['action'] for e in entries}
        assert {'RESERVE', 'APPROVE'} <= actions

        approvals = authenticated_client.get('/admin/audit?action=APPROVE').get_json()['data']
        assert approvals[0]['entity_id'] == user_id
        assert approvals[0]['username'] == 'admin'
        assert approvals[0]['changes']['after'] == {'approval_status': 'approved'}
