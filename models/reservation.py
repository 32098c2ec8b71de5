"""
Reservation ledger read functions.

Reservations are appended by the availability engine and released by
marking them (released_at / released_by / release_reason); rows are never
deleted, so the ledger doubles as reservation history.
"""

from database import get_db


RESERVATION_SELECT = '''
    SELECT r.id, r.user_id, r.facility_id, r.reservation_date,
           r.start_time, r.end_time, r.created_at,
           r.released_at, r.released_by, r.release_reason,
           f.category as facility_category, f.car_unit as facility_car_unit,
           f.plate_number as facility_plate_number, f.capacity as facility_capacity,
           f.pickup_location as facility_pickup_location,
           f.driver_name as facility_driver_name, f.driver_number as facility_driver_number,
           f.description as facility_description, f.status as facility_status,
           u.username, u.full_name as user_full_name, u.email as user_email,
           u.contact_number as user_contact_number
    FROM facility_reservations r
    JOIN facilities f ON r.facility_id = f.id
    JOIN users u ON r.user_id = u.id
'''

_FACILITY_FIELDS = ('category', 'car_unit', 'plate_number', 'capacity', 'pickup_location',
                    'driver_name', 'driver_number', 'description', 'status')

_USER_FIELDS = (('username', 'username'), ('user_full_name', 'full_name'),
                ('user_email', 'email'), ('user_contact_number', 'contact_number'))


def shape_reservation(row) -> dict:
    """
    Turn a RESERVATION_SELECT row into a reservation dict.

    Facility columns are nested under 'facility' and user columns under 'user'.

    Args:
        row: sqlite3.Row or dict

    Returns:
        Reservation dict, or None for a missing row
    """
    if row is None:
        return None

    data = dict(row)
    facility = {'id': data['facility_id']}
    for field in _FACILITY_FIELDS:
        facility[field] = data.pop(f'facility_{field}', None)

    user = {'id': data['user_id']}
    for column, key in _USER_FIELDS:
        user[key] = data.pop(column, None)

    if hasattr(data.get('reservation_date'), 'isoformat'):
        data['reservation_date'] = data['reservation_date'].isoformat()

    data['is_open'] = data.get('released_at') is None
    data['facility'] = facility
    data['user'] = user
    return data


def get_reservation_by_id(reservation_id: int, cursor=None) -> dict:
    """
    Get a reservation joined with its facility and user.

    Args:
        reservation_id: Reservation ID
        cursor: Active transaction cursor (optional)

    Returns:
        Reservation dict or None if not found
    """
    cur = cursor or get_db().cursor()
    cur.execute(RESERVATION_SELECT + ' WHERE r.id = ?', (reservation_id,))
    return shape_reservation(cur.fetchone())


def get_open_reservation_for_user(user_id: int, cursor=None) -> dict:
    """
    Get the user's open (not yet released) reservation.

    Args:
        user_id: User ID
        cursor: Active transaction cursor (optional)

    Returns:
        Reservation dict or None
    """
    cur = cursor or get_db().cursor()
    cur.execute(RESERVATION_SELECT + '''
        WHERE r.user_id = ? AND r.released_at IS NULL
        ORDER BY r.id DESC
        LIMIT 1
    ''', (user_id,))
    return shape_reservation(cur.fetchone())


def get_open_reservations(cursor=None) -> list:
    """
    Get every open reservation.

    Args:
        cursor: Active transaction cursor (optional)

    Returns:
        List of reservation dicts ordered by date and start time
    """
    cur = cursor or get_db().cursor()
    cur.execute(RESERVATION_SELECT + '''
        WHERE r.released_at IS NULL
        ORDER BY r.reservation_date, r.start_time, r.id
    ''')
    return [shape_reservation(row) for row in cur.fetchall()]


def get_reservations_for_facility(facility_id: int, include_released: bool = True,
                                  limit: int = 50) -> list:
    """
    Get the ledger for one facility.

    Args:
        facility_id: Facility ID
        include_released: Include released reservations
        limit: Maximum number of rows

    Returns:
        List of reservation dicts, newest first
    """
    query = RESERVATION_SELECT + ' WHERE r.facility_id = ?'
    params = [facility_id]

    if not include_released:
        query += ' AND r.released_at IS NULL'

    query += ' ORDER BY r.id DESC LIMIT ?'
    params.append(limit)

    cursor = get_db().cursor()
    cursor.execute(query, params)
    return [shape_reservation(row) for row in cursor.fetchall()]


def get_user_reservations(user_id: int, limit: int = 20) -> list:
    """
    Get a user's reservation history.

    Args:
        user_id: User ID
        limit: Maximum number of rows

    Returns:
        List of reservation dicts, newest first
    """
    cursor = get_db().cursor()
    cursor.execute(RESERVATION_SELECT + '''
        WHERE r.user_id = ?
        ORDER BY r.id DESC
        LIMIT ?
    ''', (user_id, limit))
    return [shape_reservation(row) for row in cursor.fetchall()]
