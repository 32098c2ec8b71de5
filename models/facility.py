"""
Facility catalog data access functions.
Handles the roster of reservable car units, their drivers, and catalog filters.

Facility status is owned by the availability engine (models/availability.py);
nothing in this module writes the status column of an existing facility.
"""

import sqlite3

from database import get_db
from utils.messages import MESSAGES, get_message
from utils.validators import sanitize_input, validate_driver_number


# =============================================================================
# CONSTANTS
# =============================================================================

# Top, mid and base tier
CATEGORIES = ('VIP', 'Premium', 'Standard')

STATUS_AVAILABLE = 'Available'
STATUS_RESERVED = 'Reserved'
STATUS_MAINTENANCE = 'Maintenance'
STATUSES = (STATUS_AVAILABLE, STATUS_RESERVED, STATUS_MAINTENANCE)

# Statuses a facility may be seeded with
INITIAL_STATUSES = (STATUS_AVAILABLE, STATUS_MAINTENANCE)

CATEGORY_ORDER_SQL = '''
    CASE f.category WHEN 'VIP' THEN 0 WHEN 'Premium' THEN 1 ELSE 2 END
'''

EDITABLE_FIELDS = ('category', 'car_unit', 'plate_number', 'capacity', 'pickup_location',
                   'driver_name', 'driver_number', 'description')


def normalize_category(category: str = None) -> str | None:
    """
    Normalize a category filter.

    Args:
        category: 'VIP', 'Premium', 'Standard' (any case), 'All' or None

    Returns:
        Canonical category name, or None for no filter

    Raises:
        ValueError if the category is unknown
    """
    if category is None:
        return None
    value = str(category).strip()
    if not value or value.lower() == 'all':
        return None
    for known in CATEGORIES:
        if known.lower() == value.lower():
            return known
    raise ValueError(MESSAGES['invalid_category'])


def normalize_status(status: str = None) -> str | None:
    """Normalize a status filter ('All'/None means no filter)."""
    if status is None:
        return None
    value = str(status).strip()
    if not value or value.lower() == 'all':
        return None
    for known in STATUSES:
        if known.lower() == value.lower():
            return known
    raise ValueError(f'Unknown status: {status}')


# =============================================================================
# QUERIES
# =============================================================================

def get_facility_by_id(facility_id: int) -> dict:
    """
    Get facility by ID.

    Args:
        facility_id: Facility ID

    Returns:
        Facility dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM facilities WHERE id = ?', (facility_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_facilities(category: str = None, status: str = None, search: str = None) -> list:
    """
    Get facilities with optional category, status, and free-text filters.

    Args:
        category: Category filter ('All' or None for every category)
        status: Status filter ('All' or None for every status)
        search: Case-insensitive match on car unit, driver, plate, pickup, description

    Returns:
        List of facility dicts ordered by tier then id
    """
    category = normalize_category(category)
    status = normalize_status(status)

    query = 'SELECT f.* FROM facilities f WHERE 1=1'
    params = []

    if category:
        query += ' AND f.category = ?'
        params.append(category)

    if status:
        query += ' AND f.status = ?'
        params.append(status)

    if search:
        term = f'%{search.strip().lower()}%'
        query += '''
            AND (LOWER(f.car_unit) LIKE ?
                 OR LOWER(f.driver_name) LIKE ?
                 OR f.driver_number LIKE ?
                 OR LOWER(f.plate_number) LIKE ?
                 OR LOWER(f.pickup_location) LIKE ?
                 OR LOWER(COALESCE(f.description, '')) LIKE ?)
        '''
        params.extend([term] * 6)

    query += f' ORDER BY {CATEGORY_ORDER_SQL}, f.id'

    db = get_db()
    cursor = db.cursor()
    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


def get_facility_roster(category: str = None, status: str = None, search: str = None) -> list:
    """
    Admin roster: facilities with their open reservation and reserving user.

    Args:
        category: Category filter
        status: Status filter
        search: Free-text filter

    Returns:
        List of facility dicts, each with a 'reservation' key (dict or None)
    """
    facilities = get_facilities(category=category, status=status, search=search)
    if not facilities:
        return []

    placeholders = ','.join('?' * len(facilities))
    db = get_db()
    cursor = db.cursor()
    cursor.execute(f'''
        SELECT r.id, r.facility_id, r.reservation_date, r.start_time, r.end_time,
               r.created_at, u.id as user_id, u.username, u.full_name,
               u.email, u.contact_number
        FROM facility_reservations r
        JOIN users u ON r.user_id = u.id
        WHERE r.released_at IS NULL
          AND r.facility_id IN ({placeholders})
    ''', [f['id'] for f in facilities])

    open_by_facility = {row['facility_id']: dict(row) for row in cursor.fetchall()}

    for facility in facilities:
        facility['reservation'] = open_by_facility.get(facility['id'])

    return facilities


def get_status_counts() -> dict:
    """
    Count facilities per status.

    Returns:
        dict: {'Available': int, 'Reserved': int, 'Maintenance': int}
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT status, COUNT(*) as count FROM facilities GROUP BY status')
    counts = {status: 0 for status in STATUSES}
    for row in cursor.fetchall():
        counts[row['status']] = row['count']
    return counts


def get_category_counts(status: str = None) -> dict:
    """
    Count facilities per category.

    Args:
        status: Only count facilities in this status (optional)

    Returns:
        dict: {'VIP': int, 'Premium': int, 'Standard': int}
    """
    status = normalize_status(status)

    query = 'SELECT category, COUNT(*) as count FROM facilities'
    params = []
    if status:
        query += ' WHERE status = ?'
        params.append(status)
    query += ' GROUP BY category'

    db = get_db()
    cursor = db.cursor()
    cursor.execute(query, params)
    counts = {category: 0 for category in CATEGORIES}
    for row in cursor.fetchall():
        counts[row['category']] = row['count']
    return counts


# =============================================================================
# VALIDATION
# =============================================================================

def validate_facility_data(data: dict, facility_id: int = None, partial: bool = False) -> str | None:
    """
    Validate facility fields.

    Args:
        data: Field values
        facility_id: Facility being edited (excluded from the plate uniqueness check)
        partial: Only validate the fields present in data

    Returns:
        Error message, or None when valid
    """
    def present(field):
        return not partial or field in data

    if present('category'):
        if not data.get('category'):
            return MESSAGES['category_required']
        try:
            normalize_category(data['category'])
        except ValueError as e:
            return str(e)
        if data['category'] in ('All', 'all'):
            return MESSAGES['invalid_category']

    if present('car_unit') and not sanitize_input(data.get('car_unit')):
        return MESSAGES['car_unit_required']

    if present('driver_name') and not sanitize_input(data.get('driver_name')):
        return MESSAGES['driver_name_required']

    if present('driver_number') and not validate_driver_number(data.get('driver_number')):
        return MESSAGES['driver_number_invalid']

    if present('plate_number'):
        plate = sanitize_input(data.get('plate_number'))
        if not plate:
            return MESSAGES['plate_required']

        db = get_db()
        cursor = db.cursor()
        cursor.execute('''
            SELECT id, driver_name FROM facilities
            WHERE LOWER(plate_number) = LOWER(?) AND id != ?
        ''', (plate, facility_id or 0))
        duplicate = cursor.fetchone()
        if duplicate:
            return get_message('plate_duplicate', plate=plate, driver=duplicate['driver_name'])

    if present('pickup_location') and not sanitize_input(data.get('pickup_location')):
        return MESSAGES['pickup_required']

    if present('capacity'):
        capacity = data.get('capacity')
        if capacity is None or capacity == '':
            return MESSAGES['capacity_required']
        try:
            capacity = int(capacity)
        except (TypeError, ValueError):
            return MESSAGES['capacity_required']
        if capacity < 1:
            return MESSAGES['capacity_min']

    return None


# =============================================================================
# WRITES (administrative seeding)
# =============================================================================

def create_facility(data: dict, admin_id: int = None) -> int:
    """
    Create a facility (administrative seeding).

    Args:
        data: category, car_unit, plate_number, capacity, pickup_location,
              driver_name, driver_number, description, status (optional:
              'Available' by default, or 'Maintenance')
        admin_id: Creating admin

    Returns:
        New facility ID

    Raises:
        ValueError if validation fails
    """
    error = validate_facility_data(data)
    if error:
        raise ValueError(error)

    status = data.get('status') or STATUS_AVAILABLE
    if status not in INITIAL_STATUSES:
        raise ValueError(MESSAGES['invalid_initial_status'])

    db = get_db()
    cursor = db.cursor()
    try:
        cursor.execute('''
            INSERT INTO facilities
            (category, car_unit, plate_number, capacity, pickup_location,
             driver_name, driver_number, description, status, admin_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            normalize_category(data['category']),
            sanitize_input(data['car_unit'], 100),
            sanitize_input(data['plate_number'], 20),
            int(data['capacity']),
            sanitize_input(data['pickup_location'], 200),
            sanitize_input(data['driver_name'], 100),
            sanitize_input(data['driver_number'], 20),
            sanitize_input(data.get('description'), 1000),
            status,
            admin_id
        ))
        db.commit()
    except sqlite3.IntegrityError:
        db.rollback()
        # Lost a race with another admin creating the same plate
        raise ValueError(get_message('plate_duplicate', plate=data['plate_number'], driver='another driver'))

    return cursor.lastrowid


def update_facility(facility_id: int, **kwargs) -> bool:
    """
    Update descriptive facility fields.

    Status is not editable here; reservations drive it.

    Args:
        facility_id: Facility ID to update
        **kwargs: Fields to update (see EDITABLE_FIELDS)

    Returns:
        True if updated successfully

    Raises:
        ValueError if validation fails or status is passed
    """
    if 'status' in kwargs:
        raise ValueError('Facility status is managed by reservations')

    fields = {k: v for k, v in kwargs.items() if k in EDITABLE_FIELDS}
    if not fields:
        return False

    error = validate_facility_data(fields, facility_id=facility_id, partial=True)
    if error:
        raise ValueError(error)

    if 'category' in fields:
        fields['category'] = normalize_category(fields['category'])
    if 'capacity' in fields:
        fields['capacity'] = int(fields['capacity'])

    updates = [f'{field} = ?' for field in fields]
    values = [sanitize_input(v) if isinstance(v, str) else v for v in fields.values()]
    updates.append('updated_at = CURRENT_TIMESTAMP')
    values.append(facility_id)

    db = get_db()
    cursor = db.cursor()
    cursor.execute(f'UPDATE facilities SET {", ".join(updates)} WHERE id = ?', values)
    db.commit()

    return cursor.rowcount > 0
