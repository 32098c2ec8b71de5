"""
Database seed data.
Initial data population for fresh database installations.
"""

from werkzeug.security import generate_password_hash


DEMO_FACILITIES = [
    # (category, car_unit, plate_number, capacity, pickup_location, driver_name, driver_number, description)
    ('VIP', 'Toyota Fortuner', 'NAA 1024', 7, 'NAIA Terminal 3', 'Ramon Cruz', '09171234567',
     'Leather seats, bottled water, airport meet and greet'),
    ('VIP', 'Toyota Grandia', 'NAB 2048', 12, 'Makati CBD', 'Jessa Ramos', '09181234567',
     'Group van with reclining seats'),
    ('Premium', 'Toyota Innova', 'NBC 3072', 7, 'BGC High Street', 'Paolo Santos', '09191234567',
     'Roomy MPV for families'),
    ('Premium', 'Toyota Corolla Altis', 'NBD 4096', 4, 'Ortigas Center', 'Liza Mendoza', '09201234567',
     'Executive sedan'),
    ('Standard', 'Toyota Vios', 'NCE 5120', 4, 'Pasay Rotonda', 'Mark Villanueva', '09211234567',
     'City sedan for short transfers'),
]


def seed_database(db):
    """Insert initial seed data."""

    # Default accounts: master admin and admin are always approved
    users_data = [
        ('admin', 'admin@tourdesk.local', 'admin123', 'Master Administrator', 'master_admin'),
        ('staff', 'staff@tourdesk.local', 'staff123', 'Front Desk Admin', 'admin'),
    ]

    for username, email, password, full_name, role in users_data:
        db.execute('''
            INSERT INTO users (username, email, password_hash, full_name, role, approval_status)
            VALUES (?, ?, ?, ?, ?, 'approved')
        ''', (username, email, generate_password_hash(password), full_name, role))


def seed_facilities(db, admin_id: int = None) -> int:
    """
    Insert the demo facility roster.

    Args:
        db: Database connection
        admin_id: Admin recorded as the creator (optional)

    Returns:
        Number of facilities inserted
    """
    inserted = 0
    for (category, car_unit, plate, capacity, pickup, driver, number, description) in DEMO_FACILITIES:
        existing = db.execute(
            'SELECT id FROM facilities WHERE plate_number = ?', (plate,)
        ).fetchone()
        if existing:
            continue

        db.execute('''
            INSERT INTO facilities
            (category, car_unit, plate_number, capacity, pickup_location,
             driver_name, driver_number, description, status, admin_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'Available', ?)
        ''', (category, car_unit, plate, capacity, pickup, driver, number, description, admin_id))
        inserted += 1

    return inserted
