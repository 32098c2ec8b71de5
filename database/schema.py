"""
Database schema definitions.
Table creation, indexes, and structure management.
"""


def drop_tables(db):
    """Drop all existing tables."""
    # Disable foreign key constraints before dropping
    db.execute('PRAGMA foreign_keys = OFF')

    tables = [
        'audit_log',
        'facility_reservations',
        'facilities',
        'users'
    ]

    for table in tables:
        db.execute(f'DROP TABLE IF EXISTS {table}')

    # Re-enable foreign key constraints
    db.execute('PRAGMA foreign_keys = ON')


def create_tables(db):
    """Create all database tables."""

    # 1. Users (end users, admins, master admins)
    db.execute('''
        CREATE TABLE users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT UNIQUE NOT NULL,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            full_name TEXT,
            contact_number TEXT,
            role TEXT NOT NULL DEFAULT 'user'
                CHECK(role IN ('user', 'admin', 'master_admin')),
            approval_status TEXT NOT NULL DEFAULT 'pending'
                CHECK(approval_status IN ('pending', 'approved', 'rejected')),
            active INTEGER DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            last_login TIMESTAMP
        )
    ''')

    # 2. Facility catalog (car units with their drivers)
    db.execute('''
        CREATE TABLE facilities (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            category TEXT NOT NULL
                CHECK(category IN ('VIP', 'Premium', 'Standard')),
            car_unit TEXT NOT NULL,
            plate_number TEXT NOT NULL UNIQUE COLLATE NOCASE,
            capacity INTEGER NOT NULL CHECK(capacity >= 1),
            pickup_location TEXT NOT NULL,
            driver_name TEXT NOT NULL,
            driver_number TEXT NOT NULL,
            description TEXT DEFAULT '',
            status TEXT NOT NULL DEFAULT 'Available'
                CHECK(status IN ('Available', 'Reserved', 'Maintenance')),
            admin_id INTEGER REFERENCES users(id),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 3. Reservation ledger (rows are released, never deleted)
    db.execute('''
        CREATE TABLE facility_reservations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL REFERENCES users(id),
            facility_id INTEGER NOT NULL REFERENCES facilities(id),
            reservation_date DATE NOT NULL,
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            released_at TIMESTAMP,
            released_by INTEGER REFERENCES users(id),
            release_reason TEXT
                CHECK(release_reason IS NULL OR release_reason IN ('cancelled', 'admin', 'expired')),
            CHECK(end_time > start_time)
        )
    ''')

    # 4. Audit trail
    db.execute('''
        CREATE TABLE audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER,
            action TEXT NOT NULL,
            entity_type TEXT,
            entity_id INTEGER,
            changes TEXT,
            ip_address TEXT,
            user_agent TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')


def create_indexes(db):
    """Create indexes, including the one-open-reservation constraints."""

    # At most one open reservation per facility and per user
    db.execute('''
        CREATE UNIQUE INDEX ux_reservations_open_facility
        ON facility_reservations(facility_id)
        WHERE released_at IS NULL
    ''')
    db.execute('''
        CREATE UNIQUE INDEX ux_reservations_open_user
        ON facility_reservations(user_id)
        WHERE released_at IS NULL
    ''')

    db.execute('CREATE INDEX idx_reservations_date ON facility_reservations(reservation_date)')
    db.execute('CREATE INDEX idx_facilities_status ON facilities(status, category)')
    db.execute('CREATE INDEX idx_users_approval ON users(approval_status)')
    db.execute('CREATE INDEX idx_audit_entity ON audit_log(entity_type, entity_id)')
    db.execute('CREATE INDEX idx_audit_created ON audit_log(created_at)')
