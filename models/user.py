"""
User model and data access functions.
Handles user authentication, approval status, and Flask-Login integration.
"""

from werkzeug.security import generate_password_hash, check_password_hash
from database import get_db

ROLES = ('user', 'admin', 'master_admin')
ADMIN_ROLES = ('admin', 'master_admin')
APPROVAL_STATUSES = ('pending', 'approved', 'rejected')


class User:
    """
    User class for Flask-Login integration.
    Wraps database row dictionary with required Flask-Login properties.
    """

    def __init__(self, user_dict):
        """
        Initialize User from database row.

        Args:
            user_dict: Dictionary with user data from database
        """
        self.id = user_dict['id']
        self.username = user_dict['username']
        self.email = user_dict['email']
        self.full_name = user_dict.get('full_name')
        self.role = user_dict.get('role', 'user')
        self.approval_status = user_dict.get('approval_status', 'pending')
        self.active = user_dict['active']
        self.created_at = user_dict.get('created_at')
        self.last_login = user_dict.get('last_login')

    @property
    def is_authenticated(self):
        """Required by Flask-Login."""
        return True

    @property
    def is_active(self):
        """Required by Flask-Login."""
        return self.active == 1

    @property
    def is_anonymous(self):
        """Required by Flask-Login."""
        return False

    @property
    def is_admin(self):
        return self.role in ADMIN_ROLES

    def get_id(self):
        """Required by Flask-Login. Returns user ID as unicode string."""
        return str(self.id)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'approval_status': self.approval_status,
        }


class SessionContext:
    """
    Who is calling the reservation engine.

    The engine never reads login state on its own; routes, CLI commands and
    tests build one of these and pass it in.
    """

    __slots__ = ('user_id', 'role')

    def __init__(self, user_id: int, role: str = 'user'):
        self.user_id = user_id
        self.role = role

    @classmethod
    def from_user(cls, user) -> 'SessionContext':
        """Build a context from a Flask-Login user (or any object with id/role)."""
        return cls(user_id=user.id, role=getattr(user, 'role', 'user'))

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def __repr__(self):
        return f'SessionContext(user_id={self.user_id!r}, role={self.role!r})'


_USER_COLUMNS = '''
    id, username, email, password_hash, full_name, contact_number, role,
    approval_status, active, created_at, updated_at, last_login
'''


def get_user_by_id(user_id: int) -> dict:
    """
    Get user by ID.

    Args:
        user_id: User ID

    Returns:
        User dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute(f'SELECT {_USER_COLUMNS} FROM users WHERE id = ?', (user_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_user_by_username(username: str) -> dict:
    """
    Get user by username.

    Args:
        username: Username to search for

    Returns:
        User dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute(f'SELECT {_USER_COLUMNS} FROM users WHERE username = ?', (username,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_user_by_email(email: str) -> dict:
    """
    Get user by email (case-insensitive).

    Args:
        email: Email to search for

    Returns:
        User dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute(f'SELECT {_USER_COLUMNS} FROM users WHERE LOWER(email) = LOWER(?)', (email,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_users(approval_status: str = None, role: str = None, active_only: bool = True) -> list:
    """
    Get users, optionally filtered.

    Args:
        approval_status: 'pending', 'approved' or 'rejected' (optional)
        role: Role name (optional)
        active_only: If True, only return active users

    Returns:
        List of user dicts without password hashes, newest first
    """
    db = get_db()
    cursor = db.cursor()

    query = '''
        SELECT id, username, email, full_name, contact_number, role,
               approval_status, active, created_at, last_login
        FROM users
        WHERE 1=1
    '''
    params = []

    if approval_status:
        query += ' AND approval_status = ?'
        params.append(approval_status)

    if role:
        query += ' AND role = ?'
        params.append(role)

    if active_only:
        query += ' AND active = 1'

    query += ' ORDER BY created_at DESC, id DESC'

    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


def create_user(username: str, email: str, password: str, full_name: str = None,
                role: str = 'user', approval_status: str = 'pending',
                contact_number: str = None) -> int:
    """
    Create new user with hashed password.

    Args:
        username: Unique username
        email: Unique email
        password: Plain text password (will be hashed)
        full_name: User's full name
        role: 'user', 'admin' or 'master_admin'
        approval_status: Initial approval status (admins are always approved)
        contact_number: Optional contact number

    Returns:
        New user ID

    Raises:
        ValueError if role or approval status is unknown
        sqlite3.IntegrityError if username or email already exists
    """
    if role not in ROLES:
        raise ValueError(f'Unknown role: {role}')
    if approval_status not in APPROVAL_STATUSES:
        raise ValueError(f'Unknown approval status: {approval_status}')
    if role in ADMIN_ROLES:
        approval_status = 'approved'

    db = get_db()
    password_hash = generate_password_hash(password)

    cursor = db.cursor()
    cursor.execute('''
        INSERT INTO users (username, email, password_hash, full_name, contact_number,
                           role, approval_status)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (username, email, password_hash, full_name, contact_number, role, approval_status))

    db.commit()
    return cursor.lastrowid


def set_approval_status(user_id: int, approval_status: str) -> bool:
    """
    Approve or reject a user.

    Args:
        user_id: User ID
        approval_status: 'approved', 'rejected' or 'pending'

    Returns:
        True if a user was updated

    Raises:
        ValueError if the status is unknown
    """
    if approval_status not in APPROVAL_STATUSES:
        raise ValueError(f'Unknown approval status: {approval_status}')

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        UPDATE users
        SET approval_status = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (approval_status, user_id))
    db.commit()

    return cursor.rowcount > 0


def update_last_login(user_id: int) -> None:
    """
    Update last login timestamp.

    Args:
        user_id: User ID
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        UPDATE users SET last_login = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (user_id,))
    db.commit()


def check_password(user_dict: dict, password: str) -> bool:
    """
    Verify password against stored hash.

    Args:
        user_dict: User dictionary with password_hash
        password: Plain text password to check

    Returns:
        True if password matches
    """
    return check_password_hash(user_dict['password_hash'], password)


def can_reserve(user_dict: dict) -> bool:
    """
    Tell whether a user may hold a reservation.

    Args:
        user_dict: User row

    Returns:
        True for active users that are approved (admins count as approved)
    """
    if not user_dict or not user_dict.get('active'):
        return False
    if user_dict.get('role') in ADMIN_ROLES:
        return True
    return user_dict.get('approval_status') == 'approved'
