"""
Business logic for admin user operations.
Provides validation and business rules for registration and approval.
"""

from models.user import get_user_by_username, get_user_by_email, ADMIN_ROLES, APPROVAL_STATUSES
from utils.messages import MESSAGES
from utils.validators import validate_email, validate_password


def validate_user_creation(username: str, email: str, password: str) -> tuple:
    """
    Validate user creation data.

    Args:
        username: Username to check
        email: Email to check
        password: Password to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    # Check username exists
    if get_user_by_username(username):
        return False, MESSAGES['username_taken']

    # Validate email format
    if not validate_email(email):
        return False, MESSAGES['invalid_email']

    # Check email exists
    if get_user_by_email(email):
        return False, MESSAGES['email_taken']

    return validate_password(password)


def can_change_approval(target: dict, approval_status: str) -> tuple:
    """
    Check if an admin may set a user's approval status.

    Args:
        target: User dict being approved or rejected
        approval_status: Requested status

    Returns:
        Tuple of (allowed, error_message)
    """
    if not target:
        return False, MESSAGES['not_found']

    if approval_status not in APPROVAL_STATUSES:
        return False, MESSAGES['invalid_approval_status']

    # Admin accounts are created approved and stay that way
    if target['role'] in ADMIN_ROLES:
        return False, MESSAGES['admin_approval_fixed']

    return True, ''
