"""
Centralized UI messages.
All user-facing text lives here for consistency between API and client.
"""

MESSAGES = {
    # Success messages
    'login_success': 'Welcome {name}',
    'logout_success': 'Logged out successfully',
    'reservation_created': 'Reservation successful! The driver will be waiting at your selected pickup time.',
    'reservation_released': 'Reservation released',
    'facility_created': 'Facility created successfully',
    'facility_updated': 'Facility updated successfully',
    'user_approved': 'User approved',
    'user_rejected': 'User rejected',
    'registration_pending': 'Account created. An administrator must approve it before you can reserve.',

    # Reservation errors
    'invalid_slot': 'Please choose a valid pickup time between 08:00 and 17:00',
    'slot_elapsed': 'The selected pickup time has already passed, please choose a later slot',
    'invalid_reservation_date': 'Reservations cannot be made for past dates',
    'already_reserved': 'You already have an active reservation!',
    'facility_unavailable': 'This facility was just reserved by someone else, please pick another',
    'not_authorized': 'You are not allowed to perform this action',
    'not_approved': 'Your account is awaiting approval',
    'reservation_not_found': 'Reservation not found or already released',
    'facility_not_found': 'Facility not found',
    'outcome_unknown': 'Could not confirm the outcome of your request, please refresh',

    # Auth errors
    'invalid_credentials': 'Invalid username or password',
    'account_disabled': 'Your account has been disabled. Contact an administrator.',
    'login_required': 'Login required!',
    'permission_denied': 'You do not have permission for this action',
    'already_logged_in': 'You are already logged in',
    'username_taken': 'That username is already taken',
    'email_taken': 'That email is already registered',
    'invalid_email': 'Enter a valid email address.',
    'admin_approval_fixed': 'Administrator accounts are always approved',
    'invalid_approval_status': 'Approval status must be approved, rejected or pending',

    # Facility validation
    'category_required': 'Category is required.',
    'invalid_category': 'Category must be one of VIP, Premium, Standard.',
    'car_unit_required': 'Car unit is required.',
    'driver_name_required': 'Driver name is required.',
    'driver_number_invalid': 'Valid driver number is required.',
    'plate_required': 'Plate number is required.',
    'plate_duplicate': 'Plate number "{plate}" is already assigned to {driver}.',
    'pickup_required': 'Pickup location is required.',
    'capacity_required': 'Capacity is required.',
    'capacity_min': 'Capacity must be at least 1.',
    'invalid_initial_status': 'New facilities start as Available or Maintenance.',
    'status_not_editable': 'Facility status follows reservations and cannot be edited directly.',

    # Generic
    'field_required': 'This field is required',
    'invalid_value': 'Invalid value',
    'not_found': 'Resource not found',
    'server_error': 'Internal server error',
}


def get_message(key: str, **kwargs) -> str:
    """
    Get message with optional formatting.

    Args:
        key: Message key
        **kwargs: Format parameters

    Returns:
        Formatted message or key if not found
    """
    message = MESSAGES.get(key, key)
    if kwargs:
        return message.format(**kwargs)
    return message
