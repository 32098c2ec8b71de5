"""
Admin routes for the facility roster, user approval, and reservation oversight.
All endpoints return JSON and require an admin or master admin.
"""

from flask import Blueprint, current_app, request
from flask_login import login_required, current_user

from blueprints.admin.services import can_change_approval
from models.audit_log import get_audit_logs
from models.availability import release, check_consistency
from models.facility import (
    get_facility_by_id, get_facility_roster, get_status_counts, get_category_counts,
    create_facility, update_facility, EDITABLE_FIELDS
)
from models.reservation import get_reservations_for_facility, get_open_reservations
from models.reservation_errors import ReservationError
from models.user import SessionContext, get_user_by_id, get_users, set_approval_status, APPROVAL_STATUSES
from utils.api_response import api_success, api_error, reservation_error_response
from utils.audit import log_audit
from utils.decorators import admin_required, role_required
from utils.messages import MESSAGES

admin_bp = Blueprint('admin', __name__)

APPROVAL_ACTIONS = {'approved': 'APPROVE', 'rejected': 'REJECT', 'pending': 'RESET_APPROVAL'}


def _request_data() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    return data


# =============================================================================
# FACILITY ROSTER
# =============================================================================

@admin_bp.route('/facilities')
@login_required
@admin_required
def facilities():
    """
    Facility roster with the open reservation and reserving user joined.

    Query params:
        category: VIP, Premium, Standard or All (optional)
        status: Available, Reserved, Maintenance or All (optional)
        search: Free text over car unit, driver, plate, pickup, description
    """
    try:
        roster = get_facility_roster(
            category=request.args.get('category'),
            status=request.args.get('status'),
            search=request.args.get('search', '').strip() or None
        )
    except ValueError as e:
        return api_error(str(e), 400)

    return api_success(data=roster, count=len(roster))


@admin_bp.route('/facilities/stats')
@login_required
@admin_required
def facility_stats():
    """Counts by status and by category, plus open reservations."""
    return api_success(data={
        'by_status': get_status_counts(),
        'by_category': get_category_counts(),
        'available_by_category': get_category_counts(status='Available'),
        'open_reservations': len(get_open_reservations()),
    })


@admin_bp.route('/facilities', methods=['POST'])
@login_required
@admin_required
def facility_create():
    """
    Create a facility.

    Request body:
        category, car_unit, plate_number, capacity, pickup_location,
        driver_name, driver_number, description (optional),
        status (optional: Available or Maintenance)
    """
    data = _request_data()

    try:
        facility_id = create_facility(data, admin_id=current_user.id)
    except ValueError as e:
        return api_error(str(e), 400)
    except Exception as e:
        current_app.logger.error(f'Error creating facility: {e}', exc_info=True)
        return api_error(MESSAGES['server_error'], 500)

    facility = get_facility_by_id(facility_id)
    log_audit(action='CREATE', entity_type='facility', entity_id=facility_id, after=facility)
    current_app.logger.info('Admin %s created facility %s (%s)',
                            current_user.id, facility_id, facility['plate_number'])

    return api_success(data=facility, message=MESSAGES['facility_created'], status=201)


@admin_bp.route('/facilities/<int:facility_id>', methods=['PUT'])
@login_required
@admin_required
def facility_update(facility_id):
    """
    Update descriptive facility fields.

    Status is not accepted; reservations drive it.
    """
    before = get_facility_by_id(facility_id)
    if not before:
        return api_error(MESSAGES['facility_not_found'], 404)

    data = _request_data()
    if 'status' in data:
        return api_error(MESSAGES['status_not_editable'], 400)

    fields = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
    if not fields:
        return api_error(MESSAGES['field_required'], 400)

    try:
        update_facility(facility_id, **fields)
    except ValueError as e:
        return api_error(str(e), 400)

    after = get_facility_by_id(facility_id)
    log_audit(
        action='UPDATE',
        entity_type='facility',
        entity_id=facility_id,
        before={k: before[k] for k in fields},
        after={k: after[k] for k in fields}
    )

    return api_success(data=after, message=MESSAGES['facility_updated'])


@admin_bp.route('/facilities/<int:facility_id>/reservations')
@login_required
@admin_required
def facility_reservations(facility_id):
    """
    Reservation ledger for one facility, newest first.

    Query params:
        open_only: 'true' to hide released reservations
        limit: Maximum rows (default 50)
    """
    if not get_facility_by_id(facility_id):
        return api_error(MESSAGES['facility_not_found'], 404)

    open_only = request.args.get('open_only', 'false').lower() == 'true'
    limit = request.args.get('limit', 50, type=int)

    reservations = get_reservations_for_facility(
        facility_id, include_released=not open_only, limit=max(1, min(limit, 500))
    )
    return api_success(data=reservations, count=len(reservations))


# =============================================================================
# RESERVATIONS
# =============================================================================

@admin_bp.route('/reservations/open')
@login_required
@admin_required
def open_reservations():
    """Every open reservation with facility and user."""
    reservations = get_open_reservations()
    return api_success(data=reservations, count=len(reservations))


@admin_bp.route('/reservations/<int:reservation_id>/release', methods=['POST'])
@login_required
@admin_required
def reservation_release(reservation_id):
    """Release any user's reservation."""
    ctx = SessionContext.from_user(current_user)

    try:
        reservation = release(reservation_id, ctx)
    except ReservationError as e:
        return reservation_error_response(e)
    except Exception as e:
        current_app.logger.error(f'Error releasing reservation {reservation_id}: {e}', exc_info=True)
        return api_error(MESSAGES['server_error'], 500)

    return api_success(data=reservation, message=MESSAGES['reservation_released'])


@admin_bp.route('/consistency')
@login_required
@admin_required
def consistency():
    """Report facility/ledger invariant violations."""
    violations = check_consistency()
    return api_success(data={'consistent': not violations, 'violations': violations})


# =============================================================================
# USERS
# =============================================================================

@admin_bp.route('/users')
@login_required
@admin_required
def users():
    """
    List users.

    Query params:
        approval_status: pending, approved or rejected (optional)
        role: user, admin or master_admin (optional)
    """
    approval_status = request.args.get('approval_status') or None
    if approval_status and approval_status not in APPROVAL_STATUSES:
        return api_error(MESSAGES['invalid_approval_status'], 400)

    result = get_users(approval_status=approval_status, role=request.args.get('role') or None)
    return api_success(data=result, count=len(result))


@admin_bp.route('/users/<int:user_id>/approval', methods=['POST'])
@login_required
@admin_required
def user_approval(user_id):
    """
    Approve or reject a user.

    Request body:
        approval_status: 'approved', 'rejected' or 'pending'
    """
    data = _request_data()
    approval_status = data.get('approval_status')

    target = get_user_by_id(user_id)
    if not target:
        return api_error(MESSAGES['not_found'], 404)

    allowed, error = can_change_approval(target, approval_status)
    if not allowed:
        return api_error(error, 400)

    set_approval_status(user_id, approval_status)
    log_audit(
        action=APPROVAL_ACTIONS[approval_status],
        entity_type='user',
        entity_id=user_id,
        before={'approval_status': target['approval_status']},
        after={'approval_status': approval_status}
    )
    current_app.logger.info('Admin %s set user %s approval to %s',
                            current_user.id, user_id, approval_status)

    message = MESSAGES['user_rejected'] if approval_status == 'rejected' else MESSAGES['user_approved']
    updated = get_user_by_id(user_id)
    updated.pop('password_hash', None)
    return api_success(data=updated, message=message)


# =============================================================================
# AUDIT
# =============================================================================

@admin_bp.route('/audit')
@login_required
@role_required('master_admin')
def audit():
    """
    Audit log entries, newest first.

    Query params:
        entity_type, entity_id, action, user_id, limit (default 100), offset
    """
    limit = request.args.get('limit', 100, type=int)
    entries = get_audit_logs(
        user_id=request.args.get('user_id', type=int),
        action=request.args.get('action') or None,
        entity_type=request.args.get('entity_type') or None,
        entity_id=request.args.get('entity_id', type=int),
        limit=max(1, min(limit, 500)),
        offset=max(0, request.args.get('offset', 0, type=int))
    )
    return api_success(data=entries, count=len(entries))
