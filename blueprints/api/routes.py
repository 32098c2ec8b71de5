"""
API routes for JSON endpoints.
End-user reservation API: catalog, active reservation, reserve/release, sync snapshot.
"""

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user
from flask_wtf.csrf import generate_csrf

from models.availability import (
    list_available, get_active_reservation, get_reservation, reserve, release, get_snapshot
)
from models.facility import STATUS_AVAILABLE, get_category_counts
from models.reservation import get_user_reservations
from models.reservation_errors import ReservationError
from models.user import SessionContext
from utils.api_response import api_success, api_error, reservation_error_response
from utils.messages import MESSAGES
from utils.slots import PERMITTED_SLOTS, SLOT_DURATION

api_bp = Blueprint('api', __name__)


def _request_data() -> dict:
    """Read a JSON body, falling back to form data."""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    return data


@api_bp.route('/health')
def health_check():
    """
    Health check endpoint (no authentication required).

    Returns:
        JSON with status and version
    """
    return jsonify({
        'status': 'ok',
        'version': current_app.config.get('APP_VERSION', '1.0.0'),
        'app': current_app.config.get('APP_NAME', 'TourDesk')
    })


@api_bp.route('/csrf-token')
def csrf_token():
    """CSRF token for JSON clients; send it back in the X-CSRFToken header."""
    return api_success(data={'csrf_token': generate_csrf()})


@api_bp.route('/slots')
def slots():
    """Permitted pickup slot starts and the slot length."""
    return api_success(data={
        'slots': list(PERMITTED_SLOTS),
        'duration_minutes': int(SLOT_DURATION.total_seconds() // 60)
    })


@api_bp.route('/me')
@login_required
def me():
    """Current user."""
    return api_success(data=current_user.to_dict())


@api_bp.route('/facilities/available')
@login_required
def api_available_facilities():
    """
    List Available facilities.

    Query params:
        category: VIP, Premium, Standard or All (optional)

    Returns:
        JSON list of facilities ordered by tier
    """
    try:
        facilities = list_available(request.args.get('category'))
    except ValueError as e:
        return api_error(str(e), 400)

    return api_success(data=facilities, count=len(facilities))


@api_bp.route('/facilities/counts')
@login_required
def api_available_counts():
    """Available facility counts per category."""
    return api_success(data=get_category_counts(status=STATUS_AVAILABLE))


@api_bp.route('/reservations/active')
@login_required
def api_active_reservation():
    """The current user's active reservation, or null."""
    return api_success(data=get_active_reservation(current_user.id))


@api_bp.route('/reservations/<int:reservation_id>')
@login_required
def api_get_reservation(reservation_id):
    """One of the current user's reservations (any reservation for admins), open or released."""
    try:
        reservation = get_reservation(reservation_id, SessionContext.from_user(current_user))
    except ReservationError as e:
        return reservation_error_response(e)
    return api_success(data=reservation)


@api_bp.route('/reservations/history')
@login_required
def api_reservation_history():
    """The current user's reservations, newest first."""
    limit = request.args.get('limit', 20, type=int)
    return api_success(data=get_user_reservations(current_user.id, limit=max(1, min(limit, 100))))


@api_bp.route('/reservations', methods=['POST'])
@login_required
def api_reserve():
    """
    Reserve a facility for the current user.

    Request body:
        facility_id: Facility ID
        slot_start: Pickup slot start, e.g. '10:00' or '10:00:00'
        reservation_date: YYYY-MM-DD (optional, defaults to today)

    Returns:
        JSON with the new reservation (201)
    """
    data = _request_data()

    facility_id = data.get('facility_id')
    try:
        facility_id = int(facility_id)
    except (TypeError, ValueError):
        return api_error(MESSAGES['facility_not_found'], 400, error_code='invalid_value')

    if not data.get('slot_start'):
        return api_error(MESSAGES['invalid_slot'], 400, error_code='invalid_slot', refresh=True)

    ctx = SessionContext.from_user(current_user)

    try:
        reservation = reserve(
            ctx,
            facility_id,
            data.get('slot_start'),
            reservation_date=data.get('reservation_date') or None
        )
    except ReservationError as e:
        return reservation_error_response(e)
    except Exception as e:
        current_app.logger.error(f'Error reserving facility {facility_id}: {e}', exc_info=True)
        return api_error(MESSAGES['server_error'], 500)

    return api_success(data=reservation, message=MESSAGES['reservation_created'], status=201)


@api_bp.route('/reservations/<int:reservation_id>/release', methods=['POST'])
@login_required
def api_release(reservation_id):
    """
    Release one of the current user's reservations.

    Args:
        reservation_id: Reservation ID

    Returns:
        JSON with the released reservation
    """
    ctx = SessionContext.from_user(current_user)

    try:
        reservation = release(reservation_id, ctx)
    except ReservationError as e:
        return reservation_error_response(e)
    except Exception as e:
        current_app.logger.error(f'Error releasing reservation {reservation_id}: {e}', exc_info=True)
        return api_error(MESSAGES['server_error'], 500)

    return api_success(data=reservation, message=MESSAGES['reservation_released'])


@api_bp.route('/sync')
@login_required
def api_sync():
    """
    Snapshot for polling clients.

    Sweeps expired reservations, then returns the available facilities,
    available counts, the user's active reservation, the server time and
    the poll interval clients should use.

    Query params:
        category: Category filter for the available list (optional)
    """
    ctx = SessionContext.from_user(current_user)

    try:
        snapshot = get_snapshot(ctx, category=request.args.get('category'))
    except ValueError as e:
        return api_error(str(e), 400)

    snapshot['poll_interval'] = current_app.config.get('SYNC_POLL_INTERVAL_SECONDS', 5)
    return api_success(data=snapshot)
