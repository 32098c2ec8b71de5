"""
Facility availability engine.

Owns the facility status column and the open/released state of ledger rows,
and keeps the two consistent:

    facility.status == 'Reserved'  <=>  exactly one open reservation references it

Every state change runs inside one BEGIN IMMEDIATE transaction. Preconditions
are re-checked inside that transaction and the facility transition is a
conditional UPDATE (compare-and-swap on status), so two sessions that both saw
a facility as Available cannot both reserve it: the second one finds zero rows
updated and gets FacilityUnavailable.
"""

import logging
import sqlite3
from datetime import date, datetime

from database import get_db, immediate_transaction
from models.facility import (
    STATUS_AVAILABLE, STATUS_RESERVED, get_facilities, get_category_counts
)
from models.reservation import get_open_reservation_for_user, get_reservation_by_id
from models.reservation_errors import (
    InvalidSlot, AlreadyReserved, FacilityUnavailable, NotAuthorized, NotApproved, NotFound
)
from models.user import can_reserve
from utils.audit import log_audit
from utils.datetime_helpers import get_now, to_local, format_timestamp
from utils.messages import MESSAGES
from utils.slots import normalize_slot, slot_end, has_elapsed
from utils.validators import validate_date_format

logger = logging.getLogger(__name__)


def _local_now(now: datetime = None) -> datetime:
    return to_local(now) if now is not None else get_now()


def _resolve_date(reservation_date, now: datetime) -> str:
    """Validate the reservation date and return it as YYYY-MM-DD."""
    if reservation_date is None:
        return now.date().isoformat()

    if isinstance(reservation_date, datetime):
        reservation_date = reservation_date.date()

    if isinstance(reservation_date, date):
        day = reservation_date
    elif validate_date_format(reservation_date):
        day = date.fromisoformat(reservation_date)
    else:
        raise InvalidSlot(MESSAGES['invalid_value'])

    if day < now.date():
        raise InvalidSlot(MESSAGES['invalid_reservation_date'])

    return day.isoformat()


# =============================================================================
# READS
# =============================================================================

def list_available(category: str = None) -> list:
    """
    List facilities currently in Available status.

    Args:
        category: 'VIP', 'Premium', 'Standard', or 'All'/None for every category

    Returns:
        List of facility dicts ordered by tier (VIP, Premium, Standard) then id

    Raises:
        ValueError if the category is unknown
    """
    return get_facilities(category=category, status=STATUS_AVAILABLE)


def get_active_reservation(user_id: int, now: datetime = None) -> dict:
    """
    Get the user's active reservation joined with its facility.

    A reservation is active while it is open (not released) and its slot
    window has not ended.

    Args:
        user_id: User ID
        now: Current time (defaults to now in the configured timezone)

    Returns:
        Reservation dict (with nested 'facility') or None
    """
    now = _local_now(now)
    reservation = get_open_reservation_for_user(user_id)
    if reservation is None:
        return None
    if has_elapsed(reservation['reservation_date'], reservation['end_time'], now):
        return None
    return reservation


def get_reservation(reservation_id: int, ctx) -> dict:
    """
    Get one reservation, open or released, for its owner or an administrator.

    Raises:
        NotFound: reservation does not exist
        NotAuthorized: ctx is neither the owner nor an administrator
    """
    reservation = get_reservation_by_id(reservation_id)
    if reservation is None:
        raise NotFound()
    if reservation['user_id'] != ctx.user_id and not ctx.is_admin:
        raise NotAuthorized()
    return reservation


# =============================================================================
# EXPIRY
# =============================================================================

def _sweep(cursor, now: datetime) -> list:
    """Release open reservations whose window has ended, inside the caller's transaction."""
    cursor.execute('''
        SELECT id, user_id, facility_id, reservation_date, start_time, end_time
        FROM facility_reservations
        WHERE released_at IS NULL
    ''')
    expired = [dict(row) for row in cursor.fetchall()
               if has_elapsed(row['reservation_date'], row['end_time'], now)]

    stamp = format_timestamp(now)
    for row in expired:
        cursor.execute('''
            UPDATE facility_reservations
            SET released_at = ?, release_reason = 'expired'
            WHERE id = ? AND released_at IS NULL
        ''', (stamp, row['id']))
        cursor.execute('''
            UPDATE facilities
            SET status = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND status = ?
        ''', (STATUS_AVAILABLE, row['facility_id'], STATUS_RESERVED))

    return expired


def _audit_expired(expired: list) -> None:
    for row in expired:
        logger.info('Reservation %s on facility %s expired', row['id'], row['facility_id'])
        log_audit(
            action='EXPIRE',
            entity_type='reservation',
            entity_id=row['id'],
            after={'release_reason': 'expired', 'facility_id': row['facility_id']}
        )


def sweep_expired(now: datetime = None) -> int:
    """
    Release every open reservation whose slot window has ended.

    Each expired reservation is marked released with reason 'expired' and
    its facility returns to Available, all in one transaction.

    Args:
        now: Current time (defaults to now in the configured timezone)

    Returns:
        Number of reservations released
    """
    now = _local_now(now)
    with immediate_transaction() as cursor:
        expired = _sweep(cursor, now)

    _audit_expired(expired)
    return len(expired)


# =============================================================================
# WRITES
# =============================================================================

def reserve(ctx, facility_id: int, slot_start, reservation_date=None, now: datetime = None) -> dict:
    """
    Reserve a facility for one pickup slot.

    Args:
        ctx: SessionContext of the reserving user
        facility_id: Facility to reserve
        slot_start: Permitted slot start ('HH:MM' or 'HH:MM:SS', 08:00 to 17:00)
        reservation_date: 'YYYY-MM-DD' or date (defaults to today)
        now: Current time (defaults to now in the configured timezone)

    Returns:
        The new reservation joined with its facility

    Raises:
        InvalidSlot: slot not permitted, date in the past, or window already over
        NotAuthorized / NotApproved: user unknown, inactive, or not approved
        AlreadyReserved: user already holds an open reservation
        NotFound: facility does not exist
        FacilityUnavailable: facility not Available at commit time
    """
    now = _local_now(now)

    start_time = normalize_slot(slot_start)
    if start_time is None:
        raise InvalidSlot()
    end_time = slot_end(start_time)

    day = _resolve_date(reservation_date, now)
    if has_elapsed(day, end_time, now):
        raise InvalidSlot(MESSAGES['slot_elapsed'])

    sweep_expired(now)

    try:
        with immediate_transaction() as cursor:
            cursor.execute('''
                SELECT id, role, approval_status, active FROM users WHERE id = ?
            ''', (ctx.user_id,))
            user = cursor.fetchone()
            if user is None:
                raise NotAuthorized()
            if not can_reserve(dict(user)):
                raise NotApproved()

            cursor.execute('''
                SELECT id FROM facility_reservations
                WHERE user_id = ? AND released_at IS NULL
            ''', (ctx.user_id,))
            if cursor.fetchone():
                raise AlreadyReserved()

            cursor.execute('SELECT id FROM facilities WHERE id = ?', (facility_id,))
            if cursor.fetchone() is None:
                raise NotFound(MESSAGES['facility_not_found'])

            # Compare-and-swap: only an Available facility becomes Reserved
            cursor.execute('''
                UPDATE facilities
                SET status = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND status = ?
            ''', (STATUS_RESERVED, facility_id, STATUS_AVAILABLE))
            if cursor.rowcount != 1:
                logger.info('User %s lost facility %s: not Available at commit', ctx.user_id, facility_id)
                raise FacilityUnavailable()

            cursor.execute('''
                INSERT INTO facility_reservations
                (user_id, facility_id, reservation_date, start_time, end_time, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (ctx.user_id, facility_id, day, start_time, end_time, format_timestamp(now)))
            reservation_id = cursor.lastrowid

            reservation = get_reservation_by_id(reservation_id, cursor)

    except sqlite3.IntegrityError as e:
        # One-open-reservation indexes caught what the checks above did not
        logger.warning('Reservation constraint hit for user %s on facility %s: %s',
                       ctx.user_id, facility_id, e)
        if 'user' in str(e):
            raise AlreadyReserved() from e
        raise FacilityUnavailable() from e

    logger.info('User %s reserved facility %s on %s %s-%s (reservation %s)',
                ctx.user_id, facility_id, day, start_time, end_time, reservation_id)
    log_audit(
        action='RESERVE',
        entity_type='reservation',
        entity_id=reservation_id,
        before={'facility_status': STATUS_AVAILABLE},
        after={'facility_id': facility_id, 'facility_status': STATUS_RESERVED,
               'reservation_date': day, 'start_time': start_time, 'end_time': end_time},
        user_id=ctx.user_id
    )
    return reservation


def release(reservation_id: int, ctx, now: datetime = None) -> dict:
    """
    Release an open reservation and return its facility to Available.

    Args:
        reservation_id: Reservation to release
        ctx: SessionContext of the owner or an administrator
        now: Current time (defaults to now in the configured timezone)

    Returns:
        The released reservation joined with its facility

    Raises:
        NotFound: reservation missing or already released (including expired)
        NotAuthorized: ctx is neither the owner nor an administrator
    """
    now = _local_now(now)
    sweep_expired(now)

    with immediate_transaction() as cursor:
        cursor.execute('''
            SELECT id, user_id, facility_id, released_at
            FROM facility_reservations WHERE id = ?
        ''', (reservation_id,))
        row = cursor.fetchone()
        if row is None or row['released_at'] is not None:
            raise NotFound()

        is_owner = row['user_id'] == ctx.user_id
        if not is_owner and not ctx.is_admin:
            raise NotAuthorized()

        reason = 'cancelled' if is_owner else 'admin'
        cursor.execute('''
            UPDATE facility_reservations
            SET released_at = ?, released_by = ?, release_reason = ?
            WHERE id = ? AND released_at IS NULL
        ''', (format_timestamp(now), ctx.user_id, reason, reservation_id))
        if cursor.rowcount != 1:
            raise NotFound()

        cursor.execute('''
            UPDATE facilities
            SET status = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND status = ?
        ''', (STATUS_AVAILABLE, row['facility_id'], STATUS_RESERVED))
        if cursor.rowcount != 1:
            logger.warning('Facility %s was not Reserved while releasing reservation %s',
                           row['facility_id'], reservation_id)

        reservation = get_reservation_by_id(reservation_id, cursor)

    logger.info('Reservation %s released by user %s (%s)', reservation_id, ctx.user_id, reason)
    log_audit(
        action='RELEASE',
        entity_type='reservation',
        entity_id=reservation_id,
        before={'facility_status': STATUS_RESERVED, 'released_at': None},
        after={'facility_status': STATUS_AVAILABLE, 'release_reason': reason},
        user_id=ctx.user_id
    )
    return reservation


# =============================================================================
# SYNC AND DIAGNOSTICS
# =============================================================================

def get_snapshot(ctx, category: str = None, now: datetime = None) -> dict:
    """
    Build the state a polling client reconciles against.

    Expired reservations are swept first so the catalog reflects them.

    Args:
        ctx: SessionContext of the polling user
        category: Optional category filter for the available list
        now: Current time (defaults to now in the configured timezone)

    Returns:
        dict with available facilities, available counts per category,
        the user's active reservation, and the server time
    """
    now = _local_now(now)
    sweep_expired(now)

    return {
        'available': list_available(category),
        'available_counts': get_category_counts(status=STATUS_AVAILABLE),
        'active_reservation': get_active_reservation(ctx.user_id, now),
        'server_time': now.isoformat(),
    }


def check_consistency() -> list:
    """
    Find violations of the facility/ledger invariants.

    Checks:
        - a Reserved facility has exactly one open reservation
        - a facility that is not Reserved has no open reservation
        - no user holds more than one open reservation

    Returns:
        List of violation dicts (empty when consistent)
    """
    violations = []
    cursor = get_db().cursor()

    cursor.execute('''
        SELECT f.id, f.status, COUNT(r.id) as open_count
        FROM facilities f
        LEFT JOIN facility_reservations r
               ON r.facility_id = f.id AND r.released_at IS NULL
        GROUP BY f.id, f.status
    ''')
    for row in cursor.fetchall():
        if row['status'] == STATUS_RESERVED and row['open_count'] != 1:
            violations.append({
                'type': 'reserved_without_single_reservation',
                'facility_id': row['id'],
                'open_count': row['open_count'],
            })
        elif row['status'] != STATUS_RESERVED and row['open_count'] > 0:
            violations.append({
                'type': 'reservation_on_unreserved_facility',
                'facility_id': row['id'],
                'status': row['status'],
                'open_count': row['open_count'],
            })

    cursor.execute('''
        SELECT user_id, COUNT(*) as open_count
        FROM facility_reservations
        WHERE released_at IS NULL
        GROUP BY user_id
        HAVING COUNT(*) > 1
    ''')
    for row in cursor.fetchall():
        violations.append({
            'type': 'user_with_multiple_reservations',
            'user_id': row['user_id'],
            'open_count': row['open_count'],
        })

    return violations
