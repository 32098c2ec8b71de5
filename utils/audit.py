"""
Audit logging utility functions.
Records who reserved, released, or changed what, for the admin audit view.
"""

import logging
from flask import request, current_app
from flask_login import current_user

# Configure logger for audit operations
logger = logging.getLogger(__name__)


def log_audit(
    action: str,
    entity_type: str,
    entity_id: int = None,
    before: dict = None,
    after: dict = None,
    user_id: int = None
) -> int:
    """
    Log an audit entry.

    Captures the current user, IP address, and user agent automatically
    from the Flask request context when available.

    Args:
        action: Action type (RESERVE, RELEASE, EXPIRE, CREATE, UPDATE, APPROVE, ...)
        entity_type: Entity type (reservation, facility, user)
        entity_id: ID of the affected entity
        before: Dictionary with entity state before the change
        after: Dictionary with entity state after the change
        user_id: Override user ID (defaults to current_user.id)

    Returns:
        New audit log ID, or None if logging is disabled or failed

    Example:
        log_audit(
            action='RELEASE',
            entity_type='reservation',
            entity_id=12,
            before={'released_at': None},
            after={'released_at': '2030-01-15 09:12:00'}
        )
    """
    try:
        if not current_app.config.get('AUDIT_ENABLED', True):
            return None

        from models.audit_log import create_audit_log

        if user_id is None:
            if hasattr(current_user, 'is_authenticated') and current_user.is_authenticated:
                user_id = current_user.id

        ip_address = None
        user_agent = None

        try:
            if request:
                # Get client IP, considering proxies
                ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
                if ip_address and ',' in ip_address:
                    ip_address = ip_address.split(',')[0].strip()
                user_agent = request.headers.get('User-Agent', '')[:255]
        except RuntimeError:
            # Outside request context (CLI commands, background sweeps)
            pass

        changes = None
        if before is not None or after is not None:
            changes = {
                'before': before,
                'after': after
            }

        return create_audit_log(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            changes=changes,
            ip_address=ip_address,
            user_agent=user_agent
        )

    except Exception as e:
        # Audit logging should never fail the main operation
        logger.error(f"Failed to log audit entry: {e}", exc_info=True)
        return None
