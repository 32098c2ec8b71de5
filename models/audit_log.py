"""
Audit Log model and data access functions.
Handles audit log creation, retrieval, and filtering.
"""

import json
from database import get_db


# =============================================================================
# READ OPERATIONS
# =============================================================================

def _row_to_entry(row) -> dict:
    entry = dict(row)
    if entry.get('changes'):
        try:
            entry['changes'] = json.loads(entry['changes'])
        except (TypeError, ValueError):
            pass
    return entry


def get_audit_logs(
    user_id: int = None,
    action: str = None,
    entity_type: str = None,
    entity_id: int = None,
    limit: int = 100,
    offset: int = 0
) -> list:
    """
    Get audit logs with optional filtering.

    Args:
        user_id: Filter by user ID
        action: Filter by action type (RESERVE, RELEASE, EXPIRE, ...)
        entity_type: Filter by entity type (reservation, facility, user)
        entity_id: Filter by specific entity ID
        limit: Maximum number of records to return (default 100)
        offset: Number of records to skip for pagination

    Returns:
        List of audit log dicts, newest first
    """
    with get_db() as conn:
        cursor = conn.cursor()

        query = '''
            SELECT al.*, u.username, u.full_name as user_full_name
            FROM audit_log al
            LEFT JOIN users u ON al.user_id = u.id
            WHERE 1=1
        '''

        params = []

        if user_id is not None:
            query += ' AND al.user_id = ?'
            params.append(user_id)

        if action:
            query += ' AND al.action = ?'
            params.append(action)

        if entity_type:
            query += ' AND al.entity_type = ?'
            params.append(entity_type)

        if entity_id is not None:
            query += ' AND al.entity_id = ?'
            params.append(entity_id)

        query += ' ORDER BY al.created_at DESC, al.id DESC LIMIT ? OFFSET ?'
        params.extend([limit, offset])

        cursor.execute(query, params)
        return [_row_to_entry(row) for row in cursor.fetchall()]


# =============================================================================
# CREATE OPERATIONS
# =============================================================================

def create_audit_log(
    action: str,
    entity_type: str,
    entity_id: int = None,
    user_id: int = None,
    changes: dict = None,
    ip_address: str = None,
    user_agent: str = None
) -> int:
    """
    Create a new audit log entry.

    Args:
        action: Action type
        entity_type: Entity type
        entity_id: ID of the affected entity
        user_id: ID of the user who performed the action (None for system actions)
        changes: Dictionary with before/after state
        ip_address: Client IP address
        user_agent: Client user agent string

    Returns:
        New audit log ID
    """
    changes_json = None
    if changes is not None:
        changes_json = json.dumps(changes, default=str, ensure_ascii=False)

    with get_db() as conn:
        cursor = conn.cursor()

        cursor.execute('''
            INSERT INTO audit_log
            (user_id, action, entity_type, entity_id, changes, ip_address, user_agent)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        ''', (user_id, action, entity_type, entity_id, changes_json, ip_address, user_agent))

        return cursor.lastrowid
