"""
Database connection management.
Handles per-context connections, write transactions, initialization, and teardown.
"""

import logging
import sqlite3
from contextlib import contextmanager

from flask import g, current_app

logger = logging.getLogger(__name__)


def get_db():
    """
    Get the database connection bound to the current app context.

    Returns:
        sqlite3.Connection: Database connection object
    """
    if 'db' not in g:
        db_path = current_app.config.get('DATABASE_PATH', 'instance/tourdesk.db')
        g.db = sqlite3.connect(
            db_path,
            timeout=current_app.config.get('DATABASE_TIMEOUT', 10),
            detect_types=sqlite3.PARSE_DECLTYPES
        )
        g.db.row_factory = sqlite3.Row
        # Enable foreign key constraints
        g.db.execute('PRAGMA foreign_keys = ON')
        # WAL lets readers proceed while a reservation write holds the lock
        g.db.execute('PRAGMA journal_mode = WAL')
    return g.db


def close_db(e=None):
    """
    Close database connection.

    Args:
        e: Exception if any (from Flask teardown context)
    """
    db = g.pop('db', None)
    if db is not None:
        db.close()


@contextmanager
def immediate_transaction(db=None):
    """
    Run a block inside a single BEGIN IMMEDIATE transaction.

    The write lock is taken before the first read, so every check made
    inside the block sees the state it will commit against. Concurrent
    writers wait up to DATABASE_TIMEOUT seconds for the lock.

    Commits on success, rolls back and re-raises on any exception.

    Usage:
        with immediate_transaction() as cursor:
            cursor.execute('UPDATE ...')

    Yields:
        sqlite3.Cursor bound to the open transaction
    """
    db = db or get_db()
    if db.in_transaction:
        # Flush an implicit transaction left open by an earlier statement
        db.commit()

    cursor = db.cursor()
    cursor.execute('BEGIN IMMEDIATE')
    try:
        yield cursor
    except Exception:
        db.rollback()
        raise
    else:
        db.commit()


def init_db():
    """
    Initialize database: drop existing tables, create new schema, insert seed data.
    WARNING: This will delete all existing data!
    """
    from database.schema import drop_tables, create_tables, create_indexes
    from database.seed import seed_database

    db = get_db()

    # Drop existing tables (in reverse order of dependencies)
    drop_tables(db)

    # Create all tables
    create_tables(db)

    # Create indexes
    create_indexes(db)

    # Insert seed data
    seed_database(db)

    db.commit()
    logger.info('Database initialized at %s', current_app.config.get('DATABASE_PATH'))
