"""
Database package for the TourDesk facility reservation service.

This package provides modular database operations:
- connection: Database connection management (get_db, close_db, init_db,
  immediate_transaction)
- schema: Table creation and indexes
- seed: Initial seed data

All functions are re-exported from this module.
"""

from database.connection import get_db, close_db, init_db, immediate_transaction
from database.schema import drop_tables, create_tables, create_indexes
from database.seed import seed_database, seed_facilities

__all__ = [
    # Connection
    'get_db',
    'close_db',
    'init_db',
    'immediate_transaction',
    # Schema
    'drop_tables',
    'create_tables',
    'create_indexes',
    # Seed
    'seed_database',
    'seed_facilities',
]
