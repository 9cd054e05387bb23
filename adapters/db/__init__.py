"""
Database adapter

SQLite WAL-mode connection management.
"""

from adapters.db.sqlite_adapter import (
    SQLiteAdapter,
    TransactionConflictError,
    create_connection,
    init_schema,
)

__all__ = [
    "SQLiteAdapter",
    "TransactionConflictError",
    "create_connection",
    "init_schema",
]
