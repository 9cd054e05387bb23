"""
Adapter layer

Integration with external resources. The ledger only needs the SQLite
database adapter.
"""

from adapters.db import SQLiteAdapter, TransactionConflictError

__all__ = [
    "SQLiteAdapter",
    "TransactionConflictError",
]
