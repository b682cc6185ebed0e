"""Database package: connection helpers, transactions and schema management."""

from database.connection import apply_schema, get_db, immediate_transaction, init_database

__all__ = ["apply_schema", "get_db", "immediate_transaction", "init_database"]
