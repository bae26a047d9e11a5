"""
Persistence layer for the system model catalog.

This module provides a pluggable storage interface supporting:
- SQLite (production, one database file)
- In-memory (for testing and local development)

Every entity type is kept in its own RecordTable; parent to child
relationships that need ordered listing live in AssociationIndex objects.

Invariants:
    - Reads return copies, never shared mutable state
    - AlreadyExists and NotFound are reported with the offending key
    - No operation spans more than one table or index

How to change safely:
    - New backends must implement the RecordTable and AssociationIndex protocols
    - Run the provider test suite against every backend
"""

from .base import AssociationIndex, Key, RecordTable
from .locks import KeyedLock
from .memory import InMemoryAssociationIndex, InMemoryRecordTable
from .sqlite import SqliteAssociationIndex, SqliteDatabase, SqliteRecordTable
from .stores import RecordStores, create_record_stores

__all__ = [
    # Protocols and types
    "RecordTable",
    "AssociationIndex",
    "Key",
    "KeyedLock",
    # Factory
    "RecordStores",
    "create_record_stores",
    # Implementations
    "InMemoryRecordTable",
    "InMemoryAssociationIndex",
    "SqliteDatabase",
    "SqliteRecordTable",
    "SqliteAssociationIndex",
]
