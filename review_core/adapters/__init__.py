"""
Adapter pattern implementations for review persistence.

This module provides the abstract persistence contract the review store
depends on and concrete backends (in-memory, Postgres, S3).
"""

from .base import PersistenceAdapter
from .memory_adapter import InMemoryPersistenceAdapter

__all__ = [
    'PersistenceAdapter',
    'InMemoryPersistenceAdapter'
]
