"""Storage layer for the face deduplication service.

This module provides the DescriptorStore contract and its implementations:
- InMemoryDescriptorStore for tests and scratch use
- SQLDescriptorStore for durable SQLite storage
- SubmissionLock for serializing submissions across processes

Usage:
    from face_dedup.storage import SQLDescriptorStore

    store = SQLDescriptorStore(db_path='./data/faces.db')
    store.insert(record)
    print(store.count())
"""

from .base import DescriptorStore
from .memory_store import InMemoryDescriptorStore
from .metadata_db import SQLDescriptorStore, FaceRecordRow
from .submission_lock import SubmissionLock, submission_lock
from ..errors import StoreError, StoreConflict, LockTimeout

__all__ = [
    'DescriptorStore',
    'InMemoryDescriptorStore',
    'SQLDescriptorStore',
    'FaceRecordRow',
    'SubmissionLock',
    'submission_lock',
    'StoreError',
    'StoreConflict',
    'LockTimeout',
]
