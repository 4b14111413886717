"""In-memory descriptor store.

Keeps records in a dictionary for tests, the CLI's scratch mode and
single-process deployments that don't need durability.
"""

import threading
import logging
from typing import Dict, List, Optional

from ..errors import StoreConflict
from ..face import FaceRecord
from .base import DescriptorStore

logger = logging.getLogger(__name__)


class InMemoryDescriptorStore(DescriptorStore):
    """Dictionary-backed store.

    Insertion order is preserved. A lock guards the dictionary so
    load_all() never observes a half-applied insert.
    """

    def __init__(self):
        self._records: Dict[str, FaceRecord] = {}
        self._lock = threading.Lock()

    def load_all(self) -> List[FaceRecord]:
        with self._lock:
            return list(self._records.values())

    def insert(self, record: FaceRecord) -> None:
        with self._lock:
            if record.id in self._records:
                raise StoreConflict(f"Record {record.id} already exists")
            self._records[record.id] = record
        logger.debug(f"Stored record {record.id} in memory")

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def get(self, record_id: str) -> Optional[FaceRecord]:
        with self._lock:
            return self._records.get(record_id)

    def __repr__(self) -> str:
        """String representation."""
        return f"InMemoryDescriptorStore(records={self.count()})"
