"""Descriptor store contract.

A DescriptorStore owns the registered face records. It has no matching
logic; the coordinator decides what gets inserted.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..face import FaceRecord


class DescriptorStore(ABC):
    """Data-access contract for registered face records.

    Implementations must:
    - return a consistent snapshot from load_all()
    - raise StoreConflict from insert() when the record id already exists
    - raise StoreError for any other persistence failure
    """

    @abstractmethod
    def load_all(self) -> List[FaceRecord]:
        """Load every record as of call time.

        Returns:
            List of FaceRecord objects

        Raises:
            StoreError: If the store can't be read
        """

    @abstractmethod
    def insert(self, record: FaceRecord) -> None:
        """Append a new record.

        Args:
            record: Record to store

        Raises:
            StoreConflict: If a record with the same id exists
            StoreError: If the store can't be written
        """

    @abstractmethod
    def count(self) -> int:
        """Get the number of stored records."""

    @abstractmethod
    def get(self, record_id: str) -> Optional[FaceRecord]:
        """Get a record by id, or None if not found."""

    def close(self):
        """Release resources held by the store."""
        pass

    def __len__(self) -> int:
        return self.count()
