"""Candidate suppliers for the match engine.

A supplier decides which stored records a query is compared against.
FullScanSupplier returns every record; an indexed supplier could return
only the query's neighborhood without changing the match policy.
"""

from abc import ABC, abstractmethod
from typing import Sequence

from ..face import DescriptorLike, FaceRecord
from ..storage.base import DescriptorStore


class CandidateSupplier(ABC):
    """Source of candidate records for a query descriptor."""

    @abstractmethod
    def candidates(self, query: DescriptorLike) -> Sequence[FaceRecord]:
        """Return the records the query must be compared against."""


class FullScanSupplier(CandidateSupplier):
    """Supplies a full snapshot of the store for every query."""

    def __init__(self, store: DescriptorStore):
        self.store = store

    def candidates(self, query: DescriptorLike) -> Sequence[FaceRecord]:
        return self.store.load_all()

    def __repr__(self) -> str:
        return f"FullScanSupplier({self.store!r})"
