"""Search module for face matching.

This module provides the matching side of find-or-create:
- Euclidean distance between descriptors
- MatchEngine for nearest-within-threshold selection
- Candidate suppliers that decide which records are scanned

Usage:
    from face_dedup.search import MatchEngine, FullScanSupplier

    engine = MatchEngine(threshold=0.6)
    supplier = FullScanSupplier(store)

    match = engine.find_nearest(descriptor, supplier.candidates(descriptor))
"""

from .engine import (
    DEFAULT_THRESHOLD,
    MatchEngine,
    compute_distances,
    euclidean_distance,
    find_nearest
)
from .candidates import CandidateSupplier, FullScanSupplier

__all__ = [
    'DEFAULT_THRESHOLD',
    'MatchEngine',
    'compute_distances',
    'euclidean_distance',
    'find_nearest',
    'CandidateSupplier',
    'FullScanSupplier',
]
