"""Nearest-neighbor matching over face descriptors.

This module provides the distance functions and the MatchEngine that
decides whether a query descriptor belongs to an already registered face.
Matching is a plain linear scan; candidate selection is delegated to a
CandidateSupplier (see candidates.py) so the scan strategy can change
without touching the selection policy.
"""

import math
from typing import List, Optional, Sequence
import logging
import numpy as np

from ..errors import DimensionMismatch
from ..face import DescriptorLike, FaceRecord, NearestMatch

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.6


def _as_vector(values: DescriptorLike) -> np.ndarray:
    vector = np.asarray(values, dtype=np.float64)
    if vector.ndim != 1:
        raise ValueError(f"Descriptor must be one-dimensional, got shape {vector.shape}")
    return vector


def _check_threshold(threshold: float) -> float:
    threshold = float(threshold)
    if not math.isfinite(threshold) or threshold <= 0:
        raise ValueError(f"Threshold must be a positive number, got {threshold}")
    return threshold


def euclidean_distance(a: DescriptorLike, b: DescriptorLike) -> float:
    """Compute the Euclidean (L2) distance between two descriptors.

    Args:
        a: First descriptor
        b: Second descriptor

    Returns:
        sqrt(sum((a_i - b_i)^2))

    Raises:
        DimensionMismatch: If descriptors have different lengths
    """
    vec_a = _as_vector(a)
    vec_b = _as_vector(b)

    if vec_a.shape != vec_b.shape:
        raise DimensionMismatch(
            f"Descriptor lengths don't match: {vec_a.shape[0]} vs {vec_b.shape[0]}"
        )

    return float(np.sqrt(np.sum((vec_a - vec_b) ** 2)))


def compute_distances(
    query: DescriptorLike,
    records: Sequence[FaceRecord]
) -> np.ndarray:
    """Compute distances from a query to every record.

    Args:
        query: Query descriptor
        records: Records to compare against

    Returns:
        Array of distances, shape (len(records),), in record order

    Raises:
        DimensionMismatch: If any record's descriptor length differs from the query
    """
    query_vec = _as_vector(query)

    if len(records) == 0:
        return np.empty(0, dtype=np.float64)

    for record in records:
        if record.descriptor.shape[0] != query_vec.shape[0]:
            raise DimensionMismatch(
                f"Record {record.id} has descriptor length {record.descriptor.shape[0]}, "
                f"query has {query_vec.shape[0]}"
            )

    matrix = np.vstack([record.descriptor for record in records])
    return np.sqrt(np.sum((matrix - query_vec) ** 2, axis=1))


def find_nearest(
    query: DescriptorLike,
    candidates: Sequence[FaceRecord],
    threshold: float = DEFAULT_THRESHOLD
) -> Optional[NearestMatch]:
    """Find the nearest candidate strictly within threshold.

    Among candidates with distance < threshold the one with the smallest
    distance wins. Exact ties go to the earliest created_at, then the
    smallest id, so the result does not depend on candidate order.

    Args:
        query: Query descriptor
        candidates: Records to search (not modified)
        threshold: Exclusive maximum distance for a match

    Returns:
        NearestMatch, or None if candidates is empty or nothing is within threshold

    Raises:
        DimensionMismatch: If a candidate's descriptor length differs from the query
        ValueError: If threshold is not a positive number
    """
    threshold = _check_threshold(threshold)

    if len(candidates) == 0:
        return None

    distances = compute_distances(query, candidates)
    within = np.flatnonzero(distances < threshold)

    if within.size == 0:
        return None

    best_distance = distances[within].min()
    tied: List[FaceRecord] = [
        candidates[i] for i in within if distances[i] == best_distance
    ]
    winner = min(tied, key=lambda record: (record.created_at, record.id))

    logger.debug(
        f"Nearest match {winner.id} at distance {best_distance:.4f} "
        f"({within.size} of {len(candidates)} within {threshold})"
    )
    return NearestMatch(record=winner, distance=float(best_distance))


class MatchEngine:
    """Threshold-configured nearest-neighbor matcher.

    Usage:
        engine = MatchEngine(threshold=0.6)
        match = engine.find_nearest(descriptor, store.load_all())
        if match is not None:
            print(match.record.id, match.distance)
    """

    def __init__(self, threshold: float = DEFAULT_THRESHOLD):
        """Initialize match engine.

        Args:
            threshold: Exclusive maximum Euclidean distance for a match
        """
        self.threshold = _check_threshold(threshold)

    def distance(self, a: DescriptorLike, b: DescriptorLike) -> float:
        """Euclidean distance between two descriptors."""
        return euclidean_distance(a, b)

    def find_nearest(
        self,
        query: DescriptorLike,
        candidates: Sequence[FaceRecord],
        threshold: Optional[float] = None
    ) -> Optional[NearestMatch]:
        """Find the nearest candidate within threshold.

        Args:
            query: Query descriptor
            candidates: Records to search
            threshold: Override for the engine threshold

        Returns:
            NearestMatch or None
        """
        return find_nearest(
            query,
            candidates,
            self.threshold if threshold is None else threshold
        )

    def __repr__(self) -> str:
        """String representation."""
        return f"MatchEngine(threshold={self.threshold})"
