"""
face_dedup — find-or-create registration of face descriptors.
"""

__version__ = "0.1.0"

from .coordinator import DedupCoordinator, SubmissionState
from .face import FaceMetadata, FaceRecord, MatchOutcome, MatchResult
from .search import MatchEngine
from .errors import (
    SubmissionError,
    ValidationError,
    InvalidDescriptor,
    PersistenceFailed,
    LockTimeout,
    SubmissionCancelled,
    DimensionMismatch,
    StoreError,
    StoreConflict
)

__all__ = [
    '__version__',
    'DedupCoordinator',
    'SubmissionState',
    'FaceMetadata',
    'FaceRecord',
    'MatchOutcome',
    'MatchResult',
    'MatchEngine',
    'SubmissionError',
    'ValidationError',
    'InvalidDescriptor',
    'PersistenceFailed',
    'LockTimeout',
    'SubmissionCancelled',
    'DimensionMismatch',
    'StoreError',
    'StoreConflict',
]
