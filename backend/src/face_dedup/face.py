"""Face data classes for the face deduplication service.

This module defines the core data structures shared by the store, the
match engine and the coordinator: descriptors, face records, submission
metadata and match results.
"""

import copy
import numbers
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, Sequence, Union
import numpy as np

from .errors import InvalidDescriptor, ValidationError

UNKNOWN = "unknown"

DescriptorLike = Union[np.ndarray, Sequence[float]]


def as_descriptor(
    values: DescriptorLike,
    expected_length: Optional[int] = None
) -> np.ndarray:
    """Convert raw values into an immutable descriptor.

    Args:
        values: Sequence of numbers or a 1-D numeric numpy array
        expected_length: Required descriptor length (None to skip the check)

    Returns:
        Read-only float64 numpy array

    Raises:
        InvalidDescriptor: If values are not a flat sequence of finite numbers
            or the length doesn't match expected_length
    """
    if isinstance(values, np.ndarray):
        if values.ndim != 1:
            raise InvalidDescriptor(
                f"Descriptor must be one-dimensional, got shape {values.shape}"
            )
        if values.dtype.kind not in 'iuf':
            raise InvalidDescriptor(
                f"Descriptor must be numeric, got dtype {values.dtype}"
            )
        array = values.astype(np.float64)
    elif isinstance(values, (list, tuple)):
        for value in values:
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise InvalidDescriptor(
                    f"Descriptor values must be numbers, got {type(value).__name__}"
                )
        try:
            array = np.array(values, dtype=np.float64)
        except (OverflowError, ValueError, TypeError) as e:
            raise InvalidDescriptor(f"Descriptor values can't be converted to floats: {e}") from e
    else:
        raise InvalidDescriptor(
            f"Descriptor must be a sequence of numbers, got {type(values).__name__}"
        )

    if array.size == 0:
        raise InvalidDescriptor("Descriptor is empty")

    if not np.all(np.isfinite(array)):
        raise InvalidDescriptor("Descriptor contains NaN or infinite values")

    if expected_length is not None and array.shape[0] != expected_length:
        raise InvalidDescriptor(
            f"Descriptor length {array.shape[0]} doesn't match "
            f"expected length {expected_length}"
        )

    array.flags.writeable = False
    return array


@dataclass(frozen=True)
class FaceMetadata:
    """Context captured alongside a submitted face.

    Frozen, and location is copied on the way in and out, so a stored
    record can't be changed through the caller's objects.

    Attributes:
        device: Client device string (usually the User-Agent)
        network_origin: Client network address as seen by the gateway
        location: Optional caller-supplied location mapping
            (city, region, country, latitude, longitude, ...)
    """
    device: str = UNKNOWN
    network_origin: str = UNKNOWN
    location: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            'device': self.device,
            'network_origin': self.network_origin,
            'location': copy.deepcopy(self.location)
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'FaceMetadata':
        """Create FaceMetadata from a dictionary, filling in placeholders.

        Args:
            data: Dictionary with device, network_origin and location keys

        Returns:
            FaceMetadata instance

        Raises:
            ValidationError: If data, location or a string field has the wrong type
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValidationError(f"Metadata must be a mapping, got {type(data).__name__}")

        for key in ('device', 'network_origin'):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{key} must be a string, got {type(value).__name__}")

        location = data.get('location')
        if location is not None and not isinstance(location, dict):
            raise ValidationError(f"location must be a mapping, got {type(location).__name__}")

        return cls(
            device=data.get('device') or UNKNOWN,
            network_origin=data.get('network_origin') or UNKNOWN,
            location=copy.deepcopy(location) if location else None
        )


@dataclass(frozen=True, eq=False)
class FaceRecord:
    """A registered face.

    Records are created once by the coordinator and never mutated.

    Attributes:
        id: Opaque unique identifier
        descriptor: Read-only descriptor array
        created_at: Timezone-aware creation timestamp (UTC)
        metadata: Submission metadata
        image: Opaque image reference (e.g. a base64 data URL) or None
    """
    id: str
    descriptor: np.ndarray
    created_at: datetime
    metadata: FaceMetadata = field(default_factory=FaceMetadata)
    image: Optional[str] = None

    @property
    def dimension(self) -> int:
        """Get descriptor length."""
        return int(self.descriptor.shape[0])

    def to_dict(self, include_descriptor: bool = True) -> Dict[str, Any]:
        """Convert record to dictionary.

        Args:
            include_descriptor: If True, include the descriptor as a list

        Returns:
            Dictionary representation of the record
        """
        result = {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'metadata': self.metadata.to_dict(),
            'image': self.image,
        }
        if include_descriptor:
            result['descriptor'] = self.descriptor.tolist()
        return result

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"FaceRecord(id='{self.id}', dim={self.dimension}, "
            f"created_at={self.created_at.isoformat()})"
        )


@dataclass(frozen=True)
class NearestMatch:
    """Closest record within threshold and its distance to the query."""
    record: FaceRecord
    distance: float


class MatchOutcome(Enum):
    """Outcome of a find-or-create submission."""
    MATCHED = "matched"
    CREATED = "created"


_MESSAGES = {
    MatchOutcome.MATCHED: "Face exists",
    MatchOutcome.CREATED: "New face saved",
}


@dataclass(frozen=True)
class MatchResult:
    """Result of processing a submission.

    Either MATCHED (an existing record was within threshold) or CREATED
    (a new record was registered). Callers never need the descriptors.

    Attributes:
        outcome: MATCHED or CREATED
        record_id: Id of the matched or newly created record
        distance: Distance to the matched record (None when created)
    """
    outcome: MatchOutcome
    record_id: str
    distance: Optional[float] = None

    @classmethod
    def matched(cls, record_id: str, distance: Optional[float] = None) -> 'MatchResult':
        return cls(MatchOutcome.MATCHED, record_id, distance)

    @classmethod
    def created(cls, record_id: str) -> 'MatchResult':
        return cls(MatchOutcome.CREATED, record_id)

    @property
    def is_match(self) -> bool:
        return self.outcome is MatchOutcome.MATCHED

    @property
    def is_created(self) -> bool:
        return self.outcome is MatchOutcome.CREATED

    @property
    def message(self) -> str:
        """User-facing message for this outcome."""
        return _MESSAGES[self.outcome]
