"""Exception taxonomy for the face deduplication service.

Store-level failures (StoreError) are raised by DescriptorStore
implementations. The coordinator turns them into SubmissionError
subclasses so callers only need to handle one family:

    SubmissionError
        ValidationError
            InvalidDescriptor
        PersistenceFailed
        LockTimeout
        SubmissionCancelled
"""


class SubmissionError(Exception):
    """Base class for failures of a face submission."""
    pass


class ValidationError(SubmissionError, ValueError):
    """Raised when a submission is malformed. Not retryable."""
    pass


class InvalidDescriptor(ValidationError):
    """Raised when a descriptor has the wrong length or non-finite values."""
    pass


class PersistenceFailed(SubmissionError):
    """Raised when the store fails inside the critical section."""
    pass


class LockTimeout(SubmissionError):
    """Raised when the submission lock cannot be acquired in time."""
    pass


class SubmissionCancelled(SubmissionError):
    """Raised when a caller abandons a submission while it waits for the lock."""
    pass


class DimensionMismatch(ValueError):
    """Raised when two descriptors of different lengths are compared."""
    pass


class StoreError(Exception):
    """Raised when the descriptor store fails."""
    pass


class StoreConflict(StoreError):
    """Raised when inserting a record whose id already exists."""
    pass


class ConfigError(ValueError):
    """Raised when configuration values are invalid."""
    pass
