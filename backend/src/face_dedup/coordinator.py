"""Find-or-create coordination for submitted faces.

DedupCoordinator decides whether a submitted descriptor belongs to an
already registered face or must be registered as new. The load, match and
insert steps run as one critical section under a single process-wide
lock, so two concurrent submissions of the same face can never both be
registered: for any two stored records the descriptor distance is at
least the threshold.
"""

import threading
import time
import uuid
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from .errors import (
    DimensionMismatch,
    ValidationError,
    LockTimeout,
    PersistenceFailed,
    StoreError,
    SubmissionCancelled,
    SubmissionError
)
from .face import (
    DescriptorLike,
    FaceMetadata,
    FaceRecord,
    MatchResult,
    as_descriptor
)
from .search import DEFAULT_THRESHOLD, CandidateSupplier, FullScanSupplier, MatchEngine
from .storage import DescriptorStore, SubmissionLock

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTOR_LENGTH = 128


class SubmissionState(Enum):
    """Lifecycle of a single submission.

    RECEIVED -> VALIDATING -> AWAITING_LOCK -> SCANNING ->
        MATCHED | CREATING -> CREATED | FAILED
    """
    RECEIVED = "received"
    VALIDATING = "validating"
    AWAITING_LOCK = "awaiting_lock"
    SCANNING = "scanning"
    MATCHED = "matched"
    CREATING = "creating"
    CREATED = "created"
    FAILED = "failed"


def _new_record_id() -> str:
    return uuid.uuid4().hex


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DedupCoordinator:
    """Serializes find-or-create over a descriptor store.

    Usage:
        coordinator = DedupCoordinator(store, threshold=0.6, descriptor_length=128)
        result = coordinator.process_submission(descriptor, {'device': ua})
        if result.is_created:
            print(f"Registered {result.record_id}")

    Attributes:
        store: Store holding registered faces
        engine: MatchEngine with the configured threshold
        supplier: Source of candidate records for each query
        descriptor_length: Required descriptor length
        lock_timeout: Default maximum wait for the critical section (seconds)
    """

    def __init__(
        self,
        store: DescriptorStore,
        threshold: float = DEFAULT_THRESHOLD,
        descriptor_length: int = DEFAULT_DESCRIPTOR_LENGTH,
        lock_timeout: float = 30.0,
        poll_interval: float = 0.05,
        supplier: Optional[CandidateSupplier] = None,
        interprocess_lock: Optional[SubmissionLock] = None,
        id_factory: Callable[[], str] = _new_record_id,
        clock: Callable[[], datetime] = _utc_now
    ):
        """Initialize coordinator.

        Args:
            store: Descriptor store (owned by the caller)
            threshold: Exclusive maximum distance for a match
            descriptor_length: Required descriptor length
            lock_timeout: Default maximum wait for the lock (seconds)
            poll_interval: How often a waiting submission checks for
                cancellation and timeout (seconds)
            supplier: Candidate supplier (default: full scan of store)
            interprocess_lock: Optional file lock shared with other processes
            id_factory: Generates record ids
            clock: Returns the creation timestamp for new records
        """
        if descriptor_length < 1:
            raise ValueError(f"descriptor_length must be positive, got {descriptor_length}")
        if lock_timeout <= 0:
            raise ValueError(f"lock_timeout must be positive, got {lock_timeout}")
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")

        self.store = store
        self.engine = MatchEngine(threshold)
        self.supplier = supplier or FullScanSupplier(store)
        self.descriptor_length = descriptor_length
        self.lock_timeout = lock_timeout
        self.poll_interval = poll_interval
        self.interprocess_lock = interprocess_lock

        self._id_factory = id_factory
        self._clock = clock

        self._lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._stats = {
            'matched': 0,
            'created': 0,
            'failed': 0,
            'rejected': 0,
            'timed_out': 0,
            'cancelled': 0,
        }

        logger.info(
            f"DedupCoordinator ready: threshold={self.threshold}, "
            f"descriptor_length={descriptor_length}, store={store!r}"
        )

    @property
    def threshold(self) -> float:
        return self.engine.threshold

    def process_submission(
        self,
        descriptor: DescriptorLike,
        metadata: Union[FaceMetadata, Dict[str, Any], None] = None,
        image: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        observer: Optional[Callable[[SubmissionState], None]] = None
    ) -> MatchResult:
        """Match a descriptor against registered faces, registering it if new.

        Args:
            descriptor: Submitted face descriptor
            metadata: Submission metadata (FaceMetadata or dict)
            image: Opaque image reference stored with a new record
            timeout: Maximum wait for the critical section (default: lock_timeout)
            cancel_event: Set by the caller to abandon the submission while
                it is still waiting for the lock
            observer: Called with every state the submission passes through

        Returns:
            MatchResult.matched(existing_id) or MatchResult.created(new_id)

        Raises:
            InvalidDescriptor: Descriptor has wrong length or bad values
            ValidationError: Metadata has the wrong shape
            LockTimeout: Critical section not entered within timeout
            SubmissionCancelled: cancel_event was set while waiting
            PersistenceFailed: The store failed during load or insert
        """
        def advance(state: SubmissionState):
            logger.debug(f"Submission state: {state.value}")
            if observer is not None:
                observer(state)

        advance(SubmissionState.RECEIVED)
        advance(SubmissionState.VALIDATING)

        try:
            query = as_descriptor(descriptor, self.descriptor_length)
            # Stored records never share the caller's metadata objects
            if isinstance(metadata, FaceMetadata):
                metadata = metadata.to_dict()
            metadata = FaceMetadata.from_dict(metadata)
        except ValidationError:
            self._bump('rejected')
            advance(SubmissionState.FAILED)
            raise

        advance(SubmissionState.AWAITING_LOCK)

        try:
            self._acquire(timeout, cancel_event)
        except LockTimeout:
            self._bump('timed_out')
            advance(SubmissionState.FAILED)
            logger.warning("Submission timed out waiting for the dedup lock")
            raise
        except SubmissionCancelled:
            self._bump('cancelled')
            advance(SubmissionState.FAILED)
            logger.warning("Submission cancelled while waiting for the dedup lock")
            raise

        # Cancellation is ignored from here until the section completes
        try:
            advance(SubmissionState.SCANNING)
            return self._find_or_create(query, metadata, image, advance)
        except SubmissionError:
            self._bump('failed')
            advance(SubmissionState.FAILED)
            raise
        finally:
            self._release()

    def _find_or_create(
        self,
        query,
        metadata: FaceMetadata,
        image: Optional[str],
        advance: Callable[[SubmissionState], None]
    ) -> MatchResult:
        """Critical section body. Caller holds the lock."""
        try:
            candidates = self.supplier.candidates(query)
        except StoreError as e:
            logger.error(f"Failed to load registered faces: {e}")
            raise PersistenceFailed(f"Failed to load registered faces: {e}") from e

        try:
            match = self.engine.find_nearest(query, candidates)
        except DimensionMismatch as e:
            logger.error(f"Store holds descriptors of another length: {e}")
            raise PersistenceFailed(f"Store holds incompatible descriptors: {e}") from e

        if match is not None:
            advance(SubmissionState.MATCHED)
            self._bump('matched')
            logger.info(f"Face matched {match.record.id} (distance {match.distance:.4f})")
            return MatchResult.matched(match.record.id, match.distance)

        advance(SubmissionState.CREATING)
        record = FaceRecord(
            id=self._id_factory(),
            descriptor=query,
            created_at=self._clock(),
            metadata=metadata,
            image=image
        )

        try:
            self.store.insert(record)
        except StoreError as e:
            logger.error(f"Failed to store new face {record.id}: {e}")
            raise PersistenceFailed(f"Failed to store new face: {e}") from e

        advance(SubmissionState.CREATED)
        self._bump('created')
        logger.info(f"New face registered: {record.id}")
        return MatchResult.created(record.id)

    def _acquire(
        self,
        timeout: Optional[float],
        cancel_event: Optional[threading.Event]
    ):
        """Enter the critical section.

        Waits in short slices so a queued caller can time out or cancel
        without side effects.
        """
        timeout = self.lock_timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise SubmissionCancelled("Submission cancelled while waiting for the lock")

            remaining = deadline - time.monotonic()
            if self._lock.acquire(timeout=max(0.0, min(self.poll_interval, remaining))):
                break

            if time.monotonic() >= deadline:
                raise LockTimeout(f"Could not enter critical section within {timeout} seconds")

        if cancel_event is not None and cancel_event.is_set():
            self._lock.release()
            raise SubmissionCancelled("Submission cancelled while waiting for the lock")

        if self.interprocess_lock is not None:
            try:
                self.interprocess_lock.acquire(
                    timeout=max(0.0, deadline - time.monotonic()),
                    cancel_event=cancel_event
                )
            except BaseException:
                self._lock.release()
                raise

        logger.debug("Dedup lock acquired")

    def _release(self):
        try:
            if self.interprocess_lock is not None:
                self.interprocess_lock.release()
        finally:
            self._lock.release()
            logger.debug("Dedup lock released")

    def _bump(self, counter: str):
        with self._stats_lock:
            self._stats[counter] += 1

    @property
    def stats(self) -> Dict[str, int]:
        """Snapshot of submission outcome counters."""
        with self._stats_lock:
            return dict(self._stats)

    def count(self) -> int:
        """Number of registered faces."""
        return self.store.count()

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"DedupCoordinator(threshold={self.threshold}, "
            f"descriptor_length={self.descriptor_length}, store={self.store!r})"
        )
