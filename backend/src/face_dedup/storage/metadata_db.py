"""SQLite descriptor store.

This module provides a SQLAlchemy-backed DescriptorStore. Each row holds
one registered face: its descriptor (as a float64 BLOB), the image
reference, submission metadata and creation time. Rows are scoped by
collection_id so several deployments can share a database file.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List, Dict, Any
import json
import logging

from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    String,
    Text,
    LargeBinary,
    DateTime,
    UniqueConstraint,
    func
)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import numpy as np

from ..errors import StoreConflict, StoreError
from ..face import FaceMetadata, FaceRecord, as_descriptor
from .base import DescriptorStore

logger = logging.getLogger(__name__)

Base = declarative_base()


def _to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class FaceRecordRow(Base):
    """Registered face table."""
    __tablename__ = 'face_records'

    row_id = Column(Integer, primary_key=True, autoincrement=True)

    collection_id = Column(String(255), nullable=False, index=True)
    record_id = Column(String(64), nullable=False)

    # Descriptor stored as little-endian float64 bytes
    descriptor = Column(LargeBinary, nullable=False)
    dimension = Column(Integer, nullable=False)

    image = Column(Text, nullable=True)

    device = Column(String(1024), nullable=False)
    network_origin = Column(String(255), nullable=False)
    location = Column(Text, nullable=True)  # JSON

    # Naive UTC
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint('collection_id', 'record_id', name='uq_collection_record'),
    )

    @classmethod
    def from_record(cls, collection_id: str, record: FaceRecord) -> 'FaceRecordRow':
        """Build a row from a FaceRecord."""
        metadata = record.metadata
        return cls(
            collection_id=collection_id,
            record_id=record.id,
            descriptor=np.asarray(record.descriptor, dtype='<f8').tobytes(),
            dimension=record.dimension,
            image=record.image,
            device=metadata.device,
            network_origin=metadata.network_origin,
            location=json.dumps(metadata.location) if metadata.location is not None else None,
            created_at=_to_utc_naive(record.created_at)
        )

    def to_record(self) -> FaceRecord:
        """Deserialize the row into a FaceRecord.

        Raises:
            StoreError: If the stored descriptor is corrupt
        """
        values = np.frombuffer(self.descriptor, dtype='<f8')
        if values.shape[0] != self.dimension:
            raise StoreError(
                f"Record {self.record_id} is corrupt: descriptor has "
                f"{values.shape[0]} values, expected {self.dimension}"
            )

        return FaceRecord(
            id=self.record_id,
            descriptor=as_descriptor(values),
            created_at=self.created_at.replace(tzinfo=timezone.utc),
            metadata=FaceMetadata(
                device=self.device,
                network_origin=self.network_origin,
                location=json.loads(self.location) if self.location else None
            ),
            image=self.image
        )


class SQLDescriptorStore(DescriptorStore):
    """SQLite store for registered faces.

    Usage:
        store = SQLDescriptorStore(db_path='./data/faces.db')
        store.insert(record)
        records = store.load_all()
    """

    def __init__(self, db_path: str, collection_id: str = "default"):
        """Initialize SQL store.

        Args:
            db_path: Path to SQLite database file
            collection_id: Collection identifier
        """
        self.db_path = Path(db_path)
        self.collection_id = collection_id

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(
            f'sqlite:///{self.db_path}',
            echo=False,
            connect_args={
                'check_same_thread': False,
                'timeout': 30,  # Wait on writers from other processes
            }
        )
        self.SessionLocal = sessionmaker(bind=self.engine)

        Base.metadata.create_all(self.engine)

        logger.info(f"SQLDescriptorStore initialized: {self.db_path}")

    @contextmanager
    def session_scope(self):
        """Provide a transactional scope for database operations.

        Raises:
            StoreConflict: On integrity errors
            StoreError: On any other database error
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise StoreConflict(f"Integrity error: {e.orig}") from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise StoreError(f"Database error: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def load_all(self) -> List[FaceRecord]:
        with self.session_scope() as session:
            rows = session.query(FaceRecordRow).filter(
                FaceRecordRow.collection_id == self.collection_id
            ).order_by(FaceRecordRow.row_id).all()
            return [row.to_record() for row in rows]

    def insert(self, record: FaceRecord) -> None:
        try:
            with self.session_scope() as session:
                session.add(FaceRecordRow.from_record(self.collection_id, record))
        except StoreConflict as e:
            raise StoreConflict(f"Record {record.id} already exists") from e

        logger.debug(f"Inserted record {record.id} into {self.collection_id}")

    def count(self) -> int:
        with self.session_scope() as session:
            count = session.query(func.count(FaceRecordRow.row_id)).filter(
                FaceRecordRow.collection_id == self.collection_id
            ).scalar()
            return count or 0

    def get(self, record_id: str) -> Optional[FaceRecord]:
        with self.session_scope() as session:
            row = session.query(FaceRecordRow).filter(
                FaceRecordRow.collection_id == self.collection_id,
                FaceRecordRow.record_id == record_id
            ).first()
            return row.to_record() if row else None

    def close(self):
        """Dispose of the connection pool."""
        self.engine.dispose()
        logger.debug(f"SQLDescriptorStore closed: {self.db_path}")

    def get_stats(self) -> Dict[str, Any]:
        """Get database statistics.

        Returns:
            Dictionary with statistics
        """
        return {
            'collection_id': self.collection_id,
            'records': self.count(),
            'db_path': str(self.db_path),
        }

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"SQLDescriptorStore(collection='{self.collection_id}', "
            f"db='{self.db_path}')"
        )
