"""Startup wiring for the face deduplication service.

The store and the coordinator are built once, explicitly, from a config
dictionary (see config.py) and handed to whoever serves requests. Nothing
in the package keeps them in module globals.
"""

from pathlib import Path
from typing import Any, Dict, Optional
import logging

from .config import get_config
from .coordinator import DedupCoordinator
from .storage import (
    DescriptorStore,
    InMemoryDescriptorStore,
    SQLDescriptorStore,
    SubmissionLock
)

logger = logging.getLogger(__name__)


def create_store(config: Dict[str, Any]) -> DescriptorStore:
    """Build the descriptor store named by config['storage']['backend'].

    Args:
        config: Validated configuration dictionary

    Returns:
        DescriptorStore instance
    """
    storage = config["storage"]

    if storage["backend"] == "memory":
        logger.info("Using in-memory descriptor store")
        return InMemoryDescriptorStore()

    return SQLDescriptorStore(
        db_path=storage["database_path"],
        collection_id=storage.get("collection_id", "default")
    )


def create_coordinator(
    config: Optional[Dict[str, Any]] = None,
    store: Optional[DescriptorStore] = None
) -> DedupCoordinator:
    """Build a DedupCoordinator from configuration.

    Args:
        config: Configuration dictionary (default: get_config())
        store: Existing store to use instead of creating one

    Returns:
        Configured DedupCoordinator
    """
    config = config or get_config()
    store = store if store is not None else create_store(config)

    matching = config["matching"]
    locking = config["locking"]

    interprocess_lock = None
    if locking.get("interprocess"):
        interprocess_lock = SubmissionLock(
            Path(locking["lock_path"]),
            timeout=locking["timeout"],
            poll_interval=locking["poll_interval"]
        )
        logger.info(f"Inter-process submission lock enabled: {locking['lock_path']}")

    return DedupCoordinator(
        store=store,
        threshold=matching["threshold"],
        descriptor_length=matching["descriptor_length"],
        lock_timeout=locking["timeout"],
        poll_interval=locking["poll_interval"],
        interprocess_lock=interprocess_lock
    )
