from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .models import OperationKind, QueuedOperation, Record

class RecordCache(ABC):
    """Abstract base class for the local record cache"""

    @abstractmethod
    def put(self, collection: str, record: Record) -> None:
        """Insert or overwrite a record keyed by its id"""
        pass

    @abstractmethod
    def get_all(self, collection: str) -> List[Record]:
        """Snapshot of every record stored for a collection"""
        pass

    @abstractmethod
    def get(self, collection: str, record_id: str) -> Optional[Record]:
        """Single record, or None when absent"""
        pass

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> None:
        """Physically remove a record"""
        pass

class OperationQueue(ABC):
    """Abstract base class for the pending-operation queue"""

    @abstractmethod
    def enqueue(self, collection: str, operation: OperationKind,
                payload: Record) -> QueuedOperation:
        pass

    @abstractmethod
    def list_pending(self) -> List[QueuedOperation]:
        pass

    @abstractmethod
    def mark_synced(self, operation_id: str) -> None:
        pass

    @abstractmethod
    def purge_synced(self) -> int:
        pass

    @abstractmethod
    def get(self, operation_id: str) -> Optional[QueuedOperation]:
        pass

    @abstractmethod
    def has_pending(self, collection: str, record_id: str,
                    exclude_id: Optional[str] = None) -> bool:
        """True if an unsynced operation still targets the record"""
        pass

    @abstractmethod
    def remap_id(self, collection: str, old_id: str, new_id: str) -> int:
        """Point pending operations at a server-assigned record id"""
        pass

    @abstractmethod
    def record_failure(self, operation_id: str, error: str) -> int:
        """Count a failed attempt, returning the new attempt count"""
        pass

    @abstractmethod
    def mark_failed(self, operation_id: str, error: str) -> None:
        """Move an operation to the dead-letter state"""
        pass

    @abstractmethod
    def list_failed(self) -> List[QueuedOperation]:
        pass

    @abstractmethod
    def requeue_failed(self) -> int:
        pass

    @abstractmethod
    def set_last_sync_time(self, when: Optional[datetime] = None) -> None:
        pass

    @abstractmethod
    def get_last_sync_time(self) -> Optional[datetime]:
        pass
