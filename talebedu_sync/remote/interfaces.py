# talebedu_sync/remote/interfaces.py
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..storage.models import Record

class RemoteError(Exception):
    """A remote call did not complete successfully"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class RemoteUnavailableError(RemoteError):
    """Network failure, timeout or server-side error; worth retrying"""

class RemoteRejectedError(RemoteError):
    """The remote refused the request (validation, auth, not found)"""

class RemoteDataAPI(ABC):
    """Abstract base class for the remote per-table data API"""

    @abstractmethod
    def select(self, table: str, query: Optional[Dict[str, Any]] = None) -> List[Record]:
        """Fetch rows matching the query"""
        pass

    @abstractmethod
    def insert(self, table: str, record: Record) -> Record:
        """Insert a row and return it as stored"""
        pass

    @abstractmethod
    def update(self, table: str, record_id: str, patch: Record) -> Optional[Record]:
        """Apply a partial update and return the stored row"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> None:
        """Delete a row by id"""
        pass
