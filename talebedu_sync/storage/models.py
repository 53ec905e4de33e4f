# talebedu_sync/storage/models.py
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

Record = Dict[str, Any]

class Collection(Enum):
    STUDENTS = "students"
    TEACHERS = "teachers"
    FEES = "fees"
    ATTENDANCE = "attendance"

class OperationKind(Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

@dataclass
class CollectionSchema:
    """Local collection and the remote table it mirrors"""
    name: str
    table: str
    required_fields: Tuple[str, ...] = ()

    def missing_fields(self, record: Record) -> Tuple[str, ...]:
        return tuple(f for f in self.required_fields if record.get(f) is None)

@dataclass
class QueuedOperation:
    """A mutation waiting to be confirmed by the remote system"""
    id: str
    collection: str
    operation: OperationKind
    payload: Record
    created_at: datetime
    synced: bool = False
    attempts: int = 0
    last_error: Optional[str] = None
    failed: bool = False  # dead-lettered

def default_schemas() -> Dict[str, CollectionSchema]:
    return {c.value: CollectionSchema(name=c.value, table=c.value) for c in Collection}
