from dataclasses import dataclass
from datetime import datetime
from typing import Optional

@dataclass
class SyncStatus:
    last_sync_time: datetime
    records_synced: int
    records_failed: int
    records_dead_lettered: int
    status: str
    error_message: Optional[str] = None

@dataclass
class SyncConfig:
    sync_interval: int = 30  # seconds
    max_attempts: Optional[int] = None  # None retries forever
    queue_rejected_writes: bool = False
    purge_interval: int = 300  # seconds

    def __post_init__(self):
        if self.sync_interval < 1:
            raise ValueError("Sync interval must be at least 1 second")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("Max attempts must be at least 1")
        if self.purge_interval < 0:
            raise ValueError("Purge interval cannot be negative")
