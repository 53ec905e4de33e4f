# talebedu_sync/storage/sqlite_queue.py
import json
import sqlite3
import logging
import uuid
from datetime import datetime
from typing import List, Optional

from .base import OperationQueue
from .models import OperationKind, QueuedOperation, Record

logger = logging.getLogger(__name__)

_COLUMNS = 'op_id, collection, operation, payload, created_at, synced, attempts, last_error, failed'

class SQLiteOperationQueue(OperationQueue):
    """Durable FIFO of mutations not yet confirmed by the remote API"""

    def __init__(self, db_path: str = 'talebedu_offline.db'):
        self.db_path = db_path
        logger.info(f"Initializing sync queue at {db_path}")
        self._initialize_db()

    def _initialize_db(self) -> None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS sync_queue (
                        seq INTEGER PRIMARY KEY AUTOINCREMENT,
                        op_id TEXT NOT NULL UNIQUE,
                        collection TEXT NOT NULL,
                        operation TEXT NOT NULL,
                        payload TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        synced INTEGER NOT NULL DEFAULT 0,
                        attempts INTEGER NOT NULL DEFAULT 0,
                        last_error TEXT,
                        failed INTEGER NOT NULL DEFAULT 0
                    )
                ''')
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS sync_metadata (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                ''')
                conn.commit()
                logger.debug("Sync queue initialized successfully")
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize sync queue: {str(e)}")
            raise

    @staticmethod
    def _row_to_operation(row) -> QueuedOperation:
        return QueuedOperation(
            id=row[0],
            collection=row[1],
            operation=OperationKind(row[2]),
            payload=json.loads(row[3]),
            created_at=datetime.fromisoformat(row[4]),
            synced=bool(row[5]),
            attempts=row[6],
            last_error=row[7],
            failed=bool(row[8])
        )

    def _select_where(self, where: str, params: tuple = ()) -> List[QueuedOperation]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    f'SELECT {_COLUMNS} FROM sync_queue WHERE {where} ORDER BY seq ASC',
                    params
                )
                return [self._row_to_operation(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            logger.error(f"Failed to read sync queue: {str(e)}")
            raise

    def _execute(self, sql: str, params: tuple = ()) -> int:
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(sql, params)
                conn.commit()
                return cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"Failed to update sync queue: {str(e)}")
            raise

    def enqueue(self, collection: str, operation: OperationKind,
                payload: Record) -> QueuedOperation:
        queued = QueuedOperation(
            id=str(uuid.uuid4()),
            collection=collection,
            operation=operation,
            payload=dict(payload),
            created_at=datetime.now()
        )
        self._execute('''
            INSERT INTO sync_queue (op_id, collection, operation, payload, created_at)
            VALUES (?, ?, ?, ?, ?)
        ''', (
            queued.id,
            queued.collection,
            queued.operation.value,
            json.dumps(queued.payload, default=str),
            queued.created_at.isoformat()
        ))
        logger.debug(f"Queued {operation.value} on {collection} as {queued.id}")
        return queued

    def list_pending(self) -> List[QueuedOperation]:
        return self._select_where('synced = 0 AND failed = 0')

    def list_failed(self) -> List[QueuedOperation]:
        return self._select_where('synced = 0 AND failed = 1')

    def get(self, operation_id: str) -> Optional[QueuedOperation]:
        found = self._select_where('op_id = ?', (operation_id,))
        return found[0] if found else None

    def has_pending(self, collection: str, record_id: str,
                    exclude_id: Optional[str] = None) -> bool:
        return any(
            op.collection == collection
            and str(op.payload.get('id')) == str(record_id)
            and op.id != exclude_id
            for op in self.list_pending()
        )

    def remap_id(self, collection: str, old_id: str, new_id: str) -> int:
        remapped = 0
        for op in self.list_pending():
            if op.collection != collection or str(op.payload.get('id')) != str(old_id):
                continue
            payload = dict(op.payload, id=new_id)
            self._execute('UPDATE sync_queue SET payload = ? WHERE op_id = ?',
                          (json.dumps(payload, default=str), op.id))
            remapped += 1
        if remapped:
            logger.info(f"Remapped {remapped} pending operations from {collection}/{old_id} to {new_id}")
        return remapped

    def mark_synced(self, operation_id: str) -> None:
        self._execute('UPDATE sync_queue SET synced = 1 WHERE op_id = ?', (operation_id,))

    def purge_synced(self) -> int:
        removed = self._execute('DELETE FROM sync_queue WHERE synced = 1')
        if removed:
            logger.info(f"Purged {removed} synced operations")
        return removed

    def record_failure(self, operation_id: str, error: str) -> int:
        self._execute(
            'UPDATE sync_queue SET attempts = attempts + 1, last_error = ? WHERE op_id = ?',
            (error, operation_id)
        )
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    'SELECT attempts FROM sync_queue WHERE op_id = ?', (operation_id,)
                ).fetchone()
                return row[0] if row else 0
        except sqlite3.Error as e:
            logger.error(f"Failed to read attempts for {operation_id}: {str(e)}")
            raise

    def mark_failed(self, operation_id: str, error: str) -> None:
        self._execute(
            'UPDATE sync_queue SET failed = 1, last_error = ? WHERE op_id = ?',
            (error, operation_id)
        )
        logger.warning(f"Operation {operation_id} moved to dead letters: {error}")

    def requeue_failed(self) -> int:
        count = self._execute(
            'UPDATE sync_queue SET failed = 0, attempts = 0 WHERE failed = 1 AND synced = 0'
        )
        logger.info(f"Requeued {count} dead-lettered operations")
        return count

    def set_last_sync_time(self, when: Optional[datetime] = None) -> None:
        when = when or datetime.now()
        self._execute(
            'INSERT OR REPLACE INTO sync_metadata (key, value) VALUES (?, ?)',
            ('last_sync', when.isoformat())
        )

    def get_last_sync_time(self) -> Optional[datetime]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    'SELECT value FROM sync_metadata WHERE key = ?', ('last_sync',)
                ).fetchone()
                return datetime.fromisoformat(row[0]) if row else None
        except sqlite3.Error as e:
            logger.error(f"Failed to read last sync time: {str(e)}")
            raise
