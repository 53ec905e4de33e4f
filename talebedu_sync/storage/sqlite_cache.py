# talebedu_sync/storage/sqlite_cache.py
import json
import sqlite3
import logging
from datetime import datetime
from typing import List, Optional

from .base import RecordCache
from .models import Record

logger = logging.getLogger(__name__)

class SQLiteRecordCache(RecordCache):
    def __init__(self, db_path: str = 'talebedu_offline.db'):
        self.db_path = db_path
        logger.info(f"Initializing SQLite record cache at {db_path}")
        self._initialize_db()

    def _initialize_db(self) -> None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS cached_records (
                        collection TEXT NOT NULL,
                        record_id TEXT NOT NULL,
                        data TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        PRIMARY KEY (collection, record_id)
                    )
                ''')
                conn.commit()
                logger.debug("Record cache initialized successfully")
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize record cache: {str(e)}")
            raise

    def put(self, collection: str, record: Record) -> None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                # upsert keeps the original rowid, so get_all stays in first-write order
                conn.execute('''
                    INSERT INTO cached_records (collection, record_id, data, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT (collection, record_id)
                    DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
                ''', (
                    collection,
                    str(record['id']),
                    json.dumps(record, default=str),
                    datetime.now().isoformat()
                ))
                conn.commit()
                logger.debug(f"Cached {collection}/{record['id']}")
        except sqlite3.Error as e:
            logger.error(f"Failed to cache record in {collection}: {str(e)}")
            raise

    def get_all(self, collection: str) -> List[Record]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    'SELECT data FROM cached_records WHERE collection = ? ORDER BY rowid',
                    (collection,)
                )
                return [json.loads(row[0]) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            logger.error(f"Failed to read cached {collection}: {str(e)}")
            raise

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    'SELECT data FROM cached_records WHERE collection = ? AND record_id = ?',
                    (collection, str(record_id))
                )
                row = cursor.fetchone()
                return json.loads(row[0]) if row else None
        except sqlite3.Error as e:
            logger.error(f"Failed to read {collection}/{record_id}: {str(e)}")
            raise

    def delete(self, collection: str, record_id: str) -> None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    'DELETE FROM cached_records WHERE collection = ? AND record_id = ?',
                    (collection, str(record_id))
                )
                conn.commit()
                logger.debug(f"Removed {collection}/{record_id} from cache")
        except sqlite3.Error as e:
            logger.error(f"Failed to remove {collection}/{record_id}: {str(e)}")
            raise
