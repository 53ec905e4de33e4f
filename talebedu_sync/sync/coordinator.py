# talebedu_sync/sync/coordinator.py
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from .models import SyncConfig, SyncStatus
from ..connectivity.monitor import ConnectivityMonitor
from ..remote.interfaces import (RemoteDataAPI, RemoteError, RemoteRejectedError,
                                 RemoteUnavailableError)
from ..storage.base import OperationQueue, RecordCache
from ..storage.models import (CollectionSchema, OperationKind, QueuedOperation, Record,
                              default_schemas)

logger = logging.getLogger(__name__)

TOMBSTONE = '_deleted'

def _strip_local_fields(record: Record) -> Record:
    return {k: v for k, v in record.items() if k != TOMBSTONE}

def _has_id(record: Optional[Record]) -> bool:
    return bool(record) and record.get('id') not in (None, '')

class SyncCoordinator:
    """Single entry point for reads and writes against cached collections.

    Online, every call goes to the remote first and mirrors the result into
    the cache. Offline, or when the remote is unreachable, reads come from the
    cache and writes are applied to the cache and queued for replay.
    Concurrent writes to the same record are last-writer-wins.
    """

    def __init__(self, cache: RecordCache, queue: OperationQueue,
                 monitor: ConnectivityMonitor, remote: RemoteDataAPI,
                 schemas: Optional[Dict[str, CollectionSchema]] = None,
                 config: Optional[SyncConfig] = None):
        self.cache = cache
        self.queue = queue
        self.monitor = monitor
        self.remote = remote
        self.schemas = schemas or default_schemas()
        self.config = config or SyncConfig()
        self._syncing = False
        logger.info(f"Initialized sync coordinator for {', '.join(self.schemas)}")

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    def _schema(self, collection: str) -> CollectionSchema:
        schema = self.schemas.get(collection)
        if schema is None:
            raise ValueError(f"Unknown collection: {collection}")
        return schema

    def _raise_if_rejected(self, error: RemoteError, action: str) -> None:
        if isinstance(error, RemoteRejectedError) and not self.config.queue_rejected_writes:
            logger.error(f"Remote rejected {action}: {str(error)}")
            raise error
        logger.warning(f"Remote {action} failed, queueing for later sync: {str(error)}")

    # reads

    def fetch(self, collection: str, query: Optional[Dict[str, Any]] = None,
              include_deleted: bool = True) -> List[Record]:
        schema = self._schema(collection)
        if self.monitor.is_online():
            try:
                rows = self.remote.select(schema.table, query)
            except RemoteError as e:
                logger.warning(f"Online fetch of {collection} failed, using offline data: {str(e)}")
            else:
                for row in rows:
                    if _has_id(row):
                        self.cache.put(collection, row)
                return rows
        return self._cached(collection, include_deleted)

    def _cached(self, collection: str, include_deleted: bool) -> List[Record]:
        records = self.cache.get_all(collection)
        if include_deleted:
            return records
        return [r for r in records if not r.get(TOMBSTONE)]

    # writes

    def insert(self, collection: str, record: Record) -> Record:
        schema = self._schema(collection)
        missing = schema.missing_fields(record)
        if missing:
            raise ValueError(f"{collection} record is missing {', '.join(missing)}")

        if self.monitor.is_online():
            try:
                stored = self.remote.insert(schema.table, record)
            except RemoteError as e:
                self._raise_if_rejected(e, f"insert into {collection}")
            else:
                if _has_id(stored):
                    self.cache.put(collection, stored)
                else:
                    logger.warning(f"Remote insert into {collection} returned no id, not caching it")
                return stored

        local = dict(record)
        if not local.get('id'):
            local['id'] = str(uuid.uuid4())
        self.cache.put(collection, local)
        self.queue.enqueue(collection, OperationKind.INSERT, local)
        return local

    def update(self, collection: str, record_id: str, patch: Record) -> Record:
        schema = self._schema(collection)
        if self.monitor.is_online():
            try:
                stored = self.remote.update(schema.table, record_id, patch)
            except RemoteError as e:
                self._raise_if_rejected(e, f"update of {collection}/{record_id}")
            else:
                if not _has_id(stored):
                    stored = self._merged(collection, record_id, patch)
                self.cache.put(collection, stored)
                return stored

        merged = self._merged(collection, record_id, patch)
        self.cache.put(collection, merged)
        self.queue.enqueue(collection, OperationKind.UPDATE, merged)
        return merged

    def _merged(self, collection: str, record_id: str, patch: Record) -> Record:
        merged = dict(self.cache.get(collection, record_id) or {})
        merged.update(patch)
        merged['id'] = record_id
        return merged

    def delete(self, collection: str, record_id: str) -> None:
        schema = self._schema(collection)
        if self.monitor.is_online():
            try:
                self.remote.delete(schema.table, record_id)
            except RemoteError as e:
                self._raise_if_rejected(e, f"delete of {collection}/{record_id}")
            else:
                self._tombstone(collection, record_id)
                return

        self._tombstone(collection, record_id)
        self.queue.enqueue(collection, OperationKind.DELETE, {'id': record_id})

    def _tombstone(self, collection: str, record_id: str) -> None:
        tombstone = dict(self.cache.get(collection, record_id) or {})
        tombstone.update({'id': record_id, TOMBSTONE: True})
        self.cache.put(collection, tombstone)

    # replay

    def replay_pending(self) -> Optional[SyncStatus]:
        """Re-issue queued operations in FIFO order.

        Returns None when offline or when a replay is already running.
        A transient failure stops the pass so later operations keep their
        order behind the one that failed.
        """
        if not self.monitor.is_online() or self._syncing:
            return None

        self._syncing = True
        synced = failed = dead = 0
        error_message = None
        try:
            pending = self.queue.list_pending()
            if not pending:
                return SyncStatus(datetime.now(), 0, 0, 0, 'success')

            logger.info(f"Syncing {len(pending)} pending changes...")
            for queued in pending:
                # an earlier insert may have remapped this operation's record id
                op = self.queue.get(queued.id)
                if op is None or op.synced or op.failed:
                    continue
                try:
                    self._apply(op)
                except RemoteUnavailableError as e:
                    failed += 1
                    error_message = str(e)
                    if self._count_failure(op, error_message):
                        dead += 1
                        continue
                    logger.warning(f"Failed to sync {op.id}, will retry later: {error_message}")
                    break
                except RemoteRejectedError as e:
                    error_message = str(e)
                    if self.config.queue_rejected_writes:
                        failed += 1
                        if self._count_failure(op, error_message):
                            dead += 1
                            continue
                        logger.warning(f"Remote rejected {op.id}, will retry later: {error_message}")
                        break
                    dead += 1
                    self.queue.mark_failed(op.id, error_message)
                else:
                    self.queue.mark_synced(op.id)
                    synced += 1

            if synced:
                self.queue.set_last_sync_time()
        finally:
            self._syncing = False

        if failed or dead:
            status = 'partial' if synced else 'error'
            logger.warning(f"Synced {synced} changes, {failed} failed, {dead} dead-lettered")
        else:
            status = 'success'
            logger.info(f"Synced {synced} changes successfully")
        return SyncStatus(
            last_sync_time=datetime.now(),
            records_synced=synced,
            records_failed=failed,
            records_dead_lettered=dead,
            status=status,
            error_message=error_message
        )

    def _count_failure(self, op: QueuedOperation, error: str) -> bool:
        """Record a failed attempt; True if the operation got dead-lettered"""
        attempts = self.queue.record_failure(op.id, error)
        if self.config.max_attempts is not None and attempts >= self.config.max_attempts:
            self.queue.mark_failed(op.id, f"gave up after {attempts} attempts: {error}")
            return True
        return False

    def _apply(self, op: QueuedOperation) -> None:
        table = self._schema(op.collection).table
        record_id = str(op.payload['id'])

        if op.operation is OperationKind.INSERT:
            stored = self.remote.insert(table, _strip_local_fields(op.payload))
            self._reconcile(op, record_id, stored)
        elif op.operation is OperationKind.UPDATE:
            stored = self.remote.update(table, record_id, _strip_local_fields(op.payload))
            self._reconcile(op, record_id, stored)
        elif op.operation is OperationKind.DELETE:
            self.remote.delete(table, record_id)
            self._tombstone(op.collection, record_id)
        logger.debug(f"Replayed {op.operation.value} {op.collection}/{record_id}")

    def _reconcile(self, op: QueuedOperation, local_id: str, stored: Optional[Record]) -> None:
        """Mirror a replayed write's server row into the cache.

        Local writes still waiting in the queue stay visible on top of the
        server row. A server-assigned id replaces the local one in both the
        cache and the pending operations.
        """
        if not _has_id(stored):
            return
        collection = op.collection
        server_id = str(stored['id'])
        current = self.cache.get(collection, local_id)

        if server_id != local_id:
            self.queue.remap_id(collection, local_id, server_id)
            self.cache.delete(collection, local_id)

        if current and (current.get(TOMBSTONE)
                        or self.queue.has_pending(collection, server_id, exclude_id=op.id)):
            merged = dict(stored)
            merged.update(current)
            merged['id'] = server_id
            self.cache.put(collection, merged)
        else:
            self.cache.put(collection, stored)

    # housekeeping

    def purge_synced(self) -> int:
        return self.queue.purge_synced()

    def pending_count(self) -> int:
        return len(self.queue.list_pending())

    def status(self) -> Dict[str, Any]:
        last_sync = self.queue.get_last_sync_time()
        return {
            'online': self.monitor.is_online(),
            'syncing': self._syncing,
            'pending': self.pending_count(),
            'failed': len(self.queue.list_failed()),
            'last_sync': last_sync.isoformat() if last_sync else None,
        }
