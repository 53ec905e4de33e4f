# talebedu_sync/remote/memory.py
import copy
import logging
import uuid
from typing import Any, Dict, List, Optional

from .interfaces import RemoteDataAPI, RemoteError, RemoteRejectedError
from ..storage.models import Record

logger = logging.getLogger(__name__)

class InMemoryRemoteAPI(RemoteDataAPI):
    """Dict-backed remote for local runs and tests.

    ``fail_with`` maps an operation name (select, insert, update, delete) to
    an exception raised on every call of that operation until cleared.
    """

    def __init__(self, tables: Optional[Dict[str, List[Record]]] = None,
                 assign_ids: bool = False):
        self.tables: Dict[str, Dict[str, Record]] = {}
        self.assign_ids = assign_ids
        self.fail_with: Dict[str, RemoteError] = {}
        self.calls: List[tuple] = []
        for table, rows in (tables or {}).items():
            self.tables[table] = {str(row['id']): dict(row) for row in rows}

    def _check(self, operation: str, *args) -> None:
        self.calls.append((operation,) + args)
        error = self.fail_with.get(operation)
        if error is not None:
            raise error

    def select(self, table: str, query: Optional[Dict[str, Any]] = None) -> List[Record]:
        self._check('select', table)
        rows = self.tables.get(table, {}).values()
        if query:
            rows = [r for r in rows if all(r.get(k) == v for k, v in query.items())]
        return [copy.deepcopy(r) for r in rows]

    def insert(self, table: str, record: Record) -> Record:
        self._check('insert', table, record.get('id'))
        row = dict(record)
        if self.assign_ids or not row.get('id'):
            row['id'] = str(uuid.uuid4())
        self.tables.setdefault(table, {})[str(row['id'])] = row
        logger.debug(f"In-memory insert {table}/{row['id']}")
        return copy.deepcopy(row)

    def update(self, table: str, record_id: str, patch: Record) -> Optional[Record]:
        self._check('update', table, record_id)
        rows = self.tables.setdefault(table, {})
        if str(record_id) not in rows:
            raise RemoteRejectedError(f"{table}/{record_id} not found", status_code=404)
        rows[str(record_id)].update(patch)
        return copy.deepcopy(rows[str(record_id)])

    def delete(self, table: str, record_id: str) -> None:
        self._check('delete', table, record_id)
        self.tables.get(table, {}).pop(str(record_id), None)
