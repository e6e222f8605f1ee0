"""In-memory implementation of the record store."""

import copy
import threading
from datetime import datetime
from typing import Dict, List, Any, Optional
from services.orchestrator.infra.redis_store import RecordStore, matches


class InMemoryRecordStore(RecordStore):
    """Store records in local memory.

    Useful for tests or single-process development. Data is not persisted
    across process restarts.
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._deadlines: Dict[str, Dict[str, float]] = {}
        self._lock = threading.Lock()

    def find_by_id(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._collections.get(collection, {}).get(record_id)
            return copy.deepcopy(document) if document is not None else None

    def find(self, collection: str, query: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        with self._lock:
            records = self._collections.get(collection, {})
            return [copy.deepcopy(doc) for _, doc in sorted(records.items()) if matches(doc, query)]

    def save(self, collection: str, record_id: str, document: Dict[str, Any],
             deadline: Optional[datetime] = None) -> None:
        with self._lock:
            self._collections.setdefault(collection, {})[record_id] = copy.deepcopy(document)
            if deadline is not None:
                self._deadlines.setdefault(collection, {})[record_id] = deadline.timestamp()

    def update_if(self, collection: str, record_id: str, expected: Dict[str, Any],
                  changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._collections.get(collection, {}).get(record_id)
            if document is None or not matches(document, expected):
                return None
            document.update(copy.deepcopy(changes))
            return copy.deepcopy(document)

    def delete(self, collection: str, record_id: str) -> bool:
        with self._lock:
            self._deadlines.get(collection, {}).pop(record_id, None)
            return self._collections.get(collection, {}).pop(record_id, None) is not None

    def find_due(self, collection: str, now: datetime) -> List[str]:
        cutoff = now.timestamp()
        with self._lock:
            deadlines = self._deadlines.get(collection, {})
            return sorted(record_id for record_id, ts in deadlines.items() if ts <= cutoff)

    def clear_deadline(self, collection: str, record_id: str) -> None:
        with self._lock:
            self._deadlines.get(collection, {}).pop(record_id, None)
