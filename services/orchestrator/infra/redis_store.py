"""
Record store for Orchestrator service.

Documents are JSON objects grouped into collections. Records that expire
(approvals, breakpoints) are also indexed by deadline in a sorted set so the
sweepers can find them without scanning.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Any, Optional
import redis


def matches(document: Dict[str, Any], query: Optional[Dict[str, Any]]) -> bool:
    return all(document.get(key) == value for key, value in (query or {}).items())


class RecordStore(ABC):
    """Document-level find/save/update contract shared by all backends"""

    @abstractmethod
    def find_by_id(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def find(self, collection: str, query: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def save(self, collection: str, record_id: str, document: Dict[str, Any],
             deadline: Optional[datetime] = None) -> None:
        ...

    @abstractmethod
    def update_if(self, collection: str, record_id: str, expected: Dict[str, Any],
                  changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Applies changes only if the stored record still matches expected"""

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> bool:
        ...

    @abstractmethod
    def find_due(self, collection: str, now: datetime) -> List[str]:
        """Returns ids whose indexed deadline is at or before now"""

    @abstractmethod
    def clear_deadline(self, collection: str, record_id: str) -> None:
        ...

    def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for document in self.find(collection, query):
            return document
        return None

    def update(self, collection: str, record_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self.update_if(collection, record_id, {}, changes)


class RedisRecordStore(RecordStore):
    """Redis-backed record store"""

    def __init__(self, redis_url: str = None, client=None, prefix: str = None):
        url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self.client = client if client is not None else redis.Redis.from_url(url, decode_responses=False)
        self.prefix = prefix or os.getenv("RECORD_KEY_PREFIX", "wfo")

    def _key(self, collection: str, record_id: str) -> str:
        return f"{self.prefix}:{collection}:{record_id}"

    def _ids_key(self, collection: str) -> str:
        return f"{self.prefix}:{collection}:ids"

    def _deadlines_key(self, collection: str) -> str:
        return f"{self.prefix}:{collection}:deadlines"

    def find_by_id(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        data = self.client.get(self._key(collection, record_id))
        if data:
            return json.loads(data)
        return None

    def find(self, collection: str, query: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        ids = sorted(member.decode('utf-8') for member in self.client.smembers(self._ids_key(collection)))
        if not ids:
            return []

        raw = self.client.mget([self._key(collection, record_id) for record_id in ids])
        documents = [json.loads(item) for item in raw if item]
        return [doc for doc in documents if matches(doc, query)]

    def save(self, collection: str, record_id: str, document: Dict[str, Any],
             deadline: Optional[datetime] = None) -> None:
        pipe = self.client.pipeline()
        pipe.set(self._key(collection, record_id), json.dumps(document))
        pipe.sadd(self._ids_key(collection), record_id)
        if deadline is not None:
            pipe.zadd(self._deadlines_key(collection), {record_id: deadline.timestamp()})
        pipe.execute()

    def update_if(self, collection: str, record_id: str, expected: Dict[str, Any],
                  changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        key = self._key(collection, record_id)

        # Optimistic transaction: retried only when another writer touched the key
        with self.client.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(key)
                    data = pipe.get(key)
                    if not data:
                        pipe.unwatch()
                        return None

                    document = json.loads(data)
                    if not matches(document, expected):
                        pipe.unwatch()
                        return None

                    document.update(changes)
                    pipe.multi()
                    pipe.set(key, json.dumps(document))
                    pipe.execute()
                    return document
                except redis.WatchError:
                    logging.debug("Concurrent write detected, retrying conditional update", extra={
                        "collection": collection,
                        "record_id": record_id
                    })
                    continue

    def delete(self, collection: str, record_id: str) -> bool:
        # DEL reports how many keys it removed, so concurrent deletes count once
        deleted = self.client.delete(self._key(collection, record_id))

        pipe = self.client.pipeline()
        pipe.srem(self._ids_key(collection), record_id)
        pipe.zrem(self._deadlines_key(collection), record_id)
        pipe.execute()
        return deleted == 1

    def find_due(self, collection: str, now: datetime) -> List[str]:
        members = self.client.zrangebyscore(self._deadlines_key(collection), "-inf", now.timestamp())
        return [member.decode('utf-8') for member in members]

    def clear_deadline(self, collection: str, record_id: str) -> None:
        self.client.zrem(self._deadlines_key(collection), record_id)
