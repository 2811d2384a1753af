"""
In-Memory Document Store

A dict-backed implementation of the document store contract. Used for
tests and for running the app locally without a backend.

Subscriptions are notified synchronously after each committed write, so
a snapshot always reflects the write that triggered it.
"""

import copy
from collections import defaultdict
from typing import Any, Optional
from uuid import uuid4

from tripledger.services.storage.interface import (
    DocumentStore,
    NotFoundError,
    SnapshotCallback,
    StoredDocument,
    StoreUnavailableError,
    Subscription,
    matches,
)


class InMemoryDocumentStore(DocumentStore):
    """
    Document store that keeps every collection in process memory.

    Documents are copied on the way in and out so callers can never
    mutate stored state through a returned field map.
    """

    def __init__(self):
        self._ready = False
        self._collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._subscriptions: list[Subscription] = []

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def connect(self) -> None:
        self._ready = True

    def _require_ready(self) -> None:
        if not self._ready:
            raise StoreUnavailableError("In-memory store is not connected")

    def _snapshot(self, path: str, where: Optional[dict[str, Any]]) -> list[StoredDocument]:
        return [
            StoredDocument(id=doc_id, fields=copy.deepcopy(fields))
            for doc_id, fields in self._collections.get(path, {}).items()
            if matches(fields, where)
        ]

    def _notify(self, path: str) -> None:
        for subscription in list(self._subscriptions):
            if subscription.active and subscription.path == path:
                subscription.deliver(self._snapshot(path, subscription.where))

    async def insert(self, path: str, fields: dict[str, Any]) -> str:
        self._require_ready()
        doc_id = uuid4().hex
        self._collections[path][doc_id] = copy.deepcopy(fields)
        self._notify(path)
        return doc_id

    async def get(self, path: str, doc_id: str) -> StoredDocument:
        self._require_ready()
        fields = self._collections.get(path, {}).get(doc_id)
        if fields is None:
            raise NotFoundError(path, doc_id)
        return StoredDocument(id=doc_id, fields=copy.deepcopy(fields))

    async def query(
        self,
        path: str,
        where: Optional[dict[str, Any]] = None,
    ) -> list[StoredDocument]:
        self._require_ready()
        return self._snapshot(path, where)

    async def update(self, path: str, doc_id: str, fields: dict[str, Any]) -> None:
        self._require_ready()
        existing = self._collections.get(path, {}).get(doc_id)
        if existing is None:
            raise NotFoundError(path, doc_id)
        existing.update(copy.deepcopy(fields))
        self._notify(path)

    async def delete(self, path: str, doc_id: str) -> None:
        self._require_ready()
        collection = self._collections.get(path, {})
        if doc_id not in collection:
            raise NotFoundError(path, doc_id)
        del collection[doc_id]
        self._notify(path)

    async def list_children(self, path: str) -> list[str]:
        self._require_ready()
        prefix = path.rstrip("/") + "/"
        children = []
        for collection_path, documents in self._collections.items():
            if not documents or not collection_path.startswith(prefix):
                continue
            child = collection_path[len(prefix):].split("/", 1)[0]
            if child and child not in children:
                children.append(child)
        return children

    def subscribe(
        self,
        path: str,
        where: Optional[dict[str, Any]],
        on_snapshot: SnapshotCallback,
    ) -> Subscription:
        self._require_ready()
        subscription = Subscription(
            path,
            where,
            on_snapshot,
            on_cancel=self._remove_subscription,
        )
        self._subscriptions.append(subscription)
        subscription.deliver(self._snapshot(path, where))
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def subscription_count(self) -> int:
        """Number of live subscriptions (useful for leak checks in tests)."""
        return len(self._subscriptions)
