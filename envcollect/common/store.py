"""Document store access: Firestore in production, an in-memory store for tests and dry runs."""

from __future__ import annotations

import copy
import threading
import uuid
from typing import Any, Callable, Protocol

from envcollect.common.errors import PipelineError, StoreConflictError, StoreError

Document = dict[str, Any]
Mutator = Callable[[Document | None], Document]

DEFAULT_TRANSACTION_ATTEMPTS = 5


class DocumentStore(Protocol):
    """Keyed documents grouped in collections, with optimistic transactions."""

    def get(self, collection: str, key: str) -> Document | None:
        ...

    def put(self, collection: str, key: str, data: Document) -> None:
        ...

    def add(self, collection: str, data: Document) -> str:
        """Append a document under a generated key and return the key."""
        ...

    def transact(self, collection: str, key: str, mutate: Mutator) -> Document:
        """Read, mutate and write one document atomically.

        ``mutate`` receives the stored document (None when absent) and returns
        the replacement. It may be invoked more than once when a concurrent
        writer wins, so it must not have side effects outside its return value.
        """
        ...

    def close(self) -> None:
        ...


class FirestoreStore:
    def __init__(self, client, *, max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS) -> None:
        self.client = client
        self.max_attempts = max_attempts

    @classmethod
    def connect(cls, project_id: str, database_id: str, **kwargs) -> "FirestoreStore":
        from google.cloud import firestore

        return cls(firestore.Client(project=project_id, database=database_id), **kwargs)

    def close(self) -> None:
        self.client.close()

    def _ref(self, collection: str, key: str):
        return self.client.collection(collection).document(key)

    def get(self, collection: str, key: str) -> Document | None:
        from google.api_core import exceptions as api_exceptions

        try:
            snapshot = self._ref(collection, key).get()
        except api_exceptions.GoogleAPICallError as exc:
            raise StoreError(f"reading {collection}/{key}: {exc}") from exc
        return snapshot.to_dict() if snapshot.exists else None

    def put(self, collection: str, key: str, data: Document) -> None:
        from google.api_core import exceptions as api_exceptions

        try:
            self._ref(collection, key).set(data)
        except api_exceptions.GoogleAPICallError as exc:
            raise StoreError(f"writing {collection}/{key}: {exc}") from exc

    def add(self, collection: str, data: Document) -> str:
        from google.api_core import exceptions as api_exceptions

        try:
            _update_time, ref = self.client.collection(collection).add(data)
        except api_exceptions.GoogleAPICallError as exc:
            raise StoreError(f"appending to {collection}: {exc}") from exc
        return ref.id

    def transact(self, collection: str, key: str, mutate: Mutator) -> Document:
        from google.api_core import exceptions as api_exceptions
        from google.cloud import firestore

        ref = self._ref(collection, key)
        transaction = self.client.transaction(max_attempts=self.max_attempts)

        @firestore.transactional
        def _apply(transaction) -> Document:
            snapshot = ref.get(transaction=transaction)
            existing = snapshot.to_dict() if snapshot.exists else None
            updated = mutate(existing)
            transaction.set(ref, updated)
            return updated

        try:
            return _apply(transaction)
        except PipelineError:
            raise
        except api_exceptions.Aborted as exc:
            raise StoreConflictError(f"transaction on {collection}/{key} aborted: {exc}") from exc
        except ValueError as exc:
            # Raised by the client once every commit attempt lost to a concurrent writer.
            raise StoreConflictError(f"transaction on {collection}/{key} failed: {exc}") from exc
        except api_exceptions.GoogleAPICallError as exc:
            raise StoreError(f"transaction on {collection}/{key} failed: {exc}") from exc


class MemoryStore:
    """Versioned in-process store; commits fail when the version moved since the read."""

    def __init__(self, *, max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS) -> None:
        self.max_attempts = max_attempts
        self.conflicts = 0
        self._documents: dict[tuple[str, str], tuple[int, Document]] = {}
        self._lock = threading.Lock()

    def close(self) -> None:
        pass

    def _read(self, collection: str, key: str) -> tuple[int, Document | None]:
        with self._lock:
            version, data = self._documents.get((collection, key), (0, None))
            return version, copy.deepcopy(data)

    def _write(self, collection: str, key: str, data: Document) -> None:
        with self._lock:
            version, _ = self._documents.get((collection, key), (0, None))
            self._documents[(collection, key)] = (version + 1, copy.deepcopy(data))

    def get(self, collection: str, key: str) -> Document | None:
        return self._read(collection, key)[1]

    def put(self, collection: str, key: str, data: Document) -> None:
        self._write(collection, key, data)

    def add(self, collection: str, data: Document) -> str:
        key = uuid.uuid4().hex
        self._write(collection, key, data)
        return key

    def documents(self, collection: str) -> dict[str, Document]:
        with self._lock:
            return {
                key: copy.deepcopy(data)
                for (coll, key), (_version, data) in self._documents.items()
                if coll == collection
            }

    def transact(self, collection: str, key: str, mutate: Mutator) -> Document:
        for _attempt in range(self.max_attempts):
            read_version, existing = self._read(collection, key)
            updated = mutate(existing)
            with self._lock:
                current_version, _ = self._documents.get((collection, key), (0, None))
                if current_version == read_version:
                    self._documents[(collection, key)] = (read_version + 1, copy.deepcopy(updated))
                    return updated
                self.conflicts += 1
        raise StoreConflictError(
            f"transaction on {collection}/{key} lost to concurrent writers {self.max_attempts} times"
        )
