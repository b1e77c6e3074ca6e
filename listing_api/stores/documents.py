"""
Document store.

Documents are JSON objects addressed by (collection, id) and carry a version
number. Every write is a compare-and-swap on that version, so a transaction
commits only if nothing it read has changed in the meantime; otherwise it is
replayed from scratch by ``run_transaction``.
"""
import copy
import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from listing_api.monitoring.metrics import transaction_retries

logger = logging.getLogger(__name__)

T = TypeVar("T")
Key = Tuple[str, str]

# Version of a document that does not exist
ABSENT = 0


class DocumentStoreError(Exception):
    pass


class DocumentNotFound(DocumentStoreError):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document {collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


class TransactionConflict(DocumentStoreError):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document {collection}/{doc_id} changed during the transaction")
        self.collection = collection
        self.doc_id = doc_id


class TransactionAborted(DocumentStoreError):
    pass


@dataclass
class Document:
    id: str
    data: Dict[str, Any]
    version: int = ABSENT

    @property
    def exists(self) -> bool:
        return self.version != ABSENT

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, **copy.deepcopy(self.data)}


@dataclass
class Write:
    collection: str
    id: str
    data: Optional[Dict[str, Any]]  # None deletes the document
    expected_version: Optional[int] = None  # None writes unconditionally

    @property
    def key(self) -> Key:
        return self.collection, self.id


def new_id() -> str:
    """20 lowercase hex characters, never contains '_'"""
    return secrets.token_hex(10)


def matches(data: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(data.get(name) == value for name, value in filters.items())


def sort_documents(docs: List[Document], order_by: Optional[str], descending: bool) -> List[Document]:
    if not order_by:
        return docs
    present = [d for d in docs if d.data.get(order_by) is not None]
    missing = [d for d in docs if d.data.get(order_by) is None]
    present.sort(key=lambda d: d.data[order_by], reverse=descending)
    return present + missing


class Transaction:
    """Buffered reads and writes, committed atomically by the store"""

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._reads: Dict[Key, Document] = {}
        self._writes: Dict[Key, Write] = {}

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        key = (collection, doc_id)
        if key not in self._reads:
            self._reads[key] = await self._store._fetch(collection, doc_id)
        doc = self._reads[key]
        if not doc.exists:
            return None
        return Document(doc.id, copy.deepcopy(doc.data), doc.version)

    async def query(
            self,
            collection: str,
            filters: Optional[Dict[str, Any]] = None,
            order_by: Optional[str] = None,
            descending: bool = False,
    ) -> List[Document]:
        docs = await self._store._scan(collection, filters)
        for doc in docs:
            self._reads.setdefault((collection, doc.id), doc)
        docs = [d for d in docs if matches(d.data, filters)]
        return [Document(d.id, copy.deepcopy(d.data), d.version) for d in sort_documents(docs, order_by, descending)]

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False):
        base = {}
        if merge:
            base = self._current(collection, doc_id) or {}
        self._stage(collection, doc_id, {**base, **copy.deepcopy(data)})

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]):
        """Patch a document read earlier in this transaction"""
        current = self._current(collection, doc_id)
        if current is None:
            raise DocumentNotFound(collection, doc_id)
        self._stage(collection, doc_id, {**current, **copy.deepcopy(fields)})

    def delete(self, collection: str, doc_id: str):
        self._stage(collection, doc_id, None)

    def _current(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        key = (collection, doc_id)
        if key in self._writes:
            return copy.deepcopy(self._writes[key].data)
        if key not in self._reads:
            raise DocumentStoreError(f"{collection}/{doc_id} must be read before it is patched")
        doc = self._reads[key]
        return copy.deepcopy(doc.data) if doc.exists else None

    def _stage(self, collection: str, doc_id: str, data: Optional[Dict[str, Any]]):
        key = (collection, doc_id)
        read = self._reads.get(key)
        expected = read.version if read is not None else None
        self._writes[key] = Write(collection, doc_id, data, expected)

    async def commit(self):
        if not self._writes:
            return
        checks = {
            key: doc.version for key, doc in self._reads.items()
            if key not in self._writes
        }
        await self._store._commit(list(self._writes.values()), checks)


class DocumentStore(ABC):
    """Shared operations; backends only fetch, scan and commit"""

    backend_name = "abstract"

    def __init__(self, max_attempts: int = 5):
        self.max_attempts = max_attempts

    @abstractmethod
    async def _fetch(self, collection: str, doc_id: str) -> Document:
        """Return the document, with version ABSENT when it does not exist"""

    @abstractmethod
    async def _scan(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Document]:
        """Return the documents of a collection, optionally pre-filtered"""

    @abstractmethod
    async def _commit(self, writes: List[Write], checks: Dict[Key, int]):
        """Apply every write or none; raise TransactionConflict on a version mismatch"""

    async def ping(self) -> bool:
        return True

    async def close(self):
        pass

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        doc = await self._fetch(collection, doc_id)
        return doc if doc.exists else None

    async def query(
            self,
            collection: str,
            filters: Optional[Dict[str, Any]] = None,
            order_by: Optional[str] = None,
            descending: bool = False,
    ) -> List[Document]:
        docs = [d for d in await self._scan(collection, filters) if matches(d.data, filters)]
        return sort_documents(docs, order_by, descending)

    async def create(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> Document:
        """Insert a new document; fails with TransactionConflict if the id is taken"""
        doc_id = doc_id or new_id()
        await self._commit([Write(collection, doc_id, copy.deepcopy(data), ABSENT)], {})
        return await self._fetch(collection, doc_id)

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False):
        async def _set(tx: Transaction):
            if merge:
                await tx.get(collection, doc_id)
            tx.set(collection, doc_id, data, merge=merge)

        await self.run_transaction(_set)

    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]):
        async def _update(tx: Transaction):
            if await tx.get(collection, doc_id) is None:
                raise DocumentNotFound(collection, doc_id)
            tx.update(collection, doc_id, fields)

        await self.run_transaction(_update)

    async def array_union(self, collection: str, doc_id: str, field_name: str, items: Iterable[Any]):
        """Append the items that are not already in the array field"""
        items = list(items)

        async def _union(tx: Transaction):
            doc = await tx.get(collection, doc_id)
            if doc is None:
                raise DocumentNotFound(collection, doc_id)
            values = list(doc.data.get(field_name) or [])
            for item in items:
                if item not in values:
                    values.append(item)
            tx.update(collection, doc_id, {field_name: values})

        await self.run_transaction(_union)

    async def delete(self, collection: str, doc_id: str):
        await self._commit([Write(collection, doc_id, None)], {})

    async def delete_where(self, collection: str, filters: Dict[str, Any]) -> int:
        async def _delete(tx: Transaction) -> int:
            docs = await tx.query(collection, filters)
            for doc in docs:
                tx.delete(collection, doc.id)
            return len(docs)

        return await self.run_transaction(_delete)

    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        """Run fn against a fresh transaction until it commits without conflict"""
        for attempt in range(1, self.max_attempts + 1):
            tx = Transaction(self)
            result = await fn(tx)
            try:
                await tx.commit()
                return result
            except TransactionConflict as e:
                transaction_retries.labels(collection=e.collection).inc()
                logger.warning(f"Transaction conflict on {e.collection}/{e.doc_id}, attempt {attempt}/{self.max_attempts}")

        raise TransactionAborted(f"Transaction aborted after {self.max_attempts} attempts")
