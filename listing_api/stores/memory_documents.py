import copy
import threading
from typing import Any, Dict, List, Optional

from listing_api.stores.documents import ABSENT, Document, DocumentStore, Key, TransactionConflict, Write


class MemoryDocumentStore(DocumentStore):
    """Dict-backed store for tests and single-process runs"""

    backend_name = "memory"

    def __init__(self, max_attempts: int = 5):
        super().__init__(max_attempts=max_attempts)
        self._collections: Dict[str, Dict[str, Document]] = {}
        # Last version of deleted documents, so a re-created one never reuses it
        self._retired: Dict[Key, int] = {}
        self._lock = threading.Lock()

    async def _fetch(self, collection: str, doc_id: str) -> Document:
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            if doc is None:
                return Document(doc_id, {}, ABSENT)
            return Document(doc.id, copy.deepcopy(doc.data), doc.version)

    async def _scan(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Document]:
        with self._lock:
            return [
                Document(doc.id, copy.deepcopy(doc.data), doc.version)
                for doc in self._collections.get(collection, {}).values()
            ]

    async def _commit(self, writes: List[Write], checks: Dict[Key, int]):
        with self._lock:
            for (collection, doc_id), version in checks.items():
                if self._version(collection, doc_id) != version:
                    raise TransactionConflict(collection, doc_id)
            for write in writes:
                if write.expected_version is not None and self._version(write.collection, write.id) != write.expected_version:
                    raise TransactionConflict(write.collection, write.id)

            for write in writes:
                docs = self._collections.setdefault(write.collection, {})
                if write.data is None:
                    removed = docs.pop(write.id, None)
                    if removed is not None:
                        self._retired[write.key] = removed.version
                    continue
                version = (self._version(write.collection, write.id) or self._retired.pop(write.key, ABSENT)) + 1
                docs[write.id] = Document(write.id, copy.deepcopy(write.data), version)

    def _version(self, collection: str, doc_id: str) -> int:
        doc = self._collections.get(collection, {}).get(doc_id)
        return doc.version if doc is not None else ABSENT

    def clear(self):
        with self._lock:
            self._collections.clear()
            self._retired.clear()
