import threading
from datetime import datetime
from typing import Dict, List, Optional
from urllib.parse import quote

from listing_api.stores.objects import ObjectNotFound, ObjectStore, StoredObject


class MemoryObjectStore(ObjectStore):
    """Dict-backed bucket for tests and local runs"""

    backend_name = "memory"

    def __init__(self, bucket: str = "listing-photos", emit_finalize_events: bool = True):
        super().__init__(bucket, emit_finalize_events)
        self._objects: Dict[str, bytes] = {}
        self._meta: Dict[str, StoredObject] = {}
        self._lock = threading.Lock()

    async def _put(self, key: str, data: bytes, content_type: Optional[str], public: bool) -> StoredObject:
        stored = StoredObject(key=key, size=len(data), content_type=content_type, public=public)
        with self._lock:
            self._objects[key] = bytes(data)
            self._meta[key] = stored
        return stored

    async def get(self, key: str) -> bytes:
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFound(key)
            return self._objects[key]

    async def head(self, key: str) -> Optional[StoredObject]:
        with self._lock:
            return self._meta.get(key)

    async def delete(self, key: str) -> bool:
        with self._lock:
            self._meta.pop(key, None)
            return self._objects.pop(key, None) is not None

    async def list_keys(self, prefix: str) -> List[str]:
        with self._lock:
            return sorted(k for k in self._objects if k.startswith(prefix))

    async def signed_url(self, key: str, expires_at: datetime) -> str:
        return f"memory://{self.bucket}/{quote(key)}?expires={int(expires_at.timestamp())}"

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._objects)
