import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class ObjectStoreError(Exception):
    pass


class ObjectNotFound(ObjectStoreError):
    def __init__(self, key: str):
        super().__init__(f"Object {key} not found")
        self.key = key


@dataclass
class FinalizeEvent:
    """Notification sent once an object write has completed"""
    name: Optional[str]
    content_type: Optional[str] = None
    bucket: Optional[str] = None

    def to_dict(self) -> dict:
        return {"name": self.name, "contentType": self.content_type, "bucket": self.bucket}

    @classmethod
    def from_dict(cls, data: dict) -> "FinalizeEvent":
        return cls(
            name=data.get("name"),
            content_type=data.get("contentType"),
            bucket=data.get("bucket"),
        )


@dataclass
class StoredObject:
    key: str
    size: int
    content_type: Optional[str]
    public: bool = False
    metadata: Dict[str, str] = field(default_factory=dict)


FinalizeCallback = Callable[[FinalizeEvent], Awaitable[None]]


class ObjectStore(ABC):
    """Bucket of objects addressed by key, with finalize notifications"""

    backend_name = "abstract"

    def __init__(self, bucket: str, emit_finalize_events: bool = True):
        self.bucket = bucket
        self.emit_finalize_events = emit_finalize_events
        self.on_finalize: Optional[FinalizeCallback] = None

    async def _finalized(self, key: str, content_type: Optional[str]):
        if not self.emit_finalize_events or self.on_finalize is None:
            return
        await self.on_finalize(FinalizeEvent(name=key, content_type=content_type, bucket=self.bucket))

    async def put(self, key: str, data: bytes, content_type: Optional[str] = None, public: bool = False) -> StoredObject:
        """Write bytes; returns once the object is durable"""
        stored = await self._put(key, data, content_type, public)
        logger.info(f"Object stored: {self.bucket}/{key} ({stored.size} bytes)")
        await self._finalized(key, content_type)
        return stored

    async def upload_file(self, path: str, key: str, content_type: Optional[str] = None, public: bool = False) -> StoredObject:
        with open(path, "rb") as f:
            data = f.read()
        return await self.put(key, data, content_type, public)

    @abstractmethod
    async def _put(self, key: str, data: bytes, content_type: Optional[str], public: bool) -> StoredObject:
        pass

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Raise ObjectNotFound when the key does not exist"""

    async def download(self, key: str, path: str) -> str:
        data = await self.get(key)
        with open(path, "wb") as f:
            f.write(data)
        return path

    @abstractmethod
    async def head(self, key: str) -> Optional[StoredObject]:
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    async def list_keys(self, prefix: str) -> List[str]:
        pass

    async def delete_prefix(self, prefix: str) -> int:
        keys = await self.list_keys(prefix)
        for key in keys:
            await self.delete(key)
        logger.info(f"Deleted {len(keys)} objects under {self.bucket}/{prefix}")
        return len(keys)

    @abstractmethod
    async def signed_url(self, key: str, expires_at: datetime) -> str:
        pass

    async def ping(self) -> bool:
        return True
