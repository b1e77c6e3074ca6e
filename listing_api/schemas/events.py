# schemas/events.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StorageEventRequest(BaseModel):
    """Bucket notification, either a single object or an S3 Records batch"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: Optional[str] = None
    content_type: Optional[str] = Field(None, alias="contentType")
    bucket: Optional[str] = None
    records: Optional[List[Dict[str, Any]]] = Field(None, alias="Records")


class StorageEventResponse(BaseModel):
    accepted: int
