from datetime import datetime
from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    code: str
    error: str


class WriteResponse(BaseModel):
    """Result of a write: server time and the stored object"""
    time: datetime
    obj: Any
