# schemas/property.py
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from listing_api.models.property import CamelModel


class PriceUpdate(CamelModel):
    price: float


class AvailabilityUpdate(CamelModel):
    is_available: bool


class VisibilityUpdate(CamelModel):
    is_visible: bool


class PropertyListResponse(BaseModel):
    total: int
    properties: List[Dict[str, Any]] = Field(default_factory=list)
