"""
Property listing.

``PropertyInput`` is what clients send (every field optional), ``Property`` is
what gets stored. Enum fields are normalized on the way in so unknown values
fall back to MXN / HOUSE / SELL instead of being rejected.
"""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from listing_api.constants import CommercialMode, Currency, PropertyType
from listing_api.stores.documents import Document


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def normalize_currency(value: Any) -> Currency:
    if isinstance(value, str) and value.upper() == Currency.USD.value:
        return Currency.USD
    return Currency.MXN


def normalize_property_type(value: Any) -> PropertyType:
    try:
        return PropertyType(int(value))
    except (TypeError, ValueError):
        return PropertyType.HOUSE


def normalize_commercial_mode(value: Any) -> CommercialMode:
    try:
        return CommercialMode(int(value))
    except (TypeError, ValueError):
        return CommercialMode.SELL


class Coordinates(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    latitude: str = ""
    longitude: str = ""


class CoordinatesInput(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    latitude: Optional[str] = None
    longitude: Optional[str] = None


class PropertyInput(CamelModel):
    """Writable fields; None means the client did not send it"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[Any] = None
    years: Optional[float] = None
    address: Optional[str] = None
    coordinates: Optional[CoordinatesInput] = None
    size_mts: Optional[float] = None
    build_mts: Optional[float] = None
    floor: Optional[str] = None
    rooms: Optional[float] = None
    baths: Optional[float] = None
    parking: Optional[float] = None
    has_living_room: Optional[bool] = None
    has_kitchen: Optional[bool] = None
    has_service_room: Optional[bool] = None
    has_service_area: Optional[bool] = None
    has_tv_room: Optional[bool] = None
    has_furniture: Optional[bool] = None
    has_closet: Optional[bool] = None
    has_terrace: Optional[bool] = None
    terrace_mts: Optional[float] = None
    amenities: Optional[List[str]] = None
    property_type: Optional[Any] = None
    commercial_mode: Optional[Any] = None
    source: Optional[str] = None
    matter: Optional[str] = None


# Plain values copied as sent
SCALAR_FIELDS = (
    "years", "size_mts", "build_mts", "floor", "rooms", "baths", "parking",
    "has_living_room", "has_kitchen", "has_service_room", "has_service_area",
    "has_tv_room", "has_furniture", "has_closet", "has_terrace", "terrace_mts",
)

# Free text replaced only by a non-empty, different value
TEXT_FIELDS = ("name", "description", "address")

SHORT_FIELDS = (
    "id", "name", "description", "price", "currency", "address", "coordinates",
    "size_mts", "build_mts", "floor", "rooms", "baths", "parking",
    "property_type", "commercial_mode", "source", "matter",
)

COMPLETE_FIELDS = SHORT_FIELDS + (
    "years", "has_living_room", "has_kitchen", "has_service_room", "has_service_area",
    "has_tv_room", "has_furniture", "has_closet", "has_terrace", "terrace_mts", "amenities",
)

ADMIN_FIELDS = COMPLETE_FIELDS + ("is_available", "is_visible", "visits", "interested")


class Property(CamelModel):
    id: Optional[str] = None
    name: str = ""
    description: str = ""
    price: float = 0.0
    currency: Currency = Currency.MXN
    years: float = 0.0
    address: str = ""
    coordinates: Coordinates = Field(default_factory=Coordinates)
    size_mts: float = 0.0
    build_mts: float = 0.0
    floor: str = ""
    rooms: float = 0.0
    baths: float = 0.0
    parking: float = 0.0
    has_living_room: bool = False
    has_kitchen: bool = False
    has_service_room: bool = False
    has_service_area: bool = False
    has_tv_room: bool = False
    has_furniture: bool = False
    has_closet: bool = False
    has_terrace: bool = False
    terrace_mts: float = 0.0
    amenities: List[str] = Field(default_factory=list)
    property_type: PropertyType = PropertyType.HOUSE
    commercial_mode: CommercialMode = CommercialMode.SELL
    source: str = ""
    matter: str = ""
    is_available: bool = False
    is_visible: bool = False
    visits: int = 0
    interested: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("currency", mode="before")
    @classmethod
    def _currency(cls, v):
        return normalize_currency(v)

    @field_validator("property_type", mode="before")
    @classmethod
    def _property_type(cls, v):
        return normalize_property_type(v)

    @field_validator("commercial_mode", mode="before")
    @classmethod
    def _commercial_mode(cls, v):
        return normalize_commercial_mode(v)

    @classmethod
    def create(cls, data: PropertyInput, now: datetime) -> "Property":
        """Build a new listing from client data"""
        values = data.model_dump(exclude_none=True, exclude={"coordinates"})
        prop = cls(**values)
        if data.coordinates is not None:
            prop.coordinates = Coordinates(
                latitude=data.coordinates.latitude or "",
                longitude=data.coordinates.longitude or "",
            )
        prop.updated_at = now
        return prop

    def merge(self, data: PropertyInput, now: datetime) -> "Property":
        """
        Apply an update on top of the stored listing.

        Availability, visibility, counters, source and matter are never taken
        from the update.
        """
        merged = self.model_copy(deep=True)

        for name in TEXT_FIELDS:
            value = getattr(data, name)
            if value and value != getattr(self, name):
                setattr(merged, name, value)

        if data.price and data.price > 0 and data.price != self.price:
            merged.price = data.price

        if data.coordinates is not None:
            for name in ("latitude", "longitude"):
                value = getattr(data.coordinates, name)
                if value and value != getattr(self.coordinates, name):
                    setattr(merged.coordinates, name, value)

        for name in SCALAR_FIELDS:
            value = getattr(data, name)
            if value is not None:
                setattr(merged, name, value)

        merged.amenities = sorted(set(self.amenities) | set(data.amenities or []))

        if data.currency is not None and data.currency != self.currency.value:
            merged.currency = normalize_currency(data.currency)
        if data.property_type is not None and data.property_type != self.property_type:
            merged.property_type = normalize_property_type(data.property_type)
        if data.commercial_mode is not None and data.commercial_mode != self.commercial_mode:
            merged.commercial_mode = normalize_commercial_mode(data.commercial_mode)

        merged.updated_at = now
        return merged

    @classmethod
    def from_document(cls, doc: Document) -> "Property":
        return cls.model_validate({**doc.data, "id": doc.id})

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    def _view(self, fields) -> dict:
        return self.model_dump(mode="json", by_alias=True, include=set(fields))

    def complete_view(self) -> dict:
        return self._view(COMPLETE_FIELDS)

    def short_view(self) -> dict:
        return self._view(SHORT_FIELDS)

    def admin_view(self) -> dict:
        return self._view(ADMIN_FIELDS)
