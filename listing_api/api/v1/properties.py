import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from listing_api.api.dependencies import get_property_service
from listing_api.models.property import PropertyInput
from listing_api.schemas.base import WriteResponse
from listing_api.schemas.property import AvailabilityUpdate, PriceUpdate, VisibilityUpdate
from listing_api.services.property_service import PropertyService

router = APIRouter()
logger = logging.getLogger(__name__)


def _written(obj) -> WriteResponse:
    return WriteResponse(time=datetime.now(timezone.utc), obj=obj)


@router.post("", response_model=WriteResponse)
async def create_property(data: PropertyInput, service: PropertyService = Depends(get_property_service)):
    """Create a listing; it stays hidden until made available and visible"""
    prop = await service.create(data)
    return _written(prop.to_document())


@router.get("/{property_id}")
async def get_property(property_id: str, service: PropertyService = Depends(get_property_service)):
    """Get a listing by ID, published or not"""
    prop = await service.get(property_id)
    return prop.to_document()


@router.put("/{property_id}", response_model=WriteResponse)
async def update_property(
        property_id: str,
        data: PropertyInput,
        service: PropertyService = Depends(get_property_service),
):
    """Merge new values into a listing"""
    prop = await service.update(property_id, data)
    return _written(prop.to_document())


@router.delete("/{property_id}", response_model=WriteResponse)
async def remove_property(property_id: str, service: PropertyService = Depends(get_property_service)):
    """Delete a listing, its photo record and its stored images"""
    removed = await service.remove(property_id)
    return _written(removed)


@router.put("/{property_id}/price", response_model=WriteResponse)
async def update_price(
        property_id: str,
        data: PriceUpdate,
        service: PropertyService = Depends(get_property_service),
):
    prop = await service.update_price(property_id, data.price)
    return _written({"id": property_id, "price": prop.price})


@router.put("/{property_id}/availability", response_model=WriteResponse)
async def update_availability(
        property_id: str,
        data: AvailabilityUpdate,
        service: PropertyService = Depends(get_property_service),
):
    prop = await service.set_availability(property_id, data.is_available)
    return _written({"id": property_id, "isAvailable": prop.is_available})


@router.put("/{property_id}/visibility", response_model=WriteResponse)
async def update_visibility(
        property_id: str,
        data: VisibilityUpdate,
        service: PropertyService = Depends(get_property_service),
):
    prop = await service.set_visibility(property_id, data.is_visible)
    return _written({"id": property_id, "isVisible": prop.is_visible})


@router.put("/{property_id}/interest", response_model=WriteResponse)
async def add_interest(property_id: str, service: PropertyService = Depends(get_property_service)):
    """Count one more interested client"""
    value = await service.add_interest(property_id)
    return _written({"id": property_id, "interested": value})


@router.put("/{property_id}/visits", response_model=WriteResponse)
async def add_visit(property_id: str, service: PropertyService = Depends(get_property_service)):
    value = await service.add_visit(property_id)
    return _written({"id": property_id, "visits": value})
