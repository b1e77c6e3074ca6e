import logging

from fastapi import APIRouter, Depends, Query

from listing_api.api.dependencies import get_search_service
from listing_api.schemas.base import ErrorResponse
from listing_api.schemas.property import PropertyListResponse
from listing_api.services.search_service import SearchService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=PropertyListResponse)
async def search_all(
        complete: bool = Query(False, description="Full listing instead of the short card"),
        service: SearchService = Depends(get_search_service),
):
    """Published listings, most expensive first"""
    return await service.all(complete)


@router.get("/metadata", response_model=PropertyListResponse)
async def search_all_metadata(
        complete: bool = Query(False, description="Include availability, visibility and counters"),
        service: SearchService = Depends(get_search_service),
):
    """Every listing, for back-office screens"""
    return await service.all_metadata(complete)


@router.get("/{property_id}", responses={404: {"model": ErrorResponse}, 412: {"model": ErrorResponse}})
async def search_by_id(property_id: str, service: SearchService = Depends(get_search_service)):
    """A single published listing"""
    return await service.get_by_id(property_id)
