from fastapi import Request

from listing_api.core.container import Services
from listing_api.services.photo_service import PhotoService
from listing_api.services.property_service import PropertyService
from listing_api.services.search_service import SearchService


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_property_service(request: Request) -> PropertyService:
    return get_services(request).properties


def get_search_service(request: Request) -> SearchService:
    return get_services(request).search


def get_photo_service(request: Request) -> PhotoService:
    return get_services(request).photos
