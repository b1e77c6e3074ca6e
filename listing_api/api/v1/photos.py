import logging

from fastapi import APIRouter, Depends

from listing_api.api.dependencies import get_photo_service
from listing_api.models.photo import PhotoRecord
from listing_api.schemas.base import ErrorResponse
from listing_api.schemas.photo import PhotoUploadRequest, PhotoUploadResponse
from listing_api.services.photo_service import PhotoService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "",
    response_model=PhotoUploadResponse,
    response_model_by_alias=True,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        412: {"model": ErrorResponse},
    },
)
async def upload_photo(request: PhotoUploadRequest, service: PhotoService = Depends(get_photo_service)):
    """
    Upload a base64 image for a property

    The original is stored right away; thumbnails (128, 256, 512) are
    generated in the background and show up in the photo record later.
    """
    logger.info(f"Photo upload for property {request.property_id}: {request.file_name}")
    result = await service.ingest(request.property_id, request.file_name, request.image_source)
    return PhotoUploadResponse(
        property_id=result.property_id,
        photo_record_id=result.photo_record_id,
        file_name=result.file_name,
        url=result.url,
    )


@router.get("/property/{property_id}", response_model=PhotoRecord, response_model_by_alias=True)
async def get_photos_by_property(property_id: str, service: PhotoService = Depends(get_photo_service)):
    """Photo record of a property"""
    return await service.get_by_property(property_id)


@router.get("/{record_id}", response_model=PhotoRecord, response_model_by_alias=True)
async def get_photo_record(record_id: str, service: PhotoService = Depends(get_photo_service)):
    """Photo record by ID"""
    return await service.get_record(record_id)
