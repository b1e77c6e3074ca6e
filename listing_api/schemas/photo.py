# schemas/photo.py
from pydantic import AliasChoices, Field

from listing_api.models.property import CamelModel


class PhotoUploadRequest(CamelModel):
    property_id: str = Field(..., validation_alias=AliasChoices("propertyId", "property_id", "docId"))
    file_name: str = Field(..., validation_alias=AliasChoices("fileName", "file_name"))
    image_source: str = Field(
        ...,
        validation_alias=AliasChoices("imageSource", "imageData", "image_source"),
        description="data:<mime>;base64,<payload>",
    )


class PhotoUploadResponse(CamelModel):
    property_id: str
    photo_record_id: str
    file_name: str
    url: str
