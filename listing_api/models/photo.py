from typing import List, Optional

from pydantic import Field

from listing_api.constants import THUMBNAIL_SIZES
from listing_api.models.property import CamelModel
from listing_api.stores.documents import Document


class Thumbnail(CamelModel):
    """A resized copy; the empty sentinel has name == ''"""
    name: str = ""
    url: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.name


class ImageVariant(CamelModel):
    """An uploaded original and its three thumbnails"""
    name: str
    url: str
    thumb128: Thumbnail = Field(default_factory=Thumbnail)
    thumb256: Thumbnail = Field(default_factory=Thumbnail)
    thumb512: Thumbnail = Field(default_factory=Thumbnail)

    def thumbnail(self, size: int) -> Thumbnail:
        return getattr(self, thumb_field(size))


class PhotoRecord(CamelModel):
    id: str
    property_id: str
    images: List[ImageVariant] = Field(default_factory=list)

    @classmethod
    def from_document(cls, doc: Document) -> "PhotoRecord":
        return cls.model_validate({**doc.data, "id": doc.id})

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    def find(self, name: str) -> Optional[ImageVariant]:
        return next((image for image in self.images if image.name == name), None)


def thumb_field(size: int) -> str:
    if size not in THUMBNAIL_SIZES:
        raise ValueError(f"Unsupported thumbnail size: {size}")
    return f"thumb{size}"
