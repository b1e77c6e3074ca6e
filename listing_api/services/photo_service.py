"""
Photo ingestion.

Stores an uploaded original under ``{propertyId}/{recordId}_{fileName}`` and
appends an image variant with empty thumbnails to the property's photo record.
Thumbnails are produced later by the thumbnail pipeline when the object store
reports the write as finalized.
"""
import base64
import binascii
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Tuple

from listing_api.constants import PHOTOS, PROPERTIES
from listing_api.exceptions import FailedPrecondition, InvalidArgument, NotFound
from listing_api.models.photo import ImageVariant, PhotoRecord
from listing_api.stores.documents import DocumentNotFound, DocumentStore, Transaction
from listing_api.stores.objects import ObjectStore

logger = logging.getLogger(__name__)

MIME_PATTERN = re.compile(r"data:([a-zA-Z0-9]+/[a-zA-Z0-9.+-]+).*,.*", re.DOTALL)
PREFIX_PATTERN = re.compile(r"^data:[a-zA-Z0-9]+/[a-zA-Z0-9.+-]+[^,]*;base64,")

BROKEN_RELATIONSHIP = "Broken relationship between photos and properties"


@dataclass
class IngestResult:
    property_id: str
    photo_record_id: str
    file_name: str
    url: str


def parse_data_uri(image_source: str) -> Tuple[str, bytes]:
    """data:<mime>;base64,<payload> -> (mime, bytes)"""
    match = MIME_PATTERN.match(image_source or "")
    if not match:
        raise InvalidArgument("Image source is not a data URI")
    mime_type = match.group(1).lower()

    payload, count = PREFIX_PATTERN.subn("", image_source, count=1)
    if not count:
        raise InvalidArgument("Image source is not base64 encoded")
    try:
        data = base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError):
        raise InvalidArgument("Image payload is not valid base64")
    if not data:
        raise InvalidArgument("Image payload is empty")
    return mime_type, data


def clean_file_name(file_name: str) -> str:
    name = (file_name or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    if not name or name in (".", ".."):
        raise InvalidArgument("File name is empty")
    return name


class PhotoService:
    def __init__(self, documents: DocumentStore, objects: ObjectStore, expires_at: datetime, max_upload_size: int):
        self.documents = documents
        self.objects = objects
        self.expires_at = expires_at
        self.max_upload_size = max_upload_size

    async def _single_record(self, property_id: str) -> PhotoRecord:
        docs = await self.documents.query(PHOTOS, {"propertyId": property_id})
        if len(docs) != 1:
            logger.error(f"Property {property_id} has {len(docs)} photo records")
            raise FailedPrecondition(BROKEN_RELATIONSHIP)
        return PhotoRecord.from_document(docs[0])

    async def ingest(self, property_id: str, file_name: str, image_source: str) -> IngestResult:
        """Store the original and append its variant; does not wait for thumbnails"""
        if await self.documents.get(PROPERTIES, property_id) is None:
            raise NotFound("Property not found")

        record = await self._single_record(property_id)

        mime_type, data = parse_data_uri(image_source)
        if not mime_type.startswith("image/"):
            raise InvalidArgument(f"Unsupported content type: {mime_type}")
        if len(data) > self.max_upload_size:
            raise InvalidArgument(f"Image too large: {len(data)} bytes (max: {self.max_upload_size})")

        image_key = f"{record.id}_{clean_file_name(file_name)}"
        object_key = f"{property_id}/{image_key}"

        await self.objects.put(object_key, data, content_type=mime_type, public=True)
        url = await self.objects.signed_url(object_key, self.expires_at)

        variant = ImageVariant(name=image_key, url=url)
        try:
            await self.add_variant(record.id, variant)
        except DocumentNotFound:
            raise FailedPrecondition(BROKEN_RELATIONSHIP)

        logger.info(f"Photo {image_key} added to record {record.id} of property {property_id}")
        return IngestResult(
            property_id=property_id,
            photo_record_id=record.id,
            file_name=image_key,
            url=url,
        )

    async def add_variant(self, record_id: str, variant: ImageVariant):
        """
        Append a variant, or reset the one with the same name in place.

        A file name uploaded twice keeps a single entry, back to empty thumbnails.
        """
        value = variant.model_dump(mode="json", by_alias=True)

        async def _add(tx: Transaction):
            doc = await tx.get(PHOTOS, record_id)
            if doc is None:
                raise DocumentNotFound(PHOTOS, record_id)
            images = list(doc.data.get("images") or [])
            for index, image in enumerate(images):
                if image.get("name") == variant.name:
                    images[index] = value
                    logger.info(f"Photo {variant.name} replaced in record {record_id}")
                    break
            else:
                images.append(value)
            tx.update(PHOTOS, record_id, {"images": images})

        await self.documents.run_transaction(_add)

    async def get_by_property(self, property_id: str) -> PhotoRecord:
        docs = await self.documents.query(PHOTOS, {"propertyId": property_id})
        if not docs:
            raise NotFound("Photo record not found")
        if len(docs) > 1:
            raise FailedPrecondition(BROKEN_RELATIONSHIP)
        return PhotoRecord.from_document(docs[0])

    async def get_record(self, record_id: str) -> PhotoRecord:
        doc = await self.documents.get(PHOTOS, record_id)
        if doc is None:
            raise NotFound("Photo record not found")
        return PhotoRecord.from_document(doc)
