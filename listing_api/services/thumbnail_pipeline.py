"""
Thumbnail pipeline.

Runs once per finalize notification. Originals are downloaded to a scratch
directory, resized to every size in THUMBNAIL_SIZES, uploaded next to the
original as ``thumb_{size}_{name}`` and merged into the owning image variant.

Each size is best effort: a failure is reported to the failure handler and the
variant keeps its empty thumbnail for that size. Nothing is retried here.
"""
import inspect
import logging
import os
import posixpath
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, Optional, Union

from listing_api.constants import PHOTOS, THUMB_PREFIX, THUMBNAIL_SIZES
from listing_api.models.photo import Thumbnail, thumb_field
from listing_api.monitoring.metrics import finalize_events, thumbnail_failures, thumbnails_generated
from listing_api.services.image_converter import ImageConverter
from listing_api.stores.documents import DocumentNotFound, DocumentStore, Transaction
from listing_api.stores.objects import FinalizeEvent, ObjectStore

logger = logging.getLogger(__name__)


class VariantNotFound(Exception):
    def __init__(self, record_id: str, name: str):
        super().__init__(f"Image {name} not found in photo record {record_id}")
        self.record_id = record_id
        self.name = name


class Outcome(str, Enum):
    PROCESSED = "processed"
    PARTIAL = "partial"
    FAILED = "failed"
    INVALID = "invalid"
    NOT_IMAGE = "not_image"
    THUMBNAIL = "thumbnail"


@dataclass
class PipelineReport:
    name: Optional[str]
    outcome: Outcome
    thumbnails: Dict[int, str] = field(default_factory=dict)
    errors: Dict[int, str] = field(default_factory=dict)


FailureHandler = Callable[[FinalizeEvent, Optional[int], Exception], Union[None, Awaitable[None]]]


def log_failure(event: FinalizeEvent, size: Optional[int], error: Exception):
    """Default failure handler: log it and count it, the size stays empty"""
    label = str(size) if size is not None else "all"
    thumbnail_failures.labels(size=label).inc()
    logger.error(f"Thumbnail {label} failed for {event.name}: {error}", exc_info=error)


class ThumbnailPipeline:
    def __init__(
            self,
            documents: DocumentStore,
            objects: ObjectStore,
            converter: ImageConverter,
            expires_at: datetime,
            sizes: Iterable[int] = THUMBNAIL_SIZES,
            tmp_dir: Optional[str] = None,
            failure_handler: Optional[FailureHandler] = None,
    ):
        self.documents = documents
        self.objects = objects
        self.converter = converter
        self.expires_at = expires_at
        self.sizes = tuple(sizes)
        self.tmp_dir = tmp_dir
        self.failure_handler = failure_handler or log_failure

    async def handle(self, event: FinalizeEvent) -> PipelineReport:
        """Entry point for an object.finalized event; never raises"""
        try:
            report = await self._handle(event)
        except Exception as e:
            await self._fail(event, None, e)
            report = PipelineReport(event.name, Outcome.FAILED)
        finalize_events.labels(outcome=report.outcome.value).inc()
        return report

    async def _handle(self, event: FinalizeEvent) -> PipelineReport:
        if not event.name:
            logger.critical(f"Finalize event without object name: {event}")
            return PipelineReport(None, Outcome.INVALID)

        if not (event.content_type or "").startswith("image/"):
            logger.warning(f"Not an image, skipping: {event.name} ({event.content_type})")
            return PipelineReport(event.name, Outcome.NOT_IMAGE)

        file_name = posixpath.basename(event.name)
        if file_name.startswith(THUMB_PREFIX):
            return PipelineReport(event.name, Outcome.THUMBNAIL)

        record_id, sep, _ = file_name.partition("_")
        if not sep or not record_id:
            await self._fail(event, None, ValueError(f"{file_name} does not start with a photo record id"))
            return PipelineReport(event.name, Outcome.FAILED)

        report = PipelineReport(event.name, Outcome.PROCESSED)
        workdir = tempfile.mkdtemp(prefix="thumbs-", dir=self.tmp_dir)
        try:
            original = os.path.join(workdir, file_name)
            await self.objects.download(event.name, original)
            logger.info(f"Downloaded {event.name} to {original}")

            for size in self.sizes:
                try:
                    report.thumbnails[size] = await self._thumbnail(event, original, record_id, file_name, size)
                except Exception as e:
                    report.errors[size] = str(e)
                    await self._fail(event, size, e)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

        if report.errors:
            report.outcome = Outcome.PARTIAL if report.thumbnails else Outcome.FAILED
        return report

    async def _thumbnail(self, event: FinalizeEvent, original: str, record_id: str, file_name: str, size: int) -> str:
        thumb_name = f"{THUMB_PREFIX}{size}_{file_name}"
        output = await self.converter.convert(original, size, os.path.join(os.path.dirname(original), thumb_name))

        thumb_key = posixpath.join(posixpath.dirname(event.name), thumb_name)
        await self.objects.upload_file(output, thumb_key, content_type=event.content_type, public=True)
        url = await self.objects.signed_url(thumb_key, self.expires_at)

        await self.merge(record_id, file_name, size, Thumbnail(name=thumb_name, url=url))
        thumbnails_generated.labels(size=str(size)).inc()
        logger.info(f"Thumbnail {thumb_key} merged into record {record_id}")
        return thumb_key

    async def merge(self, record_id: str, image_name: str, size: int, thumbnail: Thumbnail):
        """Replace one thumbnail of one variant, re-reading the record on every attempt"""
        field_name = thumb_field(size)
        value = thumbnail.model_dump(mode="json", by_alias=True)

        async def _merge(tx: Transaction):
            doc = await tx.get(PHOTOS, record_id)
            if doc is None:
                raise DocumentNotFound(PHOTOS, record_id)
            images = doc.data.get("images") or []
            for image in images:
                if image.get("name") == image_name:
                    image[field_name] = value
                    break
            else:
                raise VariantNotFound(record_id, image_name)
            tx.update(PHOTOS, record_id, {"images": images})

        await self.documents.run_transaction(_merge)

    async def _fail(self, event: FinalizeEvent, size: Optional[int], error: Exception):
        try:
            result = self.failure_handler(event, size, error)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.exception(f"Failure handler raised for {event.name}: {e}")
