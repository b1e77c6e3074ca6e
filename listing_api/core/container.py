# listing_api/core/container.py
import logging
from dataclasses import dataclass, field
from typing import Optional

from listing_api.config import Settings
from listing_api.database import create_engine, init_db
from listing_api.services.email_service import EmailService, Mailer, build_mailer
from listing_api.services.events import (
    OBJECT_FINALIZED,
    CeleryEventDispatcher,
    EventDispatcher,
    LocalEventDispatcher,
)
from listing_api.services.image_converter import ImageConverter, build_converter
from listing_api.services.photo_service import PhotoService
from listing_api.services.property_service import PropertyService
from listing_api.services.search_service import SearchService
from listing_api.services.thumbnail_pipeline import FailureHandler, ThumbnailPipeline
from listing_api.services.triggers import handle_event
from listing_api.stores.documents import DocumentStore
from listing_api.stores.objects import FinalizeEvent, ObjectStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a handler or trigger needs, built once per process"""
    settings: Settings
    documents: DocumentStore
    objects: ObjectStore
    converter: ImageConverter
    dispatcher: EventDispatcher
    mailer: Mailer
    properties: PropertyService = field(init=False)
    search: SearchService = field(init=False)
    photos: PhotoService = field(init=False)
    thumbnails: ThumbnailPipeline = field(init=False)
    email: EmailService = field(init=False)
    failure_handler: Optional[FailureHandler] = None

    def __post_init__(self):
        settings = self.settings
        self.properties = PropertyService(self.documents, self.objects, self.dispatcher)
        self.search = SearchService(self.documents)
        self.photos = PhotoService(
            self.documents,
            self.objects,
            expires_at=settings.SIGNED_URL_EXPIRES_AT,
            max_upload_size=settings.MAX_UPLOAD_SIZE,
        )
        self.thumbnails = ThumbnailPipeline(
            self.documents,
            self.objects,
            self.converter,
            expires_at=settings.SIGNED_URL_EXPIRES_AT,
            tmp_dir=settings.THUMBNAIL_TMP_DIR,
            failure_handler=self.failure_handler,
        )
        self.email = EmailService(self.mailer, settings.MAIL_TO)

        self.objects.on_finalize = self._on_finalize
        if isinstance(self.dispatcher, LocalEventDispatcher) and self.dispatcher.handler is None:
            self.dispatcher.handler = self.handle_event

    async def _on_finalize(self, event: FinalizeEvent):
        await self.dispatcher.dispatch(OBJECT_FINALIZED, event.to_dict())

    async def handle_event(self, name: str, payload: dict):
        return await handle_event(self, name, payload)

    async def startup(self):
        engine = getattr(self.documents, "engine", None)
        if engine is not None and self.settings.AUTO_CREATE_TABLES:
            await init_db(engine)

    async def shutdown(self):
        await self.documents.close()


def build_document_store(settings: Settings) -> DocumentStore:
    if settings.DOCUMENT_STORE_BACKEND == "memory":
        from listing_api.stores.memory_documents import MemoryDocumentStore
        return MemoryDocumentStore(max_attempts=settings.TRANSACTION_MAX_ATTEMPTS)

    from listing_api.stores.sql_documents import SqlDocumentStore
    return SqlDocumentStore(create_engine(settings), max_attempts=settings.TRANSACTION_MAX_ATTEMPTS)


def build_object_store(settings: Settings) -> ObjectStore:
    if settings.OBJECT_STORE_BACKEND == "s3":
        from listing_api.stores.s3_objects import S3ObjectStore
        return S3ObjectStore(settings)

    from listing_api.stores.memory_objects import MemoryObjectStore
    return MemoryObjectStore(settings.S3_BUCKET_NAME, settings.EMIT_FINALIZE_EVENTS)


def build_dispatcher(settings: Settings) -> EventDispatcher:
    if settings.EVENT_DISPATCH_MODE == "celery":
        from listing_api.core.celery_app import celery_app
        return CeleryEventDispatcher(celery_app, settings.FINALIZE_TASK_COUNTDOWN)
    return LocalEventDispatcher()


def build_services(settings: Settings, **overrides) -> Services:
    """Build the container from settings; keyword overrides replace single parts"""
    parts = {
        "documents": overrides.pop("documents", None) or build_document_store(settings),
        "objects": overrides.pop("objects", None) or build_object_store(settings),
        "converter": overrides.pop("converter", None) or build_converter(settings),
        "dispatcher": overrides.pop("dispatcher", None) or build_dispatcher(settings),
        "mailer": overrides.pop("mailer", None) or build_mailer(settings),
    }
    services = Services(settings=settings, **parts, **overrides)
    logger.info(
        f"Services ready: documents={services.documents.backend_name} "
        f"objects={services.objects.backend_name} converter={services.converter.name} "
        f"events={services.dispatcher.mode}"
    )
    return services
