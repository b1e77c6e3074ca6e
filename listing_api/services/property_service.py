# listing_api/services/property_service.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from listing_api.constants import PHOTOS, PROPERTIES
from listing_api.exceptions import InvalidArgument, NotFound
from listing_api.models.photo import PhotoRecord
from listing_api.models.property import Property, PropertyInput
from listing_api.services.events import PROPERTY_CREATED, PROPERTY_DELETED, EventDispatcher
from listing_api.stores.documents import DocumentStore, Transaction, new_id
from listing_api.stores.objects import ObjectStore

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PropertyService:
    def __init__(self, documents: DocumentStore, objects: ObjectStore, dispatcher: EventDispatcher):
        self.documents = documents
        self.objects = objects
        self.dispatcher = dispatcher

    async def _read(self, tx: Transaction, property_id: str) -> Property:
        doc = await tx.get(PROPERTIES, property_id)
        if doc is None:
            raise NotFound("Property not found")
        return Property.from_document(doc)

    async def get(self, property_id: str) -> Property:
        doc = await self.documents.get(PROPERTIES, property_id)
        if doc is None:
            raise NotFound("Property not found")
        return Property.from_document(doc)

    async def create(self, data: PropertyInput) -> Property:
        prop = Property.create(data, utcnow())
        prop.id = new_id()
        await self.documents.create(PROPERTIES, prop.to_document(), doc_id=prop.id)
        logger.info(f"Property created: {prop.id}")
        await self.dispatcher.dispatch(PROPERTY_CREATED, {"propertyId": prop.id})
        return prop

    async def update(self, property_id: str, data: PropertyInput) -> Property:
        async def _update(tx: Transaction) -> Property:
            current = await self._read(tx, property_id)
            merged = current.merge(data, utcnow())
            tx.set(PROPERTIES, property_id, merged.to_document())
            return merged

        prop = await self.documents.run_transaction(_update)
        logger.info(f"Property updated: {property_id}")
        return prop

    async def remove(self, property_id: str) -> Dict[str, Any]:
        async def _remove(tx: Transaction) -> Property:
            current = await self._read(tx, property_id)
            tx.delete(PROPERTIES, property_id)
            return current

        removed = await self.documents.run_transaction(_remove)
        logger.info(f"Property removed: {property_id}")
        await self.dispatcher.dispatch(PROPERTY_DELETED, {"propertyId": property_id})
        return {"id": property_id, "name": removed.name}

    async def _patch(self, property_id: str, fields: Dict[str, Any]) -> Property:
        async def _apply(tx: Transaction) -> Property:
            doc = await tx.get(PROPERTIES, property_id)
            if doc is None:
                raise NotFound("Property not found")
            data = {**doc.data, **fields, "updatedAt": utcnow().isoformat()}
            tx.set(PROPERTIES, property_id, data)
            return Property.model_validate({**data, "id": property_id})

        return await self.documents.run_transaction(_apply)

    async def update_price(self, property_id: str, price: float) -> Property:
        if price is None or price <= 0:
            raise InvalidArgument("Price must be greater than zero")
        return await self._patch(property_id, {"price": price})

    async def set_availability(self, property_id: str, is_available: bool) -> Property:
        return await self._patch(property_id, {"isAvailable": is_available})

    async def set_visibility(self, property_id: str, is_visible: bool) -> Property:
        return await self._patch(property_id, {"isVisible": is_visible})

    async def _increment(self, property_id: str, field: str) -> int:
        async def _apply(tx: Transaction) -> int:
            doc = await tx.get(PROPERTIES, property_id)
            if doc is None:
                raise NotFound("Property not found")
            value = int(doc.data.get(field) or 0) + 1
            if value <= 0:
                value = 1
            tx.update(PROPERTIES, property_id, {field: value})
            return value

        return await self.documents.run_transaction(_apply)

    async def add_interest(self, property_id: str) -> int:
        return await self._increment(property_id, "interested")

    async def add_visit(self, property_id: str) -> int:
        return await self._increment(property_id, "visits")

    async def on_created(self, property_id: str):
        """Give a new listing its photo record and hide it until it is reviewed"""
        async def _apply(tx: Transaction):
            if await tx.get(PROPERTIES, property_id) is None:
                logger.warning(f"Property {property_id} vanished before its photo record was created")
                return None
            records = await tx.query(PHOTOS, {"propertyId": property_id})
            if records:
                return None
            record = PhotoRecord(id=new_id(), property_id=property_id)
            tx.set(PHOTOS, record.id, record.to_document())
            # Writing the property serializes concurrent runs of this trigger
            tx.update(PROPERTIES, property_id, {
                "isAvailable": False,
                "isVisible": False,
                "createdAt": utcnow().isoformat(),
            })
            return record

        record = await self.documents.run_transaction(_apply)
        if record is not None:
            logger.info(f"Photo record {record.id} created for property {property_id}")

    async def on_deleted(self, property_id: str):
        """Drop the photo records of a removed listing and every stored object"""
        records = await self.documents.query(PHOTOS, {"propertyId": property_id})
        if not records:
            logger.info(f"No photo record for property {property_id}")
            return
        purged = await self.objects.delete_prefix(f"{property_id}/")
        deleted = await self.documents.delete_where(PHOTOS, {"propertyId": property_id})
        logger.info(f"Property {property_id}: {purged} objects and {deleted} photo records deleted")
