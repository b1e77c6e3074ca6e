import logging
from typing import Any, Dict, TYPE_CHECKING

from listing_api.services.events import OBJECT_FINALIZED, PROPERTY_CREATED, PROPERTY_DELETED
from listing_api.stores.objects import FinalizeEvent

if TYPE_CHECKING:
    from listing_api.core.container import Services

logger = logging.getLogger(__name__)


async def handle_event(services: "Services", name: str, payload: Dict[str, Any]):
    """Route a trigger event to its handler, in-process or in a worker"""
    logger.info(f"Trigger {name}: {payload}")
    if name == PROPERTY_CREATED:
        return await services.properties.on_created(payload["propertyId"])
    if name == PROPERTY_DELETED:
        return await services.properties.on_deleted(payload["propertyId"])
    if name == OBJECT_FINALIZED:
        return await services.thumbnails.handle(FinalizeEvent.from_dict(payload))
    logger.warning(f"Unknown trigger event {name}")
