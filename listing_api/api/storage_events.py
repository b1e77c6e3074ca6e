import logging
from typing import List
from urllib.parse import unquote_plus

from fastapi import APIRouter, Depends

from listing_api.api.dependencies import get_services
from listing_api.core.container import Services
from listing_api.exceptions import InvalidArgument
from listing_api.schemas.events import StorageEventRequest, StorageEventResponse
from listing_api.services.events import OBJECT_FINALIZED
from listing_api.stores.objects import FinalizeEvent

router = APIRouter()
logger = logging.getLogger(__name__)


def _events(request: StorageEventRequest) -> List[FinalizeEvent]:
    if request.records is None:
        return [FinalizeEvent(name=request.name, content_type=request.content_type, bucket=request.bucket)]

    events = []
    for record in request.records:
        if not str(record.get("eventName", "ObjectCreated")).startswith(("ObjectCreated", "s3:ObjectCreated")):
            continue
        s3 = record.get("s3", {})
        key = s3.get("object", {}).get("key")
        events.append(FinalizeEvent(
            name=unquote_plus(key) if key else None,
            content_type=s3.get("object", {}).get("contentType"),
            bucket=s3.get("bucket", {}).get("name"),
        ))
    return events


@router.post("/storage/events", response_model=StorageEventResponse)
async def storage_events(request: StorageEventRequest, services: Services = Depends(get_services)):
    """
    Bucket notification webhook

    Accepts either ``{name, contentType, bucket}`` or an S3 ``Records`` batch.
    S3 notifications carry no content type, so it is read from the object.
    """
    events = _events(request)
    if not events:
        raise InvalidArgument("No object event in payload")

    for event in events:
        if event.name and not event.content_type:
            head = await services.objects.head(event.name)
            if head is not None:
                event.content_type = head.content_type
        await services.dispatcher.dispatch(OBJECT_FINALIZED, event.to_dict())

    logger.info(f"Accepted {len(events)} storage events")
    return StorageEventResponse(accepted=len(events))
