import logging
from typing import Any, Dict, List

from listing_api.constants import PROPERTIES
from listing_api.exceptions import FailedPrecondition, NotFound
from listing_api.models.property import Property
from listing_api.stores.documents import DocumentStore

logger = logging.getLogger(__name__)


class SearchService:
    """Read-only listing queries, most expensive first"""

    def __init__(self, documents: DocumentStore):
        self.documents = documents

    async def _properties(self, **filters) -> List[Property]:
        docs = await self.documents.query(PROPERTIES, filters or None, order_by="price", descending=True)
        return [Property.from_document(doc) for doc in docs]

    async def all(self, complete: bool = False) -> Dict[str, Any]:
        """Published listings: available and visible"""
        props = await self._properties(isAvailable=True, isVisible=True)
        view = Property.complete_view if complete else Property.short_view
        return {"total": len(props), "properties": [view(p) for p in props]}

    async def get_by_id(self, property_id: str) -> Dict[str, Any]:
        doc = await self.documents.get(PROPERTIES, property_id)
        if doc is None:
            raise NotFound("Property not found")
        prop = Property.from_document(doc)
        if not (prop.is_available and prop.is_visible):
            raise FailedPrecondition("Property not available.")
        return prop.complete_view()

    async def all_metadata(self, complete: bool = False) -> Dict[str, Any]:
        """Every listing, published or not"""
        props = await self._properties()
        view = Property.admin_view if complete else Property.short_view
        return {"total": len(props), "properties": [view(p) for p in props]}
