import base64
import io
from typing import AsyncGenerator, Callable

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from listing_api.config import Settings
from listing_api.core.container import Services, build_services
from listing_api.main import create_app
from listing_api.services.email_service import MemoryMailer
from listing_api.services.events import LocalEventDispatcher
from listing_api.stores.memory_documents import MemoryDocumentStore
from listing_api.stores.memory_objects import MemoryObjectStore


@pytest.fixture
def settings() -> Settings:
	"""In-process backends only"""
	return Settings(
		DOCUMENT_STORE_BACKEND="memory",
		OBJECT_STORE_BACKEND="memory",
		EVENT_DISPATCH_MODE="local",
		IMAGE_CONVERTER="pillow",
		ERROR_STATUS_MODE="semantic",
		AUTO_CREATE_TABLES=False,
	)


@pytest.fixture
def services(settings: Settings) -> Services:
	return build_services(
		settings,
		documents=MemoryDocumentStore(),
		objects=MemoryObjectStore(settings.S3_BUCKET_NAME),
		mailer=MemoryMailer(),
		dispatcher=LocalEventDispatcher(),
	)


@pytest.fixture
def app(services: Services):
	return create_app(services=services)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
	"""Create a test client"""
	async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
		yield client


@pytest.fixture
def make_image() -> Callable[..., bytes]:
	"""Encode a solid image of the given size"""

	def _make(width: int = 800, height: int = 600, fmt: str = "PNG") -> bytes:
		buffer = io.BytesIO()
		Image.new("RGB", (width, height), color=(200, 120, 40)).save(buffer, format=fmt)
		return buffer.getvalue()

	return _make


@pytest.fixture
def image_source(make_image) -> str:
	"""800x600 PNG as a data URI"""
	return "data:image/png;base64," + base64.b64encode(make_image()).decode()


@pytest.fixture
def property_payload() -> dict:
	return {
		"name": "Casa Azul",
		"description": "Casa con jardin en Coyoacan",
		"price": 4500000,
		"currency": "mxn",
		"years": 12,
		"address": "Londres 247, Coyoacan",
		"coordinates": {"latitude": "19.3551", "longitude": "-99.1626"},
		"sizeMts": 320,
		"buildMts": 210,
		"floor": "1",
		"rooms": 3,
		"baths": 2.5,
		"parking": 2,
		"hasKitchen": True,
		"hasTerrace": True,
		"terraceMts": 25,
		"amenities": ["garden", "pool"],
		"propertyType": 0,
		"commercialMode": 0,
		"source": "web",
		"matter": "sale",
	}


@pytest.fixture
async def created_property(client: AsyncClient, property_payload: dict) -> dict:
	"""A property whose creation trigger has already run"""
	response = await client.post("/api/v1/properties", json=property_payload)
	assert response.status_code == 200
	return response.json()["obj"]
