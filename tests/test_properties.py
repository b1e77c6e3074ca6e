import pytest
from httpx import ASGITransport, AsyncClient

from listing_api.constants import PHOTOS, PROPERTIES
from listing_api.core.container import build_services
from listing_api.main import create_app
from listing_api.services.email_service import MemoryMailer
from listing_api.services.events import LocalEventDispatcher
from listing_api.stores.memory_documents import MemoryDocumentStore
from listing_api.stores.memory_objects import MemoryObjectStore


async def test_create_property(client: AsyncClient, property_payload: dict):
	"""Test creating a property"""
	response = await client.post("/api/v1/properties", json={**property_payload, "currency": "usd"})
	assert response.status_code == 200
	data = response.json()
	assert "time" in data

	obj = data["obj"]
	assert len(obj["id"]) == 20
	assert obj["name"] == "Casa Azul"
	assert obj["currency"] == "USD"
	assert obj["price"] == 4500000
	assert obj["coordinates"] == {"latitude": "19.3551", "longitude": "-99.1626"}
	assert obj["isAvailable"] is False
	assert obj["isVisible"] is False


async def test_create_runs_creation_trigger(client: AsyncClient, services, created_property: dict):
	"""Test a new property gets exactly one empty photo record"""
	records = await services.documents.query(PHOTOS, {"propertyId": created_property["id"]})
	assert len(records) == 1
	assert records[0].data["images"] == []

	stored = await services.documents.get(PROPERTIES, created_property["id"])
	assert stored.data["createdAt"]

	# Running the trigger again changes nothing
	await services.properties.on_created(created_property["id"])
	assert len(await services.documents.query(PHOTOS, {"propertyId": created_property["id"]})) == 1


async def test_get_property(client: AsyncClient, created_property: dict):
	response = await client.get(f"/api/v1/properties/{created_property['id']}")
	assert response.status_code == 200
	assert response.json()["name"] == "Casa Azul"


async def test_get_missing_property(client: AsyncClient):
	"""Test unknown ids answer not-found"""
	response = await client.get("/api/v1/properties/does-not-exist")
	assert response.status_code == 404
	assert response.json() == {"code": "not-found", "error": "Property not found"}


async def test_update_property_merges(client: AsyncClient, created_property: dict):
	"""Test an update only applies meaningful values"""
	response = await client.put(
		f"/api/v1/properties/{created_property['id']}",
		json={
			"name": "",
			"price": 0,
			"rooms": 4,
			"amenities": ["gym"],
			"coordinates": {"latitude": "20.1"},
			"isVisible": True,
		},
	)
	assert response.status_code == 200
	obj = response.json()["obj"]
	assert obj["name"] == "Casa Azul"
	assert obj["price"] == 4500000
	assert obj["rooms"] == 4
	assert obj["amenities"] == ["garden", "gym", "pool"]
	assert obj["coordinates"] == {"latitude": "20.1", "longitude": "-99.1626"}
	assert obj["isVisible"] is False


async def test_update_missing_property(client: AsyncClient):
	response = await client.put("/api/v1/properties/nope", json={"name": "X"})
	assert response.status_code == 404


async def test_invalid_body(client: AsyncClient):
	"""Test malformed bodies answer invalid-argument"""
	response = await client.post("/api/v1/properties", json={"price": "a lot"})
	assert response.status_code == 400
	assert response.json()["code"] == "invalid-argument"


async def test_method_not_allowed(client: AsyncClient):
	response = await client.patch("/api/v1/properties/some-id", json={})
	assert response.status_code == 405
	assert response.json()["code"] == "method-not-allowed"


async def test_update_price(client: AsyncClient, created_property: dict):
	pid = created_property["id"]
	response = await client.put(f"/api/v1/properties/{pid}/price", json={"price": 5000000})
	assert response.status_code == 200
	assert response.json()["obj"] == {"id": pid, "price": 5000000}

	response = await client.put(f"/api/v1/properties/{pid}/price", json={"price": -1})
	assert response.status_code == 400
	assert response.json()["code"] == "invalid-argument"


async def test_availability_and_visibility(client: AsyncClient, created_property: dict):
	"""Test publishing a property"""
	pid = created_property["id"]
	response = await client.put(f"/api/v1/properties/{pid}/availability", json={"isAvailable": True})
	assert response.json()["obj"] == {"id": pid, "isAvailable": True}

	response = await client.put(f"/api/v1/properties/{pid}/visibility", json={"isVisible": True})
	assert response.json()["obj"] == {"id": pid, "isVisible": True}

	response = await client.get(f"/api/v1/properties/{pid}")
	data = response.json()
	assert data["isAvailable"] is True
	assert data["isVisible"] is True
	assert data["name"] == "Casa Azul"


async def test_counters(client: AsyncClient, created_property: dict):
	"""Test interest and visit counters"""
	pid = created_property["id"]
	for expected in (1, 2, 3):
		response = await client.put(f"/api/v1/properties/{pid}/interest")
		assert response.json()["obj"] == {"id": pid, "interested": expected}

	response = await client.put(f"/api/v1/properties/{pid}/visits")
	assert response.json()["obj"] == {"id": pid, "visits": 1}

	response = await client.put("/api/v1/properties/nope/visits")
	assert response.status_code == 404


async def test_remove_property(client: AsyncClient, services, created_property: dict, image_source: str):
	"""Test deleting a property purges its photo record and stored images"""
	pid = created_property["id"]
	upload = await client.post(
		"/api/v1/photos",
		json={"propertyId": pid, "fileName": "front.png", "imageSource": image_source},
	)
	assert upload.status_code == 200
	assert services.objects.keys()

	response = await client.delete(f"/api/v1/properties/{pid}")
	assert response.status_code == 200
	assert response.json()["obj"] == {"id": pid, "name": "Casa Azul"}

	assert await services.documents.get(PROPERTIES, pid) is None
	assert await services.documents.query(PHOTOS, {"propertyId": pid}) == []
	assert services.objects.keys() == []

	response = await client.delete(f"/api/v1/properties/{pid}")
	assert response.status_code == 404


@pytest.fixture
def legacy_app(settings):
	settings = settings.model_copy(update={"ERROR_STATUS_MODE": "legacy"})
	services = build_services(
		settings,
		documents=MemoryDocumentStore(),
		objects=MemoryObjectStore(),
		mailer=MemoryMailer(),
		dispatcher=LocalEventDispatcher(),
	)
	return create_app(services=services)


async def test_legacy_error_status(legacy_app):
	"""Test legacy mode answers every error with 500 and keeps the code"""
	async with AsyncClient(transport=ASGITransport(app=legacy_app), base_url="http://test") as client:
		response = await client.get("/api/v1/properties/nope")
	assert response.status_code == 500
	assert response.json()["code"] == "not-found"


async def test_unhandled_error_is_internal(app, services, monkeypatch):
	"""Test unexpected exceptions are rendered as internal"""
	async def _boom(property_id):
		raise RuntimeError("database exploded")

	monkeypatch.setattr(services.properties, "get", _boom)
	transport = ASGITransport(app=app, raise_app_exceptions=False)
	async with AsyncClient(transport=transport, base_url="http://test") as client:
		response = await client.get("/api/v1/properties/p1")
	assert response.status_code == 500
	assert response.json() == {"code": "internal", "error": "Internal server error"}
