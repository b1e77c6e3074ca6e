import pytest
from httpx import AsyncClient


@pytest.fixture
async def listings(client: AsyncClient, property_payload: dict) -> dict:
	"""Three properties, two of them published"""
	ids = {}
	for name, price, published in (("Barata", 1000000, True), ("Cara", 9000000, True), ("Oculta", 5000000, False)):
		response = await client.post("/api/v1/properties", json={**property_payload, "name": name, "price": price})
		pid = response.json()["obj"]["id"]
		ids[name] = pid
		if published:
			await client.put(f"/api/v1/properties/{pid}/availability", json={"isAvailable": True})
			await client.put(f"/api/v1/properties/{pid}/visibility", json={"isVisible": True})
	return ids


async def test_search_published(client: AsyncClient, listings: dict):
	"""Test only available and visible properties are listed, most expensive first"""
	response = await client.get("/api/v1/search")
	assert response.status_code == 200
	data = response.json()
	assert data["total"] == 2
	assert [p["name"] for p in data["properties"]] == ["Cara", "Barata"]
	assert "amenities" not in data["properties"][0]
	assert "isAvailable" not in data["properties"][0]


async def test_search_complete(client: AsyncClient, listings: dict):
	response = await client.get("/api/v1/search", params={"complete": "true"})
	data = response.json()
	assert data["total"] == 2
	assert data["properties"][0]["amenities"] == ["garden", "pool"]
	assert "visits" not in data["properties"][0]


async def test_search_visible_but_unavailable(client: AsyncClient, listings: dict):
	"""Test a visible property that is not available stays out of the results"""
	await client.put(f"/api/v1/properties/{listings['Oculta']}/visibility", json={"isVisible": True})
	response = await client.get("/api/v1/search")
	assert response.json()["total"] == 2


async def test_search_by_id(client: AsyncClient, listings: dict):
	response = await client.get(f"/api/v1/search/{listings['Cara']}")
	assert response.status_code == 200
	data = response.json()
	assert data["name"] == "Cara"
	assert "hasKitchen" in data


async def test_search_by_id_unpublished(client: AsyncClient, listings: dict):
	"""Test hidden properties answer failed-precondition"""
	response = await client.get(f"/api/v1/search/{listings['Oculta']}")
	assert response.status_code == 412
	assert response.json() == {"code": "failed-precondition", "error": "Property not available."}

	response = await client.get("/api/v1/search/missing")
	assert response.status_code == 404


async def test_search_metadata(client: AsyncClient, listings: dict):
	"""Test back-office listing includes unpublished properties"""
	response = await client.get("/api/v1/search/metadata")
	data = response.json()
	assert data["total"] == 3
	assert [p["name"] for p in data["properties"]] == ["Cara", "Oculta", "Barata"]
	assert "isAvailable" not in data["properties"][0]

	response = await client.get("/api/v1/search/metadata", params={"complete": "true"})
	data = response.json()
	hidden = next(p for p in data["properties"] if p["name"] == "Oculta")
	assert hidden["isAvailable"] is False
	assert hidden["visits"] == 0


async def test_search_empty(client: AsyncClient):
	response = await client.get("/api/v1/search")
	assert response.json() == {"total": 0, "properties": []}
