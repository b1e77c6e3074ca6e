import base64
import io

from httpx import AsyncClient
from PIL import Image

from listing_api.constants import PHOTOS
from listing_api.models.property import PropertyInput


async def _upload(client: AsyncClient, pid: str, image_source: str, file_name: str = "front.png"):
	return await client.post(
		"/api/v1/photos",
		json={"propertyId": pid, "fileName": file_name, "imageSource": image_source},
	)


async def test_upload_photo(client: AsyncClient, services, created_property: dict, image_source: str):
	"""Test uploading a photo stores the original and appends its variant"""
	pid = created_property["id"]
	record = (await services.documents.query(PHOTOS, {"propertyId": pid}))[0]

	response = await _upload(client, pid, image_source)
	assert response.status_code == 200
	data = response.json()
	assert data["propertyId"] == pid
	assert data["photoRecordId"] == record.id
	assert data["fileName"] == f"{record.id}_front.png"
	assert data["url"].startswith(f"memory://listing-photos/{pid}/{record.id}_front.png")

	stored = await services.objects.head(f"{pid}/{record.id}_front.png")
	assert stored.content_type == "image/png"
	assert stored.public is True


async def test_upload_generates_thumbnails(client: AsyncClient, services, created_property: dict, image_source: str):
	"""Test the finalize trigger fills all three thumbnails"""
	pid = created_property["id"]
	response = await _upload(client, pid, image_source)
	record_id = response.json()["photoRecordId"]
	name = f"{record_id}_front.png"

	response = await client.get(f"/api/v1/photos/property/{pid}")
	assert response.status_code == 200
	record = response.json()
	assert record["id"] == record_id
	assert record["propertyId"] == pid
	assert len(record["images"]) == 1

	image = record["images"][0]
	assert image["name"] == name
	for size in (128, 256, 512):
		thumb = image[f"thumb{size}"]
		assert thumb["name"] == f"thumb_{size}_{name}"
		assert thumb["url"].startswith(f"memory://listing-photos/{pid}/thumb_{size}_{name}")

		data = await services.objects.get(f"{pid}/thumb_{size}_{name}")
		with Image.open(io.BytesIO(data)) as img:
			assert max(img.size) == size
			assert img.format == "PNG"

	assert sorted(services.objects.keys()) == sorted(
		[f"{pid}/{name}"] + [f"{pid}/thumb_{size}_{name}" for size in (128, 256, 512)]
	)


async def test_upload_several_photos(client: AsyncClient, created_property: dict, image_source: str):
	pid = created_property["id"]
	await _upload(client, pid, image_source, "a.png")
	await _upload(client, pid, image_source, "b.png")

	record = (await client.get(f"/api/v1/photos/property/{pid}")).json()
	assert [i["name"].split("_", 1)[1] for i in record["images"]] == ["a.png", "b.png"]
	assert all(i["thumb512"]["name"] for i in record["images"])

	by_id = await client.get(f"/api/v1/photos/{record['id']}")
	assert by_id.json() == record


async def test_upload_accepts_legacy_field_names(client: AsyncClient, created_property: dict, image_source: str):
	response = await client.post(
		"/api/v1/photos",
		json={"docId": created_property["id"], "fileName": "c.png", "imageData": image_source},
	)
	assert response.status_code == 200


async def test_upload_unknown_property(client: AsyncClient, image_source: str):
	response = await _upload(client, "missing", image_source)
	assert response.status_code == 404
	assert response.json()["code"] == "not-found"


async def test_upload_rejects_bad_sources(client: AsyncClient, created_property: dict):
	"""Test malformed or non-image payloads are rejected"""
	pid = created_property["id"]
	text = "data:text/plain;base64," + base64.b64encode(b"hello").decode()
	for source in ("not a data uri", "data:image/png;base64,@@@", text):
		response = await _upload(client, pid, source)
		assert response.status_code == 400, source
		assert response.json()["code"] == "invalid-argument"


async def test_upload_too_large(client: AsyncClient, services, created_property: dict, image_source: str):
	services.photos.max_upload_size = 10
	response = await _upload(client, created_property["id"], image_source)
	assert response.status_code == 400


async def test_upload_without_photo_record(client: AsyncClient, services, created_property: dict, image_source: str):
	"""Test a property with no photo record reports the broken relationship"""
	pid = created_property["id"]
	await services.documents.delete_where(PHOTOS, {"propertyId": pid})

	response = await _upload(client, pid, image_source)
	assert response.status_code == 412
	assert response.json() == {
		"code": "failed-precondition",
		"error": "Broken relationship between photos and properties",
	}
	assert services.objects.keys() == []


async def test_upload_with_duplicate_photo_records(client: AsyncClient, services, created_property: dict, image_source: str):
	pid = created_property["id"]
	await services.documents.create(PHOTOS, {"propertyId": pid, "images": []})

	response = await _upload(client, pid, image_source)
	assert response.status_code == 412


async def test_photo_record_not_found(client: AsyncClient):
	assert (await client.get("/api/v1/photos/missing")).status_code == 404
	assert (await client.get("/api/v1/photos/property/missing")).status_code == 404


async def test_reupload_same_name_keeps_one_variant(client: AsyncClient, services, created_property: dict, image_source: str):
	"""Test uploading a file name twice leaves a single, fully thumbnailed variant"""
	pid = created_property["id"]
	first = await _upload(client, pid, image_source)
	second = await _upload(client, pid, image_source)
	assert first.json()["fileName"] == second.json()["fileName"]

	record = (await client.get(f"/api/v1/photos/property/{pid}")).json()
	assert len(record["images"]) == 1
	image = record["images"][0]
	assert image["name"] == second.json()["fileName"]
	for size in (128, 256, 512):
		assert image[f"thumb{size}"]["name"] == f"thumb_{size}_{image['name']}"


async def test_ingest_appends_empty_variant_before_thumbnails(services, image_source: str):
	"""Test ingestion returns with one new variant whose thumbnails are all empty"""
	prop = await services.properties.create(PropertyInput(name="Casa"))
	await services.dispatcher.drain()
	await services.photos.ingest(prop.id, "a.png", image_source)
	await services.dispatcher.drain()
	before = (await services.photos.get_by_property(prop.id)).images

	result = await services.photos.ingest(prop.id, "b.png", image_source)
	assert services.dispatcher.pending == 1

	record = await services.photos.get_by_property(prop.id)
	assert len(record.images) == len(before) + 1
	added = record.images[-1]
	assert added.name == result.file_name
	assert added.url == result.url
	for size in (128, 256, 512):
		assert added.thumbnail(size).model_dump() == {"name": "", "url": ""}
	assert record.images[0].thumb128.name == f"thumb_128_{record.images[0].name}"


async def test_reingest_before_thumbnails_resets_variant(services, image_source: str):
	prop = await services.properties.create(PropertyInput(name="Casa"))
	await services.dispatcher.drain()

	await services.photos.ingest(prop.id, "a.png", image_source)
	await services.photos.ingest(prop.id, "a.png", image_source)

	record = await services.photos.get_by_property(prop.id)
	assert [image.name for image in record.images] == [f"{record.id}_a.png"]
	assert record.images[0].thumb512.is_empty
