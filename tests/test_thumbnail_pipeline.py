import asyncio
import os
from datetime import datetime, timezone

import pytest

from listing_api.constants import PHOTOS
from listing_api.models.photo import Thumbnail
from listing_api.services.image_converter import ImageConversionError, PillowImageConverter
from listing_api.services.thumbnail_pipeline import Outcome, ThumbnailPipeline, VariantNotFound
from listing_api.stores.memory_documents import MemoryDocumentStore
from listing_api.stores.memory_objects import MemoryObjectStore
from listing_api.stores.objects import FinalizeEvent

EXPIRES_AT = datetime(2030, 12, 31, tzinfo=timezone.utc)
ORIGINAL = "prop1/rec1_front.png"


class SlowDocumentStore(MemoryDocumentStore):
	"""Yields on every read so concurrent transactions interleave"""

	async def _fetch(self, collection, doc_id):
		doc = await super()._fetch(collection, doc_id)
		await asyncio.sleep(0)
		return doc


class FailingConverter(PillowImageConverter):
	def __init__(self, failing_size: int):
		self.failing_size = failing_size

	async def _resize(self, input_path, size, output_path):
		if size == self.failing_size:
			raise ImageConversionError(f"cannot resize to {size}")
		await super()._resize(input_path, size, output_path)


@pytest.fixture
def documents():
	return SlowDocumentStore()


@pytest.fixture
def objects():
	return MemoryObjectStore("listing-photos", emit_finalize_events=False)


@pytest.fixture
def failures():
	return []


@pytest.fixture
def pipeline(documents, objects, failures, tmp_path):
	return ThumbnailPipeline(
		documents,
		objects,
		PillowImageConverter(),
		expires_at=EXPIRES_AT,
		tmp_dir=str(tmp_path),
		failure_handler=lambda event, size, error: failures.append((event.name, size, error)),
	)


@pytest.fixture
async def original(documents, objects, make_image):
	"""A stored original with its empty variant"""
	await documents.create(PHOTOS, {
		"propertyId": "prop1",
		"images": [{
			"name": "rec1_front.png",
			"url": "u",
			"thumb128": {"name": "", "url": ""},
			"thumb256": {"name": "", "url": ""},
			"thumb512": {"name": "", "url": ""},
		}],
	}, doc_id="rec1")
	await objects.put(ORIGINAL, make_image(), content_type="image/png", public=True)
	return FinalizeEvent(name=ORIGINAL, content_type="image/png", bucket="listing-photos")


async def _image(documents):
	doc = await documents.get(PHOTOS, "rec1")
	return doc.data["images"][0]


async def test_generates_every_size(pipeline, documents, objects, original, failures, tmp_path):
	"""Test a finalized original gets all three thumbnails"""
	report = await pipeline.handle(original)

	assert report.outcome is Outcome.PROCESSED
	assert report.thumbnails == {size: f"prop1/thumb_{size}_rec1_front.png" for size in (128, 256, 512)}
	assert failures == []

	image = await _image(documents)
	for size in (128, 256, 512):
		assert image[f"thumb{size}"]["name"] == f"thumb_{size}_rec1_front.png"
		assert image[f"thumb{size}"]["url"].startswith("memory://listing-photos/prop1/thumb_")
		assert (await objects.head(f"prop1/thumb_{size}_rec1_front.png")).public is True

	assert os.listdir(tmp_path) == []


async def test_thumbnails_are_ignored(pipeline, documents, objects, original):
	"""Test finalize events of thumbnails do not recurse"""
	before = await _image(documents)
	report = await pipeline.handle(FinalizeEvent(name="prop1/thumb_128_rec1_front.png", content_type="image/png"))
	assert report.outcome is Outcome.THUMBNAIL
	assert await _image(documents) == before
	assert objects.keys() == [ORIGINAL]


async def test_non_images_are_ignored(pipeline, objects, original, failures):
	report = await pipeline.handle(FinalizeEvent(name=ORIGINAL, content_type="application/pdf"))
	assert report.outcome is Outcome.NOT_IMAGE

	report = await pipeline.handle(FinalizeEvent(name=ORIGINAL, content_type=None))
	assert report.outcome is Outcome.NOT_IMAGE
	assert objects.keys() == [ORIGINAL]
	assert failures == []


async def test_event_without_name(pipeline):
	report = await pipeline.handle(FinalizeEvent(name=None, content_type="image/png"))
	assert report.outcome is Outcome.INVALID


async def test_name_without_record_id(pipeline, objects, failures, make_image):
	"""Test originals that do not follow the record id naming fail"""
	await objects.put("prop1/front.png", make_image(), content_type="image/png")
	report = await pipeline.handle(FinalizeEvent(name="prop1/front.png", content_type="image/png"))
	assert report.outcome is Outcome.FAILED
	assert len(failures) == 1
	assert failures[0][1] is None


async def test_missing_original(pipeline, failures, original):
	"""Test a download failure is reported and nothing is merged"""
	report = await pipeline.handle(FinalizeEvent(name="prop1/rec1_gone.png", content_type="image/png"))
	assert report.outcome is Outcome.FAILED
	assert [f[1] for f in failures] == [None]


async def test_missing_variant(pipeline, objects, failures, original, make_image):
	"""Test every size fails when the record has no matching variant"""
	await objects.put("prop1/rec1_other.png", make_image(), content_type="image/png")
	report = await pipeline.handle(FinalizeEvent(name="prop1/rec1_other.png", content_type="image/png"))

	assert report.outcome is Outcome.FAILED
	assert sorted(report.errors) == [128, 256, 512]
	assert sorted(f[1] for f in failures) == [128, 256, 512]
	assert all(isinstance(f[2], VariantNotFound) for f in failures)


async def test_partial_failure_keeps_other_sizes(documents, objects, failures, original, tmp_path):
	"""Test one failing size leaves only that thumbnail empty"""
	pipeline = ThumbnailPipeline(
		documents,
		objects,
		FailingConverter(256),
		expires_at=EXPIRES_AT,
		tmp_dir=str(tmp_path),
		failure_handler=lambda event, size, error: failures.append((event.name, size, error)),
	)
	report = await pipeline.handle(original)

	assert report.outcome is Outcome.PARTIAL
	assert sorted(report.thumbnails) == [128, 512]
	assert list(report.errors) == [256]
	assert [f[1] for f in failures] == [256]

	image = await _image(documents)
	assert image["thumb128"]["name"]
	assert image["thumb256"] == {"name": "", "url": ""}
	assert image["thumb512"]["name"]
	assert os.listdir(tmp_path) == []


async def test_async_failure_handler(documents, objects, original, tmp_path):
	seen = []

	async def _handler(event, size, error):
		seen.append(size)

	pipeline = ThumbnailPipeline(
		documents, objects, FailingConverter(512),
		expires_at=EXPIRES_AT, tmp_dir=str(tmp_path), failure_handler=_handler,
	)
	await pipeline.handle(original)
	assert seen == [512]


async def test_concurrent_merges_do_not_lose_updates(pipeline, documents, original):
	"""Test racing merges of different sizes into one variant all land"""
	await asyncio.gather(*(
		pipeline.merge("rec1", "rec1_front.png", size, Thumbnail(name=f"thumb_{size}_rec1_front.png", url=f"u{size}"))
		for size in (128, 256, 512)
	))

	image = await _image(documents)
	for size in (128, 256, 512):
		assert image[f"thumb{size}"] == {"name": f"thumb_{size}_rec1_front.png", "url": f"u{size}"}
	assert image["url"] == "u"


async def test_merge_keeps_other_variants(pipeline, documents, original):
	await documents.array_union(PHOTOS, "rec1", "images", [{"name": "rec1_back.png", "url": "b"}])
	await pipeline.merge("rec1", "rec1_back.png", 128, Thumbnail(name="thumb_128_rec1_back.png", url="t"))

	doc = await documents.get(PHOTOS, "rec1")
	front, back = doc.data["images"]
	assert front["thumb128"] == {"name": "", "url": ""}
	assert back["thumb128"] == {"name": "thumb_128_rec1_back.png", "url": "t"}
