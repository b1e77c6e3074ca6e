import asyncio
import logging
from typing import Any, Dict

from listing_api.config import get_settings
from listing_api.core.celery_app import celery_app
from listing_api.core.container import build_services
from listing_api.services.events import OBJECT_FINALIZED, PROPERTY_CREATED, PROPERTY_DELETED
from listing_api.services.thumbnail_pipeline import PipelineReport

logger = logging.getLogger(__name__)


def _run(name: str, payload: Dict[str, Any]):
	"""Run one trigger on a fresh event loop with its own store connections"""
	loop = asyncio.new_event_loop()
	asyncio.set_event_loop(loop)
	try:
		return loop.run_until_complete(_run_async(name, payload))
	finally:
		loop.close()


async def _run_async(name: str, payload: Dict[str, Any]):
	services = build_services(get_settings())
	try:
		return await services.handle_event(name, payload)
	finally:
		await services.shutdown()


@celery_app.task(name="listing_api.workers.triggers.on_property_created")
def on_property_created(payload: Dict[str, Any]):
	"""Create the photo record of a new property"""
	try:
		_run(PROPERTY_CREATED, payload)
	except Exception as e:
		logger.error(f"Trigger {PROPERTY_CREATED} failed for {payload}: {e}", exc_info=True)
		return {"status": "failed", "error": str(e)}
	return {"status": "ok"}


@celery_app.task(name="listing_api.workers.triggers.on_property_deleted")
def on_property_deleted(payload: Dict[str, Any]):
	"""Purge the photo records and objects of a deleted property"""
	try:
		_run(PROPERTY_DELETED, payload)
	except Exception as e:
		logger.error(f"Trigger {PROPERTY_DELETED} failed for {payload}: {e}", exc_info=True)
		return {"status": "failed", "error": str(e)}
	return {"status": "ok"}


@celery_app.task(name="listing_api.workers.triggers.on_object_finalized")
def on_object_finalized(payload: Dict[str, Any]):
	"""Generate thumbnails for a finalized object"""
	try:
		report: PipelineReport = _run(OBJECT_FINALIZED, payload)
	except Exception as e:
		logger.error(f"Trigger {OBJECT_FINALIZED} failed for {payload}: {e}", exc_info=True)
		return {"status": "failed", "error": str(e)}
	return {
		"name": report.name,
		"outcome": report.outcome.value,
		"thumbnails": {str(k): v for k, v in report.thumbnails.items()},
		"errors": {str(k): v for k, v in report.errors.items()},
	}
