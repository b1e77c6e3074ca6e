from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter
from fastapi.responses import Response

router = APIRouter()

# Define metrics
request_count = Counter(
	'http_requests_total',
	'Total HTTP requests',
	['method', 'endpoint', 'status']
)

request_duration = Histogram(
	'http_request_duration_seconds',
	'HTTP request duration',
	['method', 'endpoint'],
	buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

active_requests = Gauge(
	'http_requests_active',
	'Number of active HTTP requests'
)

thumbnails_generated = Counter(
	'thumbnails_generated_total',
	'Thumbnails generated and merged into their photo record',
	['size']
)

thumbnail_failures = Counter(
	'thumbnail_failures_total',
	'Thumbnail sizes that failed and were left empty',
	['size']
)

finalize_events = Counter(
	'finalize_events_total',
	'Object finalize notifications handled by the thumbnail pipeline',
	['outcome']
)

transaction_retries = Counter(
	'transaction_retries_total',
	'Document store transactions replayed after a version conflict',
	['collection']
)

trigger_events = Counter(
	'trigger_events_total',
	'Trigger events dispatched',
	['event', 'mode']
)


@router.get("/metrics")
async def metrics():
	"""Prometheus metrics endpoint"""
	return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
