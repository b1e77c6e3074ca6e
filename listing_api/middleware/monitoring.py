import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from listing_api.monitoring.metrics import request_count, request_duration, active_requests

logger = logging.getLogger(__name__)


def _endpoint(request: Request) -> str:
	# Route template, not the raw path
	route = request.scope.get("route")
	return getattr(route, "path", None) or "unmatched"


class MonitoringMiddleware(BaseHTTPMiddleware):
	"""Track request metrics for Prometheus"""

	async def dispatch(self, request: Request, call_next):
		# Skip metrics endpoint to avoid recursion
		if request.url.path == "/internal/metrics":
			return await call_next(request)

		active_requests.inc()
		start_time = time.time()

		try:
			response = await call_next(request)
			duration = time.time() - start_time
			endpoint = _endpoint(request)

			request_count.labels(
				method=request.method,
				endpoint=endpoint,
				status=response.status_code
			).inc()

			request_duration.labels(
				method=request.method,
				endpoint=endpoint
			).observe(duration)

			return response

		finally:
			active_requests.dec()
