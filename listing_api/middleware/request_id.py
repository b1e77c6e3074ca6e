from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request
import uuid
import contextvars
import logging

# Request ID of the request being handled
request_id_context = contextvars.ContextVar("request_id", default=None)

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
	"""Propagate or generate X-Request-ID"""

	async def dispatch(self, request: Request, call_next):
		request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

		request.state.request_id = request_id
		token = request_id_context.set(request_id)
		try:
			response = await call_next(request)
		finally:
			request_id_context.reset(token)

		response.headers["X-Request-ID"] = request_id
		logger.debug(f"{request.method} {request.url.path} [{request_id}] - {response.status_code}")
		return response


def get_request_id() -> str:
	"""Get current request ID from context"""
	return request_id_context.get() or "unknown"
