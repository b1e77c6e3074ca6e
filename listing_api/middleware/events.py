import logging

from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)


class EventDrainMiddleware:
	"""Run queued trigger events once the response has been sent"""

	def __init__(self, app: ASGIApp):
		self.app = app

	async def __call__(self, scope: Scope, receive: Receive, send: Send):
		await self.app(scope, receive, send)
		if scope["type"] != "http":
			return

		services = getattr(scope["app"].state, "services", None)
		if services is None:
			return
		handled = await services.dispatcher.drain()
		if handled:
			logger.debug(f"Drained {handled} trigger events after {scope['method']} {scope['path']}")
