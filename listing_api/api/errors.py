# listing_api/api/errors.py
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from listing_api.exceptions import ApiError, Internal, InvalidArgument, MethodNotAllowed, NotFound
from listing_api.stores.documents import DocumentNotFound, TransactionAborted
from listing_api.stores.objects import ObjectNotFound

logger = logging.getLogger(__name__)


def _render(request: Request, error: ApiError) -> JSONResponse:
    settings = request.app.state.services.settings
    status_code = error.status_code
    if settings.ERROR_STATUS_MODE == "legacy":
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=status_code, content=error.to_dict())


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else err.get("msg", ""))
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        logger.warning(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")
        return _render(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _render(request, InvalidArgument(_validation_message(exc)))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            return _render(request, MethodNotAllowed("Method not allowed"))
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return _render(request, NotFound(str(exc.detail)))
        if exc.status_code < 500:
            return JSONResponse(status_code=exc.status_code, content={"code": str(exc.status_code), "error": str(exc.detail)})
        return _render(request, Internal(str(exc.detail)))

    @app.exception_handler(DocumentNotFound)
    async def document_not_found_handler(request: Request, exc: DocumentNotFound):
        return _render(request, NotFound(str(exc)))

    @app.exception_handler(ObjectNotFound)
    async def object_not_found_handler(request: Request, exc: ObjectNotFound):
        return _render(request, NotFound(str(exc)))

    @app.exception_handler(TransactionAborted)
    async def transaction_aborted_handler(request: Request, exc: TransactionAborted):
        logger.error(f"{request.method} {request.url.path}: {exc}")
        return _render(request, Internal("The document was modified concurrently, try again"))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return _render(request, Internal("Internal server error"))
