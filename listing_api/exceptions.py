# listing_api/exceptions.py
from fastapi import status


class ApiError(Exception):
    """Error raised by a handler and rendered as {code, error}"""

    code: str = "internal"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "error": self.message}


class InvalidArgument(ApiError):
    code = "invalid-argument"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(ApiError):
    code = "not-found"
    status_code = status.HTTP_404_NOT_FOUND


class FailedPrecondition(ApiError):
    code = "failed-precondition"
    status_code = status.HTTP_412_PRECONDITION_FAILED


class MethodNotAllowed(ApiError):
    code = "method-not-allowed"
    status_code = status.HTTP_405_METHOD_NOT_ALLOWED


class Internal(ApiError):
    code = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
