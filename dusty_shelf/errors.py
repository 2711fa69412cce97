"""
Error taxonomy for the Dusty Shelf API.

Every error knows the status code and body it is rendered with, so route
handlers only raise and the application exception handlers do the rest.
"""

from http import HTTPStatus
from typing import Dict, Optional

from fastapi import status

from dusty_shelf.models import ErrorResponse


class DustyShelfError(Exception):
    """Base error rendered as an ``ErrorResponse``."""

    err = "Internal Server Error"
    default_msg: Optional[str] = None
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, msg: Optional[str] = None, *, headers: Optional[Dict[str, str]] = None) -> None:
        self.msg = msg if msg is not None else self.default_msg
        self.headers = headers or {}
        super().__init__(self.msg or self.err)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(err=self.err, msg=self.msg, code=self.status_code)


class UnauthorizedError(DustyShelfError):
    """Missing, malformed, expired or otherwise invalid bearer token."""

    err = "Unauthorized"
    default_msg = "You are not authorized to perform this action"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, msg: Optional[str] = None) -> None:
        super().__init__(msg, headers={"WWW-Authenticate": "Bearer"})


class NotFoundError(DustyShelfError):
    """Requested book is absent, or an update/delete touched no rows."""

    err = "Not Found"
    default_msg = "There's just Dust all over here"
    status_code = status.HTTP_404_NOT_FOUND


class PayloadTooLargeError(DustyShelfError):
    """Request body exceeds the configured JSON limit."""

    err = "Payload Too Large"
    status_code = HTTPStatus.REQUEST_ENTITY_TOO_LARGE.value


class ServiceUnavailableError(DustyShelfError):
    """No database connection could be acquired in time."""

    err = "Service Unavailable"
    default_msg = "The shelf is busy, try again shortly"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class StoreError(DustyShelfError):
    """Unexpected database failure."""

    default_msg = "The shelf could not complete this request"
