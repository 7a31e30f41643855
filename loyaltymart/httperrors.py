"""Errors that map to HTTP responses."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any


class HTTPError(Exception):
    """An error carrying the HTTP status and message of its response."""

    def __init__(self, status: int, message: Any = None) -> None:
        self.status = int(status)
        self.message = HTTPStatus(self.status).phrase if message is None else message
        super().__init__(f"code={self.status}, message={self.message}")


def invalid_request_body(msg: Any) -> HTTPError:
    """A 400 error for a request body that cannot be read."""
    return HTTPError(HTTPStatus.BAD_REQUEST, f"invalid request body: {msg}")


def internal_server_error(err: BaseException) -> BaseException:
    """Pass ``err`` through to be reported as an internal server error."""
    return err


def unauthorized(msg: Any) -> HTTPError:
    """A 401 error."""
    return HTTPError(HTTPStatus.UNAUTHORIZED, msg)